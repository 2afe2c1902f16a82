"""
core/audit.py -- Attribution data threaded through every mutating store call.

Pattern: Data class (pure data container, zero logic). The store does not act
on the context beyond writing it to the audit log line for each mutation.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class AuditContext:
    """Who is changing data, and why.

    actor is a free-form principal label ("anonymous", "system", an account id).
    reason names the flow ("signup", "verify-account"). request_id ties the
    mutation to an inbound HTTP request when there is one.
    """

    actor: str
    reason: str | None = None
    request_id: str | None = None

    @classmethod
    def system(cls, reason: str) -> AuditContext:
        return cls(actor="system", reason=reason)

    def describe(self) -> str:
        parts = [f"actor={self.actor}"]
        if self.reason:
            parts.append(f"reason={self.reason}")
        if self.request_id:
            parts.append(f"request_id={self.request_id}")
        return " ".join(parts)
