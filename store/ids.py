"""store/ids.py -- Client-side identifier generation.

Identifiers are assigned before the first INSERT so an entity has its final id
as soon as create() builds it. uuid4 carries 122 random bits; collisions are
not a practical concern at any realistic row count.
"""

import uuid


def generate_unique_id() -> str:
    """Return a new random UUID as its canonical 36-character string."""
    return str(uuid.uuid4())
