"""core/ -- Kernel: configuration, logging setup and the audit context.

Layer rule: core/ imports only stdlib + third-party libraries. Every other
package may import from core/; core/ imports from none of them.
"""
