"""accounts/ -- Account lifecycle: signup, email verification, login matching.

Layer rule: accounts/ imports from core/, store/ and mail/. It does NOT import
from api/. api/ imports from accounts/, not the other way around.
"""
