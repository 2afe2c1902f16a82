"""api/ -- FastAPI transport layer over AccountService.

Layer rule: api/ imports from accounts/, core/, mail/ and store/. Nothing
imports from api/ except asgi.py and the tests.
"""
