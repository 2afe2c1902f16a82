"""api/routes/ -- Versioned routers mounted by api/main.py."""
