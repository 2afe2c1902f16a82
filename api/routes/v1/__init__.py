"""api/routes/v1/ -- Routers served under /api/v1."""
