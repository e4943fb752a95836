"""API routers, one per resource kind."""
