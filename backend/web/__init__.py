"""FastAPI adapter: app, auth middleware, routers and process wiring."""
