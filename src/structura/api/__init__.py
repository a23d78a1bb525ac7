"""REST API: FastAPI app factory, routes, and dependencies."""
