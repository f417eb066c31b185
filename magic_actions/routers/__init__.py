"""API routers for the Magic Actions service."""
