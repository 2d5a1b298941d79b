"""API routers for storyline."""
