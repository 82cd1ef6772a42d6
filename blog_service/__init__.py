"""Blog service: users, cookie sessions and soft-deletable posts over a FastAPI JSON API."""
