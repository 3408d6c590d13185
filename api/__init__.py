"""FastAPI surface over the core budget compute modules."""
