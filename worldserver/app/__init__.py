"""FastAPI application assembly for worldserver."""
