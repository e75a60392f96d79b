"""FastAPI server for shellgate."""
