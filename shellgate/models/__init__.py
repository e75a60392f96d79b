"""Pydantic models for the HTTP and WebSocket surfaces."""
