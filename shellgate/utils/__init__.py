"""Utility helpers for shellgate."""
