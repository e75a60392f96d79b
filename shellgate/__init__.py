"""shellgate - Browser-based SSH session gateway."""

__version__ = "0.1.0"
