"""
FastAPI routers for the overlay service.
"""

from app.routers import health, overlay

__all__ = ["health", "overlay"]
