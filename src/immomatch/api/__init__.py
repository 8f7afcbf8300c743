"""
API HTTP (FastAPI).
"""

from immomatch.api.app import app

__all__ = ["app"]
