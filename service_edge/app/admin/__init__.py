"""
Admin package for the Edge Gateway Service.
"""

from .api import AdminAPI

__all__ = ["AdminAPI"]
