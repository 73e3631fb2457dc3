"""
SQLAlchemy database models.
"""

from propmap.models.properties import GovProperty

__all__ = [
    "GovProperty",
]
