"""
Table definitions, importable from one place:

    from cnapp.models import Base, UserRecord
"""

from .base import Base
from .user import UserRecord

__all__ = [
    "Base",
    "UserRecord",
]
