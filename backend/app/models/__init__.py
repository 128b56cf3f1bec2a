from .base import Base
from .role import Role
from .admin import Admin

__all__ = [
    "Base",
    "Role",
    "Admin",
]
