from app.models.user import User
from app.models.profile import Profile
from app.models.audit import AuditLog

__all__ = [
    "User",
    "Profile",
    "AuditLog",
]
