# Re-export all models for convenient imports
from digilib.models.user import UserProfile, Identity, UserRole
from digilib.models.material import Material, MaterialType, MaterialCategory, MaterialState
from digilib.models.audit_log import AuditLog

__all__ = [
    # Users
    "UserProfile",
    "Identity",
    "UserRole",
    # Materials
    "Material",
    "MaterialType",
    "MaterialCategory",
    "MaterialState",
    # Admin
    "AuditLog",
]
