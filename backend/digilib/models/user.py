from sqlalchemy import Column, String, DateTime, Enum as SQLEnum, func
import enum

from digilib.core.database import Base, GUID, generate_uuid


class UserRole(str, enum.Enum):
    """User roles"""
    USER = "user"
    ADMIN = "admin"


class UserProfile(Base):
    """
    Library profile for an authenticated identity.

    The primary key is the identity provider's user id, so a profile is
    created at most once per identity.
    """
    __tablename__ = "users"

    id = Column(GUID, primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    role = Column(
        SQLEnum(UserRole, values_callable=lambda e: [m.value for m in e]),
        default=UserRole.USER,
        nullable=False
    )
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def __repr__(self):
        return f"<UserProfile {self.email} ({self.role.value if self.role else '-'})>"


class Identity(Base):
    """Credentials held by the built-in email/password identity provider"""
    __tablename__ = "identities"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)
    display_name = Column(String(255), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Identity {self.email}>"
