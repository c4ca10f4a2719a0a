"""Staff account model"""

import uuid
import enum
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, Enum
from sqlalchemy.dialects.postgresql import UUID

from app.database import Base


class UserRole(str, enum.Enum):
    """Staff roles, lowest first"""
    STAFF = "staff"
    ADMIN = "admin"


ROLE_LEVELS = {UserRole.STAFF: 1, UserRole.ADMIN: 2}


class User(Base):
    """Kitchen and delivery staff who sign in to the dashboard; customers never do"""
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(255))
    role = Column(Enum(UserRole, native_enum=False, length=20), nullable=False, default=UserRole.STAFF)
    is_active = Column(Boolean, default=True)

    # Current refresh token; rotated on refresh, cleared on logout
    refresh_token = Column(String(500))

    last_login = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def has_permission(self, required_role: UserRole) -> bool:
        return ROLE_LEVELS.get(self.role, 0) >= ROLE_LEVELS[required_role]
