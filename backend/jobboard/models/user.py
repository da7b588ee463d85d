# jobboard/models/user.py
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, Integer, String, func

from jobboard.core.base import Base


class UserRole(str, Enum):
    CANDIDATE = "candidate"
    EMPLOYER = "employer"
    HR = "hr"
    ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=True)
    # Mirrors the role claimed by the identity provider; authorization on
    # companies never relies on it (see CompanyAccessResolver).
    role = Column(String(20), nullable=False, server_default=UserRole.CANDIDATE.value)

    is_active = Column(Boolean, nullable=False, server_default="true", default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
