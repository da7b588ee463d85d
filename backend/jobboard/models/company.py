from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from jobboard.core.base import Base


class Company(Base):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)

    owner_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    owner = relationship("User")
    hr_assignments = relationship(
        "HRCompanyAssignment",
        back_populates="company",
        cascade="all, delete-orphan",
    )


class HRCompanyAssignment(Base):
    __tablename__ = "hr_company_assignments"

    id = Column(Integer, primary_key=True, index=True)

    hr_user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    company_id = Column(
        Integer,
        ForeignKey("companies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # e.g. HR Manager, Recruiter, HR Specialist
    hr_role = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, server_default="true", default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    company = relationship("Company", back_populates="hr_assignments")
    hr_user = relationship("User")

    __table_args__ = (
        UniqueConstraint("hr_user_id", "company_id", name="uq_hr_company_assignment"),
    )
