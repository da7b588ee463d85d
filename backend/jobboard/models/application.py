from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from jobboard.core.base import Base


class ApplicationStatus(str, Enum):
    SUBMITTED = "submitted"
    REVIEWING = "reviewing"
    SHORTLISTED = "shortlisted"
    INTERVIEW_SCHEDULED = "interview_scheduled"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class Application(Base):
    __tablename__ = "applications"

    id = Column(Integer, primary_key=True, index=True)

    job_id = Column(
        Integer,
        ForeignKey("jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    job_seeker_profile_id = Column(
        Integer,
        ForeignKey("job_seeker_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    status = Column(String(30), nullable=False, default=ApplicationStatus.SUBMITTED.value, index=True)

    cover_letter = Column(Text, nullable=True)
    resume_url = Column(String(500), nullable=True)
    notes = Column(Text, nullable=True)

    reviewed_by_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    interview_scheduled_at = Column(DateTime(timezone=True), nullable=True)
    interview_notes = Column(Text, nullable=True)

    view_count = Column(Integer, nullable=False, server_default="0", default=0)

    # Withdrawal is a soft delete: the row and its event log are kept.
    withdrawn_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    job = relationship("Job")
    job_seeker_profile = relationship("JobSeekerProfile")
    reviewed_by = relationship("User")

    events = relationship(
        "ApplicationEvent",
        back_populates="application",
        order_by="ApplicationEvent.id",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("job_id", "job_seeker_profile_id", name="uq_application_job_profile"),
    )
