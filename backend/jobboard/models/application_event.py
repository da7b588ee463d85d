from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, event
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from sqlalchemy.types import JSON

from jobboard.core.base import Base


class ApplicationEventType(str, Enum):
    APPLIED = "applied"
    STATUS_CHANGED = "status_changed"
    INTERVIEW_SCHEDULED = "interview_scheduled"
    CV_VIEWED = "cv_viewed"
    WITHDRAWN = "withdrawn"


class ApplicationEvent(Base):
    __tablename__ = "application_events"

    id = Column(Integer, primary_key=True, index=True)

    application_id = Column(
        Integer,
        ForeignKey("applications.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    event_type = Column(String(50), nullable=False, index=True)
    old_status = Column(String(30), nullable=True)
    new_status = Column(String(30), nullable=True)

    description = Column(String(255), nullable=True)
    data = Column(JSON, nullable=True)

    triggered_by_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    is_visible_to_job_seeker = Column(Boolean, nullable=False, server_default="true", default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    application = relationship("Application", back_populates="events")
    triggered_by = relationship("User")


class ImmutableEventError(RuntimeError):
    pass


@event.listens_for(ApplicationEvent, "before_update")
def _refuse_update(mapper, connection, target):  # noqa: ARG001
    raise ImmutableEventError(f"Application event {target.id} is append-only")


@event.listens_for(ApplicationEvent, "before_delete")
def _refuse_delete(mapper, connection, target):  # noqa: ARG001
    raise ImmutableEventError(f"Application event {target.id} is append-only")
