"""Lecture model definitions."""

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from coursehub.database import Base, utcnow


class Lecture(Base):
    """A video lecture belonging to exactly one course."""
    __tablename__ = "lectures"
    __table_args__ = (UniqueConstraint("course_id", "order", name="uq_lecture_course_order"),)

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    video_url = Column(String(500), nullable=False)
    video_public_id = Column(String(255), nullable=False)
    duration = Column(Float, nullable=False, default=0.0)
    is_preview = Column(Boolean, nullable=False, default=False)
    order = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    course = relationship("Course", back_populates="lectures")
