"""Course, enrollment and rating model definitions."""

import enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    select,
)
from sqlalchemy.orm import column_property, relationship

from coursehub.database import Base, utcnow


class CourseLevel(str, enum.Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class CourseEnrollment(Base):
    """A student's enrollment in a course."""
    __tablename__ = "course_enrollments"
    __table_args__ = (UniqueConstraint("user_id", "course_id", name="uq_enrollment_user_course"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    enrolled_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User", back_populates="enrollments")
    course = relationship("Course", back_populates="enrollments")


class CourseRating(Base):
    """One student's 1-5 rating of a course."""
    __tablename__ = "course_ratings"
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_rating_user_course"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_rating_range"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    review = Column(Text)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User", back_populates="ratings")
    course = relationship("Course", back_populates="ratings")


class Course(Base):
    """Represents a course offered by an instructor."""
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    subtitle = Column(String(300))
    description = Column(Text)
    category = Column(String(100), nullable=False, index=True)
    level = Column(String(20), nullable=False, default=CourseLevel.BEGINNER.value, index=True)
    price = Column(Float, nullable=False, default=0.0)
    thumbnail_url = Column(String(500), nullable=False)
    thumbnail_public_id = Column(String(255))
    is_published = Column(Boolean, nullable=False, default=False, index=True)
    instructor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # Last lecture order handed out; only ever incremented.
    lecture_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    average_rating = column_property(
        select(func.coalesce(func.avg(CourseRating.rating), 0.0))
        .where(CourseRating.course_id == id)
        .correlate_except(CourseRating)
        .scalar_subquery()
    )

    instructor = relationship("User", back_populates="created_courses")
    lectures = relationship(
        "Lecture",
        back_populates="course",
        cascade="all, delete-orphan",
        order_by="Lecture.order",
    )
    enrollments = relationship("CourseEnrollment", back_populates="course", cascade="all, delete-orphan")
    ratings = relationship("CourseRating", back_populates="course", cascade="all, delete-orphan")
    enrolled_students = relationship(
        "User",
        secondary="course_enrollments",
        viewonly=True,
        order_by="User.name",
    )

    def is_enrolled(self, user_id: int) -> bool:
        return any(enrollment.user_id == user_id for enrollment in self.enrollments)
