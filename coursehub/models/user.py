"""User model definitions."""

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.orm import relationship

from coursehub.database import Base, utcnow

DEFAULT_AVATAR = "default-avatar.png"

ROLE_STUDENT = "student"
ROLE_INSTRUCTOR = "instructor"
ROLE_ADMIN = "admin"


class User(Base):
    """Represents a marketplace account, either learner or instructor."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=ROLE_STUDENT)  # student/instructor/admin
    bio = Column(Text)
    avatar_url = Column(String(500), nullable=False, default=DEFAULT_AVATAR)
    avatar_public_id = Column(String(255))
    reset_password_token = Column(String(64), index=True)
    reset_password_expire = Column(DateTime)
    last_active = Column(DateTime, default=utcnow)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    enrollments = relationship(
        "CourseEnrollment",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="CourseEnrollment.enrolled_at",
    )
    ratings = relationship("CourseRating", back_populates="user", cascade="all, delete-orphan")
    created_courses = relationship(
        "Course",
        back_populates="instructor",
        cascade="all, delete-orphan",
        order_by="Course.created_at.desc()",
    )

    @property
    def total_enrolled_courses(self) -> int:
        return len(self.enrollments)

    @property
    def has_custom_avatar(self) -> bool:
        return bool(self.avatar_public_id) and self.avatar_url != DEFAULT_AVATAR

    def update_last_active(self) -> None:
        self.last_active = utcnow()
