"""Response models shared by the user and course routes."""

from datetime import datetime, timezone
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# Columns hold naive UTC; responses carry the offset.
UTCDateTime = Annotated[datetime, AfterValidator(_as_utc)]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class UserSummary(CamelModel):
    id: int
    name: str
    avatar_url: str


class InstructorSummary(UserSummary):
    bio: str | None = None


class UserResponse(CamelModel):
    id: int
    name: str
    email: str
    role: str
    bio: str | None = None
    avatar_url: str
    last_active: UTCDateTime | None = None
    created_at: UTCDateTime


class LectureSummary(CamelModel):
    id: int
    title: str
    video_url: str | None = None
    duration: float
    is_preview: bool
    order: int


class LectureResponse(LectureSummary):
    description: str | None = None
    course_id: int
    created_at: UTCDateTime


class CourseResponse(CamelModel):
    id: int
    title: str
    subtitle: str | None = None
    description: str | None = None
    category: str
    level: str
    price: float
    thumbnail_url: str
    is_published: bool
    instructor_id: int
    average_rating: float
    created_at: UTCDateTime
    updated_at: UTCDateTime


class CourseListItem(CourseResponse):
    instructor: UserSummary


class CourseDetail(CourseResponse):
    instructor: InstructorSummary
    lectures: list[LectureSummary]


class CreatedCourseItem(CourseResponse):
    enrolled_students: list[UserSummary]


class EnrolledCourseSummary(CamelModel):
    id: int
    title: str
    description: str | None = None
    thumbnail_url: str


class EnrollmentResponse(CamelModel):
    course: EnrolledCourseSummary
    enrolled_at: UTCDateTime


class CreatedCourseSummary(CamelModel):
    id: int
    title: str
    thumbnail_url: str
    enrolled_students: int


class ProfileResponse(UserResponse):
    enrolled_courses: list[EnrollmentResponse]
    created_courses: list[CreatedCourseSummary]
    total_enrolled_courses: int


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    pages: int
