import io
import os

import pytest
from fastapi import UploadFile
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from starlette.datastructures import Headers

os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('PASSWORD_HASH_ROUNDS', '1000')

from coursehub.auth import passwords  # noqa: E402
from coursehub.database import Base  # noqa: E402
from coursehub.models.course import Course, CourseEnrollment  # noqa: E402
from coursehub.models.lecture import Lecture  # noqa: E402
from coursehub.models.user import User  # noqa: E402
from coursehub.services.media import VIDEO, MediaAsset  # noqa: E402

DEFAULT_PASSWORD = 'correct-horse-battery'


class FakeMediaStore:
    def __init__(self):
        self.uploaded: list[MediaAsset] = []
        self.deleted: list[tuple[str, str]] = []

    def upload(self, file, filename, content_type=None, resource_type='image'):
        public_id = f'{resource_type}-{len(self.uploaded) + 1}'
        asset = MediaAsset(
            secure_url=f'https://media.example.com/{public_id}',
            public_id=public_id,
            resource_type=resource_type,
            duration=95.5 if resource_type == VIDEO else None,
        )
        self.uploaded.append(asset)
        return asset

    def delete(self, public_id, resource_type='image'):
        self.deleted.append((public_id, resource_type))


@pytest.fixture
def db_session():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def media_store():
    return FakeMediaStore()


def make_upload(filename: str, content_type: str, content: bytes = b'binary-data') -> UploadFile:
    return UploadFile(
        file=io.BytesIO(content),
        filename=filename,
        headers=Headers({'content-type': content_type}),
    )


def make_user(db, email: str, role: str = 'student', name: str = 'Test User', password: str = DEFAULT_PASSWORD) -> User:
    user = User(name=name, email=email, role=role, hashed_password=passwords.hash_password(password))
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_course(db, instructor: User, **overrides) -> Course:
    values = {
        'title': 'Python Basics',
        'subtitle': 'Start coding today',
        'description': 'Variables, loops and functions.',
        'category': 'programming',
        'level': 'beginner',
        'price': 49.0,
        'thumbnail_url': 'https://media.example.com/thumb',
        'thumbnail_public_id': 'thumb',
        'is_published': True,
    }
    values.update(overrides)
    course = Course(instructor=instructor, **values)
    db.add(course)
    db.commit()
    db.refresh(course)
    return course


def make_lecture(db, course: Course, order: int, is_preview: bool = False) -> Lecture:
    lecture = Lecture(
        course=course,
        title=f'Lecture {order}',
        video_url=f'https://media.example.com/video-{order}',
        video_public_id=f'video-{order}',
        duration=60.0,
        is_preview=is_preview,
        order=order,
    )
    course.lecture_count = order
    db.add(lecture)
    db.commit()
    return lecture


def enroll(db, user: User, course: Course) -> CourseEnrollment:
    enrollment = CourseEnrollment(user=user, course=course)
    db.add(enrollment)
    db.commit()
    return enrollment
