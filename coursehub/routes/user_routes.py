import logging
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile
from pydantic import field_validator
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from coursehub.auth import jwt_handler, passwords
from coursehub.auth.dependencies import get_current_user
from coursehub.core import config
from coursehub.core.responses import envelope
from coursehub.database import get_db, utcnow
from coursehub.models.course import Course
from coursehub.models.user import ROLE_STUDENT, User
from coursehub.schemas import (
    CamelModel,
    CreatedCourseSummary,
    EnrollmentResponse,
    ProfileResponse,
    UserResponse,
)
from coursehub.services.media import IMAGE, VIDEO, MediaStoreError, get_media_store, upload_file

logger = logging.getLogger(__name__)

router = APIRouter(tags=['users'])


def normalize_email(value: str) -> str:
    normalized = value.strip().lower()
    if not normalized or '@' not in normalized:
        raise ValueError('A valid email address is required.')
    return normalized


def validate_new_password(value: str) -> str:
    if len(value) < config.PASSWORD_MIN_LENGTH:
        raise ValueError(f'Password must be at least {config.PASSWORD_MIN_LENGTH} characters long.')
    return value


class SignupRequest(CamelModel):
    name: str
    email: str
    password: str
    role: Literal['student', 'instructor'] = ROLE_STUDENT

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Name is required.')
        return normalized

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        return validate_new_password(value)


class SigninRequest(CamelModel):
    email: str
    password: str

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return normalize_email(value)


class ChangePasswordRequest(CamelModel):
    current_password: str
    new_password: str

    @field_validator('new_password')
    @classmethod
    def check_new_password(cls, value: str) -> str:
        return validate_new_password(value)


class ForgotPasswordRequest(CamelModel):
    email: str

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        return normalize_email(value)


class ResetPasswordRequest(CamelModel):
    password: str

    @field_validator('password')
    @classmethod
    def validate_password(cls, value: str) -> str:
        return validate_new_password(value)


def find_user_by_email(db: Session, email: str) -> User | None:
    return db.scalars(select(User).where(User.email == email.lower())).first()


def build_profile(user: User) -> ProfileResponse:
    return ProfileResponse(
        **UserResponse.model_validate(user).model_dump(),
        enrolled_courses=[EnrollmentResponse.model_validate(enrollment) for enrollment in user.enrollments],
        created_courses=[
            CreatedCourseSummary(
                id=course.id,
                title=course.title,
                thumbnail_url=course.thumbnail_url,
                enrolled_students=len(course.enrollments),
            )
            for course in user.created_courses
        ],
        total_enrolled_courses=user.total_enrolled_courses,
    )


@router.post('/signup', status_code=201)
def signup(payload: SignupRequest, response: Response, db: Session = Depends(get_db)):
    if find_user_by_email(db, payload.email) is not None:
        raise HTTPException(status_code=409, detail='User already exists')

    user = User(
        name=payload.name,
        email=payload.email,
        hashed_password=passwords.hash_password(payload.password),
        role=payload.role,
    )
    user.update_last_active()
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        # Lost a race with a concurrent signup for the same email.
        db.rollback()
        raise HTTPException(status_code=409, detail='User already exists') from exc
    db.refresh(user)

    jwt_handler.issue_session(response, user)
    logger.info('Created %s account %s', user.role, user.id)
    return envelope(message='User created successfully', data=UserResponse.model_validate(user))


@router.post('/signin')
def signin(payload: SigninRequest, response: Response, db: Session = Depends(get_db)):
    user = find_user_by_email(db, payload.email)
    if user is None:
        logger.warning('Signin attempt for unknown account')
        if config.UNIFORM_SIGNIN_ERRORS:
            raise HTTPException(status_code=401, detail='Invalid credentials')
        raise HTTPException(status_code=404, detail='User not found')

    if not passwords.verify_password(payload.password, user.hashed_password):
        logger.warning('Rejected signin for account %s', user.id)
        raise HTTPException(status_code=401, detail='Invalid credentials')

    user.update_last_active()
    db.commit()
    db.refresh(user)

    jwt_handler.issue_session(response, user)
    logger.info('Account %s signed in', user.id)
    return envelope(message='User signed in successfully', data=UserResponse.model_validate(user))


@router.post('/signout')
def signout(response: Response):
    jwt_handler.clear_session(response)
    return envelope(message='User signed out successfully')


@router.get('/profile')
def get_profile(current_user: User = Depends(get_current_user)):
    return envelope(data=build_profile(current_user))


@router.patch('/profile')
def update_profile(
    name: Annotated[str | None, Form()] = None,
    email: Annotated[str | None, Form()] = None,
    bio: Annotated[str | None, Form()] = None,
    avatar: Annotated[UploadFile | None, File()] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    media_store=Depends(get_media_store),
):
    if name is not None:
        if not name.strip():
            raise HTTPException(status_code=400, detail='Name cannot be empty.')
        current_user.name = name.strip()

    if email is not None:
        try:
            normalized = normalize_email(email)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        existing = find_user_by_email(db, normalized)
        if existing is not None and existing.id != current_user.id:
            raise HTTPException(status_code=409, detail='Email is already in use')
        current_user.email = normalized

    if bio is not None:
        current_user.bio = bio.strip() or None

    if avatar is not None:
        asset = upload_file(media_store, avatar, IMAGE)
        if current_user.has_custom_avatar:
            try:
                media_store.delete(current_user.avatar_public_id, IMAGE)
            except MediaStoreError:
                logger.error('Could not replace avatar for account %s; removing new upload', current_user.id)
                media_store.delete(asset.public_id, IMAGE)
                raise
        current_user.avatar_url = asset.secure_url
        current_user.avatar_public_id = asset.public_id

    db.commit()
    db.refresh(current_user)
    return envelope(message='User profile updated successfully', data=UserResponse.model_validate(current_user))


@router.patch('/password')
def change_password(
    payload: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not passwords.verify_password(payload.current_password, current_user.hashed_password):
        raise HTTPException(status_code=401, detail='Invalid current password')

    current_user.hashed_password = passwords.hash_password(payload.new_password)
    db.commit()
    return envelope(message='Password changed successfully')


@router.post('/forgot-password')
def forgot_password(payload: ForgotPasswordRequest, db: Session = Depends(get_db)):
    user = find_user_by_email(db, payload.email)
    if user is None:
        raise HTTPException(status_code=404, detail='User not found')

    _raw_token, digest, expires_at = passwords.issue_reset_token()
    user.reset_password_token = digest
    user.reset_password_expire = expires_at
    db.commit()

    # TODO: deliver the raw token by email once a mail provider is configured.
    logger.info('Issued password reset token for account %s', user.id)
    return envelope(message='Password reset token sent to email')


@router.post('/reset-password/{token}')
def reset_password(token: str, payload: ResetPasswordRequest, db: Session = Depends(get_db)):
    user = db.scalars(
        select(User).where(
            User.reset_password_token == passwords.hash_reset_token(token),
            User.reset_password_expire > utcnow(),
        )
    ).first()
    if user is None:
        raise HTTPException(status_code=404, detail='Invalid or expired reset token')

    user.hashed_password = passwords.hash_password(payload.password)
    user.reset_password_token = None
    user.reset_password_expire = None
    db.commit()
    return envelope(message='Password reset successfully')


@router.delete('/account')
def delete_account(
    response: Response,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    media_store=Depends(get_media_store),
):
    if current_user.has_custom_avatar:
        media_store.delete(current_user.avatar_public_id, IMAGE)

    owned_courses = db.scalars(select(Course).where(Course.instructor_id == current_user.id)).all()
    for course in owned_courses:
        if course.thumbnail_public_id:
            media_store.delete(course.thumbnail_public_id, IMAGE)
        for lecture in course.lectures:
            media_store.delete(lecture.video_public_id, VIDEO)

    user_id = current_user.id
    # Owned courses, their lectures, and all enrollments and ratings cascade.
    db.delete(current_user)
    db.commit()

    jwt_handler.clear_session(response)
    logger.info('Deleted account %s with %d owned courses', user_id, len(owned_courses))
    return envelope(message='User account deleted successfully')
