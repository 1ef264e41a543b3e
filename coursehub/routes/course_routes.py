import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from pydantic import Field
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from coursehub.auth.dependencies import (
    can_modify,
    get_course_or_404,
    get_current_user,
    require_course_owner,
    require_role,
)
from coursehub.core import config
from coursehub.core.responses import envelope
from coursehub.database import get_db
from coursehub.models.course import Course, CourseEnrollment, CourseLevel, CourseRating
from coursehub.models.lecture import Lecture
from coursehub.models.user import ROLE_ADMIN, ROLE_INSTRUCTOR, User
from coursehub.schemas import (
    CamelModel,
    CourseDetail,
    CourseListItem,
    CourseResponse,
    CreatedCourseItem,
    EnrollmentResponse,
    LectureResponse,
    Pagination,
)
from coursehub.services.course_search import (
    CourseSearchParams,
    build_course_query,
    count_courses,
    find_courses,
    normalize_categories,
    page_count,
)
from coursehub.services.media import IMAGE, VIDEO, ensure_upload_type, get_media_store, upload_file

logger = logging.getLogger(__name__)

router = APIRouter(tags=['courses'])


class RatingRequest(CamelModel):
    rating: int = Field(ge=1, le=5)
    review: str | None = None


def search_query_params(
    query: Annotated[str, Query()] = '',
    categories: Annotated[list[str] | None, Query()] = None,
    bracket_categories: Annotated[list[str] | None, Query(alias='categories[]')] = None,
    level: Annotated[CourseLevel | None, Query()] = None,
    price_range: Annotated[str | None, Query(alias='priceRange')] = None,
    sort_by: Annotated[str, Query(alias='sortBy')] = 'newest',
) -> CourseSearchParams:
    return CourseSearchParams(
        query=query,
        categories=normalize_categories((categories or []) + (bracket_categories or [])),
        level=level.value if level else None,
        price_range=price_range,
        sort_by=sort_by,
    )


@router.post('', status_code=201)
def create_course(
    title: Annotated[str, Form()],
    category: Annotated[str, Form()],
    subtitle: Annotated[str | None, Form()] = None,
    description: Annotated[str | None, Form()] = None,
    level: Annotated[CourseLevel, Form()] = CourseLevel.BEGINNER,
    price: Annotated[float, Form(ge=0)] = 0.0,
    thumbnail: Annotated[UploadFile | None, File()] = None,
    current_user: User = Depends(require_role(ROLE_INSTRUCTOR, ROLE_ADMIN)),
    db: Session = Depends(get_db),
    media_store=Depends(get_media_store),
):
    if thumbnail is None:
        raise HTTPException(status_code=400, detail='Course thumbnail is required')
    if not title.strip() or not category.strip():
        raise HTTPException(status_code=400, detail='Title and category are required')

    asset = upload_file(media_store, thumbnail, IMAGE)
    course = Course(
        title=title.strip(),
        subtitle=subtitle,
        description=description,
        category=category.strip(),
        level=level.value,
        price=price,
        thumbnail_url=asset.secure_url,
        thumbnail_public_id=asset.public_id,
        instructor=current_user,
    )
    db.add(course)
    db.commit()
    db.refresh(course)

    logger.info('Instructor %s created course %s', current_user.id, course.id)
    return envelope(message='Course created successfully', data=CourseResponse.model_validate(course))


@router.get('/search')
def search_courses(
    params: CourseSearchParams = Depends(search_query_params),
    db: Session = Depends(get_db),
):
    courses = find_courses(db, build_course_query(params))
    return envelope(
        data=[CourseListItem.model_validate(course) for course in courses],
        count=len(courses),
    )


@router.get('/published')
def list_published_courses(
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=config.MAX_PAGE_SIZE)] = config.DEFAULT_PAGE_SIZE,
    params: CourseSearchParams = Depends(search_query_params),
    db: Session = Depends(get_db),
):
    course_query = build_course_query(params)
    total = count_courses(db, course_query)
    courses = find_courses(db, course_query, skip=(page - 1) * limit, limit=limit)
    return envelope(
        data=[CourseListItem.model_validate(course) for course in courses],
        pagination=Pagination(page=page, limit=limit, total=total, pages=page_count(total, limit)),
    )


@router.get('/my-courses')
def list_my_courses(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    courses = db.scalars(
        select(Course)
        .where(Course.instructor_id == current_user.id)
        .options(selectinload(Course.enrolled_students))
        .order_by(Course.created_at.desc())
    ).all()
    return envelope(
        data=[CreatedCourseItem.model_validate(course) for course in courses],
        count=len(courses),
    )


@router.patch('/{course_id}')
def update_course(
    title: Annotated[str | None, Form()] = None,
    subtitle: Annotated[str | None, Form()] = None,
    description: Annotated[str | None, Form()] = None,
    category: Annotated[str | None, Form()] = None,
    level: Annotated[CourseLevel | None, Form()] = None,
    price: Annotated[float | None, Form(ge=0)] = None,
    is_published: Annotated[bool | None, Form(alias='isPublished')] = None,
    thumbnail: Annotated[UploadFile | None, File()] = None,
    course: Course = Depends(require_course_owner),
    db: Session = Depends(get_db),
    media_store=Depends(get_media_store),
):
    changes = {
        'title': title.strip() if title is not None else None,
        'subtitle': subtitle,
        'description': description,
        'category': category.strip() if category is not None else None,
        'level': level.value if level is not None else None,
        'price': price,
        'is_published': is_published,
    }
    if changes['title'] == '' or changes['category'] == '':
        raise HTTPException(status_code=400, detail='Title and category cannot be empty')

    if thumbnail is not None:
        ensure_upload_type(thumbnail, IMAGE)
        if course.thumbnail_public_id:
            media_store.delete(course.thumbnail_public_id, IMAGE)
        asset = upload_file(media_store, thumbnail, IMAGE)
        changes['thumbnail_url'] = asset.secure_url
        changes['thumbnail_public_id'] = asset.public_id

    for field_name, value in changes.items():
        if value is not None:
            setattr(course, field_name, value)

    db.commit()
    db.refresh(course)

    logger.info('Course %s updated', course.id)
    return envelope(message='Course updated successfully', data=CourseResponse.model_validate(course))


@router.get('/{course_id}')
def get_course_details(course_id: int, db: Session = Depends(get_db)):
    course = db.scalars(
        select(Course)
        .where(Course.id == course_id)
        .options(selectinload(Course.instructor), selectinload(Course.lectures))
    ).first()
    if course is None:
        raise HTTPException(status_code=404, detail='Course not found')

    detail = CourseDetail.model_validate(course)
    # Full videos are served through the access-checked lecture listing.
    for lecture in detail.lectures:
        if not lecture.is_preview:
            lecture.video_url = None
    return envelope(data=detail)


@router.post('/{course_id}/lectures', status_code=201)
def add_lecture(
    title: Annotated[str | None, Form()] = None,
    description: Annotated[str | None, Form()] = None,
    is_preview: Annotated[bool, Form(alias='isPreview')] = False,
    video: Annotated[UploadFile | None, File()] = None,
    course: Course = Depends(require_course_owner),
    db: Session = Depends(get_db),
    media_store=Depends(get_media_store),
):
    if video is None:
        raise HTTPException(status_code=400, detail='Video file is required')
    if not title or not title.strip():
        raise HTTPException(status_code=400, detail='Lecture title is required')

    asset = upload_file(media_store, video, VIDEO)
    try:
        # Claim the next order and insert in one transaction.
        next_order = db.execute(
            update(Course)
            .where(Course.id == course.id)
            .values(lecture_count=Course.lecture_count + 1)
            .returning(Course.lecture_count)
        ).scalar_one()
        lecture = Lecture(
            course=course,
            title=title.strip(),
            description=description,
            is_preview=is_preview,
            order=next_order,
            video_url=asset.secure_url,
            video_public_id=asset.public_id,
            duration=asset.duration or 0.0,
        )
        db.add(lecture)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.error('Could not save lecture for course %s; removing uploaded video', course.id)
        media_store.delete(asset.public_id, VIDEO)
        raise
    db.refresh(lecture)

    logger.info('Added lecture %s to course %s at position %s', lecture.id, course.id, lecture.order)
    return envelope(message='Lecture added successfully', data=LectureResponse.model_validate(lecture))


@router.get('/{course_id}/lectures')
def list_lectures(
    course_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    course = get_course_or_404(db, course_id)
    is_instructor = can_modify(course, current_user.id)
    is_enrolled = course.is_enrolled(current_user.id)

    lectures = course.lectures
    if not is_enrolled and not is_instructor:
        lectures = [lecture for lecture in lectures if lecture.is_preview]

    return envelope(
        data={
            'lectures': [LectureResponse.model_validate(lecture) for lecture in lectures],
            'isEnrolled': is_enrolled,
            'isInstructor': is_instructor,
        }
    )


@router.post('/{course_id}/enroll', status_code=201)
def enroll_in_course(
    course_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    course = get_course_or_404(db, course_id)
    if not course.is_published:
        raise HTTPException(status_code=400, detail='Course is not open for enrollment')
    if can_modify(course, current_user.id):
        raise HTTPException(status_code=400, detail='Instructors cannot enroll in their own course')
    if course.is_enrolled(current_user.id):
        raise HTTPException(status_code=409, detail='Already enrolled in this course')

    enrollment = CourseEnrollment(user=current_user, course=course)
    db.add(enrollment)
    db.commit()
    db.refresh(enrollment)

    logger.info('Account %s enrolled in course %s', current_user.id, course.id)
    return envelope(message='Enrolled successfully', data=EnrollmentResponse.model_validate(enrollment))


@router.post('/{course_id}/ratings')
def rate_course(
    course_id: int,
    payload: RatingRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    course = get_course_or_404(db, course_id)
    if not course.is_enrolled(current_user.id):
        raise HTTPException(status_code=403, detail='Only enrolled students can rate this course')

    rating = db.scalars(
        select(CourseRating).where(
            CourseRating.course_id == course.id,
            CourseRating.user_id == current_user.id,
        )
    ).first()
    if rating is None:
        rating = CourseRating(user=current_user, course=course, rating=payload.rating, review=payload.review)
        db.add(rating)
    else:
        rating.rating = payload.rating
        rating.review = payload.review
    db.commit()
    db.refresh(course)

    return envelope(
        message='Rating saved',
        data={'courseId': course.id, 'rating': payload.rating, 'averageRating': course.average_rating},
    )
