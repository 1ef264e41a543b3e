from fastapi import Depends, HTTPException
from fastapi.security import APIKeyCookie
from sqlalchemy.orm import Session

from coursehub.auth import jwt_handler
from coursehub.core import config
from coursehub.database import get_db
from coursehub.models.course import Course
from coursehub.models.user import User

session_cookie = APIKeyCookie(name=config.AUTH_COOKIE_NAME, auto_error=False)


def get_current_user(
    token: str | None = Depends(session_cookie),
    db: Session = Depends(get_db),
) -> User:
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = jwt_handler.decode_access_token(token)
    except Exception as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    subject = payload.get("sub")
    if not subject or not str(subject).isdigit():
        raise HTTPException(status_code=401, detail="Invalid token subject")

    user = db.get(User, int(subject))
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def require_role(*roles: str):
    def checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(status_code=403, detail="You do not have permission to perform this action")
        return current_user

    return checker


def can_modify(course: Course, caller_id: int) -> bool:
    return course.instructor_id == caller_id


def get_course_or_404(db: Session, course_id: int) -> Course:
    course = db.get(Course, course_id)
    if course is None:
        raise HTTPException(status_code=404, detail="Course not found")
    return course


def require_course_owner(
    course_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Course:
    """Resolve the path's course for its instructor; 404 before 403."""
    course = get_course_or_404(db, course_id)
    if not can_modify(course, current_user.id):
        raise HTTPException(status_code=403, detail="You are not authorized to modify this course")
    return course
