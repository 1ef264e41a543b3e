"""Translate search/listing parameters into a course query and sort order."""

import math
from dataclasses import dataclass, field

from fastapi import HTTPException
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from coursehub.models.course import Course

DEFAULT_SORT = "newest"

SORT_OPTIONS = {
    "newest": Course.created_at.desc(),
    "oldest": Course.created_at.asc(),
    "price-high": Course.price.desc(),
    "price-low": Course.price.asc(),
    "highestRating": Course.average_rating.desc(),
    "lowestRating": Course.average_rating.asc(),
}


@dataclass(frozen=True)
class CourseSearchParams:
    query: str = ""
    categories: tuple[str, ...] = ()
    level: str | None = None
    price_range: str | None = None
    sort_by: str = DEFAULT_SORT


@dataclass(frozen=True)
class CourseQuery:
    filters: tuple = field(default_factory=tuple)
    order_by: object = field(default_factory=lambda: SORT_OPTIONS[DEFAULT_SORT])


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def normalize_categories(values: list[str] | None) -> tuple[str, ...]:
    """Flatten repeated and comma-separated ``categories`` parameters."""
    categories: list[str] = []
    for value in values or []:
        for item in value.split(","):
            item = item.strip()
            if item and item not in categories:
                categories.append(item)
    return tuple(categories)


def parse_price_range(price_range: str | None) -> tuple[float, float] | None:
    if price_range is None or not price_range.strip():
        return None

    parts = price_range.strip().split("-")
    if len(parts) != 2:
        raise HTTPException(status_code=400, detail="Price range must look like 'min-max'.")

    try:
        low, high = (float(part) for part in parts)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Price range bounds must be numbers.") from exc

    if not (math.isfinite(low) and math.isfinite(high)):
        raise HTTPException(status_code=400, detail="Price range bounds must be numbers.")
    if low > high:
        raise HTTPException(status_code=400, detail="Price range minimum cannot exceed the maximum.")
    return low, high


def resolve_sort(sort_by: str | None):
    return SORT_OPTIONS.get(sort_by or DEFAULT_SORT, SORT_OPTIONS[DEFAULT_SORT])


def build_course_query(params: CourseSearchParams, published_only: bool = True) -> CourseQuery:
    filters = []

    if published_only:
        filters.append(Course.is_published.is_(True))

    text = (params.query or "").strip()
    if text:
        pattern = f"%{_escape_like(text)}%"
        filters.append(
            or_(
                Course.title.ilike(pattern, escape="\\"),
                Course.subtitle.ilike(pattern, escape="\\"),
                Course.description.ilike(pattern, escape="\\"),
            )
        )

    if params.categories:
        filters.append(Course.category.in_(params.categories))

    if params.level:
        filters.append(Course.level == params.level)

    price_bounds = parse_price_range(params.price_range)
    if price_bounds is not None:
        low, high = price_bounds
        filters.append(Course.price.between(low, high))

    return CourseQuery(filters=tuple(filters), order_by=resolve_sort(params.sort_by))


def find_courses(db: Session, course_query: CourseQuery, skip: int = 0, limit: int | None = None) -> list[Course]:
    statement = (
        select(Course)
        .where(*course_query.filters)
        .options(selectinload(Course.instructor))
        .order_by(course_query.order_by)
        .offset(skip)
    )
    if limit is not None:
        statement = statement.limit(limit)
    return list(db.scalars(statement))


def count_courses(db: Session, course_query: CourseQuery) -> int:
    statement = select(func.count()).select_from(Course).where(*course_query.filters)
    return db.scalar(statement) or 0


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0
