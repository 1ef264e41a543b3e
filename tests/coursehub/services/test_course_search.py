import pytest
from fastapi import HTTPException

from coursehub.models.course import CourseRating
from coursehub.services.course_search import (
    SORT_OPTIONS,
    CourseSearchParams,
    build_course_query,
    count_courses,
    find_courses,
    normalize_categories,
    page_count,
    parse_price_range,
    resolve_sort,
)

from conftest import enroll, make_course, make_user


def _compile(clause) -> str:
    return str(clause.compile(compile_kwargs={'literal_binds': True}))


def _titles(courses) -> list[str]:
    return [course.title for course in courses]


@pytest.fixture
def catalog(db_session):
    instructor = make_user(db_session, 'instructor@example.com', role='instructor', name='Ada')
    courses = {
        'python': make_course(db_session, instructor, title='Python Basics', category='programming', price=20.0),
        'django': make_course(
            db_session,
            instructor,
            title='Web Apps',
            subtitle='Build sites with Django',
            category='programming',
            level='intermediate',
            price=80.0,
        ),
        'watercolor': make_course(
            db_session,
            instructor,
            title='Watercolor',
            description='Painting with PYTHON-green pigments',
            category='art',
            price=35.0,
        ),
        'draft': make_course(db_session, instructor, title='Python Advanced', is_published=False),
    }
    return courses


def test_build_course_query_is_idempotent() -> None:
    params = CourseSearchParams(
        query='python',
        categories=('programming', 'data'),
        level='beginner',
        price_range='10-50',
        sort_by='price-low',
    )

    first = build_course_query(params)
    second = build_course_query(params)

    assert [_compile(clause) for clause in first.filters] == [_compile(clause) for clause in second.filters]
    assert _compile(first.order_by) == _compile(second.order_by)


def test_default_query_only_restricts_to_published() -> None:
    course_query = build_course_query(CourseSearchParams())

    assert len(course_query.filters) == 1
    assert 'is_published' in _compile(course_query.filters[0])
    assert course_query.order_by is SORT_OPTIONS['newest']


def test_unrestricted_query_has_no_filters() -> None:
    assert build_course_query(CourseSearchParams(), published_only=False).filters == ()


@pytest.mark.parametrize('sort_by', ['newest', 'oldest', 'price-high', 'price-low', 'highestRating', 'lowestRating'])
def test_resolve_sort_maps_known_keys(sort_by) -> None:
    assert resolve_sort(sort_by) is SORT_OPTIONS[sort_by]


@pytest.mark.parametrize('sort_by', ['', None, 'popular'])
def test_resolve_sort_falls_back_to_newest(sort_by) -> None:
    assert resolve_sort(sort_by) is SORT_OPTIONS['newest']


def test_parse_price_range_accepts_inclusive_bounds() -> None:
    assert parse_price_range('10-50') == (10.0, 50.0)
    assert parse_price_range(' 0-0 ') == (0.0, 0.0)
    assert parse_price_range(None) is None
    assert parse_price_range('') is None


@pytest.mark.parametrize('price_range', ['50', '10-20-30', 'abc-10', '10-', '-10', '50-10', 'nan-10', '10-inf'])
def test_parse_price_range_rejects_malformed_ranges(price_range) -> None:
    with pytest.raises(HTTPException) as exception_info:
        parse_price_range(price_range)

    assert exception_info.value.status_code == 400


def test_normalize_categories_flattens_and_deduplicates() -> None:
    assert normalize_categories(['art, music', 'art', '', 'data']) == ('art', 'music', 'data')
    assert normalize_categories(None) == ()


def test_text_match_is_case_insensitive_across_fields(db_session, catalog) -> None:
    courses = find_courses(db_session, build_course_query(CourseSearchParams(query='PYTHON')))

    assert set(_titles(courses)) == {'Python Basics', 'Watercolor'}


def test_text_match_searches_subtitle(db_session, catalog) -> None:
    courses = find_courses(db_session, build_course_query(CourseSearchParams(query='django')))

    assert _titles(courses) == ['Web Apps']


def test_text_match_treats_wildcards_literally(db_session, catalog) -> None:
    courses = find_courses(db_session, build_course_query(CourseSearchParams(query='%')))

    assert courses == []


def test_filters_combine_category_level_and_price(db_session, catalog) -> None:
    params = CourseSearchParams(categories=('programming',), level='intermediate', price_range='50-100')

    courses = find_courses(db_session, build_course_query(params))

    assert _titles(courses) == ['Web Apps']


def test_price_range_is_inclusive(db_session, catalog) -> None:
    params = CourseSearchParams(price_range='20-35', sort_by='price-low')

    courses = find_courses(db_session, build_course_query(params))

    assert _titles(courses) == ['Python Basics', 'Watercolor']


def test_price_sorts(db_session, catalog) -> None:
    high = find_courses(db_session, build_course_query(CourseSearchParams(sort_by='price-high')))
    low = find_courses(db_session, build_course_query(CourseSearchParams(sort_by='price-low')))

    assert _titles(high) == ['Web Apps', 'Watercolor', 'Python Basics']
    assert _titles(low) == list(reversed(_titles(high)))


def test_rating_sorts_use_average_rating(db_session, catalog) -> None:
    students = [make_user(db_session, f'student{index}@example.com') for index in range(2)]
    for student in students:
        enroll(db_session, student, catalog['watercolor'])
        enroll(db_session, student, catalog['python'])
    ratings = [
        (students[0], catalog['watercolor'], 5),
        (students[1], catalog['watercolor'], 4),
        (students[0], catalog['python'], 2),
    ]
    for student, course, value in ratings:
        db_session.add(CourseRating(user=student, course=course, rating=value))
    db_session.commit()

    highest = find_courses(db_session, build_course_query(CourseSearchParams(sort_by='highestRating')))
    lowest = find_courses(db_session, build_course_query(CourseSearchParams(sort_by='lowestRating')))

    assert _titles(highest) == ['Watercolor', 'Python Basics', 'Web Apps']
    assert highest[0].average_rating == pytest.approx(4.5)
    assert _titles(lowest) == ['Web Apps', 'Python Basics', 'Watercolor']


def test_count_courses_matches_filters(db_session, catalog) -> None:
    assert count_courses(db_session, build_course_query(CourseSearchParams())) == 3
    assert count_courses(db_session, build_course_query(CourseSearchParams(), published_only=False)) == 4


@pytest.mark.parametrize(('total', 'limit', 'expected'), [(0, 10, 0), (10, 10, 1), (11, 10, 2), (23, 5, 5)])
def test_page_count_rounds_up(total, limit, expected) -> None:
    assert page_count(total, limit) == expected
