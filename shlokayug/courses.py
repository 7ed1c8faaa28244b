# shlokayug/courses.py
import logging

from shlokayug.database import (
    COURSES, ENROLLMENTS, PAYMENTS, count_documents, create_document, find_documents,
    get_document, new_id, save_document
)
from shlokayug.errors import Conflict, Forbidden, NotFound, ValidationFailed
from shlokayug.users import full_name
from shlokayug.utils import now_iso, paginate, sort_newest

logger = logging.getLogger(__name__)

MIN_PUBLISH_DESCRIPTION = 50
SUBSCRIPTION_PLANS = ('monthly', 'yearly')


def normalize_pricing(pricing):
    """Pricing model to the stored shape with every tier present"""
    def money(value):
        if value is None:
            return {'amount': 0, 'currency': 'INR'}
        return {'amount': value.amount, 'currency': value.currency}

    subscription = pricing.subscription
    return {
        'type': pricing.type,
        'one_time': money(pricing.one_time),
        'subscription': {
            'monthly': money(subscription.monthly if subscription else None),
            'yearly': money(subscription.yearly if subscription else None)
        }
    }


def price_for(course, plan):
    """(amount, currency) the student pays for a plan"""
    pricing = course.get('pricing', {})
    if plan == 'one_time':
        tier = pricing.get('one_time', {})
    else:
        tier = pricing.get('subscription', {}).get(plan, {})
    return tier.get('amount') or 0, tier.get('currency', 'INR')


def is_free(course):
    return course.get('pricing', {}).get('type', 'free') == 'free'


def is_owner(course, user):
    return user is not None and (user['role'] == 'admin' or course['instructor_id'] == user['id'])


def ensure_owner(course, user):
    if not is_owner(course, user):
        raise Forbidden('Only the course instructor can do this', code='NOT_COURSE_OWNER')


def ensure_editable(course):
    if course['status'] == 'archived':
        raise Conflict('Archived courses cannot be changed', code='COURSE_ARCHIVED')


def ensure_unlocked(course, user):
    """Published courses are read-only for their guru until unpublished"""
    ensure_editable(course)
    if course['status'] == 'published' and user['role'] != 'admin':
        raise Forbidden('Cannot change a published course; unpublish it first',
                        code='COURSE_PUBLISHED')


def get_course_document(course_id):
    course = get_document(COURSES, course_id)
    if not course:
        raise NotFound('Course not found', code='COURSE_NOT_FOUND')
    return course


def is_published(course):
    return course.get('status') == 'published' and course.get('is_active', False)


def count_active_enrollments(course_id):
    return count_documents(ENROLLMENTS, [
        ('course_id', '==', course_id), ('status', '==', 'active')
    ])


def has_enrollment(course_id, user_id):
    return bool(find_documents(ENROLLMENTS, [
        ('course_id', '==', course_id), ('user_id', '==', user_id)
    ], limit=1))


# ── Structure ──

def iter_lectures(course):
    for unit in course['structure']['units']:
        for lesson in unit['lessons']:
            for lecture in lesson['lectures']:
                yield unit, lesson, lecture


def calculate_totals(course):
    """Recompute unit/lesson/lecture counters and total duration"""
    structure = course['structure']
    units = structure['units']
    structure['total_units'] = len(units)
    structure['total_lessons'] = sum(len(unit['lessons']) for unit in units)
    structure['total_lectures'] = 0
    structure['total_duration'] = 0
    for _, _, lecture in iter_lectures(course):
        structure['total_lectures'] += 1
        structure['total_duration'] += lecture.get('duration') or 0
    return structure


def _insert_ordered(items, item):
    if item.get('order') is None:
        item['order'] = len(items) + 1
    items.append(item)
    items.sort(key=lambda entry: entry['order'])


def _find(items, key, value, label):
    for item in items:
        if item[key] == value:
            return item
    raise NotFound(f'{label} not found', code=f'{label.upper()}_NOT_FOUND')


def find_lecture(course, lecture_id):
    for unit, lesson, lecture in iter_lectures(course):
        if lecture['lecture_id'] == lecture_id:
            return unit, lesson, lecture
    raise NotFound('Lecture not found', code='LECTURE_NOT_FOUND')


def publishing_readiness(course):
    """Every reason the course cannot be published yet; empty when ready"""
    problems = []
    if not (course.get('title') or '').strip():
        problems.append('Title is required')
    if len((course.get('description') or '').strip()) < MIN_PUBLISH_DESCRIPTION:
        problems.append(f'Description must be at least {MIN_PUBLISH_DESCRIPTION} characters')

    units = course.get('structure', {}).get('units', [])
    lessons = [lesson for unit in units for lesson in unit.get('lessons', [])]
    lectures = [lecture for lesson in lessons for lecture in lesson.get('lectures', [])]
    if not units:
        problems.append('At least one unit is required')
    if not lessons:
        problems.append('At least one lesson is required')
    if not lectures:
        problems.append('At least one lecture is required')

    pricing = course.get('pricing') or {}
    pricing_type = pricing.get('type')
    if pricing_type == 'one_time':
        if (pricing.get('one_time', {}).get('amount') or 0) <= 0:
            problems.append('A one-time price greater than zero is required')
    elif pricing_type == 'subscription':
        tiers = pricing.get('subscription', {})
        if not any((tiers.get(plan, {}).get('amount') or 0) > 0 for plan in SUBSCRIPTION_PLANS):
            problems.append('A monthly or yearly subscription price is required')
    elif pricing_type != 'free':
        problems.append('Pricing information is required')
    return problems


# ── Views ──

def course_summary(course):
    return {
        'id': course['id'],
        'title': course['title'],
        'short_description': course.get('short_description'),
        'category': course['category'],
        'level': course['level'],
        'language': course.get('language'),
        'tags': course.get('tags', []),
        'instructor': dict(course['instructor'], id=course['instructor_id']),
        'pricing': course['pricing'],
        'status': course['status'],
        'featured': course.get('featured', False),
        'totals': {
            key: course['structure'][key]
            for key in ('total_units', 'total_lessons', 'total_lectures', 'total_duration')
        },
        'stats': course.get('stats', {}),
        'published_at': course.get('published_at'),
        'created_at': course.get('created_at')
    }


def course_detail(course, full_access):
    """Whole course; lecture content is withheld unless enrolled or a free preview"""
    data = dict(course)
    if full_access:
        return data
    units = []
    for unit in course['structure']['units']:
        lessons = []
        for lesson in unit['lessons']:
            lectures = []
            for lecture in lesson['lectures']:
                lecture = dict(lecture)
                if not lecture.get('is_free_preview'):
                    lecture['content_url'] = None
                    lecture['resources'] = []
                lectures.append(lecture)
            lessons.append(dict(lesson, lectures=lectures))
        units.append(dict(unit, lessons=lessons))
    data['structure'] = dict(course['structure'], units=units)
    return data


# ── Operations ──

def create_course(user, data):
    course = {
        'title': data.title,
        'description': data.description,
        'short_description': data.short_description,
        'category': data.category,
        'level': data.level,
        'language': data.language,
        'tags': [tag.lower() for tag in data.tags],
        'instructor_id': user['id'],
        'instructor': {
            'name': full_name(user),
            'bio': user.get('profile', {}).get('bio', ''),
            'avatar': user.get('profile', {}).get('avatar')
        },
        'pricing': normalize_pricing(data.pricing),
        'structure': {
            'units': [],
            'total_units': 0,
            'total_lessons': 0,
            'total_lectures': 0,
            'total_duration': 0
        },
        'status': 'draft',
        'is_active': False,
        'featured': False,
        'published_at': None,
        'stats': {
            'enrollments': 0,
            'views': 0,
            'ratings_average': None,
            'ratings_count': 0
        }
    }
    course = create_document(COURSES, course)
    logger.info(f"✅ Course created: {course['title']} ({course['id']}) by {user['username']}")
    return course


def get_course(course_id, user=None):
    course = get_course_document(course_id)
    owner = is_owner(course, user)
    if not is_published(course) and not owner:
        raise NotFound('Course not found', code='COURSE_NOT_FOUND')
    full_access = owner or (user is not None and has_enrollment(course_id, user['id']))
    return course_detail(course, full_access)


def list_courses(filters, page, limit):
    courses = [
        course for course in find_documents(COURSES, [('status', '==', 'published')])
        if course.get('is_active')
    ]
    if filters.get('category'):
        courses = [c for c in courses if c['category'] == filters['category']]
    if filters.get('level'):
        courses = [c for c in courses if c['level'] == filters['level']]
    if filters.get('featured') in ('true', '1', True):
        courses = [c for c in courses if c.get('featured')]
    if filters.get('instructor'):
        courses = [c for c in courses if c['instructor_id'] == filters['instructor']]
    if filters.get('q'):
        needle = filters['q'].lower()
        courses = [
            c for c in courses
            if needle in c['title'].lower()
            or needle in (c.get('description') or '').lower()
            or any(needle in tag for tag in c.get('tags', []))
        ]

    sort = filters.get('sort', 'newest')
    if sort == 'popular':
        courses.sort(key=lambda c: c['stats'].get('enrollments', 0), reverse=True)
    elif sort == 'rating':
        courses.sort(key=lambda c: c['stats'].get('ratings_average') or 0, reverse=True)
    elif sort in ('price_low', 'price_high'):
        courses.sort(key=lambda c: price_for(c, 'one_time')[0], reverse=(sort == 'price_high'))
    else:
        courses = sort_newest(courses, 'published_at')

    result = paginate(courses, page, limit)
    result['items'] = [course_summary(c) for c in result['items']]
    return result


def update_course(course_id, user, data):
    course = get_course_document(course_id)
    ensure_owner(course, user)
    ensure_unlocked(course, user)

    changes = data.model_dump(exclude_none=True, exclude={'pricing', 'featured'})
    if 'tags' in changes:
        changes['tags'] = [tag.lower() for tag in changes['tags']]
    course.update(changes)
    if data.pricing is not None:
        course['pricing'] = normalize_pricing(data.pricing)
    if data.featured is not None:
        if user['role'] != 'admin':
            raise Forbidden('Only admins can feature courses', code='INSUFFICIENT_ROLE')
        course['featured'] = data.featured
    return save_document(COURSES, course)


def delete_course(course_id, user):
    """Archive a course that nobody is actively enrolled in"""
    course = get_course_document(course_id)
    ensure_owner(course, user)
    if count_active_enrollments(course_id):
        raise Conflict('Cannot delete a course with active enrollments',
                       code='HAS_ACTIVE_ENROLLMENTS')
    course['status'] = 'archived'
    course['is_active'] = False
    save_document(COURSES, course)
    logger.info(f"Course archived: {course_id}")


def add_unit(course_id, user, data):
    course = get_course_document(course_id)
    ensure_owner(course, user)
    ensure_unlocked(course, user)
    unit = {
        'unit_id': new_id(),
        'title': data.title,
        'description': data.description,
        'order': data.order,
        'lessons': []
    }
    _insert_ordered(course['structure']['units'], unit)
    calculate_totals(course)
    save_document(COURSES, course)
    return unit


def add_lesson(course_id, unit_id, user, data):
    course = get_course_document(course_id)
    ensure_owner(course, user)
    ensure_unlocked(course, user)
    unit = _find(course['structure']['units'], 'unit_id', unit_id, 'Unit')
    lesson = {
        'lesson_id': new_id(),
        'title': data.title,
        'description': data.description,
        'order': data.order,
        'lectures': []
    }
    _insert_ordered(unit['lessons'], lesson)
    calculate_totals(course)
    save_document(COURSES, course)
    return lesson


def add_lecture(course_id, unit_id, lesson_id, user, data):
    course = get_course_document(course_id)
    ensure_owner(course, user)
    ensure_unlocked(course, user)
    unit = _find(course['structure']['units'], 'unit_id', unit_id, 'Unit')
    lesson = _find(unit['lessons'], 'lesson_id', lesson_id, 'Lesson')
    lecture = data.model_dump()
    lecture['lecture_id'] = new_id()
    lecture['video_id'] = None
    _insert_ordered(lesson['lectures'], lecture)
    calculate_totals(course)
    save_document(COURSES, course)
    return lecture


def update_lecture(course_id, lecture_id, user, data):
    course = get_course_document(course_id)
    ensure_owner(course, user)
    ensure_unlocked(course, user)
    _, lesson, lecture = find_lecture(course, lecture_id)
    lecture.update(data.model_dump(exclude_none=True))
    lesson['lectures'].sort(key=lambda entry: entry['order'])
    calculate_totals(course)
    save_document(COURSES, course)
    return lecture


def remove_lecture(course_id, lecture_id, user):
    course = get_course_document(course_id)
    ensure_owner(course, user)
    ensure_unlocked(course, user)
    _, lesson, lecture = find_lecture(course, lecture_id)
    lesson['lectures'].remove(lecture)
    for position, entry in enumerate(lesson['lectures'], start=1):
        entry['order'] = position
    calculate_totals(course)
    save_document(COURSES, course)


def attach_media(course_id, lecture_id, video):
    """Point a lecture at an uploaded video"""
    course = get_course_document(course_id)
    _, _, lecture = find_lecture(course, lecture_id)
    lecture['video_id'] = video['id']
    lecture['content_url'] = video['presigned_url']
    lecture['duration'] = round(video['duration_seconds'] / 60, 1)
    calculate_totals(course)
    save_document(COURSES, course)


def _linked_lecture(course_id, lecture_id, video_id):
    """(course, lecture) when the lecture still plays this video, else (None, None)"""
    course = get_document(COURSES, course_id)
    if not course:
        return None, None
    try:
        _, _, lecture = find_lecture(course, lecture_id)
    except NotFound:
        return None, None
    if lecture.get('video_id') != video_id:
        return None, None
    return course, lecture


def refresh_media_url(course_id, lecture_id, video):
    course, lecture = _linked_lecture(course_id, lecture_id, video['id'])
    if not lecture:
        return False
    lecture['content_url'] = video['presigned_url']
    save_document(COURSES, course)
    return True


def detach_media(course_id, lecture_id, video_id):
    """Clear a lecture's media once its video is gone"""
    course, lecture = _linked_lecture(course_id, lecture_id, video_id)
    if not lecture:
        return False
    lecture['video_id'] = None
    lecture['content_url'] = None
    save_document(COURSES, course)
    logger.info(f"Lecture {lecture_id} detached from removed video {video_id}")
    return True


def publish_course(course_id, user):
    course = get_course_document(course_id)
    ensure_owner(course, user)
    ensure_editable(course)
    problems = publishing_readiness(course)
    if problems:
        raise ValidationFailed('Course is not ready for publishing',
                               code='COURSE_NOT_READY', errors=problems)
    calculate_totals(course)
    course['status'] = 'published'
    course['is_active'] = True
    course['published_at'] = course.get('published_at') or now_iso()
    save_document(COURSES, course)
    logger.info(f"✅ Course published: {course['title']} ({course_id})")
    return course


def unpublish_course(course_id, user):
    course = get_course_document(course_id)
    ensure_owner(course, user)
    if course['status'] != 'published':
        raise Conflict('Course is not published', code='COURSE_NOT_PUBLISHED')
    if count_active_enrollments(course_id):
        raise Conflict('Cannot unpublish a course with active enrollments',
                       code='HAS_ACTIVE_ENROLLMENTS')
    course['status'] = 'draft'
    course['is_active'] = False
    save_document(COURSES, course)
    logger.info(f"Course unpublished: {course_id}")
    return course


def instructor_courses(user):
    courses = find_documents(COURSES, [('instructor_id', '==', user['id'])])
    return [course_summary(c) for c in sort_newest(courses)]


def increment_enrollments(course_id, delta=1):
    course = get_document(COURSES, course_id)
    if not course:
        return
    stats = course.setdefault('stats', {})
    stats['enrollments'] = max(0, stats.get('enrollments', 0) + delta)
    save_document(COURSES, course)


def course_analytics(course_id, user):
    course = get_course_document(course_id)
    ensure_owner(course, user)
    enrollments = find_documents(ENROLLMENTS, [('course_id', '==', course_id)])
    payments = find_documents(PAYMENTS, [
        ('course_id', '==', course_id), ('status', '==', 'completed')
    ])
    completion = [e['progress']['completion_percentage'] for e in enrollments]
    return {
        'course': course_summary(course),
        'enrollments': {
            'total': len(enrollments),
            'active': sum(1 for e in enrollments if e['status'] == 'active'),
            'completed': sum(1 for e in enrollments if e['status'] == 'completed'),
            'cancelled': sum(1 for e in enrollments if e['status'] == 'cancelled')
        },
        'average_completion': round(sum(completion) / len(completion), 1) if completion else 0,
        'revenue': round(sum(p['amount'] for p in payments), 2)
    }
