# shlokayug/enrollments.py
import logging
from collections import Counter

from shlokayug import certificates, payments
from shlokayug.courses import (
    course_summary, find_lecture, get_course_document, increment_enrollments,
    is_free, is_owner, is_published, iter_lectures
)
from shlokayug.database import (
    COURSES, ENROLLMENTS, PAYMENTS, USERS, create_document, find_documents, get_document,
    new_id, save_document
)
from shlokayug.errors import Conflict, Forbidden, NotFound, ValidationFailed
from shlokayug.utils import (
    add_months, is_past, now_iso, paginate, parse_iso, sort_newest, to_iso, utcnow
)

logger = logging.getLogger(__name__)

ENROLLMENT_TYPES = {
    'free': 'free',
    'one_time': 'one_time_purchase',
    'monthly': 'monthly_subscription',
    'yearly': 'yearly_subscription'
}
ACCESS_STATUSES = ('active', 'completed')
SUBSCRIPTION_PLANS = ('monthly', 'yearly')
SUBSCRIPTION_TYPES = tuple(ENROLLMENT_TYPES[plan] for plan in SUBSCRIPTION_PLANS)


def enrollment_id_for(user_id, course_id):
    """One enrollment document per user and course"""
    return f"{user_id}_{course_id}"


def find_enrollment(user_id, course_id):
    return get_document(ENROLLMENTS, enrollment_id_for(user_id, course_id))


def empty_progress():
    return {
        'lectures_completed': [],
        'completion_percentage': 0,
        'last_accessed_lecture': None,
        'is_completed': False,
        'completed_at': None,
        'bookmarks': []
    }


def subscription_expiry(plan, start):
    if plan == 'monthly':
        return to_iso(add_months(start, 1))
    if plan == 'yearly':
        return to_iso(add_months(start, 12))
    return None


def new_subscription(plan, renewal_count=0):
    if plan not in SUBSCRIPTION_PLANS:
        return None
    return {
        'plan': plan,
        'cancel_at_period_end': False,
        'cancellation': None,
        'renewal_count': renewal_count
    }


def _grant(user_id, course, plan, payment=None):
    """Create the enrollment, or reactivate a cancelled or expired one"""
    now = utcnow()
    payment_info = None
    if payment:
        payment_info = {
            'transaction_id': payment['transaction_id'],
            'order_id': payment['order_id'],
            'payment_id': payment['payment_id'],
            'amount': payment['amount'],
            'currency': payment['currency']
        }
    access = {'granted_at': to_iso(now), 'expires_at': subscription_expiry(plan, now)}

    enrollment = find_enrollment(user_id, course['id'])
    if enrollment and enrollment['status'] in ACCESS_STATUSES:
        # another payment on a live enrollment extends the paid period
        current_expiry = parse_iso(enrollment['access'].get('expires_at'))
        if current_expiry and plan in SUBSCRIPTION_PLANS:
            enrollment['access']['expires_at'] = subscription_expiry(plan, max(now, current_expiry))
            renewals = (enrollment.get('subscription') or {}).get('renewal_count', 0) + 1
            enrollment['subscription'] = new_subscription(plan, renewals)
        if payment_info:
            enrollment['payment'] = payment_info
        enrollment = save_document(ENROLLMENTS, enrollment)
        logger.info(f"Enrollment extended: {enrollment['id']} plan={plan}")
        return enrollment

    if enrollment:
        renewals = (enrollment.get('subscription') or {}).get('renewal_count', -1) + 1
        enrollment.update({
            'enrollment_type': ENROLLMENT_TYPES[plan],
            'payment': payment_info,
            'status': 'completed' if enrollment['progress']['is_completed'] else 'active',
            'access': access,
            'subscription': new_subscription(plan, renewals),
            'cancelled_at': None
        })
        enrollment = save_document(ENROLLMENTS, enrollment)
    else:
        enrollment = create_document(ENROLLMENTS, {
            'user_id': user_id,
            'course_id': course['id'],
            'guru_id': course['instructor_id'],
            'enrollment_type': ENROLLMENT_TYPES[plan],
            'payment': payment_info,
            'status': 'active',
            'access': access,
            'subscription': new_subscription(plan),
            'progress': empty_progress(),
            'rating': None,
            'cancelled_at': None
        }, doc_id=enrollment_id_for(user_id, course['id']))
    increment_enrollments(course['id'])
    logger.info(f"✅ Enrollment granted: user={user_id} course={course['id']} plan={plan}")
    return enrollment


def _ensure_enrollable(user, course_id):
    course = get_course_document(course_id)
    if not is_published(course):
        raise ValidationFailed('Course is not available for enrollment',
                               code='COURSE_NOT_AVAILABLE')
    existing = find_enrollment(user['id'], course_id)
    if existing and existing['status'] in ACCESS_STATUSES:
        raise Conflict('Already enrolled in this course', code='ALREADY_ENROLLED')
    return course


def enroll_free(user, course_id):
    course = _ensure_enrollable(user, course_id)
    if not is_free(course):
        raise ValidationFailed('This course requires payment', code='PAYMENT_REQUIRED')
    return _grant(user['id'], course, 'free')


def initiate_enrollment(user, course_id, plan):
    """Start a paid enrollment by creating a gateway order"""
    course = _ensure_enrollable(user, course_id)
    pricing_type = course['pricing']['type']
    if pricing_type == 'free':
        raise ValidationFailed('This course is free; enroll directly', code='COURSE_IS_FREE')
    if (pricing_type == 'one_time') != (plan == 'one_time'):
        raise ValidationFailed(f'Plan {plan} is not offered for this course', code='INVALID_PLAN')
    return payments.start_payment(user, course, plan)


def grant_for_payment(payment):
    """Enrollment for a completed payment; repeated calls return the same enrollment"""
    enrollment = get_document(ENROLLMENTS, payment.get('enrollment_id'))
    if enrollment:
        return enrollment
    course = get_course_document(payment['course_id'])
    enrollment = _grant(payment['user_id'], course, payment['plan'], payment)
    payment['enrollment_id'] = enrollment['id']
    save_document(PAYMENTS, payment)
    return enrollment


def confirm_enrollment(user, order_id, payment_id, signature):
    payment = payments.verify_and_complete(user, order_id, payment_id, signature)
    enrollment = grant_for_payment(payment)
    return {'enrollment': enrollment, 'payment': payments.payment_view(payment)}


def enrollment_view(enrollment, with_course=True):
    data = dict(enrollment)
    if with_course:
        course = get_document(COURSES, enrollment['course_id'])
        data['course'] = course_summary(course) if course else None
    return data


def my_enrollments(user, status, page, limit):
    enrollments = find_documents(ENROLLMENTS, [('user_id', '==', user['id'])])
    if status:
        enrollments = [e for e in enrollments if e['status'] == status]
    result = paginate(sort_newest(enrollments), page, limit)
    result['items'] = [enrollment_view(e) for e in result['items']]
    return result


def get_enrollment(user, enrollment_id):
    return enrollment_view(_own_enrollment(user, enrollment_id))


def _expire_if_lapsed(enrollment):
    expires_at = enrollment['access'].get('expires_at')
    if enrollment['status'] in ACCESS_STATUSES and expires_at and is_past(expires_at):
        enrollment['status'] = 'expired'
        save_document(ENROLLMENTS, enrollment)
        increment_enrollments(enrollment['course_id'], -1)
        logger.info(f"Subscription expired: {enrollment['id']}")
        return True
    return False


def validate_access(user, course_id):
    course = get_course_document(course_id)
    if is_owner(course, user):
        return {'has_access': True, 'reason': 'owner', 'enrollment': None}
    enrollment = find_enrollment(user['id'], course_id)
    if not enrollment:
        return {'has_access': False, 'reason': 'not_enrolled', 'enrollment': None}
    _expire_if_lapsed(enrollment)
    if enrollment['status'] not in ACCESS_STATUSES:
        return {'has_access': False, 'reason': enrollment['status'], 'enrollment': enrollment}
    return {'has_access': True, 'reason': 'enrolled', 'enrollment': enrollment}


def _accessible_enrollment(user, course_id):
    enrollment = find_enrollment(user['id'], course_id)
    if not enrollment:
        raise Forbidden('Not enrolled in this course', code='NOT_ENROLLED')
    _expire_if_lapsed(enrollment)
    if enrollment['status'] not in ACCESS_STATUSES:
        raise Forbidden('Enrollment is not active', code='ENROLLMENT_INACTIVE',
                        status=enrollment['status'])
    return enrollment


def _own_enrollment(user, enrollment_id):
    enrollment = get_document(ENROLLMENTS, enrollment_id)
    if not enrollment:
        raise NotFound('Enrollment not found', code='ENROLLMENT_NOT_FOUND')
    if enrollment['user_id'] != user['id'] and user['role'] != 'admin':
        raise Forbidden('This enrollment belongs to another user', code='NOT_ENROLLMENT_OWNER')
    return enrollment


def _completion(course, completed_ids):
    lecture_ids = [lecture['lecture_id'] for _, _, lecture in iter_lectures(course)]
    if not lecture_ids:
        return 0, False
    done = len(set(lecture_ids) & set(completed_ids))
    return round(done / len(lecture_ids) * 100, 1), done == len(lecture_ids)


def mark_lecture_complete(user, course_id, lecture_id):
    """Record a finished lecture; finishing the last one completes the course"""
    course = get_course_document(course_id)
    enrollment = _accessible_enrollment(user, course_id)
    find_lecture(course, lecture_id)

    progress = enrollment['progress']
    if lecture_id not in progress['lectures_completed']:
        progress['lectures_completed'].append(lecture_id)
    progress['last_accessed_lecture'] = lecture_id
    progress['completion_percentage'], finished = _completion(course, progress['lectures_completed'])

    certificate = None
    if finished and not progress['is_completed']:
        progress['is_completed'] = True
        progress['completed_at'] = now_iso()
        enrollment['status'] = 'completed'
        student = get_document(USERS, user['id']) or user
        certificate = certificates.issue_certificate(student, course, enrollment)
        logger.info(f"🎓 Course completed: user={user['id']} course={course_id}")
    save_document(ENROLLMENTS, enrollment)
    return {'enrollment': enrollment_view(enrollment, with_course=False), 'certificate': certificate}


def course_progress(user, course_id):
    course = get_course_document(course_id)
    enrollment = find_enrollment(user['id'], course_id)
    total = course['structure'].get('total_lectures', 0)
    if not enrollment:
        return {'enrolled': False, 'progress': empty_progress(), 'total_lectures': total}
    return {
        'enrolled': True,
        'status': enrollment['status'],
        'progress': enrollment['progress'],
        'total_lectures': total
    }


def cancel_enrollment(user, enrollment_id):
    enrollment = _own_enrollment(user, enrollment_id)
    if enrollment['status'] != 'active':
        raise Conflict('Only active enrollments can be cancelled', code='ENROLLMENT_NOT_ACTIVE')
    enrollment['status'] = 'cancelled'
    enrollment['cancelled_at'] = now_iso()
    save_document(ENROLLMENTS, enrollment)
    increment_enrollments(enrollment['course_id'], -1)
    logger.info(f"Enrollment cancelled: {enrollment_id}")
    return enrollment


# ── Subscriptions ──

def _subscription_enrollment(user, enrollment_id):
    enrollment = _own_enrollment(user, enrollment_id)
    if enrollment['enrollment_type'] not in SUBSCRIPTION_TYPES:
        raise ValidationFailed('Only subscriptions can be managed here',
                               code='NOT_A_SUBSCRIPTION')
    _expire_if_lapsed(enrollment)
    return enrollment


def _next_action(enrollment):
    subscription = enrollment.get('subscription') or {}
    expires_at = enrollment['access'].get('expires_at')
    if enrollment['status'] not in ACCESS_STATUSES:
        return {'type': 'renew', 'date': None}
    if subscription.get('cancel_at_period_end'):
        return {'type': 'ends', 'date': expires_at}
    return {'type': 'renewal_due', 'date': expires_at}


def my_subscriptions(user):
    subscriptions = []
    for enrollment in find_documents(ENROLLMENTS, [('user_id', '==', user['id'])]):
        if enrollment['enrollment_type'] not in SUBSCRIPTION_TYPES:
            continue
        _expire_if_lapsed(enrollment)
        data = enrollment_view(enrollment)
        data['next_action'] = _next_action(enrollment)
        subscriptions.append(data)
    subscriptions = sort_newest(subscriptions)

    cancelling = [
        s for s in subscriptions
        if s['status'] in ACCESS_STATUSES and (s.get('subscription') or {}).get('cancel_at_period_end')
    ]
    return {
        'subscriptions': subscriptions,
        'summary': {
            'active': sum(1 for s in subscriptions if s['status'] in ACCESS_STATUSES),
            'cancelling': len(cancelling),
            'expired': sum(1 for s in subscriptions if s['status'] == 'expired'),
            'cancelled': sum(1 for s in subscriptions if s['status'] == 'cancelled')
        }
    }


def cancel_subscription(user, enrollment_id, reason, immediate=False, feedback=None):
    """Stop a subscription now, or let it run out at the end of the paid period"""
    enrollment = _subscription_enrollment(user, enrollment_id)
    if enrollment['status'] not in ACCESS_STATUSES:
        raise Conflict('Subscription is not active', code='SUBSCRIPTION_NOT_ACTIVE',
                       status=enrollment['status'])
    subscription = enrollment.get('subscription') or new_subscription(
        'yearly' if enrollment['enrollment_type'] == ENROLLMENT_TYPES['yearly'] else 'monthly'
    )
    if subscription['cancel_at_period_end'] and not immediate:
        raise Conflict('Subscription is already set to end', code='ALREADY_CANCELLED')

    subscription['cancellation'] = {
        'reason': reason,
        'feedback': feedback,
        'immediate': immediate,
        'requested_at': now_iso()
    }
    subscription['cancel_at_period_end'] = not immediate
    enrollment['subscription'] = subscription
    if immediate:
        enrollment['status'] = 'cancelled'
        enrollment['cancelled_at'] = now_iso()
        increment_enrollments(enrollment['course_id'], -1)
    save_document(ENROLLMENTS, enrollment)
    logger.info(f"Subscription cancelled: {enrollment_id} immediate={immediate} reason={reason}")
    return enrollment_view(enrollment)


def renew_subscription(user, enrollment_id, plan=None):
    """Undo a pending cancellation, or open a payment order for a lapsed subscription"""
    enrollment = _subscription_enrollment(user, enrollment_id)
    subscription = enrollment.get('subscription') or {}
    if enrollment['status'] in ACCESS_STATUSES:
        if not subscription.get('cancel_at_period_end'):
            raise Conflict('Subscription is active and does not need renewal',
                           code='SUBSCRIPTION_ACTIVE')
        subscription['cancel_at_period_end'] = False
        subscription['cancellation'] = None
        enrollment['subscription'] = subscription
        save_document(ENROLLMENTS, enrollment)
        logger.info(f"Subscription resumed: {enrollment_id}")
        return {'enrollment': enrollment_view(enrollment), 'order': None}

    course = get_course_document(enrollment['course_id'])
    if not is_published(course):
        raise ValidationFailed('Course is not available for enrollment',
                               code='COURSE_NOT_AVAILABLE')
    plan = plan or subscription.get('plan') or 'monthly'
    order = payments.start_payment(user, course, plan)
    return {'enrollment': enrollment_view(enrollment), 'order': order}


# ── Bookmarks & summaries ──

def add_bookmark(user, course_id, lecture_id, timestamp=0, note=None):
    course = get_course_document(course_id)
    enrollment = _accessible_enrollment(user, course_id)
    _, _, lecture = find_lecture(course, lecture_id)
    bookmark = {
        'bookmark_id': new_id(),
        'lecture_id': lecture_id,
        'lecture_title': lecture['title'],
        'timestamp': timestamp,
        'note': note,
        'created_at': now_iso()
    }
    enrollment['progress'].setdefault('bookmarks', []).append(bookmark)
    save_document(ENROLLMENTS, enrollment)
    return bookmark


def list_bookmarks(user, course_id):
    enrollment = find_enrollment(user['id'], course_id)
    if not enrollment:
        raise Forbidden('Not enrolled in this course', code='NOT_ENROLLED')
    bookmarks = enrollment['progress'].get('bookmarks', [])
    return sorted(bookmarks, key=lambda b: (b['lecture_id'], b['timestamp']))


def remove_bookmark(user, course_id, bookmark_id):
    enrollment = find_enrollment(user['id'], course_id)
    if not enrollment:
        raise Forbidden('Not enrolled in this course', code='NOT_ENROLLED')
    bookmarks = enrollment['progress'].get('bookmarks', [])
    remaining = [b for b in bookmarks if b['bookmark_id'] != bookmark_id]
    if len(remaining) == len(bookmarks):
        raise NotFound('Bookmark not found', code='BOOKMARK_NOT_FOUND')
    enrollment['progress']['bookmarks'] = remaining
    save_document(ENROLLMENTS, enrollment)


def progress_summary(user):
    """Learning totals across every course the user is enrolled in"""
    enrollments = find_documents(ENROLLMENTS, [('user_id', '==', user['id'])])
    live = [e for e in enrollments if e['status'] in ACCESS_STATUSES]
    completion = [e['progress']['completion_percentage'] for e in live]
    return {
        'total_enrollments': len(enrollments),
        'by_status': dict(Counter(e['status'] for e in enrollments)),
        'courses_completed': sum(1 for e in enrollments if e['progress']['is_completed']),
        'lectures_completed': sum(len(e['progress']['lectures_completed']) for e in enrollments),
        'average_completion': round(sum(completion) / len(completion), 1) if completion else 0,
        'bookmarks': sum(len(e['progress'].get('bookmarks', [])) for e in enrollments)
    }


def rate_course(user, course_id, value, review=None):
    """Store the learner's rating and refresh the course average"""
    course = get_course_document(course_id)
    if course['instructor_id'] == user['id']:
        raise Forbidden('Instructors cannot rate their own course', code='CANNOT_RATE_OWN_COURSE')
    enrollment = _accessible_enrollment(user, course_id)
    enrollment['rating'] = {'value': value, 'review': review, 'rated_at': now_iso()}
    save_document(ENROLLMENTS, enrollment)

    ratings = [
        e['rating']['value'] for e in find_documents(ENROLLMENTS, [('course_id', '==', course_id)])
        if e.get('rating')
    ]
    stats = course.setdefault('stats', {})
    stats['ratings_count'] = len(ratings)
    stats['ratings_average'] = round(sum(ratings) / len(ratings), 1)
    save_document(COURSES, course)
    return {
        'rating': enrollment['rating'],
        'ratings_average': stats['ratings_average'],
        'ratings_count': stats['ratings_count']
    }


def expire_subscriptions():
    """Mark lapsed subscription enrollments expired; returns how many changed"""
    expired = 0
    for enrollment in find_documents(ENROLLMENTS, [('status', 'in', list(ACCESS_STATUSES))]):
        if _expire_if_lapsed(enrollment):
            expired += 1
    if expired:
        logger.info(f"✅ Expired {expired} subscription enrollments")
    return expired
