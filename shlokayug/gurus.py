# shlokayug/gurus.py
import logging

from shlokayug.database import (
    COURSES, ENROLLMENTS, USERS, find_documents, get_document, save_document
)
from shlokayug.errors import NotFound, ValidationFailed
from shlokayug.payments import revenue_summary
from shlokayug.users import full_name, public_user
from shlokayug.utils import now_iso, paginate, sort_newest

logger = logging.getLogger(__name__)

# action -> (allowed source states, target state)
TRANSITIONS = {
    'apply': (('none', 'rejected'), 'pending'),
    'approve': (('pending',), 'approved'),
    'reject': (('pending',), 'rejected'),
    'suspend': (('approved',), 'suspended'),
    'reactivate': (('suspended',), 'approved'),
}


def guru_status(user):
    return (user.get('guru') or {}).get('status', 'none')


def _transition(user, action, actor, reason=None):
    """Move a user's guru record along the verification state machine"""
    sources, target = TRANSITIONS[action]
    current = guru_status(user)
    if current not in sources:
        raise ValidationFailed(f"Cannot {action} a guru application that is {current}",
                               code='INVALID_TRANSITION', status_from=current, action=action)
    guru = user.setdefault('guru', {'status': 'none'})
    guru['status'] = target
    guru.setdefault('history', []).append({
        'from': current,
        'to': target,
        'by': actor['id'],
        'reason': reason,
        'at': now_iso()
    })
    user['guru_status'] = target
    return guru


def get_applicant(guru_id):
    user = get_document(USERS, guru_id)
    if not user or guru_status(user) == 'none':
        raise NotFound('Guru application not found', code='APPLICATION_NOT_FOUND')
    return user


def application_view(user):
    guru = user.get('guru') or {}
    return {
        'user': public_user(user, private=True),
        'name': full_name(user),
        'status': guru.get('status', 'none'),
        'credentials': guru.get('credentials', []),
        'experience_years': guru.get('experience_years'),
        'expertise': guru.get('expertise', []),
        'specializations': guru.get('specializations', []),
        'motivation': guru.get('motivation'),
        'applied_at': guru.get('applied_at'),
        'reviewed_at': guru.get('reviewed_at'),
        'review_notes': guru.get('review_notes'),
        'rejection_reason': guru.get('rejection_reason'),
        'suspension_reason': guru.get('suspension_reason'),
        'notes': guru.get('notes', []),
        'history': guru.get('history', [])
    }


# ── Applicant side ──

def apply(user, data):
    if user['role'] == 'admin':
        raise ValidationFailed('Admins cannot apply as gurus', code='INVALID_TRANSITION')
    guru = _transition(user, 'apply', user)
    guru.update({
        'credentials': [c.model_dump() for c in data.credentials],
        'experience_years': data.experience_years,
        'expertise': list(data.expertise),
        'specializations': data.specializations,
        'motivation': data.motivation,
        'applied_at': now_iso(),
        'reviewed_at': None,
        'reviewed_by': None,
        'rejection_reason': None
    })
    save_document(USERS, user)
    logger.info(f"Guru application submitted by {user['username']}")
    return application_view(user)


def application_status(user):
    guru = user.get('guru') or {}
    return {
        'status': guru.get('status', 'none'),
        'applied_at': guru.get('applied_at'),
        'reviewed_at': guru.get('reviewed_at'),
        'rejection_reason': guru.get('rejection_reason'),
        'suspension_reason': guru.get('suspension_reason'),
        'can_apply': guru.get('status', 'none') in TRANSITIONS['apply'][0]
    }


def dashboard(user):
    courses = find_documents(COURSES, [('instructor_id', '==', user['id'])])
    enrollments = find_documents(ENROLLMENTS, [('guru_id', '==', user['id'])])
    return {
        'courses': {
            'total': len(courses),
            'published': sum(1 for c in courses if c['status'] == 'published'),
            'draft': sum(1 for c in courses if c['status'] == 'draft'),
            'archived': sum(1 for c in courses if c['status'] == 'archived')
        },
        'enrollments': {
            'total': len(enrollments),
            'active': sum(1 for e in enrollments if e['status'] == 'active'),
            'completed': sum(1 for e in enrollments if e['status'] == 'completed')
        },
        'revenue': revenue_summary(user)
    }


# ── Admin review ──

def approve(admin, guru_id, notes=''):
    user = get_applicant(guru_id)
    guru = _transition(user, 'approve', admin, notes)
    guru.update({
        'reviewed_at': now_iso(),
        'reviewed_by': admin['id'],
        'review_notes': notes,
        'rejection_reason': None
    })
    user['role'] = 'guru'
    save_document(USERS, user)
    logger.info(f"✅ Guru approved: {user['username']} by {admin['username']}")
    return application_view(user)


def reject(admin, guru_id, reason):
    if not (reason or '').strip():
        raise ValidationFailed('A rejection reason is required', code='REASON_REQUIRED')
    user = get_applicant(guru_id)
    guru = _transition(user, 'reject', admin, reason)
    guru.update({
        'reviewed_at': now_iso(),
        'reviewed_by': admin['id'],
        'rejection_reason': reason
    })
    save_document(USERS, user)
    logger.info(f"Guru application rejected: {user['username']} by {admin['username']}")
    return application_view(user)


def suspend(admin, guru_id, reason):
    if not (reason or '').strip():
        raise ValidationFailed('A suspension reason is required', code='REASON_REQUIRED')
    user = get_applicant(guru_id)
    guru = _transition(user, 'suspend', admin, reason)
    guru['suspended_at'] = now_iso()
    guru['suspension_reason'] = reason
    save_document(USERS, user)
    logger.warning(f"Guru suspended: {user['username']} by {admin['username']} ({reason})")
    return application_view(user)


def reactivate(admin, guru_id):
    user = get_applicant(guru_id)
    guru = _transition(user, 'reactivate', admin)
    guru['suspended_at'] = None
    guru['suspension_reason'] = None
    save_document(USERS, user)
    logger.info(f"Guru reactivated: {user['username']} by {admin['username']}")
    return application_view(user)


def add_note(admin, guru_id, note):
    user = get_applicant(guru_id)
    user['guru'].setdefault('notes', []).append({
        'note': note,
        'author_id': admin['id'],
        'author': admin['username'],
        'at': now_iso()
    })
    save_document(USERS, user)
    return user['guru']['notes']


def _applications(status, page, limit):
    users = find_documents(USERS, [('guru_status', '==', status)])
    users.sort(key=lambda u: u['guru'].get('applied_at') or '')
    result = paginate(users, page, limit)
    result['items'] = [application_view(u) for u in result['items']]
    return result


def pending_applications(page, limit):
    """Oldest applications first"""
    return _applications('pending', page, limit)


def approved_gurus(page, limit):
    return _applications('approved', page, limit)


def application_detail(guru_id):
    return application_view(get_applicant(guru_id))


def guru_stats():
    counts = {status: 0 for status in ('pending', 'approved', 'rejected', 'suspended')}
    for user in find_documents(USERS):
        status = guru_status(user)
        if status in counts:
            counts[status] += 1
    recent = sort_newest(
        find_documents(USERS, [('guru_status', '==', 'pending')]),
        'updated_at'
    )[:5]
    return {
        'counts': counts,
        'total_applications': sum(counts.values()),
        'recent_pending': [application_view(u) for u in recent]
    }
