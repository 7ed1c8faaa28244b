# shlokayug/admin.py
import logging
from collections import Counter
from datetime import timedelta

from shlokayug.community import get_post_document, post_view, remove_post
from shlokayug.database import (
    COURSES, ENROLLMENTS, PAYMENTS, POSTS, USERS, find_documents, save_document
)
from shlokayug.errors import ValidationFailed
from shlokayug.users import full_name, get_user, public_user
from shlokayug.utils import now_iso, paginate, sort_newest, to_iso, utcnow

logger = logging.getLogger(__name__)


def dashboard_stats():
    users = find_documents(USERS)
    courses = find_documents(COURSES)
    enrollments = find_documents(ENROLLMENTS)
    payments = find_documents(PAYMENTS, [('status', '==', 'completed')])

    revenue = Counter()
    for payment in payments:
        revenue[payment['currency']] += payment['amount']

    return {
        'users': {
            'total': len(users),
            'by_role': dict(Counter(u['role'] for u in users)),
            'active': sum(1 for u in users if u['metadata'].get('is_active', True))
        },
        'courses': {
            'total': len(courses),
            'by_status': dict(Counter(c['status'] for c in courses))
        },
        'enrollments': {
            'total': len(enrollments),
            'by_status': dict(Counter(e['status'] for e in enrollments))
        },
        'revenue': {currency: round(amount, 2) for currency, amount in revenue.items()},
        'pending_guru_applications': sum(1 for u in users if u.get('guru_status') == 'pending')
    }


def admin_user_view(user):
    data = public_user(user, private=True)
    data['metadata'] = user.get('metadata', {})
    data['guru_status'] = user.get('guru_status', 'none')
    return data


def list_users(role, search, page, limit):
    users = find_documents(USERS, [('role', '==', role)] if role else None)
    if search:
        needle = search.strip().lower()
        users = [
            u for u in users
            if needle in u['username_lower'] or needle in u['email']
            or needle in full_name(u).lower()
        ]
    result = paginate(sort_newest(users), page, limit)
    result['items'] = [admin_user_view(u) for u in result['items']]
    return result


def moderate_user(admin, user_id, action, reason='', days=None):
    """Ban, unban, deactivate or reactivate an account"""
    if user_id == admin['id']:
        raise ValidationFailed('You cannot moderate your own account', code='CANNOT_MODERATE_SELF')
    user = get_user(user_id)
    metadata = user['metadata']

    if action == 'ban':
        # a ban without a duration lasts until lifted
        until = utcnow() + timedelta(days=days) if days else utcnow() + timedelta(days=365 * 100)
        metadata['banned_until'] = to_iso(until)
        metadata['ban_reason'] = reason
        user['security']['refresh_token_hash'] = None
    elif action == 'unban':
        metadata['banned_until'] = None
        metadata['ban_reason'] = None
    elif action == 'deactivate':
        metadata['is_active'] = False
        user['security']['refresh_token_hash'] = None
    elif action == 'activate':
        metadata['is_active'] = True

    metadata.setdefault('moderation_log', []).append({
        'action': action,
        'reason': reason,
        'days': days,
        'by': admin['id'],
        'at': now_iso()
    })
    save_document(USERS, user)
    logger.warning(f"User {action}: {user['username']} by {admin['username']} ({reason})")
    return admin_user_view(user)


def moderation_queue(page, limit):
    """Hidden or reported posts, most reported first"""
    posts = [
        p for p in find_documents(POSTS)
        if p.get('is_hidden') or p.get('report_count', 0) > 0
    ]
    posts.sort(key=lambda p: (p.get('report_count', 0), p.get('created_at') or ''), reverse=True)
    result = paginate(posts, page, limit)
    result['items'] = [
        dict(post_view(p), reports=p.get('reports', [])) for p in result['items']
    ]
    return result


def moderate_post(admin, post_id, action, reason=''):
    post = get_post_document(post_id, admin)
    if action == 'delete':
        remove_post(post)
        logger.warning(f"Post deleted by moderator {admin['username']}: {post_id} ({reason})")
        return None

    post['is_hidden'] = action == 'hide'
    post['moderation'] = {
        'action': action,
        'reason': reason,
        'by': admin['id'],
        'at': now_iso()
    }
    if action == 'restore':
        post['reports'] = []
        post['report_count'] = 0
    save_document(POSTS, post)
    logger.warning(f"Post {action}: {post_id} by {admin['username']} ({reason})")
    return post_view(post, admin)
