# shlokayug/utils.py

import re
import calendar
import hashlib
import secrets
from datetime import datetime, timezone

from flask import current_app, request

HASHTAG_PATTERN = re.compile(r'#([\wऀ-ॿ]{2,50})')
MENTION_PATTERN = re.compile(r'@([A-Za-z0-9_]{3,30})')


def utcnow():
    return datetime.now(timezone.utc)


def to_iso(dt):
    return dt.isoformat() if dt else None


def now_iso():
    return to_iso(utcnow())


def parse_iso(value):
    """Parse an ISO timestamp stored in Firestore, or None"""
    if not value:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def is_past(value):
    dt = parse_iso(value)
    return dt is not None and dt <= utcnow()


def hash_token(token):
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def generate_token(nbytes=20):
    return secrets.token_hex(nbytes)


def format_duration(duration_sec):
    """Seconds to an m:ss label"""
    minutes = duration_sec // 60
    seconds = duration_sec % 60
    return f"{minutes}:{seconds:02d}"


def safe_name(name):
    return re.sub(r'[^\wऀ-ॿ]', '_', name or '')[:60]


def extract_hashtags(text):
    seen = []
    for tag in HASHTAG_PATTERN.findall(text or ''):
        tag = tag.lower()
        if tag not in seen:
            seen.append(tag)
    return seen


def extract_mentions(text):
    seen = []
    for name in MENTION_PATTERN.findall(text or ''):
        if name not in seen:
            seen.append(name)
    return seen


def get_pagination_args(args, default_limit=10, max_limit=50):
    """Read page/limit query parameters, clamped to sane values"""
    try:
        page = max(1, int(args.get('page', 1)))
    except (TypeError, ValueError):
        page = 1
    try:
        limit = int(args.get('limit', default_limit))
    except (TypeError, ValueError):
        limit = default_limit
    limit = min(max(1, limit), max_limit)
    return page, limit


def paginate(items, page, limit):
    total = len(items)
    start = (page - 1) * limit
    return {
        'items': items[start:start + limit],
        'pagination': {
            'page': page,
            'limit': limit,
            'total': total,
            'pages': (total + limit - 1) // limit if total else 0
        }
    }


def sort_newest(items, field='created_at'):
    return sorted(items, key=lambda item: item.get(field) or '', reverse=True)


def add_months(dt, months):
    """Same day N months later, clamped to the end of shorter months"""
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def request_page_args():
    """page/limit for the current request using the configured page sizes"""
    config = current_app.config
    return get_pagination_args(request.args, config['DEFAULT_PAGE_SIZE'], config['MAX_PAGE_SIZE'])
