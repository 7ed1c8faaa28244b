# shlokayug/auth.py
import logging
from datetime import datetime, timedelta, timezone
from functools import wraps

import bcrypt
import jwt
from flask import current_app, g, request

from shlokayug.database import REVOKED_TOKENS, USERS, create_document, get_document, new_id
from shlokayug.errors import Forbidden, Unauthorized
from shlokayug.utils import is_past, parse_iso, to_iso, utcnow

logger = logging.getLogger(__name__)


def hash_password(password):
    rounds = current_app.config['BCRYPT_ROUNDS']
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds)).decode('utf-8')


def check_password(password, password_hash):
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def _encode(user, kind, secret, lifetime):
    now = utcnow()
    payload = {
        'sub': user['id'],
        'role': user['role'],
        'type': kind,
        'jti': new_id(),
        'iat': now,
        'exp': now + lifetime
    }
    return jwt.encode(payload, secret, algorithm=current_app.config['JWT_ALGORITHM'])


def create_access_token(user):
    """Short-lived access token"""
    config = current_app.config
    return _encode(user, 'access', config['JWT_SECRET'],
                   timedelta(hours=config['JWT_ACCESS_EXPIRES_HOURS']))


def create_refresh_token(user):
    config = current_app.config
    return _encode(user, 'refresh', config['JWT_REFRESH_SECRET'],
                   timedelta(days=config['JWT_REFRESH_EXPIRES_DAYS']))


def decode_token(token, kind='access'):
    """Verify signature, expiry, type and revocation of a token"""
    config = current_app.config
    secret = config['JWT_SECRET'] if kind == 'access' else config['JWT_REFRESH_SECRET']
    try:
        payload = jwt.decode(token, secret, algorithms=[config['JWT_ALGORITHM']])
    except jwt.ExpiredSignatureError:
        raise Unauthorized('Token has expired', code='TOKEN_EXPIRED')
    except jwt.InvalidTokenError:
        raise Unauthorized('Invalid token', code='INVALID_TOKEN')

    if payload.get('type') != kind:
        raise Unauthorized('Invalid token type', code='INVALID_TOKEN')
    if get_document(REVOKED_TOKENS, payload.get('jti')):
        raise Unauthorized('Token has been revoked', code='TOKEN_REVOKED')
    return payload


def revoke_token(payload):
    """Blacklist a token until it would have expired anyway"""
    expires_at = to_iso(datetime.fromtimestamp(payload['exp'], tz=timezone.utc))
    create_document(REVOKED_TOKENS, {
        'user_id': payload.get('sub'),
        'expires_at': expires_at
    }, doc_id=payload['jti'])


def issued_before_password_change(payload, user):
    changed_at = parse_iso(user.get('security', {}).get('password_changed_at'))
    if not changed_at:
        return False
    return payload['iat'] < int(changed_at.timestamp())


def get_bearer_token():
    auth_header = request.headers.get('Authorization', None)
    if not auth_header or not auth_header.startswith('Bearer '):
        return None
    return auth_header.split(' ', 1)[1].strip()


def load_user_from_token(token):
    payload = decode_token(token, 'access')
    user = get_document(USERS, payload['sub'])
    if not user:
        raise Unauthorized('User not found', code='USER_NOT_FOUND')

    metadata = user.get('metadata', {})
    if not metadata.get('is_active', True):
        raise Unauthorized('Account is deactivated', code='ACCOUNT_INACTIVE')
    if metadata.get('banned_until') and not is_past(metadata['banned_until']):
        raise Forbidden('Account is suspended', code='ACCOUNT_SUSPENDED',
                        banned_until=metadata['banned_until'])
    if issued_before_password_change(payload, user):
        raise Unauthorized('Password changed, please log in again', code='TOKEN_STALE')
    return user, payload


def login_required(f):
    """Require a valid access token; sets g.current_user and g.token_payload"""
    @wraps(f)
    def decorated(*args, **kwargs):
        token = get_bearer_token()
        if not token:
            raise Unauthorized('Authentication required', code='NO_TOKEN')
        g.current_user, g.token_payload = load_user_from_token(token)
        return f(*args, **kwargs)
    return decorated


def optional_login(f):
    """Attach the user when a valid token is sent, otherwise continue anonymously"""
    @wraps(f)
    def decorated(*args, **kwargs):
        g.current_user = None
        token = get_bearer_token()
        if token:
            try:
                g.current_user, g.token_payload = load_user_from_token(token)
            except (Unauthorized, Forbidden):
                g.current_user = None
        return f(*args, **kwargs)
    return decorated


def roles_required(*roles):
    """Restrict a login_required view to the given roles"""
    def decorator(f):
        @wraps(f)
        @login_required
        def decorated(*args, **kwargs):
            if g.current_user.get('role') not in roles:
                raise Forbidden('Insufficient permissions', code='INSUFFICIENT_ROLE',
                                required=list(roles))
            return f(*args, **kwargs)
        return decorated
    return decorator


def is_verified_guru(user):
    guru = user.get('guru') or {}
    return user.get('role') == 'guru' and guru.get('status') == 'approved'


def verified_guru_required(f):
    """Only approved, non-suspended gurus (or admins) may create teaching content"""
    @wraps(f)
    @login_required
    def decorated(*args, **kwargs):
        user = g.current_user
        if user.get('role') != 'admin' and not is_verified_guru(user):
            raise Forbidden('Only verified gurus can perform this action',
                            code='GURU_NOT_VERIFIED')
        return f(*args, **kwargs)
    return decorated
