# shlokayug/users.py
import logging
from datetime import timedelta

from flask import current_app

from shlokayug.auth import (
    check_password, create_access_token, create_refresh_token, decode_token,
    hash_password, revoke_token
)
from shlokayug.database import USERS, create_document, find_one, get_document, save_document
from shlokayug.errors import Conflict, Forbidden, NotFound, Unauthorized, ValidationFailed
from shlokayug.utils import generate_token, hash_token, is_past, now_iso, to_iso, utcnow

logger = logging.getLogger(__name__)


def new_user_document(email, username, password, first_name, last_name, role='student'):
    return {
        'email': email.lower(),
        'username': username,
        'username_lower': username.lower(),
        'password_hash': hash_password(password),
        'role': role,
        'guru_status': 'none',
        'verification_token_hash': None,
        'reset_token_hash': None,
        'profile': {
            'first_name': first_name,
            'last_name': last_name,
            'bio': '',
            'avatar': None,
            'phone_number': None,
            'interests': []
        },
        'guru': {'status': 'none'},
        'verification': {
            'is_email_verified': False,
            'verified_at': None,
            'token_expires': None
        },
        'security': {
            'password_changed_at': None,
            'reset_expires': None,
            'failed_logins': 0,
            'locked_until': None,
            'refresh_token_hash': None
        },
        'social': {
            'followers_count': 0,
            'following_count': 0,
            'posts_count': 0
        },
        'metadata': {
            'is_active': True,
            'banned_until': None,
            'ban_reason': None,
            'last_login': None,
            'login_count': 0,
            'reports': 0
        }
    }


def full_name(user):
    profile = user.get('profile', {})
    return f"{profile.get('first_name', '')} {profile.get('last_name', '')}".strip()


def public_user(user, private=False):
    """User fields safe to return to clients"""
    data = {
        'id': user['id'],
        'username': user['username'],
        'role': user['role'],
        'profile': user.get('profile', {}),
        'social': user.get('social', {}),
        'created_at': user.get('created_at')
    }
    guru = user.get('guru') or {}
    if guru.get('status', 'none') != 'none':
        data['guru'] = {
            'status': guru.get('status'),
            'expertise': guru.get('expertise', []),
            'specializations': guru.get('specializations', []),
            'experience_years': guru.get('experience_years')
        }
    if private:
        data['email'] = user['email']
        data['is_email_verified'] = user.get('verification', {}).get('is_email_verified', False)
        data['metadata'] = {
            'last_login': user.get('metadata', {}).get('last_login'),
            'login_count': user.get('metadata', {}).get('login_count', 0)
        }
    return data


def dev_token(token):
    """Expose one-time tokens outside production, where no mailer is wired"""
    if current_app.config['ENVIRONMENT'] == 'production':
        return {}
    return {'dev_token': token}


def get_user(user_id):
    user = get_document(USERS, user_id)
    if not user:
        raise NotFound('User not found', code='USER_NOT_FOUND')
    return user


def get_user_by_username(username):
    user = find_one(USERS, 'username_lower', username.lower())
    if not user or not user.get('metadata', {}).get('is_active', True):
        raise NotFound('User not found', code='USER_NOT_FOUND')
    return user


def find_by_identifier(identifier):
    identifier = identifier.strip()
    if '@' in identifier:
        return find_one(USERS, 'email', identifier.lower())
    return find_one(USERS, 'username_lower', identifier.lower())


def issue_tokens(user):
    """New access/refresh pair; only the latest refresh token stays valid"""
    access = create_access_token(user)
    refresh = create_refresh_token(user)
    user['security']['refresh_token_hash'] = hash_token(refresh)
    save_document(USERS, user)
    return {
        'access': access,
        'refresh': refresh,
        'expires_in': current_app.config['JWT_ACCESS_EXPIRES_HOURS'] * 3600
    }


def _set_verification_token(user):
    token = generate_token()
    user['verification_token_hash'] = hash_token(token)
    user['verification']['token_expires'] = to_iso(
        utcnow() + timedelta(hours=current_app.config['EMAIL_VERIFICATION_HOURS'])
    )
    return token


def register(data):
    """Create a student account and log it in"""
    if find_one(USERS, 'email', data.email):
        raise Conflict('Email is already registered', code='USER_EXISTS', field='email')
    if find_one(USERS, 'username_lower', data.username.lower()):
        raise Conflict('Username is already registered', code='USER_EXISTS', field='username')

    user = new_user_document(data.email, data.username, data.password,
                             data.first_name, data.last_name)
    token = _set_verification_token(user)
    user['metadata']['login_count'] = 1
    user['metadata']['last_login'] = now_iso()
    user = create_document(USERS, user)
    logger.info(f"✅ User registered: {user['username']} ({user['id']})")

    tokens = issue_tokens(user)
    result = {'user': public_user(user, private=True), 'tokens': tokens}
    result.update(dev_token(token))
    return result


def login(identifier, password):
    user = find_by_identifier(identifier)
    if not user:
        raise Unauthorized('Invalid credentials', code='INVALID_CREDENTIALS')

    security = user['security']
    if security.get('locked_until') and not is_past(security['locked_until']):
        raise Unauthorized('Account is temporarily locked after repeated failed logins',
                           code='ACCOUNT_LOCKED', locked_until=security['locked_until'])

    if not check_password(password, user.get('password_hash')):
        security['failed_logins'] = security.get('failed_logins', 0) + 1
        if security['failed_logins'] >= current_app.config['MAX_FAILED_LOGINS']:
            security['locked_until'] = to_iso(
                utcnow() + timedelta(minutes=current_app.config['ACCOUNT_LOCK_MINUTES'])
            )
            security['failed_logins'] = 0
            logger.warning(f"Account locked after failed logins: {user['username']}")
        save_document(USERS, user)
        raise Unauthorized('Invalid credentials', code='INVALID_CREDENTIALS')

    metadata = user['metadata']
    if not metadata.get('is_active', True):
        raise Unauthorized('Account is deactivated', code='ACCOUNT_INACTIVE')
    if metadata.get('banned_until') and not is_past(metadata['banned_until']):
        raise Forbidden('Account is suspended', code='ACCOUNT_SUSPENDED',
                        banned_until=metadata['banned_until'], reason=metadata.get('ban_reason'))

    security['failed_logins'] = 0
    security['locked_until'] = None
    metadata['login_count'] = metadata.get('login_count', 0) + 1
    metadata['last_login'] = now_iso()
    tokens = issue_tokens(user)
    logger.info(f"User logged in: {user['username']}")
    return {'user': public_user(user, private=True), 'tokens': tokens}


def refresh(refresh_token):
    """Rotate tokens using the current refresh token"""
    payload = decode_token(refresh_token, 'refresh')
    user = get_document(USERS, payload['sub'])
    if not user or user['security'].get('refresh_token_hash') != hash_token(refresh_token):
        raise Unauthorized('Invalid refresh token', code='INVALID_REFRESH_TOKEN')
    if not user['metadata'].get('is_active', True):
        raise Unauthorized('Account is deactivated', code='ACCOUNT_INACTIVE')
    revoke_token(payload)
    return {'tokens': issue_tokens(user)}


def logout(user, payload):
    revoke_token(payload)
    user['security']['refresh_token_hash'] = None
    save_document(USERS, user)
    logger.info(f"User logged out: {user['username']}")


def verify_email(token):
    user = find_one(USERS, 'verification_token_hash', hash_token(token))
    if not user or is_past(user['verification'].get('token_expires')):
        raise ValidationFailed('Verification token is invalid or has expired',
                               code='INVALID_VERIFICATION_TOKEN')
    user['verification'].update({
        'is_email_verified': True,
        'verified_at': now_iso(),
        'token_expires': None
    })
    user['verification_token_hash'] = None
    save_document(USERS, user)
    return public_user(user, private=True)


def resend_verification(user):
    if user['verification'].get('is_email_verified'):
        raise ValidationFailed('Email is already verified', code='ALREADY_VERIFIED')
    token = _set_verification_token(user)
    save_document(USERS, user)
    logger.info(f"Verification token reissued for {user['username']}")
    return dev_token(token)


def forgot_password(email):
    """Always succeeds so callers cannot tell which emails exist"""
    user = find_one(USERS, 'email', email.lower())
    if not user or not user['metadata'].get('is_active', True):
        return {}
    token = generate_token()
    user['reset_token_hash'] = hash_token(token)
    user['security']['reset_expires'] = to_iso(
        utcnow() + timedelta(minutes=current_app.config['PASSWORD_RESET_MINUTES'])
    )
    save_document(USERS, user)
    logger.info(f"Password reset requested for {user['username']}")
    return dev_token(token)


def _set_password(user, password):
    user['password_hash'] = hash_password(password)
    user['security'].update({
        'password_changed_at': now_iso(),
        'failed_logins': 0,
        'locked_until': None,
        'refresh_token_hash': None
    })


def reset_password(token, password):
    user = find_one(USERS, 'reset_token_hash', hash_token(token))
    if not user or is_past(user['security'].get('reset_expires')):
        raise ValidationFailed('Reset token is invalid or has expired', code='INVALID_RESET_TOKEN')
    _set_password(user, password)
    user['reset_token_hash'] = None
    user['security']['reset_expires'] = None
    save_document(USERS, user)
    logger.info(f"Password reset for {user['username']}")


def change_password(user, payload, current_password, new_password):
    if not check_password(current_password, user.get('password_hash')):
        raise ValidationFailed('Current password is incorrect', code='INVALID_PASSWORD')
    if current_password == new_password:
        raise ValidationFailed('New password must differ from the current one',
                               code='PASSWORD_UNCHANGED')
    _set_password(user, new_password)
    revoke_token(payload)
    return {'tokens': issue_tokens(user)}


def update_profile(user, data):
    changes = data.model_dump(exclude_none=True)
    user['profile'].update(changes)
    save_document(USERS, user)
    return public_user(user, private=True)
