# shlokayug/auth_routes.py
from flask import Blueprint, current_app, g, request

from shlokayug import users
from shlokayug.auth import login_required
from shlokayug.errors import success_response
from shlokayug.extensions import limiter
from shlokayug.schemas import (
    ChangePasswordRequest, ForgotPasswordRequest, LoginRequest, ProfileUpdate,
    RefreshRequest, RegisterRequest, ResetPasswordRequest, TokenRequest, parse
)

auth_bp = Blueprint('auth', __name__)


def auth_limit():
    return current_app.config['RATELIMIT_AUTH']


@auth_bp.route('/register', methods=['POST'])
@limiter.limit(auth_limit)
def register():
    data = parse(RegisterRequest, request.get_json(silent=True))
    result = users.register(data)
    return success_response(result, 'User registered successfully', 201)


@auth_bp.route('/login', methods=['POST'])
@limiter.limit(auth_limit)
def login():
    data = parse(LoginRequest, request.get_json(silent=True))
    return success_response(users.login(data.identifier, data.password), 'Login successful')


@auth_bp.route('/refresh-token', methods=['POST'])
def refresh_token():
    data = parse(RefreshRequest, request.get_json(silent=True))
    return success_response(users.refresh(data.refresh_token), 'Token refreshed')


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    users.logout(g.current_user, g.token_payload)
    return success_response(message='Logged out successfully')


@auth_bp.route('/verify-email', methods=['POST'])
def verify_email():
    data = parse(TokenRequest, request.get_json(silent=True))
    return success_response({'user': users.verify_email(data.token)}, 'Email verified')


@auth_bp.route('/resend-verification', methods=['POST'])
@login_required
def resend_verification():
    return success_response(users.resend_verification(g.current_user),
                            'Verification email sent')


@auth_bp.route('/forgot-password', methods=['POST'])
@limiter.limit(auth_limit)
def forgot_password():
    data = parse(ForgotPasswordRequest, request.get_json(silent=True))
    return success_response(users.forgot_password(data.email),
                            'If the email is registered, a reset link has been sent')


@auth_bp.route('/reset-password', methods=['POST'])
def reset_password():
    data = parse(ResetPasswordRequest, request.get_json(silent=True))
    users.reset_password(data.token, data.password)
    return success_response(message='Password reset successful, please log in')


@auth_bp.route('/change-password', methods=['POST'])
@login_required
def change_password():
    data = parse(ChangePasswordRequest, request.get_json(silent=True))
    result = users.change_password(g.current_user, g.token_payload,
                                   data.current_password, data.new_password)
    return success_response(result, 'Password changed successfully')


@auth_bp.route('/profile', methods=['GET'])
@login_required
def get_profile():
    return success_response({'user': users.public_user(g.current_user, private=True)})


@auth_bp.route('/profile', methods=['PATCH'])
@login_required
def update_profile():
    data = parse(ProfileUpdate, request.get_json(silent=True))
    return success_response({'user': users.update_profile(g.current_user, data)},
                            'Profile updated')
