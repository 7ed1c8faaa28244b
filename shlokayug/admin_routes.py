# shlokayug/admin_routes.py
from flask import Blueprint, g, request

from shlokayug import admin
from shlokayug.auth import roles_required
from shlokayug.errors import success_response
from shlokayug.scheduler import scheduler_status
from shlokayug.schemas import ModeratePostRequest, ModerateUserRequest, parse
from shlokayug.utils import request_page_args
from shlokayug.videos import refresh_expiring_urls

admin_bp = Blueprint('admin', __name__)


@admin_bp.route('/dashboard/stats', methods=['GET'])
@roles_required('admin')
def dashboard_stats():
    return success_response(admin.dashboard_stats())


@admin_bp.route('/users', methods=['GET'])
@roles_required('admin')
def list_users():
    page, limit = request_page_args()
    return success_response(admin.list_users(request.args.get('role'),
                                             request.args.get('search'), page, limit))


@admin_bp.route('/users/<user_id>/moderate', methods=['POST'])
@roles_required('admin')
def moderate_user(user_id):
    data = parse(ModerateUserRequest, request.get_json(silent=True))
    user = admin.moderate_user(g.current_user, user_id, data.action, data.reason, data.days)
    return success_response({'user': user}, f'User {data.action} applied')


@admin_bp.route('/content/moderation', methods=['GET'])
@roles_required('admin')
def moderation_queue():
    page, limit = request_page_args()
    return success_response(admin.moderation_queue(page, limit))


@admin_bp.route('/content/posts/<post_id>/moderate', methods=['POST'])
@roles_required('admin')
def moderate_post(post_id):
    data = parse(ModeratePostRequest, request.get_json(silent=True))
    post = admin.moderate_post(g.current_user, post_id, data.action, data.reason)
    return success_response({'post': post}, f'Post {data.action} applied')


@admin_bp.route('/scheduler/status', methods=['GET'])
@roles_required('admin')
def get_scheduler_status():
    return success_response(scheduler_status())


@admin_bp.route('/videos/refresh-urls', methods=['POST'])
@roles_required('admin')
def manual_refresh_urls():
    refreshed = refresh_expiring_urls()
    return success_response({'refreshed': refreshed}, 'Presigned URLs refreshed')
