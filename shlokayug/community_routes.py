# shlokayug/community_routes.py
from flask import Blueprint, g, request

from shlokayug import community
from shlokayug.auth import login_required, optional_login
from shlokayug.errors import success_response
from shlokayug.schemas import CommentCreate, PostCreate, ReportRequest, parse
from shlokayug.utils import request_page_args

community_bp = Blueprint('community', __name__)


# ── Posts ──

@community_bp.route('/posts', methods=['POST'])
@login_required
def create_post():
    data = parse(PostCreate, request.get_json(silent=True))
    post = community.create_post(g.current_user, data)
    return success_response({'post': post}, 'Post created', 201)


@community_bp.route('/posts/<post_id>', methods=['GET'])
@optional_login
def get_post(post_id):
    return success_response({'post': community.get_post(post_id, g.current_user)})


@community_bp.route('/posts/<post_id>', methods=['DELETE'])
@login_required
def delete_post(post_id):
    community.delete_post(post_id, g.current_user)
    return success_response(message='Post deleted')


@community_bp.route('/timeline', methods=['GET'])
@login_required
def timeline():
    page, limit = request_page_args()
    return success_response(community.timeline(g.current_user, page, limit))


@community_bp.route('/explore', methods=['GET'])
@optional_login
def explore():
    page, limit = request_page_args()
    return success_response(community.explore(page, limit, g.current_user,
                                              request.args.get('type')))


@community_bp.route('/users/<username>/posts', methods=['GET'])
@optional_login
def user_posts(username):
    page, limit = request_page_args()
    return success_response(community.user_posts(username, page, limit, g.current_user))


@community_bp.route('/posts/<post_id>/like', methods=['POST'])
@login_required
def like(post_id):
    return success_response(community.toggle_like(post_id, g.current_user))


@community_bp.route('/posts/<post_id>/repost', methods=['POST'])
@login_required
def repost(post_id):
    post = community.repost(post_id, g.current_user)
    return success_response({'post': post}, 'Reposted', 201)


@community_bp.route('/posts/<post_id>/comments', methods=['GET'])
@optional_login
def list_comments(post_id):
    page, limit = request_page_args()
    return success_response(community.list_comments(post_id, page, limit, g.current_user))


@community_bp.route('/posts/<post_id>/comments', methods=['POST'])
@login_required
def add_comment(post_id):
    data = parse(CommentCreate, request.get_json(silent=True))
    comment = community.add_comment(post_id, g.current_user, data.text)
    return success_response({'comment': comment}, 'Comment added', 201)


@community_bp.route('/posts/<post_id>/report', methods=['POST'])
@login_required
def report(post_id):
    data = parse(ReportRequest, request.get_json(silent=True))
    result = community.report_post(post_id, g.current_user, data.reason)
    return success_response(result, 'Post reported')


# ── Follows ──

@community_bp.route('/users/<username>/follow', methods=['POST'])
@login_required
def follow(username):
    return success_response(community.follow(g.current_user, username), 'Followed')


@community_bp.route('/users/<username>/follow', methods=['DELETE'])
@login_required
def unfollow(username):
    return success_response(community.unfollow(g.current_user, username), 'Unfollowed')


@community_bp.route('/users/<username>/followers', methods=['GET'])
def followers(username):
    page, limit = request_page_args()
    return success_response(community.followers(username, page, limit))


@community_bp.route('/users/<username>/following', methods=['GET'])
def following(username):
    page, limit = request_page_args()
    return success_response(community.following(username, page, limit))


@community_bp.route('/suggestions/follow', methods=['GET'])
@login_required
def suggestions():
    _, limit = request_page_args()
    return success_response({'users': community.follow_suggestions(g.current_user, limit)})


# ── Discovery ──

@community_bp.route('/trending/hashtags', methods=['GET'])
def trending():
    _, limit = request_page_args()
    return success_response({'hashtags': community.trending_hashtags(limit)})


@community_bp.route('/hashtags/<tag>/posts', methods=['GET'])
@optional_login
def hashtag_posts(tag):
    page, limit = request_page_args()
    return success_response(community.hashtag_posts(tag, page, limit, g.current_user))


@community_bp.route('/search', methods=['GET'])
@optional_login
def search():
    page, limit = request_page_args()
    search_type = request.args.get('type', 'all')
    if search_type not in ('all', 'posts', 'users'):
        search_type = 'all'
    return success_response(community.search(request.args.get('q'), search_type,
                                             page, limit, g.current_user))
