# shlokayug/video_routes.py
from flask import Blueprint, g, request

from shlokayug import videos
from shlokayug.auth import login_required, optional_login, verified_guru_required
from shlokayug.errors import success_response
from shlokayug.schemas import CommentCreate, VideoUploadForm, parse
from shlokayug.utils import request_page_args

videos_bp = Blueprint('videos', __name__)


@videos_bp.route('/upload', methods=['POST'])
@verified_guru_required
def upload():
    """multipart/form-data: file, thumbnail (optional) and metadata fields"""
    form = parse(VideoUploadForm, request.form.to_dict())
    video = videos.upload_video(g.current_user, request.files.get('file'), form,
                                request.files.get('thumbnail'))
    return success_response({'video': videos.video_view(video, g.current_user)},
                            'Video uploaded successfully', 201)


@videos_bp.route('/feed', methods=['GET'])
def feed():
    page, limit = request_page_args()
    return success_response(videos.video_feed(page, limit, request.args.get('category')))


@videos_bp.route('/search', methods=['GET'])
def search():
    page, limit = request_page_args()
    return success_response(videos.search_videos(request.args.get('q'), page, limit))


@videos_bp.route('/mine', methods=['GET'])
@login_required
def mine():
    page, limit = request_page_args()
    return success_response(videos.my_videos(g.current_user, page, limit))


@videos_bp.route('/<video_id>', methods=['GET'])
@optional_login
def get_video(video_id):
    return success_response({'video': videos.get_video(video_id, g.current_user)})


@videos_bp.route('/<video_id>/view', methods=['POST'])
@optional_login
def view(video_id):
    return success_response({'stats': videos.record_view(video_id, g.current_user)})


@videos_bp.route('/<video_id>/like', methods=['POST'])
@login_required
def like(video_id):
    return success_response(videos.toggle_like(video_id, g.current_user))


@videos_bp.route('/<video_id>/comments', methods=['GET'])
@optional_login
def list_comments(video_id):
    page, limit = request_page_args()
    return success_response(videos.list_comments(video_id, page, limit, g.current_user))


@videos_bp.route('/<video_id>/comments', methods=['POST'])
@login_required
def add_comment(video_id):
    data = parse(CommentCreate, request.get_json(silent=True))
    comment = videos.add_comment(video_id, g.current_user, data.text)
    return success_response({'comment': comment}, 'Comment added', 201)


@videos_bp.route('/<video_id>', methods=['DELETE'])
@login_required
def delete(video_id):
    videos.delete_video(video_id, g.current_user)
    return success_response(message='Video deleted')
