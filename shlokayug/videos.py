# shlokayug/videos.py
import logging
import tempfile
from pathlib import Path

from flask import current_app
from moviepy.video.io.VideoFileClip import VideoFileClip

from shlokayug import courses
from shlokayug.database import (
    VIDEOS, VIDEO_COMMENTS, create_document, find_documents, get_document,
    new_id, save_document
)
from shlokayug.errors import Forbidden, NotFound, ValidationFailed
from shlokayug.storage import (
    delete_from_s3, generate_presigned_url, is_presigned_url_expired, upload_to_s3
)
from shlokayug.users import full_name
from shlokayug.utils import format_duration, paginate, safe_name, sort_newest, utcnow

logger = logging.getLogger(__name__)


def get_video_duration(file_path):
    """(m:ss label, whole seconds) for any container moviepy can read"""
    try:
        with VideoFileClip(str(file_path)) as clip:
            duration_sec = int(clip.duration)
            return format_duration(duration_sec), duration_sec
    except Exception as e:
        logger.warning(f"Could not read video duration: {e}")
        return "0:00", 0


def is_allowed_file(filename, allowed_extensions):
    return Path(filename or '').suffix.lower() in allowed_extensions


def _save_temp(file, suffix):
    with tempfile.NamedTemporaryFile(suffix=suffix, delete=False) as tmp_file:
        tmp_path = Path(tmp_file.name)
    file.save(tmp_path)
    return tmp_path


def _upload_thumbnail(thumbnail_file, folder):
    if not thumbnail_file or not thumbnail_file.filename:
        return '', ''
    thumb_ext = Path(thumbnail_file.filename).suffix.lower()
    thumbnail_key = f"{folder}/thumbnail{thumb_ext}"
    thumb_path = _save_temp(thumbnail_file, thumb_ext)
    try:
        upload_to_s3(thumb_path, thumbnail_key, thumbnail_file.mimetype)
    finally:
        thumb_path.unlink(missing_ok=True)
    logger.info(f"Thumbnail uploaded: {thumbnail_key}")
    return thumbnail_key, generate_presigned_url(thumbnail_key)


def upload_video(user, file, form, thumbnail_file=None):
    """Store a video in S3, persist its metadata and attach it to a lecture if asked"""
    if not file or not file.filename:
        raise ValidationFailed('No video file provided', code='NO_FILE')
    allowed = current_app.config['ALLOWED_VIDEO_EXTENSIONS']
    if not is_allowed_file(file.filename, allowed):
        raise ValidationFailed(
            f"Unsupported video format. Supported formats: {', '.join(sorted(allowed))}",
            code='INVALID_FILE_TYPE'
        )

    if thumbnail_file and thumbnail_file.filename and not is_allowed_file(
        thumbnail_file.filename, current_app.config['ALLOWED_IMAGE_EXTENSIONS']
    ):
        raise ValidationFailed('Unsupported thumbnail format', code='INVALID_FILE_TYPE')

    if form.course_id:
        course = courses.get_course_document(form.course_id)
        courses.ensure_owner(course, user)
        if form.lecture_id:
            courses.ensure_unlocked(course, user)
            courses.find_lecture(course, form.lecture_id)

    video_id = new_id()
    folder = f"videos/{video_id}_{safe_name(form.title)}_{utcnow().strftime('%Y%m%d')}"
    ext = Path(file.filename).suffix.lower()
    video_key = f"{folder}/video{ext}"

    tmp_path = _save_temp(file, ext)
    try:
        duration_label, duration_sec = get_video_duration(tmp_path)
        size_bytes = tmp_path.stat().st_size
        logger.info(f"Video duration: {duration_label} ({duration_sec}s)")
        upload_to_s3(tmp_path, video_key, file.mimetype)
    finally:
        tmp_path.unlink(missing_ok=True)

    thumbnail_key, thumbnail_url = _upload_thumbnail(thumbnail_file, folder)

    video = create_document(VIDEOS, {
        'title': form.title,
        'description': form.description or '',
        'category': form.category,
        'tags': form.tags,
        'uploader_id': user['id'],
        'uploader': {'username': user['username'], 'name': full_name(user)},
        'course_id': form.course_id,
        'lecture_id': form.lecture_id,
        'video_key': video_key,
        'presigned_url': generate_presigned_url(video_key),
        'thumbnail_key': thumbnail_key,
        'thumbnail_url': thumbnail_url,
        'duration_seconds': duration_sec,
        'duration_label': duration_label,
        'size_bytes': size_bytes,
        'visibility': form.visibility,
        'status': 'ready',
        'stats': {'views': 0, 'likes': 0, 'comments': 0},
        'liked_by': []
    }, doc_id=video_id)

    if form.course_id and form.lecture_id:
        courses.attach_media(form.course_id, form.lecture_id, video)
    logger.info(f"✅ Video uploaded: {video_id} by {user['username']}")
    return video


def refresh_urls(video, safety_margin_minutes=60):
    """Regenerate presigned URLs close to expiry; True when anything changed"""
    changed = False
    if video.get('video_key') and (
        not video.get('presigned_url')
        or is_presigned_url_expired(video['presigned_url'], safety_margin_minutes)
    ):
        video['presigned_url'] = generate_presigned_url(video['video_key'])
        changed = True
    if video.get('thumbnail_key') and (
        not video.get('thumbnail_url')
        or is_presigned_url_expired(video['thumbnail_url'], safety_margin_minutes)
    ):
        video['thumbnail_url'] = generate_presigned_url(video['thumbnail_key'])
        changed = True
    return changed


def _can_view(video, user):
    if video['status'] != 'ready':
        return False
    if video['visibility'] != 'private':
        return True
    return user is not None and (user['id'] == video['uploader_id'] or user['role'] == 'admin')


def get_video_document(video_id, user=None):
    video = get_document(VIDEOS, video_id)
    if not video or not _can_view(video, user):
        raise NotFound('Video not found', code='VIDEO_NOT_FOUND')
    return video


def video_view(video, user=None):
    data = {key: value for key, value in video.items() if key != 'liked_by'}
    data['liked'] = user is not None and user['id'] in video.get('liked_by', [])
    return data


def get_video(video_id, user=None):
    video = get_video_document(video_id, user)
    if refresh_urls(video):
        save_document(VIDEOS, video)
    return video_view(video, user)


def _public_videos():
    return [
        video for video in find_documents(VIDEOS, [('visibility', '==', 'public')])
        if video['status'] == 'ready'
    ]


def video_feed(page, limit, category=None):
    videos = _public_videos()
    if category:
        videos = [v for v in videos if v.get('category') == category]
    result = paginate(sort_newest(videos), page, limit)
    result['items'] = [video_view(v) for v in result['items']]
    return result


def search_videos(query, page, limit):
    needle = (query or '').strip().lower()
    if not needle:
        raise ValidationFailed('Search query is required', code='QUERY_REQUIRED')
    videos = [
        v for v in _public_videos()
        if needle in v['title'].lower()
        or needle in (v.get('category') or '').lower()
        or any(needle in tag for tag in v.get('tags', []))
    ]
    result = paginate(sort_newest(videos), page, limit)
    result['items'] = [video_view(v) for v in result['items']]
    return result


def my_videos(user, page, limit):
    videos = [
        v for v in find_documents(VIDEOS, [('uploader_id', '==', user['id'])])
        if v['status'] == 'ready'
    ]
    result = paginate(sort_newest(videos), page, limit)
    result['items'] = [video_view(v, user) for v in result['items']]
    return result


def record_view(video_id, user=None):
    video = get_video_document(video_id, user)
    video['stats']['views'] += 1
    save_document(VIDEOS, video)
    return video['stats']


def toggle_like(video_id, user):
    video = get_video_document(video_id, user)
    liked_by = video.setdefault('liked_by', [])
    if user['id'] in liked_by:
        liked_by.remove(user['id'])
        liked = False
    else:
        liked_by.append(user['id'])
        liked = True
    video['stats']['likes'] = len(liked_by)
    save_document(VIDEOS, video)
    return {'liked': liked, 'likes': video['stats']['likes']}


def add_comment(video_id, user, text):
    video = get_video_document(video_id, user)
    comment = create_document(VIDEO_COMMENTS, {
        'video_id': video_id,
        'author_id': user['id'],
        'author': {'username': user['username'], 'name': full_name(user)},
        'text': text
    })
    video['stats']['comments'] = video['stats'].get('comments', 0) + 1
    save_document(VIDEOS, video)
    return comment


def list_comments(video_id, page, limit, user=None):
    get_video_document(video_id, user)
    comments = sort_newest(find_documents(VIDEO_COMMENTS, [('video_id', '==', video_id)]))
    return paginate(comments, page, limit)


def delete_video(video_id, user):
    video = get_document(VIDEOS, video_id)
    if not video or video['status'] != 'ready':
        raise NotFound('Video not found', code='VIDEO_NOT_FOUND')
    if video['uploader_id'] != user['id'] and user['role'] != 'admin':
        raise Forbidden('Only the uploader can delete this video', code='NOT_VIDEO_OWNER')

    delete_from_s3(video.get('video_key'))
    delete_from_s3(video.get('thumbnail_key'))
    video['status'] = 'removed'
    video['presigned_url'] = None
    video['thumbnail_url'] = None
    save_document(VIDEOS, video)
    if video.get('course_id') and video.get('lecture_id'):
        courses.detach_media(video['course_id'], video['lecture_id'], video_id)
    logger.info(f"Video removed: {video_id}")


def refresh_expiring_urls():
    """Scheduled refresh of presigned URLs for every stored video"""
    refreshed = 0
    for video in find_documents(VIDEOS, [('status', '==', 'ready')]):
        try:
            if refresh_urls(video, safety_margin_minutes=120):
                save_document(VIDEOS, video)
                if video.get('lecture_id'):
                    courses.refresh_media_url(video['course_id'], video['lecture_id'], video)
                refreshed += 1
        except Exception as e:
            logger.error(f"URL refresh failed for video {video['id']}: {e}")
    logger.info(f"✅ Presigned URL refresh finished: {refreshed} videos updated")
    return refreshed