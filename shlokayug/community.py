# shlokayug/community.py
import logging
from collections import Counter
from datetime import timedelta

from shlokayug.database import (
    FOLLOWS, POSTS, POST_COMMENTS, USERS, create_document, delete_document,
    find_documents, get_document, save_document
)
from shlokayug.errors import Conflict, Forbidden, NotFound, ValidationFailed
from shlokayug.users import full_name, get_user_by_username, public_user
from shlokayug.utils import (
    extract_hashtags, extract_mentions, now_iso, paginate, parse_iso, sort_newest, utcnow
)

logger = logging.getLogger(__name__)

IN_QUERY_LIMIT = 30
TRENDING_WINDOW_DAYS = 7


def _author(user):
    return {'username': user['username'], 'name': full_name(user)}


def _bump(user_id, counter, delta):
    user = get_document(USERS, user_id)
    if user:
        social = user.setdefault('social', {})
        social[counter] = max(0, social.get(counter, 0) + delta)
        save_document(USERS, user)


def post_view(post, user=None):
    data = {key: value for key, value in post.items() if key not in ('likes', 'reports')}
    data['liked'] = user is not None and user['id'] in post.get('likes', [])
    return data


def _page_of_posts(posts, page, limit, user=None):
    result = paginate(sort_newest(posts), page, limit)
    result['items'] = [post_view(p, user) for p in result['items']]
    return result


def _visible(posts):
    return [p for p in posts if not p.get('is_hidden')]


def get_post_document(post_id, user=None):
    post = get_document(POSTS, post_id)
    if not post:
        raise NotFound('Post not found', code='POST_NOT_FOUND')
    if post.get('is_hidden') and not (
        user and (user['role'] == 'admin' or user['id'] == post['author_id'])
    ):
        raise NotFound('Post not found', code='POST_NOT_FOUND')
    return post


# ── Posts ──

def create_post(user, data):
    post = create_document(POSTS, {
        'author_id': user['id'],
        'author': _author(user),
        'type': data.type,
        'content': data.content,
        'shloka': data.shloka.model_dump() if data.shloka else None,
        'hashtags': extract_hashtags(data.content),
        'mentions': extract_mentions(data.content),
        'likes': [],
        'stats': {'likes': 0, 'comments': 0, 'reposts': 0},
        'repost_of': None,
        'is_hidden': False,
        'reports': [],
        'report_count': 0
    })
    _bump(user['id'], 'posts_count', 1)
    logger.info(f"Post created: {post['id']} by {user['username']}")
    return post_view(post, user)


def get_post(post_id, user=None):
    return post_view(get_post_document(post_id, user), user)


def delete_post(post_id, user):
    post = get_post_document(post_id, user)
    if post['author_id'] != user['id'] and user['role'] != 'admin':
        raise Forbidden('Only the author can delete this post', code='NOT_POST_OWNER')
    remove_post(post)


def remove_post(post):
    for comment in find_documents(POST_COMMENTS, [('post_id', '==', post['id'])]):
        delete_document(POST_COMMENTS, comment['id'])
    delete_document(POSTS, post['id'])
    if post.get('repost_of'):
        original = get_document(POSTS, post['repost_of'])
        if original:
            original['stats']['reposts'] = max(0, original['stats'].get('reposts', 0) - 1)
            save_document(POSTS, original)
    _bump(post['author_id'], 'posts_count', -1)
    logger.info(f"Post deleted: {post['id']}")


def _posts_by_authors(author_ids):
    posts = []
    author_ids = list(author_ids)
    for start in range(0, len(author_ids), IN_QUERY_LIMIT):
        chunk = author_ids[start:start + IN_QUERY_LIMIT]
        posts.extend(find_documents(POSTS, [('author_id', 'in', chunk)]))
    return posts


def _following_ids(user_id):
    return [f['following_id'] for f in find_documents(FOLLOWS, [('follower_id', '==', user_id)])]


def timeline(user, page, limit):
    """Posts from followed users and the user's own"""
    author_ids = set(_following_ids(user['id']))
    author_ids.add(user['id'])
    return _page_of_posts(_visible(_posts_by_authors(author_ids)), page, limit, user)


def explore(page, limit, user=None, post_type=None):
    posts = find_documents(POSTS, [('is_hidden', '==', False)])
    if post_type:
        posts = [p for p in posts if p['type'] == post_type]
    return _page_of_posts(posts, page, limit, user)


def user_posts(username, page, limit, user=None):
    author = get_user_by_username(username)
    posts = _visible(find_documents(POSTS, [('author_id', '==', author['id'])]))
    return _page_of_posts(posts, page, limit, user)


def toggle_like(post_id, user):
    post = get_post_document(post_id, user)
    likes = post.setdefault('likes', [])
    if user['id'] in likes:
        likes.remove(user['id'])
        liked = False
    else:
        likes.append(user['id'])
        liked = True
    post['stats']['likes'] = len(likes)
    save_document(POSTS, post)
    return {'liked': liked, 'likes': post['stats']['likes']}


def repost(post_id, user):
    original = get_post_document(post_id, user)
    if original.get('repost_of'):
        original = get_post_document(original['repost_of'], user)
    already = find_documents(POSTS, [
        ('author_id', '==', user['id']), ('repost_of', '==', original['id'])
    ], limit=1)
    if already:
        raise Conflict('Post already reposted', code='ALREADY_REPOSTED')

    post = create_document(POSTS, {
        'author_id': user['id'],
        'author': _author(user),
        'type': original['type'],
        'content': original['content'],
        'shloka': original.get('shloka'),
        'hashtags': original.get('hashtags', []),
        'mentions': original.get('mentions', []),
        'likes': [],
        'stats': {'likes': 0, 'comments': 0, 'reposts': 0},
        'repost_of': original['id'],
        'original_author': original['author'],
        'is_hidden': False,
        'reports': [],
        'report_count': 0
    })
    original['stats']['reposts'] += 1
    save_document(POSTS, original)
    _bump(user['id'], 'posts_count', 1)
    return post_view(post, user)


def add_comment(post_id, user, text):
    post = get_post_document(post_id, user)
    comment = create_document(POST_COMMENTS, {
        'post_id': post_id,
        'author_id': user['id'],
        'author': _author(user),
        'text': text
    })
    post['stats']['comments'] += 1
    save_document(POSTS, post)
    return comment


def list_comments(post_id, page, limit, user=None):
    get_post_document(post_id, user)
    comments = find_documents(POST_COMMENTS, [('post_id', '==', post_id)])
    comments.sort(key=lambda c: c['created_at'])
    return paginate(comments, page, limit)


def report_post(post_id, user, reason):
    post = get_post_document(post_id, user)
    if post['author_id'] == user['id']:
        raise ValidationFailed('You cannot report your own post', code='CANNOT_REPORT_OWN')
    reports = post.setdefault('reports', [])
    if any(r['user_id'] == user['id'] for r in reports):
        raise Conflict('You have already reported this post', code='ALREADY_REPORTED')
    reports.append({'user_id': user['id'], 'reason': reason, 'reported_at': now_iso()})
    post['report_count'] = len(reports)
    save_document(POSTS, post)
    logger.warning(f"Post reported: {post_id} by {user['username']} ({reason})")
    return {'report_count': post['report_count']}


# ── Follows ──

def follow_id(follower_id, following_id):
    return f"{follower_id}_{following_id}"


def follow(user, username):
    target = get_user_by_username(username)
    if target['id'] == user['id']:
        raise ValidationFailed('You cannot follow yourself', code='CANNOT_FOLLOW_SELF')
    if not get_document(FOLLOWS, follow_id(user['id'], target['id'])):
        create_document(FOLLOWS, {
            'follower_id': user['id'],
            'following_id': target['id']
        }, doc_id=follow_id(user['id'], target['id']))
        _bump(target['id'], 'followers_count', 1)
        _bump(user['id'], 'following_count', 1)
        logger.info(f"{user['username']} followed {target['username']}")
    return {'following': True, 'user': public_user(get_document(USERS, target['id']))}


def unfollow(user, username):
    target = get_user_by_username(username)
    doc_id = follow_id(user['id'], target['id'])
    if get_document(FOLLOWS, doc_id):
        delete_document(FOLLOWS, doc_id)
        _bump(target['id'], 'followers_count', -1)
        _bump(user['id'], 'following_count', -1)
        logger.info(f"{user['username']} unfollowed {target['username']}")
    return {'following': False, 'user': public_user(get_document(USERS, target['id']))}


def _user_page(user_ids, page, limit):
    users = [get_document(USERS, user_id) for user_id in user_ids]
    users = [public_user(u) for u in users if u and u['metadata'].get('is_active', True)]
    return paginate(users, page, limit)


def followers(username, page, limit):
    target = get_user_by_username(username)
    follows = sort_newest(find_documents(FOLLOWS, [('following_id', '==', target['id'])]))
    return _user_page([f['follower_id'] for f in follows], page, limit)


def following(username, page, limit):
    target = get_user_by_username(username)
    follows = sort_newest(find_documents(FOLLOWS, [('follower_id', '==', target['id'])]))
    return _user_page([f['following_id'] for f in follows], page, limit)


def follow_suggestions(user, limit=10):
    """Active users not yet followed, verified gurus first, then by followers"""
    excluded = set(_following_ids(user['id']))
    excluded.add(user['id'])
    candidates = [
        u for u in find_documents(USERS)
        if u['id'] not in excluded and u['metadata'].get('is_active', True)
    ]
    candidates.sort(key=lambda u: (
        u.get('guru_status') == 'approved',
        u.get('social', {}).get('followers_count', 0)
    ), reverse=True)
    return [public_user(u) for u in candidates[:limit]]


# ── Hashtags & search ──

def trending_hashtags(limit=10, days=TRENDING_WINDOW_DAYS):
    since = utcnow() - timedelta(days=days)
    counts = Counter()
    for post in find_documents(POSTS, [('is_hidden', '==', False)]):
        created = parse_iso(post.get('created_at'))
        if created and created >= since:
            counts.update(post.get('hashtags', []))
    return [{'hashtag': tag, 'posts': count} for tag, count in counts.most_common(limit)]


def hashtag_posts(tag, page, limit, user=None):
    tag = tag.lstrip('#').lower()
    posts = _visible(find_documents(POSTS, [('hashtags', 'array_contains', tag)]))
    return _page_of_posts(posts, page, limit, user)


def search(query, search_type, page, limit, user=None):
    needle = (query or '').strip().lower()
    if not needle:
        raise ValidationFailed('Search query is required', code='QUERY_REQUIRED')
    results = {}
    if search_type in ('all', 'posts'):
        posts = [
            p for p in find_documents(POSTS, [('is_hidden', '==', False)])
            if needle in p['content'].lower()
            or needle.lstrip('#') in p.get('hashtags', [])
        ]
        results['posts'] = _page_of_posts(posts, page, limit, user)
    if search_type in ('all', 'users'):
        users = [
            u for u in find_documents(USERS)
            if u['metadata'].get('is_active', True) and (
                needle in u['username_lower'] or needle in full_name(u).lower()
            )
        ]
        result = paginate(users, page, limit)
        result['items'] = [public_user(u) for u in result['items']]
        results['users'] = result
    return results
