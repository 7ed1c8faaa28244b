# shlokayug/database.py

import uuid
import logging

import firebase_admin
from firebase_admin import credentials, firestore
from flask import current_app

from shlokayug.utils import now_iso

logger = logging.getLogger(__name__)

USERS = 'users'
COURSES = 'courses'
ENROLLMENTS = 'enrollments'
PAYMENTS = 'payments'
VIDEOS = 'videos'
VIDEO_COMMENTS = 'video_comments'
POSTS = 'posts'
POST_COMMENTS = 'post_comments'
FOLLOWS = 'follows'
CERTIFICATES = 'certificates'
REVOKED_TOKENS = 'revoked_tokens'


def init_firebase(creds):
    """Initialize the Firebase Admin app once"""
    if firebase_admin._apps:
        return
    cred = credentials.Certificate(creds)
    firebase_admin.initialize_app(cred, {
        'storageBucket': f"{creds['project_id']}.appspot.com"
    })
    logger.info("✅ Firebase initialized")


def get_db():
    """Firestore client bound to the current app"""
    client = current_app.extensions.get('firestore')
    if client is None:
        init_firebase(current_app.config['FIREBASE_CREDS'])
        client = firestore.client()
        current_app.extensions['firestore'] = client
    return client


def new_id():
    return uuid.uuid4().hex


def get_document(collection, doc_id):
    """Fetch a document as a dict, or None"""
    if not doc_id:
        return None
    doc = get_db().collection(collection).document(doc_id).get()
    return doc.to_dict() if doc.exists else None


def create_document(collection, data, doc_id=None):
    """Create a document; the id is stored inside the document too"""
    doc_id = doc_id or data.get('id') or new_id()
    timestamp = now_iso()
    data = dict(data)
    data['id'] = doc_id
    data.setdefault('created_at', timestamp)
    data['updated_at'] = timestamp
    get_db().collection(collection).document(doc_id).set(data)
    return data


def save_document(collection, data):
    """Overwrite a whole document (read-modify-write updates)"""
    data['updated_at'] = now_iso()
    get_db().collection(collection).document(data['id']).set(data)
    return data


def delete_document(collection, doc_id):
    get_db().collection(collection).document(doc_id).delete()


def find_documents(collection, filters=None, limit=None):
    """Query with (field, op, value) filters on top-level fields"""
    query = get_db().collection(collection)
    for field, op, value in filters or []:
        query = query.where(field, op, value)
    if limit:
        query = query.limit(limit)
    return [doc.to_dict() for doc in query.stream()]


def find_one(collection, field, value):
    results = find_documents(collection, [(field, '==', value)], limit=1)
    return results[0] if results else None


def count_documents(collection, filters=None):
    return len(find_documents(collection, filters))


def check_connection():
    """Firestore reachability for the health check"""
    try:
        list(get_db().collection(USERS).limit(1).stream())
        return True
    except Exception as e:
        logger.warning(f"Firestore health check failed: {e}")
        return False
