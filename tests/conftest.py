import hashlib
import hmac
import io
import itertools
from collections import namedtuple

import pytest
from mockfirestore import MockFirestore

from shlokayug import certificates, payments, videos
from shlokayug import app as app_module
from shlokayug.app import create_app
from shlokayug.auth import create_access_token
from shlokayug.database import USERS, create_document
from shlokayug.users import new_user_document
from shlokayug.utils import utcnow

TEST_CONFIG = {
    'TESTING': True,
    'ENVIRONMENT': 'testing',
    'RATELIMIT_ENABLED': False,
    'BCRYPT_ROUNDS': 4,
    'JWT_SECRET': 'test-access-secret',
    'JWT_REFRESH_SECRET': 'test-refresh-secret',
    'RAZORPAY_KEY_ID': 'rzp_test_key',
    'RAZORPAY_KEY_SECRET': 'rzp_test_secret',
    'RAZORPAY_WEBHOOK_SECRET': 'whsec_test',
    'SCHEDULER_ENABLED': False,
    'CERTIFICATE_VERIFY_BASE_URL': 'https://shlokayug.test/verify/',
}

PASSWORD = 'Sanskrit#2024'
LONG_DESCRIPTION = (
    'A structured journey through the Bhagavad Gita with recitation, '
    'word by word meaning and commentary.'
)

Account = namedtuple('Account', 'user token headers')


def bearer(token):
    return {'Authorization': f'Bearer {token}'}


def fake_presigned_url(key, expires_in=None):
    issued = utcnow().strftime('%Y%m%dT%H%M%SZ')
    return f"https://s3.test/{key}?X-Amz-Date={issued}&X-Amz-Expires={expires_in or 604800}"


@pytest.fixture
def db():
    return MockFirestore()


@pytest.fixture
def storage_calls(monkeypatch):
    """Replace S3 / Firebase Storage / moviepy with recorders"""
    calls = {'s3_uploads': [], 's3_deletes': [], 'firebase': {}}

    def upload_to_s3(file_path, key, content_type=None):
        calls['s3_uploads'].append(key)

    def upload_bytes(data, blob_name, content_type, public=False):
        calls['firebase'][blob_name] = data
        return f"https://firebase.test/{blob_name}"

    monkeypatch.setattr(videos, 'upload_to_s3', upload_to_s3)
    monkeypatch.setattr(videos, 'generate_presigned_url', fake_presigned_url)
    monkeypatch.setattr(videos, 'delete_from_s3', lambda key: calls['s3_deletes'].append(key))
    monkeypatch.setattr(videos, 'get_video_duration', lambda path: ('2:05', 125))
    monkeypatch.setattr(certificates, 'upload_bytes_to_firebase', upload_bytes)
    monkeypatch.setattr(certificates, 'download_from_firebase',
                        lambda blob_name: calls['firebase'].get(blob_name))
    monkeypatch.setattr(app_module, 'check_bucket', lambda: True)
    return calls


@pytest.fixture
def gateway(monkeypatch):
    """Fake Razorpay REST API"""
    state = {'requests': [], 'counter': itertools.count(1)}

    def fake_request(method, path, payload=None):
        state['requests'].append((method, path, payload))
        number = next(state['counter'])
        if path == 'orders':
            return {'id': f'order_{number}', 'amount': payload['amount'],
                    'currency': payload['currency'], 'status': 'created'}
        return {'id': f'rfnd_{number}', 'status': 'processed'}

    monkeypatch.setattr(payments, '_razorpay_request', fake_request)
    return state


@pytest.fixture
def app(db, storage_calls, gateway):
    return create_app(dict(TEST_CONFIG), db=db)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    counter = itertools.count(1)

    def factory(role='student', guru_status='none', username=None, password=PASSWORD):
        number = next(counter)
        username = username or f'{role}{number}'
        with app.app_context():
            user = new_user_document(f'{username}@example.com', username, password,
                                     'Test', f'User{number}', role=role)
            if guru_status != 'none':
                user['guru_status'] = guru_status
                user['guru'] = {
                    'status': guru_status,
                    'expertise': ['vedic_chanting'],
                    'experience_years': 10,
                    'specializations': ['Gita']
                }
            user = create_document(USERS, user)
            token = create_access_token(user)
        return Account(user, token, bearer(token))

    return factory


@pytest.fixture
def student(make_user):
    return make_user()


@pytest.fixture
def guru(make_user):
    return make_user(role='guru', guru_status='approved')


@pytest.fixture
def admin(make_user):
    return make_user(role='admin')


def sign_payment(order_id, payment_id, secret=TEST_CONFIG['RAZORPAY_KEY_SECRET']):
    return hmac.new(secret.encode(), f'{order_id}|{payment_id}'.encode(),
                    hashlib.sha256).hexdigest()


def sign_webhook(body, secret=TEST_CONFIG['RAZORPAY_WEBHOOK_SECRET']):
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def create_course(client, headers, pricing=None, title='Bhagavad Gita Recitation', **extra):
    body = {
        'title': title,
        'description': LONG_DESCRIPTION,
        'category': 'scriptures',
        'level': 'beginner',
        'tags': ['Gita', 'Recitation'],
        'pricing': pricing or {'type': 'free'},
    }
    body.update(extra)
    response = client.post('/api/v1/courses', json=body, headers=headers)
    assert response.status_code == 201, response.get_json()
    return response.get_json()['data']['course']


def add_structure(client, headers, course_id, lectures=2):
    unit = client.post(f'/api/v1/courses/{course_id}/units',
                       json={'title': 'Chapter 1'}, headers=headers).get_json()['data']['unit']
    lesson = client.post(f"/api/v1/courses/{course_id}/units/{unit['unit_id']}/lessons",
                         json={'title': 'Arjuna Vishada Yoga'},
                         headers=headers).get_json()['data']['lesson']
    lecture_ids = []
    for number in range(1, lectures + 1):
        response = client.post(
            f"/api/v1/courses/{course_id}/units/{unit['unit_id']}/lessons/{lesson['lesson_id']}/lectures",
            json={'title': f'Verses part {number}', 'duration': 10,
                  'contentUrl': f'https://cdn.test/lecture{number}.mp4',
                  'isFreePreview': number == 1},
            headers=headers
        )
        lecture_ids.append(response.get_json()['data']['lecture']['lecture_id'])
    return unit['unit_id'], lesson['lesson_id'], lecture_ids


def published_course(client, headers, pricing=None, lectures=2, **extra):
    """Course with one unit, one lesson and some lectures, already published"""
    course = create_course(client, headers, pricing, **extra)
    _, _, lecture_ids = add_structure(client, headers, course['id'], lectures)
    response = client.patch(f"/api/v1/courses/{course['id']}/publish", headers=headers)
    assert response.status_code == 200, response.get_json()
    return response.get_json()['data']['course'], lecture_ids


def doc(db, collection, doc_id):
    snapshot = db.collection(collection).document(doc_id).get()
    return snapshot.to_dict() if snapshot.exists else None


def video_upload(client, headers, filename='chant.mp4', **fields):
    data = {'title': 'Gayatri mantra', 'tags': 'mantra, Vedic', 'category': 'vedic_chanting'}
    data.update(fields)
    data['file'] = (io.BytesIO(b'\x00\x00\x00\x18ftypmp42'), filename)
    return client.post('/api/v1/videos/upload', data=data, headers=headers,
                       content_type='multipart/form-data')
