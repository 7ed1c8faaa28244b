import io

import pandas as pd
import pytest
from PIL import Image

from conftest import doc, published_course

from shlokayug import certificates
from shlokayug.certificates import create_qr_image, new_certificate_number, sync_master_report
from shlokayug.utils import utcnow

REPORT_BLOB = 'reports/master_certificates.xlsx'


@pytest.fixture
def completed(client, guru, student):
    """Student who finished a one-lecture course"""
    course, lecture_ids = published_course(client, guru.headers, lectures=1)
    client.post('/api/v1/enrollments/enroll', headers=student.headers,
                json={'courseId': course['id']})
    response = client.post('/api/v1/enrollments/lecture-complete', headers=student.headers,
                           json={'courseId': course['id'], 'lectureId': lecture_ids[0]})
    return course, response.get_json()['data']['certificate']


def test_certificate_number_format():
    number = new_certificate_number()
    prefix, year, suffix = number.split('-')
    assert prefix == 'SY'
    assert year == str(utcnow().year)
    assert len(suffix) == 8 and suffix == suffix.upper()


def test_qr_image_has_title_band():
    png = create_qr_image('https://shlokayug.test/verify/SY-2024-ABCDEF12',
                          'Bhagavad Gita Recitation for Beginners')
    image = Image.open(io.BytesIO(png))
    assert image.format == 'PNG'
    assert image.size[0] == 600
    assert image.size[1] > 600

    plain = Image.open(io.BytesIO(create_qr_image('https://shlokayug.test/verify/x')))
    assert plain.size == (600, 600)


class TestIssuing:
    def test_certificate_fields(self, completed, student, storage_calls):
        course, certificate = completed
        number = certificate['certificate_number']
        assert certificate['course_title'] == course['title']
        assert certificate['student_name'] == student.user['profile']['first_name'] + ' ' + \
            student.user['profile']['last_name']
        assert certificate['verification_url'] == f'https://shlokayug.test/verify/{number}'
        assert certificate['qr_url'] == f'https://firebase.test/certificates/{number}.png'
        assert storage_calls['firebase'][f'certificates/{number}.png'].startswith(b'\x89PNG')

    def test_upload_failure_still_issues(self, app, student, db, monkeypatch):
        def broken_upload(*args, **kwargs):
            raise ConnectionError('storage offline')

        monkeypatch.setattr(certificates, 'upload_bytes_to_firebase', broken_upload)
        with app.app_context():
            course = {'id': 'course1', 'title': 'Chandas', 'instructor': {'name': 'Guru'}}
            certificate = certificates.issue_certificate(student.user, course, {'id': 'enr1'})
            assert certificate['qr_url'] is None
            again = certificates.issue_certificate(student.user, course, {'id': 'enr1'})
        assert again['certificate_number'] == certificate['certificate_number']
        assert doc(db, 'certificates', certificate['certificate_number'])

    def test_mine(self, client, completed, student):
        _, certificate = completed
        data = client.get('/api/v1/certificates/mine', headers=student.headers).get_json()['data']
        assert [c['certificate_number'] for c in data['certificates']] == [
            certificate['certificate_number']
        ]

    def test_public_verification(self, client, completed):
        course, certificate = completed
        number = certificate['certificate_number']
        response = client.get(f'/api/v1/certificates/verify/{number.lower()}')
        assert response.status_code == 200
        verified = response.get_json()['data']['certificate']
        assert verified['valid'] is True
        assert verified['course_title'] == course['title']
        assert 'user_id' not in verified

        missing = client.get('/api/v1/certificates/verify/SY-2000-00000000')
        assert missing.get_json()['error']['code'] == 'CERTIFICATE_NOT_FOUND'


class TestMasterReport:
    def read_report(self, storage_calls):
        return pd.read_excel(io.BytesIO(storage_calls['firebase'][REPORT_BLOB]), engine='openpyxl')

    def test_sync_appends_new_certificates_once(self, app, completed, student, storage_calls, db):
        _, certificate = completed
        with app.app_context():
            assert sync_master_report() == 1
            assert sync_master_report() == 0

        report = self.read_report(storage_calls)
        assert list(report['Certificate Number']) == [certificate['certificate_number']]
        assert report.loc[0, 'Email'] == student.user['email']
        stored = doc(db, 'certificates', certificate['certificate_number'])
        assert stored['ready_for_report'] is False
        assert stored['reported_at']

    def test_sync_keeps_existing_rows(self, client, app, completed, guru, make_user, storage_calls):
        with app.app_context():
            sync_master_report()

        course, lecture_ids = published_course(client, guru.headers, lectures=1, title='Second')
        learner = make_user()
        client.post('/api/v1/enrollments/enroll', headers=learner.headers,
                    json={'courseId': course['id']})
        client.post('/api/v1/enrollments/lecture-complete', headers=learner.headers,
                    json={'courseId': course['id'], 'lectureId': lecture_ids[0]})

        response = client.post('/api/v1/certificates/report/sync',
                               headers=make_user(role='admin').headers)
        assert response.get_json()['data'] == {'added': 1}
        report = self.read_report(storage_calls)
        assert len(report) == 2
        assert list(report['Course Title']) == [completed[0]['title'], 'Second']

    def test_sync_is_admin_only(self, client, student):
        response = client.post('/api/v1/certificates/report/sync', headers=student.headers)
        assert response.status_code == 403
