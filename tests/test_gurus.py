import pytest

from conftest import doc, published_course

API = '/api/v1/gurus'
ADMIN_API = '/api/v1/admin/gurus'

APPLICATION = {
    'credentials': [{
        'title': 'Vedic Pathashala certificate',
        'institution': 'Sringeri Vedic Pathashala',
        'year': 2010,
    }],
    'experienceYears': 12,
    'expertise': ['vedic_chanting', 'sanskrit_language'],
    'specializations': ['Krishna Yajurveda'],
    'motivation': 'I have taught svara and pronunciation for over a decade and want to reach '
                  'students who cannot travel to a pathashala.',
}


def apply(client, account, body=None):
    return client.post(f'{API}/apply', headers=account.headers, json=body or APPLICATION)


@pytest.fixture
def applicant(client, student):
    response = apply(client, student)
    assert response.status_code == 201, response.get_json()
    return student


def review(client, admin, applicant, action, body=None):
    return client.post(f"{ADMIN_API}/{applicant.user['id']}/{action}",
                       headers=admin.headers, json=body or {})


class TestApplying:
    def test_apply_moves_to_pending(self, client, student, db):
        response = apply(client, student)
        application = response.get_json()['data']['application']
        assert application['status'] == 'pending'
        assert application['expertise'] == ['vedic_chanting', 'sanskrit_language']
        assert application['history'][0]['from'] == 'none'

        stored = doc(db, 'users', student.user['id'])
        assert stored['guru_status'] == 'pending'
        assert stored['role'] == 'student'

    def test_cannot_apply_twice(self, client, applicant):
        response = apply(client, applicant)
        assert response.status_code == 400
        error = response.get_json()['error']
        assert error['code'] == 'INVALID_TRANSITION'
        assert error['status_from'] == 'pending'

    def test_admin_cannot_apply(self, client, admin):
        assert apply(client, admin).get_json()['error']['code'] == 'INVALID_TRANSITION'

    def test_application_validation(self, client, student):
        body = dict(APPLICATION, motivation='too short', credentials=[])
        response = apply(client, student, body)
        assert response.status_code == 400
        fields = {entry['field'] for entry in response.get_json()['error']['fields']}
        assert {'motivation', 'credentials'} <= fields

    def test_application_status(self, client, student):
        status = client.get(f'{API}/application-status', headers=student.headers)
        assert status.get_json()['data']['can_apply'] is True
        apply(client, student)
        status = client.get(f'{API}/application-status', headers=student.headers)
        data = status.get_json()['data']
        assert data['status'] == 'pending'
        assert data['can_apply'] is False


class TestReview:
    def test_approve_grants_guru_role(self, client, admin, applicant, db):
        response = review(client, admin, applicant, 'approve', {'notes': 'Strong credentials'})
        application = response.get_json()['data']['application']
        assert application['status'] == 'approved'
        assert application['review_notes'] == 'Strong credentials'

        stored = doc(db, 'users', applicant.user['id'])
        assert stored['role'] == 'guru'
        assert stored['guru_status'] == 'approved'

        dashboard = client.get(f'{API}/dashboard', headers=applicant.headers)
        assert dashboard.status_code == 200

    def test_reject_and_reapply(self, client, admin, applicant):
        response = review(client, admin, applicant, 'reject',
                          {'rejectionReason': 'Please attach documents'})
        application = response.get_json()['data']['application']
        assert application['status'] == 'rejected'
        assert application['rejection_reason'] == 'Please attach documents'

        again = review(client, admin, applicant, 'approve')
        assert again.get_json()['error']['code'] == 'INVALID_TRANSITION'

        assert apply(client, applicant).status_code == 201

    def test_reject_requires_reason(self, client, admin, applicant):
        response = review(client, admin, applicant, 'reject')
        assert response.status_code == 400

    def test_suspend_and_reactivate(self, client, admin, applicant):
        review(client, admin, applicant, 'approve')
        url = f"{ADMIN_API}/{applicant.user['id']}/status"

        missing = client.patch(url, headers=admin.headers, json={'action': 'suspend'})
        assert missing.get_json()['error']['code'] == 'REASON_REQUIRED'

        response = client.patch(url, headers=admin.headers,
                                json={'action': 'suspend', 'reason': 'Plagiarised content'})
        assert response.get_json()['data']['application']['status'] == 'suspended'

        blocked = client.post('/api/v1/courses', headers=applicant.headers, json={})
        assert blocked.get_json()['error']['code'] == 'GURU_NOT_VERIFIED'

        response = client.patch(url, headers=admin.headers, json={'action': 'activate'})
        application = response.get_json()['data']['application']
        assert application['status'] == 'approved'
        assert [step['to'] for step in application['history']] == [
            'pending', 'approved', 'suspended', 'approved'
        ]

    def test_cannot_suspend_pending(self, client, admin, applicant):
        response = client.patch(f"{ADMIN_API}/{applicant.user['id']}/status",
                                headers=admin.headers,
                                json={'action': 'suspend', 'reason': 'x'})
        assert response.get_json()['error']['code'] == 'INVALID_TRANSITION'

    def test_notes(self, client, admin, applicant):
        response = client.post(f"{ADMIN_API}/{applicant.user['id']}/notes",
                               headers=admin.headers, json={'note': 'Called references'})
        assert response.status_code == 201
        assert response.get_json()['data']['notes'][0]['author'] == admin.user['username']

    def test_unknown_application(self, client, admin, student):
        response = client.get(f"{ADMIN_API}/{student.user['id']}", headers=admin.headers)
        assert response.get_json()['error']['code'] == 'APPLICATION_NOT_FOUND'

    def test_review_is_admin_only(self, client, applicant, guru):
        response = review(client, guru, applicant, 'approve')
        assert response.status_code == 403


class TestListings:
    def test_pending_approved_and_stats(self, client, admin, applicant, guru, make_user):
        second = make_user()
        apply(client, second)

        pending = client.get(f'{ADMIN_API}/pending', headers=admin.headers).get_json()['data']
        assert [item['user']['id'] for item in pending['items']] == [
            applicant.user['id'], second.user['id']
        ]

        approved = client.get(f'{ADMIN_API}/approved', headers=admin.headers).get_json()['data']
        assert [item['user']['id'] for item in approved['items']] == [guru.user['id']]

        stats = client.get(f'{ADMIN_API}/stats', headers=admin.headers).get_json()['data']
        assert stats['counts'] == {'pending': 2, 'approved': 1, 'rejected': 0, 'suspended': 0}
        assert len(stats['recent_pending']) == 2

    def test_dashboard_counts(self, client, guru, student):
        course, _ = published_course(client, guru.headers)
        client.post('/api/v1/enrollments/enroll', headers=student.headers,
                    json={'courseId': course['id']})
        data = client.get(f'{API}/dashboard', headers=guru.headers).get_json()['data']
        assert data['courses']['published'] == 1
        assert data['enrollments'] == {'total': 1, 'active': 1, 'completed': 0}
        assert data['revenue']['total_payments'] == 0
