import json
from datetime import timedelta

import pytest

from conftest import create_course, doc, published_course, sign_payment, sign_webhook

from shlokayug.enrollments import expire_subscriptions, subscription_expiry
from shlokayug.utils import parse_iso, to_iso, utcnow

PAID = {'type': 'one_time', 'oneTime': {'amount': 499, 'currency': 'INR'}}
SUBSCRIPTION = {'type': 'subscription',
                'subscription': {'monthly': {'amount': 149, 'currency': 'INR'}}}


def enroll(client, account, course_id):
    return client.post('/api/v1/enrollments/enroll', headers=account.headers,
                       json={'courseId': course_id})


def complete_lecture(client, account, course_id, lecture_id):
    return client.post('/api/v1/enrollments/lecture-complete', headers=account.headers,
                       json={'courseId': course_id, 'lectureId': lecture_id})


def initiate(client, account, course_id, plan='one_time'):
    return client.post('/api/v1/enrollments/initiate', headers=account.headers,
                       json={'courseId': course_id, 'plan': plan}).get_json()['data']


def confirm(client, account, order_id, payment_id='pay_001'):
    return client.post('/api/v1/enrollments/confirm', headers=account.headers, json={
        'razorpay_order_id': order_id,
        'razorpay_payment_id': payment_id,
        'razorpay_signature': sign_payment(order_id, payment_id),
    })


def buy(client, account, course_id, plan='one_time', payment_id='pay_001'):
    order = initiate(client, account, course_id, plan)
    return order, confirm(client, account, order['order_id'], payment_id)


def lapse(db, enrollment_id, days=3):
    db.collection('enrollments').document(enrollment_id).update({
        'access': {'granted_at': to_iso(utcnow() - timedelta(days=30 + days)),
                   'expires_at': to_iso(utcnow() - timedelta(days=days))}
    })


class TestFreeEnrollment:
    def test_enroll_free_course(self, client, guru, student, db):
        course, _ = published_course(client, guru.headers)
        response = enroll(client, student, course['id'])
        assert response.status_code == 201
        enrollment = response.get_json()['data']['enrollment']
        assert enrollment['id'] == f"{student.user['id']}_{course['id']}"
        assert enrollment['enrollment_type'] == 'free'
        assert enrollment['status'] == 'active'
        assert enrollment['access']['expires_at'] is None
        assert doc(db, 'courses', course['id'])['stats']['enrollments'] == 1

    def test_double_enrollment_conflicts(self, client, guru, student):
        course, _ = published_course(client, guru.headers)
        enroll(client, student, course['id'])
        response = enroll(client, student, course['id'])
        assert response.status_code == 409
        assert response.get_json()['error']['code'] == 'ALREADY_ENROLLED'

    def test_paid_course_needs_payment(self, client, guru, student):
        course, _ = published_course(client, guru.headers, PAID)
        response = enroll(client, student, course['id'])
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'PAYMENT_REQUIRED'

    def test_draft_course_not_available(self, client, guru, student):
        course = create_course(client, guru.headers)
        response = enroll(client, student, course['id'])
        assert response.get_json()['error']['code'] == 'COURSE_NOT_AVAILABLE'

    def test_unknown_course(self, client, student):
        response = enroll(client, student, 'missing')
        assert response.status_code == 404
        assert response.get_json()['error']['code'] == 'COURSE_NOT_FOUND'

    def test_cancel_and_reenroll(self, client, guru, student, db):
        course, _ = published_course(client, guru.headers)
        enrollment = enroll(client, student, course['id']).get_json()['data']['enrollment']

        response = client.delete(f"/api/v1/enrollments/{enrollment['id']}",
                                 headers=student.headers)
        assert response.get_json()['data']['enrollment']['status'] == 'cancelled'
        assert doc(db, 'courses', course['id'])['stats']['enrollments'] == 0

        again = client.delete(f"/api/v1/enrollments/{enrollment['id']}", headers=student.headers)
        assert again.get_json()['error']['code'] == 'ENROLLMENT_NOT_ACTIVE'

        response = enroll(client, student, course['id'])
        assert response.status_code == 201
        assert response.get_json()['data']['enrollment']['id'] == enrollment['id']

    def test_other_user_cannot_read_enrollment(self, client, guru, student, make_user):
        course, _ = published_course(client, guru.headers)
        enrollment = enroll(client, student, course['id']).get_json()['data']['enrollment']
        stranger = make_user()
        response = client.get(f"/api/v1/enrollments/{enrollment['id']}",
                              headers=stranger.headers)
        assert response.status_code == 403

    def test_my_enrollments(self, client, guru, student):
        first, _ = published_course(client, guru.headers, title='First')
        second, _ = published_course(client, guru.headers, title='Second')
        enroll(client, student, first['id'])
        enroll(client, student, second['id'])

        data = client.get('/api/v1/enrollments/my-enrollments',
                          headers=student.headers).get_json()['data']
        assert data['pagination']['total'] == 2
        assert {item['course']['title'] for item in data['items']} == {'First', 'Second'}

        filtered = client.get('/api/v1/enrollments/my-enrollments?status=completed',
                              headers=student.headers).get_json()['data']
        assert filtered['items'] == []


class TestPaidEnrollment:
    def test_initiate_creates_order(self, client, guru, student, gateway, db):
        course, _ = published_course(client, guru.headers, PAID)
        response = client.post('/api/v1/enrollments/initiate', headers=student.headers,
                               json={'courseId': course['id']})
        assert response.status_code == 201
        order = response.get_json()['data']
        assert order['amount_paise'] == 49900
        assert order['key_id'] == 'rzp_test_key'
        assert order['transaction_id'].startswith('TXN_')

        method, path, payload = gateway['requests'][-1]
        assert (method, path) == ('POST', 'orders')
        assert payload['receipt'] == order['transaction_id']
        assert doc(db, 'payments', order['transaction_id'])['status'] == 'pending'

    def test_free_course_cannot_be_bought(self, client, guru, student):
        course, _ = published_course(client, guru.headers)
        response = client.post('/api/v1/enrollments/initiate', headers=student.headers,
                               json={'courseId': course['id']})
        assert response.get_json()['error']['code'] == 'COURSE_IS_FREE'

    def test_plan_must_match_pricing(self, client, guru, student):
        course, _ = published_course(client, guru.headers, PAID)
        response = client.post('/api/v1/enrollments/initiate', headers=student.headers,
                               json={'courseId': course['id'], 'plan': 'monthly'})
        assert response.get_json()['error']['code'] == 'INVALID_PLAN'

    def test_confirm_grants_enrollment(self, client, guru, student, db):
        course, _ = published_course(client, guru.headers, PAID)
        order, response = buy(client, student, course['id'])
        assert response.status_code == 200
        data = response.get_json()['data']
        assert data['enrollment']['enrollment_type'] == 'one_time_purchase'
        assert data['enrollment']['payment']['payment_id'] == 'pay_001'
        assert data['payment']['status'] == 'completed'
        assert 'signature' not in data['payment']

        payment = doc(db, 'payments', order['transaction_id'])
        assert payment['enrollment_id'] == data['enrollment']['id']

        access = client.get(f"/api/v1/enrollments/access/{course['id']}",
                            headers=student.headers).get_json()['data']
        assert access['has_access'] is True
        assert access['reason'] == 'enrolled'

    def test_monthly_subscription_expiry(self, client, guru, student):
        course, _ = published_course(client, guru.headers, SUBSCRIPTION)
        _, response = buy(client, student, course['id'], plan='monthly')
        enrollment = response.get_json()['data']['enrollment']
        assert enrollment['enrollment_type'] == 'monthly_subscription'
        granted = parse_iso(enrollment['access']['granted_at'])
        expires = parse_iso(enrollment['access']['expires_at'])
        assert 28 <= (expires - granted).days <= 31
        assert enrollment['subscription']['plan'] == 'monthly'

    def test_webhook_before_confirm_enrolls_once(self, client, guru, student, db):
        course, _ = published_course(client, guru.headers, PAID)
        order = initiate(client, student, course['id'])
        event = {'event': 'payment.captured', 'payload': {'payment': {'entity': {
            'id': 'pay_hook', 'order_id': order['order_id'], 'status': 'captured'
        }}}}
        body = json.dumps(event).encode()
        hook = client.post('/api/v1/payments/webhook', data=body,
                           content_type='application/json',
                           headers={'X-Razorpay-Signature': sign_webhook(body)})
        assert hook.status_code == 200
        enrollment_id = doc(db, 'payments', order['transaction_id'])['enrollment_id']

        response = confirm(client, student, order['order_id'], payment_id='pay_hook')
        assert response.status_code == 200
        assert response.get_json()['data']['enrollment']['id'] == enrollment_id
        assert doc(db, 'courses', course['id'])['stats']['enrollments'] == 1

    def test_second_order_on_active_enrollment(self, client, guru, student, db):
        course, _ = published_course(client, guru.headers, PAID)
        first = initiate(client, student, course['id'])
        second = initiate(client, student, course['id'])

        enrolled = confirm(client, student, first['order_id']).get_json()['data']['enrollment']
        again = confirm(client, student, second['order_id'], payment_id='pay_002')
        assert again.status_code == 200
        enrollment = again.get_json()['data']['enrollment']
        assert enrollment['id'] == enrolled['id']
        assert enrollment['status'] == 'active'
        assert enrollment['payment']['payment_id'] == 'pay_002'
        assert doc(db, 'courses', course['id'])['stats']['enrollments'] == 1
        assert doc(db, 'payments', second['transaction_id'])['enrollment_id'] == enrolled['id']

        blocked = client.post('/api/v1/enrollments/initiate', headers=student.headers,
                              json={'courseId': course['id']})
        assert blocked.get_json()['error']['code'] == 'ALREADY_ENROLLED'

    def test_second_subscription_payment_extends_period(self, client, guru, student, db):
        course, _ = published_course(client, guru.headers, SUBSCRIPTION)
        first = initiate(client, student, course['id'], 'monthly')
        second = initiate(client, student, course['id'], 'monthly')
        enrolled = confirm(client, student, first['order_id']).get_json()['data']['enrollment']
        extended = confirm(client, student, second['order_id'],
                           payment_id='pay_002').get_json()['data']['enrollment']

        before = parse_iso(enrolled['access']['expires_at'])
        after = parse_iso(extended['access']['expires_at'])
        assert 28 <= (after - before).days <= 31
        assert extended['subscription']['renewal_count'] == 1
        assert doc(db, 'courses', course['id'])['stats']['enrollments'] == 1


class TestAccessAndProgress:
    def test_access_reasons(self, client, guru, student):
        course, _ = published_course(client, guru.headers)
        url = f"/api/v1/enrollments/access/{course['id']}"
        assert client.get(url, headers=guru.headers).get_json()['data']['reason'] == 'owner'
        data = client.get(url, headers=student.headers).get_json()['data']
        assert data == {'has_access': False, 'reason': 'not_enrolled', 'enrollment': None}

    def test_lapsed_subscription_loses_access(self, client, guru, student, db):
        course, _ = published_course(client, guru.headers)
        enrollment = enroll(client, student, course['id']).get_json()['data']['enrollment']
        db.collection('enrollments').document(enrollment['id']).update({
            'access': {'granted_at': to_iso(utcnow() - timedelta(days=40)),
                       'expires_at': to_iso(utcnow() - timedelta(days=10))}
        })

        data = client.get(f"/api/v1/enrollments/access/{course['id']}",
                          headers=student.headers).get_json()['data']
        assert data['has_access'] is False
        assert data['reason'] == 'expired'
        assert doc(db, 'courses', course['id'])['stats']['enrollments'] == 0

    def test_progress_and_completion(self, client, guru, student, db, storage_calls):
        course, lecture_ids = published_course(client, guru.headers, lectures=2)
        enroll(client, student, course['id'])

        first = complete_lecture(client, student, course['id'], lecture_ids[0]).get_json()
        assert first['data']['certificate'] is None
        assert first['data']['enrollment']['progress']['completion_percentage'] == 50.0

        repeat = complete_lecture(client, student, course['id'], lecture_ids[0]).get_json()
        assert repeat['data']['enrollment']['progress']['lectures_completed'] == [lecture_ids[0]]

        last = complete_lecture(client, student, course['id'], lecture_ids[1]).get_json()
        assert last['message'] == 'Course completed'
        enrollment = last['data']['enrollment']
        assert enrollment['status'] == 'completed'
        assert enrollment['progress']['is_completed'] is True
        certificate = last['data']['certificate']
        assert certificate['certificate_number'].startswith('SY-')
        assert doc(db, 'certificates', certificate['certificate_number'])

        progress = client.get(f"/api/v1/enrollments/course/{course['id']}/progress",
                              headers=student.headers).get_json()['data']
        assert progress['status'] == 'completed'
        assert progress['total_lectures'] == 2

    def test_progress_without_enrollment(self, client, guru, student):
        course, _ = published_course(client, guru.headers)
        progress = client.get(f"/api/v1/enrollments/course/{course['id']}/progress",
                              headers=student.headers).get_json()['data']
        assert progress['enrolled'] is False
        assert progress['progress']['completion_percentage'] == 0

    def test_lecture_complete_requires_enrollment(self, client, guru, student):
        course, lecture_ids = published_course(client, guru.headers)
        response = complete_lecture(client, student, course['id'], lecture_ids[0])
        assert response.status_code == 403
        assert response.get_json()['error']['code'] == 'NOT_ENROLLED'

    def test_unknown_lecture(self, client, guru, student):
        course, _ = published_course(client, guru.headers)
        enroll(client, student, course['id'])
        response = complete_lecture(client, student, course['id'], 'nope')
        assert response.status_code == 404


def test_expire_subscriptions_job(app, client, guru, student, db):
    course, _ = published_course(client, guru.headers)
    enrollment = enroll(client, student, course['id']).get_json()['data']['enrollment']
    db.collection('enrollments').document(enrollment['id']).update({
        'access': {'granted_at': None, 'expires_at': to_iso(utcnow() - timedelta(minutes=1))}
    })
    with app.app_context():
        assert expire_subscriptions() == 1
        assert expire_subscriptions() == 0
    assert doc(db, 'enrollments', enrollment['id'])['status'] == 'expired'


@pytest.mark.parametrize('plan, days', [('monthly', (28, 31)), ('yearly', (365, 366))])
def test_subscription_expiry(plan, days):
    start = utcnow()
    expires = parse_iso(subscription_expiry(plan, start))
    assert days[0] <= (expires - start).days <= days[1]


def test_one_time_never_expires():
    assert subscription_expiry('one_time', utcnow()) is None


class TestSubscriptionExpiry:
    def test_completed_subscription_still_expires(self, client, guru, student, db):
        course, lecture_ids = published_course(client, guru.headers, SUBSCRIPTION, lectures=1)
        _, response = buy(client, student, course['id'], plan='monthly')
        enrollment = response.get_json()['data']['enrollment']
        finished = complete_lecture(client, student, course['id'], lecture_ids[0]).get_json()
        assert finished['data']['enrollment']['status'] == 'completed'

        lapse(db, enrollment['id'])
        access = client.get(f"/api/v1/enrollments/access/{course['id']}",
                            headers=student.headers).get_json()['data']
        assert access['has_access'] is False
        assert access['reason'] == 'expired'
        blocked = complete_lecture(client, student, course['id'], lecture_ids[0])
        assert blocked.get_json()['error']['code'] == 'ENROLLMENT_INACTIVE'

        stored = doc(db, 'enrollments', enrollment['id'])
        assert stored['status'] == 'expired'
        assert stored['progress']['is_completed'] is True

    def test_job_expires_completed_subscriptions(self, app, client, guru, student, db):
        course, lecture_ids = published_course(client, guru.headers, SUBSCRIPTION, lectures=1)
        _, response = buy(client, student, course['id'], plan='monthly')
        enrollment = response.get_json()['data']['enrollment']
        complete_lecture(client, student, course['id'], lecture_ids[0])
        lapse(db, enrollment['id'])

        with app.app_context():
            assert expire_subscriptions() == 1
        assert doc(db, 'enrollments', enrollment['id'])['status'] == 'expired'

    def test_lifetime_completion_keeps_access(self, client, guru, student):
        course, lecture_ids = published_course(client, guru.headers, PAID, lectures=1)
        buy(client, student, course['id'])
        complete_lecture(client, student, course['id'], lecture_ids[0])
        access = client.get(f"/api/v1/enrollments/access/{course['id']}",
                            headers=student.headers).get_json()['data']
        assert access['has_access'] is True


class TestSubscriptionManagement:
    API = '/api/v1/enrollments'

    @pytest.fixture
    def subscription(self, client, guru, student):
        course, _ = published_course(client, guru.headers, SUBSCRIPTION)
        _, response = buy(client, student, course['id'], plan='monthly')
        return course, response.get_json()['data']['enrollment']

    def cancel(self, client, account, enrollment_id, **body):
        body.setdefault('reason', 'not_using')
        return client.post(f'{self.API}/{enrollment_id}/subscription/cancel',
                           headers=account.headers, json=body)

    def renew(self, client, account, enrollment_id, **body):
        return client.post(f'{self.API}/{enrollment_id}/subscription/renew',
                           headers=account.headers, json=body)

    def test_my_subscriptions(self, client, guru, student, subscription):
        free, _ = published_course(client, guru.headers, title='Free course')
        enroll(client, student, free['id'])

        data = client.get(f'{self.API}/my-subscriptions', headers=student.headers).get_json()['data']
        assert [s['id'] for s in data['subscriptions']] == [subscription[1]['id']]
        item = data['subscriptions'][0]
        assert item['next_action'] == {'type': 'renewal_due',
                                       'date': subscription[1]['access']['expires_at']}
        assert item['course']['title'] == subscription[0]['title']
        assert data['summary'] == {'active': 1, 'cancelling': 0, 'expired': 0, 'cancelled': 0}

    def test_cancel_at_period_end_then_resume(self, client, student, subscription):
        course, enrollment = subscription
        response = self.cancel(client, student, enrollment['id'], feedback='Exams coming up')
        assert response.status_code == 200
        cancelled = response.get_json()['data']['enrollment']
        assert cancelled['status'] == 'active'
        assert cancelled['subscription']['cancel_at_period_end'] is True
        assert cancelled['subscription']['cancellation']['reason'] == 'not_using'

        access = client.get(f"{self.API}/access/{course['id']}", headers=student.headers)
        assert access.get_json()['data']['has_access'] is True
        data = client.get(f'{self.API}/my-subscriptions', headers=student.headers).get_json()['data']
        assert data['subscriptions'][0]['next_action']['type'] == 'ends'
        assert data['summary']['cancelling'] == 1

        again = self.cancel(client, student, enrollment['id'])
        assert again.get_json()['error']['code'] == 'ALREADY_CANCELLED'

        resumed = self.renew(client, student, enrollment['id'])
        assert resumed.status_code == 200
        result = resumed.get_json()['data']
        assert result['order'] is None
        assert result['enrollment']['subscription']['cancel_at_period_end'] is False

    def test_immediate_cancel_and_paid_renewal(self, client, student, subscription, db):
        course, enrollment = subscription
        response = self.cancel(client, student, enrollment['id'], immediate=True)
        assert response.get_json()['data']['enrollment']['status'] == 'cancelled'
        assert doc(db, 'courses', course['id'])['stats']['enrollments'] == 0

        renewal = self.renew(client, student, enrollment['id'])
        assert renewal.status_code == 201
        order = renewal.get_json()['data']['order']
        assert order['amount_paise'] == 14900

        confirmed = confirm(client, student, order['order_id'], payment_id='pay_renew')
        renewed = confirmed.get_json()['data']['enrollment']
        assert renewed['id'] == enrollment['id']
        assert renewed['status'] == 'active'
        assert renewed['subscription']['renewal_count'] == 1
        assert doc(db, 'courses', course['id'])['stats']['enrollments'] == 1

    def test_expired_subscription_needs_renewal(self, client, student, subscription, db):
        _, enrollment = subscription
        lapse(db, enrollment['id'])
        data = client.get(f'{self.API}/my-subscriptions', headers=student.headers).get_json()['data']
        assert data['subscriptions'][0]['status'] == 'expired'
        assert data['subscriptions'][0]['next_action'] == {'type': 'renew', 'date': None}

        cancel = self.cancel(client, student, enrollment['id'])
        assert cancel.get_json()['error']['code'] == 'SUBSCRIPTION_NOT_ACTIVE'
        assert self.renew(client, student, enrollment['id']).status_code == 201

    def test_active_subscription_cannot_renew(self, client, student, subscription):
        response = self.renew(client, student, subscription[1]['id'])
        assert response.status_code == 409
        assert response.get_json()['error']['code'] == 'SUBSCRIPTION_ACTIVE'

    def test_only_subscriptions(self, client, guru, student):
        course, _ = published_course(client, guru.headers)
        enrollment = enroll(client, student, course['id']).get_json()['data']['enrollment']
        response = self.cancel(client, student, enrollment['id'])
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'NOT_A_SUBSCRIPTION'

    def test_cancel_validation_and_ownership(self, client, student, subscription, make_user):
        _, enrollment = subscription
        assert self.cancel(client, student, enrollment['id'], reason='bored').status_code == 400
        assert self.cancel(client, make_user(), enrollment['id']).status_code == 403


class TestBookmarks:
    API = '/api/v1/enrollments/bookmarks'

    def bookmark(self, client, account, course_id, lecture_id, **extra):
        body = {'courseId': course_id, 'lectureId': lecture_id}
        body.update(extra)
        return client.post(self.API, headers=account.headers, json=body)

    def test_add_list_remove(self, client, guru, student):
        course, lecture_ids = published_course(client, guru.headers)
        enroll(client, student, course['id'])

        response = self.bookmark(client, student, course['id'], lecture_ids[1],
                                 timestamp=95, note='Svara on the second pada')
        assert response.status_code == 201
        saved = response.get_json()['data']['bookmark']
        assert saved['lecture_title'] == 'Verses part 2'
        self.bookmark(client, student, course['id'], lecture_ids[1], timestamp=10)

        listed = client.get(f"{self.API}/{course['id']}", headers=student.headers)
        assert [b['timestamp'] for b in listed.get_json()['data']['bookmarks']] == [10, 95]

        url = f"{self.API}/{course['id']}/{saved['bookmark_id']}"
        assert client.delete(url, headers=student.headers).status_code == 200
        missing = client.delete(url, headers=student.headers)
        assert missing.status_code == 404
        assert missing.get_json()['error']['code'] == 'BOOKMARK_NOT_FOUND'

    def test_requires_enrollment_and_lecture(self, client, guru, student):
        course, lecture_ids = published_course(client, guru.headers)
        response = self.bookmark(client, student, course['id'], lecture_ids[0])
        assert response.get_json()['error']['code'] == 'NOT_ENROLLED'

        enroll(client, student, course['id'])
        assert self.bookmark(client, student, course['id'], 'nope').status_code == 404
        negative = self.bookmark(client, student, course['id'], lecture_ids[0], timestamp=-5)
        assert negative.status_code == 400


def test_progress_summary(client, guru, student):
    first, first_lectures = published_course(client, guru.headers, title='First', lectures=1)
    second, second_lectures = published_course(client, guru.headers, title='Second', lectures=2)
    enroll(client, student, first['id'])
    enroll(client, student, second['id'])
    complete_lecture(client, student, first['id'], first_lectures[0])
    complete_lecture(client, student, second['id'], second_lectures[0])

    summary = client.get('/api/v1/enrollments/progress/summary',
                         headers=student.headers).get_json()['data']
    assert summary['total_enrollments'] == 2
    assert summary['by_status'] == {'completed': 1, 'active': 1}
    assert summary['courses_completed'] == 1
    assert summary['lectures_completed'] == 2
    assert summary['average_completion'] == 75.0


class TestRatings:
    def rate(self, client, account, course_id, **body):
        return client.post(f'/api/v1/courses/{course_id}/rating', headers=account.headers,
                           json=body)

    def test_average_and_rerating(self, client, guru, student, make_user, db):
        course, _ = published_course(client, guru.headers)
        other = make_user()
        for account in (student, other):
            enroll(client, account, course['id'])

        self.rate(client, student, course['id'], rating=5, review='Clear pronunciation')
        result = self.rate(client, other, course['id'], rating=4).get_json()['data']
        assert (result['ratings_average'], result['ratings_count']) == (4.5, 2)
        assert result['rating']['value'] == 4

        self.rate(client, other, course['id'], rating=2)
        stats = doc(db, 'courses', course['id'])['stats']
        assert (stats['ratings_average'], stats['ratings_count']) == (3.5, 2)

    def test_rating_rules(self, client, guru, student):
        course, _ = published_course(client, guru.headers)
        assert self.rate(client, student, course['id'], rating=5).get_json()['error']['code'] == \
            'NOT_ENROLLED'
        enroll(client, student, course['id'])
        assert self.rate(client, student, course['id'], rating=6).status_code == 400
        own = self.rate(client, guru, course['id'], rating=5)
        assert own.get_json()['error']['code'] == 'CANNOT_RATE_OWN_COURSE'

    def test_sort_by_rating(self, client, guru, student):
        plain, _ = published_course(client, guru.headers, title='Plain')
        loved, _ = published_course(client, guru.headers, title='Loved')
        enroll(client, student, loved['id'])
        self.rate(client, student, loved['id'], rating=5)

        data = client.get('/api/v1/courses?sort=rating').get_json()['data']
        assert [item['id'] for item in data['items']] == [loved['id'], plain['id']]
