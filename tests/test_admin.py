from conftest import PASSWORD, doc, published_course

API = '/api/v1/admin'


def moderate(client, admin, user_id, **body):
    return client.post(f'{API}/users/{user_id}/moderate', headers=admin.headers, json=body)


def login(client, account):
    return client.post('/api/v1/auth/login', json={
        'identifier': account.user['username'], 'password': PASSWORD
    })


def test_admin_endpoints_require_admin(client, student, guru):
    for account in (student, guru):
        response = client.get(f'{API}/dashboard/stats', headers=account.headers)
        assert response.status_code == 403
        assert response.get_json()['error']['code'] == 'INSUFFICIENT_ROLE'


def test_dashboard_stats(client, admin, guru, student):
    course, _ = published_course(client, guru.headers)
    client.post('/api/v1/enrollments/enroll', headers=student.headers,
                json={'courseId': course['id']})

    stats = client.get(f'{API}/dashboard/stats', headers=admin.headers).get_json()['data']
    assert stats['users']['total'] == 3
    assert stats['users']['by_role'] == {'admin': 1, 'guru': 1, 'student': 1}
    assert stats['courses']['by_status'] == {'published': 1}
    assert stats['enrollments']['by_status'] == {'active': 1}
    assert stats['revenue'] == {}


def test_list_users_filters(client, admin, guru, student):
    gurus = client.get(f'{API}/users?role=guru', headers=admin.headers).get_json()['data']
    assert [u['id'] for u in gurus['items']] == [guru.user['id']]
    assert gurus['items'][0]['guru_status'] == 'approved'

    found = client.get(f"{API}/users?search={student.user['username']}",
                       headers=admin.headers).get_json()['data']
    assert [u['id'] for u in found['items']] == [student.user['id']]
    assert found['items'][0]['email'] == student.user['email']


class TestUserModeration:
    def test_ban_blocks_login_and_tokens(self, client, admin, student, db):
        response = moderate(client, admin, student.user['id'], action='ban',
                            reason='Harassment', days=7)
        assert response.status_code == 200
        metadata = response.get_json()['data']['user']['metadata']
        assert metadata['ban_reason'] == 'Harassment'
        assert metadata['moderation_log'][0]['action'] == 'ban'

        assert login(client, student).get_json()['error']['code'] == 'ACCOUNT_SUSPENDED'
        profile = client.get('/api/v1/auth/profile', headers=student.headers)
        assert profile.status_code == 403

        moderate(client, admin, student.user['id'], action='unban')
        assert login(client, student).status_code == 200

    def test_permanent_ban(self, client, admin, student, db):
        moderate(client, admin, student.user['id'], action='ban', reason='Spam')
        banned_until = doc(db, 'users', student.user['id'])['metadata']['banned_until']
        assert banned_until[:4] >= '2100'

    def test_deactivate(self, client, admin, student):
        moderate(client, admin, student.user['id'], action='deactivate')
        profile = client.get('/api/v1/auth/profile', headers=student.headers)
        assert profile.get_json()['error']['code'] == 'ACCOUNT_INACTIVE'
        moderate(client, admin, student.user['id'], action='activate')
        assert client.get('/api/v1/auth/profile', headers=student.headers).status_code == 200

    def test_cannot_moderate_self(self, client, admin):
        response = moderate(client, admin, admin.user['id'], action='deactivate')
        assert response.get_json()['error']['code'] == 'CANNOT_MODERATE_SELF'

    def test_unknown_action(self, client, admin, student):
        response = moderate(client, admin, student.user['id'], action='vanish')
        assert response.status_code == 400


class TestContentModeration:
    def reported_post(self, client, author, reporter):
        post = client.post('/api/v1/community/posts', headers=author.headers,
                           json={'content': 'Buy cheap rudraksha now'}).get_json()['data']['post']
        client.post(f"/api/v1/community/posts/{post['id']}/report", headers=reporter.headers,
                    json={'reason': 'spam'})
        return post

    def test_queue_lists_reported_posts(self, client, admin, student, make_user):
        post = self.reported_post(client, student, make_user())
        client.post('/api/v1/community/posts', headers=student.headers,
                    json={'content': 'Harmless post'})

        queue = client.get(f'{API}/content/moderation', headers=admin.headers).get_json()['data']
        assert [item['id'] for item in queue['items']] == [post['id']]
        assert queue['items'][0]['reports'][0]['reason'] == 'spam'

    def test_hide_and_restore(self, client, admin, student, make_user):
        post = self.reported_post(client, student, make_user())
        url = f"{API}/content/posts/{post['id']}/moderate"

        hidden = client.post(url, headers=admin.headers, json={'action': 'hide', 'reason': 'spam'})
        assert hidden.get_json()['data']['post']['is_hidden'] is True
        assert client.get(f"/api/v1/community/posts/{post['id']}").status_code == 404

        restored = client.post(url, headers=admin.headers, json={'action': 'restore'})
        data = restored.get_json()['data']['post']
        assert data['is_hidden'] is False
        assert data['report_count'] == 0
        queue = client.get(f'{API}/content/moderation', headers=admin.headers).get_json()['data']
        assert queue['items'] == []

    def test_delete(self, client, admin, student, make_user, db):
        post = self.reported_post(client, student, make_user())
        response = client.post(f"{API}/content/posts/{post['id']}/moderate",
                               headers=admin.headers, json={'action': 'delete'})
        assert response.get_json()['data'] == {'post': None}
        assert doc(db, 'posts', post['id']) is None


def test_scheduler_status_endpoint(client, admin):
    data = client.get(f'{API}/scheduler/status', headers=admin.headers).get_json()['data']
    assert data['running'] is False
    assert isinstance(data['jobs'], list)
