from peerfetch.services import DEFAULT_MENTORSHIP_MESSAGE


def test_mentorship_request_and_listing(make_student, login):
    mentor = make_student('23ME001', name='Senior Mentor')
    mentee = make_student('25ME010', name='Junior')
    mentee_client = login('25ME010')
    mentor_client = login('23ME001')

    r = mentee_client.post('/api/mentorship/request', json={'mentor_id': mentor.id, 'message': '  Help with CAD?  '})
    assert r.status_code == 200
    req = r.json()['request']
    assert req['status'] == 'pending'
    assert req['message'] == 'Help with CAD?'
    assert req['mentee_id'] == mentee.id

    received = mentor_client.get('/api/mentorship/requests').json()
    assert [x['id'] for x in received['received']] == [req['id']]
    assert received['sent'] == []
    sent = mentee_client.get('/api/mentorship/requests').json()
    assert [x['id'] for x in sent['sent']] == [req['id']]
    assert sent['received'] == []


def test_mentorship_request_rules(make_student, login):
    mentor = make_student('23ME001')
    me = make_student('25ME010')
    pending = make_student('24ME002', approved=False)
    c = login('25ME010')

    r = c.post('/api/mentorship/request', json={'mentor_id': me.id})
    assert r.status_code == 400
    assert c.post('/api/mentorship/request', json={}).status_code == 400
    assert c.post('/api/mentorship/request', json={'mentor_id': 9999}).status_code == 404
    assert c.post('/api/mentorship/request', json={'mentor_id': pending.id}).status_code == 404

    r = c.post('/api/mentorship/request', json={'mentor_id': mentor.id})
    assert r.status_code == 200
    assert r.json()['request']['message'] == DEFAULT_MENTORSHIP_MESSAGE
    r = c.post('/api/mentorship/request', json={'mentor_id': mentor.id, 'message': 'again'})
    assert r.status_code == 400
    assert r.json()['detail'] == 'Request already sent'


def test_only_mentor_responds_while_pending(make_student, login):
    mentor = make_student('23ME001')
    make_student('25ME010')
    mentee_client = login('25ME010')
    mentor_client = login('23ME001')
    req_id = mentee_client.post('/api/mentorship/request', json={'mentor_id': mentor.id}).json()['request']['id']

    r = mentee_client.put('/api/mentorship/request', json={'request_id': req_id, 'action': 'accept'})
    assert r.status_code == 403
    r = mentor_client.put('/api/mentorship/request', json={'request_id': req_id, 'action': 'later'})
    assert r.status_code == 400
    r = mentor_client.put('/api/mentorship/request', json={'request_id': 9999, 'action': 'accept'})
    assert r.status_code == 404

    r = mentor_client.put('/api/mentorship/request', json={'request_id': req_id, 'action': 'accept'})
    assert r.status_code == 200
    assert r.json()['request']['status'] == 'accepted'
    r = mentor_client.put('/api/mentorship/request', json={'request_id': req_id, 'action': 'reject'})
    assert r.status_code == 400
    sent = mentee_client.get('/api/mentorship/requests').json()['sent']
    assert sent[0]['status'] == 'accepted'


def test_mentorship_needs_approved_account(client, make_student):
    mentor = make_student('23ME001')
    make_student('25ME011', approved=False)
    client.post('/api/auth/login', json={'student_id': '25ME011', 'password': 'password123'})
    r = client.post('/api/mentorship/request', json={'mentor_id': mentor.id})
    assert r.status_code == 403
    assert r.json()['detail'] == 'Account pending admin approval'


def test_get_profile(make_student, login, client):
    make_student('25EL001', name='Asha')
    assert client.get('/api/profile').status_code == 401
    profile = login('25EL001').get('/api/profile').json()['profile']
    assert profile['student_id'] == '25EL001'
    assert profile['name'] == 'Asha'
    assert profile['profile_picture'].endswith('seed=25EL001')
    assert profile['skills'] is None


def test_profile_update_partial_and_clear(make_student, login):
    make_student('25EL001')
    c = login('25EL001')
    r = c.post('/api/profile/update', json={
        'bio': '  Robotics club lead ',
        'skills': ['Python', ' python ', 'Arduino'],
        'extracurriculars': ['Debate'],
        'linkedin_url': 'https://linkedin.com/in/asha',
    })
    assert r.status_code == 200
    profile = r.json()['profile']
    assert profile['bio'] == 'Robotics club lead'
    assert profile['skills'] == ['Python', 'Arduino']
    assert profile['extracurriculars'] == ['Debate']
    assert profile['linkedin_url'] == 'https://linkedin.com/in/asha'

    # fields left out stay as they were
    r = c.post('/api/profile/update', json={'skills': ['C']})
    profile = r.json()['profile']
    assert profile['skills'] == ['C']
    assert profile['bio'] == 'Robotics club lead'

    r = c.post('/api/profile/update', json={'bio': '', 'linkedin_url': None, 'extracurriculars': []})
    profile = r.json()['profile']
    assert profile['bio'] is None
    assert profile['linkedin_url'] is None
    assert profile['extracurriculars'] is None
    assert c.get('/api/profile').json()['profile']['skills'] == ['C']


def test_profile_update_validation(make_student, login):
    make_student('25EL001')
    c = login('25EL001')
    r = c.post('/api/profile/update', json={'bio': 'kept'})
    assert r.status_code == 200

    assert c.post('/api/profile/update', json={'linkedin_url': 'ftp://example.com'}).status_code == 400
    assert c.post('/api/profile/update', json={'bio': 'x' * 1001}).status_code == 400
    # a rejected update changes nothing
    r = c.post('/api/profile/update', json={'bio': 'changed', 'profile_picture': 'not a url'})
    assert r.status_code == 400
    assert c.get('/api/profile').json()['profile']['bio'] == 'kept'


def test_pending_user_can_edit_profile(client, make_student):
    make_student('25EL002', approved=False)
    client.post('/api/auth/login', json={'student_id': '25EL002', 'password': 'password123'})
    r = client.post('/api/profile/update', json={'bio': 'Waiting for approval'})
    assert r.status_code == 200
    assert r.json()['profile']['bio'] == 'Waiting for approval'
    assert r.json()['profile']['is_approved'] is False


def test_duplicate_mentorship_caught_by_unique_constraint(make_student, login, monkeypatch):
    mentor = make_student('23ME001')
    make_student('25ME010')
    c = login('25ME010')
    assert c.post('/api/mentorship/request', json={'mentor_id': mentor.id}).status_code == 200
    monkeypatch.setattr('peerfetch.repositories.MentorshipRepository.get_for_pair', lambda self, m, s: None)
    r = c.post('/api/mentorship/request', json={'mentor_id': mentor.id})
    assert r.status_code == 400
    assert r.json()['detail'] == 'Request already sent'


def test_profile_rejects_overlong_tags(make_student, login):
    make_student('25EL001')
    c = login('25EL001')
    r = c.post('/api/profile/update', json={'skills': ['x' * 61]})
    assert r.status_code == 400
    assert '60' in r.json()['detail']
    r = c.post('/api/profile/update', json={'skills': ['x' * 60]})
    assert r.status_code == 200
