import pytest


@pytest.fixture
def pair(make_student, login):
    """Two approved students, each with a logged-in client."""
    a = make_student('25EL001', name='Asha')
    b = make_student('25EL002', name='Bilal')
    return a, login('25EL001'), b, login('25EL002')


def _connect(a_client, b_client, b_id):
    r = a_client.post('/api/connections', json={'receiver_id': b_id})
    assert r.status_code == 200, r.text
    conn_id = r.json()['connection']['id']
    r = b_client.put('/api/connections', json={'connection_id': conn_id, 'action': 'accept'})
    assert r.status_code == 200, r.text
    return conn_id


def test_connection_request_accept_and_list(pair):
    a, a_client, b, b_client = pair
    r = a_client.post('/api/connections', json={'receiver_id': b.id})
    assert r.status_code == 200
    conn = r.json()['connection']
    assert conn['status'] == 'pending'
    assert conn['sender_id'] == a.id

    pending = b_client.get('/api/connections', params={'status': 'pending'}).json()['connections']
    assert len(pending) == 1
    assert pending[0]['type'] == 'received'
    assert pending[0]['user']['name'] == 'Asha'
    assert b_client.get('/api/connections').json()['connections'] == []

    r = b_client.put('/api/connections', json={'connection_id': conn['id'], 'action': 'accept'})
    assert r.status_code == 200
    assert r.json()['connection']['status'] == 'accepted'

    mine = a_client.get('/api/connections').json()['connections']
    assert [(c['type'], c['user']['student_id']) for c in mine] == [('sent', '25EL002')]


def test_connection_request_rules(pair, make_student):
    a, a_client, b, b_client = pair
    pending_user = make_student('25EL003', approved=False)

    r = a_client.post('/api/connections', json={'receiver_id': a.id})
    assert r.status_code == 400
    assert r.json()['detail'] == 'Cannot connect with yourself'
    assert a_client.post('/api/connections', json={}).status_code == 400
    assert a_client.post('/api/connections', json={'receiver_id': 9999}).status_code == 404
    assert a_client.post('/api/connections', json={'receiver_id': pending_user.id}).status_code == 404

    assert a_client.post('/api/connections', json={'receiver_id': b.id}).status_code == 200
    r = a_client.post('/api/connections', json={'receiver_id': b.id})
    assert r.status_code == 400
    # the reverse direction is the same pair
    r = b_client.post('/api/connections', json={'receiver_id': a.id})
    assert r.status_code == 400
    assert r.json()['detail'] == 'Connection already exists'


def test_only_receiver_can_respond_once(pair):
    a, a_client, b, b_client = pair
    conn_id = a_client.post('/api/connections', json={'receiver_id': b.id}).json()['connection']['id']

    r = a_client.put('/api/connections', json={'connection_id': conn_id, 'action': 'accept'})
    assert r.status_code == 403
    r = b_client.put('/api/connections', json={'connection_id': conn_id, 'action': 'maybe'})
    assert r.status_code == 400
    r = b_client.put('/api/connections', json={'connection_id': 9999, 'action': 'accept'})
    assert r.status_code == 404

    r = b_client.put('/api/connections', json={'connection_id': conn_id, 'action': 'reject'})
    assert r.status_code == 200
    assert r.json()['connection']['status'] == 'rejected'
    r = b_client.put('/api/connections', json={'connection_id': conn_id, 'action': 'accept'})
    assert r.status_code == 400

    rejected = a_client.get('/api/connections', params={'status': 'rejected'}).json()['connections']
    assert len(rejected) == 1
    assert a_client.get('/api/connections', params={'status': 'bogus'}).status_code == 400


def test_delete_connection(pair, make_student, login):
    a, a_client, b, b_client = pair
    make_student('25EL009')
    outsider = login('25EL009')
    conn_id = _connect(a_client, b_client, b.id)

    assert a_client.delete('/api/connections').status_code == 400
    assert outsider.delete('/api/connections', params={'id': conn_id}).status_code == 403
    assert a_client.delete('/api/connections', params={'id': 9999}).status_code == 404
    r = b_client.delete('/api/connections', params={'id': conn_id})
    assert r.status_code == 200
    assert r.json() == {'success': True}
    assert a_client.get('/api/connections').json()['connections'] == []
    # once removed the pair may connect again
    assert a_client.post('/api/connections', json={'receiver_id': b.id}).status_code == 200


def test_messages_require_accepted_connection(pair):
    a, a_client, b, b_client = pair
    r = a_client.post('/api/messages', json={'receiver_id': b.id, 'content': 'hi'})
    assert r.status_code == 403
    assert r.json()['detail'] == 'You can only message connected users'

    a_client.post('/api/connections', json={'receiver_id': b.id})
    r = a_client.post('/api/messages', json={'receiver_id': b.id, 'content': 'hi'})
    assert r.status_code == 403


def test_message_validation(pair):
    a, a_client, b, b_client = pair
    _connect(a_client, b_client, b.id)
    assert a_client.post('/api/messages', json={'receiver_id': b.id, 'content': '   '}).status_code == 400
    assert a_client.post('/api/messages', json={'receiver_id': b.id}).status_code == 400
    r = a_client.post('/api/messages', json={'receiver_id': b.id, 'content': 'x' * 2001})
    assert r.status_code == 400


def test_send_thread_and_conversations(pair, make_student, login):
    a, a_client, b, b_client = pair
    c_user = make_student('25EL003', name='Chen')
    c_client = login('25EL003')
    _connect(a_client, b_client, b.id)
    _connect(c_client, a_client, a.id)

    r = a_client.post('/api/messages', json={'receiver_id': b.id, 'content': 'hello Bilal'})
    assert r.status_code == 200
    msg = r.json()['message']
    assert msg['content'] == 'hello Bilal'
    assert msg['sender']['name'] == 'Asha'
    assert msg['receiver']['name'] == 'Bilal'
    assert msg['is_read'] is False
    b_client.post('/api/messages', json={'receiver_id': a.id, 'content': 'hey Asha'})
    b_client.post('/api/messages', json={'receiver_id': a.id, 'content': 'you there?'})
    c_client.post('/api/messages', json={'receiver_id': a.id, 'content': 'from Chen'})

    convs = a_client.get('/api/messages').json()['conversations']
    assert [c['user']['name'] for c in convs] == ['Chen', 'Bilal']
    assert convs[0]['last_message'] == 'from Chen'
    assert convs[0]['unread_count'] == 1
    assert convs[1]['last_message'] == 'you there?'
    assert convs[1]['unread_count'] == 2

    thread = a_client.get('/api/messages', params={'user_id': b.id}).json()['messages']
    assert [m['content'] for m in thread] == ['hello Bilal', 'hey Asha', 'you there?']

    convs = a_client.get('/api/messages').json()['conversations']
    by_name = {c['user']['name']: c for c in convs}
    assert by_name['Bilal']['unread_count'] == 0
    assert by_name['Chen']['unread_count'] == 1
    # Bilal's view is unaffected by Asha reading
    assert b_client.get('/api/messages').json()['conversations'][0]['unread_count'] == 1
    assert a_client.get('/api/messages', params={'user_id': 9999}).status_code == 404
    assert c_user.id != b.id


def test_thread_with_unapproved_user_is_hidden(pair, make_student, login):
    a, a_client, b, b_client = pair
    pending = make_student('25EL004', approved=False)
    r = a_client.get('/api/messages', params={'user_id': pending.id})
    assert r.status_code == 404
    admin_client = login('ADMIN001', 'admin123')
    r = admin_client.get('/api/messages', params={'user_id': pending.id})
    assert r.status_code == 200
    assert r.json() == {'messages': []}


def test_duplicate_pair_caught_by_unique_constraint(pair, monkeypatch):
    a, a_client, b, b_client = pair
    assert a_client.post('/api/connections', json={'receiver_id': b.id}).status_code == 200
    # skip the lookup so the reverse insert hits the (low, high) constraint
    monkeypatch.setattr('peerfetch.repositories.ConnectionRepository.find_between', lambda self, x, y: None)
    r = b_client.post('/api/connections', json={'receiver_id': a.id})
    assert r.status_code == 400
    assert r.json()['detail'] == 'Connection already exists'
