def _named(received, name):
    return [pkt['args'] for pkt in received if pkt['name'] == name]


def _join(sio, username, room='R1', **extra):
    payload = {'roomId': room, 'username': username, 'role': 'player', 'admin': False}
    payload.update(extra)
    sio.emit('joinRoom', payload)
    return sio.get_received()


def test_socket_connect_and_join(sio_client):
    assert sio_client.is_connected('/')
    received = _join(sio_client, 'alice', admin=True, stories=['story 1'], time=90)

    names = [pkt['name'] for pkt in received]
    assert 'roomUpdate' in names
    assert _named(received, 'roomUpdate')[0][0] == [{'username': 'alice', 'role': 'player', 'admin': True}]
    assert _named(received, 'roomState')[0][0] == {'revealed': False, 'votes': {'alice': ''}}
    assert _named(received, 'userStoriesUpdate')[0][0] == ['story 1']
    timer = _named(received, 'timerState')[0][0]
    assert timer['duration'] == 90
    assert timer['running'] is False
    assert 'serverTime' in timer


def test_join_snapshot_is_unicast(sio_factory):
    alice = sio_factory()
    bob = sio_factory()
    _join(alice, 'alice')
    _join(bob, 'bob')

    received = alice.get_received()
    updates = _named(received, 'roomUpdate')
    assert [m['username'] for m in updates[-1][0]] == ['alice', 'bob']
    assert _named(received, 'roomState') == []


def test_vote_and_reveal_flow(sio_factory):
    alice = sio_factory()
    bob = sio_factory()
    carol = sio_factory()
    _join(alice, 'alice')
    _join(bob, 'bob')
    _join(carol, 'carol', role='spectator')
    alice.get_received()
    bob.get_received()

    alice.emit('vote', {'roomId': 'R1', 'username': 'alice', 'card': '3'})
    bob.emit('vote', {'roomId': 'R1', 'username': 'bob', 'card': '8'})
    carol.emit('vote', {'roomId': 'R1', 'username': 'carol', 'card': '?'})

    seen = carol.get_received()
    assert _named(seen, 'userVoted') == [['alice'], ['bob'], ['carol']]
    assert _named(seen, 'votesUpdate')[-1][0] == {'alice': '3', 'bob': '8', 'carol': '?'}

    # Bare room id string is accepted for reveal/reset
    alice.emit('reveal', 'R1')
    revealed = _named(bob.get_received(), 'revealVotes')[0][0]
    assert revealed['average'] == 5.5
    assert revealed['mostVoted'] == '3'
    assert revealed['votes']['carol'] == '?'

    bob.emit('reset', {'roomId': 'R1'})
    reset = [pkt for pkt in alice.get_received() if pkt['name'] == 'resetVotes']
    assert len(reset) == 1
    assert reset[0]['args'] == []


def test_disconnect_removes_member(sio_factory):
    alice = sio_factory()
    bob = sio_factory()
    _join(alice, 'alice')
    _join(bob, 'bob')
    alice.get_received()

    bob.disconnect()
    received = alice.get_received()
    assert [m['username'] for m in _named(received, 'roomUpdate')[-1][0]] == ['alice']
    assert _named(received, 'votesUpdate')[-1][0] == {'alice': ''}


def test_leave_room_detaches_connection(sio_factory):
    alice = sio_factory()
    bob = sio_factory()
    _join(alice, 'alice')
    _join(bob, 'bob')
    alice.get_received()

    alice.emit('leaveRoom', {})
    assert alice.get_received() == []
    assert [m['username'] for m in _named(bob.get_received(), 'roomUpdate')[-1][0]] == ['bob']

    bob.emit('vote', {'roomId': 'R1', 'username': 'bob', 'card': '2'})
    assert alice.get_received() == []


def test_stale_tab_disconnect_keeps_reclaimed_member(flask_app, sio_factory, client):
    old_tab = sio_factory()
    new_tab = sio_factory()
    _join(old_tab, 'alice')
    _join(new_tab, 'alice')

    old_tab.disconnect()
    state = client.get('/api/rooms/R1').get_json()
    assert [m['username'] for m in state['participants']] == ['alice']


def test_check_if_room_exists(sio_factory):
    asker = sio_factory()
    member = sio_factory()
    asker.emit('checkIfRoomExists', {'roomId': 'R1'})
    assert _named(asker.get_received(), 'checkIfRoomExistsResponse') == [[{'exists': False}]]

    _join(member, 'alice')
    asker.emit('checkIfRoomExists', 'R1')
    assert _named(asker.get_received(), 'checkIfRoomExistsResponse') == [[{'exists': True}]]
    assert _named(member.get_received(), 'checkIfRoomExistsResponse') == []


def test_change_role_and_username(sio_factory):
    alice = sio_factory()
    bob = sio_factory()
    _join(alice, 'alice')
    _join(bob, 'bob')
    bob.get_received()

    alice.emit('vote', {'roomId': 'R1', 'username': 'alice', 'card': '13'})
    alice.emit('changeUserRole', {'roomId': 'R1', 'username': 'alice'})
    received = bob.get_received()
    assert _named(received, 'roomUpdate')[-1][0][0]['role'] == 'spectator'
    assert _named(received, 'votesUpdate')[-1][0]['alice'] == ''

    alice.emit('changeUsername', {'roomId': 'R1', 'oldUsername': 'alice', 'newUsername': 'bob'})
    errors = _named(alice.get_received(), 'error')
    assert errors[-1][0]['code'] == 'usernameTaken'
    assert _named(bob.get_received(), 'roomUpdate') == []

    alice.emit('changeUsername', {'roomId': 'R1', 'oldUsername': 'alice', 'newUsername': 'ana'})
    members = _named(bob.get_received(), 'roomUpdate')[-1][0]
    assert [m['username'] for m in members] == ['ana', 'bob']


def test_stories_and_timer_broadcast(sio_factory):
    alice = sio_factory()
    bob = sio_factory()
    _join(alice, 'alice')
    _join(bob, 'bob')
    bob.get_received()

    alice.emit('addUserStories', {'roomId': 'R1', 'userStories': ['login', 'logout']})
    assert _named(bob.get_received(), 'userStoriesUpdate') == [[['login', 'logout']]]

    alice.emit('startTimer', {'roomId': 'R1', 'duration': 60})
    started = _named(bob.get_received(), 'timerState')[0][0]
    assert started['duration'] == 60
    assert started['running'] is True
    assert started['startedAt'] is not None

    alice.emit('pauseTimer', {'roomId': 'R1'})
    paused = _named(bob.get_received(), 'timerState')[0][0]
    assert paused['running'] is False
    assert paused['startedAt'] is None
    assert 0 <= paused['duration'] <= 60

    alice.emit('resetTimer', {'roomId': 'R1', 'duration': 120})
    reset = _named(bob.get_received(), 'timerState')[0][0]
    assert reset['duration'] == 120
    assert reset['running'] is False


def test_malformed_payload_reports_error(sio_client):
    sio_client.emit('joinRoom', {'roomId': 'R1'})
    errors = _named(sio_client.get_received(), 'error')
    assert errors == [[{'code': 'invalidPayload', 'message': 'username is required'}]]

    sio_client.emit('startTimer', {'roomId': 'R1', 'duration': 'soon'})
    errors = _named(sio_client.get_received(), 'error')
    assert errors[0][0]['code'] == 'invalidPayload'

    sio_client.emit('addUserStories', {'roomId': 'R1', 'userStories': 'not a list'})
    assert _named(sio_client.get_received(), 'error')[0][0]['code'] == 'invalidPayload'


def test_unknown_room_events_are_silent(sio_client):
    sio_client.emit('vote', {'roomId': 'nope', 'username': 'x', 'card': '1'})
    sio_client.emit('reveal', {'roomId': 'nope'})
    sio_client.emit('reset', {'roomId': 'nope'})
    sio_client.emit('changeUserRole', {'roomId': 'nope', 'username': 'x'})
    sio_client.emit('pauseTimer', {'roomId': 'nope'})
    sio_client.emit('leaveRoom')
    assert sio_client.get_received() == []
