from domaindesk.realtime import connection_count, socketio


def notifications(sio):
    return [event["args"][0] for event in sio.get_received() if event["name"] == "notification"]


def test_socket_refuses_missing_or_bad_token(app):
    assert not socketio.test_client(app).is_connected()
    assert not socketio.test_client(app, query_string="token=garbage").is_connected()


def test_socket_receives_ticket_and_comment_events(app, client, token):
    sio = socketio.test_client(app, query_string=f"token={token}")
    assert sio.is_connected()
    assert [n["type"] for n in notifications(sio)] == ["CONNECTED"]
    assert connection_count() >= 1

    client.post("/api/tickets", json={"customer_id": "c1", "request_domains": ["push.com"]})
    client.post("/api/comments", json={"telegram_username": "bob", "content": "hi"})

    events = notifications(sio)
    assert [e["type"] for e in events] == ["NEW_TICKET", "NEW_COMMENT"]
    assert events[0]["ticket"]["request_domains"] == ["push.com"]
    assert events[0]["timestamp"]
    assert events[1]["comment"]["content"] == "hi"
    sio.disconnect()


def test_socket_accepts_token_in_auth_payload(app, token):
    sio = socketio.test_client(app, auth={"token": token})
    assert sio.is_connected()
    sio.disconnect()
