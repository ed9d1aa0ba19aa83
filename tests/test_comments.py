def test_comment_lifecycle(client, headers):
    resp = client.post("/api/comments", json={"telegram_username": "@bob", "content": " Is flip.com still for sale? "})
    assert resp.status_code == 201
    comment = resp.get_json()["data"]
    assert comment["status"] == "New"
    assert comment["content"] == "Is flip.com still for sale?"

    assert client.get("/api/comments").status_code == 401
    listed = client.get("/api/comments", headers=headers).get_json()["data"]
    assert [c["id"] for c in listed] == [comment["id"]]
    assert client.get("/api/comments/count/new", headers=headers).get_json()["count"] == 1

    assert client.patch(f"/api/comments/{comment['id']}/read", headers=headers).status_code == 200
    assert client.get("/api/comments/count/new", headers=headers).get_json()["count"] == 0

    assert client.delete(f"/api/comments/{comment['id']}", headers=headers).status_code == 200
    assert client.delete(f"/api/comments/{comment['id']}", headers=headers).status_code == 404
    assert client.patch(f"/api/comments/{comment['id']}/read", headers=headers).status_code == 404


def test_comment_validation(client):
    resp = client.post("/api/comments", json={"telegram_username": "bob"})
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Telegram username and content are required"
    resp = client.post("/api/comments", json={"telegram_username": "bob", "content": "x" * 2001})
    assert resp.status_code == 400
