import pytest

from domaindesk.domains import is_valid_domain_name, normalize_domain_name, to_float, to_int


@pytest.mark.parametrize("raw, expected", [
    ("Example.COM", "example.com"),
    ("  https://Shop.Example.io/path?q=1 ", "shop.example.io"),
    ("http://example.com:8080", "example.com"),
    ("example.com.", "example.com"),
    ("", ""),
    (None, ""),
])
def test_normalize_domain_name(raw, expected):
    assert normalize_domain_name(raw) == expected


def test_normalize_idn_to_punycode():
    assert normalize_domain_name("Пример.РФ") == "xn--e1afmkfd.xn--p1ai"
    assert is_valid_domain_name("xn--e1afmkfd.xn--p1ai")


@pytest.mark.parametrize("name", ["localhost", "bad_name.com", "-a.com", "a..com", "example.c0m", ""])
def test_invalid_domain_names(name):
    assert not is_valid_domain_name(normalize_domain_name(name))


def test_numeric_coercion():
    assert to_int("12.7") == 12
    assert to_int("abc") == 0
    assert to_int(None) == 0
    assert to_float("$1,250.50") == 1250.5
    assert to_float("nan") == 0.0
    assert to_float(None) == 0.0


def test_admin_routes_require_token(client):
    assert client.get("/api/domains").status_code == 401
    resp = client.post("/api/domains", json={}, headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401
    assert resp.get_json()["success"] is False
    assert resp.get_json()["error"] == "AuthError"


def test_create_domain_normalizes_and_defaults(client, headers, make_domain):
    doc = make_domain("HTTPS://Flip.Example.COM/", da="35", backlink="1200", ischannel="true")
    assert doc["domainName"] == "flip.example.com"
    assert doc["da"] == 35 and doc["pa"] == 0 and doc["backlink"] == 1200
    assert doc["status"] is True
    assert doc["ischannel"] is True and doc["postDateTime"]

    # only an explicit available/true status puts a listing on sale
    for name, status in [("blank.com", None), ("empty.com", ""), ("word.com", "Available")]:
        payload = {"domainName": name, "country": "US", "category": "Tech", "price": 5}
        if status is not None:
            payload["status"] = status
        data = client.post("/api/domains", json=payload, headers=headers).get_json()["data"]
        assert data["status"] is (status == "Available")


def test_create_domain_validation(client, headers, make_domain):
    resp = client.post("/api/domains", json={"domainName": "a.com"}, headers=headers)
    assert resp.status_code == 400
    resp = client.post("/api/domains", json={"domainName": "not a domain", "country": "US",
                                              "category": "Tech", "price": 5}, headers=headers)
    assert resp.status_code == 400
    resp = client.post("/api/domains", json={"domainName": "a.com", "country": "US",
                                              "category": "Tech", "price": "-3"}, headers=headers)
    assert resp.status_code == 400

    make_domain("taken.com")
    resp = client.post("/api/domains", json={"domainName": "TAKEN.com", "country": "US",
                                              "category": "Tech", "price": 5}, headers=headers)
    assert resp.status_code == 409
    assert "already exists" in resp.get_json()["message"]


def test_create_multiple_collects_errors(client, headers, make_domain):
    make_domain("existing.com")
    resp = client.post("/api/domains/multiple", headers=headers, json={
        "panelLink": "https://panel.example",
        "panelUsername": "root",
        "domains": [
            {"domainName": "one.com", "country": "US", "category": "Tech", "price": 10},
            {"domainName": "existing.com", "country": "US", "category": "Tech", "price": 10},
            {"domainName": "one.com", "country": "DE", "category": "News", "price": 20},
            {"domainName": "two.com", "country": "US"},
        ],
    })
    assert resp.status_code == 201
    data = resp.get_json()["data"]
    assert [d["domainName"] for d in data["created"]] == ["one.com"]
    assert data["created"][0]["panelLink"] == "https://panel.example"
    assert [e["index"] for e in data["errors"]] == [1, 2, 3]


def test_create_multiple_requires_array(client, headers):
    resp = client.post("/api/domains/multiple", json={"domains": []}, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Domains array is required"


def test_update_domain(client, headers, make_domain):
    doc = make_domain("old.com")
    make_domain("other.com")

    resp = client.put(f"/api/domains/{doc['id']}", headers=headers,
                      json={"domainName": "other.com"})
    assert resp.status_code == 409

    resp = client.put(f"/api/domains/{doc['id']}", headers=headers,
                      json={"domainName": "New.com", "price": "250", "pa": "17", "ischannel": True, "id": "hijack"})
    assert resp.status_code == 200
    updated = resp.get_json()["data"]
    assert updated["id"] == doc["id"]
    assert updated["domainName"] == "new.com"
    assert updated["price"] == 250.0 and updated["pa"] == 17
    assert updated["ischannel"] is True and updated["postDateTime"]

    resp = client.put(f"/api/domains/{doc['id']}", headers=headers, json={"ischannel": "false"})
    assert resp.get_json()["data"]["postDateTime"] is None

    assert client.put("/api/domains/missing", headers=headers, json={"da": 1}).status_code == 404


def test_status_transitions(client, headers, make_domain):
    doc = make_domain("flip.com")
    base = f"/api/domains/{doc['id']}"

    data = client.patch(f"{base}/sold", headers=headers).get_json()["data"]
    assert data["status"] is False
    data = client.patch(f"{base}/available", headers=headers).get_json()["data"]
    assert data["status"] is True
    data = client.patch(f"{base}/post", headers=headers).get_json()["data"]
    assert data["ischannel"] is True and data["postDateTime"]
    data = client.patch(f"{base}/unpost", headers=headers).get_json()["data"]
    assert data["ischannel"] is False and data["postDateTime"] is None

    assert client.patch("/api/domains/missing/sold", headers=headers).status_code == 404


def test_delete_domain(client, headers, make_domain):
    doc = make_domain("gone.com")
    assert client.delete(f"/api/domains/{doc['id']}", headers=headers).status_code == 200
    assert client.delete(f"/api/domains/{doc['id']}", headers=headers).status_code == 404


def test_admin_list_filters(client, headers, make_domain):
    make_domain("alpha.com", category="Tech", ischannel=True)
    sold = make_domain("beta.com", category="News")
    make_domain("gamma.org", category="Tech")
    client.patch(f"/api/domains/{sold['id']}/sold", headers=headers)

    def names(query):
        resp = client.get(f"/api/domains{query}", headers=headers)
        return sorted(d["domainName"] for d in resp.get_json()["data"])

    assert names("") == ["alpha.com", "beta.com", "gamma.org"]
    assert names("?status=sold") == ["beta.com"]
    assert names("?status=available&category=Tech") == ["alpha.com", "gamma.org"]
    assert names("?posted=true") == ["alpha.com"]
    assert names("?search=.ORG") == ["gamma.org"]
    assert names("?search=%25") == []
    assert names("?search=a_p") == []


def test_public_listing_hides_credentials(client, make_domain):
    make_domain("hidden.com", panelPassword="s3cret")
    make_domain("shown.com", panelPassword="s3cret", ischannel=True)

    public = client.get("/api/domains/public").get_json()["data"]
    assert [d["domainName"] for d in public] == ["shown.com"]
    assert "panelPassword" not in public[0]

    everything = client.get("/api/domains/all").get_json()["data"]
    assert sorted(d["domainName"] for d in everything) == ["hidden.com", "shown.com"]
    assert all("panelPassword" not in d for d in everything)


def test_unknown_route_is_json(client):
    resp = client.get("/api/nowhere")
    assert resp.status_code == 404
    assert resp.get_json() == {"success": False, "message": "Route not found", "error": "Not Found"}


def test_error_body_names_the_error(client, headers):
    resp = client.post("/api/domains", json={"domainName": "a.com"}, headers=headers)
    assert resp.get_json() == {"success": False, "message": "Required fields: domainName, country, category, price",
                               "error": "ValidationError"}
    assert client.delete("/api/domains/missing", headers=headers).get_json()["error"] == "NotFound"
