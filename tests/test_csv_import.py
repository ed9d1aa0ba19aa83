import io

from domaindesk.csv_import import import_domains_csv

HEADER = ("Domain Name,Country,Category,DA,PA,SS,Backlinks,Price,Status,Panel Link,Panel Username,"
          "Panel Password,Shell Link,Hosting Link,Hosting Username,Hosting Password,Ischannel\n")


def upload(client, headers, text, filename="domains.csv"):
    return client.post(
        "/api/domains/import",
        headers=headers,
        data={"csvFile": (io.BytesIO(text.encode("utf-8")), filename)},
        content_type="multipart/form-data",
    )


def test_import_requires_file(client, headers):
    resp = client.post("/api/domains/import", headers=headers, data={}, content_type="multipart/form-data")
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "No CSV file uploaded"


def test_import_rejects_missing_columns(client, headers):
    resp = upload(client, headers, "Domain Name,Country\nexample.com,US\n")
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["message"] == "Invalid CSV format. Missing columns: Category, Price"
    assert body["expectedFormat"].startswith("Domain Name, Country")


def test_import_empty_file(client, headers):
    resp = upload(client, headers, "")
    assert resp.status_code == 400


def test_import_mixed_rows(client, headers, make_domain):
    make_domain("already.com")
    text = HEADER + "\n".join([
        "Good.com,US,Tech,30,20,5,1500,120,Available,https://panel,admin,pw,https://shell,,,,Posted",
        ",US,Tech,1,1,1,1,10,Available,,,,,,,,",
        "already.com,US,Tech,1,1,1,1,10,Available,,,,,,,,",
        "good.com,US,Tech,1,1,1,1,10,Available,,,,,,,,",
        "nocountry.com,,Tech,1,1,1,1,10,Available,,,,,,,,",
        "free.com,US,Tech,1,1,1,1,0,Available,,,,,,,,",
        "bad name.com,US,Tech,1,1,1,1,10,Available,,,,,,,,",
        "sold.net,DE,News,x,,,,45.5,Sold,,,,,,,,",
    ]) + "\n"
    resp = upload(client, headers, text)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["summary"] == {"totalRows": 8, "successful": 2, "duplicates": 2, "errors": 4}

    details = body["details"]
    assert [(s["row"], s["domainName"]) for s in details["successful"]] == [(1, "good.com"), (8, "sold.net")]
    assert [(d["row"], d["domainName"]) for d in details["duplicates"]] == [(3, "already.com"), (4, "good.com")]
    errors = {e["row"]: e["error"] for e in details["errors"]}
    assert errors[2] == "Domain Name is required"
    assert errors[5] == "Missing required fields (Country, Category, or Price)"
    assert errors[6] == "Price must be greater than 0"
    assert errors[7].startswith("Invalid domain name")

    listed = {d["domainName"]: d for d in client.get("/api/domains", headers=headers).get_json()["data"]}
    good = listed["good.com"]
    assert good["da"] == 30 and good["backlink"] == 1500 and good["price"] == 120.0
    assert good["status"] is True and good["ischannel"] is True and good["postDateTime"]
    assert good["goodLink"] == "https://shell" and good["panelUsername"] == "admin"
    sold = listed["sold.net"]
    assert sold["status"] is False and sold["ischannel"] is False and sold["da"] == 0


def test_reimport_is_idempotent(client, headers):
    text = HEADER + "one.com,US,Tech,,,,,10,,,,,,,,,\ntwo.com,US,Tech,,,,,20,,,,,,,,,\n"
    first = upload(client, headers, text).get_json()
    assert first["summary"]["successful"] == 2

    second = upload(client, headers, text).get_json()
    assert second["summary"] == {"totalRows": 2, "successful": 0, "duplicates": 2, "errors": 0}
    stored = client.get("/api/domains", headers=headers).get_json()["data"]
    assert len(stored) == 2
    # a blank Status column imports the listing as sold
    assert all(d["status"] is False for d in stored)


def test_import_handles_bom_and_padded_header(app):
    text = "\ufeff Domain Name , Country,Category,Price\nbom.com,US,Tech,15\n"
    report = import_domains_csv(text.encode("utf-8"))
    assert report["summary"]["successful"] == 1
    assert report["details"]["successful"][0]["domainName"] == "bom.com"


def test_import_too_large(client, headers):
    text = HEADER + ("x.com,US,Tech,,,,,10,,,,,,,,,\n" * 5000)
    resp = upload(client, headers, text)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "File too large. Maximum size is 5MB."
