"""Tests for owner edits, account listing and health checks."""

TS = "2033-08-08T18:30:00.000Z"


def test_owner_edit_keeps_certificate_hash(client, purchase, login, fetch_claim):
    purchase(TS, "owner@example.com", title="Before", public_registry="1", title_public="1")
    original = fetch_claim(TS)
    login("owner@example.com")

    response = client.post(
        "/claim/edit",
        json={"ts": TS, "title": "After", "cert_style": "Wedding", "text_color": "#FF0000", "title_public": "1"},
    )
    assert response.status_code == 200
    claim = response.json()["claim"]
    assert claim["title"] == "After"
    assert claim["cert_style"] == "wedding"
    assert claim["text_color"] == "#ff0000"
    assert claim["cert_hash"] == original.cert_hash
    # Fields that were not sent stay as they were
    assert claim["message"] is None
    assert claim["time_display"] == "utc"

    assert client.get("/registry").json()["items"][0]["title"] == "After"


def test_edit_rejects_bad_link_and_other_owners(client, purchase, login):
    purchase(TS, "owner@example.com")
    login("owner@example.com")
    response = client.post("/claim/edit", json={"ts": TS, "link_url": "javascript:alert(1)"})
    assert response.status_code == 422

    login("other@example.com")
    response = client.post("/claim/edit", json={"ts": TS, "title": "Mine"})
    assert response.status_code == 403
    assert response.json()["error"] == "not_owner"


def test_account_claims_lists_only_own_claims(client, purchase, login):
    purchase(TS, "owner@example.com")
    purchase("2033-08-09T18:30:00.000Z", "someone@example.com")

    assert client.get("/account/claims").status_code == 401

    login("owner@example.com")
    claims = client.get("/account/claims").json()["claims"]
    assert [claim["ts"] for claim in claims] == [TS]
    assert claims[0]["listing"] is None


def test_health_endpoints(client):
    assert client.get("/health").json() == {"status": "healthy"}
    response = client.get("/health/db")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
