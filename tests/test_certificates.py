"""Tests for the certificate PDF endpoint."""

from parcels.domain.certificates.pdf_service import locale_from_accept_language

TS = "2034-02-14T20:02:00.000Z"


def test_certificate_pdf(client, purchase):
    purchase(TS, "love@example.com", title="Us", cert_style="romantic")

    response = client.get(f"/cert/{TS}")
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"] == f'inline; filename="cert-{TS}.pdf"'
    assert "max-age=" in response.headers["cache-control"]
    assert "Accept-Language" in [value.strip() for value in response.headers["vary"].split(",")]
    assert response.content.startswith(b"%PDF")


def test_certificate_by_day_and_locale(client, purchase):
    purchase(TS, "love@example.com", local_date_only="1")

    response = client.get("/cert/2034-02-14", headers={"Accept-Language": "fr-FR,fr;q=0.9"})
    assert response.status_code == 200
    assert response.content.startswith(b"%PDF")


def test_certificate_unknown_unit(client):
    response = client.get("/cert/2034-02-15T00:00:00.000Z")
    assert response.status_code == 404
    assert response.json()["ok"] is False

    assert client.get("/cert/not-a-date").status_code == 400


def test_locale_detection():
    assert locale_from_accept_language("fr-CA,en;q=0.5") == "fr"
    assert locale_from_accept_language("en-US") == "en"
    assert locale_from_accept_language("") == "en"
