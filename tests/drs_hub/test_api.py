"""HTTP surface: routes, failure bodies and header handling."""

from __future__ import annotations

import asyncio

import pytest
from fastapi.testclient import TestClient

from DrsHub.api.app import create_app
from DrsHub.api.handlers import RequestHandlers, parse_force_access_url

BDC_METADATA_URL = "https://gen3.biodatacatalyst.nhlbi.nih.gov/ga4gh/drs/v1/objects/dg.4503%2Fabc"
BOND = "https://broad-bond-dev.appspot.com/api/link/v1"
SAM_KEY_URL = "https://sam.dsde-dev.broadinstitute.org/api/google/v1/user/petServiceAccount/key"

AUTH = {"Authorization": "Bearer user-token"}
KEY = {"type": "service_account", "project_id": "p", "client_email": "sa@p.iam.gserviceaccount.com"}
METADATA = {
    "name": "foo.cram",
    "size": 10,
    "access_methods": [{"type": "gs", "access_id": "gs", "access_url": {"url": "gs://bucket/foo.cram"}}],
}


@pytest.fixture
def client(settings, backend, secrets, signer, http_factory):
    app = create_app(settings, http=http_factory(backend, settings), secrets=secrets, signer=signer)
    with TestClient(app) as test_client:
        yield test_client


class TestStatus:
    def test_status(self, client):
        response = client.get("/status")
        assert response.status_code == 200
        assert response.json() == {"ok": True}


class TestResolveRoute:
    def test_bond_provider_without_auth(self, client, backend):
        response = client.post(
            "/api/v4/drs/resolve", json={"url": "drs://dg.4503:abc", "fields": ["bondProvider"]}
        )
        assert response.status_code == 200
        assert response.json() == {"bondProvider": "fence"}
        assert backend.calls == []

    def test_default_fields_when_absent(self, client, backend):
        backend.add("GET", BDC_METADATA_URL, json=METADATA)
        backend.add("GET", f"{BOND}/fence/serviceaccount/key", json={"data": KEY})

        response = client.post("/api/v4/drs/resolve", json={"url": "drs://dg.4503:abc"}, headers=AUTH)

        assert response.status_code == 200
        body = response.json()
        assert body["gsUri"] == "gs://bucket/foo.cram"
        assert body["googleServiceAccount"] == {"data": KEY}
        assert "accessUrl" not in body
        assert "bondProvider" not in body

    def test_fields_must_be_array(self, client, backend):
        response = client.post(
            "/api/v4/drs/resolve", json={"url": "drs://dg.4503:abc", "fields": "gsUri"}, headers=AUTH
        )
        assert response.status_code == 400
        assert response.json() == {
            "status": 400,
            "response": {"status": 400, "text": "Request is invalid. 'fields' was not an array."},
        }
        assert backend.calls == []

    def test_body_must_be_json(self, client):
        response = client.post(
            "/api/v4/drs/resolve",
            content=b"not json",
            headers={**AUTH, "Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["response"]["text"].startswith("Request is invalid.")

    def test_upstream_status_is_passed_through(self, client, backend):
        backend.add("GET", BDC_METADATA_URL, status=403, text="forbidden")
        response = client.post(
            "/api/v4/drs/resolve", json={"url": "drs://dg.4503:abc", "fields": ["size"]}, headers=AUTH
        )
        assert response.status_code == 403
        assert response.json()["response"]["text"] == "Received error while resolving DRS URL. forbidden"

    def test_retired_namespace(self, client):
        response = client.post(
            "/api/v4/drs/resolve",
            json={"url": "drs://dataguids.org/abc", "fields": ["size"]},
            headers=AUTH,
        )
        assert response.status_code == 400
        assert "dataguids.org data has moved" in response.json()["response"]["text"]

    @pytest.mark.parametrize(("header", "calls"), [("true", 3), ("false", 1)])
    def test_force_access_url_header(self, client, backend, header, calls):
        backend.add("GET", BDC_METADATA_URL, json=METADATA)
        backend.add("GET", f"{BOND}/fence/accesstoken", json={"token": "fence-token"})
        backend.add("GET", f"{BDC_METADATA_URL}/access/gs", json={"url": "https://signed"})

        response = client.post(
            "/api/v4/drs/resolve",
            json={"url": "drs://dg.4503:abc", "fields": ["accessUrl"]},
            headers={**AUTH, "drshub-force-access-url": header},
        )

        assert response.status_code == 200
        assert len(backend.calls) == calls


class TestSignedUrlRoute:
    def test_signs_with_bond_key(self, client, backend, signer, settings):
        backend.add("GET", f"{BOND}/fence/serviceaccount/key", json={"data": KEY})

        response = client.post(
            "/api/v4/gcs/getSignedUrl",
            json={"bucket": "bucket", "object": "foo.cram", "dataObjectUri": "drs://dg.4503:abc"},
            headers=AUTH,
        )

        assert response.status_code == 200
        assert response.json()["url"].startswith("https://storage.googleapis.com/bucket/foo.cram")
        assert signer.calls == [("bucket", "foo.cram", KEY, settings.signed_url_ttl_seconds)]

    def test_signs_with_pet_key_without_provider(self, client, backend, signer):
        backend.add("GET", SAM_KEY_URL, json=KEY)
        response = client.post(
            "/api/v4/gcs/getSignedUrl", json={"bucket": "bucket", "object": "foo.cram"}, headers=AUTH
        )
        assert response.status_code == 200
        assert signer.calls[0][2] == KEY
        assert backend.calls == [("GET", SAM_KEY_URL)]

    def test_missing_bucket(self, client, signer):
        response = client.post("/api/v4/gcs/getSignedUrl", json={"object": "foo.cram"}, headers=AUTH)
        assert response.status_code == 400
        assert response.json()["response"]["text"] == "Request is invalid. 'bucket' is missing."
        assert signer.calls == []

    def test_bond_failure(self, client, backend):
        backend.add("GET", f"{BOND}/fence/serviceaccount/key", status=401, text="unlinked")
        response = client.post(
            "/api/v4/gcs/getSignedUrl",
            json={"bucket": "b", "object": "o", "dataObjectUri": "drs://dg.4503:abc"},
            headers=AUTH,
        )
        assert response.status_code == 401
        assert response.json()["response"]["text"] == "Received error contacting Bond. unlinked"


class TestOauthCodeRoute:
    def test_exchange(self, client, backend):
        backend.add("POST", f"{BOND}/fence/oauthcode", json={"issued_at": "2024-01-01", "username": "u"})

        response = client.post(
            "/api/v4/bond/fence/oauthcode",
            params={"oauthcode": "abc", "redirect_uri": "https://app.terra.bio/#fence-callback"},
            headers=AUTH,
        )

        assert response.status_code == 200
        assert response.json() == {"issued_at": "2024-01-01", "username": "u"}
        request = backend.last_request(f"{BOND}/fence/oauthcode")
        assert request.url.params["oauthcode"] == "abc"
        assert request.url.params["redirect_uri"] == "https://app.terra.bio/#fence-callback"

    def test_unknown_provider(self, client, backend):
        response = client.post(
            "/api/v4/bond/nope/oauthcode",
            params={"oauthcode": "abc", "redirect_uri": "https://x"},
            headers=AUTH,
        )
        assert response.status_code == 400
        assert backend.calls == []


class TestForceHeaderParsing:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [("true", True), ("TRUE", True), ("false", False), ("", False), (None, False), (True, True)],
    )
    def test_parse(self, value, expected):
        assert parse_force_access_url(value) is expected


class TestRequestHandlers:
    """Handler results without the FastAPI layer."""

    def test_non_json_metadata_is_a_server_error(self, settings, backend, secrets, signer, http_factory):
        crdc_url = "https://nci-crdc-staging.datacommons.io/ga4gh/drs/v1/objects/abc"
        backend.add("GET", crdc_url, text="<html>maintenance</html>")

        async def go():
            http = http_factory(backend, settings)
            try:
                handlers = RequestHandlers(settings, http, secrets=secrets, signer=signer)
                return await handlers.resolve({"url": "drs://dg.4dfc:abc", "fields": ["size"]}, AUTH)
            finally:
                await http.aclose()

        status, body = asyncio.run(go())

        assert status == 502
        assert body["status"] == 502
        text = body["response"]["text"]
        assert text.startswith("Received error while resolving DRS URL. Response was not valid JSON")
        assert backend.calls_to(crdc_url) == 1
