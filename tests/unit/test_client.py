"""Tests for client.py — VerificationClient SDK."""

import json
from datetime import date
from unittest.mock import patch

import httpx

from medverify_engine.client import ClientVerdict, VerificationClient


AUTHENTIC_BODY = {
    "isValid": True,
    "status": "AUTHENTIC",
    "confidence": "HIGH",
    "isExpired": False,
    "medicine": {"product_id": "MED-1"},
    "message": "This medicine is genuine, verified on the ledger, and safe to use.",
    "blockchainVerified": True,
    "checks": {"databaseFound": True, "blockchainVerified": True, "notExpired": True,
               "qrValid": False, "qrNotUsed": False},
    "warnings": [],
}


def make_client(handler, **kwargs) -> VerificationClient:
    return VerificationClient(
        server_url="http://medverify.test/",
        retry_backoff_base=0,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestVerificationClientInit:
    def test_defaults(self):
        client = VerificationClient()
        assert client.server_url == "http://localhost:8080"
        assert client.api_key is None
        assert client.max_retries == 3
        client.close()

    def test_strips_trailing_slash(self):
        client = make_client(lambda request: httpx.Response(200, json={}))
        assert client.server_url == "http://medverify.test"
        client.close()


class TestVerify:
    def test_verify_parses_verdict(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=AUTHENTIC_BODY)

        with make_client(handler) as client:
            verdict = client.verify("MED-1")

        assert seen == {"path": "/verify", "body": {"productId": "MED-1"}}
        assert isinstance(verdict, ClientVerdict)
        assert verdict.status == "AUTHENTIC"
        assert verdict.is_valid is True
        assert verdict.blockchain_verified is True
        assert verdict.checks["databaseFound"] is True

    def test_verify_qr_sends_raw_payload(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={**AUTHENTIC_BODY, "status": "SUSPICIOUS", "isValid": False})

        with make_client(handler) as client:
            verdict = client.verify_qr('{"h":"x","p":"MED-1","t":1}')

        assert seen["body"] == {"qrData": '{"h":"x","p":"MED-1","t":1}'}
        assert verdict.status == "SUSPICIOUS"
        assert verdict.is_valid is False

    def test_client_error_surfaces_server_message(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={
                "status": "ERROR", "message": "Invalid QR hash format", "code": "INVALID_QR_FORMAT",
            })

        with make_client(handler) as client:
            verdict = client.verify_qr("nonsense")

        assert verdict.status == "ERROR"
        assert verdict.code == "INVALID_QR_FORMAT"
        assert verdict.message == "Invalid QR hash format"


class TestRetries:
    def test_retries_server_errors_then_succeeds(self):
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            if calls["n"] < 3:
                return httpx.Response(503)
            return httpx.Response(200, json=AUTHENTIC_BODY)

        with make_client(handler) as client:
            verdict = client.verify("MED-1")
        assert calls["n"] == 3
        assert verdict.status == "AUTHENTIC"

    def test_gives_up_after_max_retries(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with make_client(handler, max_retries=2) as client:
            verdict = client.verify("MED-1")
        assert verdict.status == "ERROR"
        assert verdict.code == "CONNECTION_ERROR"

    def test_no_retry_on_client_error(self):
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            return httpx.Response(404, json={"status": "ERROR", "message": "Medicine not found", "code": "NOT_FOUND"})

        with make_client(handler) as client:
            assert client.issue_qr("MED-NOPE") is None
        assert calls["n"] == 1

    def test_backoff_sleeps_between_attempts(self):
        with patch("medverify_engine.client.time.sleep") as mock_sleep:
            client = VerificationClient(
                server_url="http://medverify.test",
                retry_backoff_base=0.5,
                transport=httpx.MockTransport(lambda request: httpx.Response(500)),
            )
            data = client.stats()
            client.close()
        assert data["code"] == "SERVER_ERROR"
        assert [c.args[0] for c in mock_sleep.call_args_list] == [0.5, 1.0]


class TestManufacturer:
    def test_register_sends_api_key_and_camel_case(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["key"] = request.headers.get("x-medverify-api-key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"message": "Medicine registered successfully"})

        with make_client(handler, api_key="admin-key") as client:
            data = client.register_medicine(
                "Aspirin 75mg", "Pokhara Medicines", "B1",
                date(2026, 1, 1), date(2027, 5, 18),
            )

        assert data["message"] == "Medicine registered successfully"
        assert seen["key"] == "admin-key"
        assert seen["body"]["batchNumber"] == "B1"
        assert seen["body"]["expiryDate"] == "2027-05-18"
        assert "productId" not in seen["body"]

    def test_issue_qr(self):
        body = {
            "qrData": '{"h":"x","p":"MED-1","t":1}',
            "qrHash": "x",
            "productId": "MED-1",
            "issuedAt": "2026-06-01T12:00:00Z",
            "expiresAt": "2026-06-01T12:05:00Z",
        }
        with make_client(lambda request: httpx.Response(200, json=body), api_key="k") as client:
            qr = client.issue_qr("MED-1")
        assert qr.product_id == "MED-1"
        assert qr.qr_hash == "x"

    def test_catalogue_stats(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["key"] = request.headers.get("x-medverify-api-key")
            return httpx.Response(200, json={"totalMedicines": 3, "byManufacturer": {"A": 3}})

        with make_client(handler, api_key="k") as client:
            data = client.catalogue_stats()
        assert seen == {"path": "/medicines/stats", "key": "k"}
        assert data["byManufacturer"] == {"A": 3}
