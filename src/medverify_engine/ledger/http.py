"""HTTP client for a remote ledger service."""

import asyncio
import logging
from datetime import date, datetime, timezone
from typing import Any
from urllib.parse import quote

import httpx

from medverify_engine.common.exceptions import (
    AlreadyAttestedError,
    LedgerError,
    LedgerUnavailableError,
)
from medverify_engine.ledger.gateway import LedgerGateway
from medverify_engine.ledger.schemas import (
    LedgerAttestation,
    LedgerReference,
    attestation_from_metadata,
)

logger = logging.getLogger(__name__)


def _to_date(value: Any) -> str | None:
    """Ledger contracts store dates as epoch millis; accept ISO strings too."""
    if value in (None, "", 0):
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc).date().isoformat()
    return str(value)[:10]


def _to_millis(iso_date: str) -> int:
    parsed = date.fromisoformat(iso_date)
    return int(datetime(parsed.year, parsed.month, parsed.day, tzinfo=timezone.utc).timestamp() * 1000)


class HttpLedgerGateway(LedgerGateway):
    """Calls the ledger service's REST API.

    Endpoints::

        POST /medicines             register a product       (409 if present)
        GET  /medicines/{id}        read the attestation     (404 if absent)
        POST /qr                    register a QR token hash (409 if present)
        GET  /qr/{hash}             {"valid": bool}          (404 if absent)
    """

    name = "http"

    def __init__(
        self,
        base_url: str,
        api_token: str = "",
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        headers = {"Authorization": f"Bearer {api_token}"} if api_token else {}
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    async def close(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = await asyncio.wait_for(
                self._http.request(method, path, **kwargs),
                timeout=self.timeout,
            )
        except (httpx.TimeoutException, asyncio.TimeoutError) as exc:
            logger.warning("Ledger %s %s timed out", method, path)
            raise LedgerUnavailableError("Ledger request timed out") from exc
        except httpx.HTTPError as exc:
            logger.warning("Ledger %s %s failed: %s", method, path, exc)
            raise LedgerUnavailableError(f"Ledger transport error: {exc}") from exc

        if resp.status_code >= 500:
            raise LedgerUnavailableError(f"Ledger returned HTTP {resp.status_code}")
        return resp

    @staticmethod
    def _json(resp: httpx.Response) -> dict[str, Any]:
        try:
            data = resp.json()
        except ValueError as exc:
            raise LedgerError("Ledger returned a non-JSON body") from exc
        if not isinstance(data, dict):
            raise LedgerError("Ledger returned an unexpected body")
        return data

    def _reference(self, resp: httpx.Response) -> LedgerReference:
        data = self._json(resp)
        try:
            return LedgerReference(
                transaction_hash=str(data["transactionHash"]),
                block_number=int(data["blockNumber"]),
            )
        except (KeyError, TypeError, ValueError, OverflowError) as exc:
            raise LedgerError("Ledger receipt is missing transaction details") from exc

    # ── Products ──

    async def attest(self, product_id: str, metadata: dict[str, Any]) -> LedgerReference:
        body = {
            "productId": product_id,
            "name": metadata.get("name", ""),
            "manufacturer": metadata.get("manufacturer", ""),
            "manufactureDate": _to_millis(metadata["manufacture_date"]),
            "expiryDate": _to_millis(metadata["expiry_date"]),
        }
        resp = await self._request("POST", "/medicines", json=body)
        if resp.status_code == 409:
            raise AlreadyAttestedError(f"Product '{product_id}' is already on the ledger")
        if resp.status_code >= 400:
            raise LedgerError(f"Ledger rejected registration: HTTP {resp.status_code}")
        return self._reference(resp)

    async def query(self, product_id: str) -> LedgerAttestation | None:
        resp = await self._request("GET", f"/medicines/{quote(product_id, safe='')}")
        if resp.status_code == 404:
            return None
        if resp.status_code >= 400:
            raise LedgerError(f"Ledger query failed: HTTP {resp.status_code}")

        data = self._json(resp)
        if not data.get("exists", False):
            return None

        try:
            reference = None
            if data.get("transactionHash"):
                reference = LedgerReference(
                    str(data["transactionHash"]), int(data.get("blockNumber") or 0),
                )
            return attestation_from_metadata(
                {
                    "name": data.get("name", ""),
                    "manufacturer": data.get("manufacturer", ""),
                    "manufacture_date": _to_date(data.get("manufactureDate")),
                    "expiry_date": _to_date(data.get("expiryDate")),
                },
                is_verified=data.get("isVerified", False),
                reference=reference,
            )
        except (KeyError, TypeError, ValueError, OverflowError, OSError) as exc:
            logger.warning("Ledger returned a malformed attestation for %s: %s", product_id, exc)
            raise LedgerError("Ledger returned a malformed attestation") from exc

    # ── QR tokens ──

    async def attest_token(self, token_hash: str, product_id: str) -> LedgerReference:
        resp = await self._request(
            "POST", "/qr", json={"qrHash": token_hash, "productId": product_id},
        )
        if resp.status_code == 409:
            raise AlreadyAttestedError("QR hash is already on the ledger")
        if resp.status_code >= 400:
            raise LedgerError(f"Ledger rejected QR registration: HTTP {resp.status_code}")
        return self._reference(resp)

    async def verify_token(self, token_hash: str) -> bool:
        resp = await self._request("GET", f"/qr/{quote(token_hash, safe='')}")
        if resp.status_code == 404:
            return False
        if resp.status_code >= 400:
            raise LedgerError(f"Ledger QR check failed: HTTP {resp.status_code}")
        valid = self._json(resp).get("valid", False)
        if not isinstance(valid, bool):
            raise LedgerError("Ledger returned a malformed QR check")
        return valid
