"""
VerificationClient SDK — sync client for MedVerify-Engine.

Used by pharmacy terminals, chat assistants and manufacturer tooling to
verify products, verify scanned QR codes and register medicines.
"""

import json
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

import httpx


@dataclass
class ClientVerdict:
    """Verdict returned by verify() and verify_qr()."""

    status: str
    is_valid: bool = False
    confidence: str = ""
    message: str = ""
    is_expired: bool = False
    blockchain_verified: bool = False
    checks: dict[str, bool] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    medicine: Optional[dict[str, Any]] = None
    code: str = ""


@dataclass
class ClientQrCode:
    """A freshly issued QR token."""

    qr_data: str
    qr_hash: str
    product_id: str
    issued_at: str
    expires_at: str


class VerificationClient:
    """
    Synchronous HTTP client for MedVerify-Engine.

    Verification calls need no credentials; registration and QR issuance
    send the manufacturer API key.
    """

    def __init__(
        self,
        server_url: str = "http://localhost:8080",
        api_key: Optional[str] = None,
        timeout: int = 30,
        max_retries: int = 3,
        retry_backoff_base: float = 0.5,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.server_url = server_url.rstrip("/")
        self.api_key = api_key
        self.max_retries = max_retries
        self.retry_backoff_base = retry_backoff_base
        self._http = httpx.Client(
            base_url=self.server_url,
            timeout=timeout,
            transport=transport,
        )

    def _admin_headers(self) -> dict[str, str]:
        headers = {}
        if self.api_key:
            headers["X-MedVerify-Api-Key"] = self.api_key
        return headers

    def _request(
        self,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Central HTTP method with retry and structured error handling.

        Retries on timeouts, transport errors, 5xx and 429. A 4xx body
        from the server already carries ``{status, message, code}`` and is
        returned as-is so callers can show the message.
        """
        last_error = None
        for attempt in range(self.max_retries):
            try:
                resp = self._http.request(method, path, **kwargs)
                if resp.status_code >= 500 or resp.status_code == 429:
                    last_error = f"HTTP {resp.status_code}"
                    if attempt < self.max_retries - 1:
                        time.sleep(self.retry_backoff_base * (2 ** attempt))
                        continue
                    return {
                        "error": f"Server error: {resp.status_code}",
                        "code": "SERVER_ERROR",
                    }
                if resp.status_code >= 400:
                    try:
                        data = resp.json()
                    except json.JSONDecodeError:
                        data = {}
                    return {
                        "error": data.get("message") or data.get("detail") or f"Client error: {resp.status_code}",
                        "code": data.get("code", "CLIENT_ERROR"),
                    }
                return resp.json()
            except httpx.TimeoutException:
                last_error = "timeout"
                if attempt < self.max_retries - 1:
                    time.sleep(self.retry_backoff_base * (2 ** attempt))
                    continue
            except httpx.HTTPError as e:
                last_error = str(e)
                if attempt < self.max_retries - 1:
                    time.sleep(self.retry_backoff_base * (2 ** attempt))
                    continue
            except json.JSONDecodeError:
                return {"error": "Invalid JSON response", "code": "JSON_ERROR"}

        return {"error": f"All {self.max_retries} retries exhausted: {last_error}", "code": "CONNECTION_ERROR"}

    @staticmethod
    def _parse_verdict(data: dict[str, Any]) -> ClientVerdict:
        if "error" in data:
            return ClientVerdict(status="ERROR", message=data["error"], code=data.get("code", ""))
        return ClientVerdict(
            status=data.get("status", ""),
            is_valid=data.get("isValid", False),
            confidence=data.get("confidence", ""),
            message=data.get("message", ""),
            is_expired=data.get("isExpired", False),
            blockchain_verified=data.get("blockchainVerified", False),
            checks=data.get("checks", {}),
            warnings=data.get("warnings", []),
            medicine=data.get("medicine"),
        )

    # ── Verification ──

    def verify(self, product_id: str) -> ClientVerdict:
        """Verify a product by its typed product ID."""
        return self._parse_verdict(
            self._request("POST", "/verify", json={"productId": product_id})
        )

    def verify_qr(self, qr_data: str) -> ClientVerdict:
        """Verify the raw string decoded from a QR image."""
        return self._parse_verdict(
            self._request("POST", "/verify/qr", json={"qrData": qr_data})
        )

    def stats(self) -> dict[str, Any]:
        return self._request("GET", "/verify/logs")

    # ── Manufacturer ──

    def register_medicine(
        self,
        name: str,
        manufacturer: str,
        batch_number: str,
        manufacture_date: date,
        expiry_date: date,
        description: str = "",
        product_id: Optional[str] = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "name": name,
            "manufacturer": manufacturer,
            "batchNumber": batch_number,
            "manufactureDate": manufacture_date.isoformat(),
            "expiryDate": expiry_date.isoformat(),
            "description": description,
        }
        if product_id:
            body["productId"] = product_id
        return self._request(
            "POST", "/medicines/register", json=body, headers=self._admin_headers(),
        )

    def catalogue_stats(self) -> dict[str, Any]:
        return self._request("GET", "/medicines/stats", headers=self._admin_headers())

    def issue_qr(self, product_id: str) -> Optional[ClientQrCode]:
        data = self._request(
            "GET", f"/medicines/{product_id}/qr", headers=self._admin_headers(),
        )
        if "error" in data:
            return None
        return ClientQrCode(
            qr_data=data["qrData"],
            qr_hash=data["qrHash"],
            product_id=data["productId"],
            issued_at=data["issuedAt"],
            expires_at=data["expiresAt"],
        )

    def health(self) -> dict[str, Any]:
        return self._request("GET", "/health")

    def close(self) -> None:
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
