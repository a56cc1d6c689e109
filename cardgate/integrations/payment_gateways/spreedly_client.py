"""
Spreedly Core REST client

A small synchronous wrapper over the Spreedly JSON API, covering the calls
the Spreedly adapter needs. Responses are returned as decoded JSON.
"""

from typing import Any, Dict, Optional

import httpx

from cardgate.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://core.spreedly.com/v1"


class SpreedlyClient:
    """HTTP client for one Spreedly environment.

    422 responses carry a regular payload describing the failed transaction,
    so they are returned like successes. Any other non-2xx status raises
    `httpx.HTTPStatusError`.
    """

    def __init__(
        self,
        environment_key: str,
        access_secret: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.environment_key = environment_key
        self.base_url = base_url.rstrip("/")
        self._http = httpx.Client(
            base_url=self.base_url + "/",
            auth=(environment_key, access_secret),
            timeout=timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    @property
    def transparent_redirect_form_action(self) -> str:
        return f"{self.base_url}/payment_methods"

    def find_payment_method(self, token: str) -> Dict[str, Any]:
        return self._request("GET", f"payment_methods/{token}.json")

    def find_transaction(self, token: str) -> Dict[str, Any]:
        return self._request("GET", f"transactions/{token}.json")

    def find_gateway(self, token: str) -> Dict[str, Any]:
        return self._request("GET", f"gateways/{token}.json")

    def authorize_on_gateway(
        self,
        gateway_token: str,
        payment_method_token: str,
        amount: int,
        currency_code: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Authorize `amount` (minor units) against a payment method."""
        body = self._transaction_body(payment_method_token, amount, currency_code)
        return self._request("POST", f"gateways/{gateway_token}/authorize.json", json=body)

    def purchase_on_gateway(
        self,
        gateway_token: str,
        payment_method_token: str,
        amount: int,
        currency_code: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Purchase `amount` (minor units) against a payment method."""
        body = self._transaction_body(payment_method_token, amount, currency_code)
        return self._request("POST", f"gateways/{gateway_token}/purchase.json", json=body)

    def capture_transaction(self, token: str) -> Dict[str, Any]:
        return self._request("POST", f"transactions/{token}/capture.json")

    def refund_transaction(self, token: str, amount: Optional[int] = None) -> Dict[str, Any]:
        """Refund a transaction, in full or for `amount` minor units."""
        body = {"transaction": {"amount": amount}} if amount is not None else None
        return self._request("POST", f"transactions/{token}/credit.json", json=body)

    def void_transaction(self, token: str) -> Dict[str, Any]:
        return self._request("POST", f"transactions/{token}/void.json")

    def redact_payment_method(self, token: str) -> Dict[str, Any]:
        return self._request("PUT", f"payment_methods/{token}/redact.json")

    def retain_payment_method(self, token: str) -> Dict[str, Any]:
        return self._request("PUT", f"payment_methods/{token}/retain.json")

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "SpreedlyClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @staticmethod
    def _transaction_body(payment_method_token: str, amount: int, currency_code: Optional[str]) -> Dict[str, Any]:
        transaction: Dict[str, Any] = {"payment_method_token": payment_method_token, "amount": amount}
        if currency_code:
            transaction["currency_code"] = currency_code
        return {"transaction": transaction}

    def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        response = self._http.request(method, path, json=json)
        logger.info("spreedly.request", method=method, path=path, status_code=response.status_code)

        if response.status_code != 422:
            response.raise_for_status()
        return response.json()
