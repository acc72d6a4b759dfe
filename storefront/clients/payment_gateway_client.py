"""
Payment Gateway API Client

Async client for a ZarinPal-style WebGate gateway.

Connection Details:
    - API: https://api.zarinpal.com (sandbox: https://sandbox.zarinpal.com)
    - Auth: Merchant ID in every request body

Endpoints:
    - POST /pg/rest/WebGate/PaymentRequest.json - Register a payment, returns an Authority
    - POST /pg/rest/WebGate/PaymentVerification.json - Confirm a payment, returns a RefID
    - GET  /pg/StartPay/{authority} - Page the customer is redirected to

Status codes:
    - 100: request accepted / payment verified
    - 101: payment already verified earlier (treated as success)
    - anything else: refused
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import httpx

from storefront.config.settings import get_settings
from storefront.core.domain import IntegrationException
from storefront.domains.commerce.application.ports import (
    IPaymentGateway,
    PaymentRequestResult,
    PaymentVerificationResult,
)

logger = logging.getLogger(__name__)

REQUEST_PATH = "/pg/rest/WebGate/PaymentRequest.json"
VERIFY_PATH = "/pg/rest/WebGate/PaymentVerification.json"
START_PAY_PATH = "/pg/StartPay/{authority}"

STATUS_OK = 100
STATUS_ALREADY_VERIFIED = 101


class PaymentGatewayError(IntegrationException):
    """Gateway unreachable, timed out, or answered with something unusable."""

    def __init__(self, message: str, original_error: Exception | None = None, status_code: int | None = None):
        super().__init__("payment_gateway", message, original_error)
        self.status_code = status_code
        if status_code is not None:
            self.details["status_code"] = status_code


class PaymentGatewayClient(IPaymentGateway):
    """
    Async HTTP client for the payment gateway.

    Usable as an async context manager or as a long-lived client closed
    with ``aclose()``. The underlying httpx client is created lazily.

    Example:
        async with PaymentGatewayClient() as gateway:
            result = await gateway.request_payment(
                amount=Decimal("150000"),
                description="Payment for order ORD-20240101-0001",
                callback_url="https://shop.example/api/v1/payments/verify",
            )
            # result.redirect_url is where the customer pays
    """

    name = "zarinpal"

    def __init__(
        self,
        merchant_id: str | None = None,
        base_url: str | None = None,
        start_pay_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self._merchant_id = merchant_id if merchant_id is not None else settings.PAYMENT_GATEWAY_MERCHANT_ID
        self._base_url = (base_url or settings.payment_gateway_url).rstrip("/")
        self._start_pay_url = (start_pay_url or settings.payment_start_pay_url).rstrip("/")
        self._timeout = timeout if timeout is not None else settings.PAYMENT_GATEWAY_TIMEOUT
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

        if not self._merchant_id:
            logger.error("PAYMENT_GATEWAY_MERCHANT_ID not configured")

    async def __aenter__(self) -> PaymentGatewayClient:
        self._get_client()
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers={
                    "Accept": "application/json",
                    "Content-Type": "application/json",
                    "User-Agent": "Storefront/1.0",
                },
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def _to_minor_amount(amount: Decimal) -> int:
        """Gateway amounts are whole currency units."""
        return int(Decimal(amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        client = self._get_client()
        try:
            response = await client.post(path, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            logger.error(f"Payment gateway timeout on {path}: {e}")
            raise PaymentGatewayError(f"Payment gateway request timed out: {e}", e) from e
        except httpx.HTTPStatusError as e:
            logger.error(f"Payment gateway HTTP {e.response.status_code} on {path}")
            raise PaymentGatewayError(
                f"Payment gateway returned HTTP {e.response.status_code}", e, status_code=e.response.status_code
            ) from e
        except httpx.RequestError as e:
            logger.error(f"Payment gateway connection error on {path}: {e}")
            raise PaymentGatewayError(f"Could not connect to payment gateway: {e}", e) from e
        except ValueError as e:
            logger.error(f"Payment gateway sent invalid JSON on {path}: {e}")
            raise PaymentGatewayError("Payment gateway sent an invalid response", e) from e

        if not isinstance(data, dict):
            raise PaymentGatewayError("Payment gateway sent an invalid response")
        return data

    async def request_payment(self, amount: Decimal, description: str, callback_url: str) -> PaymentRequestResult:
        """
        Register a payment with the gateway.

        Raises:
            PaymentGatewayError: network failure or a refused request
        """
        payload = {
            "MerchantID": self._merchant_id,
            "Amount": self._to_minor_amount(amount),
            "Description": description,
            "CallbackURL": callback_url,
        }
        logger.info(f"Requesting payment: amount={payload['Amount']}")
        data = await self._post(REQUEST_PATH, payload)

        status = data.get("Status")
        authority = data.get("Authority")
        if status != STATUS_OK or not authority:
            logger.warning(f"Payment request refused by gateway: status={status}")
            raise PaymentGatewayError(f"Payment request refused by gateway (status {status})", status_code=status)

        authority = str(authority)
        redirect_url = self._start_pay_url + START_PAY_PATH.format(authority=authority)
        logger.info(f"Payment registered: authority={authority}")
        return PaymentRequestResult(authority=authority, redirect_url=redirect_url)

    async def verify_payment(self, authority: str, amount: Decimal) -> PaymentVerificationResult:
        """
        Confirm a payment after the customer returns.

        A gateway that answers but refuses yields ``success=False``;
        only transport failures raise.
        """
        payload = {
            "MerchantID": self._merchant_id,
            "Authority": authority,
            "Amount": self._to_minor_amount(amount),
        }
        data = await self._post(VERIFY_PATH, payload)

        status = data.get("Status")
        if status in (STATUS_OK, STATUS_ALREADY_VERIFIED):
            ref_id = data.get("RefID")
            logger.info(f"Payment verified: authority={authority} ref={ref_id} status={status}")
            return PaymentVerificationResult(
                success=True,
                transaction_id=str(ref_id) if ref_id is not None else None,
                status_code=status,
            )

        logger.warning(f"Payment verification refused: authority={authority} status={status}")
        return PaymentVerificationResult(
            success=False,
            status_code=status if isinstance(status, int) else None,
            message=f"Gateway refused verification (status {status})",
        )


__all__ = ["PaymentGatewayClient", "PaymentGatewayError"]
