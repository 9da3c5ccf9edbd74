"""Mercado Pago client for PIX charges.

Creates PIX payments for installments, fetches existing ones and reports
whether a payment has been approved. Every failure is returned as a typed
``PaymentResponse`` (or ``False`` for status checks); nothing here raises
to the caller.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any, Callable

import httpx

from agents.parcelas.dto import Payer
from agents.parcelas.validators import normalize_cpf, split_phone
from backend.core.config import settings

QR_RENDER_DISABLED = "Collector user without key enabled for QR render"
ACCEPTED_CREATE_STATUSES = ("approved", "pending")


@dataclass
class PaymentResponse:
    """Response from the Mercado Pago payments API."""

    success: bool
    payment_id: str | None = None
    status: str | None = None
    pix_code: str | None = None
    error: str | None = None
    status_code: int | None = None


def _extract_qr_code(payment: dict[str, Any]) -> str | None:
    poi = payment.get("point_of_interaction") or {}
    transaction_data = poi.get("transaction_data") or {}
    return transaction_data.get("qr_code") or None


class MercadoPagoClient:
    """Mercado Pago API client (payments endpoint only)."""

    def __init__(
        self,
        access_token: str | None = None,
        api_url: str | None = None,
        timeout_ms: int | None = None,
        expiration_hours: int | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.logger = logging.getLogger(__name__)

        self.access_token = access_token if access_token is not None else settings.MP_ACCESS_TOKEN
        self.base_url = (api_url or settings.MP_API_URL).rstrip("/")
        self.timeout_ms = timeout_ms or settings.MP_TIMEOUT_MS
        self.expiration_hours = expiration_hours or settings.MP_PAYMENT_EXPIRATION_HOURS
        self._clock = clock or (lambda: datetime.now(UTC))

        if not self.access_token:
            self.logger.error("MP_ACCESS_TOKEN not set - payment calls will fail")

        self._client = httpx.Client(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {self.access_token}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=httpx.Timeout(self.timeout_ms / 1000.0),
        )

    def build_payment_body(
        self,
        amount: Decimal,
        description: str,
        external_reference: str,
        payer: Payer,
    ) -> dict[str, Any]:
        """Build the POST /v1/payments body.

        The payer identification is only included for a CPF that passes the
        checksum; an invalid one is dropped and the charge still proceeds.
        """
        payer_body: dict[str, Any] = {
            "email": payer.email,
            "first_name": payer.first_name,
            "last_name": payer.last_name,
        }

        cpf = normalize_cpf(payer.tax_id)
        if cpf:
            payer_body["identification"] = {"type": "CPF", "number": cpf}
        elif payer.tax_id:
            self.logger.warning(
                "payer_cpf_invalid_omitted", extra={"external_reference": external_reference}
            )

        phone = split_phone(payer.phone)
        if phone:
            payer_body["phone"] = {"area_code": phone[0], "number": phone[1]}

        expiration = self._clock() + timedelta(hours=self.expiration_hours)
        return {
            "transaction_amount": float(amount),
            "description": description,
            "payment_method_id": "pix",
            "payer": payer_body,
            "external_reference": external_reference,
            "date_of_expiration": expiration.isoformat(timespec="milliseconds"),
        }

    def create_payment(
        self,
        amount: Decimal,
        description: str,
        external_reference: str,
        payer: Payer,
    ) -> PaymentResponse:
        """Create a PIX payment and return its id and copy-paste code.

        Args:
            amount: Charge amount
            description: Human readable description shown to the payer
            external_reference: Merchant reference for the charge
            payer: Payer identity

        Returns:
            PaymentResponse; success only for status approved/pending with a
            QR code present
        """
        if not self.access_token:
            return PaymentResponse(success=False, error="MP_ACCESS_TOKEN not configured")

        body = self.build_payment_body(amount, description, external_reference, payer)
        idempotency_key = str(uuid.uuid4())

        try:
            response = self._client.post(
                "/v1/payments",
                json=body,
                headers={"X-Idempotency-Key": idempotency_key},
            )
        except (httpx.HTTPError, httpx.InvalidURL, RuntimeError) as e:
            self.logger.error(
                "payment_create_network_error",
                extra={"external_reference": external_reference, "error": str(e)},
            )
            return PaymentResponse(success=False, error=f"Network error: {e}")

        if response.status_code not in (200, 201):
            self._log_create_failure(response, external_reference)
            return PaymentResponse(
                success=False,
                error=f"Mercado Pago API error: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )

        try:
            payment = response.json()
            payment_id = str(payment["id"])
        except (ValueError, KeyError, TypeError) as e:
            self.logger.error(
                "payment_create_malformed_response",
                extra={"external_reference": external_reference, "error": str(e)},
            )
            return PaymentResponse(
                success=False, error="Malformed payment response", status_code=response.status_code
            )

        status = payment.get("status")
        if status not in ACCEPTED_CREATE_STATUSES:
            self.logger.error(
                "payment_create_rejected",
                extra={
                    "external_reference": external_reference,
                    "payment_id": payment_id,
                    "status": status,
                },
            )
            return PaymentResponse(
                success=False,
                payment_id=payment_id,
                status=status,
                error=f"Payment not accepted: {status}",
                status_code=response.status_code,
            )

        pix_code = _extract_qr_code(payment)
        if not pix_code:
            self.logger.error(
                "payment_create_missing_qr_code",
                extra={"external_reference": external_reference, "payment_id": payment_id},
            )
            return PaymentResponse(
                success=False,
                payment_id=payment_id,
                status=status,
                error="QR code not found in response",
                status_code=response.status_code,
            )

        self.logger.info(
            "payment_created",
            extra={
                "external_reference": external_reference,
                "payment_id": payment_id,
                "status": status,
                "idempotency_key": idempotency_key,
            },
        )
        return PaymentResponse(
            success=True,
            payment_id=payment_id,
            status=status,
            pix_code=pix_code,
            status_code=response.status_code,
        )

    def _log_create_failure(self, response: httpx.Response, external_reference: str) -> None:
        try:
            data = response.json()
        except ValueError:
            data = {}
        message = data.get("message", "") if isinstance(data, dict) else ""
        if response.status_code == 400 and QR_RENDER_DISABLED in (message or ""):
            self.logger.error(
                "payment_create_qr_render_disabled",
                extra={
                    "external_reference": external_reference,
                    "status_code": response.status_code,
                    "hint": "Enable PIX QR code rendering on the Mercado Pago account "
                    "(account verification and a registered PIX key are required)",
                },
            )
            return
        self.logger.error(
            "payment_create_failed",
            extra={
                "external_reference": external_reference,
                "status_code": response.status_code,
                "body": response.text[:500],
            },
        )

    def _get_payment(self, payment_id: str) -> tuple[dict[str, Any] | None, PaymentResponse | None]:
        if not self.access_token:
            return None, PaymentResponse(success=False, error="MP_ACCESS_TOKEN not configured")
        try:
            response = self._client.get(f"/v1/payments/{payment_id}")
        except (httpx.HTTPError, httpx.InvalidURL, RuntimeError) as e:
            self.logger.error(
                "payment_fetch_network_error", extra={"payment_id": payment_id, "error": str(e)}
            )
            return None, PaymentResponse(success=False, error=f"Network error: {e}")

        if response.status_code != 200:
            self.logger.error(
                "payment_fetch_failed",
                extra={
                    "payment_id": payment_id,
                    "status_code": response.status_code,
                    "body": response.text[:500],
                },
            )
            return None, PaymentResponse(
                success=False,
                error=f"Mercado Pago API error: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payment = response.json()
        except ValueError as e:
            self.logger.error(
                "payment_fetch_malformed_response",
                extra={"payment_id": payment_id, "error": str(e)},
            )
            return None, PaymentResponse(success=False, error="Malformed payment response")
        if not isinstance(payment, dict):
            return None, PaymentResponse(success=False, error="Malformed payment response")
        return payment, None

    def fetch_payment(self, payment_id: str) -> PaymentResponse:
        """Fetch an existing payment and its stored copy-paste code."""
        payment, failure = self._get_payment(payment_id)
        if failure is not None:
            return failure

        pix_code = _extract_qr_code(payment)
        status = payment.get("status")
        if not pix_code:
            self.logger.warning(
                "payment_fetch_missing_qr_code", extra={"payment_id": payment_id, "status": status}
            )
            return PaymentResponse(
                success=False,
                payment_id=payment_id,
                status=status,
                error="QR code not found in response",
            )
        return PaymentResponse(
            success=True, payment_id=payment_id, status=status, pix_code=pix_code
        )

    def check_status(self, payment_id: str) -> bool:
        """True only when the gateway reports the payment as approved."""
        payment, failure = self._get_payment(payment_id)
        if failure is not None:
            return False
        status = payment.get("status")
        self.logger.debug(
            "payment_status_checked", extra={"payment_id": payment_id, "status": status}
        )
        return status == "approved"

    def close(self):
        """Close HTTP client connection."""
        if hasattr(self, "_client"):
            self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
