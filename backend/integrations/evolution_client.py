"""Evolution API client for WhatsApp text messages."""

import logging

import httpx

from agents.parcelas.validators import normalize_phone
from backend.core.config import settings


class EvolutionClient:
    """Sends plain-text WhatsApp messages through an Evolution instance.

    ``send_text`` reports delivery acceptance as a bool and never raises.
    """

    def __init__(
        self,
        api_url: str | None = None,
        api_key: str | None = None,
        instance_id: str | None = None,
        timeout_ms: int | None = None,
        verify_tls: bool | None = None,
        country_code: str | None = None,
    ):
        self.logger = logging.getLogger(__name__)

        self.api_url = (api_url if api_url is not None else settings.EVOLUTION_API_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.EVOLUTION_API_KEY
        self.instance_id = instance_id if instance_id is not None else settings.INSTANCE_ID
        self.timeout_ms = timeout_ms or settings.EVOLUTION_TIMEOUT_MS
        self.verify_tls = settings.EVOLUTION_VERIFY_TLS if verify_tls is None else verify_tls
        self.country_code = country_code or settings.PHONE_COUNTRY_CODE

        if not self.configured:
            self.logger.error(
                "evolution_config_missing",
                extra={
                    "api_url": "OK" if self.api_url else "missing",
                    "api_key": "OK" if self.api_key else "missing",
                    "instance_id": "OK" if self.instance_id else "missing",
                },
            )

        self._client = httpx.Client(
            headers={"Content-Type": "application/json", "apikey": self.api_key},
            timeout=httpx.Timeout(self.timeout_ms / 1000.0),
            verify=self.verify_tls,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_url and self.api_key and self.instance_id)

    def send_text(self, address: str, text: str) -> bool:
        """Send a text message.

        Args:
            address: Recipient phone in any formatting
            text: Message body

        Returns:
            True only when the API answered 200/201
        """
        if not self.configured:
            return False

        number = normalize_phone(address, self.country_code)
        if not number:
            self.logger.error("message_invalid_address")
            return False

        url = f"{self.api_url}/message/sendText/{self.instance_id}"
        try:
            response = self._client.post(url, json={"number": number, "text": text})
        except (httpx.HTTPError, httpx.InvalidURL, RuntimeError) as e:
            # RuntimeError: client already closed
            self.logger.error("message_send_network_error", extra={"error": str(e)})
            return False

        if response.status_code not in (200, 201):
            self.logger.error(
                "message_send_failed",
                extra={"status_code": response.status_code, "body": response.text[:500]},
            )
            return False

        self.logger.debug("message_sent", extra={"status_code": response.status_code})
        return True

    def close(self):
        """Close HTTP client connection."""
        if hasattr(self, "_client"):
            self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
