"""Configuration management for the Parcelas agent.

Workflow knobs (pacing, re-check delay, local calendar) with sensible
defaults and environment-based overrides. Infrastructure settings
(database URL, API credentials, timeouts) live in
``backend.core.config.settings``.
"""

import os
from dataclasses import dataclass
from typing import Any, Dict
from zoneinfo import ZoneInfo


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ParcelasConfig:
    """Configuration for the reconciliation workflow.

    Supports overrides via environment variables with pattern:
    PARCELAS_<SETTING>
    """

    # Calendar used for "due today" / "contacted today"
    timezone: str = "America/Sao_Paulo"

    # Pause between details message and PIX code (seconds)
    dispatch_pacing_seconds: float = 1.0

    # Delay before the out-of-band payment status re-check (seconds)
    recheck_delay_seconds: float = 30.0

    # Value stored in parcelas.forma_pagamento on settlement
    payment_method_label: str = "pix"

    # On shutdown: run pending re-checks now (True) or abandon them (False)
    drain_rechecks_on_shutdown: bool = False

    # Signature appended to customer-facing messages
    company_signature: str = "Equipe de Cobrança"

    @classmethod
    def from_env(cls) -> "ParcelasConfig":
        """Create configuration with environment overrides applied.

        Returns:
            Configured instance
        """
        config = cls()
        prefix = "PARCELAS"

        config.timezone = os.getenv(f"{prefix}_TIMEZONE", config.timezone)
        config.dispatch_pacing_seconds = float(
            os.getenv(f"{prefix}_DISPATCH_PACING_SECONDS", config.dispatch_pacing_seconds)
        )
        config.recheck_delay_seconds = float(
            os.getenv(f"{prefix}_RECHECK_DELAY_SECONDS", config.recheck_delay_seconds)
        )
        config.payment_method_label = os.getenv(
            f"{prefix}_PAYMENT_METHOD_LABEL", config.payment_method_label
        )
        config.drain_rechecks_on_shutdown = _env_bool(
            f"{prefix}_DRAIN_RECHECKS_ON_SHUTDOWN", config.drain_rechecks_on_shutdown
        )
        config.company_signature = os.getenv(
            f"{prefix}_COMPANY_SIGNATURE", config.company_signature
        )

        return config

    @property
    def tzinfo(self) -> ZoneInfo:
        """Timezone object for the local business calendar."""
        return ZoneInfo(self.timezone)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "timezone": self.timezone,
            "dispatch_pacing_seconds": self.dispatch_pacing_seconds,
            "recheck_delay_seconds": self.recheck_delay_seconds,
            "payment_method_label": self.payment_method_label,
            "drain_rechecks_on_shutdown": self.drain_rechecks_on_shutdown,
            "company_signature": self.company_signature,
        }
