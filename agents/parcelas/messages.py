"""Customer-facing message composition (Jinja2 text templates)."""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from .config import ParcelasConfig
from .dto import Installment

TEMPLATE_DIR = Path(__file__).parent / "templates"
REMINDER_TEMPLATE = "cobranca.jinja.txt"
CONFIRMATION_TEMPLATE = "confirmacao.jinja.txt"


@dataclass(frozen=True)
class ReminderMessage:
    """Two-part reminder: details text first, then the bare PIX code."""

    details: str
    pix_code: str


class MessageComposer:
    """Renders reminder and confirmation texts."""

    def __init__(self, config: ParcelasConfig | None = None):
        self.config = config or ParcelasConfig()
        self.logger = logging.getLogger(__name__)

        self.env = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            undefined=StrictUndefined,
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["money"] = self._money_filter
        self.env.filters["datefmt"] = self._datefmt_filter

    @staticmethod
    def _money_filter(amount) -> str:
        return f"{Decimal(str(amount)):.2f}"

    @staticmethod
    def _datefmt_filter(value, format_str: str = "%d/%m/%Y") -> str:
        if hasattr(value, "strftime"):
            return value.strftime(format_str)
        return str(value)

    def reminder(self, installment: Installment, pix_code: str) -> ReminderMessage:
        """Compose the two-part reminder for one installment.

        The PIX code is sent verbatim as its own message so it can be copied
        without surrounding text.
        """
        details = self.env.get_template(REMINDER_TEMPLATE).render(
            customer_name=installment.customer.name,
            installment_number=installment.number,
            amount=installment.amount,
        )
        return ReminderMessage(details=details, pix_code=pix_code)

    def confirmation(self, installment: Installment, payment_date: date) -> str:
        """Compose the payment confirmation text."""
        return self.env.get_template(CONFIRMATION_TEMPLATE).render(
            customer_name=installment.customer.name,
            contract_id=installment.contract.id,
            installment_number=installment.number,
            amount=installment.amount,
            due_date=installment.due_date,
            payment_date=payment_date,
            signature=self.config.company_signature,
        )


def payment_description(installment: Installment, overdue: bool) -> str:
    """Gateway description, e.g. ``Parcela 3 - Contrato 42 (ATRASADA)``."""
    description = f"Parcela {installment.number} - Contrato {installment.contract.id}"
    if overdue:
        description += " (ATRASADA)"
    return description


def external_reference(installment: Installment, overdue: bool) -> str:
    """Merchant reference, e.g. ``CONTRATO_42_PARCELA_3_ATRASADA``."""
    reference = f"CONTRATO_{installment.contract.id}_PARCELA_{installment.number}"
    if overdue:
        reference += "_ATRASADA"
    return reference
