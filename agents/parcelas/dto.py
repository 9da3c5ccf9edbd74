"""Data Transfer Objects for the Parcelas agent.

Provides type-safe data structures for the reconciliation workflow.
Records are read fresh from the store on every scan and never cached.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional


class InstallmentStatus(Enum):
    """Installment status as stored in parcelas.status."""
    PENDING = "pendente"
    PAID = "pago"


class ProcessOutcome(Enum):
    """Result of one process() pass over an installment."""
    PAID = "paid"
    ALREADY_CONTACTED = "already_contacted"
    NO_PAYMENT_DATA = "no_payment_data"
    DISPATCH_FAILED = "dispatch_failed"
    NOTIFIED = "notified"
    ERROR = "error"


@dataclass(frozen=True)
class Customer:
    """Debtor reference data (read-only for this agent)."""

    id: int
    name: str
    phone: str
    tax_id: Optional[str] = None
    email: Optional[str] = None


@dataclass(frozen=True)
class Contract:
    """Contract grouping installments of one customer."""

    id: int
    customer: Customer


@dataclass
class Installment:
    """One scheduled debt payment within a contract."""

    id: int
    contract: Contract
    number: int
    amount: Decimal
    due_date: date
    status: InstallmentStatus = InstallmentStatus.PENDING
    payment_date: Optional[date] = None
    paid_amount: Optional[Decimal] = None
    payment_method: Optional[str] = None
    payment_id: Optional[str] = None
    note: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def customer(self) -> Customer:
        return self.contract.customer

    @property
    def is_paid(self) -> bool:
        return self.status is InstallmentStatus.PAID

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization (no PII)."""
        return {
            "installment_id": self.id,
            "contract_id": self.contract.id,
            "customer_id": self.customer.id,
            "number": self.number,
            "amount": f"{self.amount:.2f}",
            "due_date": self.due_date.isoformat(),
            "status": self.status.value,
            "payment_date": self.payment_date.isoformat() if self.payment_date else None,
            "paid_amount": f"{self.paid_amount:.2f}" if self.paid_amount is not None else None,
            "payment_method": self.payment_method,
            "payment_id": self.payment_id,
        }


@dataclass(frozen=True)
class ContactLogEntry:
    """Deduplication token: customer was messaged on contact_date."""

    id: int
    customer_id: int
    contact_date: date
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class Payer:
    """Payer identity sent to the payment gateway."""

    name: str
    email: Optional[str] = None
    tax_id: Optional[str] = None
    phone: Optional[str] = None

    @property
    def first_name(self) -> str:
        return self.name.split(" ")[0]

    @property
    def last_name(self) -> str:
        return " ".join(self.name.split(" ")[1:])

    @classmethod
    def from_customer(cls, customer: Customer) -> "Payer":
        return cls(
            name=customer.name,
            email=customer.email,
            tax_id=customer.tax_id,
            phone=customer.phone,
        )


@dataclass(frozen=True)
class PixCharge:
    """Redeemable payment data for one installment."""

    payment_id: str
    pix_code: str


@dataclass
class ScanResult:
    """Result of one reconciliation scan."""

    success: bool = True
    reconciled_paid: int = 0
    due_today: int = 0
    overdue: int = 0
    outcomes: Dict[str, int] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    processing_time_seconds: float = 0.0

    def record(self, outcome: ProcessOutcome) -> None:
        self.outcomes[outcome.value] = self.outcomes.get(outcome.value, 0) + 1

    def add_error(self, error: str, fatal: bool = False) -> None:
        """Add error message; fatal errors mark the scan as failed."""
        self.errors.append(error)
        if fatal:
            self.success = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "reconciled_paid": self.reconciled_paid,
            "due_today": self.due_today,
            "overdue": self.overdue,
            "outcomes": dict(self.outcomes),
            "errors": list(self.errors),
            "processing_time_seconds": self.processing_time_seconds,
        }
