"""Parcelas Agent - installment reconciliation and PIX reminders.

Scans pending installments, settles the ones whose PIX charge was approved
and sends each debtor at most one WhatsApp reminder per day with a PIX
copy-paste code.

Key Components:
- Config: Workflow knobs with environment overrides
- DTOs: Data transfer objects for type safety
- Repository: Installment store and per-day contact ledger
- Engine: Reconciliation and reminder workflow
- Recheck: Delayed payment status re-checks
- Scheduler: Periodic, self-serializing scan trigger
- Templates: Jinja2-based message texts
"""

__version__ = "1.0.0"

from .config import ParcelasConfig
from .dto import (
    ContactLogEntry,
    Contract,
    Customer,
    Installment,
    InstallmentStatus,
    Payer,
    PixCharge,
    ProcessOutcome,
    ScanResult,
)
from .engine import ReconciliationEngine
from .recheck import RecheckRegistry
from .repository import ContactLogRepository, InstallmentRepository
from .scheduler import ScanScheduler

__all__ = [
    "ParcelasConfig",
    "Customer",
    "Contract",
    "Installment",
    "InstallmentStatus",
    "ContactLogEntry",
    "Payer",
    "PixCharge",
    "ProcessOutcome",
    "ScanResult",
    "InstallmentRepository",
    "ContactLogRepository",
    "ReconciliationEngine",
    "RecheckRegistry",
    "ScanScheduler",
]
