"""Installment reconciliation and PIX reminder workflow.

One ``scan()`` reconciles installments whose PIX charge was already issued,
then walks today's and overdue pending installments through ``process()``.
A customer receives at most one reminder sequence per local calendar day:
the contact ledger row is written in the same transaction that holds the
(customer, day) lock, and only after both reminder parts were accepted.
"""

import logging
import time
from datetime import UTC, date, datetime
from typing import Callable, Optional, Protocol

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from backend.core.observability import set_trace_id
from backend.core.observability.metrics import (
    increment_dispatch_failures,
    increment_item_errors,
    increment_messages_sent,
    increment_payments_created,
    increment_payments_reconciled,
    increment_process_outcome,
    increment_scan_runs,
    record_scan_duration,
)

from .config import ParcelasConfig
from .dto import Installment, Payer, PixCharge, ProcessOutcome, ScanResult
from .messages import MessageComposer, ReminderMessage, external_reference, payment_description
from .recheck import RecheckRegistry
from .repository import ContactLogRepository, InstallmentRepository

logger = logging.getLogger(__name__)


class PaymentGateway(Protocol):
    def create_payment(self, amount, description, external_reference, payer): ...

    def fetch_payment(self, payment_id): ...

    def check_status(self, payment_id) -> bool: ...


class Messenger(Protocol):
    def send_text(self, address: str, text: str) -> bool: ...


def _utc_now() -> datetime:
    return datetime.now(UTC)


class ReconciliationEngine:
    """Drives reconciliation and reminder dispatch for pending installments."""

    def __init__(
        self,
        installments: InstallmentRepository,
        contact_log: ContactLogRepository,
        gateway: PaymentGateway,
        messenger: Messenger,
        config: Optional[ParcelasConfig] = None,
        composer: Optional[MessageComposer] = None,
        rechecks: Optional[RecheckRegistry] = None,
        clock: Callable[[], datetime] = _utc_now,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.installments = installments
        self.contact_log = contact_log
        self.gateway = gateway
        self.messenger = messenger
        self.config = config or ParcelasConfig.from_env()
        self.composer = composer or MessageComposer(self.config)
        self.rechecks = rechecks or RecheckRegistry(self.config.recheck_delay_seconds)
        self._clock = clock
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls, engine: Optional[Engine] = None, config: Optional[ParcelasConfig] = None
    ) -> "ReconciliationEngine":
        """Wire the engine against the configured database and live adapters."""
        from backend.core.database import get_engine
        from backend.integrations.evolution_client import EvolutionClient
        from backend.integrations.mercadopago_client import MercadoPagoClient

        engine = engine or get_engine()
        return cls(
            installments=InstallmentRepository(engine),
            contact_log=ContactLogRepository(engine),
            gateway=MercadoPagoClient(),
            messenger=EvolutionClient(),
            config=config,
        )

    def today(self) -> date:
        """Current calendar day in the configured business timezone."""
        return self._clock().astimezone(self.config.tzinfo).date()

    def scan(self) -> ScanResult:
        """Run one full reconciliation pass."""
        trace_id = set_trace_id()
        started = time.monotonic()
        result = ScanResult()
        today = self.today()

        logger.info("scan_started", extra={"scan_id": trace_id, "today": today.isoformat()})

        self._reconcile_issued(result)

        try:
            due_today = self.installments.list_due_on(today)
            overdue = self.installments.list_overdue(today)
        except Exception as e:
            result.add_error(f"Candidate listing failed: {e}", fatal=True)
            logger.error(
                "scan_candidate_listing_failed",
                extra={"scan_id": trace_id, "error": str(e)},
                exc_info=True,
            )
            return self._finish_scan(result, started, trace_id)

        result.due_today = len(due_today)
        result.overdue = len(overdue)

        for installment in due_today:
            result.record(self.process(installment, overdue=False))
        for installment in overdue:
            result.record(self.process(installment, overdue=True))

        return self._finish_scan(result, started, trace_id)

    def _reconcile_issued(self, result: ScanResult) -> None:
        try:
            issued = self.installments.list_pending_with_payment()
        except Exception as e:
            result.add_error(f"Issued payment listing failed: {e}")
            logger.error("scan_issued_listing_failed", extra={"error": str(e)}, exc_info=True)
            return

        for installment in issued:
            try:
                if self.gateway.check_status(installment.payment_id) and self.mark_paid(
                    installment
                ):
                    result.reconciled_paid += 1
            except Exception as e:
                result.add_error(f"Installment {installment.id}: {e}")
                self._log_item_error("reconcile_item_failed", installment, e)

    def _finish_scan(self, result: ScanResult, started: float, trace_id: str) -> ScanResult:
        result.processing_time_seconds = time.monotonic() - started
        record_scan_duration(result.processing_time_seconds * 1000)
        increment_scan_runs("success" if result.success else "failed")
        logger.info("scan_finished", extra={"scan_id": trace_id, **result.to_dict()})
        return result

    def process(self, installment: Installment, overdue: bool = False) -> ProcessOutcome:
        """Reconcile or remind for a single installment.

        Args:
            installment: Pending installment read in this scan
            overdue: Whether the installment is past its due date

        Returns:
            ProcessOutcome describing what happened; never raises
        """
        try:
            outcome, charge = self._process(installment, overdue)
        except Exception as e:
            increment_item_errors()
            self._log_item_error("process_failed", installment, e)
            outcome, charge = ProcessOutcome.ERROR, None

        increment_process_outcome(outcome.value)
        logger.info(
            "installment_processed",
            extra={
                "installment_id": installment.id,
                "overdue": overdue,
                "outcome": outcome.value,
            },
        )

        if outcome is ProcessOutcome.NOTIFIED and charge is not None:
            self._schedule_recheck(installment.id, charge.payment_id)
        return outcome

    def _process(
        self, installment: Installment, overdue: bool
    ) -> tuple[ProcessOutcome, Optional[PixCharge]]:
        if installment.payment_id and self.gateway.check_status(installment.payment_id):
            self.mark_paid(installment)
            return ProcessOutcome.PAID, None

        today = self.today()
        customer_id = installment.customer.id
        if self.contact_log.exists(customer_id, today):
            return ProcessOutcome.ALREADY_CONTACTED, None

        with self.contact_log.engine.connect() as conn:
            trans = conn.begin()
            try:
                with self.contact_log.customer_day_lock(conn, customer_id, today):
                    outcome, charge = self._contact(conn, installment, overdue, today)
                    if outcome is ProcessOutcome.NOTIFIED:
                        trans.commit()
                    else:
                        trans.rollback()
            except IntegrityError:
                trans.rollback()
                logger.info(
                    "contact_ledger_conflict",
                    extra={"installment_id": installment.id, "customer_id": customer_id},
                )
                return ProcessOutcome.ALREADY_CONTACTED, None
            except Exception:
                if trans.is_active:
                    trans.rollback()
                raise
        return outcome, charge

    def _contact(
        self, conn, installment: Installment, overdue: bool, today: date
    ) -> tuple[ProcessOutcome, Optional[PixCharge]]:
        customer_id = installment.customer.id
        if self.contact_log.exists(customer_id, today, conn=conn):
            return ProcessOutcome.ALREADY_CONTACTED, None

        charge = self._acquire_charge(installment, overdue)
        if charge is None:
            return ProcessOutcome.NO_PAYMENT_DATA, None

        message = self.composer.reminder(installment, charge.pix_code)
        if not self._dispatch(installment, message):
            return ProcessOutcome.DISPATCH_FAILED, charge

        self.contact_log.insert(conn, customer_id, today)
        return ProcessOutcome.NOTIFIED, charge

    def _acquire_charge(self, installment: Installment, overdue: bool) -> Optional[PixCharge]:
        if installment.payment_id:
            response = self.gateway.fetch_payment(installment.payment_id)
            if not response.success or not response.pix_code:
                logger.warning(
                    "payment_reuse_failed",
                    extra={
                        "installment_id": installment.id,
                        "payment_id": installment.payment_id,
                        "error": response.error,
                    },
                )
                return None
            return PixCharge(payment_id=installment.payment_id, pix_code=response.pix_code)

        response = self.gateway.create_payment(
            installment.amount,
            payment_description(installment, overdue),
            external_reference(installment, overdue),
            Payer.from_customer(installment.customer),
        )
        if not response.success or not response.payment_id or not response.pix_code:
            logger.warning(
                "payment_create_unavailable",
                extra={"installment_id": installment.id, "error": response.error},
            )
            return None

        increment_payments_created()
        self.installments.attach_payment(installment.id, response.payment_id)
        installment.payment_id = response.payment_id
        return PixCharge(payment_id=response.payment_id, pix_code=response.pix_code)

    def _dispatch(self, installment: Installment, message: ReminderMessage) -> bool:
        address = installment.customer.phone

        if not self.messenger.send_text(address, message.details):
            increment_dispatch_failures()
            logger.warning(
                "dispatch_failed", extra={"installment_id": installment.id, "part": "details"}
            )
            return False
        increment_messages_sent("details")

        self._sleep(self.config.dispatch_pacing_seconds)

        if not self.messenger.send_text(address, message.pix_code):
            increment_dispatch_failures()
            logger.warning(
                "dispatch_failed", extra={"installment_id": installment.id, "part": "pix_code"}
            )
            return False
        increment_messages_sent("pix_code")
        return True

    def mark_paid(self, installment: Installment) -> bool:
        """Settle a pending installment and send the payment confirmation.

        Returns False without sending anything when the installment had
        already been settled.
        """
        payment_date = self.today()
        transitioned = self.installments.mark_paid(
            installment.id, payment_date, self.config.payment_method_label
        )
        if not transitioned:
            logger.info(
                "installment_already_paid",
                extra={"installment_id": installment.id, "payment_id": installment.payment_id},
            )
            return False

        increment_payments_reconciled()
        logger.info(
            "installment_paid",
            extra={
                "installment_id": installment.id,
                "payment_id": installment.payment_id,
                "payment_date": payment_date.isoformat(),
            },
        )
        if installment.payment_id:
            self.rechecks.cancel(installment.payment_id)

        try:
            text = self.composer.confirmation(installment, payment_date)
            sent = self.messenger.send_text(installment.customer.phone, text)
        except Exception as e:
            sent = False
            logger.error(
                "confirmation_failed",
                extra={"installment_id": installment.id, "error": str(e)},
                exc_info=True,
            )
        if sent:
            increment_messages_sent("confirmation")
        else:
            logger.warning("confirmation_not_sent", extra={"installment_id": installment.id})
        return True

    def _schedule_recheck(self, installment_id: int, payment_id: str) -> None:
        self.rechecks.schedule(payment_id, lambda: self.recheck(installment_id, payment_id))

    def recheck(self, installment_id: int, payment_id: str) -> bool:
        """Re-read the installment and settle it if the gateway approved it."""
        current = self.installments.get(installment_id)
        if current is None or current.is_paid:
            return False
        if not self.gateway.check_status(payment_id):
            logger.debug(
                "recheck_not_approved",
                extra={"installment_id": installment_id, "payment_id": payment_id},
            )
            return False
        return self.mark_paid(current)

    def close(self) -> None:
        """Settle the re-check registry and release adapter connections."""
        self.rechecks.shutdown(drain=self.config.drain_rechecks_on_shutdown)
        for adapter in (self.gateway, self.messenger):
            close = getattr(adapter, "close", None)
            if close is not None:
                close()

    @staticmethod
    def _log_item_error(event: str, installment: Installment, exc: Exception) -> None:
        extra = {"installment_id": installment.id, "error": str(exc)}
        response = getattr(exc, "response", None)
        if response is not None:
            extra["status_code"] = getattr(response, "status_code", None)
            extra["body"] = str(getattr(response, "text", ""))[:500]
        logger.error(event, extra=extra, exc_info=True)
