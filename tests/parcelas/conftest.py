"""Shared fixtures for parcelas tests: SQLite store, fake adapters, fixed clock."""

import threading
from datetime import UTC, date, datetime
from decimal import Decimal

import pytest
import sqlalchemy as sa

from agents.parcelas.config import ParcelasConfig
from agents.parcelas.engine import ReconciliationEngine
from agents.parcelas.recheck import RecheckRegistry
from agents.parcelas.repository import ContactLogRepository, InstallmentRepository
from agents.parcelas.tables import (
    CLIENTES_TABLE,
    CONTRATOS_TABLE,
    CONTROLE_EMAILS_TABLE,
    PARCELAS_TABLE,
    create_all,
)
from backend.integrations.mercadopago_client import PaymentResponse

# 12:00 in Sao Paulo
FIXED_NOW = datetime(2026, 10, 19, 15, 0, tzinfo=UTC)
TODAY = date(2026, 10, 19)
VALID_CPF = "529.982.247-25"


class FakeTimer:
    """threading.Timer stand-in that only runs when a test says so."""

    instances: list["FakeTimer"] = []

    def __init__(self, interval, function, args=None, kwargs=None):
        self.interval = interval
        self.function = function
        self.args = args or ()
        self.kwargs = kwargs or {}
        self.daemon = False
        self.started = False
        self.cancelled = False
        FakeTimer.instances.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def expire(self):
        if not self.cancelled:
            self.function(*self.args, **self.kwargs)


class FakeGateway:
    """In-memory payment gateway recording every call."""

    def __init__(self):
        self.created = []
        self.fetched = []
        self.checked = []
        self.statuses: dict[str, str] = {}
        self.pix_codes: dict[str, str] = {}
        self.create_result: PaymentResponse | None = None
        self.check_error: Exception | None = None
        self._next_id = 9000
        self._lock = threading.Lock()

    def create_payment(self, amount, description, external_reference, payer):
        with self._lock:
            self.created.append(
                {
                    "amount": amount,
                    "description": description,
                    "external_reference": external_reference,
                    "payer": payer,
                }
            )
            if self.create_result is not None:
                return self.create_result
            self._next_id += 1
            payment_id = str(self._next_id)
        pix_code = f"00020126PIX{payment_id}"
        self.statuses[payment_id] = "pending"
        self.pix_codes[payment_id] = pix_code
        return PaymentResponse(
            success=True, payment_id=payment_id, status="pending", pix_code=pix_code
        )

    def fetch_payment(self, payment_id):
        self.fetched.append(payment_id)
        pix_code = self.pix_codes.get(payment_id)
        if not pix_code:
            return PaymentResponse(success=False, error="QR code not found in response")
        return PaymentResponse(
            success=True,
            payment_id=payment_id,
            status=self.statuses.get(payment_id),
            pix_code=pix_code,
        )

    def check_status(self, payment_id):
        self.checked.append(payment_id)
        if self.check_error is not None:
            raise self.check_error
        return self.statuses.get(payment_id) == "approved"


class FakeMessenger:
    """Records sent texts; ``fail_calls`` holds 1-based call numbers that fail."""

    def __init__(self, fail_calls=()):
        self.sent: list[tuple[str, str]] = []
        self.attempts = 0
        self.fail_calls = set(fail_calls)
        self._lock = threading.Lock()

    def send_text(self, address, text):
        with self._lock:
            self.attempts += 1
            if self.attempts in self.fail_calls:
                return False
            self.sent.append((address, text))
            return True


@pytest.fixture
def db_engine(tmp_path):
    engine = sa.create_engine(
        f"sqlite:///{tmp_path / 'parcelas.db'}",
        future=True,
        connect_args={"check_same_thread": False},
    )
    create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def seed(db_engine):
    """Insert a customer + contract + installment; returns the installment id."""

    def _seed(
        installment_id=1,
        customer_id=1,
        contract_id=10,
        number=1,
        amount=Decimal("150.00"),
        due_date=TODAY,
        status="pendente",
        payment_id=None,
        name="Maria Silva Souza",
        phone="(11) 98765-4321",
        cpf=VALID_CPF,
        email="maria@example.com",
    ):
        with db_engine.begin() as conn:
            exists = conn.execute(
                sa.select(CLIENTES_TABLE.c.id).where(CLIENTES_TABLE.c.id == customer_id)
            ).first()
            if not exists:
                conn.execute(
                    sa.insert(CLIENTES_TABLE).values(
                        id=customer_id, nome=name, whatsapp=phone, cpf=cpf, email=email
                    )
                )
            contract = conn.execute(
                sa.select(CONTRATOS_TABLE.c.id).where(CONTRATOS_TABLE.c.id == contract_id)
            ).first()
            if not contract:
                conn.execute(
                    sa.insert(CONTRATOS_TABLE).values(id=contract_id, cliente_id=customer_id)
                )
            conn.execute(
                sa.insert(PARCELAS_TABLE).values(
                    id=installment_id,
                    contrato_id=contract_id,
                    numero_parcela=number,
                    valor=amount,
                    data_vencimento=due_date,
                    status=status,
                    payment_id=payment_id,
                )
            )
        return installment_id

    return _seed


@pytest.fixture
def contact_rows(db_engine):
    def _rows():
        with db_engine.connect() as conn:
            return conn.execute(
                sa.select(CONTROLE_EMAILS_TABLE.c.cliente_id, CONTROLE_EMAILS_TABLE.c.data_envio)
            ).fetchall()

    return _rows


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def messenger():
    return FakeMessenger()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_engine(db_engine, gateway, messenger, sleeps, timers):
    def _make(messenger_override=None, clock=None, config=None):
        config = config or ParcelasConfig()
        return ReconciliationEngine(
            installments=InstallmentRepository(db_engine),
            contact_log=ContactLogRepository(db_engine),
            gateway=gateway,
            messenger=messenger_override or messenger,
            config=config,
            rechecks=RecheckRegistry(config.recheck_delay_seconds, timer_factory=FakeTimer),
            clock=clock or (lambda: FIXED_NOW),
            sleep=sleeps.append,
        )

    return _make


@pytest.fixture
def timers():
    FakeTimer.instances = []
    return FakeTimer.instances


@pytest.fixture
def make_messenger():
    return FakeMessenger


@pytest.fixture
def timer_factory(timers):
    return FakeTimer
