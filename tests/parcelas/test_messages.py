from datetime import date
from decimal import Decimal

import pytest

from agents.parcelas.config import ParcelasConfig
from agents.parcelas.dto import Contract, Customer, Installment
from agents.parcelas.messages import MessageComposer, external_reference, payment_description


@pytest.fixture
def installment():
    customer = Customer(id=1, name="Ana Lima", phone="11987654321", tax_id=None, email=None)
    return Installment(
        id=7,
        contract=Contract(id=42, customer=customer),
        number=3,
        amount=Decimal("250.5"),
        due_date=date(2026, 10, 5),
    )


def test_reminder_parts(installment):
    message = MessageComposer().reminder(installment, "00020126PIX")

    assert message.pix_code == "00020126PIX"
    lines = message.details.split("\n")
    assert lines[0] == "Olá Ana Lima"
    assert lines[1] == "a parcela 3 do seu contrato encontra em aberto"
    assert lines[2] == "Valor Original: R$ 250.50"
    assert lines[-1] == "5. Confirme o pagamento"
    assert "00020126PIX" not in message.details


def test_confirmation_uses_signature(installment):
    composer = MessageComposer(ParcelasConfig(company_signature="Financeiro ACME"))

    text = composer.confirmation(installment, date(2026, 10, 19))

    assert text.startswith("✨ *PAGAMENTO APROVADO COM SUCESSO!* ✨")
    assert "• Data de vencimento: 05/10/2026" in text
    assert text.endswith("Atenciosamente,\nFinanceiro ACME")


@pytest.mark.parametrize(
    "overdue,description,reference",
    [
        (False, "Parcela 3 - Contrato 42", "CONTRATO_42_PARCELA_3"),
        (True, "Parcela 3 - Contrato 42 (ATRASADA)", "CONTRATO_42_PARCELA_3_ATRASADA"),
    ],
)
def test_gateway_labels(installment, overdue, description, reference):
    assert payment_description(installment, overdue) == description
    assert external_reference(installment, overdue) == reference
