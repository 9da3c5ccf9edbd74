"""Print the Mercado Pago status of one payment (support tool)."""

from __future__ import annotations

import argparse
import json

from backend.core.observability.logging import init_logging
from backend.integrations.mercadopago_client import MercadoPagoClient


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Check a Mercado Pago payment")
    parser.add_argument("payment_id", help="Gateway payment id (parcelas.payment_id)")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    init_logging()

    with MercadoPagoClient() as client:
        response = client.fetch_payment(args.payment_id)
        approved = response.status == "approved"

    print(
        json.dumps(
            {
                "payment_id": args.payment_id,
                "status": response.status,
                "approved": approved,
                "has_pix_code": bool(response.pix_code),
                "error": response.error,
            },
            ensure_ascii=False,
            indent=2,
        )
    )
    return 0 if response.status else 1


if __name__ == "__main__":
    raise SystemExit(main())
