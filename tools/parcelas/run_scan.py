"""Run the installment reconciliation scan once or as a polling loop."""

from __future__ import annotations

import argparse
import json

from agents.parcelas.config import ParcelasConfig
from agents.parcelas.engine import ReconciliationEngine
from agents.parcelas.scheduler import ScanScheduler
from backend.core.observability.logging import get_logger, init_logging

logger = get_logger("tools.parcelas.run_scan")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Installment reconciliation scan")
    parser.add_argument("--once", action="store_true", help="Run a single scan and print the result")
    parser.add_argument(
        "--interval",
        type=float,
        help="Seconds between scans in loop mode (defaults to SCAN_INTERVAL_SECONDS)",
    )
    parser.add_argument(
        "--drain-rechecks",
        action="store_true",
        help="Run pending payment re-checks on exit instead of dropping them",
    )
    return parser.parse_args(argv)


def build_scheduler(args: argparse.Namespace) -> ScanScheduler:
    config = ParcelasConfig.from_env()
    if args.drain_rechecks:
        config.drain_rechecks_on_shutdown = True
    return ScanScheduler(ReconciliationEngine.from_settings(config=config), args.interval)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    init_logging()
    scheduler = build_scheduler(args)

    if args.once:
        try:
            result = scheduler.run_once()
        finally:
            scheduler.engine.close()
        print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
        return 0 if result.success else 1

    return scheduler.run_forever()


if __name__ == "__main__":
    raise SystemExit(main())
