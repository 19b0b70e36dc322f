"""Anniversary vacation accrual, meant for a daily cron job.

Usage: python scripts/accrue_vacations.py [YYYY-MM-DD]
"""

from __future__ import annotations

import importlib
import logging
import sys
from datetime import date
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from dotenv import load_dotenv

from config import get_settings_module

from attendance_ledger.common.authz import SYSTEM_ACTOR
from attendance_ledger.common.datetime_utils import parse_iso_date
from attendance_ledger.container import build_container

logger = logging.getLogger("accrue_vacations")


def main(argv: list[str]) -> int:
    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    logging.basicConfig(level=getattr(settings, "LOG_LEVEL", "INFO"), format="%(levelname)s %(name)s: %(message)s")

    as_of = parse_iso_date(argv[0]) if argv else date.today()
    container = build_container(db_config=dict(settings.DB_CONFIG), settings=settings)
    run = container.vacation_service.accrue_anniversaries(actor=SYSTEM_ACTOR, as_of=as_of)

    for item in run.accrued:
        logger.info("Employee %s: period starting %s accrued", item["employeeId"], item["periodStart"])
    for error in run.errors:
        logger.error("Employee %s: %s", error["employeeId"], error["reason"])
    return 1 if run.errors else 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
