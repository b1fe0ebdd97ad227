"""Migrate the database to head and make sure the configured lottery exists."""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import inspect

from prizepool.config import LotteryConfig
from prizepool.db.engine import get_sessionmaker, make_engine
from prizepool.db.utils import LOTTERY_TABLE_PREFIX
from prizepool.models import LotteryRound
from prizepool.workflows import lottery_status


def upgrade_db(target_revision: str = "head") -> None:
    """Apply the lottery migrations up to ``target_revision``."""
    project_root = Path(__file__).resolve().parents[1]
    alembic_cfg = Config(str(project_root / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(project_root / "alembic"))
    command.upgrade(alembic_cfg, target_revision)


def ensure_round(config: LotteryConfig) -> dict:
    """Create the round row for ``config.name`` if missing and return its status."""
    Session = get_sessionmaker(make_engine())
    with Session.begin() as session:
        LotteryRound.get_or_create(session, config.name, now=int(time.time()))
        return lottery_status(session, config=config)


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    upgrade_db()
    tables = inspect(make_engine()).get_table_names()
    print(
        "Lottery tables:",
        ", ".join(sorted(t for t in tables if t.startswith(LOTTERY_TABLE_PREFIX))),
    )
    print(json.dumps(ensure_round(LotteryConfig.from_env()), indent=2))


if __name__ == "__main__":
    main()
