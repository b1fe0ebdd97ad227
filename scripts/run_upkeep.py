"""Keeper entry point: check upkeep and request a draw when it is due.

Run it periodically (cron, systemd timer). Oracle endpoints and lottery
settings come from the environment; see ``LotteryConfig.from_env``.
"""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv

from prizepool.config import LotteryConfig
from prizepool.db.engine import get_sessionmaker, make_engine
from prizepool.lottery.errors import RandomnessRequestError, UpkeepNotNeededError
from prizepool.workflows import check_upkeep, lottery_status, perform_upkeep

logger = logging.getLogger("prizepool.keeper")


def main() -> int:
    load_dotenv()
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = LotteryConfig.from_env()
    Session = get_sessionmaker(make_engine())

    with Session() as session:
        status = lottery_status(session, config=config)
        if not status["exists"]:
            logger.info(f"Lottery '{config.name}' has no round yet")
            return 0
        if status["unresolved"]:
            logger.warning(
                f"Round {status['round_number']} is unresolved "
                f"(pending request {status['pending_request_id']}, "
                f"since {status['pending_since']})"
            )
        if not check_upkeep(session, config=config):
            logger.info("Upkeep not needed")
            return 0

    session = Session()
    try:
        request_id = perform_upkeep(session, config=config)
        session.commit()
    except UpkeepNotNeededError as exc:
        # Another keeper got there first.
        session.rollback()
        logger.info(str(exc))
        return 0
    except RandomnessRequestError as exc:
        # Keep the round parked in DRAWING so the failure stays visible.
        session.commit()
        logger.error(f"Draw request failed: {exc}")
        return 1
    finally:
        session.close()

    logger.info(f"Requested draw {request_id}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
