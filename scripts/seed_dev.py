import random
import time

from sqlalchemy.orm import sessionmaker
from prizepool.config import LotteryConfig
from prizepool.db.engine import make_engine
from prizepool.lottery.engine import LotteryEngine
from prizepool.models import Base
from prizepool.oracles.api import StaticPriceFeed


def main() -> None:
    """Seed the development database with an open round and a few entrants."""
    engine = make_engine()

    with engine.connect() as conn:
        conn.exec_driver_sql("PRAGMA foreign_keys=OFF")
        Base.metadata.drop_all(bind=conn)
        conn.exec_driver_sql("PRAGMA foreign_keys=ON")
        conn.commit()

    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)

    config = LotteryConfig.from_env()
    # 2,000 USD per native unit with 8 decimals, like a typical ETH/USD feed.
    price_feed = StaticPriceFeed(2000 * 10**8, 8, clock=lambda: int(time.time()))
    rng = random.Random(1234)

    with Session.begin() as session:
        lottery = LotteryEngine(session, config, price_feed=price_feed)
        price = lottery.ticket_price()
        for i in range(1, 6):
            prediction = rng.sample(range(1, 51), 6)
            lottery.register(f"0xdev{i:036x}", prediction, price)

        print(
            f"Seeded round {lottery.round.round_number} of '{config.name}' with "
            f"{lottery.entrant_count} entrants; prize pool {lottery.round.prize_pool}, "
            f"fee pool {lottery.round.fee_pool}"
        )


if __name__ == "__main__":
    main()
