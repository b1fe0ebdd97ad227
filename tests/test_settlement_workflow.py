import unittest
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from prizepool import workflows
from prizepool.config import LotteryConfig
from prizepool.lottery import (
    DrawNotPendingError,
    InvalidRandomWordsError,
    LotteryEngine,
    NotAdministratorError,
    RandomnessRequestError,
    RoundNotOpenError,
    TransferFailedError,
    UnauthorizedFulfillmentError,
    UnknownRequestError,
    UpkeepNotNeededError,
)
from prizepool.lottery.engine import FEES_WITHDRAWN, POOL_ROLLED_OVER, WINNERS_PAID
from prizepool.lottery.randomness import DRAW_REQUEST_FAILED, DRAW_REQUESTED
from prizepool.models import (
    Base,
    DrawOutcome,
    DrawRequest,
    DrawRequestStatus,
    LotteryEvent,
    LotteryRound,
    Payout,
    PayoutStatus,
    RoundPhase,
)
from prizepool.oracles.api import StaticPriceFeed

START = 1_700_000_000
INTERVAL = 3600
ADMIN = "0xadmin"
COORDINATOR = "0xcoordinator"

TICKET_PRICE = 25 * 10**15
ENTRY_FEE = 250 * 10**12
ENTRY_POOL_SHARE = TICKET_PRICE - ENTRY_FEE

# Words reduce to the winning set (1, 2, 3, 4, 5, 6).
WINNING_WORDS = [49 * 10**60 + i for i in range(6)]


class FakeClock:
    def __init__(self, now: int):
        self.now = now

    def __call__(self) -> int:
        return self.now


class DummyCoordinator:
    def __init__(self, first_id: int = 2**200, error: Optional[Exception] = None):
        self.next_id = first_id
        self.error = error
        self.calls: list[tuple] = []

    def request_random_words(
        self, key_hash, subscription_id, confirmations, gas_limit, num_words
    ):
        self.calls.append(
            (key_hash, subscription_id, confirmations, gas_limit, num_words)
        )
        if self.error is not None:
            raise self.error
        request_id = self.next_id
        self.next_id += 1
        return request_id


class DummyTransfer:
    def __init__(self, failing: Optional[set[str]] = None):
        self.failing = failing or set()
        self.calls: list[tuple[str, int]] = []
        self.references: list[Optional[str]] = []

    def transfer(
        self, recipient: str, amount: int, *, reference: Optional[str] = None
    ) -> None:
        if recipient in self.failing:
            raise RuntimeError("wallet rejected transfer")
        self.calls.append((recipient, amount))
        self.references.append(reference)


class SettlementWorkflowTestCase(unittest.TestCase):
    def setUp(self):
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(
            bind=self.engine, future=True, expire_on_commit=False
        )
        self.clock = FakeClock(START)
        self.config = LotteryConfig(
            name="settlement-test",
            draw_interval=INTERVAL,
            admin_identity=ADMIN,
            coordinator_identity=COORDINATOR,
            subscription_id=7,
        )
        self.feed = StaticPriceFeed(2000 * 10**8, 8, clock=self.clock)
        self.coordinator = DummyCoordinator()
        self.transfer = DummyTransfer()

    def tearDown(self):
        self.engine.dispose()

    # -------- helpers --------
    def _play(self, identity, prediction, value=TICKET_PRICE):
        with self.Session.begin() as session:
            return workflows.play(
                session,
                identity,
                prediction,
                value,
                config=self.config,
                price_feed=self.feed,
                clock=self.clock,
            )

    def _perform_upkeep(self):
        with self.Session.begin() as session:
            return workflows.perform_upkeep(
                session,
                config=self.config,
                coordinator=self.coordinator,
                clock=self.clock,
            )

    def _fulfill(self, request_id, words=WINNING_WORDS, sender=COORDINATOR, transfer=None):
        with self.Session.begin() as session:
            outcome = workflows.fulfill_random_words(
                session,
                request_id,
                words,
                sender=sender,
                config=self.config,
                transfer=transfer or self.transfer,
                clock=self.clock,
            )
            return outcome.to_json()

    def _status(self):
        with self.Session() as session:
            return workflows.lottery_status(
                session, config=self.config, price_feed=self.feed, clock=self.clock
            )

    def _register_three_and_draw(self):
        self._play("alice", [1, 2, 3, 10, 11, 12])
        self._play("bob", [1, 2, 10, 11, 12, 13])
        self._play("carol", [4, 5, 6, 7, 8, 9])
        self.clock.now = START + INTERVAL
        return self._perform_upkeep()

    # -------- full round --------
    def test_winners_split_pool_and_round_resets(self):
        request_id = self._register_three_and_draw()
        self.assertEqual(request_id, 2**200)
        self.assertEqual(
            self.coordinator.calls, [("0x" + "0" * 64, 7, 3, 500_000, 6)]
        )

        status = self._status()
        self.assertEqual(status["phase"], "drawing")
        self.assertTrue(status["unresolved"])
        self.assertEqual(status["pending_request_id"], str(request_id))
        self.assertEqual(status["pending_since"], START + INTERVAL)
        self.assertFalse(status["upkeep_needed"])

        self.clock.now = START + INTERVAL + 30
        outcome = self._fulfill(request_id)

        pool = 3 * ENTRY_POOL_SHARE
        share = pool // 2
        self.assertEqual(self.transfer.calls, [("alice", share), ("carol", share)])
        self.assertEqual(outcome["winning_numbers"], [1, 2, 3, 4, 5, 6])
        self.assertEqual(outcome["entrant_count"], 3)
        self.assertEqual(outcome["winner_count"], 2)
        self.assertEqual(outcome["pool_before"], str(pool))
        self.assertEqual(outcome["share"], str(share))
        self.assertFalse(outcome["rolled_over"])
        self.assertEqual(
            [(p["identity"], p["match_count"]) for p in outcome["payouts"]],
            [("alice", 3), ("carol", 3)],
        )

        with self.Session() as session:
            lottery_round = LotteryRound.get_by_internal_name(session, "settlement-test")
            self.assertEqual(lottery_round.phase, RoundPhase.OPEN.value)
            self.assertEqual(lottery_round.round_number, 2)
            self.assertEqual(lottery_round.entrants, [])
            self.assertEqual(lottery_round.prize_pool, 0)
            self.assertEqual(lottery_round.fee_pool, 0)
            self.assertEqual(lottery_round.last_winner, "carol")
            self.assertEqual(lottery_round.last_payout, share)
            self.assertEqual(lottery_round.last_draw_timestamp, START + INTERVAL + 30)
            for name in ("alice", "bob", "carol"):
                self.assertFalse(lottery_round.is_registered(name))

            request = DrawRequest.get_by_request_id(session, request_id)
            self.assertEqual(request.status, DrawRequestStatus.FULFILLED.value)
            self.assertEqual(request.random_words, WINNING_WORDS)
            self.assertEqual(request.fulfilled_at, START + INTERVAL + 30)

            names = [e.name for e in LotteryEvent.for_round(session, lottery_round.id)]
            self.assertEqual(names.count("EntrantRegistered"), 3)
            self.assertIn(DRAW_REQUESTED, names)
            self.assertEqual(names[-1], WINNERS_PAID)
            paid = LotteryEvent.for_round(session, lottery_round.id, WINNERS_PAID)[0]
            self.assertEqual(paid.payload["winners"], ["alice", "carol"])

    def test_previous_entrants_can_reenter_next_round(self):
        request_id = self._register_three_and_draw()
        self._fulfill(request_id)

        self._play("alice", [1, 2, 3, 4, 5, 6])
        with self.Session() as session:
            entrant = workflows.entrant_at(session, 0, config=self.config)
            self.assertEqual(entrant.identity, "alice")
        self.assertEqual(self._status()["entrant_count"], 1)

    def test_remainder_is_forfeited_on_uneven_split(self):
        self._play("alice", [1, 2, 3, 10, 11, 12])
        self._play("bob", [4, 5, 6, 10, 11, 12])
        self._play("carol", [1, 3, 5, 20, 21, 22], TICKET_PRICE + 1)
        self.clock.now = START + INTERVAL
        request_id = self._perform_upkeep()
        outcome = self._fulfill(request_id)

        pool = 3 * ENTRY_POOL_SHARE + 1
        self.assertEqual(outcome["pool_before"], str(pool))
        self.assertEqual(outcome["share"], str(pool // 3))
        self.assertEqual(outcome["total_paid"], str(pool - 1))
        with self.Session() as session:
            lottery_round = LotteryRound.get_by_internal_name(session, "settlement-test")
            self.assertEqual(lottery_round.prize_pool, 0)

    def test_pool_rolls_over_without_winner(self):
        self._play("bob", [40, 41, 42, 43, 44, 45])
        self.clock.now = START + INTERVAL
        request_id = self._perform_upkeep()
        outcome = self._fulfill(request_id)

        self.assertTrue(outcome["rolled_over"])
        self.assertEqual(outcome["winner_count"], 0)
        self.assertEqual(outcome["payouts"], [])
        self.assertEqual(self.transfer.calls, [])

        status = self._status()
        self.assertEqual(status["phase"], "open")
        self.assertEqual(status["round_number"], 2)
        self.assertEqual(status["entrant_count"], 0)
        self.assertEqual(status["prize_pool"], str(ENTRY_POOL_SHARE))
        self.assertEqual(status["fee_pool"], str(ENTRY_FEE))
        self.assertIsNone(status["last_winner"])
        self.assertEqual(status["last_payout"], "0")

        # Funds alone do not trigger a draw.
        self.clock.now = START + 3 * INTERVAL
        with self.Session() as session:
            self.assertFalse(
                workflows.check_upkeep(session, config=self.config, clock=self.clock)
            )
            lottery_round = LotteryRound.get_by_internal_name(session, "settlement-test")
            events = LotteryEvent.for_round(session, lottery_round.id, POOL_ROLLED_OVER)
            self.assertEqual(len(events), 1)

        # The rolled-over pool goes to the next round's winner.
        self._play("dave", [1, 2, 3, 4, 5, 6])
        self.clock.now = START + 4 * INTERVAL
        request_id = self._perform_upkeep()
        outcome = self._fulfill(request_id)
        self.assertEqual(outcome["share"], str(2 * ENTRY_POOL_SHARE))
        self.assertEqual(self.transfer.calls, [("dave", 2 * ENTRY_POOL_SHARE)])

    # -------- draw requests --------
    def test_perform_upkeep_requires_conditions(self):
        with self.assertRaises(UpkeepNotNeededError) as ctx:
            self._perform_upkeep()
        self.assertEqual(ctx.exception.entrant_count, 0)
        self.assertEqual(self.coordinator.calls, [])

        self._play("alice", [1, 2, 3, 4, 5, 6])
        with self.assertRaises(UpkeepNotNeededError):
            self._perform_upkeep()
        self.assertEqual(self._status()["phase"], "open")

    def test_round_closed_while_drawing(self):
        self._register_three_and_draw()

        with self.assertRaises(RoundNotOpenError):
            self._play("dave", [1, 2, 3, 4, 5, 6])
        with self.assertRaises(UpkeepNotNeededError) as ctx:
            self._perform_upkeep()
        self.assertEqual(ctx.exception.phase, "drawing")
        self.assertEqual(len(self.coordinator.calls), 1)

    def test_coordinator_rejection_parks_round_in_drawing(self):
        self._play("alice", [1, 2, 3, 4, 5, 6])
        self.clock.now = START + INTERVAL
        self.coordinator.error = RuntimeError("subscription underfunded")

        with self.Session() as session:
            with self.assertRaises(RandomnessRequestError):
                workflows.perform_upkeep(
                    session,
                    config=self.config,
                    coordinator=self.coordinator,
                    clock=self.clock,
                )
            session.commit()

        status = self._status()
        self.assertEqual(status["phase"], "drawing")
        self.assertTrue(status["unresolved"])
        self.assertIsNone(status["pending_request_id"])
        self.assertEqual(status["entrant_count"], 1)

        with self.Session() as session:
            lottery_round = LotteryRound.get_by_internal_name(session, "settlement-test")
            failed = LotteryEvent.for_round(session, lottery_round.id, DRAW_REQUEST_FAILED)
            self.assertEqual(len(failed), 1)
            self.assertIn("subscription underfunded", failed[0].payload["error"])

    # -------- fulfillment guards --------
    def test_fulfillment_from_other_sender_rejected(self):
        request_id = self._register_three_and_draw()
        for sender in ("0xmallory", None):
            with self.subTest(sender=sender):
                with self.assertRaises(UnauthorizedFulfillmentError):
                    self._fulfill(request_id, sender=sender)
        self.assertEqual(self._status()["phase"], "drawing")
        self.assertEqual(self.transfer.calls, [])

    def test_fulfillment_without_configured_coordinator_rejected(self):
        config = LotteryConfig(name="settlement-test", draw_interval=INTERVAL)
        with self.Session() as session:
            with self.assertRaises(UnauthorizedFulfillmentError):
                workflows.fulfill_random_words(
                    session,
                    1,
                    WINNING_WORDS,
                    sender=COORDINATOR,
                    config=config,
                    transfer=self.transfer,
                    clock=self.clock,
                )

    def test_unknown_request_rejected(self):
        self._register_three_and_draw()
        with self.assertRaises(UnknownRequestError) as ctx:
            self._fulfill(12345)
        self.assertEqual(ctx.exception.request_id, 12345)
        self.assertEqual(self._status()["phase"], "drawing")

    def test_duplicate_fulfillment_rejected(self):
        request_id = self._register_three_and_draw()
        self._fulfill(request_id)
        paid = list(self.transfer.calls)

        with self.assertRaises(DrawNotPendingError):
            self._fulfill(request_id)
        self.assertEqual(self.transfer.calls, paid)
        with self.Session() as session:
            self.assertEqual(session.query(DrawOutcome).count(), 1)

    def test_wrong_word_count_leaves_round_drawing(self):
        request_id = self._register_three_and_draw()
        with self.assertRaises(InvalidRandomWordsError):
            self._fulfill(request_id, words=WINNING_WORDS[:5])

        status = self._status()
        self.assertEqual(status["phase"], "drawing")
        self.assertEqual(status["pending_request_id"], str(request_id))
        # The request is still pending and can be fulfilled correctly.
        self._fulfill(request_id)
        self.assertEqual(self._status()["phase"], "open")

    def _fulfill_and_commit_on_failure(self, request_id, transfer):
        # Keeps the payouts already sent when a later winner cannot be paid.
        with self.Session() as session:
            try:
                workflows.fulfill_random_words(
                    session,
                    request_id,
                    WINNING_WORDS,
                    sender=COORDINATOR,
                    config=self.config,
                    transfer=transfer,
                    clock=self.clock,
                )
            except TransferFailedError:
                session.commit()
                raise
            session.commit()

    def test_failed_transfer_aborts_settlement(self):
        request_id = self._register_three_and_draw()
        share = 3 * ENTRY_POOL_SHARE // 2
        failing = DummyTransfer(failing={"carol"})

        with self.assertRaises(TransferFailedError) as ctx:
            self._fulfill_and_commit_on_failure(request_id, failing)
        self.assertEqual(ctx.exception.recipient, "carol")
        self.assertEqual(failing.calls, [("alice", share)])

        with self.Session() as session:
            lottery_round = LotteryRound.get_by_internal_name(session, "settlement-test")
            self.assertEqual(lottery_round.phase, RoundPhase.DRAWING.value)
            self.assertEqual(lottery_round.round_number, 1)
            self.assertEqual(len(lottery_round.entrants), 3)
            self.assertEqual(lottery_round.prize_pool, 3 * ENTRY_POOL_SHARE)
            self.assertTrue(lottery_round.is_registered("alice"))
            self.assertIsNone(lottery_round.last_winner)
            self.assertEqual(session.query(DrawOutcome).count(), 0)
            request = DrawRequest.get_by_request_id(session, request_id)
            self.assertTrue(request.is_pending)
            self.assertEqual(
                [(p.identity, p.status) for p in request.payouts],
                [("alice", PayoutStatus.SENT.value), ("carol", PayoutStatus.PENDING.value)],
            )

        # The retry only pays the winner that is still owed.
        outcome = self._fulfill(request_id)
        self.assertEqual(self.transfer.calls, [("carol", share)])
        self.assertEqual(outcome["winner_count"], 2)
        self.assertEqual(
            [p["identity"] for p in outcome["payouts"]], ["alice", "carol"]
        )

        total_paid = sum(amount for _, amount in failing.calls + self.transfer.calls)
        self.assertEqual(total_paid, share * 2)
        self.assertLessEqual(total_paid, 3 * ENTRY_POOL_SHARE)
        self.assertEqual(self._status()["phase"], "open")

        with self.Session() as session:
            self.assertEqual(session.query(Payout).count(), 2)
            request = DrawRequest.get_by_request_id(session, request_id)
            self.assertTrue(all(p.is_sent for p in request.payouts))
            self.assertTrue(all(p.outcome_id is not None for p in request.payouts))

    def test_payout_reference_is_stable_across_attempts(self):
        request_id = self._register_three_and_draw()
        failing = DummyTransfer(failing={"carol"})

        # Rolled back: no payout row survives, so the wallet has to drop the
        # repeated transfer by its reference.
        with self.assertRaises(TransferFailedError):
            self._fulfill(request_id, transfer=failing)
        self._fulfill(request_id)

        self.assertEqual(failing.references, [f"{request_id}:alice"])
        self.assertEqual(
            self.transfer.references,
            [f"{request_id}:alice", f"{request_id}:carol"],
        )

    # -------- fees --------
    def test_withdraw_fees_requires_admin(self):
        self._play("alice", [1, 2, 3, 4, 5, 6])
        self._play("bob", [7, 8, 9, 10, 11, 12])

        with self.Session() as session:
            with self.assertRaises(NotAdministratorError):
                workflows.withdraw_fees(
                    session, "alice", config=self.config, transfer=self.transfer
                )
        self.assertEqual(self.transfer.calls, [])

        with self.Session.begin() as session:
            amount = workflows.withdraw_fees(
                session, ADMIN, config=self.config, transfer=self.transfer
            )
        self.assertEqual(amount, 2 * ENTRY_FEE)
        self.assertEqual(self.transfer.calls, [(ADMIN, 2 * ENTRY_FEE)])

        status = self._status()
        self.assertEqual(status["fee_pool"], "0")
        self.assertEqual(status["prize_pool"], str(2 * ENTRY_POOL_SHARE))
        with self.Session() as session:
            lottery_round = LotteryRound.get_by_internal_name(session, "settlement-test")
            events = LotteryEvent.for_round(session, lottery_round.id, FEES_WITHDRAWN)
            self.assertEqual(events[0].payload, {"amount": str(2 * ENTRY_FEE)})

    def test_failed_fee_transfer_keeps_fee_pool(self):
        self._play("alice", [1, 2, 3, 4, 5, 6])
        with self.Session() as session:
            with self.assertRaises(TransferFailedError):
                workflows.withdraw_fees(
                    session,
                    ADMIN,
                    config=self.config,
                    transfer=DummyTransfer(failing={ADMIN}),
                )
        self.assertEqual(self._status()["fee_pool"], str(ENTRY_FEE))

    def test_winning_draw_also_clears_fee_pool(self):
        request_id = self._register_three_and_draw()
        self._fulfill(request_id)
        with self.Session.begin() as session:
            amount = workflows.withdraw_fees(
                session, ADMIN, config=self.config, transfer=self.transfer
            )
        self.assertEqual(amount, 0)

    # -------- queries --------
    def test_status_of_fresh_lottery(self):
        with self.Session.begin() as session:
            LotteryRound.get_or_create(session, "settlement-test", now=START)

        status = self._status()
        self.assertTrue(status["exists"])
        self.assertEqual(status["name"], "settlement-test")
        self.assertEqual(status["round_number"], 1)
        self.assertEqual(status["phase"], "open")
        self.assertEqual(status["ticket_price"], str(TICKET_PRICE))
        self.assertEqual(status["prize_pool"], "0")
        self.assertEqual(status["last_draw_timestamp"], START)
        self.assertFalse(status["upkeep_needed"])
        self.assertFalse(status["unresolved"])
        self.assertIsNone(status["pending_request_id"])

    def test_reads_do_not_create_round(self):
        self.clock.now = START + INTERVAL
        with self.Session() as session:
            self.assertFalse(
                workflows.check_upkeep(session, config=self.config, clock=self.clock)
            )
            self.assertEqual(
                workflows.lottery_status(session, config=self.config),
                {"name": "settlement-test", "exists": False},
            )
            with self.assertRaises(IndexError):
                workflows.entrant_at(session, 0, config=self.config)
            session.commit()

        with self.Session() as session:
            self.assertEqual(session.query(LotteryRound).count(), 0)
            self.assertEqual(session.query(LotteryEvent).count(), 0)

    def test_recent_outcomes_newest_first(self):
        for offset, player in enumerate(("alice", "bob"), start=1):
            self._play(player, [40, 41, 42, 43, 44, 45])
            self.clock.now = START + offset * INTERVAL
            self._fulfill(self._perform_upkeep())

        with self.Session() as session:
            engine = LotteryEngine(session, self.config, clock=self.clock)
            outcomes = engine.recent_outcomes()
            self.assertEqual([o.round_number for o in outcomes], [2, 1])
            self.assertEqual(len(engine.recent_outcomes(limit=1)), 1)
            with self.assertRaises(ValueError):
                engine.recent_outcomes(limit=0)


if __name__ == "__main__":
    unittest.main()
