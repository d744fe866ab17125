import random
import sys
from decimal import Decimal
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from conftest import ALICE, BOB, CAROL
from models.activity import ActivityKind, ActivityRecord
from services.event_normalizer import build_normalizers
from services.score_accumulator import accumulate, rank_leaderboard


def _record(actor, kind, amount, timestamp=0):
    return ActivityRecord(
        actor=actor,
        kind=kind,
        amount=Decimal(amount),
        tx_ref="0x",
        timestamp=timestamp,
        description="",
    )


def test_stake_counts_at_one_tenth_of_amount():
    scores = accumulate([_record(ALICE, ActivityKind.STAKED, "50")])
    assert scores == {ALICE: Decimal(5)}


def test_mixed_sources_add_up_per_actor():
    records = [
        _record(ALICE, ActivityKind.BOX_OPENED, 2),
        _record(ALICE, ActivityKind.HARVESTED, "3.5"),
        _record(ALICE, ActivityKind.SOLD, "12"),
        _record(ALICE, ActivityKind.STAKED, "10"),
        _record(BOB, ActivityKind.BOX_OPENED, 1),
    ]
    scores = accumulate(records)
    assert scores[ALICE] == Decimal("18.5")
    assert scores[BOB] == Decimal(1)


def test_scores_are_independent_of_record_order():
    records = [
        _record(ALICE, ActivityKind.STAKED, "0.3"),
        _record(ALICE, ActivityKind.STAKED, "0.1"),
        _record(BOB, ActivityKind.HARVESTED, "0.000000000000000001"),
        _record(ALICE, ActivityKind.HARVESTED, "1e-18"),
        _record(CAROL, ActivityKind.SOLD, "123456789.123456789"),
        _record(BOB, ActivityKind.BOX_OPENED, 7),
    ]
    expected = accumulate(records)
    rng = random.Random(7)
    for _ in range(20):
        shuffled = list(records)
        rng.shuffle(shuffled)
        assert accumulate(shuffled) == expected


def test_accumulate_on_empty_window_is_empty():
    assert accumulate([]) == {}


def test_custom_stake_weight_is_respected():
    table = build_normalizers(stake_weight=Decimal("0.5"))
    scores = accumulate([_record(ALICE, ActivityKind.STAKED, "8")], table)
    assert scores == {ALICE: Decimal(4)}


def test_leaderboard_orders_by_score_then_address_and_truncates():
    scores = {
        CAROL: Decimal(3),
        BOB: Decimal(5),
        ALICE: Decimal(5),
        "0x" + "d" * 40: Decimal(1),
    }
    ranked = rank_leaderboard(scores, limit=3)
    assert [(e.actor, e.score) for e in ranked] == [
        (ALICE, Decimal(5)),
        (BOB, Decimal(5)),
        (CAROL, Decimal(3)),
    ]
    assert rank_leaderboard(scores, limit=0) == []


def test_stake_and_harvest_combine_to_weighted_total():
    records = [
        _record(ALICE, ActivityKind.STAKED, "50"),
        _record(ALICE, ActivityKind.HARVESTED, "5"),
    ]
    assert accumulate(records) == {ALICE: Decimal(10)}


def test_leaderboard_has_no_duplicate_actors_and_is_descending():
    records = [_record(actor, ActivityKind.BOX_OPENED, n) for actor, n in [
        (ALICE, 1), (BOB, 4), (ALICE, 2), (CAROL, 2), (BOB, 1),
    ]]
    ranked = rank_leaderboard(accumulate(records))
    actors = [e.actor for e in ranked]
    scores = [e.score for e in ranked]
    assert len(actors) == len(set(actors)) == 3
    assert scores == sorted(scores, reverse=True)
