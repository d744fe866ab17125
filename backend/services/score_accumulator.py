"""Leaderboard scoring over one window of normalized activity."""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Optional

from models.activity import ActivityKind, ActivityRecord, ScoreEntry
from services.event_normalizer import EXACT, EventNormalizer, contribution_of


def accumulate(
    records: Iterable[ActivityRecord],
    normalizers: Optional[dict[ActivityKind, EventNormalizer]] = None,
) -> dict[str, Decimal]:
    """Sum per-actor contributions.

    Recomputed from scratch every cycle. Addition runs in an exact context,
    so the mapping does not depend on the order records arrive in.
    """
    scores: dict[str, Decimal] = {}
    for record in records:
        contribution = contribution_of(record, normalizers)
        scores[record.actor] = EXACT.add(scores.get(record.actor, Decimal(0)), contribution)
    return scores


def rank_leaderboard(scores: dict[str, Decimal], limit: int = 10) -> list[ScoreEntry]:
    """Highest score first; equal scores ordered by address for stable output."""
    ranked = sorted(scores.items(), key=lambda item: (-item[1], item[0]))
    return [ScoreEntry(actor=actor, score=score) for actor, score in ranked[: max(0, limit)]]
