"""Ranking Engine — deterministic ordering of settled players."""

from __future__ import annotations

import dataclasses
import datetime
from typing import TYPE_CHECKING

from wallstreet.utils.numbers import RETURN_PRECISION, round_to

if TYPE_CHECKING:
    from wallstreet.settlement.types import PlayerResult


def ranking_key(result: PlayerResult) -> tuple[float, bool, datetime.datetime, str]:
    """Sort key: return desc, earlier submission first, then player id.

    Returns are compared at persisted precision so that the order always
    agrees with the stored values.  Submission times are compared as naive
    UTC datetimes, never converted through the host timezone.  A missing
    submission time sorts after every real one.
    """
    submitted = result.submitted_at
    return (
        -round_to(result.portfolio_return_percent, RETURN_PRECISION),
        submitted is None,
        submitted or datetime.datetime.max,
        result.player_id,
    )


def rank_results(results: list[PlayerResult]) -> list[PlayerResult]:
    """Return *results* sorted and annotated with a dense 1-based rank.

    Every player gets a distinct rank; ``total_participants`` is the list
    length.
    """
    ordered = sorted(results, key=ranking_key)
    total = len(ordered)
    return [
        dataclasses.replace(result, rank=index + 1, total_participants=total)
        for index, result in enumerate(ordered)
    ]
