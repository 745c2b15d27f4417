"""Greedy channel-to-instrument matching."""

from dataclasses import dataclass
from typing import Optional, Sequence

from channel_router.compatibility import score_compatibility
from channel_router.config import DEFAULT_MIN_SCORE
from channel_router.models import ChannelSummary, CompatibilityResult, InstrumentDescriptor


@dataclass
class RouteMatch:
    channel: int
    instrument: InstrumentDescriptor
    compatibility: CompatibilityResult


def calculate_best_routing(
    channels: Sequence[ChannelSummary],
    instruments: Sequence[InstrumentDescriptor],
    min_score: float = DEFAULT_MIN_SCORE,
) -> list[RouteMatch]:
    """
    Pair each channel with the best unclaimed instrument.

    Channels with more notes pick first; equal note counts keep input order. Each channel takes
    the instrument with the strictly highest score, so on a tie the earlier instrument in
    `instruments` wins. A channel whose best score is below `min_score` stays unrouted.
    Greedy, not globally optimal.
    """
    matches: list[RouteMatch] = []
    claimed: set[str] = set()

    for channel in sorted(channels, key=lambda c: c.note_count, reverse=True):
        best: Optional[InstrumentDescriptor] = None
        best_result: Optional[CompatibilityResult] = None
        for instrument in instruments:
            if instrument.id in claimed:
                continue
            result = score_compatibility(channel, instrument)
            if best_result is None or result.score > best_result.score:
                best, best_result = instrument, result

        if best is None or best_result.score < min_score:
            continue
        matches.append(RouteMatch(channel=channel.number, instrument=best, compatibility=best_result))
        claimed.add(best.id)

    return matches
