"""Conflict detection and statistics for an assignment table."""

from typing import Mapping, Sequence

import numpy as np

from channel_router.config import LOW_COMPATIBILITY_THRESHOLD
from channel_router.models import Assignment, ChannelSummary, Conflict, RoutingStats, ValidationResult


def validate(channels: Sequence[ChannelSummary], assignments: Mapping[int, Assignment]) -> ValidationResult:
    """
    Full rescan of the table. Only unassigned channels make the routing invalid;
    duplicate instruments and low scores are reported but advisory.
    """
    conflicts: list[Conflict] = []
    is_valid = True

    for channel in channels:
        if channel.number not in assignments:
            conflicts.append(Conflict(
                type="unassigned",
                channel=channel.number,
                message=f"Channel {channel.number + 1} is not assigned",
            ))
            is_valid = False

    # first channel seen for an instrument owns it
    owners: dict[str, int] = {}
    for number, assignment in assignments.items():
        inst_id = assignment.instrument_id
        if inst_id in owners:
            conflicts.append(Conflict(
                type="duplicate",
                channel=number,
                instrument_id=inst_id,
                other_channel=owners[inst_id],
                message=f"Instrument {assignment.instrument_name} assigned multiple times",
            ))
        else:
            owners[inst_id] = number

    for number, assignment in assignments.items():
        score = assignment.compatibility.score
        if score < LOW_COMPATIBILITY_THRESHOLD:
            conflicts.append(Conflict(
                type="low-compatibility",
                channel=number,
                instrument_id=assignment.instrument_id,
                score=score,
                message=f"Low compatibility ({round(score * 100)}%)",
            ))

    return ValidationResult(is_valid=is_valid, conflicts=conflicts)


def compute_stats(channels: Sequence[ChannelSummary], assignments: Mapping[int, Assignment]) -> RoutingStats:
    scores = [a.compatibility.score for a in assignments.values()]
    total = len(channels)
    return RoutingStats(
        total_channels=total,
        assigned_channels=len(assignments),
        unassigned_channels=total - len(assignments),
        compatibility_score=float(np.mean(scores)) if scores else 0.0,
    )
