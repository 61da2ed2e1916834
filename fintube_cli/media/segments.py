"""
Turns the sections to discard into the sections to keep, and renders the keep
list as an ffmpeg audio-select filter.
"""

from typing import Sequence

from fintube_cli.models.job import Segment
from fintube_cli.utils.formatting import format_seconds


def keep_segments(
    discard: Sequence[Segment], total_duration: float
) -> list[Segment]:
    """
    Computes the complement of the discard segments over [0, total_duration].

    The discard list is expected sorted by start and non-overlapping, as the
    skip-segment service returns it; it is not re-sorted. The result comes out
    in ascending order by construction.

    Args:
        discard: Segments to remove.
        total_duration: Length of the media in seconds.

    Returns:
        Segments to keep. Empty when the discard list covers the whole file.
    """
    if not discard:
        return [Segment(0.0, total_duration)]

    keep: list[Segment] = []

    # Leading section before the first discard
    if discard[0].start != 0:
        keep.append(Segment(0.0, discard[0].start))

    for current, following in zip(discard, discard[1:]):
        keep.append(Segment(current.end, following.start))

    # Trailing section after the last discard
    if discard[-1].end < total_duration:
        keep.append(Segment(discard[-1].end, total_duration))

    return keep


def build_between_clauses(keep: Sequence[Segment]) -> str:
    """Joins one between(t,start,end) clause per segment with '+'."""
    return "+".join(
        f"between(t,{format_seconds(seg.start)},{format_seconds(seg.end)})"
        for seg in keep
    )


def build_filter_expression(keep: Sequence[Segment]) -> str:
    """
    Builds the -af argument that keeps only the given segments and re-stamps
    the remaining samples so the output has no gaps.
    """
    if not keep:
        raise ValueError("Cannot build a trim filter from an empty keep list.")
    return f"aselect='{build_between_clauses(keep)}',asetpts=N/SR/TB"
