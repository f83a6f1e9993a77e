from __future__ import annotations

import logging
import math
import random
from pathlib import Path
from typing import Callable, Sequence

from ..errors import AssetError, AudioPlanInfeasible, InputError
from .timeline_schema import AudioSyncPlan

_logger = logging.getLogger(__name__)


def _non_negative(name: str, value: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise InputError(f"{name} must be a number, got {value!r}") from exc
    if not math.isfinite(number) or number < 0:
        raise InputError(f"{name} must be a finite non-negative number, got {value!r}")
    return number


def plan(
    track_duration: float,
    total_duration: float,
    safety_margin: float = 2.0,
    fade_span: float = 1.0,
    rng: random.Random | None = None,
    track_path: str | None = None,
) -> AudioSyncPlan:
    """Pick a music start offset and fade envelope for an animation.

    The start offset is drawn uniformly from ``[0, max_start]`` and floored to
    whole seconds, where ``max_start`` leaves ``safety_margin`` seconds of
    track after the animation ends. A track shorter than the animation plus
    the margin raises :class:`AudioPlanInfeasible`.
    """
    track_duration = _non_negative("track_duration", track_duration)
    total_duration = _non_negative("total_duration", total_duration)
    safety_margin = _non_negative("safety_margin", safety_margin)
    fade_span = _non_negative("fade_span", fade_span)

    if track_duration < total_duration + safety_margin:
        raise AudioPlanInfeasible(
            f"Track is {track_duration:.2f}s but the animation needs "
            f"{total_duration:.2f}s plus a {safety_margin:.2f}s safety margin."
        )

    source = rng or random.Random()
    max_start = max(0.0, track_duration - total_duration - safety_margin)
    start_offset = float(math.floor(source.uniform(0, max_start)))

    return AudioSyncPlan(
        track_path=track_path,
        track_duration=track_duration,
        start_offset=start_offset,
        fade_in_span=fade_span,
        fade_out_start=max(0.0, total_duration - fade_span),
        fade_out_span=fade_span,
    )


def choose_track(
    candidates: Sequence[str | Path],
    total_duration: float,
    probe: Callable[[str], float],
    rng: random.Random | None = None,
    safety_margin: float = 2.0,
    fade_span: float = 1.0,
) -> AudioSyncPlan:
    """Return the plan for a uniformly chosen candidate long enough for the animation.

    Candidates are visited in a shuffled order until one is feasible.
    """
    if not candidates:
        raise AudioPlanInfeasible("No music candidates configured.")
    source = rng or random.Random()
    order = [str(candidate) for candidate in candidates]
    source.shuffle(order)

    rejected: list[str] = []
    for candidate in order:
        if not Path(candidate).is_file():
            raise AssetError(candidate)
        duration = probe(candidate)
        try:
            chosen = plan(
                duration,
                total_duration,
                safety_margin=safety_margin,
                fade_span=fade_span,
                rng=source,
                track_path=candidate,
            )
        except AudioPlanInfeasible as exc:
            _logger.info("Skipping %s: %s", candidate, exc)
            rejected.append(f"{candidate} ({duration:.2f}s)")
            continue
        _logger.info(
            "Selected %s (%.2fs), start offset %.0fs",
            candidate,
            chosen.track_duration,
            chosen.start_offset,
        )
        return chosen

    raise AudioPlanInfeasible(
        f"No music candidate covers {total_duration:.2f}s plus a {safety_margin:.2f}s margin: "
        + ", ".join(rejected)
    )
