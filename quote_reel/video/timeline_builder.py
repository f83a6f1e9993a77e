from __future__ import annotations

import json
import math
from collections.abc import Sequence
from pathlib import Path

from ..errors import InputError
from .timeline_schema import DisplayLine, LineData, RevealEvent, Timeline

# Inter-line gap, in characters.
LINE_GAP_UNITS = 2


def _check_duration(name: str, value: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise InputError(f"{name} must be a number, got {value!r}") from exc
    if not math.isfinite(number) or number < 0:
        raise InputError(f"{name} must be a finite non-negative number, got {value!r}")
    return number


def compute_line_data(lines: Sequence[DisplayLine], unit_speed: float) -> tuple[list[LineData], float]:
    """Return per-line delays/durations and the closing accumulator value."""
    acc_delay = 0.0
    line_data: list[LineData] = []
    for line in lines:
        count = len(line.text)
        line_data.append(LineData(text=line.text, delay=acc_delay, duration=count * unit_speed))
        acc_delay += (count + LINE_GAP_UNITS) * unit_speed
    return line_data, acc_delay


def synthesize(
    lines: Sequence[DisplayLine],
    author_chars: Sequence[str],
    unit_speed: float,
    *,
    initial_delay: float = 1.0,
    ending_delay: float = 1.5,
    author_logo_gap: float = 0.5,
    reveal_span: float = 0.8,
    show_qrcode: bool = True,
) -> Timeline:
    """Build the reveal schedule for one quote card.

    Characters of a line cascade one ``unit_speed`` apart; each line starts
    two units after the previous line's last character. The author follows the
    last quote character directly, then the logo after ``author_logo_gap``,
    then the QR code one unit later. Event starts are on the video clock, so
    they include ``initial_delay``.
    """
    if isinstance(lines, (str, bytes)) or not isinstance(lines, Sequence):
        raise InputError(f"lines must be a sequence of DisplayLine, got {type(lines).__name__}")
    if not lines:
        raise InputError("at least one display line is required")
    if not all(isinstance(line, DisplayLine) for line in lines):
        raise InputError("lines must contain only DisplayLine items")

    unit = _check_duration("unit_speed", unit_speed)
    if unit <= 0:
        raise InputError(f"unit_speed must be positive, got {unit_speed!r}")
    initial_delay = _check_duration("initial_delay", initial_delay)
    ending_delay = _check_duration("ending_delay", ending_delay)
    author_logo_gap = _check_duration("author_logo_gap", author_logo_gap)
    reveal_span = _check_duration("reveal_span", reveal_span)
    if reveal_span <= 0:
        raise InputError(f"reveal_span must be positive, got {reveal_span!r}")

    author = list(author_chars)
    line_data, acc_delay = compute_line_data(lines, unit)
    base_duration = acc_delay + len(author) * unit

    last = line_data[-1]
    quote_end_time = last.delay + len(last.text) * unit

    events: list[RevealEvent] = []
    for line_index, data in enumerate(line_data):
        group = f"quote-{line_index}"
        for char_index, char in enumerate(data.text):
            events.append(
                RevealEvent(
                    subject_group=group,
                    subject_id=f"{group}:{char_index}",
                    index=char_index,
                    text=char,
                    start=initial_delay + data.delay + char_index * unit,
                    span=reveal_span,
                )
            )

    for char_index, char in enumerate(author):
        events.append(
            RevealEvent(
                subject_group="author",
                subject_id=f"author:{char_index}",
                index=char_index,
                text=char,
                start=initial_delay + quote_end_time + char_index * unit,
                span=reveal_span,
            )
        )

    logo_start = initial_delay + quote_end_time + author_logo_gap + len(author) * unit
    events.append(RevealEvent(subject_group="logo", subject_id="logo", start=logo_start, span=reveal_span))
    if show_qrcode:
        events.append(
            RevealEvent(subject_group="qrcode", subject_id="qrcode", start=logo_start + unit, span=reveal_span)
        )

    total_duration = initial_delay + base_duration + author_logo_gap + ending_delay

    return Timeline(
        lines=line_data,
        author=author,
        events=events,
        unit_speed=unit,
        initial_delay=initial_delay,
        base_duration=base_duration,
        quote_end_time=quote_end_time,
        total_duration=total_duration,
    )


def write_timeline_json(timeline: Timeline, output_path: Path) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(
        json.dumps(timeline.model_dump(), ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
    return output_path
