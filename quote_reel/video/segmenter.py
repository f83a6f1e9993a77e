from __future__ import annotations

import re

from ..errors import InputError
from .timeline_schema import DisplayLine

DELIMITERS = "，。？、：！；,.?!:;"
_DELIMITER_RE = re.compile(f"[{re.escape(DELIMITERS)}]")


def _hard_wrap(piece: str, max_chars: int) -> list[str]:
    return [piece[i : i + max_chars] for i in range(0, len(piece), max_chars)]


def segment(quote: str, max_chars_per_line: int = 10) -> list[DisplayLine]:
    """Split a quote into display lines.

    Clause delimiters break lines; any clause longer than ``max_chars_per_line``
    is cut into fixed-size chunks. Lengths are counted in code points. A quote
    with no usable text collapses to a single line holding the stripped input,
    which may be empty.
    """
    if max_chars_per_line <= 0:
        raise InputError(f"max_chars_per_line must be positive, got {max_chars_per_line!r}")

    text = str(quote or "")
    pieces = [piece.strip() for piece in _DELIMITER_RE.split(text)]

    processed: list[str] = []
    for piece in pieces:
        if not piece:
            continue
        if len(piece) > max_chars_per_line:
            processed.extend(_hard_wrap(piece, max_chars_per_line))
        else:
            processed.append(piece)

    if not processed:
        processed = [text.strip()]

    return [DisplayLine(text=line, max_width=max_chars_per_line) for line in processed]
