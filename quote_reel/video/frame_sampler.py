"""Turn a timeline into an ordered sequence of captured frames.

A renderer's animation clock is shared mutable state, so one renderer is only
ever driven by one loop: seek, wait until stable, capture, then the next frame.
Parallel sampling gives every range of frames its own renderer instance.
"""
from __future__ import annotations

import logging
import math
import threading
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional

from ..errors import InputError, RenderError
from .renderer import Renderer
from .timeline_schema import Frame, Scene, Timeline

_logger = logging.getLogger(__name__)

FRAME_PREFIX = "frame_"
FRAME_SUFFIX = ".png"
MIN_INDEX_DIGITS = 4


def _check_fps(fps: int) -> int:
    if isinstance(fps, bool) or not isinstance(fps, int) or fps <= 0:
        raise InputError(f"fps must be a positive integer, got {fps!r}")
    return fps


def frame_count(total_duration: float, fps: int) -> int:
    """Number of frames needed so that ``frame_count / fps >= total_duration``."""
    _check_fps(fps)
    if not math.isfinite(total_duration) or total_duration < 0:
        raise InputError(f"total_duration must be a finite non-negative number, got {total_duration!r}")
    # Rounding strips float noise such as 7.0 * 30 == 210.00000000000003.
    return int(math.ceil(round(total_duration * fps, 9)))


def frame_timestamp(index: int, fps: int) -> float:
    return index / fps


def index_digits(total_frames: int) -> int:
    return max(MIN_INDEX_DIGITS, len(str(max(0, total_frames - 1))))


def frame_filename(index: int, total_frames: int) -> str:
    return f"{FRAME_PREFIX}{index:0{index_digits(total_frames)}d}{FRAME_SUFFIX}"


def frame_pattern(frames_dir: str | Path, total_frames: int) -> str:
    """Return the printf-style path ffmpeg reads the frame sequence from."""
    return str(Path(frames_dir) / f"{FRAME_PREFIX}%0{index_digits(total_frames)}d{FRAME_SUFFIX}")


def _iter_frames(
    renderer: Renderer,
    fps: int,
    start: int,
    stop: int,
    ready_timeout_ms: int,
    cancelled: Optional[threading.Event] = None,
) -> Iterator[Frame]:
    for index in range(start, stop):
        if cancelled is not None and cancelled.is_set():
            _logger.debug("Range [%d, %d) cancelled at frame %d", start, stop, index)
            return
        timestamp = frame_timestamp(index, fps)
        try:
            renderer.seek_to(timestamp)
            renderer.await_ready(ready_timeout_ms)
            image_bytes = renderer.capture()
        except RenderError:
            raise
        except TimeoutError as exc:
            raise RenderError(index, f"renderer not ready within {ready_timeout_ms} ms") from exc
        except Exception as exc:
            raise RenderError(index, str(exc) or type(exc).__name__) from exc
        yield Frame(index=index, timestamp=timestamp, image_bytes=image_bytes)


def sample_range(
    timeline: Timeline,
    fps: int,
    renderer: Renderer,
    start: int,
    stop: int,
    ready_timeout_ms: int = 5000,
    cancelled: Optional[threading.Event] = None,
) -> Iterator[Frame]:
    """Lazily sample frames ``start`` to ``stop - 1`` from one renderer.

    Iteration ends early, without error, once ``cancelled`` is set.
    """
    total = frame_count(timeline.total_duration, fps)
    if not 0 <= start <= stop <= total:
        raise InputError(f"Frame range [{start}, {stop}) is outside [0, {total})")
    return _iter_frames(renderer, fps, start, stop, ready_timeout_ms, cancelled)


def sample(
    timeline: Timeline,
    fps: int,
    renderer: Renderer,
    ready_timeout_ms: int = 5000,
) -> Iterator[Frame]:
    """Lazily sample every frame of the timeline.

    The returned iterator advances the renderer as it is consumed and cannot
    be restarted. A seek, readiness or capture failure raises
    :class:`RenderError` carrying the frame index.
    """
    total = frame_count(timeline.total_duration, fps)
    return sample_range(timeline, fps, renderer, 0, total, ready_timeout_ms)


def write_frames(frames: Iterable[Frame], frames_dir: str | Path, total_frames: int) -> int:
    directory = Path(frames_dir)
    directory.mkdir(parents=True, exist_ok=True)
    written = 0
    for frame in frames:
        (directory / frame_filename(frame.index, total_frames)).write_bytes(frame.image_bytes)
        written += 1
        if written % 100 == 0:
            _logger.debug("Wrote %d frames", written)
    return written


def split_ranges(total_frames: int, workers: int) -> list[tuple[int, int]]:
    """Split ``[0, total_frames)`` into at most ``workers`` contiguous disjoint ranges."""
    if workers <= 0:
        raise InputError(f"workers must be positive, got {workers!r}")
    workers = min(workers, max(1, total_frames))
    size, extra = divmod(total_frames, workers)
    ranges: list[tuple[int, int]] = []
    start = 0
    for worker in range(workers):
        stop = start + size + (1 if worker < extra else 0)
        if stop > start:
            ranges.append((start, stop))
        start = stop
    return ranges


def sample_parallel(
    timeline: Timeline,
    fps: int,
    renderer_factory: Callable[[], Renderer],
    scene: Scene,
    style: str,
    frames_dir: str | Path,
    workers: int = 2,
    ready_timeout_ms: int = 5000,
) -> int:
    """Sample disjoint frame ranges on independent renderers and write them to disk.

    Files are named by frame index, so the sequence on disk is in index order
    whatever order the ranges finish in. The first failing range stops every
    other range before its next frame and its error is raised.
    """
    total = frame_count(timeline.total_duration, fps)
    ranges = split_ranges(total, workers)
    cancelled = threading.Event()

    def _render_range(bounds: tuple[int, int]) -> int:
        if cancelled.is_set():
            return 0
        renderer = renderer_factory()
        try:
            renderer.load_scene(scene, style)
            frames = sample_range(timeline, fps, renderer, bounds[0], bounds[1], ready_timeout_ms, cancelled)
            return write_frames(frames, frames_dir, total)
        except BaseException:
            cancelled.set()
            raise
        finally:
            close = getattr(renderer, "close", None)
            if callable(close):
                close()

    with ThreadPoolExecutor(max_workers=len(ranges) or 1) as executor:
        futures = [executor.submit(_render_range, bounds) for bounds in ranges]
        done, pending = wait(futures, return_when=FIRST_EXCEPTION)
        for future in pending:
            future.cancel()
        failed = next((future for future in futures if future in done and future.exception() is not None), None)
        if failed is not None:
            raise failed.exception()
        written = sum(future.result() for future in futures)

    _logger.info("Sampled %d frames across %d renderers", written, len(ranges))
    return written
