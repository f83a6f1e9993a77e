"""One quote video run, from text to the final muxed file."""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from pydantic import BaseModel

from .config import (
    ANIMATIONS,
    BACKGROUND_COLORS,
    DEFAULT_FONT,
    DEFAULT_LOGO,
    DEFAULT_QRCODE,
    DEFAULT_TEXT_COLOR,
    RenderSettings,
    load_settings,
    resolve_asset_path,
)
from .errors import AssetError, InputError, OutputConflict
from .video.assembly import (
    COMMAND_LOG_NAME,
    FFMPEG_LOG_DIR,
    TIMELINE_NAME,
    AssemblyResult,
    assemble,
    build_assembly_job,
    remove_transients,
    thumbnail_path_for,
)
from .video.audio_sync import choose_track
from .video.encoder import Encoder, FFmpegEncoder
from .video.frame_sampler import frame_count, sample, sample_parallel, write_frames
from .video.renderer import QuoteCardRenderer, Renderer, parse_color
from .video.segmenter import segment
from .video.timeline_builder import synthesize, write_timeline_json
from .video.timeline_schema import AudioSyncPlan, Scene, Timeline

_logger = logging.getLogger(__name__)


class QuoteVideoRequest(BaseModel):
    quote: str = ""
    author: str = ""
    output_path: str
    tmp_dir: str = "./tmp"
    overwrite: bool = False
    hide_qrcode: bool = False
    animation: Optional[str] = None
    bg_color: Optional[str] = None
    color: str = DEFAULT_TEXT_COLOR
    font_path: Optional[str] = DEFAULT_FONT
    logo_path: str = DEFAULT_LOGO
    qrcode_path: str = DEFAULT_QRCODE
    workers: int = 1


@dataclass
class QuoteVideoResult:
    output_path: Path
    thumbnail_path: Path
    timeline: Timeline
    audio_plan: AudioSyncPlan
    animation: str
    bg_color: str
    total_frames: int
    stages: list[str] = field(default_factory=list)


def check_output_conflict(output_path: Path, overwrite: bool) -> None:
    if not output_path.exists():
        return
    if not overwrite:
        raise OutputConflict(output_path)
    _logger.warning("Overwriting existing file %s", output_path)


def _require_asset(path: str | Path) -> Path:
    resolved = resolve_asset_path(path)
    if not resolved.is_file():
        raise AssetError(resolved)
    return resolved


def check_tmp_dir(tmp_dir: Path) -> None:
    """Refuse a frames directory holding subdirectories a run did not create."""
    if not tmp_dir.is_dir():
        return
    foreign = sorted(entry.name for entry in tmp_dir.iterdir() if entry.is_dir() and entry.name != FFMPEG_LOG_DIR)
    if foreign:
        raise InputError(
            f"Frames directory {tmp_dir} holds unrelated directories ({', '.join(foreign)}); "
            "choose a dedicated directory"
        )


def prepare_tmp_dir(tmp_dir: Path) -> Path:
    """Create the frames directory and remove the files a previous run left."""
    check_tmp_dir(tmp_dir)
    tmp_dir.mkdir(parents=True, exist_ok=True)
    removed = remove_transients(tmp_dir)
    if removed:
        _logger.info("Removed %d stale entries from %s", removed, tmp_dir)
    return tmp_dir


def render_quote_video(
    request: QuoteVideoRequest,
    settings: RenderSettings | None = None,
    *,
    renderer_factory: Callable[[], Renderer] = QuoteCardRenderer,
    encoder: Encoder | None = None,
    rng: random.Random | None = None,
) -> QuoteVideoResult:
    """Render ``request`` to its output path.

    Every failure raises a :class:`~quote_reel.errors.QuoteReelError` subclass.
    Transient frames are deleted only when the whole run succeeds.
    """
    output_path = Path(request.output_path).resolve()
    check_output_conflict(output_path, request.overwrite)
    check_output_conflict(thumbnail_path_for(output_path), request.overwrite)

    settings = settings or load_settings()
    if request.workers <= 0:
        raise InputError(f"workers must be positive, got {request.workers!r}")
    source = rng or random.Random()

    animation = request.animation or source.choice(ANIMATIONS)
    if animation not in ANIMATIONS:
        raise InputError(f"Unknown animation {animation!r}; expected one of {', '.join(ANIMATIONS)}")
    bg_color = request.bg_color or source.choice(BACKGROUND_COLORS)
    parse_color(request.color)
    parse_color(bg_color)

    font_path = _require_asset(request.font_path) if request.font_path else None
    logo_path = _require_asset(request.logo_path)
    qrcode_path = None if request.hide_qrcode else _require_asset(request.qrcode_path)
    music_paths = [_require_asset(path) for path in settings.music_files]

    lines = segment(request.quote, settings.max_chars_per_line)
    timeline = synthesize(
        lines,
        list(request.author),
        settings.unit_speed,
        initial_delay=settings.initial_delay,
        ending_delay=settings.ending_delay,
        author_logo_gap=settings.author_logo_gap,
        reveal_span=settings.reveal_span,
        show_qrcode=not request.hide_qrcode,
    )
    total_frames = frame_count(timeline.total_duration, settings.fps)
    _logger.info(
        "%d lines, %.2fs, %d frames at %d fps (animation=%s, background=%s)",
        len(timeline.lines),
        timeline.total_duration,
        total_frames,
        settings.fps,
        animation,
        bg_color,
    )

    tmp_dir = Path(request.tmp_dir).resolve()
    if tmp_dir in output_path.parents:
        raise InputError(f"Output {output_path} must not live inside the frames directory {tmp_dir}")
    check_tmp_dir(tmp_dir)
    encoder = encoder or FFmpegEncoder(
        workdir=tmp_dir / FFMPEG_LOG_DIR,
        log_path=tmp_dir / COMMAND_LOG_NAME,
        timeout_sec=settings.command_timeout_sec,
    )
    audio_plan = choose_track(
        music_paths,
        timeline.total_duration,
        encoder.probe_duration,
        rng=source,
        safety_margin=settings.safety_margin,
        fade_span=settings.fade_span,
    )

    prepare_tmp_dir(tmp_dir)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    write_timeline_json(timeline, tmp_dir / TIMELINE_NAME)

    scene = Scene(
        timeline=timeline,
        width=settings.width,
        height=settings.height,
        color=request.color,
        bg_color=bg_color,
        font_path=str(font_path) if font_path else None,
        logo_path=str(logo_path),
        qrcode_path=str(qrcode_path) if qrcode_path else None,
    )

    if request.workers > 1:
        written = sample_parallel(
            timeline,
            settings.fps,
            renderer_factory,
            scene,
            animation,
            tmp_dir,
            workers=request.workers,
            ready_timeout_ms=settings.ready_timeout_ms,
        )
    else:
        renderer = renderer_factory()
        renderer.load_scene(scene, animation)
        try:
            frames = sample(timeline, settings.fps, renderer, ready_timeout_ms=settings.ready_timeout_ms)
            written = write_frames(frames, tmp_dir, total_frames)
        finally:
            close = getattr(renderer, "close", None)
            if callable(close):
                close()
    _logger.info("Captured %d frames into %s", written, tmp_dir)

    job = build_assembly_job(tmp_dir, settings.fps, total_frames, output_path, audio_plan.track_path or "")
    result: AssemblyResult = assemble(job, audio_plan, encoder)

    return QuoteVideoResult(
        output_path=result.output_path,
        thumbnail_path=result.thumbnail_path,
        timeline=timeline,
        audio_plan=audio_plan,
        animation=animation,
        bg_color=bg_color,
        total_frames=total_frames,
        stages=result.stages,
    )
