from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from ..errors import InputError
from .encoder import Encoder
from .frame_sampler import FRAME_PREFIX, FRAME_SUFFIX, frame_pattern
from .timeline_schema import AssemblyJob, AudioSyncPlan

_logger = logging.getLogger(__name__)

STAGES = ("encode", "thumbnail", "mux")

# Files and directories a run writes into its frames directory.
SILENT_VIDEO_NAME = "output_no_audio.mp4"
TIMELINE_NAME = "timeline.json"
COMMAND_LOG_NAME = "ffmpeg-commands.log"
FFMPEG_LOG_DIR = "ffmpeg"


@dataclass
class AssemblyResult:
    output_path: Path
    thumbnail_path: Path
    stages: list[str]


def thumbnail_path_for(output_path: str | Path) -> Path:
    output = Path(output_path)
    thumbnail = output.with_suffix(".jpg")
    if thumbnail == output:
        raise InputError(f"Output {output} would be overwritten by its own thumbnail; use a video extension")
    return thumbnail


def build_assembly_job(
    frames_dir: str | Path,
    fps: int,
    total_frames: int,
    output_path: str | Path,
    audio_path: str | Path,
    silent_video_name: str = SILENT_VIDEO_NAME,
) -> AssemblyJob:
    output = Path(output_path)
    frames = Path(frames_dir)
    return AssemblyJob(
        frames_dir=str(frames),
        frame_pattern=frame_pattern(frames, total_frames),
        fps=fps,
        total_frames=total_frames,
        silent_video_path=str(frames / silent_video_name),
        thumbnail_path=str(thumbnail_path_for(output)),
        output_path=str(output),
        audio_path=str(audio_path),
    )


def _is_transient(entry: Path) -> bool:
    if entry.is_dir():
        return entry.name == FFMPEG_LOG_DIR
    if entry.name.startswith(FRAME_PREFIX) and entry.name.endswith(FRAME_SUFFIX):
        return True
    return entry.name in {SILENT_VIDEO_NAME, TIMELINE_NAME, COMMAND_LOG_NAME}


def _remove_log_dir(directory: Path) -> None:
    """Remove the ffmpeg log files; the directory goes only once it is empty."""
    for entry in directory.iterdir():
        if entry.is_file() and entry.suffix == ".log":
            entry.unlink()
    if not any(directory.iterdir()):
        directory.rmdir()


def remove_transients(frames_dir: str | Path) -> int:
    """Delete the files a run writes into ``frames_dir`` and leave anything else alone."""
    directory = Path(frames_dir)
    if not directory.is_dir():
        return 0
    removed = 0
    for entry in directory.iterdir():
        if not _is_transient(entry):
            continue
        if entry.is_dir():
            _remove_log_dir(entry)
        else:
            entry.unlink()
        removed += 1
    return removed


def cleanup_transients(job: AssemblyJob) -> None:
    """Remove the silent video, frames and run logs from the frames directory."""
    silent = Path(job.silent_video_path)
    if silent.exists():
        silent.unlink()
    remove_transients(job.frames_dir)


def assemble(job: AssemblyJob, audio_plan: AudioSyncPlan, encoder: Encoder) -> AssemblyResult:
    """Encode frames, grab the thumbnail, then mux the music, in that order.

    Each stage consumes the previous stage's file on disk. An ``EncodeError``
    from any stage stops the run with transient files kept for inspection;
    they are removed only after the final mux succeeds.
    """
    completed: list[str] = []

    _logger.info("Encoding %d frames at %d fps", job.total_frames, job.fps)
    encoder.encode_sequence(job.frame_pattern, job.fps, job.silent_video_path)
    completed.append("encode")

    _logger.info("Extracting thumbnail from frame %d", job.last_frame_index)
    encoder.extract_frame(job.silent_video_path, job.last_frame_index, job.thumbnail_path)
    completed.append("thumbnail")

    _logger.info("Muxing %s from %.0fs", job.audio_path, audio_plan.start_offset)
    encoder.mux_audio(
        job.silent_video_path,
        job.audio_path,
        audio_plan.start_offset,
        audio_plan.fade_in_span,
        audio_plan.fade_out_start,
        audio_plan.fade_out_span,
        job.output_path,
    )
    completed.append("mux")

    cleanup_transients(job)
    _logger.info("Wrote %s", job.output_path)
    return AssemblyResult(
        output_path=Path(job.output_path),
        thumbnail_path=Path(job.thumbnail_path),
        stages=completed,
    )
