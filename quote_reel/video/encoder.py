from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Protocol

from ..errors import AssetError, EncodeError
from .ffmpeg_runner import run_command
from .utils import FFmpegNotFoundError, append_command_log, ensure_parent_dir, get_media_duration

_logger = logging.getLogger(__name__)


class Encoder(Protocol):
    def encode_sequence(self, frames_pattern: str, fps: int, out_path: str) -> None: ...

    def extract_frame(self, video_path: str, frame_index: int, out_path: str) -> None: ...

    def mux_audio(
        self,
        video_path: str,
        audio_path: str,
        start_offset: float,
        fade_in: float,
        fade_out_start: float,
        fade_out_span: float,
        out_path: str,
    ) -> None: ...

    def probe_duration(self, audio_path: str) -> float: ...


def _seconds(value: float) -> str:
    return f"{float(value):.3f}"


def build_encode_cmd(frames_pattern: str, fps: int, out_path: str) -> list[str]:
    return [
        "ffmpeg",
        "-y",
        "-framerate",
        str(fps),
        "-i",
        str(frames_pattern),
        "-c:v",
        "libx264",
        "-pix_fmt",
        "yuv420p",
        str(out_path),
    ]


def build_thumbnail_cmd(video_path: str, frame_index: int, out_path: str) -> list[str]:
    return [
        "ffmpeg",
        "-y",
        "-i",
        str(video_path),
        "-vf",
        f"select=eq(n\\,{int(frame_index)})",
        "-vframes",
        "1",
        str(out_path),
    ]


def build_audio_filter(fade_in: float, fade_out_start: float, fade_out_span: float) -> str:
    return (
        f"volume=1,afade=t=in:st=0:d={_seconds(fade_in)},"
        f"afade=t=out:st={_seconds(fade_out_start)}:d={_seconds(fade_out_span)}"
    )


def build_mux_cmd(
    video_path: str,
    audio_path: str,
    start_offset: float,
    fade_in: float,
    fade_out_start: float,
    fade_out_span: float,
    out_path: str,
) -> list[str]:
    return [
        "ffmpeg",
        "-y",
        "-i",
        str(video_path),
        "-ss",
        _seconds(start_offset),
        "-i",
        str(audio_path),
        "-c:v",
        "copy",
        "-c:a",
        "aac",
        "-filter:a",
        build_audio_filter(fade_in, fade_out_start, fade_out_span),
        "-shortest",
        str(out_path),
    ]


class FFmpegEncoder:
    """Runs each encode job as a blocking ffmpeg subprocess."""

    def __init__(
        self,
        workdir: str | Path | None = None,
        log_path: str | Path | None = None,
        timeout_sec: float | None = None,
    ) -> None:
        self.workdir = Path(workdir) if workdir is not None else None
        self.log_path = Path(log_path) if log_path is not None else None
        self.timeout_sec = timeout_sec
        self.commands: list[list[str]] = []

    def _run(self, stage: str, cmd: list[str]) -> None:
        self.commands.append(cmd)
        try:
            result = run_command(
                cmd,
                workdir=self.workdir,
                timeout_sec=self.timeout_sec,
                verbose=os.getenv("DEBUG_FFMPEG") == "1",
            )
        except FFmpegNotFoundError as exc:
            raise EncodeError(stage, str(exc)) from exc
        if self.log_path is not None:
            append_command_log(self.log_path, result)
        if result.ok:
            return
        message = f"timed out after {self.timeout_sec}s" if result.timed_out else result.last_error_line()
        _logger.error("ffmpeg %s stage failed: %s", stage, message)
        raise EncodeError(stage, message, returncode=result.returncode, stderr=result.stderr)

    def encode_sequence(self, frames_pattern: str, fps: int, out_path: str) -> None:
        ensure_parent_dir(out_path)
        self._run("encode", build_encode_cmd(frames_pattern, fps, out_path))

    def extract_frame(self, video_path: str, frame_index: int, out_path: str) -> None:
        ensure_parent_dir(out_path)
        self._run("thumbnail", build_thumbnail_cmd(video_path, frame_index, out_path))

    def mux_audio(
        self,
        video_path: str,
        audio_path: str,
        start_offset: float,
        fade_in: float,
        fade_out_start: float,
        fade_out_span: float,
        out_path: str,
    ) -> None:
        ensure_parent_dir(out_path)
        self._run(
            "mux",
            build_mux_cmd(video_path, audio_path, start_offset, fade_in, fade_out_start, fade_out_span, out_path),
        )

    def probe_duration(self, audio_path: str) -> float:
        path = Path(audio_path)
        if not path.is_file():
            raise AssetError(path)
        try:
            duration = get_media_duration(path, workdir=self.workdir)
        except FFmpegNotFoundError as exc:
            raise EncodeError("probe", str(exc)) from exc
        if duration <= 0:
            raise AssetError(path, "duration could not be probed")
        _logger.debug("Probed %s: %.3fs", path, duration)
        return duration
