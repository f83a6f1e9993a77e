from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
from pathlib import Path

import imageio_ffmpeg

from .ffmpeg_runner import CommandResult, run_command

_logger = logging.getLogger(__name__)

_PATH_VARS = {"ffmpeg": "FFMPEG_PATH", "ffprobe": "FFPROBE_PATH"}


class FFmpegNotFoundError(RuntimeError):
    pass


def resolve_binary(name: str) -> str:
    """Locate ``ffmpeg`` or ``ffprobe``: explicit env path, then PATH, then the imageio-ffmpeg bundle."""
    env_var = _PATH_VARS[name]
    configured = os.environ.get(env_var)
    if configured and Path(configured).exists():
        return configured

    found = shutil.which(name)
    if found:
        return found

    try:
        bundled = Path(imageio_ffmpeg.get_ffmpeg_exe())
    except RuntimeError:
        bundled = None
    if bundled is not None:
        candidate = bundled if name == "ffmpeg" else bundled.with_name("ffprobe")
        if candidate.exists():
            return str(candidate)

    raise FFmpegNotFoundError(f"{name} executable not found. Install ffmpeg or set {env_var}.")


def ensure_ffmpeg_exists() -> None:
    exe = resolve_binary("ffmpeg")
    try:
        subprocess.run([exe, "-version"], check=True, capture_output=True, text=True)
    except (OSError, subprocess.CalledProcessError) as exc:
        raise FFmpegNotFoundError(f"FFmpeg at {exe} could not be executed.") from exc


def append_command_log(log_path: str | Path, result: CommandResult) -> None:
    """Append the command line and its outcome to the run's command log."""
    path = ensure_parent_dir(log_path)
    with path.open("a", encoding="utf-8") as handle:
        handle.write("$ " + shlex.join(result.cmd) + "\n")
        handle.write(f"returncode={result.returncode} timed_out={result.timed_out}\n")
        if result.stderr_log is not None:
            handle.write(f"stderr_log={result.stderr_log}\n")
        if not result.ok and result.stderr:
            handle.write(result.stderr.rstrip() + "\n")


def get_media_duration(path: str | Path, workdir: str | Path | None = None) -> float:
    """Container duration in seconds, or 0.0 when ffprobe cannot read it.

    A missing ffprobe binary raises ``FFmpegNotFoundError``.
    """
    media_path = Path(path).resolve()
    if not media_path.is_file():
        return 0.0
    cmd = [
        "ffprobe",
        "-v",
        "error",
        "-show_entries",
        "format=duration",
        "-of",
        "default=noprint_wrappers=1:nokey=1",
        str(media_path),
    ]
    result = run_command(cmd, workdir=workdir)
    if not result.ok:
        _logger.warning("ffprobe failed for %s: %s", media_path, result.last_error_line())
        return 0.0
    try:
        return float(result.stdout.strip())
    except ValueError:
        return 0.0


def ensure_parent_dir(path: str | Path) -> Path:
    path_obj = Path(path)
    path_obj.parent.mkdir(parents=True, exist_ok=True)
    return path_obj
