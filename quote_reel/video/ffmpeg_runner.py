"""Subprocess plumbing shared by every ffmpeg and ffprobe job."""
from __future__ import annotations

import logging
import os
import subprocess
import tempfile
import threading
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Deque, List, Optional

_logger = logging.getLogger(__name__)

TAIL_LINES = 200


@dataclass
class CommandResult:
    cmd: List[str]
    returncode: Optional[int]
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False
    stderr_log: Optional[Path] = None

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    def last_error_line(self) -> str:
        lines = [line for line in self.stderr.splitlines() if line.strip()]
        return lines[-1].strip() if lines else f"exit status {self.returncode}"


def with_log_flags(cmd: list[str], verbose: bool = False) -> list[str]:
    """Insert banner, log level and stats flags after the executable, once."""
    if not cmd:
        return []
    args = list(cmd[1:])
    flags: list[str] = []
    if "-hide_banner" not in args:
        flags.append("-hide_banner")
    if "-loglevel" not in args:
        flags += ["-loglevel", "verbose" if verbose else "level+info"]
    if "-nostats" not in args:
        flags.append("-nostats")
    return [cmd[0], *flags, *args]


def _pump(stream: IO[str], sink: IO[str], tail: Deque[str]) -> None:
    for line in stream:
        sink.write(line)
        tail.append(line)


def run_command(
    cmd: list[str],
    workdir: str | Path | None = None,
    timeout_sec: float | None = None,
    verbose: bool = False,
) -> CommandResult:
    """Run one job to completion, tee'ing stdout and stderr into ``workdir``.

    ``ffmpeg`` and ``ffprobe`` in ``cmd[0]`` are resolved to real binaries and
    ffmpeg also writes an ``FFREPORT`` file next to the logs. A missing
    executable raises ``FFmpegNotFoundError``; a failing or timed out process
    is reported through the returned :class:`CommandResult`.
    """
    if not cmd or not cmd[0]:
        raise ValueError(f"Invalid command: {cmd!r}")

    # Imported here, utils imports this module at load time.
    from .utils import resolve_binary

    argv = [str(token) for token in cmd]
    name = Path(argv[0]).name
    if name in {"ffmpeg", "ffprobe"}:
        argv[0] = resolve_binary(name)
    if name == "ffmpeg":
        argv = with_log_flags(argv, verbose=verbose)

    logdir = Path(workdir) if workdir is not None else Path(tempfile.mkdtemp(prefix="quote_reel_ffmpeg_"))
    logdir.mkdir(parents=True, exist_ok=True)
    stdout_log = logdir / f"{name}-stdout.log"
    stderr_log = logdir / f"{name}-stderr.log"
    env = os.environ.copy()
    if name == "ffmpeg":
        env["FFREPORT"] = f"file={logdir / 'ffmpeg-report.log'}:level=32"

    stdout_tail: Deque[str] = deque(maxlen=TAIL_LINES)
    stderr_tail: Deque[str] = deque(maxlen=TAIL_LINES)
    timed_out = False

    _logger.debug("Running %s", " ".join(argv))
    with stdout_log.open("a", encoding="utf-8") as out_file, stderr_log.open("a", encoding="utf-8") as err_file:
        try:
            process = subprocess.Popen(
                argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                bufsize=1,
                env=env,
                cwd=str(logdir),
            )
        except OSError as exc:
            return CommandResult(argv, None, stderr=f"could not start {argv[0]}: {exc}", stderr_log=stderr_log)

        readers = [
            threading.Thread(target=_pump, args=(process.stdout, out_file, stdout_tail), daemon=True),
            threading.Thread(target=_pump, args=(process.stderr, err_file, stderr_tail), daemon=True),
        ]
        for reader in readers:
            reader.start()

        try:
            returncode = process.wait(timeout=timeout_sec)
        except subprocess.TimeoutExpired:
            timed_out = True
            _logger.warning("%s exceeded %ss, terminating", name, timeout_sec)
            process.terminate()
            try:
                returncode = process.wait(timeout=3)
            except subprocess.TimeoutExpired:
                process.kill()
                returncode = process.wait()

        for reader in readers:
            reader.join(timeout=2)

    return CommandResult(
        cmd=argv,
        returncode=returncode,
        stdout="".join(stdout_tail),
        stderr="".join(stderr_tail),
        timed_out=timed_out,
        stderr_log=stderr_log,
    )
