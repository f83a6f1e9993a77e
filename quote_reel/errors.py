"""Error taxonomy for a quote video run.

Every failure is fatal for the run. ``exit_code`` lets the command line
entry point terminate with a status that identifies the failure class.
"""
from __future__ import annotations

from pathlib import Path


class QuoteReelError(RuntimeError):
    exit_code = 1


class InputError(QuoteReelError):
    exit_code = 2


class AssetError(QuoteReelError):
    exit_code = 3

    def __init__(self, path: str | Path, reason: str = "missing or unreadable") -> None:
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Required asset {reason}: {self.path}")


class RenderError(QuoteReelError):
    exit_code = 4

    def __init__(self, frame_index: int, message: str) -> None:
        self.frame_index = frame_index
        super().__init__(f"Rendering failed at frame {frame_index}: {message}")


class AudioPlanInfeasible(QuoteReelError):
    exit_code = 5


class EncodeError(QuoteReelError):
    exit_code = 6

    def __init__(
        self,
        stage: str,
        message: str = "",
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        self.stage = stage
        self.returncode = returncode
        self.stderr = stderr
        detail = message or f"exit status {returncode}"
        super().__init__(f"Encoding stage '{stage}' failed: {detail}")


class OutputConflict(QuoteReelError):
    exit_code = 7

    def __init__(self, path: str | Path) -> None:
        self.path = str(path)
        super().__init__(f"Output file '{self.path}' already exists. Pass overwrite to replace it.")
