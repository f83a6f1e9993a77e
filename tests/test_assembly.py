from __future__ import annotations

from pathlib import Path

import pytest

from quote_reel.errors import EncodeError, InputError
from quote_reel.video.assembly import assemble, build_assembly_job, remove_transients, thumbnail_path_for
from quote_reel.video.timeline_schema import AudioSyncPlan


class FakeEncoder:
    def __init__(self, fail_stage: str | None = None) -> None:
        self.fail_stage = fail_stage
        self.calls: list[tuple] = []

    def _maybe_fail(self, stage: str) -> None:
        if stage == self.fail_stage:
            raise EncodeError(stage, returncode=1)

    def encode_sequence(self, frames_pattern, fps, out_path) -> None:
        self.calls.append(("encode", frames_pattern, fps, out_path))
        self._maybe_fail("encode")
        Path(out_path).write_bytes(b"silent")

    def extract_frame(self, video_path, frame_index, out_path) -> None:
        self.calls.append(("thumbnail", video_path, frame_index, out_path))
        self._maybe_fail("thumbnail")
        Path(out_path).write_bytes(b"jpg")

    def mux_audio(self, video_path, audio_path, start_offset, fade_in, fade_out_start, fade_out_span, out_path) -> None:
        self.calls.append(("mux", video_path, audio_path, start_offset, fade_in, fade_out_start, fade_out_span, out_path))
        self._maybe_fail("mux")
        Path(out_path).write_bytes(b"final")

    def probe_duration(self, audio_path) -> float:
        return 60.0


def _setup(tmp_path: Path):
    frames_dir = tmp_path / "tmp"
    frames_dir.mkdir()
    for index in range(3):
        (frames_dir / f"frame_{index:04d}.png").write_bytes(b"png")
    job = build_assembly_job(frames_dir, 30, 3, tmp_path / "out" / "quote.mp4", tmp_path / "bg1.mp3")
    audio_plan = AudioSyncPlan(
        track_path=str(tmp_path / "bg1.mp3"),
        track_duration=60.0,
        start_offset=12.0,
        fade_in_span=1.0,
        fade_out_start=6.0,
        fade_out_span=1.0,
    )
    return frames_dir, job, audio_plan


def test_build_assembly_job_derives_paths(tmp_path) -> None:
    _frames_dir, job, _plan = _setup(tmp_path)

    assert job.frame_pattern.endswith("frame_%04d.png")
    assert job.thumbnail_path == str(tmp_path / "out" / "quote.jpg")
    assert job.last_frame_index == 2


def test_assemble_runs_stages_in_order_and_cleans_up(tmp_path) -> None:
    frames_dir, job, audio_plan = _setup(tmp_path)
    (tmp_path / "out").mkdir()
    encoder = FakeEncoder()

    result = assemble(job, audio_plan, encoder)

    assert [call[0] for call in encoder.calls] == ["encode", "thumbnail", "mux"]
    assert encoder.calls[1][2] == 2
    assert encoder.calls[2][3:7] == (12.0, 1.0, 6.0, 1.0)
    assert result.stages == ["encode", "thumbnail", "mux"]
    assert result.output_path.read_bytes() == b"final"
    assert result.thumbnail_path.exists()
    assert list(frames_dir.iterdir()) == []


@pytest.mark.parametrize("stage", ["encode", "thumbnail", "mux"])
def test_assemble_stops_at_failing_stage_and_keeps_transients(tmp_path, stage: str) -> None:
    frames_dir, job, audio_plan = _setup(tmp_path)
    (tmp_path / "out").mkdir()
    encoder = FakeEncoder(fail_stage=stage)

    with pytest.raises(EncodeError) as excinfo:
        assemble(job, audio_plan, encoder)

    assert excinfo.value.stage == stage
    assert encoder.calls[-1][0] == stage
    assert len(list(frames_dir.glob("frame_*.png"))) == 3
    assert not Path(job.output_path).exists()


def test_remove_transients_leaves_unrelated_entries(tmp_path) -> None:
    frames_dir = tmp_path / "work"
    (frames_dir / "project").mkdir(parents=True)
    (frames_dir / "project" / "notes.txt").write_text("keep", encoding="utf-8")
    (frames_dir / "notes.txt").write_text("keep", encoding="utf-8")
    (frames_dir / "ffmpeg").mkdir()
    (frames_dir / "ffmpeg" / "ffmpeg-stderr.log").write_text("log", encoding="utf-8")
    for name in ("frame_0000.png", "frame_00001.png", "timeline.json", "output_no_audio.mp4", "ffmpeg-commands.log"):
        (frames_dir / name).write_bytes(b"x")

    assert remove_transients(frames_dir) == 6

    assert sorted(entry.name for entry in frames_dir.iterdir()) == ["notes.txt", "project"]
    assert (frames_dir / "project" / "notes.txt").read_text(encoding="utf-8") == "keep"


def test_ffmpeg_log_dir_with_foreign_files_is_kept(tmp_path) -> None:
    log_dir = tmp_path / "ffmpeg"
    log_dir.mkdir()
    (log_dir / "ffmpeg-stdout.log").write_text("log", encoding="utf-8")
    (log_dir / "keep.txt").write_text("keep", encoding="utf-8")

    remove_transients(tmp_path)

    assert [entry.name for entry in log_dir.iterdir()] == ["keep.txt"]


def test_thumbnail_path_cannot_replace_output(tmp_path) -> None:
    assert thumbnail_path_for(tmp_path / "quote.mov") == tmp_path / "quote.jpg"
    with pytest.raises(InputError):
        thumbnail_path_for(tmp_path / "quote.jpg")
    with pytest.raises(InputError):
        build_assembly_job(tmp_path, 30, 3, tmp_path / "out" / "quote.jpg", tmp_path / "bg1.mp3")
