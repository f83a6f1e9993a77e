import pytest

from quote_reel.errors import AssetError, EncodeError
from quote_reel.video import encoder as encoder_mod
from quote_reel.video.encoder import (
    FFmpegEncoder,
    build_audio_filter,
    build_encode_cmd,
    build_mux_cmd,
    build_thumbnail_cmd,
)
from quote_reel.video.ffmpeg_runner import CommandResult, with_log_flags
from quote_reel.video.utils import FFmpegNotFoundError, append_command_log


def test_build_encode_cmd_uses_framerate_and_yuv420p() -> None:
    cmd = build_encode_cmd("tmp/frame_%04d.png", 30, "tmp/output_no_audio.mp4")

    assert cmd[:4] == ["ffmpeg", "-y", "-framerate", "30"]
    assert cmd[cmd.index("-i") + 1] == "tmp/frame_%04d.png"
    assert cmd[cmd.index("-pix_fmt") + 1] == "yuv420p"
    assert cmd[-1] == "tmp/output_no_audio.mp4"


def test_build_thumbnail_cmd_selects_last_frame() -> None:
    cmd = build_thumbnail_cmd("silent.mp4", 209, "quote.jpg")

    assert cmd[cmd.index("-vf") + 1] == "select=eq(n\\,209)"
    assert cmd[cmd.index("-vframes") + 1] == "1"


def test_build_mux_cmd_seeks_music_and_applies_fades() -> None:
    cmd = build_mux_cmd("silent.mp4", "bg1.mp3", 12, 1.0, 6.0, 1.0, "quote.mp4")

    assert cmd.index("-ss") < cmd.index("bg1.mp3")
    assert cmd[cmd.index("-ss") + 1] == "12.000"
    assert cmd[cmd.index("-filter:a") + 1] == build_audio_filter(1.0, 6.0, 1.0)
    assert "-shortest" in cmd
    assert cmd[cmd.index("-c:v") + 1] == "copy"


def test_build_audio_filter_matches_envelope() -> None:
    assert build_audio_filter(1.0, 6.0, 1.0) == "volume=1,afade=t=in:st=0:d=1.000,afade=t=out:st=6.000:d=1.000"


def _fake_run(result_kwargs):
    def fake_run_command(cmd, workdir=None, timeout_sec=None, verbose=False):
        return CommandResult(cmd=list(cmd), **result_kwargs)

    return fake_run_command


def test_ffmpeg_encoder_raises_encode_error_with_stage(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(
        encoder_mod,
        "run_command",
        _fake_run({"returncode": 1, "stderr": "Input #0\nframe_%04d.png: No such file or directory\n"}),
    )
    encoder = FFmpegEncoder(workdir=tmp_path)

    with pytest.raises(EncodeError) as excinfo:
        encoder.encode_sequence(str(tmp_path / "frame_%04d.png"), 30, str(tmp_path / "silent.mp4"))

    assert excinfo.value.stage == "encode"
    assert excinfo.value.returncode == 1
    assert "No such file" in str(excinfo.value)
    assert encoder.commands[0][0] == "ffmpeg"


def test_ffmpeg_encoder_reports_timeouts(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(encoder_mod, "run_command", _fake_run({"returncode": -15, "timed_out": True}))
    encoder = FFmpegEncoder(workdir=tmp_path, timeout_sec=5)

    with pytest.raises(EncodeError, match="timed out after 5s") as excinfo:
        encoder.mux_audio("v.mp4", "a.mp3", 0, 1, 6, 1, str(tmp_path / "out.mp4"))

    assert excinfo.value.stage == "mux"


def test_ffmpeg_encoder_missing_binary_is_encode_error(monkeypatch, tmp_path) -> None:
    def missing(cmd, **kwargs):
        raise FFmpegNotFoundError("ffmpeg executable not found")

    monkeypatch.setattr(encoder_mod, "run_command", missing)

    with pytest.raises(EncodeError, match="not found") as excinfo:
        FFmpegEncoder(workdir=tmp_path).encode_sequence("f_%04d.png", 30, str(tmp_path / "silent.mp4"))

    assert excinfo.value.stage == "encode"


def test_ffmpeg_encoder_success_records_and_logs_commands(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(encoder_mod, "run_command", _fake_run({"returncode": 0}))
    log_path = tmp_path / "logs" / "ffmpeg-commands.log"
    encoder = FFmpegEncoder(workdir=tmp_path, log_path=log_path)

    encoder.extract_frame("silent.mp4", 9, str(tmp_path / "thumbs" / "quote.jpg"))

    assert (tmp_path / "thumbs").is_dir()
    assert encoder.commands == [build_thumbnail_cmd("silent.mp4", 9, str(tmp_path / "thumbs" / "quote.jpg"))]
    logged = log_path.read_text(encoding="utf-8")
    assert logged.startswith("$ ffmpeg -y -i silent.mp4")
    assert "returncode=0 timed_out=False" in logged


def test_probe_duration_missing_file_is_asset_error(tmp_path) -> None:
    with pytest.raises(AssetError):
        FFmpegEncoder().probe_duration(str(tmp_path / "bg1.mp3"))


def test_probe_duration_unreadable_file_is_asset_error(monkeypatch, tmp_path) -> None:
    audio = tmp_path / "bg1.mp3"
    audio.write_bytes(b"not audio")
    monkeypatch.setattr(encoder_mod, "get_media_duration", lambda _path, workdir=None: 0.0)

    with pytest.raises(AssetError, match="duration could not be probed"):
        FFmpegEncoder().probe_duration(str(audio))


def test_probe_duration_returns_probed_value(monkeypatch, tmp_path) -> None:
    audio = tmp_path / "bg1.mp3"
    audio.write_bytes(b"id3")
    monkeypatch.setattr(encoder_mod, "get_media_duration", lambda _path, workdir=None: 93.5)

    assert FFmpegEncoder().probe_duration(str(audio)) == 93.5


def test_with_log_flags_adds_flags_once() -> None:
    cmd = with_log_flags(["ffmpeg", "-y", "-i", "in.png", "out.mp4"])

    assert cmd[0] == "ffmpeg"
    assert cmd[-1] == "out.mp4"
    assert cmd.count("-hide_banner") == 1
    assert cmd[cmd.index("-loglevel") + 1] == "level+info"
    assert "-nostats" in cmd
    assert with_log_flags(cmd) == cmd
    assert with_log_flags(["ffmpeg", "-i", "x"], verbose=True)[3] == "verbose"


def test_command_result_reports_last_stderr_line() -> None:
    failed = CommandResult(cmd=["ffmpeg"], returncode=1, stderr="warning\nreal error\n\n")

    assert not failed.ok
    assert failed.last_error_line() == "real error"
    assert CommandResult(cmd=["ffmpeg"], returncode=8).last_error_line() == "exit status 8"
    assert not CommandResult(cmd=["ffmpeg"], returncode=0, timed_out=True).ok


def test_append_command_log_keeps_stderr_of_failures(tmp_path) -> None:
    log_path = tmp_path / "run.log"
    append_command_log(log_path, CommandResult(cmd=["ffmpeg", "-i", "a b.png"], returncode=1, stderr="boom\n"))

    lines = log_path.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "$ ffmpeg -i 'a b.png'"
    assert lines[-1] == "boom"


def test_probe_duration_without_ffprobe_is_encode_error(monkeypatch, tmp_path) -> None:
    audio = tmp_path / "bg1.mp3"
    audio.write_bytes(b"id3")

    def missing(_path, workdir=None):
        raise FFmpegNotFoundError("ffprobe executable not found. Install ffmpeg or set FFPROBE_PATH.")

    monkeypatch.setattr(encoder_mod, "get_media_duration", missing)

    with pytest.raises(EncodeError, match="ffprobe executable not found") as excinfo:
        FFmpegEncoder().probe_duration(str(audio))

    assert excinfo.value.stage == "probe"
