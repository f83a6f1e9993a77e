from __future__ import annotations

import logging
from pathlib import Path

import streamlit as st

from quote_reel.config import ANIMATIONS, load_settings
from quote_reel.errors import OutputConflict, QuoteReelError
from quote_reel.pipeline import QuoteVideoRequest, render_quote_video
from quote_reel.video.utils import FFmpegNotFoundError, ensure_ffmpeg_exists

logging.basicConfig(format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", level=logging.INFO)

OUTPUT_DIR = Path("data/videos")
RANDOM_CHOICE = "Random"


def init_state() -> None:
    st.session_state.setdefault("quote", "")
    st.session_state.setdefault("author", "")
    st.session_state.setdefault("last_output", "")
    st.session_state.setdefault("last_thumbnail", "")


def _output_path(name: str) -> Path:
    cleaned = (name or "quote").strip().replace(" ", "_") or "quote"
    if not cleaned.lower().endswith(".mp4"):
        cleaned += ".mp4"
    return OUTPUT_DIR / cleaned


def render_form() -> None:
    st.session_state.quote = st.text_area("Quote", value=st.session_state.quote, height=140)
    st.session_state.author = st.text_input("Author", value=st.session_state.author)

    col1, col2 = st.columns(2)
    with col1:
        animation = st.selectbox("Animation", [RANDOM_CHOICE, *ANIMATIONS])
        use_bg = st.checkbox("Pick background color", value=False)
        bg_color = st.color_picker("Background", value="#34495e") if use_bg else None
    with col2:
        file_name = st.text_input("Output file", value="quote.mp4")
        hide_qrcode = st.checkbox("Hide QR code", value=False)
        overwrite = st.checkbox("Overwrite existing file", value=False)

    if not st.button("Render video", type="primary"):
        return

    try:
        ensure_ffmpeg_exists()
    except FFmpegNotFoundError as exc:
        st.error(str(exc))
        return

    request = QuoteVideoRequest(
        quote=st.session_state.quote,
        author=st.session_state.author,
        output_path=str(_output_path(file_name)),
        tmp_dir="data/tmp/frames",
        overwrite=overwrite,
        hide_qrcode=hide_qrcode,
        animation=None if animation == RANDOM_CHOICE else animation,
        bg_color=bg_color,
    )
    with st.spinner("Rendering frames and encoding..."):
        try:
            result = render_quote_video(request, load_settings())
        except OutputConflict as exc:
            st.warning(f"{exc}")
            return
        except QuoteReelError as exc:
            st.error(f"{type(exc).__name__}: {exc}")
            return

    st.session_state.last_output = str(result.output_path)
    st.session_state.last_thumbnail = str(result.thumbnail_path)
    st.success(
        f"Rendered {result.total_frames} frames ({result.timeline.total_duration:.1f}s, "
        f"{result.animation}, music from {Path(result.audio_plan.track_path or '').name} "
        f"at {result.audio_plan.start_offset:.0f}s)."
    )


def render_preview() -> None:
    output = Path(st.session_state.last_output) if st.session_state.last_output else None
    if not output or not output.exists():
        return
    st.video(str(output))
    thumbnail = Path(st.session_state.last_thumbnail)
    if thumbnail.exists():
        st.image(str(thumbnail), caption="Thumbnail")
    st.download_button("Download MP4", data=output.read_bytes(), file_name=output.name, mime="video/mp4")


def main() -> None:
    st.set_page_config(page_title="Quote Reel", layout="centered")
    st.title("Quote Reel")
    init_state()
    render_form()
    render_preview()


main()
