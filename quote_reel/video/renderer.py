"""Rendering surfaces for quote cards.

The frame sampler only needs the :class:`Renderer` protocol. The bundled
:class:`QuoteCardRenderer` draws the card with Pillow and evaluates every
reveal event directly at the seek time, so seeking is exact and capture is
deterministic.
"""
from __future__ import annotations

import logging
import math
from io import BytesIO
from typing import Protocol, runtime_checkable

from PIL import Image, ImageColor, ImageDraw, ImageFont

from ..config import ANIMATIONS
from ..errors import AssetError, InputError
from .timeline_schema import RevealEvent, Scene

_logger = logging.getLogger(__name__)

# Layout is expressed against the 1200px reference width and scaled.
_REFERENCE_WIDTH = 1200.0
_QUOTE_FONT_PX = 100.8
_AUTHOR_FONT_PX = 67.2
_SETTLE_EPSILON = 1e-9


@runtime_checkable
class Renderer(Protocol):
    def load_scene(self, scene: Scene, style: str) -> None: ...

    def seek_to(self, timestamp: float) -> None: ...

    def await_ready(self, timeout_ms: int) -> None: ...

    def capture(self) -> bytes: ...


def _cubic_bezier(p1x: float, p1y: float, p2x: float, p2y: float):
    def _coord(t: float, a: float, b: float) -> float:
        return 3 * a * (1 - t) ** 2 * t + 3 * b * (1 - t) * t**2 + t**3

    def ease(progress: float) -> float:
        if progress <= 0:
            return 0.0
        if progress >= 1:
            return 1.0
        low, high = 0.0, 1.0
        t = progress
        for _ in range(40):
            t = (low + high) / 2
            x = _coord(t, p1x, p2x)
            if abs(x - progress) < 1e-7:
                break
            if x < progress:
                low = t
            else:
                high = t
        return _coord(t, p1y, p2y)

    return ease


# CSS "ease" timing function.
css_ease = _cubic_bezier(0.25, 0.1, 0.25, 1.0)


def parse_color(value: str) -> tuple[int, int, int]:
    try:
        return ImageColor.getrgb(value)[:3]
    except ValueError as exc:
        raise InputError(f"Unrecognised color {value!r}") from exc


def event_progress(event: RevealEvent, timestamp: float) -> float:
    if timestamp < event.start:
        return 0.0
    # Tolerates float noise in frame timestamps such as index / fps.
    if timestamp >= event.end - _SETTLE_EPSILON:
        return 1.0
    return css_ease((timestamp - event.start) / event.span)


def _load_font(font_path: str | None, size: int) -> ImageFont.ImageFont:
    if font_path:
        try:
            return ImageFont.truetype(font_path, size)
        except OSError as exc:
            raise AssetError(font_path, "font could not be loaded") from exc
    try:
        return ImageFont.truetype("DejaVuSans.ttf", size)
    except OSError:
        return ImageFont.load_default()


def _load_marker(path: str | None, width: int) -> Image.Image | None:
    if not path:
        return None
    try:
        with Image.open(path) as image:
            marker = image.convert("RGBA")
    except OSError as exc:
        raise AssetError(path, "image could not be loaded") from exc
    height = max(1, round(marker.height * width / max(1, marker.width)))
    return marker.resize((width, height), Image.LANCZOS)


class QuoteCardRenderer:
    """Pillow surface laying out quote columns right to left, top to bottom."""

    def __init__(self) -> None:
        self._scene: Scene | None = None
        self._style = ANIMATIONS[0]
        self._scale = 1.0
        self._time: float | None = None
        self._canvas: Image.Image | None = None
        self._glyphs: dict[tuple[str, str], Image.Image] = {}
        self._positions: dict[str, tuple[int, int]] = {}
        self._markers: dict[str, Image.Image] = {}

    def __enter__(self) -> "QuoteCardRenderer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._scene = None
        self._canvas = None
        self._glyphs.clear()
        self._positions.clear()
        self._markers.clear()

    def load_scene(self, scene: Scene, style: str) -> None:
        if style not in ANIMATIONS:
            raise ValueError(f"Unknown animation style {style!r}; expected one of {ANIMATIONS}")
        self.close()
        self._scene = scene
        self._style = style
        self._time = None

        scale = scene.width / _REFERENCE_WIDTH
        self._scale = scale
        self._quote_font = _load_font(scene.font_path, max(8, round(_QUOTE_FONT_PX * scale)))
        self._author_font = _load_font(scene.font_path, max(8, round(_AUTHOR_FONT_PX * scale)))
        self._text_rgb = parse_color(scene.color)
        self._background = Image.new("RGBA", (scene.width, scene.height), parse_color(scene.bg_color))

        logo = _load_marker(scene.logo_path, max(1, round(scene.width * 0.067)))
        if logo is not None:
            self._markers["logo"] = logo
        qrcode = _load_marker(scene.qrcode_path, max(1, round(scene.width * 0.213)))
        if qrcode is not None:
            self._markers["qrcode"] = qrcode

        self._layout()
        _logger.debug("Loaded scene %dx%d with style %s", scene.width, scene.height, style)

    def _layout(self) -> None:
        scene = self._scene
        assert scene is not None
        width, height = scene.width, scene.height
        quote_px = max(8, round(_QUOTE_FONT_PX * self._scale))
        author_px = max(8, round(_AUTHOR_FONT_PX * self._scale))
        padding = round(width * 0.10)
        column_gap = round(width * 0.8 * 0.06)
        quote_pitch = round(quote_px * 1.25)

        x = width - padding - quote_px
        for line_index, line in enumerate(scene.timeline.lines):
            for char_index in range(len(line.text)):
                self._positions[f"quote-{line_index}:{char_index}"] = (x, padding + char_index * quote_pitch)
            x -= quote_px + column_gap

        author_bottom = round(height * (1 - 0.14))
        author_count = len(scene.timeline.author)
        author_top = author_bottom - author_count * author_px
        for char_index in range(author_count):
            self._positions[f"author:{char_index}"] = (round(width * 0.10), author_top + char_index * author_px)

        marker_bottom = round(height * (1 - 0.056))
        logo = self._markers.get("logo")
        if logo is not None:
            self._positions["logo"] = (round(width * 0.11), marker_bottom - logo.height)
        qrcode = self._markers.get("qrcode")
        if qrcode is not None:
            self._positions["qrcode"] = (width - round(width * 0.10) - qrcode.width, marker_bottom - qrcode.height)

    def _glyph(self, char: str, group: str) -> Image.Image:
        key = (group, char)
        cached = self._glyphs.get(key)
        if cached is not None:
            return cached
        font = self._author_font if group == "author" else self._quote_font
        size = max(8, round((_AUTHOR_FONT_PX if group == "author" else _QUOTE_FONT_PX) * self._scale))
        tile = Image.new("RGBA", (size * 2, size * 2), (0, 0, 0, 0))
        draw = ImageDraw.Draw(tile)
        left, top, right, bottom = draw.textbbox((0, 0), char, font=font)
        origin = (size - (left + right) / 2, size - (top + bottom) / 2)
        draw.text(origin, char, font=font, fill=(*self._text_rgb, 255))
        self._glyphs[key] = tile
        return tile

    def _transform(self, tile: Image.Image, progress: float) -> tuple[Image.Image, int, int]:
        dx = dy = 0
        scale = 1.0
        angle = 0.0
        remaining = 1.0 - progress
        if self._style == "slide-right":
            dx = round(30 * self._scale * remaining)
        elif self._style == "slide-left":
            dx = -round(30 * self._scale * remaining)
        elif self._style == "fade-in":
            dy = round(10 * self._scale * remaining)
        elif self._style == "scale-in":
            scale = 0.5 + 0.5 * progress
        elif self._style == "rotate-in":
            scale = 0.3 + 0.7 * progress
            angle = 180.0 * remaining

        image = tile
        if not math.isclose(scale, 1.0):
            size = (max(1, round(tile.width * scale)), max(1, round(tile.height * scale)))
            image = image.resize(size, Image.BICUBIC)
        if angle:
            image = image.rotate(angle, resample=Image.BICUBIC)
        if progress < 1.0:
            alpha = image.getchannel("A").point(lambda value: round(value * progress))
            image = image.copy()
            image.putalpha(alpha)
        return image, dx, dy

    def _compose(self, timestamp: float) -> Image.Image:
        scene = self._scene
        assert scene is not None
        canvas = self._background.copy()
        for event in scene.timeline.events:
            progress = event_progress(event, timestamp)
            if progress <= 0:
                continue
            position = self._positions.get(event.subject_id)
            if position is None:
                continue
            if event.subject_group in self._markers:
                marker = self._markers[event.subject_group]
                # Markers always fade in.
                dy = round(10 * self._scale * (1.0 - progress))
                image = marker
                if progress < 1.0:
                    image = marker.copy()
                    image.putalpha(marker.getchannel("A").point(lambda value: round(value * progress)))
                canvas.alpha_composite(image, (position[0], position[1] + dy))
                continue
            group = "author" if event.subject_group == "author" else "quote"
            tile = self._glyph(event.text or "", group)
            image, dx, dy = self._transform(tile, progress)
            box_size = tile.width // 2
            x = position[0] + dx + box_size // 2 - image.width // 2
            y = position[1] + dy + box_size // 2 - image.height // 2
            canvas.alpha_composite(image, (max(0, x), max(0, y)))
        return canvas

    def seek_to(self, timestamp: float) -> None:
        if self._scene is None:
            raise RuntimeError("No scene loaded; call load_scene first.")
        self._time = float(timestamp)
        self._canvas = None
        self._canvas = self._compose(self._time)

    def await_ready(self, timeout_ms: int) -> None:
        if self._scene is None or self._canvas is None:
            raise TimeoutError(f"Renderer not ready within {timeout_ms} ms")

    def capture(self) -> bytes:
        if self._canvas is None:
            raise RuntimeError("Nothing to capture; call seek_to first.")
        buffer = BytesIO()
        self._canvas.convert("RGB").save(buffer, format="PNG")
        return buffer.getvalue()

