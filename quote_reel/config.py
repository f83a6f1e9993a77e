"""Centralised configuration helpers.

Numeric render settings, asset catalogs and the secret / environment lookup
used by the rest of the package live here.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError, validator

from .errors import InputError

PROJECT_ROOT = Path(__file__).resolve().parent.parent

ANIMATIONS = [
    "slide-right",
    "slide-left",
    "fade-in",
    "scale-in",
    "rotate-in",
]

MUSIC_FILES = [
    "assets/musics/bg1.mp3",
    "assets/musics/bg2.mp3",
    "assets/musics/bg3.mp3",
]

BACKGROUND_COLORS = [
    "#3498db",
    "#2ecc71",
    "#e74c3c",
    "#f5b642",
    "#9b59b6",
    "#1abc9c",
    "#34495e",
    "#e67e22",
    "#16a085",
    "#d35400",
    "#27ae60",
    "#2980b9",
    "#8e44ad",
    "#c0392b",
    "#f39c12",
]

DEFAULT_FONT = "assets/fonts/MingChao.TTF"
DEFAULT_LOGO = "assets/images/logo.png"
DEFAULT_QRCODE = "assets/images/qrcode.jpg"
DEFAULT_TEXT_COLOR = "#FFFFFF"

ENV_PREFIX = "QUOTE_REEL_"


class RenderSettings(BaseModel):
    unit_speed: float = Field(0.5, gt=0)
    fps: int = Field(30, gt=0)
    initial_delay: float = Field(1.0, ge=0)
    ending_delay: float = Field(1.5, ge=0)
    author_logo_gap: float = Field(0.5, ge=0)
    max_chars_per_line: int = Field(10, gt=0)
    safety_margin: float = Field(2.0, ge=0)
    fade_span: float = Field(1.0, ge=0)
    reveal_span: float = Field(0.8, gt=0)
    ready_timeout_ms: int = Field(5000, gt=0)
    width: int = Field(1200, gt=0)
    height: int = Field(2132, gt=0)
    command_timeout_sec: Optional[float] = None
    music_files: List[str] = Field(default_factory=lambda: list(MUSIC_FILES))

    @validator("music_files")
    def validate_music_files(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("at least one music candidate is required")
        return value


def _normalize(value: str) -> str:
    """Strip whitespace and one pair of surrounding quotes."""
    v = str(value or "").strip()
    if len(v) >= 2 and v[0] == v[-1] and v[0] in {'"', "'"}:
        v = v[1:-1].strip()
    return v


def _streamlit_secret(keys: List[str]) -> str:
    try:
        import streamlit as st

        for key in keys:
            if key in st.secrets:
                value = _normalize(str(st.secrets[key]))
                if value:
                    return value
    except Exception:
        # Outside a Streamlit run there may be no secrets file at all.
        return ""
    return ""


def get_secret(name: str, default: str = "") -> str:
    """Return a configuration value, searching Streamlit secrets then env vars.

    Checks ``name``, ``name.lower()``, and ``name.upper()`` in that order.
    """
    keys = list(dict.fromkeys([name, name.lower(), name.upper()]))
    value = _streamlit_secret(keys)
    if value:
        return value
    for key in keys:
        value = _normalize(os.getenv(key, ""))
        if value:
            return value
    return _normalize(default)


def _env_overrides() -> dict[str, str]:
    overrides: dict[str, str] = {}
    for field_name in RenderSettings.model_fields:
        if field_name == "music_files":
            continue
        value = get_secret(f"{ENV_PREFIX}{field_name.upper()}")
        if value:
            overrides[field_name] = value
    return overrides


def load_settings(**overrides) -> RenderSettings:
    """Build validated settings from defaults, environment and explicit overrides.

    Explicit overrides whose value is ``None`` are ignored so callers can pass
    optional CLI values straight through.
    """
    values: dict = _env_overrides()
    values.update({key: value for key, value in overrides.items() if value is not None})
    try:
        return RenderSettings(**values)
    except ValidationError as exc:
        raise InputError(f"Invalid render settings: {exc}") from exc


def resolve_asset_path(path: str | Path) -> Path:
    """Resolve a catalog path against the project root unless it is absolute."""
    candidate = Path(path)
    if candidate.is_absolute():
        return candidate
    return (PROJECT_ROOT / candidate).resolve()
