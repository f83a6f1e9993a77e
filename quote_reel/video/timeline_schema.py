from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, validator


class DisplayLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    max_width: int = Field(gt=0)

    def __len__(self) -> int:
        return len(self.text)


class LineData(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    delay: float
    duration: float

    @property
    def end(self) -> float:
        return self.delay + self.duration


class RevealEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    subject_group: str
    subject_id: str
    index: int = 0
    text: Optional[str] = None
    start: float = Field(ge=0)
    span: float = Field(gt=0)

    @property
    def end(self) -> float:
        return self.start + self.span


class Timeline(BaseModel):
    model_config = ConfigDict(frozen=True)

    lines: List[LineData]
    author: List[str] = Field(default_factory=list)
    events: List[RevealEvent]
    unit_speed: float = Field(gt=0)
    initial_delay: float = Field(0.0, ge=0)
    base_duration: float
    quote_end_time: float
    total_duration: float = Field(ge=0)

    @validator("lines")
    def validate_lines(cls, value: List[LineData]) -> List[LineData]:
        if not value:
            raise ValueError("timeline requires at least one line")
        return value

    def group_starts(self) -> list[tuple[str, float]]:
        """Return ``(group, first start)`` pairs in schedule order."""
        seen: dict[str, float] = {}
        for event in self.events:
            seen.setdefault(event.subject_group, event.start)
        return list(seen.items())

    def events_for(self, subject_group: str) -> list[RevealEvent]:
        return [event for event in self.events if event.subject_group == subject_group]


class Frame(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=0)
    timestamp: float = Field(ge=0)
    image_bytes: bytes


class Scene(BaseModel):
    """Everything a renderer needs to lay out one quote card."""

    timeline: Timeline
    width: int = 1200
    height: int = 2132
    color: str = "#FFFFFF"
    bg_color: str = "#34495e"
    font_path: Optional[str] = None
    logo_path: Optional[str] = None
    qrcode_path: Optional[str] = None


class AudioSyncPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    track_path: Optional[str] = None
    track_duration: float = Field(ge=0)
    start_offset: float = Field(ge=0)
    fade_in_span: float = Field(ge=0)
    fade_out_start: float = Field(ge=0)
    fade_out_span: float = Field(ge=0)


class AssemblyJob(BaseModel):
    model_config = ConfigDict(frozen=True)

    frames_dir: str
    frame_pattern: str
    fps: int = Field(gt=0)
    total_frames: int = Field(gt=0)
    silent_video_path: str
    thumbnail_path: str
    output_path: str
    audio_path: str

    @property
    def last_frame_index(self) -> int:
        return self.total_frames - 1
