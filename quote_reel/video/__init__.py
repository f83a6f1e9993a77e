"""Timeline, frame capture and ffmpeg assembly for quote videos."""

from .segmenter import segment
from .timeline_schema import AudioSyncPlan, DisplayLine, Frame, RevealEvent, Timeline
from .timeline_builder import synthesize, write_timeline_json
from .frame_sampler import frame_count, sample, sample_parallel
from .audio_sync import choose_track, plan
from .assembly import assemble, build_assembly_job

__all__ = [
    "AudioSyncPlan",
    "DisplayLine",
    "Frame",
    "RevealEvent",
    "Timeline",
    "segment",
    "synthesize",
    "write_timeline_json",
    "frame_count",
    "sample",
    "sample_parallel",
    "choose_track",
    "plan",
    "assemble",
    "build_assembly_job",
]
