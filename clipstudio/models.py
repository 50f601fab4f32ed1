"""Shared data types used across ClipStudio."""

from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class TimeRange:
    """A start/end time pair in seconds.

    Used both for detected silence intervals and for speech segments to keep.
    """

    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass
class Segment:
    """A labeled transcript segment, optionally carrying its text.

    Silence ranges and the speech ranges kept by silence removal are plain
    :class:`TimeRange` values, not Segments.
    """

    start: float
    end: float
    label: str
    text: str | None = None


@dataclass(frozen=True)
class ProbeResult:
    """Metadata extracted from a media file via ffprobe."""

    duration: float
    has_video: bool
    has_audio: bool
    width: int | None = None
    height: int | None = None


@dataclass
class ToolResult:
    """Outcome of one external tool invocation.

    A non-zero ``returncode`` is not an error by itself; callers decide.
    """

    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@dataclass
class SilenceRemovalResult:
    output_path: Path
    segments_removed: int = 0
    duration_original: float = 0.0
    duration_final: float = 0.0


@dataclass
class WordTimestamp:
    """One spoken word with its timing, as supplied by a transcriber."""

    word: str
    start: float
    end: float


@dataclass
class SubtitleCue:
    index: int
    start: float
    end: float
    text: str


@dataclass
class Transcript:
    """Transcription output: full text, flat word list and sentence segments."""

    text: str
    words: list[WordTimestamp] = field(default_factory=list)
    segments: list[Segment] = field(default_factory=list)
    language: str | None = None


@dataclass
class CaptionResult:
    output_path: Path
    cue_count: int = 0
    duration_final: float = 0.0
    subtitle_path: Path | None = None
