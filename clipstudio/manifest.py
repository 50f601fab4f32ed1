"""JSON manifest schema — the contract between CLI/API and engine."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

from clipstudio.ffutil import InvalidInputError


@dataclass
class SilenceCutConfig:
    """Configuration for silence detection and removal."""

    enabled: bool = False
    min_duration: float = 0.5
    noise_db: float = -35.0
    padding: float = 0.15

    def __post_init__(self) -> None:
        if self.min_duration <= 0:
            raise InvalidInputError("silence_cut.min_duration must be positive")
        if self.padding < 0:
            raise InvalidInputError("silence_cut.padding must not be negative")


@dataclass
class CaptionConfig:
    """Configuration for word-level captions burned into the video."""

    enabled: bool = False
    model: str = "base"
    language: str | None = None
    font_size: int = 24
    font_name: str = "Arial"
    keep_sidecar: bool = False

    def __post_init__(self) -> None:
        if self.font_size <= 0:
            raise InvalidInputError("captions.font_size must be positive")
        if not self.font_name:
            raise InvalidInputError("captions.font_name must not be empty")


@dataclass
class ToolConfig:
    """Where to find ffmpeg/ffprobe and where to put scratch files."""

    ffmpeg: str = field(default_factory=lambda: os.environ.get("FFMPEG_PATH", "ffmpeg"))
    ffprobe: str = field(default_factory=lambda: os.environ.get("FFPROBE_PATH", "ffprobe"))
    temp_dir: Path | None = None


@dataclass
class Manifest:
    """Top-level editing manifest."""

    input: Path
    output: Path
    version: str = "1"
    silence_cut: SilenceCutConfig = field(default_factory=SilenceCutConfig)
    captions: CaptionConfig = field(default_factory=CaptionConfig)
    tools: ToolConfig = field(default_factory=ToolConfig)


def load_manifest(path: str | Path) -> Manifest:
    """Load and validate a manifest from a JSON file."""
    path = Path(path)
    data = json.loads(path.read_text())

    if "input" not in data or "output" not in data:
        raise ValueError("Manifest must contain 'input' and 'output' fields")

    silence_cut = SilenceCutConfig(**data["silence_cut"]) if "silence_cut" in data else SilenceCutConfig()
    captions = CaptionConfig(**data["captions"]) if "captions" in data else CaptionConfig()
    tools_data = dict(data.get("tools", {}))
    if tools_data.get("temp_dir"):
        tools_data["temp_dir"] = Path(tools_data["temp_dir"])
    tools = ToolConfig(**tools_data)

    return Manifest(
        version=data.get("version", "1"),
        input=Path(data["input"]),
        output=Path(data["output"]),
        silence_cut=silence_cut,
        captions=captions,
        tools=tools,
    )
