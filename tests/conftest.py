"""Shared test fixtures."""

import json
from pathlib import Path

import pytest

from clipstudio.models import ToolResult
from clipstudio.tempfiles import TempFileProvider

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def probe_json(duration: float | None = 20.0, video: bool = True, audio: bool = True) -> str:
    streams = []
    if video:
        streams.append({"codec_type": "video", "codec_name": "h264", "width": 1280, "height": 720})
    if audio:
        streams.append({"codec_type": "audio", "codec_name": "aac", "sample_rate": "44100"})
    fmt = {} if duration is None else {"duration": str(duration)}
    return json.dumps({"format": fmt, "streams": streams})


class FakeClient:
    """Stand-in for FFmpegClient that records calls and writes dummy outputs.

    ``durations`` maps a path (as str) to the duration reported by probe;
    anything else probes as ``default_duration``, and None drops the duration
    field. ``fail`` names operations that should exit non-zero; with
    ``write_on_fail=False`` they exit without touching their output.
    """

    def __init__(self, silence_stderr: str = "", default_duration: float = 20.0,
                 durations: dict[str, float | None] | None = None, fail: set[str] | None = None,
                 silence_rc: int = 0, write_on_fail: bool = True):
        self.silence_stderr = silence_stderr
        self.silence_rc = silence_rc
        self.default_duration = default_duration
        self.durations = durations or {}
        self.fail = fail or set()
        self.write_on_fail = write_on_fail
        self.calls: list[tuple] = []
        self.concat_lists: list[str] = []

    def _finish(self, op: str, output_path: Path | None = None) -> ToolResult:
        failing = op in self.fail
        if output_path is not None and (self.write_on_fail or not failing):
            Path(output_path).write_bytes(b"media")
        if failing:
            return ToolResult(returncode=1, stdout="", stderr=f"{op}: Invalid data found")
        return ToolResult(returncode=0, stdout="", stderr="")

    def probe(self, input_path, cancel=None):
        self.calls.append(("probe", Path(input_path)))
        if "probe" in self.fail:
            return ToolResult(1, "", "No such file or directory")
        duration = self.durations.get(str(input_path), self.default_duration)
        return ToolResult(0, probe_json(duration), "")

    def detect_silence(self, input_path, noise_db, min_duration, cancel=None):
        self.calls.append(("detect", Path(input_path), noise_db, min_duration))
        return ToolResult(self.silence_rc, "", self.silence_stderr)

    def cut(self, input_path, start, end, output_path, cancel=None):
        self.calls.append(("cut", Path(input_path), start, end, Path(output_path)))
        return self._finish("cut", output_path)

    def concat(self, list_path, output_path, cancel=None):
        self.calls.append(("concat", Path(list_path), Path(output_path)))
        self.concat_lists.append(Path(list_path).read_text())
        return self._finish("concat", output_path)

    def copy(self, input_path, output_path, cancel=None):
        self.calls.append(("copy", Path(input_path), Path(output_path)))
        return self._finish("copy", output_path)

    def burn_subtitles(self, input_path, subtitle_path, output_path,
                       font_size=24, font_name="Arial", cancel=None):
        self.calls.append(
            ("burn", Path(input_path), Path(subtitle_path), Path(output_path), font_size, font_name)
        )
        self.burned_track = Path(subtitle_path).read_text()
        return self._finish("burn", output_path)

    def extract_audio(self, input_path, output_path, sample_rate=16000, cancel=None):
        self.calls.append(("extract_audio", Path(input_path), Path(output_path)))
        return self._finish("extract_audio", output_path)

    def ops(self) -> list[str]:
        return [c[0] for c in self.calls]


@pytest.fixture
def sample_manifest_path() -> Path:
    return FIXTURES_DIR / "sample_manifest.json"


@pytest.fixture
def sandbox(tmp_path: Path) -> Path:
    d = tmp_path / "scratch"
    d.mkdir()
    return d


@pytest.fixture
def temp(sandbox: Path) -> TempFileProvider:
    return TempFileProvider(sandbox)
