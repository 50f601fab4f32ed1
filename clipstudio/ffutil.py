"""FFmpeg/ffprobe subprocess helpers.

Every external tool call goes through :class:`FFmpegClient`. Its methods build
the argument vectors and return a :class:`ToolResult` without judging the exit
code, so callers decide what counts as failure.
"""

import logging
import os
import shutil
import subprocess
import threading
from pathlib import Path

from clipstudio.models import ToolResult

logger = logging.getLogger(__name__)

DIAGNOSTIC_TAIL = 500

SUBTITLE_STYLE = (
    "FontName={font_name},FontSize={font_size},"
    "PrimaryColour=&Hffffff&,OutlineColour=&H000000&,Outline=2"
)


class FFmpegNotFoundError(RuntimeError):
    pass


class ProbeError(RuntimeError):
    """ffprobe failed or returned metadata that could not be parsed."""


class InvalidInputError(ValueError):
    """Caller-supplied arguments violate a precondition."""


class MediaProcessingError(RuntimeError):
    """An ffmpeg step failed. ``diagnostics`` holds the tail of its stderr."""

    def __init__(self, message: str, diagnostics: str = "", returncode: int | None = None):
        super().__init__(message)
        self.diagnostics = truncate(diagnostics)
        self.returncode = returncode

    def __str__(self) -> str:
        base = super().__str__()
        if self.diagnostics:
            return f"{base}: {self.diagnostics}"
        return base


class OperationCancelled(MediaProcessingError):
    pass


class CleanupWarning(UserWarning):
    """A temporary file could not be removed."""


class CancelToken:
    """Thread-safe flag used to abort an in-flight tool invocation."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    def is_cancelled(self) -> bool:
        return self._event.is_set()


def truncate(text: str | None, limit: int = DIAGNOSTIC_TAIL) -> str:
    """Keep the last *limit* characters; ffmpeg puts the actual error at the end."""
    if not text:
        return ""
    text = text.strip()
    if len(text) <= limit:
        return text
    return "..." + text[-limit:]


def check_ffmpeg(ffmpeg: str = "ffmpeg", ffprobe: str = "ffprobe") -> None:
    """Raise FFmpegNotFoundError if ffmpeg/ffprobe are not on PATH."""
    for cmd in (ffmpeg, ffprobe):
        if shutil.which(cmd) is None:
            raise FFmpegNotFoundError(f"{cmd} not found on PATH")


def run_tool(
    cmd: list[str],
    cancel: CancelToken | None = None,
    poll_interval: float = 0.2,
) -> ToolResult:
    """Run *cmd* to completion and capture its output.

    Never raises on a non-zero exit. If *cancel* is triggered while the process
    runs, the process is killed and OperationCancelled is raised.
    """
    logger.debug("Running: %s", " ".join(cmd))
    try:
        proc = subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except FileNotFoundError as e:
        raise FFmpegNotFoundError(f"{cmd[0]} not found on PATH") from e

    if cancel is None:
        stdout, stderr = proc.communicate()
        return ToolResult(returncode=proc.returncode, stdout=stdout or "", stderr=stderr or "")

    while True:
        if cancel.is_cancelled():
            proc.kill()
            _, stderr = proc.communicate()
            raise OperationCancelled(f"{Path(cmd[0]).name} cancelled", stderr or "")
        try:
            stdout, stderr = proc.communicate(timeout=poll_interval)
        except subprocess.TimeoutExpired:
            continue
        return ToolResult(returncode=proc.returncode, stdout=stdout or "", stderr=stderr or "")


def check_result(result: ToolResult, what: str) -> ToolResult:
    """Raise MediaProcessingError if *result* is a non-zero exit."""
    if not result.ok:
        logger.warning("%s failed (rc=%d)", what, result.returncode)
        raise MediaProcessingError(
            f"{what} failed (rc={result.returncode})",
            result.stderr,
            returncode=result.returncode,
        )
    return result


def escape_filter_path(path: str | Path) -> str:
    """Make a file path safe inside a single-quoted filtergraph value.

    Backslashes become forward slashes; each ``'`` closes the quote, adds an
    escaped quote and reopens.
    """
    return str(path).replace("\\", "/").replace("'", "'\\''")


def unescape_filter_path(escaped: str) -> str:
    return escaped.replace("'\\''", "'")


def concat_list_line(path: str | Path) -> str:
    """One line of a concat demuxer list file."""
    return f"file '{escape_filter_path(path)}'"


def _fmt_time(seconds: float) -> str:
    return f"{seconds:.3f}"


class FFmpegClient:
    """ffmpeg-backed media tool. One method per operation."""

    def __init__(self, ffmpeg: str | None = None, ffprobe: str | None = None):
        self.ffmpeg = ffmpeg or os.environ.get("FFMPEG_PATH") or "ffmpeg"
        self.ffprobe = ffprobe or os.environ.get("FFPROBE_PATH") or "ffprobe"

    def check(self) -> None:
        check_ffmpeg(self.ffmpeg, self.ffprobe)

    def probe(self, input_path: Path, cancel: CancelToken | None = None) -> ToolResult:
        cmd = [
            self.ffprobe,
            "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            str(input_path),
        ]
        return run_tool(cmd, cancel)

    def detect_silence(
        self,
        input_path: Path,
        noise_db: float,
        min_duration: float,
        cancel: CancelToken | None = None,
    ) -> ToolResult:
        cmd = [
            self.ffmpeg,
            "-hide_banner", "-nostats",
            "-i", str(input_path),
            "-af", f"silencedetect=noise={noise_db}dB:d={min_duration}",
            "-f", "null", "-",
        ]
        return run_tool(cmd, cancel)

    def cut(
        self,
        input_path: Path,
        start: float,
        end: float,
        output_path: Path,
        cancel: CancelToken | None = None,
    ) -> ToolResult:
        cmd = [
            self.ffmpeg, "-y",
            "-i", str(input_path),
            "-ss", _fmt_time(start),
            "-to", _fmt_time(end),
            "-c", "copy",
            str(output_path),
        ]
        return run_tool(cmd, cancel)

    def concat(
        self, list_path: Path, output_path: Path, cancel: CancelToken | None = None
    ) -> ToolResult:
        cmd = [
            self.ffmpeg, "-y",
            "-f", "concat", "-safe", "0",
            "-i", str(list_path),
            "-c", "copy",
            str(output_path),
        ]
        return run_tool(cmd, cancel)

    def copy(
        self, input_path: Path, output_path: Path, cancel: CancelToken | None = None
    ) -> ToolResult:
        cmd = [self.ffmpeg, "-y", "-i", str(input_path), "-c", "copy", str(output_path)]
        return run_tool(cmd, cancel)

    def burn_subtitles(
        self,
        input_path: Path,
        subtitle_path: Path,
        output_path: Path,
        font_size: int = 24,
        font_name: str = "Arial",
        cancel: CancelToken | None = None,
    ) -> ToolResult:
        style = SUBTITLE_STYLE.format(font_name=font_name, font_size=font_size)
        vf = f"subtitles='{escape_filter_path(subtitle_path)}':force_style='{style}'"
        cmd = [
            self.ffmpeg, "-y",
            "-i", str(input_path),
            "-vf", vf,
            "-c:a", "copy",
            str(output_path),
        ]
        return run_tool(cmd, cancel)

    def extract_audio(
        self,
        input_path: Path,
        output_path: Path,
        sample_rate: int = 16000,
        cancel: CancelToken | None = None,
    ) -> ToolResult:
        """Extract audio as mono WAV at the given sample rate (for Whisper)."""
        cmd = [
            self.ffmpeg, "-y",
            "-i", str(input_path),
            "-vn",
            "-acodec", "pcm_s16le",
            "-ar", str(sample_rate),
            "-ac", "1",
            str(output_path),
        ]
        return run_tool(cmd, cancel)
