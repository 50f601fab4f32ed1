"""Silence detection analyzer."""

import logging
import re
from pathlib import Path

from clipstudio.ffutil import CancelToken, FFmpegClient, MediaProcessingError, truncate
from clipstudio.models import TimeRange

logger = logging.getLogger(__name__)

# Used as the end of a silence that runs to EOF without a silence_end marker.
UNPAIRED_SILENCE_GUARD = 1.0

_START_RE = re.compile(r"silence_start: (-?\d+(?:\.\d+)?)")
_END_RE = re.compile(r"silence_end: (-?\d+(?:\.\d+)?)")


def parse_silence_ranges(stderr: str) -> list[TimeRange]:
    """Parse silencedetect output from ffmpeg stderr into TimeRanges.

    The i-th ``silence_start`` pairs with the i-th ``silence_end``. A trailing
    start with no end gets ``start + 1.0`` as its end. ffmpeg can report a
    slightly negative start for silence at the head of a file; it is clamped to 0.
    """
    starts = [max(float(m), 0.0) for m in _START_RE.findall(stderr)]
    ends = [float(m) for m in _END_RE.findall(stderr)]

    ranges: list[TimeRange] = []
    for i, start in enumerate(starts):
        if i < len(ends):
            end = max(ends[i], start)
        else:
            end = start + UNPAIRED_SILENCE_GUARD
        ranges.append(TimeRange(start=start, end=end))
    return ranges


def detect_silence(
    input_path: Path,
    noise_db: float = -35.0,
    min_duration: float = 0.5,
    client: FFmpegClient | None = None,
    cancel: CancelToken | None = None,
) -> list[TimeRange]:
    """Run ffmpeg silencedetect and return silent time ranges in file order.

    ffmpeg may exit non-zero when writing to the null muxer; that is still a
    successful scan as long as it produced diagnostic output to parse.
    """
    client = client or FFmpegClient()
    result = client.detect_silence(input_path, noise_db, min_duration, cancel=cancel)

    if not result.stderr.strip():
        if result.returncode != 0:
            raise MediaProcessingError(
                f"ffmpeg silencedetect failed (rc={result.returncode}) with no output",
                returncode=result.returncode,
            )
        return []
    if result.returncode != 0:
        if "silence_" not in result.stderr:
            logger.warning(
                "silencedetect exited with rc=%d and reported no silence markers: %s",
                result.returncode, truncate(result.stderr),
            )
        else:
            logger.debug("silencedetect exited with rc=%d; using captured output", result.returncode)

    ranges = parse_silence_ranges(result.stderr)
    logger.info("Detected %d silent ranges in %s", len(ranges), input_path)
    return ranges


def speech_segments(
    silences: list[TimeRange], duration: float, padding: float = 0.15
) -> list[TimeRange]:
    """Return the padded complement of *silences* over ``[0, duration]``.

    Each silence is shrunk by *padding* on both sides so word edges survive the
    cut. Candidates that padding collapses to zero or negative length are
    dropped.
    """
    segments: list[TimeRange] = []
    prev_end = 0.0

    for silence in silences:
        start = max(0.0, prev_end)
        end = max(silence.start - padding, start)
        if end > start:
            segments.append(TimeRange(start=start, end=end))
        prev_end = silence.end + padding

    if prev_end < duration:
        segments.append(TimeRange(start=prev_end, end=duration))

    logger.debug("Speech segments: %s", [(s.start, s.end) for s in segments])
    return segments
