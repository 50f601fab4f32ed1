"""Media metadata via ffprobe."""

import json
import logging
from pathlib import Path

from clipstudio.ffutil import CancelToken, FFmpegClient, ProbeError, truncate
from clipstudio.models import ProbeResult

logger = logging.getLogger(__name__)


def _parse_duration(fmt: dict) -> float:
    try:
        return max(float(fmt.get("duration") or 0.0), 0.0)
    except (TypeError, ValueError):
        return 0.0


def parse_probe_output(stdout: str) -> ProbeResult:
    """Turn ffprobe's JSON into a ProbeResult.

    Missing streams are reported as absent, and a missing duration is 0.
    """
    try:
        data = json.loads(stdout)
    except json.JSONDecodeError as e:
        raise ProbeError(f"unparseable ffprobe output: {truncate(stdout, 200)!r}") from e
    if not isinstance(data, dict):
        raise ProbeError("unexpected ffprobe output: top level is not an object")

    streams = data.get("streams") or []
    video_stream = next((s for s in streams if s.get("codec_type") == "video"), None)
    audio_stream = next((s for s in streams if s.get("codec_type") == "audio"), None)

    width = height = None
    if video_stream is not None:
        width = video_stream.get("width")
        height = video_stream.get("height")

    return ProbeResult(
        duration=_parse_duration(data.get("format") or {}),
        has_video=video_stream is not None,
        has_audio=audio_stream is not None,
        width=int(width) if width is not None else None,
        height=int(height) if height is not None else None,
    )


def probe_media(
    input_path: Path,
    client: FFmpegClient | None = None,
    cancel: CancelToken | None = None,
) -> ProbeResult:
    """Extract duration and stream presence for *input_path*."""
    client = client or FFmpegClient()
    result = client.probe(input_path, cancel=cancel)
    if not result.ok:
        raise ProbeError(
            f"ffprobe failed on {input_path} (rc={result.returncode}): {truncate(result.stderr)}"
        )
    info = parse_probe_output(result.stdout)
    logger.debug(
        "Probed %s: duration=%.3fs video=%s audio=%s",
        input_path, info.duration, info.has_video, info.has_audio,
    )
    return info
