"""Stream-copy cutting: trim, whole-file copy, and segment concatenation."""

import logging
from contextlib import ExitStack
from pathlib import Path

from clipstudio.ffutil import (
    CancelToken,
    FFmpegClient,
    InvalidInputError,
    check_result,
    concat_list_line,
)
from clipstudio.models import TimeRange
from clipstudio.tempfiles import TempFileProvider

logger = logging.getLogger(__name__)


def ensure_distinct(input_path: Path, output_path: Path) -> None:
    """Refuse to write over the file being read."""
    if Path(input_path).resolve() == Path(output_path).resolve():
        raise InvalidInputError(f"output path must differ from input path: {input_path}")


def copy_media(
    input_path: Path,
    output_path: Path,
    client: FFmpegClient | None = None,
    temp: TempFileProvider | None = None,
    cancel: CancelToken | None = None,
) -> Path:
    """Stream-copy the whole input to *output_path*."""
    ensure_distinct(input_path, output_path)
    client = client or FFmpegClient()
    temp = temp or TempFileProvider()
    with temp.guard_output(output_path):
        check_result(client.copy(input_path, output_path, cancel=cancel), "stream copy")
    return output_path


def trim(
    input_path: Path,
    output_path: Path,
    start: float,
    end: float,
    client: FFmpegClient | None = None,
    temp: TempFileProvider | None = None,
    cancel: CancelToken | None = None,
) -> Path:
    """Cut a single ``[start, end)`` range out of the input without re-encoding."""
    if start < 0 or end <= start:
        raise InvalidInputError(f"invalid trim range [{start}, {end})")
    ensure_distinct(input_path, output_path)
    client = client or FFmpegClient()
    temp = temp or TempFileProvider()
    with temp.guard_output(output_path):
        check_result(client.cut(input_path, start, end, output_path, cancel=cancel), "trim")
    return output_path


def concat_segments(
    input_path: Path,
    output_path: Path,
    segments: list[TimeRange],
    client: FFmpegClient | None = None,
    temp: TempFileProvider | None = None,
    cancel: CancelToken | None = None,
) -> Path:
    """Cut each keep-segment into a part file and join them with the concat demuxer.

    Segments must be ascending and non-overlapping. Part files and the list file
    are removed on every exit path. A failed run removes *output_path* only if it
    created or rewrote that file.
    """
    if not segments:
        raise InvalidInputError("concat_segments called with empty segment list")
    for seg in segments:
        if seg.duration <= 0:
            raise InvalidInputError(f"degenerate segment [{seg.start}, {seg.end}]")
    for prev, seg in zip(segments, segments[1:]):
        if seg.start < prev.end:
            raise InvalidInputError("segments must be ascending and non-overlapping")
    ensure_distinct(input_path, output_path)

    client = client or FFmpegClient()
    temp = temp or TempFileProvider()
    suffix = Path(output_path).suffix or ".mp4"

    with ExitStack() as cleanup:
        cleanup.enter_context(temp.guard_output(output_path))
        parts: list[Path] = []
        for i, seg in enumerate(segments):
            part = temp.allocate(f"part{i}", suffix)
            cleanup.callback(temp.release, part)
            check_result(
                client.cut(input_path, seg.start, seg.end, part, cancel=cancel),
                f"cut of segment {i} [{seg.start:.3f}, {seg.end:.3f}]",
            )
            parts.append(part)

        list_path = temp.allocate("concat", ".txt")
        cleanup.callback(temp.release, list_path)
        list_path.write_text(
            "\n".join(concat_list_line(p.resolve()) for p in parts) + "\n",
            encoding="utf-8",
        )

        check_result(client.concat(list_path, output_path, cancel=cancel), "concat")

    logger.info("Joined %d segments into %s", len(segments), output_path)
    return Path(output_path)
