"""Caption editor: turns word timestamps into SRT and burns it into the video."""

import logging
from pathlib import Path

from clipstudio.editors.cut import ensure_distinct
from clipstudio.ffutil import CancelToken, FFmpegClient, check_result
from clipstudio.models import SubtitleCue, WordTimestamp
from clipstudio.tempfiles import TempFileProvider

logger = logging.getLogger(__name__)


def format_srt_time(seconds: float) -> str:
    """Format seconds as ``HH:MM:SS,mmm``."""
    total_ms = round(max(seconds, 0.0) * 1000)
    h, rem = divmod(total_ms, 3_600_000)
    m, rem = divmod(rem, 60_000)
    s, ms = divmod(rem, 1000)
    return f"{h:02d}:{m:02d}:{s:02d},{ms:03d}"


def words_to_cues(words: list[WordTimestamp]) -> list[SubtitleCue]:
    """One cue per word, timed by the word itself."""
    return [
        SubtitleCue(
            index=i,
            start=w.start,
            end=w.end,
            text=" ".join(w.word.split()),
        )
        for i, w in enumerate(words, 1)
    ]


def cues_to_srt(cues: list[SubtitleCue]) -> str:
    blocks = [
        f"{c.index}\n{format_srt_time(c.start)} --> {format_srt_time(c.end)}\n{c.text}\n"
        for c in cues
    ]
    return "\n".join(blocks)


def words_to_srt(words: list[WordTimestamp]) -> str:
    return cues_to_srt(words_to_cues(words))


def burn_subtitles(
    input_path: Path,
    subtitle_path: Path,
    output_path: Path,
    font_size: int = 24,
    font_name: str = "Arial",
    track: str | None = None,
    client: FFmpegClient | None = None,
    temp: TempFileProvider | None = None,
    cancel: CancelToken | None = None,
) -> Path:
    """Hard-burn *subtitle_path* into the video, copying audio untouched.

    If *track* is given it is written to *subtitle_path* first.
    """
    ensure_distinct(input_path, output_path)
    client = client or FFmpegClient()
    temp = temp or TempFileProvider()

    if track is not None:
        Path(subtitle_path).write_text(track, encoding="utf-8")

    with temp.guard_output(output_path):
        check_result(
            client.burn_subtitles(
                input_path, subtitle_path, output_path,
                font_size=font_size, font_name=font_name, cancel=cancel,
            ),
            "subtitle burn-in",
        )

    logger.info("Burned captions from %s into %s", subtitle_path, output_path)
    return Path(output_path)
