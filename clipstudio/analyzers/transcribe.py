"""Speech-to-text analyzer using OpenAI Whisper."""

import logging
from pathlib import Path
from typing import Any

from clipstudio.ffutil import CancelToken, FFmpegClient, check_result
from clipstudio.manifest import CaptionConfig
from clipstudio.models import Segment, Transcript, WordTimestamp
from clipstudio.tempfiles import TempFileProvider

logger = logging.getLogger(__name__)


def transcript_from_whisper(result: dict[str, Any]) -> Transcript:
    """Flatten a Whisper result (``word_timestamps=True``) into a Transcript."""
    segments: list[Segment] = []
    words: list[WordTimestamp] = []
    for seg in result.get("segments", []):
        segments.append(
            Segment(
                start=float(seg["start"]),
                end=float(seg["end"]),
                label="caption",
                text=seg.get("text", "").strip(),
            )
        )
        for w in seg.get("words") or []:
            start = float(w["start"])
            words.append(
                WordTimestamp(word=w["word"], start=start, end=max(float(w["end"]), start))
            )

    return Transcript(
        text=result.get("text", "").strip(),
        words=words,
        segments=segments,
        language=result.get("language"),
    )


def transcribe(
    input_path: Path,
    config: CaptionConfig,
    client: FFmpegClient | None = None,
    temp: TempFileProvider | None = None,
    model: Any = None,
    cancel: CancelToken | None = None,
) -> Transcript:
    """Extract audio, run Whisper, and return a word-timed transcript.

    *model* is anything with Whisper's ``transcribe`` signature; by default the
    model named in *config* is loaded.
    """
    client = client or FFmpegClient()
    temp = temp or TempFileProvider()

    wav_path = temp.allocate("audio", ".wav")
    try:
        check_result(
            client.extract_audio(input_path, wav_path, cancel=cancel), "audio extraction"
        )

        if model is None:
            import whisper

            logger.info("Loading Whisper model %s", config.model)
            model = whisper.load_model(config.model)

        result = model.transcribe(
            str(wav_path),
            language=config.language,
            word_timestamps=True,
        )
    finally:
        temp.release(wav_path)

    transcript = transcript_from_whisper(result)
    logger.info(
        "Transcribed %s: %d words in %d segments",
        input_path, len(transcript.words), len(transcript.segments),
    )
    return transcript
