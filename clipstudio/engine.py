"""Orchestrator for silence removal, caption burn-in, and manifest-driven runs."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from clipstudio.analyzers.probe import probe_media
from clipstudio.analyzers.silence import detect_silence, speech_segments
from clipstudio.analyzers.transcribe import transcribe
from clipstudio.editors.captions import burn_subtitles, words_to_cues, cues_to_srt
from clipstudio.editors.cut import concat_segments, copy_media, ensure_distinct
from clipstudio.ffutil import CancelToken, FFmpegClient, InvalidInputError, ProbeError
from clipstudio.manifest import CaptionConfig, Manifest, SilenceCutConfig
from clipstudio.models import CaptionResult, SilenceRemovalResult, WordTimestamp
from clipstudio.tempfiles import TempFileProvider

logger = logging.getLogger(__name__)

# Stream-copy output can run past the source by part of a frame.
DURATION_ROUNDING = 0.05


def remove_silence(
    input_path: Path,
    output_path: Path,
    noise_db: float = -35.0,
    min_silence_duration: float = 0.5,
    padding: float = 0.15,
    client: FFmpegClient | None = None,
    temp: TempFileProvider | None = None,
    cancel: CancelToken | None = None,
) -> SilenceRemovalResult:
    """Cut dead air out of *input_path* and write the result to *output_path*.

    The reported final duration comes from probing the written file.
    """
    client = client or FFmpegClient()
    temp = temp or TempFileProvider()
    input_path, output_path = Path(input_path), Path(output_path)
    ensure_distinct(input_path, output_path)

    duration_original = probe_media(input_path, client, cancel).duration
    silences = detect_silence(input_path, noise_db, min_silence_duration, client, cancel)
    if silences and duration_original <= 0:
        raise ProbeError(f"{input_path} reports no duration; cannot place speech around silence")

    if not silences:
        logger.info("No silence found in %s; copying unchanged", input_path)
        copy_media(input_path, output_path, client, temp, cancel)
        return SilenceRemovalResult(
            output_path=output_path,
            segments_removed=0,
            duration_original=duration_original,
            duration_final=duration_original,
        )

    keep = speech_segments(silences, duration_original, padding)
    if not keep:
        raise InvalidInputError(f"{input_path} is entirely silent; nothing left to keep")

    concat_segments(input_path, output_path, keep, client, temp, cancel)

    duration_final = probe_media(output_path, client, cancel).duration
    overshoot = duration_final - duration_original
    if 0 < overshoot <= DURATION_ROUNDING:
        logger.debug(
            "Output measured %.3fs, %.3fs past source; treating as rounding",
            duration_final, overshoot,
        )
        duration_final = duration_original
    elif overshoot > DURATION_ROUNDING:
        logger.warning(
            "Output %s measured %.3fs, longer than source %.3fs",
            output_path, duration_final, duration_original,
        )

    logger.info(
        "Removed %d silent ranges: %.2fs -> %.2fs",
        len(silences), duration_original, duration_final,
    )
    return SilenceRemovalResult(
        output_path=output_path,
        segments_removed=len(silences),
        duration_original=duration_original,
        duration_final=duration_final,
    )


def add_captions(
    input_path: Path,
    output_path: Path,
    words: list[WordTimestamp] | None = None,
    config: CaptionConfig | None = None,
    client: FFmpegClient | None = None,
    temp: TempFileProvider | None = None,
    model=None,
    cancel: CancelToken | None = None,
) -> CaptionResult:
    """Burn word-level captions into *input_path*.

    When *words* is None the audio is transcribed first.
    """
    config = config or CaptionConfig(enabled=True)
    client = client or FFmpegClient()
    temp = temp or TempFileProvider()
    input_path, output_path = Path(input_path), Path(output_path)
    ensure_distinct(input_path, output_path)

    if words is None:
        words = transcribe(input_path, config, client, temp, model=model, cancel=cancel).words
    if not words:
        raise InvalidInputError(f"no words to caption for {input_path}")

    cues = words_to_cues(words)
    track = cues_to_srt(cues)

    srt_path = temp.allocate("captions", ".srt")
    try:
        burn_subtitles(
            input_path, srt_path, output_path,
            font_size=config.font_size,
            font_name=config.font_name,
            track=track,
            client=client,
            temp=temp,
            cancel=cancel,
        )
    finally:
        temp.release(srt_path)

    sidecar = None
    if config.keep_sidecar:
        sidecar = output_path.with_suffix(".srt")
        sidecar.write_text(track, encoding="utf-8")

    duration_final = probe_media(output_path, client, cancel).duration
    return CaptionResult(
        output_path=output_path,
        cue_count=len(cues),
        duration_final=duration_final,
        subtitle_path=sidecar,
    )


@dataclass
class EngineResult:
    output_path: Path
    subtitle_path: Path | None = None
    segments_removed: int = 0
    cue_count: int = 0
    duration_original: float = 0.0
    duration_final: float = 0.0


def process(
    manifest: Manifest,
    on_progress: Callable[[str, float], None] | None = None,
    model=None,
    cancel: CancelToken | None = None,
    client: FFmpegClient | None = None,
) -> EngineResult:
    """Execute the full editing pipeline.

    Args:
        manifest: Validated editing manifest.
        on_progress: Optional callback(stage_name, fraction_complete).
        model: Whisper-compatible model to reuse instead of loading one.
        cancel: Token that aborts the running ffmpeg step.
        client: Media tool override; defaults to ffmpeg from ``manifest.tools``.
    """

    def _progress(stage: str, frac: float) -> None:
        if on_progress:
            on_progress(stage, frac)

    client = client or FFmpegClient(manifest.tools.ffmpeg, manifest.tools.ffprobe)
    temp = TempFileProvider(manifest.tools.temp_dir)
    silence: SilenceCutConfig = manifest.silence_cut
    captions: CaptionConfig = manifest.captions

    _progress("Probing video metadata", 0.0)
    duration_original = probe_media(manifest.input, client, cancel).duration
    result = EngineResult(
        output_path=manifest.output,
        duration_original=duration_original,
        duration_final=duration_original,
    )

    current_input = manifest.input
    intermediate: Path | None = None
    try:
        # --- Silence cutting ---
        if silence.enabled:
            _progress("Removing silence", 0.1)
            target = manifest.output
            if captions.enabled:
                intermediate = temp.allocate("cut", manifest.output.suffix or ".mp4")
                target = intermediate
            cut = remove_silence(
                current_input, target,
                noise_db=silence.noise_db,
                min_silence_duration=silence.min_duration,
                padding=silence.padding,
                client=client, temp=temp, cancel=cancel,
            )
            result.segments_removed = cut.segments_removed
            result.duration_final = cut.duration_final
            current_input = target
            _progress("Silence removal complete", 0.5)

        # --- Captions ---
        if captions.enabled:
            _progress("Transcribing and burning captions", 0.55)
            burned = add_captions(
                current_input, manifest.output,
                config=captions, client=client, temp=temp, model=model, cancel=cancel,
            )
            result.cue_count = burned.cue_count
            result.subtitle_path = burned.subtitle_path
            result.duration_final = burned.duration_final
    finally:
        if intermediate is not None:
            temp.release(intermediate)

    if not silence.enabled and not captions.enabled:
        _progress("Copying input", 0.5)
        copy_media(manifest.input, manifest.output, client, temp, cancel)

    _progress("Done", 1.0)
    return result
