"""Thin CLI entry point — builds a Manifest or calls the engine directly."""

import argparse
import logging
import sys
from pathlib import Path

from clipstudio.editors.cut import trim
from clipstudio.engine import add_captions, process, remove_silence
from clipstudio.ffutil import (
    FFmpegClient,
    FFmpegNotFoundError,
    InvalidInputError,
    MediaProcessingError,
    ProbeError,
)
from clipstudio.manifest import CaptionConfig, load_manifest
from clipstudio.tempfiles import TempFileProvider


def _default_output(video: Path, tag: str) -> Path:
    return video.with_stem(video.stem + f"_{tag}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clipstudio",
        description="ClipStudio: dead-air removal and word-level burned-in captions.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--temp-dir", type=Path, help="Directory for scratch files")
    sub = parser.add_subparsers(dest="command")

    rs = sub.add_parser("remove-silence", help="Cut silent stretches out of a video")
    rs.add_argument("video", type=Path, help="Input video file")
    rs.add_argument("--output", "-o", type=Path, help="Output file path")
    rs.add_argument("--noise-db", type=float, default=-35.0, help="Silence threshold in dB")
    rs.add_argument("--min-duration", type=float, default=0.5, help="Minimum silence duration (seconds)")
    rs.add_argument("--padding", type=float, default=0.15, help="Speech kept around each cut (seconds)")

    cap = sub.add_parser("captions", help="Transcribe and burn word-level captions")
    cap.add_argument("video", type=Path, help="Input video file")
    cap.add_argument("--output", "-o", type=Path, help="Output file path")
    cap.add_argument("--model", type=str, default="base", help="Whisper model size")
    cap.add_argument("--language", type=str, default=None, help="Spoken language code")
    cap.add_argument("--font-size", type=int, default=24)
    cap.add_argument("--font-name", type=str, default="Arial")
    cap.add_argument("--keep-srt", action="store_true", help="Also write a .srt next to the output")

    tr = sub.add_parser("trim", help="Copy out a single time range")
    tr.add_argument("video", type=Path, help="Input video file")
    tr.add_argument("start", type=float)
    tr.add_argument("end", type=float)
    tr.add_argument("--output", "-o", type=Path, help="Output file path")

    proc = sub.add_parser("process", help="Run a JSON manifest")
    proc.add_argument("manifest", type=Path, help="Path to a JSON manifest file")

    serve = sub.add_parser("serve", help="Launch the web API")
    serve.add_argument("--port", type=int, default=8321, help="Port to listen on")
    serve.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "serve":
        from clipstudio.web import create_app
        app = create_app()
        print(f"ClipStudio API: http://{args.host}:{args.port}")
        app.run(host=args.host, port=args.port, debug=False)
        return

    client = FFmpegClient()
    temp = TempFileProvider(args.temp_dir)

    try:
        client.check()

        if args.command == "remove-silence":
            output = args.output or _default_output(args.video, "trimmed")
            r = remove_silence(
                args.video, output,
                noise_db=args.noise_db,
                min_silence_duration=args.min_duration,
                padding=args.padding,
                client=client, temp=temp,
            )
            print(f"Done! Output: {r.output_path}")
            print(f"  Duration: {r.duration_original:.1f}s -> {r.duration_final:.1f}s")
            print(f"  Silent segments removed: {r.segments_removed}")

        elif args.command == "captions":
            output = args.output or _default_output(args.video, "captioned")
            config = CaptionConfig(
                enabled=True,
                model=args.model,
                language=args.language,
                font_size=args.font_size,
                font_name=args.font_name,
                keep_sidecar=args.keep_srt,
            )
            r = add_captions(args.video, output, config=config, client=client, temp=temp)
            print(f"Done! Output: {r.output_path}")
            print(f"  Captions: {r.cue_count} words, duration {r.duration_final:.1f}s")
            if r.subtitle_path:
                print(f"  Subtitles: {r.subtitle_path}")

        elif args.command == "trim":
            output = args.output or _default_output(args.video, "trim")
            trim(args.video, output, args.start, args.end, client=client, temp=temp)
            print(f"Done! Output: {output}")

        elif args.command == "process":
            m = load_manifest(args.manifest)
            if args.temp_dir:
                m.tools.temp_dir = args.temp_dir

            def on_progress(stage: str, frac: float) -> None:
                print(f"  [{frac:3.0%}] {stage}")

            r = process(m, on_progress=on_progress)
            print()
            print(f"Done! Output: {r.output_path}")
            print(f"  Duration: {r.duration_original:.1f}s -> {r.duration_final:.1f}s")
            if r.segments_removed:
                print(f"  Silent segments removed: {r.segments_removed}")
            if r.cue_count:
                print(f"  Caption cues: {r.cue_count}")

    except (FFmpegNotFoundError, InvalidInputError, ProbeError, MediaProcessingError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
