#!/usr/bin/env python3
"""
Audio Trimmer CLI
Cut an 8–40 second clip out of an audio file and save it as 16-bit PCM WAV.

Usage:
    python main.py voice.mp3 clip.wav --start 2 --end 30
    python main.py voice.mp3 --auto-output --auto-trim
    python main.py voice.mp3 --analyze-only
    python main.py voice.m4a voice.wav --convert-only
"""

import argparse
import logging
import sys
from typing import Optional

from tqdm import tqdm

from trimmer.core import (
    AudioAnalysis,
    ConversionReport,
    TrimReport,
    analyze_file,
    convert_to_wav,
    trim_to_wav,
)
from trimmer.errors import DecodingError, EncodingError
from trimmer.printer import OutputPrinter
from trimmer.utils import (
    DEFAULT_PARAMS,
    MAX_TRIM_SECONDS,
    MIN_TRIM_SECONDS,
    format_time,
    get_output_path,
)

QUIET_AUDIO_TIPS: list[str] = [
    "Adjusting microphone volume",
    "Speaking closer to the microphone",
    "Reducing background noise",
]


def build_parser() -> argparse.ArgumentParser:
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="audio-trimmer",
        description=(
            f"Trim audio to a {MIN_TRIM_SECONDS:g}–{MAX_TRIM_SECONDS:g} second "
            "clip and save it as 16-bit PCM WAV."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py voice.mp3 clip.wav --start 2 --end 30
  python main.py voice.m4a --auto-output --auto-trim
  python main.py voice.wav --analyze-only
  python main.py voice.m4a voice.wav --convert-only

Thresholds are fractions of full scale:
  --quiet-threshold    0.02 = warn on quiet recordings
  --silence-threshold  0.01 = level treated as silence at the edges
        """,
    )

    parser.add_argument(
        "input",
        metavar="INPUT",
        help="Path to the input audio file (.mp3, .wav, .flac, .ogg, .aac, .m4a).",
    )
    parser.add_argument(
        "output",
        metavar="OUTPUT",
        nargs="?",
        default=None,
        help="Path for the output .wav file. Omit if using --auto-output.",
    )

    range_group = parser.add_argument_group("Trim Range")
    range_group.add_argument(
        "--start",
        "-s",
        type=float,
        default=None,
        metavar="SEC",
        help="Trim start in seconds (default: 0, or the auto-trim suggestion).",
    )
    range_group.add_argument(
        "--end",
        "-e",
        type=float,
        default=None,
        metavar="SEC",
        help="Trim end in seconds (default: end of file, or the auto-trim suggestion).",
    )
    range_group.add_argument(
        "--auto-trim",
        action="store_true",
        help="Start from a range that drops leading and trailing silence.",
    )

    analysis_group = parser.add_argument_group("Analysis")
    analysis_group.add_argument(
        "--quiet-threshold",
        type=float,
        default=DEFAULT_PARAMS["quiet_threshold"],
        metavar="LEVEL",
        help=f"Average level below which audio is too quiet (default: {DEFAULT_PARAMS['quiet_threshold']}).",
    )
    analysis_group.add_argument(
        "--silence-threshold",
        type=float,
        default=DEFAULT_PARAMS["silence_threshold"],
        metavar="LEVEL",
        help=f"Level treated as silence (default: {DEFAULT_PARAMS['silence_threshold']}).",
    )
    analysis_group.add_argument(
        "--analyze-only",
        action="store_true",
        help="Report volume and silence without writing a file.",
    )

    out_group = parser.add_argument_group("Output Options")
    out_group.add_argument(
        "--convert-only",
        action="store_true",
        help="Re-encode the whole file as 16-bit PCM WAV without trimming.",
    )
    out_group.add_argument(
        "--auto-output",
        action="store_true",
        help="Auto-generate output filename from input (e.g., voice.mp3 -> voice_trimmed.wav).",
    )
    out_group.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Suppress all output except errors.",
    )
    out_group.add_argument(
        "--no-color",
        "-n",
        action="store_true",
        help="Disable colored output (also auto-disabled when NO_COLOR env var is set).",
    )
    out_group.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Print debug logging.",
    )

    return parser


def print_analysis(printer: OutputPrinter, analysis: AudioAnalysis) -> None:
    suggestion = analysis.suggestion
    printer.report(
        title="Audio analysis",
        details={
            "Duration": format_time(analysis.buffer.duration_sec),
            "Rate": f"{analysis.buffer.sample_rate} Hz",
            "Channels": str(analysis.buffer.channel_count),
            "Average": f"{analysis.volume.average:.4f}",
            "Suggested": (
                f"{format_time(suggestion.start_ms / 1000)} → "
                f"{format_time(suggestion.end_ms / 1000)}"
            ),
        },
    )
    if analysis.silence.any or suggestion.needs_trimming:
        printer.warning(
            "Silent parts detected at the beginning and/or end of your audio.",
            hint="Use --auto-trim to drop them.",
        )
    if analysis.volume.is_too_quiet:
        printer.warning("Your audio seems very quiet. Consider:", tips=QUIET_AUDIO_TIPS)


def print_advisories(printer: OutputPrinter, report: TrimReport) -> None:
    if report.silence.any:
        printer.warning(
            "Silent parts detected at the beginning and/or end of your audio.",
            hint="Trimming low-volume edges improves the result (try --auto-trim).",
        )
    if report.volume.is_too_quiet:
        printer.warning("Your audio seems very quiet. Consider:", tips=QUIET_AUDIO_TIPS)


def run_conversion(printer: OutputPrinter, input_path: str, output_path: str, quiet: bool) -> None:
    report: ConversionReport
    if quiet:
        report = convert_to_wav(input_path, output_path)
    else:
        with tqdm(total=3, desc="Processing", unit="step") as pbar:

            def cli_callback(step_idx: int, total: int, name: str) -> None:
                pbar.set_description(name)
                if step_idx > 0:
                    pbar.update(1)
                if step_idx == total - 1:
                    pbar.update(1)

            report = convert_to_wav(input_path, output_path, progress_callback=cli_callback)

    printer.success(
        title=report.output_path,
        details={
            "Length": format_time(report.duration_sec),
            "Format": f"{report.sample_rate} Hz, {report.channels} ch, 16-bit PCM",
            "Size": f"{report.size_bytes / 1024:.1f} KB",
            "Time": f"{report.elapsed_sec:.1f}s",
        },
    )


def main(argv: Optional[list[str]] = None) -> None:
    parser: argparse.ArgumentParser = build_parser()
    args: argparse.Namespace = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    printer: OutputPrinter = OutputPrinter(
        quiet=args.quiet,
        no_color=args.no_color,
    )

    try:
        if args.analyze_only:
            analysis: AudioAnalysis = analyze_file(
                args.input,
                quiet_threshold=args.quiet_threshold,
                silence_threshold=args.silence_threshold,
            )
            print_analysis(printer, analysis)
            return

        output_path: str
        if args.output is not None:
            output_path = args.output
        elif args.auto_output:
            output_path = get_output_path(
                args.input, suffix="_converted" if args.convert_only else "_trimmed"
            )
        else:
            parser.error(
                "Provide an OUTPUT path, or use --auto-output to generate one automatically."
            )
            return  # unreachable but satisfies type checkers

        if args.convert_only:
            run_conversion(printer, args.input, output_path, args.quiet)
            return

        trim_kwargs: dict = {
            "input_path": args.input,
            "output_path": output_path,
            "start_sec": args.start,
            "end_sec": args.end,
            "auto_trim": args.auto_trim,
            "quiet_threshold": args.quiet_threshold,
            "silence_threshold": args.silence_threshold,
        }

        report: TrimReport
        if args.quiet:
            report = trim_to_wav(**trim_kwargs)
        else:
            with tqdm(total=5, desc="Processing", unit="step") as pbar:

                def cli_callback(step_idx: int, total: int, name: str) -> None:
                    pbar.set_description(name)
                    if step_idx > 0:
                        pbar.update(1)
                    if step_idx == total - 1:
                        pbar.update(1)  # finish the bar

                report = trim_to_wav(progress_callback=cli_callback, **trim_kwargs)

        print_advisories(printer, report)
        size_kb: float = report.size_bytes / 1024
        printer.success(
            title=report.output_path,
            details={
                "Range": (
                    f"{format_time(report.trim_range.start_ms / 1000)} → "
                    f"{format_time(report.trim_range.end_ms / 1000)}"
                ),
                "Length": f"{report.trim_range.duration_sec:.1f}s",
                "Size": f"{size_kb:.1f} KB",
                "Time": f"{report.elapsed_sec:.1f}s",
            },
        )

    except (FileNotFoundError, ValueError) as exc:
        printer.error(str(exc))
        sys.exit(1)
    except DecodingError as exc:
        printer.error(str(exc), hint="Install FFmpeg for mp3/m4a/aac input, or convert to WAV first.")
        sys.exit(1)
    except EncodingError:
        logging.getLogger("audio_trimmer").exception("encode failed")
        printer.error("Could not process audio.", hint="Adjust the trim range and try again.")
        sys.exit(1)
    except KeyboardInterrupt:
        printer.warning("Trim cancelled.", hint="Output file was not saved.")
        sys.exit(130)


if __name__ == "__main__":
    main()
