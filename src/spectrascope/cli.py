"""
Command-line runner.

Streams smoothed spectrum ticks from a chosen audio source as JSON lines.

Usage:
    spectrascope                              # synthetic 440 Hz tone
    spectrascope song.wav -d 10 -o ticks.jsonl
    spectrascope --source system --bins 32
    spectrascope --list-devices
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from spectrascope.config import VisualizerConfig, load_config
from spectrascope.errors import ConfigurationError, SpectrascopeError
from spectrascope.io.exporter import TickExporter
from spectrascope.log import child_logger, create_logger, flush_logger
from spectrascope.pipeline import SpectrumPipeline
from spectrascope.sources import CaptureMode, SourceKind, create_source
from spectrascope.sources.live import list_input_devices

SOURCE_CHOICES = ("test", "file", "microphone", "system")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="spectrascope",
        description="Stream a smoothed audio spectrum as JSON lines",
    )

    parser.add_argument(
        "audio",
        type=Path,
        nargs="?",
        default=None,
        help="Input WAV file (required with --source file)",
    )

    parser.add_argument(
        "-s", "--source",
        choices=SOURCE_CHOICES,
        default=None,
        help="Audio source (default: file when an audio file is given, else test)",
    )

    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Output JSONL file (default: stdout)",
    )

    parser.add_argument(
        "-d", "--duration",
        type=float,
        default=None,
        help="Seconds to run (default: until interrupted)",
    )

    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="JSON config file; command-line flags override it",
    )

    parser.add_argument(
        "-r", "--rate",
        type=float,
        default=None,
        help="Analysis ticks per second (default: 60)",
    )

    parser.add_argument(
        "-b", "--bins",
        type=int,
        default=None,
        help="Number of output bins (default: 64)",
    )

    parser.add_argument(
        "--smoothing",
        type=float,
        default=None,
        help="Smoothing factor 0-1 (default: 0.3)",
    )

    parser.add_argument(
        "--sensitivity",
        type=float,
        default=None,
        help="Level multiplier (default: 5.0)",
    )

    parser.add_argument(
        "--dft",
        action="store_true",
        help="Use the exact DFT instead of the FFT",
    )

    parser.add_argument(
        "--fallback-synthetic",
        action="store_true",
        help="Use the synthetic tone if the chosen source cannot start",
    )

    parser.add_argument(
        "--list-devices",
        action="store_true",
        help="List audio input devices and exit",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    return parser


def config_from_args(args: argparse.Namespace) -> VisualizerConfig:
    """Merge the optional config file with command-line overrides."""
    config = load_config(args.config) if args.config else VisualizerConfig()
    overrides = config.to_dict()

    if args.rate is not None:
        overrides["update_rate"] = args.rate
    if args.bins is not None:
        overrides["bin_count"] = args.bins
        overrides["auto_bin_count"] = False
    if args.smoothing is not None:
        overrides["smoothing"] = args.smoothing
    if args.sensitivity is not None:
        overrides["sensitivity"] = args.sensitivity
    if args.dft:
        overrides["use_fft"] = False
    if args.debug:
        overrides["debug_logging"] = True

    return VisualizerConfig.from_dict(overrides)


def resolve_source(args: argparse.Namespace) -> str:
    """Source name to use; an audio file implies the file source."""
    if args.source is None:
        return "file" if args.audio is not None else "test"
    if args.audio is not None and args.source != "file":
        raise ConfigurationError(
            f"Audio file {args.audio} given with --source {args.source}; "
            "use --source file or drop the file argument"
        )
    return args.source


async def _run(pipeline: SpectrumPipeline, duration: Optional[float], fallback: bool) -> int:
    await pipeline.start(fallback_to_synthetic=fallback)
    return await pipeline.run(duration)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    logger = create_logger(debug=args.debug)

    try:
        if args.list_devices:
            try:
                devices = list_input_devices()
            except (ImportError, OSError) as exc:
                logger.error(f"Cannot list audio devices: {exc}")
                return 1
            for index, name in devices:
                print(f"{index}: {name}")
            return 0

        config = config_from_args(args)
        logger.setLevel("DEBUG" if config.debug_logging else "INFO")

        source_name = resolve_source(args)
        if source_name == "file":
            if args.audio is None:
                raise ConfigurationError("--source file requires an audio file argument")
            source = create_source(
                SourceKind.FILE, config, path=args.audio, logger=child_logger(logger, "source")
            )
        elif source_name in ("microphone", "system"):
            mode = CaptureMode.LOOPBACK if source_name == "system" else CaptureMode.MICROPHONE
            source = create_source(
                SourceKind.LIVE, config, mode=mode, logger=child_logger(logger, "source")
            )
        else:
            source = create_source(
                SourceKind.SYNTHETIC, config, logger=child_logger(logger, "source")
            )

        out = open(args.output, "w", encoding="utf-8") if args.output else sys.stdout
        try:
            exporter = TickExporter(out)
            pipeline = SpectrumPipeline(source, config, consumer=exporter, logger=logger)
            try:
                asyncio.run(_run(pipeline, args.duration, args.fallback_synthetic))
            except KeyboardInterrupt:
                pipeline.stop()
            logger.info(f"Wrote {exporter.written} ticks")
        finally:
            if out is not sys.stdout:
                out.close()

    except SpectrascopeError as exc:
        logger.error(str(exc))
        return 1
    finally:
        flush_logger(logger)

    return 0


if __name__ == "__main__":
    sys.exit(main())
