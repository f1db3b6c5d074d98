#!/usr/bin/env python3
"""
Replay dat transcoder CLI

Converts binary replay dats to their text form and back.

Usage:
    python -m replaydat.cli --input replay.dat --output replay.txt
    python -m replaydat.cli --input replay.txt --output replay.dat
    python -m replaydat.cli --help
"""

import argparse
import logging
from pathlib import Path

from .config import TranscodeConfig
from .file_handler import FileHandler
from .transcoder import canonicalize_text, get_replay_dat_bytes, parse_replay_dat

logger = logging.getLogger(__name__)


def decode_file(input_path: Path, output_path: Path, config: TranscodeConfig) -> int:
    file_handler = FileHandler()
    is_valid, errors = file_handler.validate_dat_file(input_path)
    if not is_valid:
        for error in errors:
            print(error)
        return 1

    data = file_handler.read_dat(input_path, compressed=config.compressed)
    text = parse_replay_dat(data, relative_ticks=config.relative_ticks)
    if config.sort_lines:
        text = canonicalize_text(text)

    file_handler.write_text(output_path, text)
    logger.info(f"Decoded {len(data)} bytes from {input_path} into {output_path}")
    return 0


def encode_file(input_path: Path, output_path: Path, config: TranscodeConfig) -> int:
    file_handler = FileHandler()
    text = file_handler.read_text(input_path)

    result = get_replay_dat_bytes(text)
    # The valid prefix is written even when a record failed
    file_handler.write_dat(output_path, result.data, compressed=config.compressed)
    logger.info(
        f"Encoded {result.records} records ({len(result.data)} bytes) into {output_path}"
    )

    if not result.ok:
        print(f"Encoding stopped at {result.error.location}: {result.error.message}")
        return 1
    return 0


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Convert replay dats to text and back. The direction is inferred from the input suffix (.txt encodes) unless --decode or --encode is given.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Decode a dat into text
  python -m replaydat.cli --input replay.dat --output replay.txt

  # Decode sorted by tick and player for diffing
  python -m replaydat.cli --input replay.dat --output replay.txt --sort

  # Encode a hand-edited text file back into a dat
  python -m replaydat.cli --input replay.txt --output replay.dat
        """,
    )

    parser.add_argument("--input", type=Path, required=True, help="Input dat or text file")
    parser.add_argument("--output", type=Path, required=True, help="Output file")
    direction = parser.add_mutually_exclusive_group()
    direction.add_argument("--decode", action="store_true", help="Convert dat to text")
    direction.add_argument("--encode", action="store_true", help="Convert text to dat")
    parser.add_argument(
        "--sort", action="store_true", help="Sort decoded lines by tick and player"
    )
    parser.add_argument(
        "--relative-ticks",
        action="store_true",
        help="Write '+<offset>' ticks when decoding",
    )
    parser.add_argument(
        "--compressed", action="store_true", help="Read and write zlib compressed dats"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging"
    )

    args = parser.parse_args(argv)
    if args.sort and args.relative_ticks:
        # Sorting would move "+<offset>" lines away from the record they follow
        parser.error("--sort cannot be combined with --relative-ticks")
    config = TranscodeConfig.from_args(args)

    # Set up logging
    log_level = logging.DEBUG if config.debug else logging.INFO
    logging.basicConfig(
        level=log_level, format="%(asctime)s - %(levelname)s - %(message)s"
    )

    if not args.input.exists():
        parser.error(f"Input file does not exist: {args.input}")

    encode = args.encode or (not args.decode and FileHandler().is_text_file(args.input))

    try:
        if encode:
            return encode_file(args.input, args.output, config)
        return decode_file(args.input, args.output, config)
    except OSError as e:
        print(f"Processing failed: {e}")
        return 1


if __name__ == "__main__":
    exit(main())
