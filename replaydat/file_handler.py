#!/usr/bin/env python3
"""
File handling utilities for replay dat transcoding.

Reads and writes binary dats (optionally zlib compressed) and their text
form. The transcoder itself never touches the filesystem.
"""

import logging
import zlib
from pathlib import Path
from typing import List, Tuple

logger = logging.getLogger(__name__)


class FileHandler:
    """
    Handles file I/O for the replay dat CLI.

    Text files are read and written as UTF-8 with surrogate escapes so that
    chat strings holding invalid UTF-8 survive a decode/encode round trip.
    """

    TEXT_SUFFIXES = (".txt",)

    def validate_dat_file(self, file_path: Path) -> Tuple[bool, List[str]]:
        """
        Validate a dat file before processing.

        Returns:
            Tuple of (is_valid, error_messages)
        """
        errors = []

        if not file_path.exists():
            errors.append(f"File does not exist: {file_path}")
            return False, errors

        if not file_path.is_file():
            errors.append(f"Not a file: {file_path}")
            return False, errors

        # An empty dat is a valid replay with no records
        if file_path.stat().st_size == 0:
            logger.warning(f"File is empty: {file_path}")

        return len(errors) == 0, errors

    def is_text_file(self, file_path: Path) -> bool:
        return file_path.suffix.lower() in self.TEXT_SUFFIXES

    def _is_compressed_data(self, data: bytes) -> bool:
        """
        Check if data appears to be zlib compressed.

        Args:
            data: Raw bytes to check

        Returns:
            True if data decompresses as a zlib stream
        """
        if len(data) < 2:
            return False

        # zlib header: CMF 0x78 for the common window size, checksum over CMF/FLG
        if data[0] != 0x78 or (data[0] * 256 + data[1]) % 31 != 0:
            return False

        try:
            zlib.decompressobj().decompress(data[:100])
            return True
        except zlib.error:
            return False

    def read_dat(self, file_path: Path, compressed: bool = False) -> bytes:
        """
        Read a binary dat.

        Args:
            file_path: Path to the dat
            compressed: Detect and inflate zlib compressed dats

        Returns:
            Raw dat bytes
        """
        raw_data = file_path.read_bytes()

        if compressed and self._is_compressed_data(raw_data):
            try:
                data = zlib.decompress(raw_data)
                logger.debug(
                    f"Inflated {file_path} from {len(raw_data)} to {len(data)} bytes"
                )
                return data
            except zlib.error as e:
                logger.warning(f"Failed to decompress {file_path}: {e}")

        return raw_data

    def write_dat(self, file_path: Path, data: bytes, compressed: bool = False):
        if compressed:
            data = zlib.compress(data)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_bytes(data)
        logger.debug(f"Wrote {len(data)} bytes to {file_path}")

    def read_text(self, file_path: Path) -> str:
        with open(file_path, "r", encoding="utf-8", errors="surrogateescape", newline="") as f:
            return f.read()

    def write_text(self, file_path: Path, text: str):
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(file_path, "w", encoding="utf-8", errors="surrogateescape", newline="") as f:
            f.write(text)
        logger.debug(f"Wrote {len(text)} characters to {file_path}")
