"""Utility functions for stocksync."""

from stocksync.utils.file_hash import FileFingerprint, compute_file_hash, fingerprint_file
from stocksync.utils.parsing import normalize_ean, parse_flag, parse_float, parse_int
from stocksync.utils.timeparse import (
    capture_time_from_filename,
    format_watermark,
    parse_remote_timestamp,
    parse_watermark,
)

__all__ = [
    "FileFingerprint",
    "capture_time_from_filename",
    "compute_file_hash",
    "fingerprint_file",
    "format_watermark",
    "normalize_ean",
    "parse_flag",
    "parse_float",
    "parse_int",
    "parse_remote_timestamp",
    "parse_watermark",
]
