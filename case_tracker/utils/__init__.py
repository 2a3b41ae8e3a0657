"""Utilities package"""
from .helpers import (
    case_file_stem,
    case_id_from_stem,
    configure_logging,
    format_duration,
    slugify,
    strip_markup,
    timestamp_now,
    truncate_text,
)

__all__ = [
    "case_file_stem",
    "case_id_from_stem",
    "configure_logging",
    "format_duration",
    "slugify",
    "strip_markup",
    "timestamp_now",
    "truncate_text",
]
