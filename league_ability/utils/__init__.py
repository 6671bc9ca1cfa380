"""Shared utilities for league-ability."""

from .logging import setup_logging, print_section, print_success, print_error, print_warning, print_info
from .cli_helpers import load_result, setup_data, format_coverage

__all__ = [
    "setup_logging",
    "print_section",
    "print_success",
    "print_error",
    "print_warning",
    "print_info",
    "load_result",
    "setup_data",
    "format_coverage",
]
