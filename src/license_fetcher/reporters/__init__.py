"""Output reporters for human-readable license documents.

This module provides reporters for rendering a package list to Markdown
and to a plain-text notices file.
"""

from pathlib import Path
from typing import Optional

from license_fetcher.reporters.base import BaseReporter
from license_fetcher.reporters.markdown import MarkdownReporter
from license_fetcher.reporters.text import TextReporter

__all__ = ["REPORTERS", "BaseReporter", "MarkdownReporter", "TextReporter", "get_reporter"]

REPORTERS: tuple[type[BaseReporter], ...] = (MarkdownReporter, TextReporter)


def get_reporter(
    output_path: Path,
    template_path: Optional[Path] = None,
    format_name: Optional[str] = None,
) -> BaseReporter:
    """Pick a reporter by format name, or else by output file extension.

    Unknown extensions produce plain text.

    Raises:
        ValueError: If ``format_name`` names no known format.
    """
    if format_name is not None:
        for reporter_cls in REPORTERS:
            if reporter_cls.format_name == format_name:
                return reporter_cls(template_path=template_path)
        known = ", ".join(reporter_cls.format_name for reporter_cls in REPORTERS)
        raise ValueError(f"Unknown notices format {format_name!r} (expected one of: {known})")

    suffix = output_path.suffix.lower()
    for reporter_cls in REPORTERS:
        if suffix in reporter_cls.extensions:
            return reporter_cls(template_path=template_path)
    return TextReporter(template_path=template_path)
