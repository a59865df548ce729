"""Markdown reporter for generating license attribution files.

This module provides a reporter that generates Markdown-formatted license
attribution documents using Jinja2 templates.
"""

from license_fetcher.reporters.base import BaseReporter


class MarkdownReporter(BaseReporter):
    """Reporter that generates Markdown license attribution files.

    The bundled template lists every package in a table, followed by one
    section per package carrying license text.
    """

    format_name = "markdown"
    extensions = (".md", ".markdown")
    template_name = "licenses.md.j2"
