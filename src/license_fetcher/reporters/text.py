"""Plain-text notices reporter.

Produces the same notice layout as ``str(PackageList)``, preceded by a short
heading, for shipping next to a binary.
"""

from license_fetcher.reporters.base import BaseReporter


class TextReporter(BaseReporter):
    """Reporter that generates a plain-text third-party notices file."""

    format_name = "text"
    extensions = (".txt",)
    template_name = "notices.txt.j2"
