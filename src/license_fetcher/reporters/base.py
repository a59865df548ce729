"""Base interface for output reporters.

Reporters render a PackageList through a Jinja2 template, either the
bundled one for their format or a custom one supplied by the user.
"""

from datetime import UTC, datetime
from importlib.resources import files
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, Template

from license_fetcher.models import Package
from license_fetcher.package_list import PackageList


class BaseReporter:
    """Base class for output reporters.

    Attributes:
        template: The Jinja2 template to use for rendering.
    """

    #: Format name accepted by ``get_reporter``, like "markdown" or "text".
    format_name: str = ""
    #: File extensions handled by this format; the first is the default.
    extensions: tuple[str, ...] = ()
    #: Name of the bundled template in ``license_fetcher.templates``.
    template_name: str = ""

    def __init__(self, template_path: Optional[Path] = None) -> None:
        """Initialize the reporter.

        Args:
            template_path: Optional path to a custom Jinja2 template.
                If not provided, uses the default bundled template.
        """
        if template_path:
            env = Environment(
                loader=FileSystemLoader(template_path.parent),
                autoescape=False,
                keep_trailing_newline=True,
            )
            self.template = env.get_template(template_path.name)
        else:
            self.template = self._load_default_template()

    def _load_default_template(self) -> Template:
        template_content = (
            files("license_fetcher.templates")
            .joinpath(self.template_name)
            .read_text(encoding="utf-8")
        )
        env = Environment(autoescape=False, keep_trailing_newline=True)
        return env.from_string(template_content)

    def render(
        self,
        packages: PackageList,
        root: Optional[Package] = None,
        generated_at: Optional[datetime] = None,
    ) -> str:
        """Render a package list.

        Args:
            packages: Packages to document.
            root: Optional package of the project itself.
            generated_at: Timestamp shown in the document (default: now).

        Returns:
            Rendered document as a string.
        """
        return self.template.render(
            packages=packages,
            root=root,
            generated_at=generated_at or datetime.now(UTC),
        )

    def write(
        self,
        packages: PackageList,
        output_path: Path,
        root: Optional[Package] = None,
    ) -> None:
        """Render and write output to a file."""
        content = self.render(packages, root)
        output_path.write_text(content, encoding="utf-8")

    @property
    def default_extension(self) -> str:
        """Return the file extension used when the output path has none."""
        return self.extensions[0]
