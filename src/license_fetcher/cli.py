"""Command-line interface for license_fetcher.

Provides the main entry point and subcommands for generating the embedded
license artifact, inspecting one, and managing the resolution cache.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from license_fetcher.cache import LicenseCache
from license_fetcher.codec import ARTIFACT_NAME, read_artifact, write_artifact
from license_fetcher.config import (
    DEFAULT_CONCURRENCY,
    DEFAULT_LICENSE_PATTERN,
    DEFAULT_TIMEOUT,
    FetcherConfig,
    default_cache_dir,
)
from license_fetcher.errors import LicenseFetcherError
from license_fetcher.package_list import PackageList
from license_fetcher.pipeline import collect
from license_fetcher.reporters import get_reporter
from license_fetcher.resolvers import resolver_version

app = typer.Typer(
    name="license-fetcher",
    help="Collect and embed the licenses of every compiled Cargo dependency.",
    no_args_is_help=True,
)
cache_app = typer.Typer(help="Manage the license resolution cache.", no_args_is_help=True)
app.add_typer(cache_app, name="cache")

console = Console()
err_console = Console(stderr=True)

# Configure logging
logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s",
)
logger = logging.getLogger("license_fetcher")


def _setup_logging(verbose: bool) -> None:
    """Configure logging level based on verbosity flag."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.getLogger("license_fetcher").setLevel(level)


def _print_error(error: BaseException) -> None:
    """Print an error followed by the chain of its causes."""
    err_console.print(f"[red]Error:[/red] {error}")
    cause = error.__cause__
    while cause is not None:
        err_console.print(f"  [dim]caused by:[/dim] {cause}")
        cause = cause.__cause__


async def _run_gen(
    config: FetcherConfig,
    notices: Optional[Path],
    template: Optional[Path],
    notices_format: Optional[str] = None,
) -> int:
    """Async implementation of the gen command."""
    reporter = None
    if notices:
        try:
            reporter = get_reporter(notices, template_path=template, format_name=notices_format)
        except ValueError as e:
            _print_error(e)
            return 1
        if not notices.suffix:
            notices = notices.with_suffix(reporter.default_extension)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Collecting dependency licenses...", total=None)
        try:
            packages = await collect(config)
        except (LicenseFetcherError, ValueError) as e:
            progress.stop()
            _print_error(e)
            return 1
        progress.update(task, completed=True)

    found = sum(1 for package in packages if package.has_license_text)
    console.print(
        f"Resolved license texts for [bold]{found}[/bold]/{len(packages)} packages"
    )

    out_dir = config.out_dir or Path.cwd()
    try:
        artifact = write_artifact(packages, out_dir / ARTIFACT_NAME)
    except (OSError, LicenseFetcherError) as e:
        _print_error(e)
        return 1
    console.print(f"[green]Generated:[/green] {artifact}")

    if reporter is not None and notices is not None:
        try:
            reporter.write(packages, notices)
        except OSError as e:
            _print_error(e)
            return 1
        console.print(f"[green]Generated:[/green] {notices}")

    return 0


@app.command()
def gen(
    manifest_dir: Annotated[
        Optional[Path],
        typer.Option(
            "--manifest-dir",
            "-m",
            help="Directory containing Cargo.toml (default: CARGO_MANIFEST_DIR or cwd)",
            exists=True,
            file_okay=False,
        ),
    ] = None,
    out_dir: Annotated[
        Optional[Path],
        typer.Option(
            "--out-dir",
            "-o",
            help="Directory for the artifact (default: OUT_DIR or cwd)",
            file_okay=False,
        ),
    ] = None,
    notices: Annotated[
        Optional[Path],
        typer.Option(
            "--notices",
            "-n",
            help="Also write a human-readable notices file (.md or .txt)",
        ),
    ] = None,
    notices_format: Annotated[
        Optional[str],
        typer.Option(
            "--notices-format",
            help="Format of the notices file: markdown or text (default: from its extension)",
        ),
    ] = None,
    template: Annotated[
        Optional[Path],
        typer.Option(
            "--template",
            "-t",
            help="Custom Jinja2 template for the notices file",
            exists=True,
            readable=True,
        ),
    ] = None,
    target: Annotated[
        Optional[str],
        typer.Option("--target", help="Target triple to report dependencies for"),
    ] = None,
    features: Annotated[
        Optional[list[str]],
        typer.Option("--features", "-F", help="Feature to activate (repeatable)"),
    ] = None,
    all_features: Annotated[
        bool,
        typer.Option("--all-features", help="Activate all features"),
    ] = False,
    no_default_features: Annotated[
        bool,
        typer.Option("--no-default-features", help="Do not activate the default feature"),
    ] = False,
    strict: Annotated[
        bool,
        typer.Option("--strict", help="Fail if any package has no license text"),
    ] = False,
    strict_package: Annotated[
        Optional[list[str]],
        typer.Option("--strict-package", help="Package that must have license text (repeatable)"),
    ] = None,
    frozen: Annotated[
        bool,
        typer.Option("--frozen", help="Require an up-to-date Cargo.lock"),
    ] = False,
    no_cache: Annotated[
        bool,
        typer.Option("--no-cache", help="Do not read or write the resolution cache"),
    ] = False,
    no_git: Annotated[
        bool,
        typer.Option("--no-git", help="Never clone repositories"),
    ] = False,
    license_pattern: Annotated[
        str,
        typer.Option("--license-pattern", help="Regular expression for license file names"),
    ] = DEFAULT_LICENSE_PATTERN,
    concurrency: Annotated[
        int,
        typer.Option("--concurrency", "-j", min=1, help="Concurrent license resolutions"),
    ] = DEFAULT_CONCURRENCY,
    timeout: Annotated[
        float,
        typer.Option("--timeout", min=0.1, help="Seconds allowed per remote fetch"),
    ] = DEFAULT_TIMEOUT,
    cache_dir: Annotated[
        Optional[Path],
        typer.Option("--cache-dir", help="Directory holding the resolution cache", file_okay=False),
    ] = None,
    github_token: Annotated[
        Optional[str],
        typer.Option(
            "--github-token",
            envvar="GITHUB_TOKEN",
            help="GitHub API token for higher rate limits",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output",
        ),
    ] = False,
) -> None:
    """Generate the embeddable license artifact.

    Queries cargo for the compiled dependency graph, resolves the license
    text of every package and writes LICENSE-3RD-PARTY.bin.deflate.
    """
    _setup_logging(verbose)

    overrides: dict = {
        "features": tuple(features or ()),
        "all_features": all_features,
        "no_default_features": no_default_features,
        "target": target,
        "strict": strict,
        "strict_packages": frozenset(strict_package or ()),
        "frozen": frozen,
        "use_cache": not no_cache,
        "use_git": not no_git,
        "license_pattern": license_pattern,
        "concurrency": concurrency,
        "timeout": timeout,
        "github_token": github_token,
    }
    if manifest_dir is not None:
        overrides["manifest_dir"] = manifest_dir
    if out_dir is not None:
        overrides["out_dir"] = out_dir
    if cache_dir is not None:
        overrides["cache_dir"] = cache_dir

    try:
        config = FetcherConfig.from_env(**overrides)
    except ValueError as e:
        _print_error(e)
        raise typer.Exit(code=1)

    exit_code = asyncio.run(
        _run_gen(config, notices=notices, template=template, notices_format=notices_format)
    )
    raise typer.Exit(code=exit_code)


@app.command()
def show(
    artifact: Annotated[
        Path,
        typer.Argument(help="Path to a LICENSE-3RD-PARTY.bin.deflate artifact"),
    ],
    full: Annotated[
        bool,
        typer.Option("--full", "-f", help="Print the full notices including license texts"),
    ] = False,
    as_json: Annotated[
        bool,
        typer.Option("--json", "-j", help="Print the packages as JSON"),
    ] = False,
    short: Annotated[
        bool,
        typer.Option("--short", "-s", help="Print only the package names grouped by license"),
    ] = False,
) -> None:
    """Decode an artifact and print its contents."""
    try:
        packages: PackageList = read_artifact(artifact)
    except LicenseFetcherError as e:
        _print_error(e)
        raise typer.Exit(code=1)

    if as_json:
        typer.echo(json.dumps(packages.to_dicts(), indent=2, ensure_ascii=False))
    elif short:
        for license_id, names in packages.by_license().items():
            console.print(f"[green]{license_id}[/green]: {', '.join(names)}", highlight=False)
    elif full:
        console.print(str(packages), markup=False, highlight=False)
    else:
        console.print(packages.render(), markup=False, highlight=False)
        console.print(f"\n[bold]{len(packages)}[/bold] packages")


CacheDirOption = Annotated[
    Optional[Path],
    typer.Option("--cache-dir", help="Directory holding the resolution cache", file_okay=False),
]


def _open_cache(cache_dir: Optional[Path]) -> LicenseCache:
    try:
        return LicenseCache((cache_dir or default_cache_dir()) / "cache.db")
    except LicenseFetcherError as e:
        _print_error(e)
        raise typer.Exit(code=1)


@cache_app.command("show")
def cache_show(cache_dir: CacheDirOption = None) -> None:
    """Display cache location, entry count, and size."""
    with _open_cache(cache_dir) as cache_instance:
        info = cache_instance.info()
    console.print(f"[bold]Cache Location:[/bold] {info['path']}")
    console.print(f"[bold]Entries:[/bold] {info['count']} ({info['not_found']} not found)")
    console.print(f"[bold]Size:[/bold] {info['size_bytes'] / 1024:.1f} KB")


@cache_app.command("clear")
def cache_clear(
    package: Annotated[
        Optional[str],
        typer.Argument(help="Specific package to clear (optional)"),
    ] = None,
    version: Annotated[
        Optional[str],
        typer.Option("--version", help="Clear only this version of the package"),
    ] = None,
    stale: Annotated[
        bool,
        typer.Option("--stale", help="Only drop entries written by another resolver version"),
    ] = False,
    license_pattern: Annotated[
        str,
        typer.Option("--license-pattern", help="License file pattern the current entries use"),
    ] = DEFAULT_LICENSE_PATTERN,
    cache_dir: CacheDirOption = None,
) -> None:
    """Clear all cached entries (or those of one package)."""
    if stale:
        with _open_cache(cache_dir) as cache_instance:
            removed = cache_instance.purge_stale(resolver_version(license_pattern))
        console.print(f"[green]Removed {removed} stale entries[/green]")
        return

    with _open_cache(cache_dir) as cache_instance:
        cache_instance.clear(package=package, version=version)

    if package:
        label = f"{package} {version}" if version else package
        console.print(f"[green]Cleared cache for:[/green] {label}")
    else:
        console.print("[green]Cache cleared[/green]")


if __name__ == "__main__":
    app()
