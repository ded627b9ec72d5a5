"""CLI application for depbump."""

import difflib
import json
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from depbump.config import get_settings
from depbump.credentials import normalize
from depbump.detect import package_manager_for, relevant_files
from depbump.logging import ScrubbingFilter, configure_logging
from depbump.models import Dependency, DependencyFile
from depbump.pipeline import UpdateReport, update_dependency
from depbump.registry import file_parser_for, update_checker_for

console = Console()

IGNORED_DIRECTORIES = {".git", "node_modules", "vendor", "tmp", "__pycache__"}


def read_dependency_files(directory: Path) -> tuple[str, list[DependencyFile]]:
    """Collect the files the project's package manager reads."""
    names = sorted(
        p.relative_to(directory).as_posix()
        for p in directory.rglob("*")
        if p.is_file() and not IGNORED_DIRECTORIES.intersection(p.relative_to(directory).parts)
    )
    package_manager = package_manager_for(names)
    files = [
        DependencyFile(name=name, content=(directory / name).read_text())
        for name in relevant_files(package_manager, names)
    ]
    return package_manager, files


def load_credentials(path: Path | None) -> list:
    """Credentials file: a JSON list of {"host", "username", "password"} objects."""
    if path is None:
        return []
    return normalize(json.loads(path.read_text()))


def find_dependency(dependencies: list[Dependency], name: str) -> Dependency:
    for dependency in dependencies:
        if dependency.name == name:
            return dependency
    console.print(f"Error: {name} is not declared in this project", style="red")
    raise typer.Exit(1)


def format_diff_output(original: list[DependencyFile], report: UpdateReport) -> str:
    """Format unified diff output for every changed file."""
    originals = {f.name: f.content for f in original}
    lines = []
    for file in report.updated_files:
        lines.extend(
            difflib.unified_diff(
                originals[file.name].splitlines(keepends=True),
                file.content.splitlines(keepends=True),
                fromfile=f"a/{file.name}",
                tofile=f"b/{file.name}",
            )
        )
    return "".join(lines)


def format_json_output(report: UpdateReport) -> str:
    """Format JSON output."""
    return json.dumps(
        {
            "name": report.dependency.name,
            "previous_version": report.dependency.previous_version,
            "version": report.dependency.version,
            "semver_delta": report.semver_delta,
            "requirements": [
                {"file": r.file, "requirement": r.requirement} for r in report.dependency.requirements
            ],
            "updated_files": [f.name for f in report.updated_files],
            "notes": report.notes,
        },
        indent=2,
    )


app = typer.Typer(
    name="depbump",
    help="depbump - Bump one dependency across Gemfile, requirements.txt, package.json and Dockerfile projects",
    add_completion=False,
)


@app.callback()
def main(
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level (defaults to DEPBUMP_LOG_LEVEL)"),
) -> None:
    configure_logging(log_level or get_settings().log_level)


@app.command()
def check(
    directory: Path = typer.Argument(help="Project directory containing the dependency files"),
    name: str = typer.Argument(help="Name of the dependency to check"),
    credentials_file: Path | None = typer.Option(None, "--credentials", help="JSON file with source credentials"),
) -> None:
    """Show the latest and latest resolvable versions of a dependency."""
    try:
        package_manager, files = read_dependency_files(directory)
        credentials = load_credentials(credentials_file)
        _scrub_logs(credentials)

        dependency = find_dependency(file_parser_for(package_manager)(files), name)
        checker = update_checker_for(package_manager)(dependency, files, credentials=credentials)

        table = Table(title=f"{dependency.name} ({package_manager})")
        table.add_column("Current")
        table.add_column("Latest")
        table.add_column("Latest resolvable")
        table.add_row(
            dependency.version or "-",
            checker.latest_version() or "-",
            checker.latest_resolvable_version() or "-",
        )
        console.print(table)

        if not checker.needs_update():
            console.print("No updates available")
            raise typer.Exit(2)  # No changes exit code

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"Error: {e}", style="red")
        raise typer.Exit(1)


@app.command()
def update(
    directory: Path = typer.Argument(help="Project directory containing the dependency files"),
    name: str = typer.Argument(help="Name of the dependency to update"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show changes without applying"),
    format_type: str = typer.Option("diff", "--format", help="Output format: diff or json"),
    credentials_file: Path | None = typer.Option(None, "--credentials", help="JSON file with source credentials"),
) -> None:
    """Update one dependency and rewrite the files that declare it."""
    try:
        package_manager, files = read_dependency_files(directory)
        credentials = load_credentials(credentials_file)
        _scrub_logs(credentials)

        dependency = find_dependency(file_parser_for(package_manager)(files), name)
        report = update_dependency(dependency, files, credentials=credentials)

        if not report.changed:
            if format_type == "json":
                console.print(format_json_output(report), markup=False, highlight=False)
            else:
                console.print("No updates available")
            raise typer.Exit(2)  # No changes exit code

        if format_type == "json":
            console.print(format_json_output(report), markup=False, highlight=False)
        elif dry_run:
            console.print(format_diff_output(files, report), markup=False, highlight=False)

        if not dry_run:
            for file in report.updated_files:
                (directory / file.name).write_text(file.content)
                console.print(f"Updated {file.name}")

    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"Error: {e}", style="red")
        raise typer.Exit(1)


def _scrub_logs(credentials: list) -> None:
    for handler in logging.getLogger().handlers:
        handler.addFilter(ScrubbingFilter(credentials))


if __name__ == "__main__":
    app()
