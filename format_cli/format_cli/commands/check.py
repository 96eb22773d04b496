"""``sqlform check`` -- report SQL files that formatting would change.

Each file is formatted with the resolved style and compared with its
current contents.  Human-readable output goes to stderr via Rich; a JSON
summary goes to stdout in ``--json`` mode.  Exit code 1 when any file
would be reformatted or could not be read.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import typer
from rich.console import Console

logger = logging.getLogger(__name__)

console = Console(stderr=True)


def _collect(paths: list[Path]) -> list[Path]:
    """Expand directories into the ``*.sql`` files below them."""
    files: list[Path] = []
    for path in paths:
        if path.is_dir():
            files.extend(sorted(p for p in path.rglob("*.sql") if p.is_file()))
        else:
            files.append(path)
    return files


def check_command(
    paths: list[Path] = typer.Argument(
        ...,
        help="SQL files or directories to check.",
        exists=True,
        resolve_path=True,
    ),
    preset: str | None = typer.Option(None, "--preset", "-p", help="Base preset (default, compact, expanded)."),
    style_file: Path | None = typer.Option(
        None,
        "--style-file",
        "-s",
        help="YAML file of style options.",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    dialect: str | None = typer.Option(None, "--dialect", "-d", help="Source dialect keyword table."),
) -> None:
    """Check whether SQL files are already formatted.

    Examples::

        sqlform check models/
        sqlform check a.sql b.sql --preset compact
    """
    from format_cli.app import _json_output, _load_settings, _resolve_style
    from format_cli.display import display_check_results
    from format_engine._types import ResourceExceeded
    from format_engine.pipeline import Formatter

    style = _resolve_style(preset, style_file, {"source_dialect": dialect})
    formatter = Formatter(style, _load_settings())

    files = _collect(paths)
    if not files:
        console.print("[yellow]No .sql files found.[/yellow]")
        raise typer.Exit(code=0)

    results: dict[str, bool] = {}
    errors: dict[str, str] = {}
    for file in files:
        name = str(file)
        try:
            results[name] = formatter.is_formatted(file.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, ResourceExceeded) as exc:
            logger.warning("Skipping %s: %s", name, exc)
            errors[name] = str(exc)
            results[name] = False

    if _json_output:
        payload = {
            "files": [
                {"path": name, "formatted": ok, **({"error": errors[name]} if name in errors else {})}
                for name, ok in sorted(results.items())
            ],
            "reformat_count": sum(1 for ok in results.values() if not ok),
        }
        sys.stdout.write(json.dumps(payload, indent=2) + "\n")
    else:
        display_check_results(console, results)
        for name, message in sorted(errors.items()):
            console.print(f"[red]{name}: {message}[/red]")

    if not all(results.values()):
        raise typer.Exit(code=1)
