"""sqlform CLI application -- Typer-based front end for the format engine.

Reads SQL from a file or stdin, formats it once, and writes the result to
*stdout*.  Diagnostics, tables and errors go to *stderr* via Rich so that
the formatted text can be piped cleanly.

Exit codes: 0 success (diagnostics allowed), 1 empty or unreadable input,
oversized input, failed verification or files that need formatting,
3 invalid style configuration.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from format_cli.display import (
    display_diagnostics,
    display_presets,
    display_profile,
    display_structure,
    display_tokens,
)
from format_engine._types import ConfigValidationError, ResourceExceeded, StructuralNode
from format_engine.config import Settings, load_settings
from format_engine.lexer import Lexer
from format_engine.parser import StructuralParser
from format_engine.pipeline import Formatter
from format_engine.style import (
    PRESET_DESCRIPTIONS,
    PRESETS,
    CaseMode,
    Spacing,
    StyleConfig,
    get_preset,
    load_style_file,
)
from format_engine.telemetry.log_config import configure_logging
from format_engine.telemetry.profiling import ProfileCollector
from format_engine.verify import VerificationStatus, check_equivalence

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App & global state
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="sqlform",
    help="sqlform - configurable SQL pretty-printer",
    no_args_is_help=True,
)
console = Console(stderr=True)

# Register the check command.
from format_cli.commands.check import check_command  # noqa: E402

app.command(name="check")(check_command)

# Mutable global options populated by the Typer callback.
_json_output: bool = False


# ---------------------------------------------------------------------------
# Callback -- global options
# ---------------------------------------------------------------------------


@app.callback()
def _global_options(
    json_mode: bool = typer.Option(
        False,
        "--json/--no-json",
        help="Emit structured JSON to stdout instead of plain text.",
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        help="Logging level (DEBUG, INFO, WARNING, ERROR).",
    ),
    structured_logs: bool | None = typer.Option(
        None,
        "--structured-logs/--text-logs",
        help="Log as single-line JSON on stderr.",
    ),
) -> None:
    """Global options applied to every command."""
    global _json_output  # noqa: PLW0603
    _json_output = json_mode

    settings = _load_settings()
    structured = settings.structured_logging if structured_logs is None else structured_logs
    try:
        configure_logging(log_level or settings.log_level.value, structured=structured)
    except ValueError as exc:
        console.print(f"[red]Invalid log level: {log_level}[/red]")
        raise typer.Exit(code=3) from exc


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_settings() -> Settings:
    try:
        return load_settings()
    except ValidationError as exc:
        console.print(f"[red]Invalid SQLFORM_* environment settings: {exc}[/red]")
        raise typer.Exit(code=3) from exc


def _read_source(path: str | None) -> tuple[str, str]:
    """Read SQL from *path* (``-`` or ``None`` for stdin).

    Returns ``(text, display_name)``.  Exits with code 1 when the input is
    unreadable or empty.
    """
    from_stdin = path is None or path == "-"
    name = "<stdin>" if from_stdin else path
    try:
        text = sys.stdin.buffer.read().decode("utf-8") if from_stdin else Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        console.print(f"[red]Cannot read {escape(name)}: {escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc

    if not text.strip():
        console.print("[red]Input SQL is empty.[/red]")
        raise typer.Exit(code=1)
    return text, name


def _resolve_style(
    preset: str | None = None,
    style_file: Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> StyleConfig:
    """Build the StyleConfig for a command: preset, then style file, then flags.

    Exits with code 3 when any layer is invalid.
    """
    settings = _load_settings()
    try:
        style = get_preset(preset) if preset else StyleConfig()
        style = style.with_options(source_dialect=settings.default_dialect)
        if style_file is not None:
            style = load_style_file(style_file, base=style)
        changes = {k: v for k, v in (overrides or {}).items() if v is not None}
        if changes:
            style = style.with_options(**changes)
    except ConfigValidationError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=3) from exc

    logger.debug("Resolved style: %s", style.to_file_dict())
    return style


def _node_to_dict(node: StructuralNode) -> dict[str, Any]:
    children: list[Any] = []
    for child in node.children:
        if isinstance(child, StructuralNode):
            children.append(_node_to_dict(child))
        elif not child.is_trivia:
            children.append({"token": child.kind.value, "text": child.text})
    result: dict[str, Any] = {"kind": node.kind.value, "children": children}
    if node.keyword:
        result["keyword"] = node.keyword
    return result


# ---------------------------------------------------------------------------
# format
# ---------------------------------------------------------------------------


@app.command("format")
def format_command(
    path: str | None = typer.Argument(None, help="SQL file to format; '-' or omitted reads stdin."),
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
    case_mode: CaseMode | None = typer.Option(None, "--case-mode", case_sensitive=False, help="Keyword casing."),
    identifier_case: CaseMode | None = typer.Option(
        None, "--identifier-case", case_sensitive=False, help="Unquoted identifier casing."
    ),
    break_before_keyword: bool | None = typer.Option(None, "--break-before-keyword/--no-break-before-keyword"),
    break_before_case: bool | None = typer.Option(None, "--break-before-case/--no-break-before-case"),
    break_before_comma: bool | None = typer.Option(None, "--break-before-comma/--no-break-before-comma"),
    break_before_concat: bool | None = typer.Option(None, "--break-before-concat/--no-break-before-concat"),
    break_before_block_comment: bool | None = typer.Option(
        None, "--break-before-block-comment/--no-break-before-block-comment"
    ),
    break_before_select_bracket: bool | None = typer.Option(
        None, "--break-before-select-bracket/--no-break-before-select-bracket"
    ),
    break_before_condition_bracket: bool | None = typer.Option(
        None, "--break-before-condition-bracket/--no-break-before-condition-bracket"
    ),
    break_before_close_condition_bracket: bool | None = typer.Option(
        None, "--break-before-close-condition-bracket/--no-break-before-close-condition-bracket"
    ),
    break_after_comma: bool | None = typer.Option(None, "--break-after-comma/--no-break-after-comma"),
    break_after_condition_bracket: bool | None = typer.Option(
        None, "--break-after-condition-bracket/--no-break-after-condition-bracket"
    ),
    double_break_before_union: bool | None = typer.Option(
        None, "--double-break-before-union/--no-double-break-before-union"
    ),
    break_before_case_and_or: bool | None = typer.Option(
        None, "--break-before-case-and-or/--no-break-before-case-and-or"
    ),
    break_before_and_or: bool | None = typer.Option(None, "--break-before-and-or/--no-break-before-and-or"),
    equal_spacing: Spacing | None = typer.Option(None, "--equal-spacing", case_sensitive=False),
    bracket_spacing: Spacing | None = typer.Option(None, "--bracket-spacing", case_sensitive=False),
    comma_spacing: Spacing | None = typer.Option(None, "--comma-spacing", case_sensitive=False),
    case_then_indent: bool | None = typer.Option(None, "--case-then-indent/--no-case-then-indent"),
    align_comma: bool | None = typer.Option(None, "--align-comma/--no-align-comma"),
    align_position: int | None = typer.Option(
        None, "--align-position", help="Pad top-level clause bodies to this column."
    ),
    indent_width: int | None = typer.Option(None, "--indent-width", help="Spaces per indentation level."),
    verify: bool = typer.Option(False, "--verify", help="Check with sqlglot that only layout changed."),
    profile: bool = typer.Option(False, "--profile", help="Print per-stage timings to stderr."),
    write: bool = typer.Option(False, "--write", "-w", help="Rewrite the file in place."),
) -> None:
    """Format SQL from a file or stdin and print it to stdout.

    Examples::

        sqlform format query.sql
        cat query.sql | sqlform format --case-mode lower
        sqlform format query.sql --preset expanded --write
    """
    overrides: dict[str, Any] = {
        "source_dialect": dialect,
        "case_mode": case_mode,
        "identifier_case": identifier_case,
        "break_before_keyword": break_before_keyword,
        "break_before_case": break_before_case,
        "break_before_comma": break_before_comma,
        "break_before_concat": break_before_concat,
        "break_before_block_comment": break_before_block_comment,
        "break_before_select_bracket": break_before_select_bracket,
        "break_before_condition_bracket": break_before_condition_bracket,
        "break_before_close_condition_bracket": break_before_close_condition_bracket,
        "break_after_comma": break_after_comma,
        "break_after_condition_bracket": break_after_condition_bracket,
        "double_break_before_union": double_break_before_union,
        "break_before_case_and_or": break_before_case_and_or,
        "break_before_and_or": break_before_and_or,
        "equal_spacing": equal_spacing,
        "bracket_spacing": bracket_spacing,
        "comma_spacing": comma_spacing,
        "case_then_indent": case_then_indent,
        "align_comma": align_comma,
        "indent_width": indent_width,
    }
    if align_position is not None:
        overrides["align_position"] = {"enabled": True, "column": align_position}

    if write and (path is None or path == "-"):
        console.print("[red]--write needs a file path.[/red]")
        raise typer.Exit(code=3)

    style = _resolve_style(preset, style_file, overrides)
    source, name = _read_source(path)

    if profile:
        ProfileCollector.get_instance().clear()

    formatter = Formatter(style, _load_settings())
    try:
        result = formatter.format(source)
    except ResourceExceeded as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc

    outcome = check_equivalence(source, result.text, style.source_dialect) if verify else None
    rejected = outcome is not None and outcome.status is VerificationStatus.DIFFERENT

    if write:
        assert path is not None
        if rejected:
            console.print(f"[yellow]Left {name} unchanged.[/yellow]")
        else:
            Path(path).write_text(result.text + "\n", encoding="utf-8")
            console.print(f"Reformatted [bold]{name}[/bold]")
    elif _json_output:
        sys.stdout.write(json.dumps(result.to_dict(), indent=2) + "\n")
    else:
        sys.stdout.write(result.text + "\n")

    if not _json_output:
        display_diagnostics(console, result.diagnostics, name)
    if profile:
        display_profile(console, ProfileCollector.get_instance().get_all_stats())

    if outcome is not None:
        if rejected:
            console.print(f"[red]Verification failed: {escape(outcome.detail)}[/red]")
            raise typer.Exit(code=1)
        if outcome.status is VerificationStatus.UNVERIFIED:
            console.print(f"[yellow]Not verified: {escape(outcome.detail)}[/yellow]")
        else:
            console.print("[green]Verified: output is equivalent to the input.[/green]")


# ---------------------------------------------------------------------------
# tokens
# ---------------------------------------------------------------------------


@app.command()
def tokens(
    path: str | None = typer.Argument(None, help="SQL file; '-' or omitted reads stdin."),
    dialect: str | None = typer.Option(None, "--dialect", "-d", help="Keyword table to lex with."),
    whitespace: bool = typer.Option(False, "--whitespace", help="Include whitespace tokens."),
) -> None:
    """Show the lexer output."""
    style = _resolve_style(overrides={"source_dialect": dialect})
    source, name = _read_source(path)
    lexed = Lexer(style.source_dialect).run(source)

    if _json_output:
        payload = {
            "tokens": [
                {
                    "kind": t.kind.value,
                    "text": t.text,
                    "line": t.position.line,
                    "column": t.position.column,
                    "offset": t.position.offset,
                }
                for t in lexed.tokens
                if whitespace or not t.is_trivia or t.is_comment
            ],
            "diagnostics": [d.model_dump(mode="json") for d in lexed.diagnostics],
        }
        sys.stdout.write(json.dumps(payload, indent=2) + "\n")
        return

    display_tokens(console, lexed.tokens, include_whitespace=whitespace)
    display_diagnostics(console, lexed.diagnostics, name)


# ---------------------------------------------------------------------------
# tree
# ---------------------------------------------------------------------------


@app.command()
def tree(
    path: str | None = typer.Argument(None, help="SQL file; '-' or omitted reads stdin."),
    dialect: str | None = typer.Option(None, "--dialect", "-d", help="Keyword table to lex with."),
) -> None:
    """Show the structural parse tree of each statement."""
    style = _resolve_style(overrides={"source_dialect": dialect})
    source, name = _read_source(path)
    lexed = Lexer(style.source_dialect).run(source)
    parsed = StructuralParser().parse(lexed)
    diagnostics = lexed.diagnostics + parsed.diagnostics

    if _json_output:
        payload = {
            "statements": [_node_to_dict(s) for s in parsed.statements],
            "diagnostics": [d.model_dump(mode="json") for d in diagnostics],
        }
        sys.stdout.write(json.dumps(payload, indent=2) + "\n")
        return

    display_structure(console, parsed.statements)
    display_diagnostics(console, diagnostics, name)


# ---------------------------------------------------------------------------
# presets
# ---------------------------------------------------------------------------


@app.command()
def presets() -> None:
    """List the built-in style presets."""
    if _json_output:
        payload = {name: PRESETS[name].to_file_dict() for name in sorted(PRESETS)}
        sys.stdout.write(json.dumps(payload, indent=2) + "\n")
        return
    display_presets(console, PRESETS, PRESET_DESCRIPTIONS)
