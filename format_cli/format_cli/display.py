"""Rich output for the sqlform CLI.

All functions write to a :class:`rich.console.Console` instance (bound to
*stderr* by the CLI) so that formatted SQL on *stdout* is never polluted
with human-readable decoration.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from format_engine._types import Diagnostic, StructuralNode, Token, TokenKind
from format_engine.style import StyleConfig

# ---------------------------------------------------------------------------
# Colour mapping
# ---------------------------------------------------------------------------

_KIND_COLOURS: dict[TokenKind, str] = {
    TokenKind.KEYWORD: "bold blue",
    TokenKind.IDENTIFIER: "white",
    TokenKind.OPERATOR: "magenta",
    TokenKind.PUNCTUATION: "dim",
    TokenKind.STRING_LITERAL: "green",
    TokenKind.NUMBER_LITERAL: "cyan",
    TokenKind.LINE_COMMENT: "dim italic",
    TokenKind.BLOCK_COMMENT: "dim italic",
    TokenKind.WHITESPACE: "dim",
}


def _coloured_kind(kind: TokenKind) -> str:
    colour = _KIND_COLOURS.get(kind, "white")
    return f"[{colour}]{kind.value}[/{colour}]"


def _preview(text: str, width: int = 40) -> str:
    shown = text.replace("\n", "\\n").replace("\t", "\\t")
    if len(shown) > width:
        shown = shown[: width - 3] + "..."
    return escape(shown)


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------


def display_diagnostics(console: Console, diagnostics: Sequence[Diagnostic], source: str = "<stdin>") -> None:
    """Render diagnostics as a table.  Nothing is printed when there are none.

    Parameters
    ----------
    console:
        Rich console to write to (typically stderr).
    diagnostics:
        Diagnostics returned with the formatted output.
    source:
        Name of the input, shown in the table title.
    """
    if not diagnostics:
        return

    table = Table(title=f"Diagnostics: {escape(source)}", show_lines=False, pad_edge=True, expand=False)
    table.add_column("Line", justify="right", style="dim")
    table.add_column("Col", justify="right", style="dim")
    table.add_column("Kind", style="yellow")
    table.add_column("Message")

    for diag in diagnostics:
        table.add_row(str(diag.line), str(diag.column), diag.kind.value, escape(diag.message))

    console.print(table)
    console.print(f"[yellow]{len(diagnostics)} diagnostic(s); output is best effort.[/yellow]")


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


def display_tokens(console: Console, tokens: Iterable[Token], *, include_whitespace: bool = False) -> None:
    """Render the lexer output as a table, one row per token."""
    table = Table(title="Tokens", show_lines=False, pad_edge=True, expand=False)
    table.add_column("#", style="dim", justify="right")
    table.add_column("Line:Col", style="dim", justify="right")
    table.add_column("Kind")
    table.add_column("Text")

    shown = 0
    for idx, token in enumerate(tokens, start=1):
        if token.kind is TokenKind.WHITESPACE and not include_whitespace:
            continue
        shown += 1
        table.add_row(
            str(idx),
            f"{token.position.line}:{token.position.column}",
            _coloured_kind(token.kind),
            _preview(token.text),
        )

    console.print(table)
    console.print(f"[bold]{shown}[/bold] token(s) shown")


# ---------------------------------------------------------------------------
# Structure
# ---------------------------------------------------------------------------


def _node_label(node: StructuralNode) -> str:
    label = f"[bold cyan]{node.kind.value}[/bold cyan]"
    if node.keyword:
        label += f" [yellow]{escape(node.keyword)}[/yellow]"
    return label


def _add_children(branch: Tree, node: StructuralNode) -> None:
    for child in node.children:
        if isinstance(child, StructuralNode):
            _add_children(branch.add(_node_label(child)), child)
        elif not child.is_trivia:
            branch.add(f"{_coloured_kind(child.kind)} {_preview(child.text)}")


def display_structure(console: Console, statements: Sequence[StructuralNode]) -> None:
    """Render each statement tree, hiding whitespace and comments."""
    for idx, statement in enumerate(statements, start=1):
        tree = Tree(_node_label(statement), guide_style="dim")
        _add_children(tree, statement)
        console.print(Panel(tree, title=f"Statement {idx}", border_style="blue"))

    console.print(f"[bold]{len(statements)}[/bold] statement(s)")


# ---------------------------------------------------------------------------
# Presets
# ---------------------------------------------------------------------------


def display_presets(console: Console, presets: dict[str, StyleConfig], descriptions: dict[str, str]) -> None:
    """Render the presets with the options that differ from the defaults."""
    defaults = StyleConfig().model_dump(by_alias=True, mode="json")

    table = Table(title="Style Presets", show_lines=True, pad_edge=True, expand=False)
    table.add_column("Preset", style="bold")
    table.add_column("Description")
    table.add_column("Overrides")

    for name in sorted(presets):
        options = presets[name].model_dump(by_alias=True, mode="json")
        changed = [f"{key}={options[key]}" for key in sorted(options) if options[key] != defaults.get(key)]
        table.add_row(name, descriptions.get(name, ""), escape("\n".join(changed)) or "[dim](defaults)[/dim]")

    console.print(table)


# ---------------------------------------------------------------------------
# Profiling
# ---------------------------------------------------------------------------


def display_profile(console: Console, stats: list[dict[str, Any]]) -> None:
    """Render per-stage timing statistics."""
    if not stats:
        console.print("[dim]No timings recorded.[/dim]")
        return

    table = Table(title="Pipeline Timings", show_lines=False, pad_edge=True, expand=False)
    table.add_column("Stage", style="bold")
    table.add_column("Calls", justify="right")
    table.add_column("Mean (ms)", justify="right")
    table.add_column("p95 (ms)", justify="right")
    table.add_column("Total (ms)", justify="right")

    for row in stats:
        table.add_row(
            row["operation"],
            str(row["count"]),
            f"{row['mean_ms']:.3f}",
            f"{row['p95_ms']:.3f}",
            f"{row['total_ms']:.3f}",
        )

    console.print(table)


# ---------------------------------------------------------------------------
# Check results
# ---------------------------------------------------------------------------


def display_check_results(console: Console, results: dict[str, bool]) -> None:
    """Render which files are already formatted."""
    table = Table(title="Format Check", show_lines=False, pad_edge=True, expand=False)
    table.add_column("File", style="bold")
    table.add_column("Status")

    for path in sorted(results):
        status = "[green]formatted[/green]" if results[path] else "[red]would reformat[/red]"
        table.add_row(escape(path), status)

    console.print(table)
    pending = sum(1 for ok in results.values() if not ok)
    if pending:
        console.print(f"[red]{pending} file(s) would be reformatted.[/red]")
    else:
        console.print(f"[green]All {len(results)} file(s) are formatted.[/green]")
