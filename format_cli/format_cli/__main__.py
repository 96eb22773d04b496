"""Entry point for `python -m format_cli` and the `sqlform` console script."""

from __future__ import annotations

from format_cli.app import app


def main() -> None:
    app()


if __name__ == "__main__":
    main()
