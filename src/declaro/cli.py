from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from declaro.config import GeneratorSettings
from declaro.errors import GenerationError
from declaro.model.operation import build_service
from declaro.orchestrator.pipeline import find_declarations, load_module, run_generate

app = typer.Typer(no_args_is_help=True, add_completion=False)

console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _existing_path(path: str) -> Path:
    p = Path(path).expanduser().resolve()
    if not p.exists():
        raise typer.BadParameter(f"Path does not exist: {p}")
    return p


@app.command()
def generate(
    path: str = typer.Argument(..., help="Declaration file or directory to scan"),
    out: Optional[str] = typer.Option(None, help="Output file (single declaration only)"),
    live: bool = typer.Option(True, "--live/--no-live", help="Emit the live service classes"),
    mock: bool = typer.Option(True, "--mock/--no-mock", help="Emit the mock service classes"),
    service_suffix: str = typer.Option("Service", help="Suffix of the live class name"),
    mock_suffix: str = typer.Option("ServiceMock", help="Suffix of the mock class name"),
    dry_run: bool = typer.Option(False, help="Synthesize but do not write files"),
    max_files: Optional[int] = typer.Option(None, help="Limit scanned files (debug)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    _setup_logging(verbose)
    root = _existing_path(path)
    settings = GeneratorSettings(
        service_suffix=service_suffix,
        mock_suffix=mock_suffix,
        emit_live=live,
        emit_mock=mock,
    )

    try:
        result = run_generate(
            root,
            out=Path(out).expanduser() if out else None,
            settings=settings,
            max_files=max_files,
            write=not dry_run,
        )
    except GenerationError as exc:
        console.print(f"[bold red]error[/bold red] {escape(f'[{exc.kind.value}] {exc}')}")
        raise typer.Exit(code=1)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))

    console.print(f"[bold green]declaro[/bold green] generate: {root}")
    console.print(f"Python files scanned: {result.files_scanned}")
    console.print(f"Declaration files: {len(result.declaration_files)}")
    console.print(f"Services: [bold]{result.services}[/bold]  Operations: [bold]{result.operations}[/bold]")
    console.print("")
    for g in result.generated:
        verb = "Wrote" if result.written else "Would write"
        classes = ", ".join(g.module.class_names(settings))
        console.print(f"  {verb} {g.out_path}  ({classes})")


@app.command()
def inspect(
    path: str = typer.Argument(..., help="Declaration file or directory"),
    format: str = typer.Option("table", help="Output format: table|json"),
) -> None:
    root = _existing_path(path)
    _, files = find_declarations(root)

    rows = []
    try:
        for f in files:
            module = load_module(Path(f))
            for decl in module.services:
                group = build_service(decl)
                for op in group.operations:
                    rows.append(
                        {
                            "service": group.name,
                            "operation": op.name,
                            "method": op.method.value,
                            "template": op.raw_template,
                            "body": op.body_encoding.value if op.body_encoding else "-",
                            "arity": op.arity.value,
                            "throwing": op.throwing,
                            "location": op.location,
                        }
                    )
    except GenerationError as exc:
        console.print(f"[bold red]error[/bold red] {escape(f'[{exc.kind.value}] {exc}')}")
        raise typer.Exit(code=1)

    if format.lower() == "json":
        console.print(json.dumps(rows, indent=2), markup=False, soft_wrap=True)
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("SERVICE", no_wrap=True)
    table.add_column("OPERATION", no_wrap=True)
    table.add_column("METHOD", no_wrap=True)
    table.add_column("TEMPLATE")
    table.add_column("BODY", no_wrap=True)
    table.add_column("ARITY", no_wrap=True)
    table.add_column("THROWS", no_wrap=True)

    for r in rows:
        table.add_row(
            r["service"],
            r["operation"],
            r["method"],
            r["template"],
            r["body"],
            r["arity"],
            "yes" if r["throwing"] else "no",
        )

    console.print(table)


@app.command()
def ping() -> None:
    console.print("pong")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
