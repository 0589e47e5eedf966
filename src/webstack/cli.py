from __future__ import annotations

import json
import logging
from collections import Counter
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from webstack.domain.errors import ValidationError
from webstack.orchestrator.pipeline import SynthResult, run_synth


app = typer.Typer(no_args_is_help=True, add_completion=False)

graph_app = typer.Typer(no_args_is_help=True)
app.add_typer(graph_app, name="graph")

console = Console()


@app.callback()
def _configure(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _synth(manifest: str, enforce: Optional[bool] = None) -> SynthResult:
    manifest_path = Path(manifest).expanduser()
    if not manifest_path.is_file():
        raise typer.BadParameter(f"Manifest does not exist: {manifest_path}")
    try:
        return run_synth(manifest_path, enforce=enforce)
    except ValidationError as exc:
        console.print(f"[bold red]error[/bold red]: {escape(str(exc))}")
        raise typer.Exit(code=1)


@app.command()
def synth(
    manifest: str = typer.Argument(..., help="Path to the app manifest (JSON)"),
    format: str = typer.Option("table", help="Output format: table|json"),
) -> None:
    result = _synth(manifest)
    fmt = format.lower().strip()
    if fmt not in ("table", "json"):
        raise typer.BadParameter("format must be one of: table, json")

    if fmt == "json":
        payload = {
            "id": result.app.construct_id,
            "manifest": result.manifest_path,
            "nodes": len(result.app.graph),
            "endpoints": [
                {"method": m, "path": p, "function": f} for m, p, f in result.endpoints
            ],
            "failures": len(result.failures),
        }
        console.print(json.dumps(payload, indent=2), markup=False, highlight=False, soft_wrap=True)
        return

    console.print(f"[bold green]webstack[/bold green] synth: {result.manifest_path}")
    console.print(f"Nodes: {len(result.app.graph)}")
    console.print("")

    table = Table(show_header=True, header_style="bold")
    table.add_column("METHOD", no_wrap=True)
    table.add_column("PATH")
    table.add_column("FUNCTION")
    for method, path, function_name in result.endpoints:
        table.add_row(method, path, function_name)
    console.print(table)

    if result.failures:
        console.print("")
        console.print(
            f"[yellow]{len(result.failures)} security check(s) failing[/yellow]; "
            "run [bold]webstack audit[/bold] for details."
        )


@app.command()
def audit(
    manifest: str = typer.Argument(..., help="Path to the app manifest (JSON)"),
    enforce: bool = typer.Option(False, "--enforce", help="Apply best practices before auditing"),
    fail_on_error: bool = typer.Option(False, "--fail-on-error", help="Exit 1 when any check fails"),
) -> None:
    result = _synth(manifest, enforce=True if enforce else None)

    for change in result.enforced:
        console.print(f"[cyan]enforced[/cyan] {change}")

    table = Table(show_header=True, header_style="bold")
    table.add_column("RESULT", no_wrap=True)
    table.add_column("KIND", no_wrap=True)
    table.add_column("ENTITY")
    table.add_column("ISSUES")
    for r in result.results:
        status = "[green]PASS[/green]" if r.passed else "[red]FAIL[/red]"
        table.add_row(
            status,
            r.details.get("kind", ""),
            r.details.get("entity", ""),
            "; ".join(r.details.get("issues", [])),
        )
    console.print(table)

    passed = len(result.results) - len(result.failures)
    console.print(f"Passed: {passed}  Failed: {len(result.failures)}")
    if result.failures and fail_on_error:
        raise typer.Exit(code=1)


@graph_app.command("stats")
def graph_stats(
    manifest: str = typer.Argument(..., help="Path to the app manifest (JSON)"),
) -> None:
    result = _synth(manifest)
    graph = result.app.graph

    kinds = Counter(n.kind for n in graph.walk())
    console.print(f"[bold]Manifest:[/bold] {result.manifest_path}")
    console.print(f"Nodes: {len(graph)}")
    console.print(f"Endpoints: {len(result.app.registry)}")
    console.print("")
    for kind, count in sorted(kinds.items()):
        console.print(f"  {count:>4}  {kind}")


@graph_app.command("export")
def graph_export(
    manifest: str = typer.Argument(..., help="Path to the app manifest (JSON)"),
    format: str = typer.Option("json", help="Export format: json|dot"),
    out: Optional[str] = typer.Option(None, help="Output path (default: print to stdout)"),
) -> None:
    fmt = format.lower().strip()
    if fmt not in ("json", "dot"):
        raise typer.BadParameter("format must be one of: json, dot")

    result = _synth(manifest)
    nodes = list(result.app.graph.walk())

    if fmt == "json":
        payload = {
            "id": result.app.construct_id,
            "manifest": result.manifest_path,
            "nodes": [
                {"index": n.index, "id": n.id, "kind": n.kind, "path": n.path} for n in nodes
            ],
            "edges": [
                {"src": n.parent, "dst": n.index, "type": "CONTAINS"}
                for n in nodes
                if n.parent is not None
            ],
        }
        text = json.dumps(payload, indent=2)
    else:
        lines = ["digraph webstack {", '  rankdir="LR";', '  node [shape="box"];']
        for n in nodes:
            label = f"{n.id}\\n({n.kind})".replace('"', '\\"')
            lines.append(f'  "{n.index}" [label="{label}"];')
        for n in nodes:
            if n.parent is not None:
                lines.append(f'  "{n.parent}" -> "{n.index}";')
        lines.append("}")
        text = "\n".join(lines)

    if out:
        out_path = Path(out).expanduser()
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(text, encoding="utf-8")
        console.print(f"[bold green]Wrote[/bold green] {fmt} graph to: {out_path}")
    else:
        console.print(text, markup=False, highlight=False, soft_wrap=True)


@app.command()
def ping() -> None:
    console.print("pong")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
