"""CLI entry-point: run the matching flows from the terminal."""

import asyncio
import base64
import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from procmatch.config import get_settings
from procmatch.dispatcher import Flow, FlowDispatcher
from procmatch.errors import ProcmatchError
from procmatch.flows.conversation import QUESTIONS
from procmatch.schemas.models import ConversationalOutput, ConversationStep, MatchResult

app = typer.Typer(help="AI-assisted requirement extraction and supplier matching")
console = Console()


def _run(flow: Flow, body: dict):
    dispatcher = FlowDispatcher.from_settings(get_settings())
    try:
        return asyncio.run(dispatcher.dispatch(flow.value, body))
    except ProcmatchError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def _load_json(path: str):
    p = Path(path)
    if not p.exists():
        console.print(f"[red]Error: file not found: {p}[/red]")
        raise typer.Exit(1)
    with open(p, encoding="utf-8") as f:
        return json.load(f)


def _pdf_body(path: str) -> dict:
    p = Path(path)
    if not p.exists():
        console.print(f"[red]Error: file not found: {p}[/red]")
        raise typer.Exit(1)
    content = "data:application/pdf;base64," + base64.b64encode(p.read_bytes()).decode("ascii")
    return {"name": p.name, "content": content}


def _print_candidates(result: MatchResult) -> None:
    table = Table(title=f"Candidates for: {result.requirement.product_description}")
    table.add_column("Score", justify="right")
    table.add_column("Company")
    table.add_column("Source")
    table.add_column("Justification")
    for c in result.candidates:
        table.add_row(str(c.match_score), c.company_name, (c.website or "external") if c.is_external else "internal", c.justification)
    console.print(table)


@app.command()
def extract(
    text: str = typer.Argument("", help="Buyer requirement in free text"),
    pdf: str = typer.Option(None, help="PDF document with the requirement"),
    image: str = typer.Option(None, help="Product image URL"),
    output: str = typer.Option(None, help="Write the requirement JSON to this file"),
):
    """Extract a structured procurement requirement from free text, a PDF or an image."""
    body: dict = {"text": text}
    if pdf:
        body["pdf"] = _pdf_body(pdf)
    if image:
        body["image"] = image
    console.print("Extracting requirement details...")
    requirement = _run(Flow.EXTRACT_REQUIREMENT, body)
    data = requirement.to_json()
    if output:
        Path(output).write_text(data, encoding="utf-8")
        console.print(f"Wrote {output}")
    else:
        console.print_json(data)


@app.command()
def match(
    requirement_path: str = typer.Argument(..., help="Requirement JSON (output of `extract`)"),
    suppliers: str = typer.Option(None, help="Supplier profiles JSON (default: configured directory)"),
    output: str = typer.Option(None, help="Write the match result JSON to this file"),
):
    """Score internal suppliers and external discoveries against a requirement."""
    body: dict = {"requirement": _load_json(requirement_path)}
    if suppliers:
        body["internalSuppliers"] = _load_json(suppliers)
    console.print("Matching suppliers...")
    result = _run(Flow.MATCH_SUPPLIERS, body)
    if output:
        Path(output).write_text(result.to_json(), encoding="utf-8")
        console.print(f"Wrote {output}")
    _print_candidates(result)


@app.command()
def discover(query: str = typer.Argument(..., help="Free-text keywords")):
    """Search public trade directories for suppliers (no API key needed)."""
    dispatcher = FlowDispatcher.from_settings(get_settings())
    candidates = asyncio.run(dispatcher.scout.discover(query))
    if not candidates:
        console.print("[yellow]No external suppliers found.[/yellow]")
        return
    for c in candidates:
        console.print(f"{c.match_score:>3}  {c.company_name}  [dim]{c.website}[/dim]")


@app.command()
def categories(text: str = typer.Argument(..., help="Supplier company description")):
    """Suggest catalog categories for a supplier description."""
    result = _run(Flow.SUPPLIER_CATEGORIES, {"text": text})
    console.print_json(result.to_json())


@app.command()
def chat(
    output: str = typer.Option(None, help="Write the confirmed requirement JSON to this file"),
):
    """Build a requirement step by step in an interactive conversation."""
    console.print(QUESTIONS[ConversationStep.GREETING])
    state = None
    while True:
        message = typer.prompt("you")
        body: dict = {"userMessage": message}
        if state is not None:
            body["currentState"] = json.loads(state.to_json())
        result: ConversationalOutput = _run(Flow.CONVERSATIONAL_REQUIREMENT, body)
        console.print(result.bot_message)
        state = result.updated_state
        if result.is_complete:
            break
    if output and result.requirement is not None:
        Path(output).write_text(result.requirement.to_json(), encoding="utf-8")
        console.print(f"Wrote {output}")


if __name__ == "__main__":
    app()
