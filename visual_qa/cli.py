"""CLI entry point for visual QA."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from visual_qa.errors import VisualQAError
from visual_qa.models.config import AnalyzerConfig
from visual_qa.orchestrator import Orchestrator

console = Console()

DEFAULT_CONFIG = "visual-qa.json"


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )
    # Keep third-party request logging out of INFO output
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)


def load_config(config: str, env_file: Optional[str] = None, no_open: bool = False) -> AnalyzerConfig:
    """Load the JSON config if present, then overlay .env and environment variables."""
    path = Path(config)
    if not path.exists() and config != DEFAULT_CONFIG:
        console.print(f"[red]Config file not found: {config}[/red]")
        console.print("Run 'visual-qa init' to create a default config.")
        sys.exit(1)

    # Malformed JSON and pydantic validation errors are both ValueErrors
    try:
        base = AnalyzerConfig.load(path) if path.exists() else None
        cfg = AnalyzerConfig.from_env(base, env_file=env_file)
    except ValueError as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        sys.exit(1)
    if no_open:
        cfg.open_report = False
    return cfg


def _run(action):
    """Run an orchestrator action, turning pipeline errors into exit code 1."""
    try:
        return action()
    except VisualQAError as e:
        console.print(f"[red]{type(e).__name__}: {e}[/red]")
        sys.exit(1)


def _print_summary(results: dict) -> None:
    table = Table(title="Results Summary")
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    table.add_row("Duration", f"{results['duration']}s")
    table.add_row("Model", results["model"] or "n/a")
    captures = results["captures"]
    table.add_row(
        "Screenshots",
        f"{captures['captured']}/{captures['expected']} ({captures['success_rate']}%)",
    )
    analysis = results["analysis"]
    table.add_row("AI Analyzed", f"[green]{analysis['ai']}[/green]")
    table.add_row("Fallback", f"[yellow]{analysis['fallback']}[/yellow]")
    table.add_row("Skipped", f"[red]{analysis['skipped']}[/red]")
    table.add_row("Viewports", ", ".join(results["viewports"]))
    issues = results["issues"]
    table.add_row("Total Issues", str(issues["total"]))
    for issue_type, count in issues["by_type"].items():
        table.add_row(f"  {issue_type}", str(count))
    console.print(table)

    if issues["total"] == 0:
        console.print("[green]No issues found! UI looks good.[/green]")
    for failure in captures["failures"]:
        console.print(f"  [yellow]Capture skipped:[/yellow] {failure}")
    for fmt, path in results["reports"].items():
        console.print(f"  {fmt.upper()} report: [blue]{path}[/blue]")


def config_options(func):
    func = click.option("--no-open", is_flag=True, help="Do not open the HTML report")(func)
    func = click.option("--env-file", default=None, help="Path to a .env file")(func)
    func = click.option("--config", "-c", default=DEFAULT_CONFIG, help="Config file path")(func)
    return func


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Screenshot capture and AI caption analysis for web UIs"""
    setup_logging(verbose)


@cli.command()
@config_options
def run(config: str, env_file: Optional[str], no_open: bool) -> None:
    """Run the full pipeline: capture → caption → issues → report."""
    cfg = load_config(config, env_file, no_open)
    orchestrator = Orchestrator(cfg)
    results = _run(orchestrator.run_full_pipeline)

    console.print("\n[bold green]Analysis Complete[/bold green]")
    _print_summary(results)


@cli.command()
@config_options
def capture(config: str, env_file: Optional[str], no_open: bool) -> None:
    """Capture screenshots only (writes metadata.json)."""
    cfg = load_config(config, env_file, no_open)
    orchestrator = Orchestrator(cfg)
    results = _run(orchestrator.run_capture_only)

    console.print(
        f"[green]Capture complete:[/green] {results['captured']}/{results['expected']} "
        f"screenshots ({results['success_rate']}%) in {results['duration']}s"
    )
    for failure in results["failures"]:
        console.print(f"  [yellow]Skipped:[/yellow] {failure}")
    console.print(f"  Output: [blue]{results['output_dir']}[/blue]")


@cli.command()
@config_options
def analyze(config: str, env_file: Optional[str], no_open: bool) -> None:
    """Analyze existing screenshots without capturing new ones."""
    cfg = load_config(config, env_file, no_open)
    orchestrator = Orchestrator(cfg)
    results = _run(orchestrator.run_analyze_only)
    _print_summary(results)


@cli.command()
@config_options
def check(config: str, env_file: Optional[str], no_open: bool) -> None:
    """Check that the target server is up and a caption model loads."""
    cfg = load_config(config, env_file, no_open)
    result = Orchestrator(cfg).check()

    if result["server"]:
        console.print(f"[green]Server OK:[/green] {cfg.base_url}")
    else:
        console.print(f"[red]Server unavailable:[/red] {result['server_error']}")
    if result["model"]:
        console.print(
            f"[green]Model OK:[/green] {result['model']} "
            f"({cfg.caption_backend}, loaded in {result['init_seconds']}s)"
        )
    else:
        console.print(f"[red]Model unavailable:[/red] {result['model_error']}")

    if not (result["server"] and result["model"]):
        sys.exit(1)


@cli.command("download-models")
@click.option("--model", "-m", "models", multiple=True, help="Model to download (repeatable)")
@config_options
def download_models(models: tuple[str, ...], config: str, env_file: Optional[str], no_open: bool) -> None:
    """Pre-download caption models into the local cache."""
    cfg = load_config(config, env_file, no_open)
    orchestrator = Orchestrator(cfg)
    if not orchestrator.caption_client.backend.downloads_models:
        console.print(
            f"[yellow]The {cfg.caption_backend} backend runs models remotely; "
            "nothing to download.[/yellow]"
        )
        return
    loaded = orchestrator.download_models(list(models) or None)
    wanted = list(models) or orchestrator.caption_client.candidates

    for name in wanted:
        mark = "[green]cached[/green]" if name in loaded else "[red]failed[/red]"
        console.print(f"  {name}: {mark}")
    if not loaded:
        sys.exit(1)


@cli.command()
@click.option("--base-url", "-u", prompt="Target base URL", default="http://localhost:8001",
              help="Base URL of the app to screenshot")
def init(base_url: str) -> None:
    """Create a default configuration file."""
    config_path = Path(DEFAULT_CONFIG)
    if config_path.exists():
        if not click.confirm(f"{DEFAULT_CONFIG} already exists. Overwrite?"):
            return

    cfg = AnalyzerConfig(base_url=base_url)
    cfg.save(config_path)
    console.print(f"[green]Created {config_path}[/green]")
    console.print("\nYou can now customize this file and run:")
    console.print("  [blue]visual-qa run[/blue]")
    console.print("\nSecrets such as HF_API_KEY belong in the environment or a .env file.")


if __name__ == "__main__":
    cli()
