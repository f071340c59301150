"""
CLI Main - Typer-based command-line interface.

Usage:
    gyanu ask "Why is the sky blue?" --grade 7 --subject Science
    gyanu serve
    gyanu version
"""

from __future__ import annotations

import asyncio
import logging

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

app = typer.Typer(
    name="gyanu",
    help="Gyanu - AI tutor for school students",
    add_completion=False,
)
console = Console()


@app.callback()
def configure(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
) -> None:
    """Configure logging for every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command()
def ask(
    question: str = typer.Argument(..., help="Question to ask the tutor"),
    grade: int | None = typer.Option(None, "--grade", "-g", help="Learner's grade (1-12)"),
    subject: str | None = typer.Option(None, "--subject", "-s", help="Subject, e.g. Science"),
    chapter: str | None = typer.Option(None, "--chapter", "-c", help="Chapter identifier"),
    show_steps: bool = typer.Option(False, "--steps", help="Show reasoning and routing details"),
) -> None:
    """Ask a single question and print the answer."""
    asyncio.run(_ask_async(question, grade, subject, chapter, show_steps))


async def _ask_async(
    question: str,
    grade: int | None,
    subject: str | None,
    chapter: str | None,
    show_steps: bool,
) -> None:
    """Async ask implementation."""
    from gyanu.config import get_settings
    from gyanu.config.errors import GyanuError
    from gyanu.domains.orchestration import TutorPipeline, UserContext

    pipeline = TutorPipeline.from_settings(get_settings())
    context = UserContext(grade=grade, subject=subject, chapter=chapter)
    answer = ""
    metadata: dict = {}

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("Starting...", total=None)

            async for event in pipeline.stream(question, user_context=context):
                if event.event == "status":
                    progress.update(task, description=event.message)
                elif event.event == "token" and event.phase.value == "synthesis":
                    answer = event.content or ""
                elif event.event == "token" and show_steps:
                    console.print(Panel(event.content or "", title="Reasoning", style="dim"))
                elif event.event == "done":
                    metadata = event.metadata or {}

    except GyanuError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)
    finally:
        await pipeline.close()

    console.print(Panel(Markdown(answer), title="Gyanu", border_style="green"))

    if show_steps and metadata:
        table = Table(title="Routing")
        table.add_column("Field", style="cyan")
        table.add_column("Value", style="green")
        table.add_row("Intent", str(metadata.get("intent")))
        table.add_row("Confidence", f"{metadata.get('confidence', 0):.0%}")
        console.print(table)


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", "-h", help="Host to bind"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port to bind"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload"),
) -> None:
    """Start the API server."""
    import uvicorn

    from gyanu.config import get_settings

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    console.print("\n[green]Starting Gyanu API server[/green]")
    console.print(f"[dim]http://{host}:{port}[/dim]\n")

    uvicorn.run(
        "gyanu.interfaces.api:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


@app.command()
def version() -> None:
    """Show version information."""
    from gyanu import __version__

    console.print(f"Gyanu v{__version__}")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
