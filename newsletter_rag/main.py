"""
Newsletter RAG - CLI Entry Point
---------------------------------
Exposes Typer commands for warming the cache and asking questions.

Usage:
    python -m newsletter_rag.main build              # Load or build the embedding cache
    python -m newsletter_rag.main build --force      # Re-chunk and re-embed everything
    python -m newsletter_rag.main ask "..."          # Single-shot question
    python -m newsletter_rag.main ask                # Interactive loop
    python -m newsletter_rag.main status             # Cache + credential state
"""
from __future__ import annotations

import json
import sys
from typing import Optional

# Windows cp1252 terminal fix
if sys.platform == "win32":
    sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    sys.stderr.reconfigure(encoding="utf-8", errors="replace")

import typer
from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from newsletter_rag.config import Settings, load_settings
from newsletter_rag.embedding.cache import CacheCorrupt, CacheHit, EmbeddingCache
from newsletter_rag.embedding.pipeline import build_index
from newsletter_rag.errors import NewsletterRAGError
from newsletter_rag.serving.pipeline import NewsletterRAGPipeline, QueryResult
from newsletter_rag.utils.helpers import truncate_text
from newsletter_rag.utils.logger import setup_logger

app = typer.Typer(
    name="newsletter-rag",
    help="Ask questions about the newsletter archive",
    add_completion=False,
)
console = Console()


# --- Helpers ------------------------------------------------------------------

def _settings(config: Optional[str]) -> Settings:
    settings = load_settings(config)
    setup_logger(log_level=settings.log_level, log_file=settings.log_file)
    return settings


# --- Commands -----------------------------------------------------------------

@app.command()
def build(
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help="Path to config YAML (default: config/config.yaml)"
    ),
    force: bool = typer.Option(
        False, "--force", help="Ignore any existing cache and rebuild it"
    ),
) -> None:
    """
    Load the embedding cache, building it first if it is missing or invalid.

    \b
    Build steps:
      1. Split the archive into newsletters and titled chunks
      2. Embed each chunk (failed chunks are skipped)
      3. Write the cache file
    """
    settings = _settings(config)
    pipeline = NewsletterRAGPipeline.from_settings(settings)

    if not force and isinstance(pipeline.cache.load(), CacheHit):
        pipeline.ensure_initialized()
        console.print(
            f"[green][OK] Cache is valid[/green] | {len(pipeline.chunks):,} chunks | {settings.cache_path}"
        )
        return

    console.print()
    console.print(
        Panel(
            "[bold cyan]Newsletter RAG[/bold cyan]\n"
            "[white]Chunking & embedding the archive[/white]",
            box=box.DOUBLE_EDGE,
            expand=False,
        )
    )

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("[cyan]Embedding chunks...[/cyan]", total=None)

            def _advance(done: int, total: int) -> None:
                progress.update(task, completed=done, total=total)

            _, report = build_index(
                corpus_path=settings.corpus_path,
                cache=pipeline.cache,
                embedder=pipeline.embedder,
                batch_size=settings.embed_batch_size,
                pause_s=settings.embed_pause_s,
                on_progress=_advance,
            )
    except (NewsletterRAGError, FileNotFoundError) as exc:
        console.print(f"[red]Build failed:[/red] {exc}")
        raise typer.Exit(1)

    console.print(
        Panel(
            "[bold green]Cache built[/bold green]\n\n"
            f"  Chunks      : {report.total_chunks:,}\n"
            f"  Embedded    : {report.embedded:,}\n"
            f"  Skipped     : {len(report.skipped):,}\n"
            f"  Dimensions  : {report.dimensions}\n"
            f"  Elapsed     : {report.elapsed_s:.1f}s\n"
            f"  Cache file  : {settings.cache_path}",
            box=box.DOUBLE_EDGE,
            border_style="green",
            expand=False,
        )
    )


@app.command()
def ask(
    query: Optional[str] = typer.Argument(None, help="Question (omit for interactive loop)"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config YAML"),
    top_k: Optional[int] = typer.Option(None, "--top-k", help="Excerpts passed to the generator"),
    json_out: bool = typer.Option(False, "--json", help="Print result as JSON (single-query mode only)"),
) -> None:
    """Answer questions from the newsletter archive."""
    settings = _settings(config)
    pipeline = NewsletterRAGPipeline.from_settings(settings)

    try:
        with console.status("[cyan]Loading embedding cache...[/cyan]"):
            pipeline.ensure_initialized()
    except (NewsletterRAGError, FileNotFoundError) as exc:
        console.print(f"[red]Could not initialise:[/red] {exc}")
        raise typer.Exit(1)

    # --- Single-shot mode -----------------------------------------------------
    if query:
        result = _run_query(pipeline, query, top_k)
        if result is None:
            raise typer.Exit(1)
        if json_out:
            console.print_json(json.dumps(result.to_dict()))
        else:
            _print_result(result)
        return

    # --- Interactive loop -----------------------------------------------------
    console.print("[bold]Ask anything about the newsletters.[/bold]")
    console.print("[dim]Type 'exit', 'quit', or press Ctrl+C to quit.[/dim]\n")

    while True:
        try:
            raw = console.input("[bold cyan]You[/bold cyan] > ").strip()
        except (EOFError, KeyboardInterrupt):
            console.print("\n[dim]Goodbye.[/dim]")
            break

        if not raw:
            continue
        if raw.lower() in {"exit", "quit", "q"}:
            console.print("[dim]Goodbye.[/dim]")
            break

        with console.status("[cyan]Thinking...[/cyan]"):
            result = _run_query(pipeline, raw, top_k)
        if result is not None:
            _print_result(result)


def _run_query(pipeline: NewsletterRAGPipeline, query: str, top_k: Optional[int]) -> Optional[QueryResult]:
    try:
        return pipeline.answer(query, top_k=top_k)
    except NewsletterRAGError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        return None


def _print_result(result: QueryResult) -> None:
    """Render a QueryResult to the terminal using Rich."""
    console.print()
    console.print(
        Panel(
            Markdown(result.answer),
            title="[bold green]Answer[/bold green]",
            border_style="green",
            expand=True,
        )
    )

    if result.sources:
        table = Table("No.", "Source", box=box.SIMPLE, show_header=True, header_style="bold dim")
        for i, title in enumerate(result.sources, start=1):
            table.add_row(str(i), truncate_text(title, 70))
        console.print(table)

    console.print(
        f"[dim]"
        f"init={result.init_ms:.0f}ms  "
        f"retrieve={result.retrieval_ms:.0f}ms  "
        f"generate={result.generation_ms:.0f}ms  |  "
        f"backend={result.backend}"
        f"[/dim]\n"
    )


@app.command()
def status(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config YAML"),
) -> None:
    """Show cache and credential state."""
    settings = load_settings(config)
    result = EmbeddingCache(settings.cache_path).load()

    console.print()
    console.print("[bold]Newsletter RAG status[/bold]")
    console.print(f"  Corpus     : {settings.corpus_path} "
                  f"{'[green](found)[/green]' if settings.corpus_path.exists() else '[red](missing)[/red]'}")
    if isinstance(result, CacheHit):
        dims = len(result.chunks[0].embedding)
        console.print(f"  Cache      : [green]valid[/green] | {len(result.chunks):,} chunks | dim={dims}")
    elif isinstance(result, CacheCorrupt):
        console.print(f"  Cache      : [red]invalid[/red] ({result.reason})")
    else:
        console.print("  Cache      : [yellow]missing[/yellow]")
    console.print(f"  Gemini     : {'[green]configured[/green]' if settings.gemini_api_key else '[red]GEMINI_API_KEY not set[/red]'}")
    console.print(f"  OpenRouter : {'[green]configured[/green]' if settings.openrouter_api_key else '[yellow]OPENROUTER_API_KEY not set[/yellow]'}")
    console.print()


# --- Entry Point --------------------------------------------------------------

if __name__ == "__main__":
    app()
