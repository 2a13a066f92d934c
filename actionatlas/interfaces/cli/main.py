"""
CLI Main - Typer-based command-line interface.

Usage:
    actionatlas init
    actionatlas ingest data/activities.json
    actionatlas embed
    actionatlas build-index
    actionatlas search "volunteer in Paris"
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from actionatlas.config import ActionAtlasError, Settings, get_settings

if TYPE_CHECKING:
    from actionatlas.adapters.sqlite import SQLiteRepository
    from actionatlas.domains.search import SearchResponse

app = typer.Typer(
    name="actionatlas",
    help="ActionAtlas - Location-aware search for volunteering activities",
    add_completion=False,
)
console = Console()


def _configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def _open_repository(settings: Settings) -> SQLiteRepository:
    from actionatlas.adapters.sqlite import SQLiteRepository

    repo = SQLiteRepository(settings.db_path)
    await repo.initialize()
    return repo


def _load_activities(path: Path) -> list[dict[str, Any]]:
    """Activities from a JSON list or an object with an "activities" list."""
    data = json.loads(path.read_text())
    if isinstance(data, dict):
        data = data.get("activities", [])
    if not isinstance(data, list):
        raise typer.BadParameter(f"{path} does not contain a list of activities")
    return data


@app.command()
def init() -> None:
    """Create the data directory and database schema."""
    settings = get_settings()
    _configure_logging(settings)
    asyncio.run(_init_async(settings))


async def _init_async(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.faiss_index_path.mkdir(parents=True, exist_ok=True)

    repo = await _open_repository(settings)
    try:
        count = await repo.count()
    finally:
        await repo.close()

    console.print("\n[green]Initialization complete![/green]")
    console.print(f"[dim]Database: {settings.db_path} ({count} activities)[/dim]")


@app.command()
def ingest(
    path: Path = typer.Argument(..., help="JSON file with activity documents"),
) -> None:
    """Load activity documents into the database."""
    if not path.exists():
        console.print(f"[red]Error:[/red] File not found: {path}")
        raise typer.Exit(1)

    settings = get_settings()
    _configure_logging(settings)
    asyncio.run(_ingest_async(settings, _load_activities(path)))


async def _ingest_async(settings: Settings, activities: list[dict[str, Any]]) -> None:
    repo = await _open_repository(settings)
    inserted = 0
    failed = 0

    try:
        for activity in activities:
            try:
                await repo.insert_activity(activity)
                inserted += 1
            except ActionAtlasError as e:
                failed += 1
                console.print(f"[yellow]Skipped:[/yellow] {e.message}")
    finally:
        await repo.close()

    console.print(f"\n[green]Inserted {inserted} activities[/green] ({failed} skipped)")


@app.command()
def embed(
    batch_size: int = typer.Option(50, "--batch", "-b", help="Activities per embedding request"),
) -> None:
    """Generate embeddings for activities that have none."""
    settings = get_settings()
    _configure_logging(settings)
    asyncio.run(_embed_async(settings, batch_size))


async def _embed_async(settings: Settings, batch_size: int) -> None:
    from actionatlas.adapters.openai import OpenAIEmbeddingClient
    from actionatlas.domains.search import prepare_for_embedding

    repo = await _open_repository(settings)
    embedder = OpenAIEmbeddingClient(
        api_key=settings.openai_api_key,
        model=settings.embedding_model,
        dimension=settings.embedding_dimension,
    )
    embedded = 0

    try:
        total = len(await repo.find_missing_embeddings(limit=1_000_000))
        if total == 0:
            console.print("[green]All activities already have embeddings![/green]")
            return

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            console=console,
        ) as progress:
            task = progress.add_task("Embedding activities...", total=total)

            while True:
                batch = await repo.find_missing_embeddings(limit=batch_size)
                if not batch:
                    break
                texts = [prepare_for_embedding("activity", doc) for doc in batch]
                vectors = await embedder.embed_many(texts)
                for doc, vector in zip(batch, vectors):
                    await repo.update_embedding(doc["activity_id"], vector, model=embedder.model)
                embedded += len(batch)
                progress.advance(task, len(batch))

    except ActionAtlasError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)
    finally:
        await embedder.close()
        await repo.close()

    console.print(
        f"\n[green]Embedded {embedded} activities[/green] ({embedder.tokens_used} tokens)"
    )


@app.command("build-index")
def build_index(
    index_type: str = typer.Option("Flat", "--type", "-t", help="FAISS index type (Flat or HNSW)"),
) -> None:
    """Rebuild the vector index from stored embeddings."""
    settings = get_settings()
    _configure_logging(settings)
    asyncio.run(_build_index_async(settings, index_type))


async def _build_index_async(settings: Settings, index_type: str) -> None:
    repo = await _open_repository(settings)
    try:
        index = await repo.build_vector_index(
            dimension=settings.embedding_dimension, index_type=index_type
        )
        await index.save(settings.faiss_index_path)
    except (ActionAtlasError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    finally:
        await repo.close()

    console.print(f"\n[green]Indexed {index.size} activities[/green]")
    console.print(f"[dim]Saved to: {settings.faiss_index_path}[/dim]")


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query"),
    limit: int | None = typer.Option(None, "--limit", "-n", help="Number of results"),
    offset: int = typer.Option(0, "--offset", help="Results to skip"),
    category: list[str] | None = typer.Option(None, "--category", "-c", help="Category filter (repeatable)"),
    lat: float | None = typer.Option(None, "--lat", help="Search latitude"),
    lon: float | None = typer.Option(None, "--lon", help="Search longitude"),
    radius: float | None = typer.Option(None, "--radius", help="Max distance in meters"),
    auto_location: bool = typer.Option(
        True, "--auto-location/--no-auto-location", help="Detect a location in the query text"
    ),
) -> None:
    """Search activities."""
    from actionatlas.config import SearchValidationError
    from actionatlas.domains.search import SearchQuery

    settings = get_settings()
    _configure_logging(settings)

    if (lat is None) != (lon is None):
        console.print("[red]Error:[/red] --lat and --lon must be given together")
        raise typer.Exit(1)

    location = None
    if lat is not None and lon is not None:
        location = {
            "latitude": lat,
            "longitude": lon,
            "max_distance_meters": (
                settings.search_default_max_distance_meters if radius is None else radius
            ),
        }

    try:
        search_query = SearchQuery.from_params(
            query=query,
            limit=settings.search_default_limit if limit is None else limit,
            offset=offset,
            category=category or None,
            auto_detect_location=auto_location,
            location=location,
        )
    except SearchValidationError as e:
        console.print(f"[red]Invalid search:[/red] {e.message}")
        raise typer.Exit(1)

    asyncio.run(_search_async(settings, search_query))


async def _search_async(settings: Settings, search_query: Any) -> None:
    from actionatlas.adapters.faiss import FAISSIndex
    from actionatlas.adapters.gemini import GeminiClient, GeminiConfig
    from actionatlas.adapters.google_maps import GeocodingClient
    from actionatlas.adapters.openai import OpenAIEmbeddingClient
    from actionatlas.domains.search import (
        EmbeddingCacheImpl,
        LocationAwareSearch,
        LocationQueryAnalyzer,
        SearchSettings,
    )

    repo = await _open_repository(settings)
    if FAISSIndex.exists(settings.faiss_index_path):
        index = FAISSIndex()
        await index.load(settings.faiss_index_path)
        repo.attach_index(index)

    embedder = OpenAIEmbeddingClient(
        api_key=settings.openai_api_key,
        model=settings.embedding_model,
        dimension=settings.embedding_dimension,
    )
    geocoder = GeocodingClient(
        api_key=settings.google_maps_api_key,
        base_url=settings.geocoding_base_url,
        timeout=settings.geocoding_timeout_seconds,
    )
    gemini = GeminiClient(
        GeminiConfig(
            model=settings.gemini_model,
            api_key=settings.gemini_api_key or None,
            rate_limit_rpm=settings.gemini_rate_limit_rpm,
        )
    )

    engine = LocationAwareSearch(
        embedder=embedder,
        cache=EmbeddingCacheImpl(default_ttl=settings.embedding_cache_ttl_seconds),
        store=repo,
        location_analyzer=LocationQueryAnalyzer(gemini),
        geocoder=geocoder,
        settings=SearchSettings.from_settings(settings),
    )

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task("Searching...", total=None)
            response = await engine.search(search_query)
    except ActionAtlasError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1)
    finally:
        await embedder.close()
        await geocoder.close()
        await repo.close()

    _print_response(response)


def _print_response(response: SearchResponse) -> None:
    metadata = response.metadata

    if metadata.detected_location is not None:
        lon, lat = metadata.detected_location.coordinates
        console.print(
            Panel(
                f"{metadata.detected_location.formatted_address} ({lat:.4f}, {lon:.4f})",
                title="Detected Location",
                style="cyan",
            )
        )

    table = Table(title=f"{len(response.results)} of {response.total} results")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Activity", style="cyan")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Relevance", justify="right")
    table.add_column("Distance", justify="right")

    for rank, result in enumerate(response.results, 1):
        distance = (
            f"{result.distance_meters / 1000:.1f} km"
            if result.distance_meters is not None
            else "-"
        )
        table.add_row(
            str(rank),
            str(result.document.get("title") or result.activity_id),
            f"{result.final_score:.3f}" if result.final_score is not None else "-",
            f"{result.relevance_score:.3f}",
            distance,
        )

    console.print(table)
    console.print(
        f"[dim]{response.execution_time_ms}ms total | "
        f"embedding {metadata.embedding_ms}ms (cached={metadata.cached_embedding}) | "
        f"{metadata.vector_search_strategy.value} vector search {metadata.vector_search_ms}ms | "
        f"location {metadata.location_mode.value}[/dim]"
    )


@app.command()
def version() -> None:
    """Show version information."""
    from actionatlas import __version__

    console.print(f"ActionAtlas v{__version__}")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
