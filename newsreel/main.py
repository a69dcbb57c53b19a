"""
Newsreel - Main Entry Point.
FastAPI server and CLI interface.

Usage:
    python -m newsreel.main run
    python -m newsreel.main seed
    python -m newsreel.main health-check | retry-disabled | cleanup
    python -m newsreel.main clear-old --days 7
    python -m newsreel.main serve --port 8000
"""

import argparse
import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from newsreel.config import Settings, get_settings
from newsreel.database import Database, get_database
from newsreel.orchestrator import NewsPipeline, PipelineError
from newsreel.sources.discovery import seed_sources
from newsreel.sources.health import HealthMonitor
from newsreel.sources.registry import SourceRegistry
from newsreel.tools.classifier import Classifier

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

# Suppress noisy loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


def create_app(
    db: Optional[Database] = None,
    settings: Optional[Settings] = None,
    classifier: Optional[Classifier] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the API app. Arguments override what the lifespan would create."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.settings = settings or get_settings()
        app.state.db = db or get_database()
        app.state.db.create_tables()
        app.state.classifier = classifier
        app.state.transport = transport
        app.state.pipeline_lock = asyncio.Lock()
        logger.info("Newsreel API started")
        yield

    from newsreel.api import health, news, sources

    app = FastAPI(
        title="Newsreel",
        description="Breaking-news ingestion, dedup and source-health pipeline",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(health.router)
    app.include_router(news.router)
    app.include_router(sources.router)
    return app


# ── CLI ──────────────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Newsreel breaking-news pipeline")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("run", help="Collect, dedupe, classify and store once")
    sub.add_parser("seed", help="Load the built-in source catalog")
    sub.add_parser("health-check", help="Disable failing / promote reliable sources")
    sub.add_parser("retry-disabled", help="Re-enable sources disabled for 7+ days")
    sub.add_parser("cleanup", help="Delete unverified sources that keep failing")

    clear = sub.add_parser("clear-old", help="Delete articles past the retention window")
    clear.add_argument("--days", type=int, default=None, help="Retention window (default: RETENTION_DAYS)")

    serve = sub.add_parser("serve", help="Start the FastAPI server")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000, help="Server port (default: 8000)")
    return parser


async def cli_main(argv=None) -> int:
    """Command-line interface. Returns the process exit code."""
    args = build_parser().parse_args(argv)
    settings = get_settings()

    if args.command == "serve":
        import uvicorn
        logger.info(f"Starting server on port {args.port}...")
        config = uvicorn.Config(create_app(settings=settings), host=args.host, port=args.port)
        await uvicorn.Server(config).serve()
        return 0

    db = get_database()
    db.create_tables()
    registry = SourceRegistry(db)

    if args.command == "run":
        try:
            stats = await NewsPipeline(db, settings=settings, registry=registry).run()
        except PipelineError as e:
            logger.error(f"Run failed: {e} (partial stats: {e.stats.model_dump()})")
            return 1
        print(stats.model_dump_json(indent=2))
    elif args.command == "seed":
        print(seed_sources(registry).model_dump_json(indent=2))
    elif args.command == "health-check":
        print(HealthMonitor(registry).run_health_checks().model_dump_json(indent=2))
    elif args.command == "retry-disabled":
        print(HealthMonitor(registry).retry_disabled().model_dump_json(indent=2))
    elif args.command == "cleanup":
        print(HealthMonitor(registry).cleanup_failed().model_dump_json(indent=2))
    elif args.command == "clear-old":
        pipeline = NewsPipeline(db, settings=settings, registry=registry)
        deleted = pipeline.retention_sweep(args.days)
        print(f"Deleted {deleted} articles")
    return 0


def main():
    """Entry point for CLI."""
    sys.exit(asyncio.run(cli_main()))


if __name__ == "__main__":
    main()
