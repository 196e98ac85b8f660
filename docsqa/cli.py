"""Command line entry point.

Usage:
    docsqa ingest                      # Index ./docs into the default collection
    docsqa ingest --source notion      # Index every page shared with the Notion integration
    docsqa query "What is X?"          # Ask one question
    docsqa query --interactive         # Ask questions until an empty line or EOF
    docsqa check                       # Verify Ollama and the vector store are ready
"""
import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import structlog

from docsqa import config
from docsqa.llm.models import check_models
from docsqa.loaders import get_loader
from docsqa.query import QueryPipeline
from docsqa.rag.ingest import IngestPipeline
from docsqa.rag.retriever import SimilaritySearchClient
from docsqa.rag.store import get_vector_store

logger = structlog.get_logger()

GREEN = "\033[92m"
RED = "\033[91m"
RESET = "\033[0m"


def configure_logging(level: str) -> None:
    """Send structured JSON logs to stderr so stdout only carries answers."""
    logging.basicConfig(stream=sys.stderr, format="%(message)s", level=level.upper())
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


class ProgressReporter:
    """Simple progress reporter for ingestion."""

    def __init__(self, verbose: bool = False, out=None):
        self.verbose = verbose
        self.out = out or sys.stdout
        self.start_time = None

    def start(self, message: str):
        self.start_time = datetime.now()
        print(f"\n{'=' * 60}\n  {message}\n{'=' * 60}\n", file=self.out)

    def update(self, current: int, total: int, doc_id: str):
        percentage = (current / total) * 100 if total > 0 else 0
        bar_length = 40
        filled = int(bar_length * current / total) if total > 0 else 0
        bar = "█" * filled + "░" * (bar_length - filled)

        print(
            f"\r  [{bar}] {percentage:5.1f}% ({current}/{total}) {doc_id[:30]:<30}",
            end="\n" if self.verbose else "",
            flush=True,
            file=self.out,
        )

    def finish(self, stats: dict):
        elapsed_seconds = (datetime.now() - self.start_time).total_seconds()

        print("\n", file=self.out)
        print(f"  Documents processed:  {stats['documents_processed']}", file=self.out)
        print(f"  Documents failed:     {stats['documents_failed']}", file=self.out)
        print(f"  Chunks created:       {stats['chunks_created']}", file=self.out)
        print(f"  Embeddings generated: {stats['embeddings_generated']}", file=self.out)
        print(f"  Time elapsed:         {elapsed_seconds:.1f}s\n", file=self.out)

        if stats["documents_failed"] > 0:
            print(
                f"Warning: {stats['documents_failed']} document(s) failed to index. "
                "Check logs for details.\n",
                file=self.out,
            )


async def run_ingest(args: argparse.Namespace) -> int:
    loader_kwargs = {"docs_dir": args.docs_dir} if args.source == "local" else {}
    loader = get_loader(args.source, **loader_kwargs)

    pipeline = IngestPipeline(
        loader=loader,
        store=get_vector_store(args.backend),
        collection=args.collection,
    )

    progress = ProgressReporter(verbose=args.verbose)
    progress.start(f"{'Rebuilding' if args.rebuild else 'Indexing'} {args.source} documents")

    stats = await pipeline.run(rebuild=args.rebuild, progress_callback=progress.update)
    progress.finish(stats)

    return 1 if stats["documents_failed"] > 0 else 0


async def _read_question(prompt: str = "Prompt: ") -> Optional[str]:
    try:
        return await asyncio.to_thread(input, prompt)
    except EOFError:
        return None


async def run_query(args: argparse.Namespace) -> int:
    pipeline = QueryPipeline(
        searcher=SimilaritySearchClient(store=get_vector_store(args.backend)),
        collection=args.collection,
    )

    if args.question:
        await pipeline.ask(args.question)
        return 0

    while True:
        question = await _read_question()
        if question is None or not question.strip():
            break
        await pipeline.ask(question.strip())
        if not args.interactive:
            break

    return 0


async def run_check(args: argparse.Namespace) -> int:
    ok = True

    def report(passed: bool, message: str) -> None:
        nonlocal ok
        ok = ok and passed
        mark = f"{GREEN}✓{RESET}" if passed else f"{RED}✗{RESET}"
        print(f"{mark} {message}")

    try:
        models = await check_models([config.EMBEDDING_MODEL, config.CHAT_MODEL])
        report(True, f"Ollama reachable at {config.OLLAMA_BASE_URL}")
        for model, installed in models.items():
            report(installed, f"Model {model}" + ("" if installed else " is not installed"))
    except Exception as e:
        report(False, f"Ollama unreachable at {config.OLLAMA_BASE_URL}: {e}")

    try:
        store = get_vector_store(args.backend)
        exists = await store.collection_exists(args.collection)
        report(exists, f"Collection '{args.collection}' on {store.backend}" + ("" if exists else " not found"))
    except Exception as e:
        report(False, f"Vector store unavailable: {e}")

    return 0 if ok else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docsqa",
        description="Ask questions about your documents with a local LLM",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--log-level", default=config.LOG_LEVEL, help="Log level (default: %(default)s)")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--collection",
        default=config.COLLECTION_NAME,
        help="Vector store collection (default: %(default)s)",
    )
    common.add_argument(
        "--backend",
        choices=["qdrant", "faiss"],
        default=config.VECTOR_BACKEND,
        help="Vector store backend (default: %(default)s)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser("ingest", parents=[common], help="Index documents")
    ingest.add_argument("--source", choices=["local", "notion"], default="local")
    ingest.add_argument(
        "--docs-dir",
        type=Path,
        default=None,
        help=f"Local docs directory (default: {config.DOCS_DIR})",
    )
    ingest.add_argument(
        "--rebuild",
        action="store_true",
        help="Delete the collection before indexing",
    )
    ingest.add_argument("--verbose", "-v", action="store_true", help="Show one progress line per document")
    ingest.set_defaults(handler=run_ingest)

    query = subparsers.add_parser("query", parents=[common], help="Ask a question")
    query.add_argument("question", nargs="?", help="Question (prompted for when omitted)")
    query.add_argument(
        "--interactive",
        "-i",
        action="store_true",
        help="Keep asking until an empty line or EOF",
    )
    query.set_defaults(handler=run_query)

    check = subparsers.add_parser("check", parents=[common], help="Verify the setup")
    check.set_defaults(handler=run_check)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        return asyncio.run(args.handler(args))

    except KeyboardInterrupt:
        print("\n\nCancelled by user.\n", file=sys.stderr)
        return 1

    except Exception as e:
        logger.error("command_failed", command=args.command, error=str(e), error_type=type(e).__name__)
        print(f"\nError: {e}\n", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
