"""
Search CLI - Match a free-text query to LOINC codes.

Usage:
    python -m loinc_search.cli.search "blood sugar"
    python -m loinc_search.cli.search "hemoglobin a1c" --limit 3 --no-explain
    python -m loinc_search.cli.search "cholesterol" --json
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv

from ..config.config_loader import SearchConfig
from ..core.exceptions import ConfigError, CorpusError, EmbeddingProviderError, StoreBuildError
from ..core.logging import configure_logging
from ..providers.ollama_client import OllamaClient
from ..retrieval.service import SearchService
from ..retrieval.store import EmbeddingStore


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the search CLI."""
    parser = argparse.ArgumentParser(
        prog="loinc-search",
        description="Semantic search over LOINC codes",
    )

    parser.add_argument(
        "query",
        nargs="?",
        default=None,
        help="Free-text description of the lab test",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Number of matches to return (default: 5)",
    )
    parser.add_argument(
        "--no-explain",
        action="store_true",
        help="Skip the explanation for each match",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print matches as JSON",
    )
    parser.add_argument(
        "--chat-model",
        type=str,
        default=None,
        help="Model used for explanations",
    )
    parser.add_argument(
        "--list-models",
        action="store_true",
        help="List models available on the Ollama server and exit",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML config file",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    load_dotenv(override=False)

    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(level=logging.DEBUG if args.verbose else logging.WARNING)

    try:
        config = SearchConfig(args.config)
        loader_config = config.get_loader_config()
        provider_config = config.get_provider_config()
        limit = args.limit if args.limit is not None else config.get_search_limit()
        workers = config.get_search_workers()
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    if args.chat_model:
        provider_config.chat_model = args.chat_model

    client = OllamaClient(provider_config)

    if args.list_models:
        try:
            for name in client.list_models():
                print(name)
        except EmbeddingProviderError as e:
            logger.error(f"Could not list models: {e}")
            return 1
        return 0

    if not args.query:
        parser.error("a query is required")

    store = EmbeddingStore(
        chunk_size=loader_config.chunk_size,
        max_buffer_chars=loader_config.max_buffer_chars,
        prefetch=loader_config.prefetch,
    )
    service = SearchService(
        store,
        client,
        explainer=None if args.no_explain else client,
        records_path=loader_config.codes_path,
        vector_path=loader_config.vectors_path,
        workers=workers,
    )

    try:
        results = service.match(args.query, limit=limit, explain=not args.no_explain)
    except (StoreBuildError, OSError) as e:
        print(f"Failed to load LOINC embeddings: {e}", file=sys.stderr)
        return 1
    except (ValueError, CorpusError, EmbeddingProviderError) as e:
        print(f"Search failed: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps({"results": [r.to_dict() for r in results]}, indent=2))
        return 0

    for rank, result in enumerate(results, start=1):
        record = result.record
        print(f"{rank}. {record.code}  {record.display_name}  ({result.confidence:.3f})")
        if not args.no_explain:
            print(f"   {result.reasoning}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
