"""
Import Embeddings CLI - Generate the persisted vector file.

Embeds every LOINC record in batches and writes data/loinc-embeddings.json.
Progress is checkpointed after each batch, so an interrupted or failed run is
finished by running the same command again.

Usage:
    # Convert the LOINC table, then embed everything
    python -m loinc_search.cli.import_embeddings --csv data/Loinc.csv

    # Resume an interrupted import
    python -m loinc_search.cli.import_embeddings

    # Start over, discarding saved progress
    python -m loinc_search.cli.import_embeddings --fresh
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from ..config.config_loader import SearchConfig
from ..core.exceptions import ConfigError, CorpusError, ImportBatchError
from ..core.logging import configure_logging
from ..corpus.records import load_loinc_codes, records_from_csv, save_loinc_codes
from ..importer.batch_importer import ResumableImporter
from ..providers.ollama_client import OllamaClient


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the import CLI."""
    parser = argparse.ArgumentParser(
        prog="loinc-import",
        description="Generate LOINC embeddings in resumable batches",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Convert Loinc.csv (ACTIVE rows only) and embed
  python -m loinc_search.cli.import_embeddings --csv data/Loinc.csv

  # Smaller batches with a longer pause between them
  python -m loinc_search.cli.import_embeddings --batch-size 50 --batch-delay 0.5
        """,
    )

    parser.add_argument(
        "--csv",
        type=str,
        default=None,
        help="LOINC table to convert into the codes file before importing",
    )
    parser.add_argument(
        "--codes",
        type=str,
        default=None,
        help="Codes file to embed (default: <data dir>/loinc-codes.json)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Vector file to write (default: <data dir>/loinc-embeddings.json)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Records per generator call (default: 100)",
    )
    parser.add_argument(
        "--batch-delay",
        type=float,
        default=None,
        help="Seconds to wait between batches (default: 0.1)",
    )
    parser.add_argument(
        "--embed-model",
        type=str,
        default=None,
        help="Embedding model name",
    )
    parser.add_argument(
        "--ollama-url",
        type=str,
        default=None,
        help="Ollama base URL",
    )
    parser.add_argument(
        "--fresh",
        action="store_true",
        help="Discard saved progress and start from the first record",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML config file",
    )
    parser.add_argument(
        "--structured-logs",
        action="store_true",
        help="Emit JSON log lines",
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

    configure_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        structured=args.structured_logs,
    )

    try:
        config = SearchConfig(args.config)
        loader_config = config.get_loader_config()
        importer_config = config.get_importer_config()
        provider_config = config.get_provider_config()

        if args.output:
            importer_config.output_path = args.output
        if args.batch_size is not None:
            importer_config.batch_size = args.batch_size
        if args.batch_delay is not None:
            importer_config.batch_delay_seconds = args.batch_delay
        importer_config.validate()
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    if args.embed_model:
        provider_config.embed_model = args.embed_model
    if args.ollama_url:
        provider_config.base_url = args.ollama_url

    codes_path = Path(args.codes) if args.codes else loader_config.codes_path

    try:
        if args.csv:
            logger.info(f"Reading LOINC table from {args.csv}...")
            records = records_from_csv(args.csv)
            save_loinc_codes(records, codes_path)
        elif codes_path.exists():
            records = load_loinc_codes(codes_path)
        else:
            logger.error(f"No codes file at {codes_path}; run with --csv <Loinc.csv> first")
            return 1
    except (OSError, CorpusError) as e:
        logger.error(f"Could not load LOINC records: {e}")
        return 1

    importer = ResumableImporter(OllamaClient(provider_config), importer_config)

    try:
        if args.fresh:
            importer.reset()
        result = importer.run(records)
    except ImportBatchError as e:
        logger.error(f"Import stopped: {e}")
        logger.error("Progress has been saved; run the same command again to resume")
        return 1
    except OSError as e:
        logger.error(f"Import stopped, could not write import files: {e}")
        return 1

    print(json.dumps(result.to_dict(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
