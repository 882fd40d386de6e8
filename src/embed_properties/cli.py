"""CLI for embedding the property collection."""

from __future__ import annotations

import argparse
import logging

from dotenv import load_dotenv

from common.cli_helpers import setup_logging
from embed_properties.config import get_config, load_config, set_config
from embed_properties.embed_properties import embed_properties
from embed_properties.errors import SetupError

load_dotenv()

setup_logging()
logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Run the pipeline. Returns 0 once all workers finished, 1 on setup failure."""
    parser = argparse.ArgumentParser(description="Enrich property listings with embedding vectors")
    parser.add_argument(
        "--config",
        default=None,
        help="Config file to use: 'prod' (Gemini) or 'local' (sentence-transformers). Defaults to CONFIG_ENV, then 'prod'",
    )
    args = parser.parse_args(argv)

    try:
        if args.config is not None:
            set_config(load_config(args.config))
        config = get_config()
    except (FileNotFoundError, ValueError) as exc:
        logger.error("Invalid configuration: %s", exc)
        return 1

    try:
        summary = embed_properties(config)
    except SetupError as exc:
        logger.error("Setup failed: %s", exc)
        return 1

    if summary.failed_workers:
        logger.warning("Workers with errors: %s", summary.failed_workers)
    logger.info(
        "Import completed: %d of %d properties embedded in this run",
        summary.processed_count,
        summary.total_records,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
