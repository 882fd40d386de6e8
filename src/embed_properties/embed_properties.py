"""Coordinate parallel embedding of the property collection."""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed

from sqlalchemy.exc import SQLAlchemyError

from embed_properties.config import Config
from embed_properties.embedding import EmbeddingClient, EmbeddingProvider, build_embedding_provider
from embed_properties.errors import SetupError
from embed_properties.models import ProcessingResult, RunSummary, WorkAssignment
from embed_properties.stores import (
    SourceStore,
    TargetStore,
    create_target_table,
    get_engine,
    source_table,
    target_table,
)
from embed_properties.worker import run_worker

logger = logging.getLogger(__name__)


def _count_source_records(config: Config) -> int:
    engine = get_engine(config.store.source_url)
    try:
        with engine.connect() as connection:
            source = SourceStore(connection, source_table(config.store.source_table))
            return source.count()
    except SQLAlchemyError as exc:
        raise SetupError(f"Error counting properties: {exc}") from exc
    finally:
        engine.dispose()


def _prepare_target(config: Config) -> None:
    engine = get_engine(config.store.target_url)
    try:
        with engine.connect() as connection:
            table = target_table(config.store.target_table)
            create_target_table(connection, table)
            TargetStore(connection, table).ensure_index()
    except SQLAlchemyError as exc:
        raise SetupError(f"Error preparing target table {config.store.target_table}: {exc}") from exc
    finally:
        engine.dispose()


def embed_properties(config: Config, provider: EmbeddingProvider | None = None) -> RunSummary:
    """
    Embed every source property using ``config.workers`` parallel workers.

    Args:
        config: Pipeline configuration
        provider: Embedding provider to use instead of the configured one

    Returns:
        RunSummary with the source size and the per-worker results

    Raises:
        SetupError: If the provider, the source store or the target store
            cannot be set up. No worker is started in that case.
    """
    if provider is None:
        provider = build_embedding_provider(config.embedding)

    total_records = _count_source_records(config)
    logger.info("Total properties to process: %d", total_records)

    _prepare_target(config)

    client = EmbeddingClient(
        provider,
        max_retries=config.embedding.max_retries,
        base_delay=config.embedding.base_delay,
    )

    workers = config.workers
    logger.info("Starting property embeddings generator with %d workers", workers)

    results: list[ProcessingResult] = []
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="embed-worker") as pool:
        futures = {
            pool.submit(run_worker, WorkAssignment(worker_id, workers), config, client): worker_id
            for worker_id in range(1, workers + 1)
        }
        for future in as_completed(futures):
            worker_id = futures[future]
            try:
                result = future.result()
            except Exception as exc:
                logger.exception("Worker %d crashed", worker_id)
                result = ProcessingResult(worker_id=worker_id, processed_count=0, error=str(exc))
            results.append(result)

            if result.ok:
                logger.info("Worker %d completed processing %d properties", worker_id, result.processed_count)
            else:
                logger.error("Worker %d encountered an error: %s", worker_id, result.error)

    results.sort(key=lambda r: r.worker_id)
    processed = sum(result.processed_count for result in results if result.ok)
    logger.info("All workers completed. Total properties processed: %d", processed)

    return RunSummary(total_records=total_records, processed_count=processed, results=results)
