"""Per-partition enrichment loop."""

import logging

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from embed_properties.batch_writer import BatchWriter
from embed_properties.config import Config
from embed_properties.description import build_property_description
from embed_properties.embedding import EmbeddingClient
from embed_properties.errors import EmbeddingError
from embed_properties.models import EnrichedRecord, ProcessingResult, SourceRecord, WorkAssignment
from embed_properties.stores import SourceStore, TargetStore, get_engine, source_table, target_table

logger = logging.getLogger(__name__)

SCAN_LOG_INTERVAL = 100
PROCESSED_LOG_INTERVAL = 10


def _already_embedded(target: TargetStore, record: SourceRecord, worker_id: int) -> bool:
    try:
        return target.exists(record.id)
    except SQLAlchemyError as exc:
        logger.warning("[Worker %d] Error checking for existing property %s: %s", worker_id, record.id, exc)
        return False


def process_partition(
    assignment: WorkAssignment,
    source: SourceStore,
    target: TargetStore,
    client: EmbeddingClient,
    batch_size: int = 50,
    dimensions: int | None = None,
) -> ProcessingResult:
    """
    Enrich every source record owned by one worker.

    The worker scans the whole source collection and skips records outside its
    partition, records already present in the target, records that fail to
    decode and records whose embedding cannot be generated.

    Args:
        assignment: Worker id and total worker count
        source: Source store opened by this worker
        target: Target store opened by this worker
        client: Embedding client with retry policy
        batch_size: Records per bulk insert
        dimensions: Expected vector length, or None to accept any length

    Returns:
        ProcessingResult with the number of records handed to the batch writer,
        and the error message if the scan itself failed
    """
    worker_id = assignment.worker_id
    writer = BatchWriter(target, batch_size=batch_size, worker_id=worker_id)
    processed = 0
    error = None

    logger.info("[Worker %d] Starting to process properties", worker_id)

    try:
        for index, document in enumerate(source.scan()):
            if index % SCAN_LOG_INTERVAL == 0:
                logger.info("[Worker %d] Scanning property %d", worker_id, index + 1)

            if not assignment.owns(index):
                continue

            try:
                record = SourceRecord.from_document(document)
            except ValidationError as exc:
                logger.warning("[Worker %d] Error decoding property at index %d: %s", worker_id, index, exc)
                continue

            if _already_embedded(target, record, worker_id):
                logger.info("[Worker %d] Property %s already has embeddings, skipping", worker_id, record.id)
                continue

            description = build_property_description(record)

            try:
                embedding = client.embed(description)
            except EmbeddingError as exc:
                logger.error("[Worker %d] Error generating embedding for property %s: %s", worker_id, record.id, exc)
                continue

            if dimensions is not None and len(embedding) != dimensions:
                logger.error(
                    "[Worker %d] Embedding for property %s has %d dimensions, expected %d",
                    worker_id,
                    record.id,
                    len(embedding),
                    dimensions,
                )
                continue

            writer.add(EnrichedRecord(metadata=record, embeddings=embedding))
            processed += 1
            if processed % PROCESSED_LOG_INTERVAL == 0:
                logger.info("[Worker %d] Processed %d properties so far", worker_id, processed)
    except SQLAlchemyError as exc:
        error = f"cursor error: {exc}"
        logger.error("[Worker %d] Scan aborted: %s", worker_id, exc)
    finally:
        writer.flush()

    if error is None:
        logger.info("[Worker %d] Completed processing %d properties", worker_id, processed)
    return ProcessingResult(worker_id=worker_id, processed_count=processed, error=error)


def run_worker(assignment: WorkAssignment, config: Config, client: EmbeddingClient) -> ProcessingResult:
    """Open this worker's own store connections and process its partition."""
    source_engine = get_engine(config.store.source_url)
    target_engine = get_engine(config.store.target_url)
    try:
        with source_engine.connect() as source_conn, target_engine.connect() as target_conn:
            source = SourceStore(source_conn, source_table(config.store.source_table))
            target = TargetStore(target_conn, target_table(config.store.target_table))
            return process_partition(
                assignment,
                source,
                target,
                client,
                batch_size=config.batch_size,
                dimensions=config.embedding.dimensions,
            )
    except SQLAlchemyError as exc:
        logger.error("[Worker %d] Connection error: %s", assignment.worker_id, exc)
        return ProcessingResult(worker_id=assignment.worker_id, processed_count=0, error=f"connection error: {exc}")
    finally:
        source_engine.dispose()
        target_engine.dispose()
