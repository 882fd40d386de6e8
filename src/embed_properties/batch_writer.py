"""Bounded batch writes of enriched records."""

import logging

from sqlalchemy.exc import SQLAlchemyError

from embed_properties.models import EnrichedRecord
from embed_properties.stores import TargetStore

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50


class BatchWriter:
    """
    Accumulate enriched records and insert them in bulk.

    A batch is written as soon as it reaches ``batch_size`` records. A failed
    insert is logged and the whole batch is dropped without retry.
    """

    def __init__(self, target: TargetStore, batch_size: int = DEFAULT_BATCH_SIZE, worker_id: int | None = None):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.target = target
        self.batch_size = batch_size
        self.worker_id = worker_id
        self.pending: list[EnrichedRecord] = []
        self.inserted_count = 0
        self.dropped_count = 0

    def add(self, record: EnrichedRecord) -> None:
        self.pending.append(record)
        if len(self.pending) >= self.batch_size:
            self._write(final=False)

    def flush(self) -> int:
        """Write whatever is pending. Returns the number of records inserted."""
        if not self.pending:
            return 0
        return self._write(final=True)

    def _write(self, final: bool) -> int:
        batch = self.pending
        self.pending = []
        label = "final batch" if final else "batch"
        try:
            inserted = self.target.insert_many(batch)
        except SQLAlchemyError as exc:
            self.dropped_count += len(batch)
            logger.error("[Worker %s] Error inserting %s of %d properties: %s", self.worker_id, label, len(batch), exc)
            return 0

        self.inserted_count += inserted
        logger.info(
            "[Worker %s] Inserted %s of %d properties (total inserted: %d)",
            self.worker_id,
            label,
            inserted,
            self.inserted_count,
        )
        return inserted
