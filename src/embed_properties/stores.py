"""SQLAlchemy-backed source and target stores."""

import json
import logging
from typing import Any, Iterable, Iterator, Mapping

from sqlalchemy import (
    JSON,
    Column,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    func,
    insert,
    select,
    type_coerce,
)
from sqlalchemy.engine import Connection, Engine

from embed_properties.models import EnrichedRecord

logger = logging.getLogger(__name__)

SCAN_YIELD_PER = 500


def get_engine(url: str) -> Engine:
    """Create an engine for a store URL."""
    return create_engine(url)


def source_table(name: str = "properties", metadata: MetaData | None = None) -> Table:
    """Source listings: one JSON document per row, keyed by listing id."""
    return Table(
        name,
        metadata or MetaData(),
        Column("id", String, primary_key=True),
        Column("document", JSON, nullable=False),
    )


def target_table(name: str = "properties_embeddings", metadata: MetaData | None = None) -> Table:
    """Enriched listings with a secondary index on the source id."""
    return Table(
        name,
        metadata or MetaData(),
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("source_id", String, nullable=False),
        Column("metadata", JSON, nullable=False),
        Column("embeddings", JSON, nullable=False),
        Index(f"ix_{name}_source_id", "source_id"),
    )


def create_target_table(connection: Connection, table: Table) -> None:
    """Create the target table if it does not exist yet."""
    with connection.begin():
        table.create(connection, checkfirst=True)


def _decode_document(row_id: str, value: Any) -> Any:
    # drivers with native JSON support return the decoded value
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError as exc:
        logger.debug("Source row %s holds malformed JSON: %s", row_id, exc)
        return value


class SourceStore:
    """Read-only view of the source listings."""

    def __init__(self, connection: Connection, table: Table, yield_per: int = SCAN_YIELD_PER):
        self.connection = connection
        self.table = table
        self.yield_per = yield_per

    def count(self) -> int:
        stmt = select(func.count()).select_from(self.table)
        return self.connection.execute(stmt).scalar_one()

    def scan(self) -> Iterator[Any]:
        """
        Stream every source document once, ordered by id.

        Each mapping document is yielded with its row id under ``_id``. The
        document column is decoded row by row, so a row holding malformed JSON is
        yielded as its raw text. Such rows and documents that are not mappings are
        yielded unchanged so the caller can reject them.
        """
        stmt = (
            select(self.table.c.id, type_coerce(self.table.c.document, Text).label("document"))
            .order_by(self.table.c.id)
            .execution_options(yield_per=self.yield_per)
        )
        for row in self.connection.execute(stmt):
            document = _decode_document(row.id, row.document)
            if isinstance(document, Mapping):
                yield {**document, "_id": row.id}
            else:
                yield document


class TargetStore:
    """Enriched listings, written in bulk and looked up by source id."""

    def __init__(self, connection: Connection, table: Table):
        self.connection = connection
        self.table = table

    def exists(self, source_id: str) -> bool:
        stmt = (
            select(self.table.c.id)
            .where(self.table.c.source_id == source_id)
            .limit(1)
        )
        with self.connection.begin():
            return self.connection.execute(stmt).first() is not None

    def insert_many(self, records: Iterable[EnrichedRecord]) -> int:
        """Insert all records in one transaction; nothing is written on failure."""
        rows = [record.to_row() for record in records]
        if not rows:
            return 0
        with self.connection.begin():
            self.connection.execute(insert(self.table), rows)
        return len(rows)

    def ensure_index(self) -> None:
        """Create the source id index unless it already exists."""
        with self.connection.begin():
            for index in self.table.indexes:
                index.create(self.connection, checkfirst=True)
        logger.info("Ensured index on %s.source_id", self.table.name)
