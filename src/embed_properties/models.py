"""Data models for embed_properties pipeline stage."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr, field_validator
from pydantic.alias_generators import to_camel

Number = Union[StrictInt, StrictFloat]


class ListingDocument(BaseModel):
    """Base for stored listing documents.

    Fields use the camelCase keys of the source collection. Keys without a field
    are kept verbatim and written back by ``to_document``.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        frozen=True,
    )

    @property
    def extra(self) -> dict[str, Any]:
        """Keys of the stored document that have no field."""
        return dict(self.model_extra or {})

    def to_document(self) -> dict[str, Any]:
        """Return the record as a JSON-compatible document."""
        return self.model_dump(by_alias=True, exclude_none=True)


class Ad(ListingDocument):
    """Advertisement text attached to a listing."""

    title: Optional[StrictStr] = None
    description: Optional[StrictStr] = None
    transaction_type: Optional[StrictStr] = None


class Company(ListingDocument):
    """Real estate company publishing a listing."""

    name: Optional[StrictStr] = None
    small_logo: Optional[StrictStr] = None
    large_logo: Optional[StrictStr] = None


class Agent(ListingDocument):
    """Agent responsible for a listing."""

    id: Optional[StrictStr] = None
    name: Optional[StrictStr] = None


class SourceRecord(ListingDocument):
    """Property listing as stored in the source collection."""

    id: str = Field(alias="_id")
    ad: Optional[Ad] = None
    company: Optional[Company] = None
    agent: Optional[Agent] = None
    region: Optional[StrictStr] = None
    city: Optional[StrictStr] = None
    state: Optional[StrictStr] = None
    company_id: Optional[StrictStr] = None
    images: Optional[list[Any]] = None
    area: Optional[Number] = None
    rent_price: Optional[Number] = None
    asking_price: Optional[Number] = None
    commercial_id: Optional[StrictStr] = None
    total_area: Optional[Number] = None
    suites: Optional[StrictInt] = None
    bedrooms: Optional[StrictInt] = None
    bathrooms: Optional[StrictInt] = None
    parking_spots: Optional[StrictInt] = None
    is_exclusive: Optional[StrictBool] = None
    building: Optional[StrictStr] = None
    condo_fee: Optional[Number] = None
    tax: Optional[Number] = None
    features: Optional[list[StrictStr]] = None
    property_type: Optional[StrictStr] = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> str:
        if value is None or value == "":
            raise ValueError("document has no _id")
        return str(value)

    @classmethod
    def from_document(cls, document: Any) -> SourceRecord:
        """Decode a stored document.

        Raises:
            pydantic.ValidationError: If the document is not an object, has no
                identifier, or a known field holds a value of the wrong type.
        """
        return cls.model_validate(document)


@dataclass(frozen=True)
class EnrichedRecord:
    """Source record paired with its embedding vector."""
    metadata: SourceRecord
    embeddings: list[float]

    def to_row(self) -> dict[str, Any]:
        """Map the record to a target store row."""
        return {
            "source_id": self.metadata.id,
            "metadata": self.metadata.to_document(),
            "embeddings": list(self.embeddings),
        }


def owned_by(index: int, worker_id: int, total_workers: int) -> bool:
    """Whether the record at 0-based scan ``index`` belongs to ``worker_id`` (1-based)."""
    return index % total_workers == worker_id - 1


@dataclass(frozen=True)
class WorkAssignment:
    """Partition of the source scan owned by one worker."""
    worker_id: int
    total_workers: int

    def owns(self, index: int) -> bool:
        return owned_by(index, self.worker_id, self.total_workers)


@dataclass
class ProcessingResult:
    """Outcome reported by a worker to the coordinator."""
    worker_id: int
    processed_count: int
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        """Whether the worker finished its scan without a fatal error."""
        return self.error is None


@dataclass
class RunSummary:
    """Aggregate of a full pipeline run."""
    total_records: int
    processed_count: int
    results: list[ProcessingResult] = field(default_factory=list)

    @property
    def failed_workers(self) -> list[int]:
        return [result.worker_id for result in self.results if not result.ok]
