"""
Base Importer for Seed Data

Shared policy for every seed entity: skip the entity when its table already
has rows, discover files under a fixed subdirectory, insert in batches and
emit one audit event per committed record.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from pharmacy_claims.core.enums import AuditEventType
from pharmacy_claims.gateways.persistence_gateway import PersistenceGateway
from pharmacy_claims.services.audit import AuditSink
from pharmacy_claims.services.validator import ClaimValidator
from pharmacy_claims.utils.errors import StorageError
from pharmacy_claims.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 1000
MAX_BATCH_SIZE = 10000
MAX_CONCURRENT_WORKERS = 10


def resolve_batch_size(batch_size: int | None) -> int:
    """Return ``batch_size`` if it is within 1..MAX_BATCH_SIZE, else the default."""
    if batch_size is None or not 0 < batch_size <= MAX_BATCH_SIZE:
        logger.warning(
            f"Invalid loader batch size {batch_size}, using default {DEFAULT_BATCH_SIZE}"
        )
        return DEFAULT_BATCH_SIZE
    return batch_size


@dataclass
class LoadStats:
    """Outcome of loading one entity type."""

    entity: str
    skipped_existing: bool = False
    files_found: int = 0
    files_processed: int = 0
    files_failed: int = 0
    records_parsed: int = 0
    records_skipped: int = 0
    records_loaded: int = 0
    batches_failed: int = 0

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


class BaseImporter(ABC):
    """
    Abstract base class for seed data importers.

    Subclasses must implement:
    - entity_name, subdirectory, file_pattern, audit_event
    - count_existing: rows already in the target table
    - insert_batch: write one batch through the gateway
    - audit_payload: event payload for one committed row
    - load: read the files and feed batches to flush_batch
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        audit_sink: AuditSink,
        validator: ClaimValidator | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        self.gateway = gateway
        self.audit_sink = audit_sink
        self.validator = validator or ClaimValidator()
        self.batch_size = resolve_batch_size(batch_size)

    @property
    @abstractmethod
    def entity_name(self) -> str:
        """Plural entity name used in logs and stats."""

    @property
    @abstractmethod
    def subdirectory(self) -> str:
        """Directory under the data root holding this entity's files."""

    @property
    @abstractmethod
    def file_pattern(self) -> str:
        """Glob pattern selecting this entity's files."""

    @property
    @abstractmethod
    def audit_event(self) -> AuditEventType:
        """Event emitted for each committed record."""

    @abstractmethod
    async def count_existing(self) -> int:
        pass

    @abstractmethod
    async def insert_batch(self, rows: Sequence[Mapping[str, Any]]) -> int:
        pass

    @abstractmethod
    def audit_payload(self, row: Mapping[str, Any]) -> dict[str, Any]:
        pass

    @abstractmethod
    async def load(self, data_dir: Path) -> LoadStats:
        pass

    async def already_loaded(self) -> bool:
        """
        True when the target table has at least one row.

        A failed count is logged and treated as empty so loading still runs.
        """
        try:
            count = await self.count_existing()
        except StorageError as e:
            logger.warning(f"Failed to count existing {self.entity_name}, loading anyway: {e}")
            return False

        if count > 0:
            logger.info(f"{count} {self.entity_name} already exist, skipping load")
            return True
        return False

    def discover_files(self, data_dir: Path) -> list[Path]:
        """Sorted files matching the pattern, or [] when the directory is missing."""
        directory = Path(data_dir) / self.subdirectory
        if not directory.is_dir():
            return []
        return sorted(path for path in directory.glob(self.file_pattern) if path.is_file())

    async def flush_batch(self, rows: list[Mapping[str, Any]], stats: LoadStats) -> None:
        """
        Insert one batch and audit its records.

        Raises:
            StorageError: the batch was rolled back
        """
        if not rows:
            return

        await self.insert_batch(rows)
        stats.records_loaded += len(rows)

        for row in rows:
            try:
                self.audit_sink.record(self.audit_event.value, self.audit_payload(row))
            except Exception as e:  # noqa: BLE001
                logger.error(f"Audit sink failed for {self.audit_event.value}: {e}")
