"""
Bulk Loader
Seeds pharmacies, claims and reversals from a data directory.

Expected layout::

    <data_dir>/pharmacies/*.csv
    <data_dir>/claims/*.json
    <data_dir>/reverts/*.json
"""

from pathlib import Path

from pharmacy_claims.gateways.persistence_gateway import PersistenceGateway
from pharmacy_claims.services.audit import AuditSink
from pharmacy_claims.services.data_import.base_importer import (
    DEFAULT_BATCH_SIZE,
    MAX_CONCURRENT_WORKERS,
    LoadStats,
    resolve_batch_size,
)
from pharmacy_claims.services.data_import.claim_importer import ClaimImporter
from pharmacy_claims.services.data_import.pharmacy_importer import PharmacyImporter
from pharmacy_claims.services.data_import.reversal_importer import ReversalImporter
from pharmacy_claims.services.validator import ClaimValidator
from pharmacy_claims.utils.errors import LoaderError, StorageError
from pharmacy_claims.utils.logging import get_logger

logger = get_logger(__name__)


class BulkLoader:
    """Runs the three importers against one data directory."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        audit_sink: AuditSink,
        validator: ClaimValidator | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_workers: int = MAX_CONCURRENT_WORKERS,
    ):
        validator = validator or ClaimValidator()
        self.batch_size = resolve_batch_size(batch_size)

        self.pharmacies = PharmacyImporter(gateway, audit_sink, validator, self.batch_size)
        self.claims = ClaimImporter(gateway, audit_sink, validator, self.batch_size, max_workers)
        self.reversals = ReversalImporter(
            gateway, audit_sink, validator, self.batch_size, max_workers
        )

    async def load_pharmacies(self, data_dir: str | Path) -> LoadStats:
        """Raises LoaderError if no pharmacy ends up loaded."""
        return await self.pharmacies.load(Path(data_dir))

    async def load_claims(self, data_dir: str | Path) -> LoadStats:
        return await self.claims.load(Path(data_dir))

    async def load_reversals(self, data_dir: str | Path) -> LoadStats:
        return await self.reversals.load(Path(data_dir))

    async def load_all(self, data_dir: str | Path) -> dict[str, LoadStats | None]:
        """
        Load pharmacies, then claims, then reversals.

        A failing stage is logged and later stages still run.

        Returns:
            Stats per entity; ``None`` for a stage that failed
        """
        data_dir = Path(data_dir)
        logger.info(f"Loading seed data from {data_dir}")

        summary: dict[str, LoadStats | None] = {}
        stages = (
            ("pharmacies", self.load_pharmacies),
            ("claims", self.load_claims),
            ("reversals", self.load_reversals),
        )
        for name, stage in stages:
            try:
                summary[name] = await stage(data_dir)
            except (LoaderError, StorageError) as e:
                logger.warning(f"Failed to load {name}: {e}")
                summary[name] = None

        logger.info("Data loading completed")
        return summary
