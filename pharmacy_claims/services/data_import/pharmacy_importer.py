"""
Pharmacy CSV Importer

Reads ``pharmacies/*.csv`` (header row, then ``chain,npi`` rows) one line at a
time. Pharmacies are required for claims to be accepted, so ending up with
no pharmacies at all is fatal.
"""

import csv
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from pharmacy_claims.core.enums import AuditEventType
from pharmacy_claims.services.data_import.base_importer import BaseImporter, LoadStats
from pharmacy_claims.utils.errors import LoaderError, StorageError, ValidationError
from pharmacy_claims.utils.logging import get_logger

logger = get_logger(__name__)

PHARMACY_COLUMNS = 2


class PharmacyImporter(BaseImporter):
    """Streams pharmacy rows from CSV files into the pharmacies table."""

    entity_name = "pharmacies"
    subdirectory = "pharmacies"
    file_pattern = "*.csv"
    audit_event = AuditEventType.PHARMACY_LOADED

    async def count_existing(self) -> int:
        return await self.gateway.count_pharmacies()

    async def insert_batch(self, rows: Sequence[Mapping[str, Any]]) -> int:
        return await self.gateway.batch_create_pharmacies(rows)

    def audit_payload(self, row: Mapping[str, Any]) -> dict[str, Any]:
        return {"npi": row["npi"], "chain": row["chain"]}

    def parse_row(self, row: list[str]) -> dict[str, str]:
        """
        Convert one CSV row to a pharmacies table row.

        Raises:
            ValueError: wrong number of columns
            ValidationError: invalid chain or NPI
        """
        if len(row) != PHARMACY_COLUMNS:
            raise ValueError(f"expected {PHARMACY_COLUMNS} columns, got {len(row)}")

        chain, npi = (field.strip() for field in row)
        self.validator.validate_chain(chain)
        self.validator.validate_npi(npi)
        return {"chain": chain, "npi": npi}

    async def load(self, data_dir: Path) -> LoadStats:
        """
        Load every pharmacy CSV under ``data_dir``.

        Raises:
            LoaderError: the directory is missing, holds no CSV files, or no
                pharmacy could be loaded from it
        """
        stats = LoadStats(entity=self.entity_name)
        if await self.already_loaded():
            stats.skipped_existing = True
            return stats

        directory = Path(data_dir) / self.subdirectory
        if not directory.is_dir():
            raise LoaderError(f"pharmacies directory not found: {directory}")

        files = self.discover_files(data_dir)
        if not files:
            raise LoaderError(f"no pharmacy CSV files found in {directory}")
        stats.files_found = len(files)

        for path in files:
            try:
                await self._load_file(path, stats)
            except (OSError, StorageError, ValueError) as e:
                stats.files_failed += 1
                logger.warning(f"Failed to load pharmacies from {path.name}: {e}")
                continue
            stats.files_processed += 1

        if stats.records_loaded == 0:
            raise LoaderError("no pharmacies loaded from data directory")

        logger.info(
            f"Pharmacy load complete: {stats.records_loaded} loaded, "
            f"{stats.records_skipped} skipped, {stats.files_failed} files failed"
        )
        return stats

    async def _load_file(self, path: Path, stats: LoadStats) -> None:
        batch: list[dict[str, str]] = []
        loaded_before = stats.records_loaded

        # Undecodable bytes become U+FFFD and fail validation on their own row
        with open(path, encoding="utf-8", errors="replace", newline="") as handle:
            reader = csv.reader(handle)
            try:
                next(reader)
            except StopIteration:
                raise ValueError("failed to read header: file is empty") from None
            except csv.Error as e:
                raise ValueError(f"failed to read header: {e}") from e

            while True:
                try:
                    row = next(reader)
                except StopIteration:
                    break
                except csv.Error as e:
                    stats.records_skipped += 1
                    logger.warning(f"Error reading line {reader.line_num} in {path.name}: {e}")
                    continue

                if not row:
                    continue

                stats.records_parsed += 1
                try:
                    batch.append(self.parse_row(row))
                except (ValueError, ValidationError) as e:
                    stats.records_skipped += 1
                    logger.warning(f"Skipping line {reader.line_num} in {path.name}: {e}")
                    continue

                if len(batch) >= self.batch_size:
                    await self.flush_batch(batch, stats)
                    batch = []

        await self.flush_batch(batch, stats)
        logger.info(f"Loaded {stats.records_loaded - loaded_before} pharmacies from {path.name}")
