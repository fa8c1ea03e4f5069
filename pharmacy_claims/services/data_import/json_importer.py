"""
Concurrent JSON Importer

Fan-out/fan-in over the files of one entity:

    work queue (paths) -> N parser tasks -> results queue -> one consumer

Parsers run ``parse_file`` in worker threads via ``asyncio.to_thread`` and
report every file on the results queue, either as parsed records or as an
error. The consumer therefore receives exactly one outcome per file, builds
batches and performs all inserts serially.

Source: https://docs.python.org/3/library/asyncio-queue.html#examples
"""

import asyncio
import json
from abc import abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any

from pydantic import ValidationError as SchemaValidationError

from pharmacy_claims.gateways.persistence_gateway import PersistenceGateway
from pharmacy_claims.services.audit import AuditSink
from pharmacy_claims.services.data_import.base_importer import (
    DEFAULT_BATCH_SIZE,
    MAX_CONCURRENT_WORKERS,
    BaseImporter,
    LoadStats,
)
from pharmacy_claims.services.validator import ClaimValidator
from pharmacy_claims.utils.errors import StorageError, ValidationError
from pharmacy_claims.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class FileOutcome:
    """What a parser task reports for one file."""

    path: Path
    records: list[dict[str, Any]] = field(default_factory=list)
    skipped: int = 0
    error: Exception | None = None


def read_json_array(path: Path) -> list[Any]:
    """
    Read a JSON array from ``path``.

    A trailing ``%`` (left by some export tools) is ignored. Numbers are
    parsed as ``Decimal`` so prices keep their exact cents.

    Raises:
        OSError: the file cannot be read
        ValueError: the content is not a JSON array
    """
    text = path.read_text(encoding="utf-8").strip()
    text = text.removesuffix("%").strip()

    data = json.loads(text, parse_float=Decimal)
    if not isinstance(data, list):
        raise ValueError(f"expected a JSON array, got {type(data).__name__}")
    return data


class JSONImporter(BaseImporter):
    """Base class for entities seeded from JSON arrays."""

    file_pattern = "*.json"

    def __init__(
        self,
        gateway: PersistenceGateway,
        audit_sink: AuditSink,
        validator: ClaimValidator | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_workers: int = MAX_CONCURRENT_WORKERS,
    ):
        super().__init__(gateway, audit_sink, validator, batch_size)
        self.max_workers = max(1, max_workers)

    @abstractmethod
    def parse_record(self, item: Any) -> dict[str, Any]:
        """
        Convert one array element to a table row.

        Raises:
            ValueError or ValidationError: the element is malformed
        """

    def parse_file(self, path: Path) -> tuple[list[dict[str, Any]], int]:
        """Parse a whole file. Runs in a worker thread."""
        records: list[dict[str, Any]] = []
        skipped = 0

        for index, item in enumerate(read_json_array(path)):
            try:
                records.append(self.parse_record(item))
            except (SchemaValidationError, ValidationError, ValueError, TypeError) as e:
                skipped += 1
                logger.warning(f"Skipping {self.entity_name} record {index} in {path.name}: {e}")

        return records, skipped

    async def load(self, data_dir: Path) -> LoadStats:
        stats = LoadStats(entity=self.entity_name)
        if await self.already_loaded():
            stats.skipped_existing = True
            return stats

        files = self.discover_files(data_dir)
        if not files:
            logger.info(f"No {self.entity_name} files found in {Path(data_dir) / self.subdirectory}")
            return stats
        stats.files_found = len(files)

        work_queue: asyncio.Queue[Path] = asyncio.Queue()
        for path in files:
            work_queue.put_nowait(path)
        results: asyncio.Queue[FileOutcome] = asyncio.Queue()

        worker_count = min(self.max_workers, len(files))
        logger.info(f"Loading {len(files)} {self.entity_name} files with {worker_count} workers")
        workers = [
            asyncio.create_task(self._parse_worker(work_queue, results))
            for _ in range(worker_count)
        ]

        try:
            await self._consume(results, len(files), stats)
        finally:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        logger.info(
            f"{self.entity_name.capitalize()} load complete: {stats.records_loaded} loaded, "
            f"{stats.records_skipped} skipped, {stats.files_failed} files failed, "
            f"{stats.batches_failed} batches failed"
        )
        return stats

    async def _parse_worker(
        self,
        work_queue: "asyncio.Queue[Path]",
        results: "asyncio.Queue[FileOutcome]",
    ) -> None:
        while True:
            try:
                path = work_queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            try:
                records, skipped = await asyncio.to_thread(self.parse_file, path)
            except Exception as e:  # noqa: BLE001
                # Reported as a failed file; the consumer waits for one outcome per file
                await results.put(FileOutcome(path=path, error=e))
            else:
                logger.info(f"Parsed {len(records)} {self.entity_name} from {path.name}")
                await results.put(FileOutcome(path=path, records=records, skipped=skipped))
            finally:
                work_queue.task_done()

    async def _consume(
        self,
        results: "asyncio.Queue[FileOutcome]",
        expected: int,
        stats: LoadStats,
    ) -> None:
        batch: list[Mapping[str, Any]] = []

        for _ in range(expected):
            outcome = await results.get()
            if outcome.error is not None:
                stats.files_failed += 1
                logger.warning(
                    f"Failed to load {self.entity_name} from {outcome.path.name}: {outcome.error}"
                )
                continue

            stats.files_processed += 1
            stats.records_parsed += len(outcome.records) + outcome.skipped
            stats.records_skipped += outcome.skipped

            for record in outcome.records:
                batch.append(record)
                if len(batch) >= self.batch_size:
                    await self._flush_or_log(batch, stats)
                    batch = []

        await self._flush_or_log(batch, stats)

    async def _flush_or_log(self, batch: list[Mapping[str, Any]], stats: LoadStats) -> None:
        if not batch:
            return
        try:
            await self.flush_batch(batch, stats)
        except StorageError as e:
            stats.batches_failed += 1
            logger.warning(f"Failed to process {self.entity_name} batch of {len(batch)}: {e}")
