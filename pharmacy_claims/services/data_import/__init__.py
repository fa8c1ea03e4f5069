"""
Seed data importers.

- PharmacyImporter: pharmacies/*.csv, streamed
- ClaimImporter: claims/*.json, parsed concurrently
- ReversalImporter: reverts/*.json, parsed concurrently
- BulkLoader: runs all three in dependency order
"""

from pharmacy_claims.services.data_import.base_importer import (
    DEFAULT_BATCH_SIZE,
    MAX_BATCH_SIZE,
    MAX_CONCURRENT_WORKERS,
    BaseImporter,
    LoadStats,
    resolve_batch_size,
)
from pharmacy_claims.services.data_import.claim_importer import ClaimImporter
from pharmacy_claims.services.data_import.json_importer import JSONImporter
from pharmacy_claims.services.data_import.loader import BulkLoader
from pharmacy_claims.services.data_import.pharmacy_importer import PharmacyImporter
from pharmacy_claims.services.data_import.reversal_importer import ReversalImporter

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "MAX_BATCH_SIZE",
    "MAX_CONCURRENT_WORKERS",
    "BaseImporter",
    "BulkLoader",
    "ClaimImporter",
    "JSONImporter",
    "LoadStats",
    "PharmacyImporter",
    "ReversalImporter",
    "resolve_batch_size",
]
