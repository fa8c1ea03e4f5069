"""
Integration Tests for the Bulk Loader
Seed files on disk, in-memory SQLite underneath
"""

import json
from pathlib import Path
from uuid import UUID, uuid4

import pytest

from pharmacy_claims.services.data_import import (
    DEFAULT_BATCH_SIZE,
    MAX_BATCH_SIZE,
    BulkLoader,
    resolve_batch_size,
)
from pharmacy_claims.utils.errors import LoaderError, StorageError

KNOWN_NPI = "1234567890"

PHARMACY_CSV = """chain,npi
health,1111111111
saint,2222222222
doctor,3333333333
health
saint,12345
walgreens,4444444444
health,5555555555,extra
"""


def _write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def _claim_record(**overrides):
    record = {
        "id": str(uuid4()),
        "ndc": "12345678901",
        "npi": KNOWN_NPI,
        "quantity": 30,
        "price": 25.99,
        "timestamp": "2024-03-01T12:30:00",
    }
    record.update(overrides)
    return record


def _write_claims(data_dir: Path, name: str, records: list) -> Path:
    return _write(data_dir / "claims" / name, json.dumps(records))


@pytest.fixture
def loader(gateway, audit_sink, validator):
    return BulkLoader(gateway, audit_sink, validator, batch_size=DEFAULT_BATCH_SIZE, max_workers=4)


@pytest.mark.unit
class TestBatchSize:
    @pytest.mark.parametrize("size", [None, 0, -1, MAX_BATCH_SIZE + 1])
    def test_invalid_sizes_fall_back_to_default(self, size):
        assert resolve_batch_size(size) == DEFAULT_BATCH_SIZE

    @pytest.mark.parametrize("size", [1, 500, MAX_BATCH_SIZE])
    def test_valid_sizes_kept(self, size):
        assert resolve_batch_size(size) == size


@pytest.mark.integration
class TestPharmacyLoad:
    @pytest.mark.asyncio
    async def test_valid_rows_loaded_malformed_skipped(self, loader, gateway, audit_sink, tmp_path):
        _write(tmp_path / "pharmacies" / "pharmacies.csv", PHARMACY_CSV)

        stats = await loader.load_pharmacies(tmp_path)

        assert stats.records_loaded == 3
        assert stats.records_skipped == 4
        assert stats.files_processed == 1
        assert await gateway.count_pharmacies() == 3
        assert len(audit_sink.of_type("pharmacy_loaded")) == 3

    @pytest.mark.asyncio
    async def test_second_run_inserts_nothing(self, loader, gateway, audit_sink, tmp_path):
        _write(tmp_path / "pharmacies" / "pharmacies.csv", PHARMACY_CSV)
        await loader.load_pharmacies(tmp_path)
        _write(tmp_path / "pharmacies" / "more.csv", "chain,npi\nsaint,7777777777\n")

        stats = await loader.load_pharmacies(tmp_path)

        assert stats.skipped_existing is True
        assert await gateway.count_pharmacies() == 3
        assert len(audit_sink.of_type("pharmacy_loaded")) == 3

    @pytest.mark.asyncio
    async def test_fields_are_trimmed(self, loader, gateway, tmp_path):
        _write(tmp_path / "pharmacies" / "a.csv", "chain,npi\n doctor , 6666666666 \n")

        await loader.load_pharmacies(tmp_path)

        pharmacy = await gateway.get_pharmacy_by_npi("6666666666")
        assert pharmacy.chain == "doctor"

    @pytest.mark.asyncio
    async def test_small_batches_and_multiple_files(self, gateway, audit_sink, validator, tmp_path):
        rows_a = "".join(f"health,10000000{i:02d}\n" for i in range(5))
        rows_b = "".join(f"saint,20000000{i:02d}\n" for i in range(3))
        _write(tmp_path / "pharmacies" / "a.csv", "chain,npi\n" + rows_a)
        _write(tmp_path / "pharmacies" / "b.csv", "chain,npi\n" + rows_b)
        loader = BulkLoader(gateway, audit_sink, validator, batch_size=2)

        stats = await loader.load_pharmacies(tmp_path)

        assert stats.files_processed == 2
        assert stats.records_loaded == 8
        assert await gateway.count_pharmacies() == 8

    @pytest.mark.asyncio
    async def test_undecodable_line_skipped(self, loader, gateway, tmp_path):
        path = tmp_path / "pharmacies" / "a.csv"
        path.parent.mkdir(parents=True)
        path.write_bytes(
            b"chain,npi\nhealth,1111111111\nsaint,\xff222222222\ndoctor,3333333333\n"
        )

        stats = await loader.load_pharmacies(tmp_path)

        assert stats.files_failed == 0
        assert stats.records_loaded == 2
        assert stats.records_skipped == 1
        assert await gateway.count_pharmacies() == 2

    @pytest.mark.asyncio
    async def test_missing_directory_is_fatal(self, loader, tmp_path):
        with pytest.raises(LoaderError):
            await loader.load_pharmacies(tmp_path)

    @pytest.mark.asyncio
    async def test_directory_without_csv_is_fatal(self, loader, tmp_path):
        _write(tmp_path / "pharmacies" / "README.txt", "nothing here")

        with pytest.raises(LoaderError):
            await loader.load_pharmacies(tmp_path)

    @pytest.mark.asyncio
    async def test_no_valid_rows_is_fatal(self, loader, tmp_path):
        _write(tmp_path / "pharmacies" / "bad.csv", "chain,npi\nhealth,123\n")

        with pytest.raises(LoaderError):
            await loader.load_pharmacies(tmp_path)

    @pytest.mark.asyncio
    async def test_empty_file_does_not_block_others(self, loader, gateway, tmp_path):
        _write(tmp_path / "pharmacies" / "a_empty.csv", "")
        _write(tmp_path / "pharmacies" / "b.csv", "chain,npi\nhealth,1111111111\n")

        stats = await loader.load_pharmacies(tmp_path)

        assert stats.files_failed == 1
        assert stats.files_processed == 1
        assert await gateway.count_pharmacies() == 1


@pytest.mark.integration
class TestClaimLoad:
    @pytest.mark.asyncio
    async def test_union_of_files_loaded_once(self, loader, gateway, audit_sink, tmp_path):
        records = [[_claim_record() for _ in range(3)] for _ in range(4)]
        for index, batch in enumerate(records):
            _write_claims(tmp_path, f"claims_{index}.json", batch)
        # Same record in two files
        _write_claims(tmp_path, "claims_dupe.json", [records[0][0]])

        stats = await loader.load_claims(tmp_path)

        assert stats.files_found == 5
        assert stats.files_processed == 5
        assert await gateway.count_claims() == 12
        assert len(audit_sink.of_type("claim_loaded")) == stats.records_loaded

    @pytest.mark.asyncio
    async def test_corrupt_file_does_not_block_others(self, loader, gateway, tmp_path):
        for index in range(3):
            _write_claims(tmp_path, f"claims_{index}.json", [_claim_record(), _claim_record()])
        _write(tmp_path / "claims" / "claims_corrupt.json", '[{"id": "broken"')

        stats = await loader.load_claims(tmp_path)

        assert stats.files_failed == 1
        assert stats.files_processed == 3
        assert await gateway.count_claims() == 6

    @pytest.mark.asyncio
    async def test_more_files_than_workers(self, gateway, audit_sink, validator, tmp_path):
        for index in range(12):
            _write_claims(tmp_path, f"claims_{index:02d}.json", [_claim_record()])
        loader = BulkLoader(gateway, audit_sink, validator, batch_size=5, max_workers=3)

        stats = await loader.load_claims(tmp_path)

        assert stats.files_processed == 12
        assert await gateway.count_claims() == 12

    @pytest.mark.asyncio
    async def test_trailing_percent_is_ignored(self, loader, gateway, tmp_path):
        _write(tmp_path / "claims" / "claims.json", json.dumps([_claim_record()]) + "%\n")

        stats = await loader.load_claims(tmp_path)

        assert stats.files_failed == 0
        assert await gateway.count_claims() == 1

    @pytest.mark.asyncio
    async def test_invalid_records_skipped(self, loader, gateway, tmp_path):
        good = _claim_record()
        _write_claims(
            tmp_path,
            "claims.json",
            [
                good,
                _claim_record(ndc="12"),
                _claim_record(quantity=0),
                _claim_record(price=25.999),
                _claim_record(id="not-a-uuid"),
                _claim_record(timestamp="yesterday"),
                "not an object",
            ],
        )

        stats = await loader.load_claims(tmp_path)

        assert stats.records_loaded == 1
        assert stats.records_skipped == 6
        stored = await gateway.get_claim_by_id(UUID(good["id"]))
        assert stored is not None
        assert stored.ndc == "12345678901"

    @pytest.mark.asyncio
    async def test_timestamp_with_offset(self, loader, gateway, tmp_path):
        record = _claim_record(timestamp="2024-03-01T12:30:00+02:00")
        _write_claims(tmp_path, "claims.json", [record])

        stats = await loader.load_claims(tmp_path)

        assert stats.records_loaded == 1

    @pytest.mark.asyncio
    async def test_missing_directory_is_not_an_error(self, loader, tmp_path):
        stats = await loader.load_claims(tmp_path)

        assert stats.files_found == 0
        assert stats.records_loaded == 0

    @pytest.mark.asyncio
    async def test_skipped_when_claims_exist(self, loader, gateway, tmp_path):
        _write_claims(tmp_path, "a.json", [_claim_record()])
        await loader.load_claims(tmp_path)
        _write_claims(tmp_path, "b.json", [_claim_record()])

        stats = await loader.load_claims(tmp_path)

        assert stats.skipped_existing is True
        assert await gateway.count_claims() == 1

    @pytest.mark.asyncio
    async def test_failed_count_still_loads(self, loader, gateway, tmp_path, monkeypatch):
        async def broken_count():
            raise StorageError("count claims failed")

        monkeypatch.setattr(gateway, "count_claims", broken_count)
        _write_claims(tmp_path, "a.json", [_claim_record()])

        stats = await loader.load_claims(tmp_path)

        assert stats.records_loaded == 1

    @pytest.mark.asyncio
    async def test_failed_batch_does_not_stop_load(
        self, gateway, audit_sink, validator, tmp_path, monkeypatch
    ):
        original = gateway.batch_create_claims
        calls = []

        async def fail_first_batch(rows):
            calls.append(len(rows))
            if len(calls) == 1:
                raise StorageError("batch insert into claims failed")
            return await original(rows)

        monkeypatch.setattr(gateway, "batch_create_claims", fail_first_batch)
        _write_claims(tmp_path, "a.json", [_claim_record() for _ in range(5)])
        loader = BulkLoader(gateway, audit_sink, validator, batch_size=2, max_workers=1)

        stats = await loader.load_claims(tmp_path)

        assert calls == [2, 2, 1]
        assert stats.batches_failed == 1
        assert stats.records_loaded == 3
        assert await gateway.count_claims() == 3
        assert len(audit_sink.of_type("claim_loaded")) == 3


@pytest.mark.integration
class TestReversalLoad:
    @pytest.mark.asyncio
    async def test_reversals_loaded_from_reverts(self, loader, gateway, audit_sink, tmp_path):
        claims = [_claim_record() for _ in range(2)]
        _write_claims(tmp_path, "claims.json", claims)
        reversal_id = str(uuid4())
        _write(
            tmp_path / "reverts" / "reverts.json",
            json.dumps(
                [{"id": reversal_id, "claim_id": claims[0]["id"], "timestamp": "2024-03-02T08:00:00"}]
            ),
        )
        await loader.load_claims(tmp_path)

        stats = await loader.load_reversals(tmp_path)

        assert stats.records_loaded == 1
        assert await gateway.count_reversals() == 1
        events = audit_sink.of_type("reversal_loaded")
        assert events == [{"id": reversal_id, "claim_id": claims[0]["id"]}]


@pytest.mark.integration
class TestLoadAll:
    @pytest.mark.asyncio
    async def test_loads_everything_in_order(self, loader, gateway, tmp_path):
        _write(tmp_path / "pharmacies" / "p.csv", f"chain,npi\nhealth,{KNOWN_NPI}\n")
        claim = _claim_record()
        _write_claims(tmp_path, "c.json", [claim])
        _write(
            tmp_path / "reverts" / "r.json",
            json.dumps([{"id": str(uuid4()), "claim_id": claim["id"], "timestamp": "2024-03-02T08:00:00Z"}]),
        )

        summary = await loader.load_all(tmp_path)

        assert summary["pharmacies"].records_loaded == 1
        assert summary["claims"].records_loaded == 1
        assert summary["reversals"].records_loaded == 1

    @pytest.mark.asyncio
    async def test_pharmacy_failure_does_not_stop_later_stages(self, loader, gateway, tmp_path):
        _write_claims(tmp_path, "c.json", [_claim_record()])

        summary = await loader.load_all(tmp_path)

        assert summary["pharmacies"] is None
        assert summary["claims"].records_loaded == 1
        assert summary["reversals"].files_found == 0
