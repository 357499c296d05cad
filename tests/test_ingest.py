"""
Tests for upload and column mapping.
"""

import pytest

from busverifier.errors import BatchNotFoundError, JobValidationError
from busverifier.services.ingest import apply_mapping, create_upload, suggest_column_mapping


class TestSuggestColumnMapping:
    def test_keyword_heuristics(self):
        rows = [{
            "Business Name": "x", "E-mail": "x", "Tel": "x", "URL": "x",
            "Street": "x", "Sector": "x", "Notes": "x",
        }]
        assert suggest_column_mapping(rows) == {
            "company_name": "Business Name",
            "email": "E-mail",
            "phone": "Tel",
            "website": "URL",
            "address": "Street",
            "industry": "Sector",
        }

    def test_first_match_wins(self):
        rows = [{"Company": "x", "Contact Name": "y"}]
        assert suggest_column_mapping(rows) == {"company_name": "Company"}

    def test_empty(self):
        assert suggest_column_mapping([]) == {}


class TestUploadAndMapping:
    async def test_create_upload(self, store, sample_rows):
        batch, suggested = await create_upload(store, "leads.xlsx", sample_rows)
        assert batch.status == "uploaded"
        assert batch.total_records == 3
        assert suggested["email"] == "Email"

    async def test_apply_mapping(self, store, sample_rows, sample_mapping):
        batch, _ = await create_upload(store, "leads.xlsx", sample_rows)

        count = await apply_mapping(store, batch.id, sample_mapping)

        assert count == 3
        updated = await store.get_upload_batch(batch.id)
        assert updated.status == "mapped"
        assert updated.mapped_rows[1]["company_name"] == "Bayou Bakery"
        records = await store.get_records(batch.id)
        assert [r.original_row_index for r in records] == [0, 1, 2]
        assert records[0].phone == "512-555-0100"
        assert records[2].email is None

    async def test_camel_case_target_alias(self, store, sample_rows):
        batch, _ = await create_upload(store, "leads.xlsx", sample_rows)
        await apply_mapping(store, batch.id, {"companyName": "Company Name"})
        assert (await store.get_records(batch.id))[0].company_name == "Acme Corp"

    async def test_remapping_replaces_records(self, store, sample_rows, sample_mapping):
        batch, _ = await create_upload(store, "leads.xlsx", sample_rows)
        await apply_mapping(store, batch.id, sample_mapping)
        await apply_mapping(store, batch.id, {"company_name": "Company Name"})

        records = await store.get_records(batch.id)
        assert len(records) == 3
        assert all(r.address is None for r in records)

    async def test_unknown_target_field(self, store, sample_rows):
        batch, _ = await create_upload(store, "leads.xlsx", sample_rows)
        with pytest.raises(JobValidationError):
            await apply_mapping(store, batch.id, {"shoe_size": "Company Name"})

    async def test_unknown_batch(self, store, sample_mapping):
        with pytest.raises(BatchNotFoundError):
            await apply_mapping(store, "missing", sample_mapping)
