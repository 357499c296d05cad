"""
Tests for API routes — upload, mapping, jobs, records, health.
"""

from unittest.mock import AsyncMock, patch

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from busverifier.main import app, lifespan
from busverifier.services.jobs import JobSupervisor
from busverifier.store import RecordStore


async def _upload(client, rows, mapping):
    resp = await client.post("/api/upload", json={"fileName": "leads.xlsx", "data": rows})
    assert resp.status_code == 200
    batch_id = resp.json()["businessDataId"]
    resp = await client.post("/api/mapping", json={"businessDataId": batch_id, "mapping": mapping})
    assert resp.status_code == 200
    return batch_id


class TestHealthEndpoint:
    async def test_health(self, client):
        resp = await client.get("/api/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["lookup"] == "stub"
        assert data["active_jobs"] == 0
        assert "timestamp" in data


class TestRootEndpoint:
    async def test_root(self, client):
        resp = await client.get("/")
        assert resp.status_code == 200
        assert "Business Verifier" in resp.json()["service"]


class TestUploadAPI:
    async def test_upload_suggests_mapping(self, client, sample_rows):
        resp = await client.post("/api/upload", json={"fileName": "leads.xlsx", "data": sample_rows})
        assert resp.status_code == 200
        data = resp.json()
        assert data["totalRecords"] == 3
        assert data["detectedColumns"][0] == "Company Name"
        assert data["suggestedMapping"]["company_name"] == "Company Name"
        assert data["suggestedMapping"]["address"] == "Address"

    async def test_upload_validation(self, client):
        resp = await client.post("/api/upload", json={"fileName": "", "data": []})
        assert resp.status_code == 422

    async def test_mapping_creates_records(self, client, sample_rows, sample_mapping):
        batch_id = await _upload(client, sample_rows, sample_mapping)
        resp = await client.get(f"/api/records/{batch_id}")
        assert resp.status_code == 200
        records = resp.json()
        assert [r["company_name"] for r in records] == ["Acme Corp", "Bayou Bakery", "Nameless Co"]
        assert all(r["status"] == "pending" for r in records)
        assert records[2]["address"] is None

    async def test_mapping_unknown_batch(self, client, sample_mapping):
        resp = await client.post("/api/mapping", json={"businessDataId": "nope", "mapping": sample_mapping})
        assert resp.status_code == 404


class TestJobsAPI:
    async def test_process_and_poll(self, client, supervisor, sample_rows, sample_mapping):
        batch_id = await _upload(client, sample_rows, sample_mapping)

        resp = await client.post("/api/process", json={"businessDataId": batch_id, "type": "verification"})
        assert resp.status_code == 200
        job_id = resp.json()["jobId"]
        await supervisor.drain()

        resp = await client.get(f"/api/job/{job_id}")
        assert resp.status_code == 200
        job = resp.json()
        assert job["status"] == "completed"
        assert job["progress"] == 100
        assert job["results"]["total_processed"] == 3
        # Row without an address ends up as an error record
        assert job["results"]["errors"] == 1

    async def test_process_unknown_batch(self, client):
        resp = await client.post("/api/process", json={"businessDataId": "nope", "type": "verification"})
        assert resp.status_code == 404

    async def test_prospect(self, client, supervisor):
        resp = await client.post("/api/prospect", json={"businessType": "Bakery", "numberOfResults": 5})
        assert resp.status_code == 200
        body = resp.json()
        await supervisor.drain()

        job = (await client.get(f"/api/job/{body['jobId']}")).json()
        assert job["kind"] == "prospecting"
        assert job["status"] == "completed"
        records = (await client.get(f"/api/records/{body['businessDataId']}")).json()
        assert len(records) == 5

    async def test_prospect_requires_business_type(self, client):
        resp = await client.post("/api/prospect", json={"numberOfResults": 5})
        assert resp.status_code == 400

    async def test_ai_prospect_without_cities_fails(self, client, supervisor, sample_rows, sample_mapping):
        batch_id = await _upload(client, sample_rows, sample_mapping)
        resp = await client.post("/api/ai-prospect", json={"businessDataId": batch_id, "businessType": "cafe"})
        assert resp.status_code == 200
        await supervisor.drain()

        job = (await client.get(f"/api/job/{resp.json()['jobId']}")).json()
        assert job["status"] == "failed"
        assert "No cities could be found" in job["error_message"]

    async def test_prospect_near_me(self, client, supervisor):
        resp = await client.post(
            "/api/prospect-near-me",
            json={"businessType": "cafe", "latitude": 30.2672, "longitude": -97.7431, "radius": 1000},
        )
        assert resp.status_code == 200
        await supervisor.drain()
        job = (await client.get(f"/api/job/{resp.json()['jobId']}")).json()
        assert job["status"] == "completed"
        assert job["results"]["radius"] == "1000m"

    async def test_prospect_near_me_radius_cap(self, client):
        resp = await client.post(
            "/api/prospect-near-me",
            json={"businessType": "cafe", "latitude": 1, "longitude": 2, "radius": 100000},
        )
        assert resp.status_code == 400

    async def test_job_not_found(self, client):
        assert (await client.get("/api/job/nope")).status_code == 404
        assert (await client.post("/api/job/nope/stop")).status_code == 404

    async def test_stop_finished_job(self, client, supervisor):
        resp = await client.post("/api/prospect", json={"businessType": "Gym", "numberOfResults": 1})
        await supervisor.drain()
        job_id = resp.json()["jobId"]

        stop = await client.post(f"/api/job/{job_id}/stop")
        assert stop.status_code == 200
        assert stop.json() == {"success": True}
        assert (await client.get(f"/api/job/{job_id}")).json()["status"] == "completed"


class TestRecordsAPI:
    async def test_patch_and_delete(self, client, sample_rows, sample_mapping):
        batch_id = await _upload(client, sample_rows, sample_mapping)
        records = (await client.get(f"/api/records/{batch_id}")).json()
        record_id = records[0]["id"]

        resp = await client.patch(f"/api/record/{record_id}", json={"companyName": "Acme Holdings"})
        assert resp.status_code == 200
        assert resp.json()["company_name"] == "Acme Holdings"
        assert resp.json()["email"] == "info@acme.test"

        resp = await client.delete(f"/api/record/{record_id}")
        assert resp.status_code == 200
        remaining = (await client.get(f"/api/records/{batch_id}")).json()
        assert record_id not in [r["id"] for r in remaining]

    async def test_patch_rejects_bad_status(self, client, sample_rows, sample_mapping):
        batch_id = await _upload(client, sample_rows, sample_mapping)
        record_id = (await client.get(f"/api/records/{batch_id}")).json()[0]["id"]
        resp = await client.patch(f"/api/record/{record_id}", json={"status": "bogus"})
        assert resp.status_code == 422

    async def test_missing_record(self, client):
        assert (await client.patch("/api/record/nope", json={"email": "x@y.z"})).status_code == 404
        assert (await client.delete("/api/record/nope")).status_code == 404


class TestLifespan:
    async def test_wires_store_on_session_factory(self, db_engine, stub_lookup):
        session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
        with (
            patch("busverifier.main.async_session", session_factory),
            patch("busverifier.main.init_db", new_callable=AsyncMock) as init_db,
            patch("busverifier.main.close_db", new_callable=AsyncMock) as close_db,
            patch("busverifier.main.build_lookup", return_value=stub_lookup),
        ):
            async with lifespan(app):
                init_db.assert_awaited_once()
                assert app.state.lookup is stub_lookup
                assert isinstance(app.state.supervisor, JobSupervisor)
                batch = await app.state.store.create_upload_batch("leads.csv")

            close_db.assert_awaited_once()

        stored = await RecordStore.from_engine(db_engine).get_upload_batch(batch.id)
        assert stored.file_name == "leads.csv"
