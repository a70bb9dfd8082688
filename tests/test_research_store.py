import asyncio

import pytest

from research_engine.models.base import JobStatus
from research_engine.models.research import ResearchJob
from research_engine.services.errors import JobNotFoundError, StoreConflictError


class TestInMemoryResearchStore:
    @pytest.mark.asyncio
    async def test_create_and_get(self, store):
        job = ResearchJob.new("What is Rust?")
        await store.create_job(job)
        loaded = await store.get_job(job.id)
        assert loaded == job
        assert loaded is not job

    @pytest.mark.asyncio
    async def test_get_unknown_job(self, store):
        assert await store.get_job("job_doesnotexist") is None

    @pytest.mark.asyncio
    async def test_duplicate_create_conflicts(self, store):
        job = ResearchJob.new("q")
        await store.create_job(job)
        with pytest.raises(StoreConflictError):
            await store.create_job(job)

    @pytest.mark.asyncio
    async def test_update(self, store):
        job = ResearchJob.new("q")
        await store.create_job(job)
        job.transition_to(JobStatus.SEARCHING)
        await store.update_job(job)
        assert (await store.get_job(job.id)).status == JobStatus.SEARCHING

    @pytest.mark.asyncio
    async def test_update_unknown_job(self, store):
        with pytest.raises(JobNotFoundError):
            await store.update_job(ResearchJob.new("q"))

    @pytest.mark.asyncio
    async def test_caller_mutation_does_not_leak(self, store):
        job = ResearchJob.new("q")
        await store.create_job(job)
        job.transition_to(JobStatus.PLANNING)
        assert (await store.get_job(job.id)).status == JobStatus.PENDING

        loaded = await store.get_job(job.id)
        loaded.fail("changed outside the store")
        assert (await store.get_job(job.id)).status == JobStatus.PENDING

    @pytest.mark.asyncio
    async def test_sources_round_trip(self, store, sources):
        job = ResearchJob.new("q")
        await store.create_job(job)
        assert await store.get_sources(job.id) == []

        await store.store_sources(job.id, sources)
        assert await store.get_sources(job.id) == sources

        await store.store_sources(job.id, sources[:1])
        assert await store.get_sources(job.id) == sources[:1]
        assert store.source_count() == 1

    @pytest.mark.asyncio
    async def test_sources_for_unknown_job(self, store, sources):
        with pytest.raises(JobNotFoundError):
            await store.store_sources("job_doesnotexist", sources)
        with pytest.raises(JobNotFoundError):
            await store.get_sources("job_doesnotexist")

    @pytest.mark.asyncio
    async def test_list_jobs_newest_first(self, store):
        jobs = []
        for i in range(5):
            job = ResearchJob.new(f"question {i}")
            jobs.append(job)
            await store.create_job(job)
            await asyncio.sleep(0.001)

        listed = await store.list_jobs(limit=2)
        assert [j.query for j in listed] == ["question 4", "question 3"]

        page = await store.list_jobs(limit=2, offset=3)
        assert [j.query for j in page] == ["question 1", "question 0"]
        assert await store.list_jobs(limit=10, offset=10) == []
        assert store.job_count() == 5

    @pytest.mark.asyncio
    async def test_concurrent_creates(self, store):
        jobs = [ResearchJob.new(f"q{i}") for i in range(20)]
        await asyncio.gather(*(store.create_job(j) for j in jobs))
        assert store.job_count() == 20

    @pytest.mark.asyncio
    async def test_find_similar_not_supported(self, store):
        assert await store.find_similar([0.1, 0.2], 0.9) is None
