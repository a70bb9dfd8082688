"""Domain entities: ids, query validation, job lifecycle, sources, answers."""

import pytest
from pydantic import ValidationError

from research_engine.models import (
    Confidence,
    JobStatus,
    QueryIntent,
    QuestionType,
    ResearchAnswer,
    ResearchJob,
    SearchResult,
    Source,
    SourceCollection,
    new_job_id,
    new_source_id,
    parse_job_id,
    parse_source_id,
    validate_query,
)
from research_engine.services.errors import (
    EmptyQueryError,
    IdParseError,
    InvalidTransitionError,
    QueryTooLongError,
)
from research_engine.utils.url_utils import extract_domain


class TestIds:
    def test_generated_ids_have_prefix_and_length(self):
        job_id = new_job_id()
        src_id = new_source_id()
        assert job_id.startswith("job_") and len(job_id) == 16
        assert src_id.startswith("src_") and len(src_id) == 16

    def test_generated_ids_are_unique(self):
        assert len({new_job_id() for _ in range(200)}) == 200

    def test_parse_round_trips_valid_ids(self):
        job_id = new_job_id()
        assert parse_job_id(job_id) == job_id
        src_id = new_source_id()
        assert parse_source_id(src_id) == src_id

    def test_parse_rejects_wrong_prefix(self):
        with pytest.raises(IdParseError, match="invalid ID prefix"):
            parse_job_id(new_source_id())

    def test_parse_rejects_wrong_length(self):
        with pytest.raises(IdParseError, match="invalid ID length: expected 12, got 3"):
            parse_job_id("job_abc")


class TestQueryValidation:
    def test_trims_whitespace(self):
        assert validate_query("  What is Rust?  ") == "What is Rust?"

    @pytest.mark.parametrize("query", ["", "   ", "\n\t"])
    def test_rejects_empty(self, query):
        with pytest.raises(EmptyQueryError):
            validate_query(query)

    def test_rejects_too_long(self):
        with pytest.raises(QueryTooLongError):
            validate_query("x" * 2001)

    def test_accepts_max_length(self):
        assert len(validate_query("x" * 2000)) == 2000


class TestResearchJob:
    def test_new_job_is_pending(self):
        job = ResearchJob.new("What is Rust?")
        assert job.status == JobStatus.PENDING
        assert job.error_message is None
        assert job.is_active()
        assert not job.is_terminal()
        assert job.created_at == job.updated_at

    def test_transition_updates_timestamp(self):
        job = ResearchJob.new("q")
        before = job.updated_at
        job.transition_to(JobStatus.PLANNING)
        assert job.status == JobStatus.PLANNING
        assert job.updated_at >= before

    def test_fetching_may_be_skipped(self):
        job = ResearchJob.new("q")
        job.transition_to(JobStatus.SEARCHING)
        job.transition_to(JobStatus.SYNTHESIZING)
        job.transition_to(JobStatus.COMPLETED)
        assert job.is_terminal()

    def test_transitions_are_monotonic(self):
        job = ResearchJob.new("q")
        job.transition_to(JobStatus.SEARCHING)
        with pytest.raises(InvalidTransitionError):
            job.transition_to(JobStatus.PLANNING)
        with pytest.raises(InvalidTransitionError):
            job.transition_to(JobStatus.SEARCHING)

    def test_failed_requires_fail(self):
        job = ResearchJob.new("q")
        with pytest.raises(InvalidTransitionError):
            job.transition_to(JobStatus.FAILED)

    def test_fail_records_message(self):
        job = ResearchJob.new("q")
        job.transition_to(JobStatus.SEARCHING)
        job.fail("No sources found for query")
        assert job.status == JobStatus.FAILED
        assert job.error_message == "No sources found for query"
        assert job.is_terminal()

    def test_terminal_jobs_do_not_move(self):
        job = ResearchJob.new("q")
        job.transition_to(JobStatus.COMPLETED)
        with pytest.raises(InvalidTransitionError):
            job.fail("late failure")
        failed = ResearchJob.new("q")
        failed.fail("boom")
        with pytest.raises(InvalidTransitionError):
            failed.transition_to(JobStatus.COMPLETED)

    def test_error_message_only_with_failed_status(self):
        with pytest.raises(ValueError):
            ResearchJob(query="q", error_message="oops")
        with pytest.raises(ValueError):
            ResearchJob(query="q", status=JobStatus.FAILED)

    def test_with_intent(self):
        intent = QueryIntent(question_type=QuestionType.COMPARISON, entities=["Rust", "Go"])
        job = ResearchJob.new("Rust vs Go").with_intent(intent)
        assert job.intent.question_type == QuestionType.COMPARISON
        assert job.intent.language == "en"

    def test_status_helpers(self):
        assert JobStatus.COMPLETED.is_terminal()
        assert JobStatus.FAILED.is_terminal()
        for status in (JobStatus.PENDING, JobStatus.FETCHING, JobStatus.SYNTHESIZING):
            assert status.is_active()

    def test_serializes_status_as_snake_case(self):
        job = ResearchJob.new("q")
        assert job.model_dump(mode="json")["status"] == "pending"


class TestSources:
    @pytest.mark.parametrize(
        "raw, expected",
        [(1.5, 1.0), (-0.3, 0.0), (0.42, 0.42), (float("nan"), 0.0)],
    )
    def test_scores_are_clamped(self, raw, expected):
        assert Source.new("https://a.com", "A", "text", raw).relevance_score == expected
        assert SearchResult(url="https://a.com", title="A", score=raw).score == expected

    def test_metadata_extracted(self):
        source = Source.new("https://docs.python.org/3/library", "Docs", "one two three")
        assert source.metadata.domain == "docs.python.org"
        assert source.metadata.word_count == 3
        assert source.id.startswith("src_")

    def test_sources_are_immutable(self):
        source = Source.new("https://a.com", "A", "text")
        with pytest.raises(ValidationError):
            source.title = "changed"

    def test_into_source_keeps_score_and_url(self):
        result = SearchResult(url="https://a.com/x", title="X", snippet="s", score=0.7)
        source = result.into_source("body")
        assert source.url == "https://a.com/x"
        assert source.content == "body"
        assert source.relevance_score == 0.7

    @pytest.mark.parametrize(
        "url, domain",
        [
            ("https://example.com/path", "example.com"),
            ("http://sub.example.org", "sub.example.org"),
            ("example.net/a/b", "example.net"),
            ("https://Example.com?x=1", "example.com"),
            ("https://user:pw@host.io:8443/p", "host.io"),
            ("", None),
        ],
    )
    def test_extract_domain(self, url, domain):
        assert extract_domain(url) == domain

    def test_source_collection(self, sources):
        collection = SourceCollection(sources=sources)
        assert len(collection) == 3
        assert not collection.is_empty()
        assert collection.source_ids() == [s.id for s in sources]
        assert SourceCollection().is_empty()


class TestAnswer:
    def test_insufficient_is_not_answerable(self):
        answer = ResearchAnswer.insufficient("m", "nothing to go on")
        assert answer.confidence == Confidence.INSUFFICIENT
        assert not answer.is_answerable()
        assert answer.citations == []

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("high", Confidence.HIGH),
            ("HIGH", Confidence.HIGH),
            ("Medium", Confidence.MEDIUM),
            ("low", Confidence.LOW),
            ("Insufficient", Confidence.INSUFFICIENT),
            ("very high", Confidence.MEDIUM),
            ("", Confidence.MEDIUM),
            (None, Confidence.MEDIUM),
        ],
    )
    def test_confidence_parse(self, raw, expected):
        assert Confidence.parse(raw) == expected
