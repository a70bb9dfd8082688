import pytest

from research_engine.models.base import ContentType, QuestionType, Recency, TimeConstraintKind
from research_engine.models.research import QueryIntent, TimeConstraint
from research_engine.services.errors import EmptyQueryError
from research_engine.services.planner import PlannerConfig, SearchPlanner, filters_for_intent


def test_plan_uses_trimmed_query_and_defaults():
    plan = SearchPlanner().plan("  What is Rust?  ")
    assert [q.text for q in plan.queries] == ["What is Rust?"]
    assert plan.providers == ["tavily"]
    assert plan.max_sources == 10
    assert plan.timeout_secs == 30
    assert plan.queries[0].filters.is_empty()


def test_plan_respects_config():
    config = PlannerConfig(default_providers=["exa", "searxng"], max_sources=4, timeout_secs=5)
    plan = SearchPlanner(config).plan("q")
    assert plan.providers == ["exa", "searxng"]
    assert plan.max_sources == 4
    assert plan.timeout_secs == 5


def test_plan_rejects_empty_query():
    with pytest.raises(EmptyQueryError):
        SearchPlanner().plan("   ")


def test_current_event_intent_prefers_recent_news():
    filters = filters_for_intent(QueryIntent(question_type=QuestionType.CURRENT_EVENT))
    assert filters.content_type == ContentType.NEWS
    assert filters.recency == Recency.WEEK


def test_recent_time_constraint_sets_recency():
    intent = QueryIntent(time_constraint=TimeConstraint(kind=TimeConstraintKind.RECENT))
    filters = filters_for_intent(intent)
    assert filters.recency == Recency.WEEK
    assert filters.content_type is None


def test_no_intent_means_no_filters():
    assert filters_for_intent(None).is_empty()
    assert filters_for_intent(QueryIntent()).is_empty()
