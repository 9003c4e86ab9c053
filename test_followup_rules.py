"""
Tests for the worksheet catalog, context building, improvement scoring,
follow-up triggers and recommendation ranking
"""
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from services.context_builder import (
    NO_FOLLOWUP_HISTORY,
    build_followup_context,
    calculate_time_elapsed,
    format_followup_history,
    resolve_user_name,
)
from services.errors import InvalidAnswersError
from services.followup_trigger_service import FollowupTriggerEngine, ReasonKind, TriggerResult
from services.improvement_score import calculate_improvement_score, parse_progress_level
from services.recommendation_service import (
    WorksheetRecommendation,
    infer_priority,
    rank,
    rank_by_relevance,
    related_worksheet_candidates,
)
from services.worksheet_catalog import (
    extract_pillar_id,
    get_followup_type,
    get_pillar_title,
    load_worksheet,
    validate_followup_answers,
)

NOW = datetime(2026, 3, 1, 12, 0, 0)


def make_submission(submission_id="s1", answers=None, days_ago=30, diagnosis=None, **extra):
    fields = dict(
        id=submission_id,
        user_id="u1",
        user_name=None,
        user=None,
        answers=answers or {},
        diagnosis=diagnosis,
        followup=None,
        pillars=[],
        submitted_at=NOW - timedelta(days=days_ago),
        created_at=NOW - timedelta(days=days_ago + 1),
    )
    fields.update(extra)
    return SimpleNamespace(**fields)


class TestWorksheetCatalog:

    def test_pillar_titles(self):
        assert get_pillar_title("pillar3_communication_mastery") == "Communication Mastery"
        assert get_pillar_title("pillar99_unknown") == "Unknown Pillar"
        assert get_pillar_title(None) == "Unknown Pillar"
        assert get_pillar_title("") == "Unknown Pillar"

    def test_pillar_title_by_number(self):
        assert get_pillar_title("pillar3-followup") == "Communication Mastery"
        assert get_pillar_title("pillar12") == "Execution and Results"
        assert get_pillar_title("leadership") == "Unknown Pillar"

    def test_followup_type(self):
        assert get_followup_type("pillar2-followup") == "pillar"
        assert get_followup_type("pillar2_goal_setting-followup") == "pillar"
        assert get_followup_type("jackier-step3-followup") == "workbook"
        assert get_followup_type("implementation-review") == "workbook"
        assert get_followup_type("my-pillar-review") == "pillar"
        assert get_followup_type("followup-1") == "workbook"

    def test_extract_pillar_id(self):
        assert extract_pillar_id("pillar1-followup") == "pillar1_leadership_mindset"
        assert extract_pillar_id("pillar12_execution_results-followup") == "pillar12_execution_results"
        assert extract_pillar_id("pillar13-followup") is None
        assert extract_pillar_id("followup-1") is None

    def test_load_worksheet(self):
        assert load_worksheet("pillar3-followup").title == "Communication Mastery Follow-up"
        assert load_worksheet("pillar3_communication_mastery-followup").id == "pillar3-followup"
        assert load_worksheet("followup-2").title == "Identify the Issues"
        assert load_worksheet("jackier-step1-followup").category == "workbook"
        assert load_worksheet("nope") is None
        assert load_worksheet(None) is None

    def test_validate_answers(self):
        worksheet = load_worksheet("followup-1")
        validate_followup_answers(worksheet, {"reflection": "More focus"})

        with pytest.raises(InvalidAnswersError):
            validate_followup_answers(worksheet, {})
        with pytest.raises(InvalidAnswersError):
            validate_followup_answers(worksheet, {"reflection": "ok", "unknown-question": "x"})


class TestTimeElapsed:

    @pytest.mark.parametrize("days,expected", [
        (0, "Less than a day"),
        (1, "1 day"),
        (3, "3 days"),
        (7, "1 week"),
        (20, "2 weeks"),
        (45, "1 month"),
        (90, "3 months"),
        (400, "1 year"),
        (800, "2 years"),
    ])
    def test_buckets(self, days, expected):
        assert calculate_time_elapsed(NOW - timedelta(days=days), now=NOW) == expected

    def test_unknown(self):
        assert calculate_time_elapsed(None) == "Unknown"


class TestContextBuilder:

    def test_user_name_from_lookup(self):
        submission = make_submission(user_name="Stored Name")
        assert resolve_user_name(submission, lambda uid: SimpleNamespace(name="Dana")) == "Dana"

    def test_user_name_fallbacks(self):
        def failing_lookup(uid):
            raise RuntimeError("db down")

        assert resolve_user_name(make_submission(user_name="Stored Name"), failing_lookup) == "Stored Name"
        assert resolve_user_name(make_submission(user=SimpleNamespace(name="Nested")), lambda uid: None) == "Nested"
        assert resolve_user_name(make_submission()) == "Client"

    def test_pillar_context(self):
        submission = make_submission(answers={"q1": "yes"}, diagnosis={"summary": "Before"}, user_name="Dana")
        data = build_followup_context(
            "pillar", submission, {"p3-actions-taken": "One-on-ones"},
            pillar_id="pillar3_communication_mastery", time_elapsed="2 weeks"
        )
        assert data.worksheet_title == "Pillar Follow-up: Communication Mastery"
        assert data.worksheet_description == "Follow-up assessment for the Communication Mastery pillar"
        assert data.pillar_title == "Communication Mastery"
        assert data.time_elapsed == "2 weeks"
        assert data.user_name == "Dana"
        assert data.original_answers == {"q1": "yes"}
        assert data.original_diagnosis == {"summary": "Before"}

    def test_workbook_context(self):
        data = build_followup_context("workbook", make_submission(), {"reflection": "x"})
        assert data.worksheet_title == "Workbook Implementation Follow-up"
        assert data.worksheet_description == "Follow-up assessment for overall workbook implementation"
        assert data.pillar_title == "Unknown Pillar"
        assert data.time_elapsed not in ("", None)
        assert data.followup_history == NO_FOLLOWUP_HISTORY

    def test_followup_history(self):
        submission = make_submission(pillars=[{
            "worksheetId": "pillar2-followup",
            "worksheetType": "pillar",
            "answers": {"p2-obstacles": "Time"},
            "submittedAt": "2026-02-01T10:00:00",
        }])
        history = format_followup_history(submission)
        assert "Goal Setting Follow-up (submitted 2026-02-01T10:00:00)" in history
        assert "Time" in history

    def test_followup_history_skips_current_followup(self):
        submission = make_submission(
            pillars=[{"worksheetId": "pillar2-followup", "answers": {"p2-obstacles": "Time"}}],
            followup={"worksheetId": "followup-1", "answers": {"reflection": "Earlier try"}},
        )
        history = format_followup_history(submission, exclude_worksheet_id="followup-1")
        assert "Earlier try" not in history
        assert "Time" in history

        only_current = make_submission(followup={"worksheetId": "followup-1", "answers": {"reflection": "x"}})
        assert format_followup_history(only_current, "followup-1") == NO_FOLLOWUP_HISTORY


class TestImprovementScore:

    def test_no_diagnosis(self):
        assert calculate_improvement_score(None, "pillar") == 0

    def test_no_factors(self):
        assert calculate_improvement_score({"summary": "x"}, "workbook") == 50

    def test_counts(self):
        diagnosis = {
            "strengths": ["a"],
            "challenges": ["b"],
            "pillarRecommendations": [{"reason": ""}],
        }
        # (10 + 40 + 60) / 3
        assert calculate_improvement_score(diagnosis, "pillar") == 37
        # pillar recommendations only count for pillar follow-ups
        assert calculate_improvement_score(diagnosis, "workbook") == 25

    def test_progress_levels(self):
        assert parse_progress_level("Excellent growth") == 90
        assert parse_progress_level("significant") == 75
        assert parse_progress_level("No progress yet") == 10
        assert parse_progress_level("unclear") == 50
        diagnosis = {"situationAnalysis": {"progressLevel": "Outstanding"}}
        assert calculate_improvement_score(diagnosis, "workbook") == 90

    def test_implementation_progress_for_workbook(self):
        diagnosis = {"followupRecommendation": {"implementationProgress": "limited"}}
        assert calculate_improvement_score(diagnosis, "workbook") == 30
        assert calculate_improvement_score(diagnosis, "pillar") == 50


class TestFollowupTriggerEngine:

    @pytest.fixture
    def engine(self):
        return FollowupTriggerEngine(days_min=7, days_max=14, low_rating_threshold=2)

    def test_explicit_request_field(self, engine):
        result = engine.determine(make_submission(answers={"needs_help": True}), NOW)
        assert result.should_trigger
        assert result.reason == "User explicitly requested help or follow-up"
        assert result.reason_kind == ReasonKind.EXPLICIT_REQUEST
        assert result.worksheet_id == "followup-1"
        assert result.original_submission_id == "s1"

    def test_explicit_request_uses_diagnosed_pillar(self, engine):
        diagnosis = {"followupWorksheets": {"pillars": ["pillar3_communication_mastery"], "followup": None}}
        submission = make_submission(answers={"request_followup": "yes"}, diagnosis=diagnosis)
        result = engine.determine(submission, NOW)
        assert result.worksheet_id == "pillar3-followup"
        assert result.pillars == ["pillar3_communication_mastery"]

    def test_help_keyword_in_text(self, engine):
        result = engine.determine(make_submission(answers={"notes": "I NEED HELP with my team"}), NOW)
        assert result.reason_kind == ReasonKind.EXPLICIT_REQUEST

    def test_low_ratings(self, engine):
        answers = {
            "pillar2_goal_setting_rating": 1,
            "pillar5_strategic_thinking_rating": 2,
            "pillar4_time_mastery_rating": 4,
        }
        result = engine.determine(make_submission(answers=answers), NOW)
        assert result.reason == "Low ratings detected in pillars: pillar2_goal_setting, pillar5_strategic_thinking"
        assert result.worksheet_id == "pillar2-followup"
        assert result.pillars == ["pillar2_goal_setting", "pillar5_strategic_thinking"]

    def test_boolean_is_not_a_rating(self, engine):
        result = engine.determine(make_submission(answers={"pillar1_leadership_mindset_rating": True}), NOW)
        assert not result.should_trigger

    @pytest.mark.parametrize("days,expected", [(3, False), (7, True), (10, True), (14, True), (20, False)])
    def test_time_window(self, engine, days, expected):
        result = engine.determine(make_submission(days_ago=days), NOW)
        assert result.should_trigger is expected
        if expected:
            assert result.reason == "Appropriate time has passed since original submission"

    def test_existing_followups_skip(self, engine):
        submission = make_submission(answers={"needs_help": True}, followup={"worksheetId": "followup-1"})
        result = engine.determine(submission, NOW)
        assert not result.should_trigger
        assert result.reason == "Submission already has follow-ups"

    def test_evaluate_orders_by_priority(self, engine):
        submissions = [
            make_submission("time-1", days_ago=10),
            make_submission("ratings", answers={"pillar2_goal_setting_rating": 1}),
            make_submission("explicit", answers={"stuck": True}),
            make_submission("quiet", days_ago=40),
            make_submission("time-2", days_ago=8),
        ]
        results = engine.evaluate(submissions, NOW)
        assert [r.original_submission_id for r in results] == ["explicit", "ratings", "time-1", "time-2"]


WORKSHEETS = {
    "ws-1": {"title": "One", "description": "First", "category": "pillar"},
    "ws-2": {"title": "Two", "description": "", "category": "workbook"},
    "ws-3": {"title": "Three", "description": "Third", "category": "workbook"},
}


def trigger(submission_id, worksheet_id, reason="Appropriate time has passed since original submission"):
    return TriggerResult(
        should_trigger=True,
        reason=reason,
        worksheet_id=worksheet_id,
        original_submission_id=submission_id,
    )


class TestRecommendationRanker:

    @pytest.mark.parametrize("reason,priority", [
        ("User explicitly requested a follow-up", "high"),
        ("Low ratings on pillar X", "high"),
        ("Appropriate time has passed since original submission", "low"),
        ("90 days have passed since submission", "medium"),
        ("Something else", "medium"),
    ])
    def test_priority(self, reason, priority):
        assert infer_priority(reason) == priority

    def test_first_result_per_submission_wins(self):
        results = [trigger("a", "ws-1"), trigger("a", "ws-2"), trigger("b", "ws-3")]
        ranked = rank(results, [], WORKSHEETS.get)
        assert [(r.original_submission_id, r.worksheet_id) for r in ranked] == [("a", "ws-1"), ("b", "ws-3")]

    def test_failed_lookup_is_isolated(self):
        def lookup(worksheet_id):
            if worksheet_id == "broken":
                raise RuntimeError("worksheet store unavailable")
            return WORKSHEETS.get(worksheet_id)

        results = [trigger("a", "broken"), trigger("a", "ws-2"), trigger("b", "missing"), trigger("c", "ws-3")]
        ranked = rank(results, [], lookup)
        assert [(r.original_submission_id, r.worksheet_id) for r in ranked] == [("a", "ws-2"), ("c", "ws-3")]

    def test_recommendation_fields(self):
        submissions = [make_submission("a", days_ago=10)]
        ranked = rank([trigger("a", "ws-1", reason="User explicitly requested help or follow-up")], submissions, WORKSHEETS.get)
        payload = ranked[0].to_dict()

        assert payload["worksheetTitle"] == "One"
        assert payload["worksheetType"] == "pillar"
        assert payload["worksheetDescription"] == "First"
        assert payload["priority"] == "high"
        assert payload["reasonKind"] == "explicit_request"
        assert payload["submittedAt"] == (NOW - timedelta(days=10)).isoformat()
        assert payload["pillars"] == []

    def test_input_order_preserved(self):
        results = [
            trigger("a", "ws-1"),
            trigger("b", "ws-2", reason="User explicitly requested help or follow-up"),
        ]
        ranked = rank(results, [], WORKSHEETS.get)
        assert [r.original_submission_id for r in ranked] == ["a", "b"]

    def test_rank_by_relevance(self):
        candidates = [
            WorksheetRecommendation("A", "A", "", 0.5),
            WorksheetRecommendation("B", "B", "", 0.9),
            WorksheetRecommendation("A", "A again", "", 0.95),
            WorksheetRecommendation("C", "C", "", 0.7),
        ]
        assert [c.worksheet_id for c in rank_by_relevance(candidates, current_worksheet_id="B")] == ["C", "A"]
        assert [c.worksheet_id for c in rank_by_relevance(candidates, limit=2)] == ["B", "C"]

    def test_related_worksheet_candidates(self):
        candidates = related_worksheet_candidates(["pillar1_leadership_mindset"])
        ids = [c.worksheet_id for c in candidates]
        assert ids == ["pillar1-followup", "pillar2-followup"]
        assert candidates[0].relevance_score == 0.9
