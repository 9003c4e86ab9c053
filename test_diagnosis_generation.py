"""
Tests for section extraction, diagnosis generation and record conversion
"""
import asyncio
import logging

import pytest

from services.diagnosis_converter import DEFAULT_FOLLOWUP_ID, to_record
from services.diagnosis_extractor import (
    FollowupDiagnosisResponse,
    SectionStatus,
    extract_section,
    find_section,
    parse_followup_diagnosis,
)
from services.diagnosis_service import DiagnosisGenerator
from services.errors import DiagnosisGenerationError
from services.followup_prompts import PILLAR, SECTION_OUTLINES, WORKBOOK
from services.prompt_assembler import FollowupContextData

LIST_FIELDS = [
    "strengths",
    "challenges",
    "recommendations",
    "strengthsAnalysis",
    "growthAreasAnalysis",
    "actionableRecommendations",
    "pillarRecommendations",
]


def model_response(category: str) -> str:
    """A well-formed response: every outline heading followed by '<field> text'"""
    return "\n\n".join(
        f"## {section.heading}\n{section.field} text" for section in SECTION_OUTLINES[category]
    )


class FakeModel:
    """Stands in for the OpenAI client"""

    model = "fake-gpt"

    def __init__(self, text: str = "", error: Exception = None):
        self.text = text
        self.error = error
        self.calls = []

    async def complete(self, system_message, user_message, temperature, max_tokens):
        self.calls.append({
            "system": system_message,
            "user": user_message,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        if self.error:
            raise self.error
        return self.text


class TestExtractSection:

    def test_boundary(self):
        text = "## A\nfoo\n## B\nbar"
        assert extract_section(text, "A", "B") == "foo"
        assert extract_section(text, "B") == "bar"

    def test_miss(self):
        assert extract_section("no headings here", "A", "B") == ""

    def test_case_insensitive(self):
        assert extract_section("## summary\nAll good\n## NEXT\nx", "SUMMARY", "NEXT") == "All good"

    def test_missing_next_heading_runs_to_end(self):
        assert extract_section("## A\nfoo\nmore", "A", "B") == "foo\nmore"

    def test_heading_prefix_does_not_match_longer_heading(self):
        assert extract_section("## ABC\nfoo", "A") == ""

    def test_three_valued_status(self):
        assert find_section("## A\nfoo\n## B", "A", "B").status == SectionStatus.FOUND
        assert find_section("## A\n\n## B\nbar", "A", "B").status == SectionStatus.EMPTY
        assert find_section("nothing", "A", "B").status == SectionStatus.MISSING
        assert find_section("", "A").status == SectionStatus.MISSING


class TestParseFollowupDiagnosis:

    def test_workbook_fields(self):
        response = parse_followup_diagnosis(model_response(WORKBOOK), WORKBOOK)
        assert response.summary == "summary text"
        assert response.situation_analysis == "situation_analysis text"
        assert response.strengths_analysis == "strengths_analysis text"
        assert response.growth_areas_analysis == "growth_areas_analysis text"
        assert response.actionable_recommendations == "actionable_recommendations text"
        assert response.pillar_recommendations == "pillar_recommendations text"
        assert response.followup_recommendation == "followup_recommendation text"
        assert response.missing_sections == []

    def test_pillar_has_no_pillar_recommendations(self):
        response = parse_followup_diagnosis(model_response(PILLAR), PILLAR)
        assert response.situation_analysis == "situation_analysis text"
        assert response.pillar_recommendations == ""
        assert "pillar_recommendations" not in response.section_status

    def test_missing_sections_reported(self):
        response = parse_followup_diagnosis("## SUMMARY\nShort answer", PILLAR)
        assert response.summary == "Short answer"
        assert "situation_analysis" in response.missing_sections
        assert response.followup_recommendation == ""


class TestDiagnosisGenerator:

    @pytest.mark.asyncio
    async def test_generate_parses_model_output(self):
        model = FakeModel(model_response(WORKBOOK))
        generator = DiagnosisGenerator(model=model)

        response = await generator.generate(WORKBOOK, FollowupContextData(original_answers={"q1": "yes"}))

        assert response.summary == "summary text"
        assert len(model.calls) == 1
        assert model.calls[0]["temperature"] == 0.7
        assert model.calls[0]["max_tokens"] == 2500
        assert "**Q1**: yes" in model.calls[0]["user"]

    @pytest.mark.asyncio
    async def test_model_error_is_opaque(self):
        cause = asyncio.TimeoutError()
        generator = DiagnosisGenerator(model=FakeModel(error=cause))

        with pytest.raises(DiagnosisGenerationError) as exc_info:
            await generator.generate(PILLAR, FollowupContextData())

        assert str(exc_info.value) == "Failed to generate follow-up diagnosis"
        assert exc_info.value.__cause__ is cause

    @pytest.mark.asyncio
    async def test_failure_log_names_category_and_model(self, caplog):
        caplog.set_level(logging.ERROR, logger="services.diagnosis_service")
        generator = DiagnosisGenerator(model=FakeModel(error=RuntimeError("rate limited")))

        with pytest.raises(DiagnosisGenerationError):
            await generator.generate(PILLAR, FollowupContextData())

        assert "pillar follow-up diagnosis failed" in caplog.text
        assert "model=fake-gpt" in caplog.text

    @pytest.mark.asyncio
    async def test_empty_model_output_yields_empty_fields(self):
        generator = DiagnosisGenerator(model=FakeModel(""))
        response = await generator.generate(WORKBOOK, FollowupContextData())
        assert response.summary == ""
        assert set(response.missing_sections) == set(response.section_status)


class TestDiagnosisConverter:

    def test_all_empty_input_is_well_formed(self):
        record = to_record(FollowupDiagnosisResponse(), WORKBOOK)

        for name in LIST_FIELDS:
            assert isinstance(record[name], list), name
        assert record["situationAnalysis"] == {"fullText": ""}
        assert record["followupWorksheets"] == {"pillars": [], "followup": "followup-assessment"}
        assert record["strengthsAnalysis"] == [{"strength": "", "evidence": "", "impact": "", "leverage": ""}]
        assert record["growthAreasAnalysis"][0]["rootCause"] == ""
        assert "createdAt" in record

    def test_followup_default(self):
        record = to_record(FollowupDiagnosisResponse(followup_recommendation=""), PILLAR)
        assert record["followupRecommendation"]["id"] == DEFAULT_FOLLOWUP_ID
        assert record["followupRecommendation"]["title"] == "Follow-up Assessment"
        assert record["followupRecommendation"]["reason"] == ""

    def test_followup_reason_carried(self):
        record = to_record(FollowupDiagnosisResponse(followup_recommendation="Weekly coaching"), PILLAR)
        assert record["followupRecommendation"]["id"] == "followup-assessment"
        assert record["followupRecommendation"]["reason"] == "Weekly coaching"

    def test_sections_mapped(self):
        response = parse_followup_diagnosis(model_response(WORKBOOK), WORKBOOK)
        record = to_record(response, WORKBOOK)

        assert record["summary"] == "summary text"
        assert record["strengths"] == ["strengths_analysis text"]
        assert record["challenges"] == ["growth_areas_analysis text"]
        assert record["recommendations"] == ["actionable_recommendations text"]
        assert record["situationAnalysis"]["fullText"] == "situation_analysis text"
        assert record["actionableRecommendations"][0]["action"] == "actionable_recommendations text"
        assert record["pillarRecommendations"][0]["reason"] == "pillar_recommendations text"

    def test_focus_pillars_detected(self):
        response = FollowupDiagnosisResponse(
            pillar_recommendations="Renew focus on Time Mastery, then Decision Making."
        )
        record = to_record(response, WORKBOOK)
        assert record["followupWorksheets"]["pillars"] == ["pillar4_time_mastery", "pillar11_decision_making"]
