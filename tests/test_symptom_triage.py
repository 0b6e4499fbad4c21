"""Tests for rule-based symptom triage and the symptom check history."""

from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy import select

from clinic_portal.core.exceptions import NotFoundException, ValidationException
from clinic_portal.models import notifications, symptom_check_scopes, symptom_checks
from clinic_portal.schemas.symptoms import (
    SymptomCategory,
    SymptomCheckRequest,
    SymptomScope,
    UrgencyLevel,
)
from clinic_portal.services.symptom_check_service import SymptomCheckService, age_on
from clinic_portal.services.symptom_triage import (
    DISCLAIMER,
    FEVER_SELF_CARE,
    GENERAL_WARNING_SIGNS,
    TriageEngine,
    phrase_pattern,
    render_markdown,
)


def scope(symptom_name: str, **fields) -> SymptomScope:
    values = {
        "id": uuid4(),
        "symptom_name": symptom_name,
        "category": SymptomCategory.GENERAL,
        "urgency_level": UrgencyLevel.ROUTINE,
    }
    values.update(fields)
    return SymptomScope(**values)


FEVER = scope(
    "fever",
    possible_conditions="Flu, Viral Infection, Common Cold, COVID-19",
    warning_keywords="stiff neck, rash",
    recommended_specialization="General Practice",
    guidance="Check your temperature every few hours",
)
COUGH = scope(
    "cough",
    category=SymptomCategory.RESPIRATORY,
    possible_conditions="Common Cold, Bronchitis, Pneumonia, Asthma",
    warning_keywords="blood, wheezing",
    recommended_specialization="Pulmonology",
)
CHEST_PAIN = scope(
    "chest pain",
    category=SymptomCategory.CARDIOVASCULAR,
    possible_conditions="Angina, Costochondritis, Heart Attack",
    urgency_level=UrgencyLevel.URGENT,
    recommended_specialization="Cardiology",
)


def evaluate(symptoms: str, *scopes: SymptomScope, **extra):
    return TriageEngine().evaluate(scopes, SymptomCheckRequest(symptoms=symptoms, **extra))


def section(result, heading: str):
    return next(s for s in result.sections if s.heading == heading)


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------


def test_phrase_pattern_matches_whole_words_only():
    pattern = phrase_pattern("Cough")

    assert pattern.search("a dry COUGH since monday")
    assert pattern.search("cough, fever")
    assert not pattern.search("i keep coughing")
    assert not pattern.search("whooping-coughs")


def test_scope_names_match_whole_words():
    assert evaluate("I keep coughing at night", COUGH).detected == []
    assert evaluate("Bad cough at night", COUGH).matched_symptom_names == ["cough"]


def test_additional_info_and_duration_are_searched():
    result = evaluate("feeling unwell", FEVER, COUGH, additional_info="there is a cough too")

    assert result.matched_symptom_names == ["cough"]


def test_inactive_scopes_are_ignored():
    inactive = scope("fever", is_active=False)

    assert evaluate("high fever", inactive).detected == []


def test_blank_symptoms_are_rejected():
    with pytest.raises(ValidationException, match="Please describe your symptoms"):
        evaluate("   ", FEVER)


# ---------------------------------------------------------------------------
# Urgency
# ---------------------------------------------------------------------------


def test_no_match_is_routine():
    result = evaluate("I feel a little tired", FEVER, COUGH)

    assert result.urgency == UrgencyLevel.ROUTINE
    assert result.critical is False
    assert result.conditions == []


def test_warning_keyword_escalates_routine_scope():
    assert evaluate("a dry cough", COUGH).urgency == UrgencyLevel.ROUTINE
    assert evaluate("cough with blood in it", COUGH).urgency == UrgencyLevel.URGENT


def test_highest_scope_urgency_wins():
    result = evaluate("fever and chest pain", FEVER, CHEST_PAIN)

    assert result.urgency == UrgencyLevel.URGENT
    assert result.critical is False


def test_emergency_scope_without_critical_phrase():
    stroke_signs = scope("facial droop", urgency_level=UrgencyLevel.EMERGENCY)

    result = evaluate("sudden facial droop on one side", stroke_signs)

    assert result.urgency == UrgencyLevel.EMERGENCY
    assert result.critical is False


def test_critical_phrase_forces_emergency():
    result = evaluate("severe chest pain, crushing, can't breathe", CHEST_PAIN)

    assert result.urgency == UrgencyLevel.EMERGENCY
    assert result.critical is True
    assert result.matched_symptom_names == ["chest pain"]


def test_critical_phrase_without_any_scope():
    result = evaluate("my father is unconscious", FEVER, COUGH)

    assert result.urgency == UrgencyLevel.EMERGENCY
    assert result.detected == []


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------


def test_conditions_are_capped_and_deduplicated():
    result = evaluate("fever and cough", FEVER, COUGH)

    assert [c.name for c in result.conditions] == [
        "Flu",
        "Viral Infection",
        "Common Cold",
        "Bronchitis",
        "Pneumonia",
    ]
    common_cold = result.conditions[2]
    assert common_cold.symptoms == ["fever", "cough"]

    diagnosis = section(result, "Possible Diagnosis")
    assert len(diagnosis.items) == 5
    assert diagnosis.items[2].endswith("(Related to your symptoms: fever, cough)")


def test_report_sections_are_ordered():
    result = evaluate("fever", FEVER)

    assert [s.heading for s in result.sections] == [
        "Possible Diagnosis",
        "Self-Care Recommendations",
        "When to Seek Medical Attention",
        "Urgency Assessment",
        "Recommended Healthcare Provider",
        "Important Medical Disclaimer",
    ]
    assert result.sections[-1].body == DISCLAIMER


def test_self_care_follows_detected_symptoms():
    self_care = section(evaluate("fever", FEVER), "Self-Care Recommendations")

    for item in FEVER_SELF_CARE:
        assert item in self_care.items
    assert self_care.items[-1] == "Check your temperature every few hours"
    assert not any(item.startswith("Respiratory Relief") for item in self_care.items)

    respiratory = section(evaluate("cough", COUGH), "Self-Care Recommendations")
    assert any(item.startswith("Respiratory Relief") for item in respiratory.items)


def test_general_warning_signs_only_for_routine():
    routine = section(evaluate("fever", FEVER), "When to Seek Medical Attention")
    urgent = section(evaluate("chest pain", CHEST_PAIN), "When to Seek Medical Attention")

    assert routine.items[:2] == ["Stiff neck", "Rash"]
    assert list(GENERAL_WARNING_SIGNS) == routine.items[2:]
    assert urgent.items == []


def test_specializations_are_deduplicated():
    second_gp = scope("sore throat", recommended_specialization="General Practice")

    result = evaluate("fever and sore throat", FEVER, second_gp)

    assert result.specializations == ["General Practice"]


def test_provider_falls_back_to_general_practitioner():
    provider = section(evaluate("tired", FEVER), "Recommended Healthcare Provider")

    assert provider.items == ["General Practitioner or Family Doctor"]


def test_provider_lists_alternatives():
    result = evaluate("fever, cough and chest pain", FEVER, COUGH, CHEST_PAIN)
    provider = section(result, "Recommended Healthcare Provider")

    assert provider.items == ["General Practice", "Pulmonology"]
    assert "Alternative specialists: Cardiology" in provider.body


def test_emergency_sends_to_emergency_room_first():
    result = evaluate("chest pain, heart attack?", CHEST_PAIN)
    provider = section(result, "Recommended Healthcare Provider")

    assert provider.body.startswith("First: Go to the Emergency Room immediately")
    assert provider.items == ["Cardiology"]
    assert section(result, "Urgency Assessment").body.startswith("EMERGENCY")


def test_render_markdown():
    markdown = render_markdown(evaluate("fever", FEVER).sections)

    assert markdown.startswith("# Symptom Analysis Results")
    assert "## Urgency Assessment" in markdown
    assert "* Flu: " in markdown


def test_evaluation_is_deterministic():
    first = evaluate("fever and cough with wheezing", FEVER, COUGH)
    second = evaluate("fever and cough with wheezing", FEVER, COUGH)

    assert first.sections == second.sections
    assert first.urgency == second.urgency == UrgencyLevel.URGENT


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


def test_age_on():
    assert age_on(date(1990, 5, 15), date(2026, 5, 14)) == 35
    assert age_on(date(1990, 5, 15), date(2026, 5, 15)) == 36


@pytest.mark.asyncio
async def test_check_symptoms_is_recorded(db_session, caller, make_scope, clock) -> None:
    """A routine check is stored with its matched scopes and no notification."""
    fever_id = await make_scope(
        "fever",
        possible_conditions="Flu, Viral Infection",
        recommended_specialization="General Practice",
    )
    cough_id = await make_scope("cough", category="Respiratory")
    await make_scope("rash", category="Dermatological")

    service = SymptomCheckService(db_session, clock=clock)
    result = await service.check_symptoms(
        caller, SymptomCheckRequest(symptoms="High fever and a dry cough", duration="3 days")
    )

    assert result.urgency == UrgencyLevel.ROUTINE
    assert result.detected_scopes == 2
    assert result.matched_symptom_names == "cough, fever"
    assert result.response_markdown.startswith("# Symptom Analysis Results")

    row = (
        await db_session.execute(select(symptom_checks).where(symptom_checks.c.id == result.check_id))
    ).mappings().one()
    assert row["age"] == 36
    assert row["duration"] == "3 days"
    assert row["urgency_level"] == "routine"
    assert row["response"][0]["heading"] == "Possible Diagnosis"

    linked = (
        await db_session.execute(
            select(symptom_check_scopes.c.scope_id).where(
                symptom_check_scopes.c.check_id == result.check_id
            )
        )
    ).scalars().all()
    assert set(linked) == {fever_id, cough_id}

    assert (await db_session.execute(select(notifications))).first() is None


@pytest.mark.asyncio
async def test_explicit_age_is_kept(db_session, caller, make_scope, clock) -> None:
    await make_scope("fever")

    result = await SymptomCheckService(db_session, clock=clock).check_symptoms(
        caller, SymptomCheckRequest(symptoms="fever", age=8)
    )

    stored = await db_session.execute(
        select(symptom_checks.c.age).where(symptom_checks.c.id == result.check_id)
    )
    assert stored.scalar_one() == 8


@pytest.mark.asyncio
async def test_urgent_check_notifies_patient(db_session, caller, make_scope, clock) -> None:
    await make_scope("chest pain", category="Cardiovascular", urgency_level="urgent")

    result = await SymptomCheckService(db_session, clock=clock).check_symptoms(
        caller, SymptomCheckRequest(symptoms="severe chest pain, crushing, can't breathe")
    )

    assert result.urgency == UrgencyLevel.EMERGENCY
    note = (
        await db_session.execute(
            select(notifications).where(notifications.c.user_id == caller.user_id)
        )
    ).mappings().one()
    assert note["notification_type"] == "symptom_check"
    assert note["title"] == "Symptom Check: Emergency"


@pytest.mark.asyncio
async def test_history_lists_recent_checks_first(
    db_session, caller, other_caller, make_scope, clock
) -> None:
    await make_scope("fever")
    await make_scope("cough")
    service = SymptomCheckService(db_session, clock=clock)

    first = await service.check_symptoms(caller, SymptomCheckRequest(symptoms="fever"))
    clock.advance(hours=1)
    second = await service.check_symptoms(caller, SymptomCheckRequest(symptoms="cough and fever"))
    await service.check_symptoms(other_caller, SymptomCheckRequest(symptoms="fever"))

    history = await service.list_recent(caller)

    assert history.total == 2
    assert [item.id for item in history.items] == [second.check_id, first.check_id]
    assert history.items[0].matched_symptoms == ["cough", "fever"]

    detail = await service.get_check(caller, first.check_id)
    assert detail.check.matched_symptoms == ["fever"]
    assert detail.check.response[0].heading == "Possible Diagnosis"


@pytest.mark.asyncio
async def test_other_patients_check_is_not_found(
    db_session, caller, other_caller, make_scope, clock
) -> None:
    await make_scope("fever")
    service = SymptomCheckService(db_session, clock=clock)
    theirs = await service.check_symptoms(other_caller, SymptomCheckRequest(symptoms="fever"))

    with pytest.raises(NotFoundException, match="Record not found"):
        await service.get_check(caller, theirs.check_id)
