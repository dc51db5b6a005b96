"""Tests for suggested task generation."""

from datetime import date, timedelta

from app.schemas.domain import ContractAnalysis, TaskCategory, TaskPriority
from app.services.task_suggestions import generate_tasks

TODAY = date(2025, 3, 10)


def make_analysis(**overrides) -> ContractAnalysis:
    values = dict(
        contract_type="Service Agreement",
        effective_date=date(2024, 1, 1),
        renewal_date=TODAY + timedelta(days=365),
        notice_period_days=30,
        termination_clause_reference="",
        risk_score=2,
    )
    values.update(overrides)
    return ContractAnalysis(**values)


def categories(tasks):
    return [task.category for task in tasks]


def test_low_risk_contract_yields_no_tasks():
    assert generate_tasks(make_analysis(), today=TODAY) == []


def test_high_risk():
    tasks = generate_tasks(make_analysis(risk_score=8), today=TODAY)

    assert len(tasks) == 1
    task = tasks[0]
    assert task.id == "task-high-risk"
    assert task.priority == TaskPriority.HIGH
    assert task.suggested_due_date == TODAY + timedelta(days=3)
    assert task.description == "Risk score: 8/10. Thorough review required."


def test_medium_risk_boundaries():
    assert categories(generate_tasks(make_analysis(risk_score=4), today=TODAY)) == [TaskCategory.MEDIUM_RISK]
    assert categories(generate_tasks(make_analysis(risk_score=6), today=TODAY)) == [TaskCategory.MEDIUM_RISK]
    assert categories(generate_tasks(make_analysis(risk_score=7), today=TODAY)) == [TaskCategory.HIGH_RISK]
    assert categories(generate_tasks(make_analysis(risk_score=3), today=TODAY)) == []


def test_abusive_clauses():
    tasks = generate_tasks(make_analysis(abusive_clauses=("a", "b")), today=TODAY)

    assert categories(tasks) == [TaskCategory.ABUSIVE_CLAUSES]
    assert tasks[0].description == "2 potentially abusive clause(s) detected."
    assert tasks[0].suggested_due_date == TODAY + timedelta(days=2)


def test_renewal_windows():
    def renewal_in(days):
        return generate_tasks(make_analysis(renewal_date=TODAY + timedelta(days=days)), today=TODAY)

    urgent = renewal_in(30)
    assert categories(urgent) == [TaskCategory.RENEWAL_URGENT]
    assert urgent[0].priority == TaskPriority.HIGH
    assert urgent[0].suggested_due_date == TODAY + timedelta(days=1)
    assert "30 days" in urgent[0].description

    soon = renewal_in(45)
    assert categories(soon) == [TaskCategory.RENEWAL_SOON]
    assert soon[0].priority == TaskPriority.MEDIUM

    assert categories(renewal_in(61)) == []
    assert categories(renewal_in(0)) == []
    assert categories(renewal_in(-10)) == []


def test_alerts_need_at_least_two():
    assert generate_tasks(make_analysis(alerts=("one",)), today=TODAY) == []

    tasks = generate_tasks(make_analysis(alerts=("one", "two", "three")), today=TODAY)

    assert categories(tasks) == [TaskCategory.ALERTS]
    assert tasks[0].description == "There are 3 alerts that need attention."


def test_termination_reference():
    tasks = generate_tasks(make_analysis(termination_clause_reference="Section 12.1"), today=TODAY)

    assert categories(tasks) == [TaskCategory.TERMINATION]
    assert tasks[0].priority == TaskPriority.LOW
    assert tasks[0].suggested_due_date == TODAY + timedelta(days=14)
    assert tasks[0].description == "Clause: Section 12.1. Verify implications."


def test_rule_order_is_fixed():
    analysis = make_analysis(
        risk_score=9,
        abusive_clauses=("Unilateral termination",),
        renewal_date=TODAY + timedelta(days=10),
        alerts=("a", "b"),
        termination_clause_reference="Clause 8",
    )

    tasks = generate_tasks(analysis, today=TODAY)

    assert categories(tasks) == [
        TaskCategory.HIGH_RISK,
        TaskCategory.ABUSIVE_CLAUSES,
        TaskCategory.RENEWAL_URGENT,
        TaskCategory.ALERTS,
        TaskCategory.TERMINATION,
    ]


def test_deterministic():
    analysis = make_analysis(risk_score=5, alerts=("a", "b"), termination_clause_reference="Clause 8")

    assert generate_tasks(analysis, today=TODAY) == generate_tasks(analysis, today=TODAY)


def test_spanish_locale():
    tasks = generate_tasks(make_analysis(risk_score=8), "es-ES", today=TODAY)

    assert tasks[0].title == "Revisar documento - Riesgo Alto"
    assert tasks[0].description == "Puntuación de riesgo: 8/10. Requiere revisión exhaustiva."


def test_unknown_locale_falls_back_to_english():
    tasks = generate_tasks(make_analysis(risk_score=8), "fr", today=TODAY)

    assert tasks[0].title == "Review document - High Risk"


def test_serialized_shape():
    task = generate_tasks(make_analysis(risk_score=8), today=TODAY)[0]

    assert task.to_api() == {
        "id": "task-high-risk",
        "category": "high_risk",
        "title": "Review document - High Risk",
        "description": "Risk score: 8/10. Thorough review required.",
        "priority": "high",
        "suggestedDueDate": "2025-03-13",
    }
