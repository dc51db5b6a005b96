"""Suggested follow-up tasks derived from a contract analysis.

Pure and deterministic: the same analysis, locale and day always yield the
same list, emitted in fixed rule order.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Optional

from app.schemas.domain import ContractAnalysis, SuggestedTask, TaskCategory, TaskPriority

DEFAULT_LOCALE = "en"

HIGH_RISK_THRESHOLD = 7
MEDIUM_RISK_THRESHOLD = 4
RENEWAL_URGENT_DAYS = 30
RENEWAL_SOON_DAYS = 60
MIN_ALERTS = 2

MESSAGES: dict[str, dict[str, tuple[str, str]]] = {
    "en": {
        "high_risk": (
            "Review document - High Risk",
            "Risk score: {risk}/10. Thorough review required.",
        ),
        "medium_risk": (
            "Evaluate contract terms",
            "Risk score: {risk}/10. Review recommended.",
        ),
        "abusive_clauses": (
            "Urgent legal review - Abusive clauses",
            "{count} potentially abusive clause(s) detected.",
        ),
        "renewal_urgent": (
            "URGENT: Manage renewal",
            "Contract expires in {days} days. Immediate action required.",
        ),
        "renewal_soon": (
            "Prepare contract renewal",
            "Contract expires in {days} days.",
        ),
        "alerts": (
            "Review contract alerts",
            "There are {count} alerts that need attention.",
        ),
        "termination": (
            "Review termination conditions",
            "Clause: {reference}. Verify implications.",
        ),
    },
    "es": {
        "high_risk": (
            "Revisar documento - Riesgo Alto",
            "Puntuación de riesgo: {risk}/10. Requiere revisión exhaustiva.",
        ),
        "medium_risk": (
            "Evaluar términos del contrato",
            "Puntuación de riesgo: {risk}/10. Se recomienda revisión.",
        ),
        "abusive_clauses": (
            "Revisión legal urgente - Cláusulas abusivas",
            "Se detectaron {count} cláusula(s) potencialmente abusiva(s).",
        ),
        "renewal_urgent": (
            "URGENTE: Gestionar renovación",
            "El contrato vence en {days} días. Acción inmediata requerida.",
        ),
        "renewal_soon": (
            "Preparar renovación de contrato",
            "El contrato vence en {days} días.",
        ),
        "alerts": (
            "Revisar alertas del contrato",
            "Hay {count} alertas que requieren atención.",
        ),
        "termination": (
            "Revisar condiciones de terminación",
            "Cláusula: {reference}. Verificar implicaciones.",
        ),
    },
}


def _task(
    category: TaskCategory,
    priority: TaskPriority,
    due_in_days: int,
    today: date,
    messages: dict[str, tuple[str, str]],
    **values,
) -> SuggestedTask:
    title, description = messages[category.value]
    return SuggestedTask(
        id="task-" + category.value.replace("_", "-"),
        category=category,
        title=title,
        description=description.format(**values),
        priority=priority,
        suggested_due_date=today + timedelta(days=due_in_days),
    )


def generate_tasks(
    analysis: ContractAnalysis,
    locale: str = DEFAULT_LOCALE,
    *,
    today: Optional[date] = None,
) -> list[SuggestedTask]:
    """Derive the suggested tasks for an analysis.

    Unknown locales fall back to English.
    """
    today = today or date.today()
    messages = MESSAGES.get((locale or DEFAULT_LOCALE).lower()[:2], MESSAGES[DEFAULT_LOCALE])
    tasks: list[SuggestedTask] = []
    risk = analysis.risk_score

    if risk >= HIGH_RISK_THRESHOLD:
        tasks.append(_task(TaskCategory.HIGH_RISK, TaskPriority.HIGH, 3, today, messages, risk=risk))
    elif risk >= MEDIUM_RISK_THRESHOLD:
        tasks.append(_task(TaskCategory.MEDIUM_RISK, TaskPriority.MEDIUM, 7, today, messages, risk=risk))

    if analysis.abusive_clauses:
        tasks.append(
            _task(
                TaskCategory.ABUSIVE_CLAUSES,
                TaskPriority.HIGH,
                2,
                today,
                messages,
                count=len(analysis.abusive_clauses),
            )
        )

    days_to_renewal = (analysis.renewal_date - today).days
    if 0 < days_to_renewal <= RENEWAL_URGENT_DAYS:
        tasks.append(
            _task(TaskCategory.RENEWAL_URGENT, TaskPriority.HIGH, 1, today, messages, days=days_to_renewal)
        )
    elif RENEWAL_URGENT_DAYS < days_to_renewal <= RENEWAL_SOON_DAYS:
        tasks.append(
            _task(TaskCategory.RENEWAL_SOON, TaskPriority.MEDIUM, 7, today, messages, days=days_to_renewal)
        )

    if len(analysis.alerts) >= MIN_ALERTS:
        tasks.append(
            _task(TaskCategory.ALERTS, TaskPriority.MEDIUM, 5, today, messages, count=len(analysis.alerts))
        )

    if analysis.termination_clause_reference:
        tasks.append(
            _task(
                TaskCategory.TERMINATION,
                TaskPriority.LOW,
                14,
                today,
                messages,
                reference=analysis.termination_clause_reference,
            )
        )

    return tasks


__all__ = ["MESSAGES", "generate_tasks"]
