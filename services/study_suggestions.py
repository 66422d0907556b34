"""
Study Suggestions
Eisenhower-style nudges computed from the task list.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from services.planning_domain import Task, TaskStatus

URGENT_WITHIN_DAYS = 3


@dataclass
class Suggestion:
    type: str  # warning, suggestion, celebration
    message: str
    action: str

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type, 'message': self.message, 'action': self.action}


def _days_left(task: Task, today: date) -> Optional[int]:
    if task.deadline is None:
        return None
    return (task.deadline - today).days


def generate_smart_suggestions(
    tasks: Iterable[Task],
    unscheduled_tasks: Optional[Iterable[Task]] = None,
    today: Optional[date] = None,
) -> List[Suggestion]:
    today = today or date.today()
    tasks = list(tasks)
    pending = [t for t in tasks if t.is_pending]
    dated = [(t, _days_left(t, today)) for t in pending if t.deadline is not None]

    suggestions = []

    overdue = [t for t, days in dated if days < 0]
    if overdue:
        suggestions.append(Suggestion(
            'warning',
            f"You have {len(overdue)} overdue task(s). Consider extending deadlines or increasing study hours.",
            'Review and update deadlines for overdue tasks.',
        ))

    urgent = [t for t, days in dated if days <= URGENT_WITHIN_DAYS]
    urgent_important = [t for t in urgent if t.importance]
    urgent_other = [t for t in urgent if not t.importance]
    if urgent_important:
        suggestions.append(Suggestion(
            'warning',
            f"You have {len(urgent_important)} important task(s) due within 3 days.",
            'Focus on these tasks first to avoid last-minute stress.',
        ))
    if urgent_other:
        suggestions.append(Suggestion(
            'warning',
            f"You have {len(urgent_other)} urgent but not important task(s) due soon. "
            f"These may not fit in your schedule.",
            'Consider increasing your daily hour limit, delegating, or rescheduling these tasks.',
        ))

    if unscheduled_tasks:
        starved = [
            t for t in unscheduled_tasks
            if t.is_pending and not t.importance
            and t.deadline is not None and (t.deadline - today).days <= URGENT_WITHIN_DAYS
        ]
        if starved:
            suggestions.append(Suggestion(
                'warning',
                'Some low-priority tasks with urgent deadlines could not be scheduled because '
                'higher-priority urgent tasks are taking precedence.',
                'Consider increasing your daily available hours, rescheduling, or marking some tasks as more important.',
            ))

    later = [t for t, days in dated if days > URGENT_WITHIN_DAYS]
    important_later = [t for t in later if t.importance]
    other_later = [t for t in later if not t.importance]
    if important_later:
        suggestions.append(Suggestion(
            'suggestion',
            f"You have {len(important_later)} important task(s) with more than 3 days until deadline.",
            'Schedule time for these now to avoid last-minute stress.',
        ))
    if other_later:
        suggestions.append(Suggestion(
            'suggestion',
            f"You have {len(other_later)} task(s) that are neither urgent nor important.",
            'Do these only if you have extra time, or consider dropping them.',
        ))

    completed = [t for t in tasks if t.status == TaskStatus.COMPLETED]
    if completed:
        suggestions.append(Suggestion(
            'celebration',
            f"Great job! You've completed {len(completed)} task(s).",
            'Keep up the momentum!',
        ))

    return suggestions
