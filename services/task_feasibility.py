"""
Task Feasibility
Decides whether a new task can realistically be planned before it is saved.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence

from services.planning_domain import FixedCommitment, StudyPlan, Task, UserSettings
from services.study_plan_generator import generate_study_plan_with_preservation

logger = logging.getLogger(__name__)

MIN_SCHEDULED_PERCENTAGE = 50


@dataclass
class AddTaskFeasibility:
    blocks_new_task: bool
    reason: str
    scheduled_hours: float
    total_hours: float
    scheduled_percentage: float
    plans: List[StudyPlan] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'blocks_new_task': self.blocks_new_task,
            'reason': self.reason,
            'scheduled_hours': round(self.scheduled_hours, 2),
            'total_hours': self.total_hours,
            'scheduled_percentage': round(self.scheduled_percentage, 1),
        }


def assess_add_task_feasibility(
    new_task: Task,
    all_tasks: Iterable[Task],
    settings: UserSettings,
    commitments: Sequence[FixedCommitment],
    existing_plans: Iterable[StudyPlan],
    precomputed_plans: Optional[List[StudyPlan]] = None,
    today: Optional[date] = None,
) -> AddTaskFeasibility:
    """
    Plan ``all_tasks`` (which includes ``new_task``) and measure how much of the new task fits.

    The task is blocked when none of it, or less than half of it, can be scheduled.
    """
    plans = precomputed_plans
    if plans is None:
        plans = generate_study_plan_with_preservation(all_tasks, settings, commitments, existing_plans, today).plans

    scheduled = sum(
        s.allocated_hours
        for plan in plans
        for s in plan.planned_tasks
        if s.task_id == new_task.id and not s.is_skipped
    )
    total = new_task.estimated_hours
    percentage = scheduled / total * 100 if total > 0 else 0.0

    unscheduled = scheduled == 0
    blocks = unscheduled or percentage < MIN_SCHEDULED_PERCENTAGE
    reason = 'cannot be scheduled at all' if unscheduled else f"can only be {percentage:.0f}% scheduled"

    if blocks:
        logger.info(f"Task '{new_task.title}' {reason}")
    return AddTaskFeasibility(
        blocks_new_task=blocks,
        reason=reason,
        scheduled_hours=scheduled,
        total_hours=total,
        scheduled_percentage=percentage,
        plans=plans,
    )
