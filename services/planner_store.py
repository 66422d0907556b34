"""
Planner Store
Loads a user's planning inputs from the database as domain objects and
stores regenerated plans.
"""

import logging
from datetime import date
from typing import List, Optional

from models import FixedCommitment as CommitmentRow
from models import StudyPlanRepository
from models import Task as TaskRow
from models import UserSettings as SettingsRow
from services.cache import plan_cache
from services.planning_domain import FixedCommitment, StudyPlan, Task, UserSettings
from services.study_plan_generator import PlanResult, generate_study_plan_with_preservation

logger = logging.getLogger(__name__)


class PlannerStore:
    """Per-user facade over the planner tables."""

    def __init__(self, user_id: int):
        self.user_id = user_id
        self.plans_repo = StudyPlanRepository(user_id)

    def settings(self) -> UserSettings:
        row = SettingsRow.query.filter_by(user_id=self.user_id).first()
        return row.to_domain() if row else UserSettings()

    def commitments(self) -> List[FixedCommitment]:
        rows = CommitmentRow.query.filter_by(user_id=self.user_id).order_by(CommitmentRow.id).all()
        return [row.to_domain() for row in rows]

    def tasks(self) -> List[Task]:
        rows = TaskRow.query.filter_by(user_id=self.user_id).order_by(TaskRow.id).all()
        return [row.to_domain() for row in rows]

    def plans(self) -> List[StudyPlan]:
        return self.plans_repo.load()

    def save_plans(self, plans: List[StudyPlan]) -> None:
        self.plans_repo.replace(plans)
        plan_cache.invalidate(self.user_id)

    def regenerate(self, today: Optional[date] = None, tasks: Optional[List[Task]] = None) -> PlanResult:
        """Generate a fresh plan (keeping progress and manual moves) and store it."""
        result = generate_study_plan_with_preservation(
            self.tasks() if tasks is None else tasks,
            self.settings(),
            self.commitments(),
            self.plans(),
            today,
        )
        self.save_plans(result.plans)
        logger.info(f"Regenerated study plan for user {self.user_id}: {len(result.plans)} days")
        return result
