from .base import Base, JSONBCompatible, db
from .user import User
from .task import Task
from .commitment import FixedCommitment
from .settings import UserSettings
from .study_plan import StudyPlan, StudySession, StudyPlanRepository

__all__ = [
    'Base',
    'JSONBCompatible',
    'db',
    'User',
    'Task',
    'FixedCommitment',
    'UserSettings',
    'StudyPlan',
    'StudySession',
    'StudyPlanRepository',
]
