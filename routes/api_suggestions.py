"""
Suggestions API Route
"""

import logging

from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from services.planner_store import PlannerStore
from services.study_plan_generator import get_unscheduled_minutes_for_tasks
from services.study_suggestions import generate_smart_suggestions

logger = logging.getLogger(__name__)

api_suggestions_bp = Blueprint('api_suggestions', __name__, url_prefix='/api/suggestions')


def _scheduled_hours_by_task(plans):
    hours = {}
    for plan in plans:
        for session in plan.planned_tasks:
            hours[session.task_id] = hours.get(session.task_id, 0.0) + session.allocated_hours
    return hours


@api_suggestions_bp.route('', methods=['GET'])
@login_required
def get_suggestions():
    """Eisenhower-style nudges, including tasks the stored plan could not fit."""
    store = PlannerStore(current_user.id)
    tasks = store.tasks()
    unscheduled = get_unscheduled_minutes_for_tasks(
        [t for t in tasks if t.is_pending],
        _scheduled_hours_by_task(store.plans()),
        store.settings(),
    )
    unscheduled_ids = {u.task_id for u in unscheduled}
    suggestions = generate_smart_suggestions(tasks, [t for t in tasks if t.id in unscheduled_ids])
    return jsonify({
        'success': True,
        'suggestions': [s.to_dict() for s in suggestions],
        'unscheduled': [u.to_dict() for u in unscheduled],
    })
