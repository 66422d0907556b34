"""
Study Plan API Routes
Read and regenerate the plan, act on single sessions, redistribute missed
sessions and validate candidate slots.
"""

import copy
import logging
from datetime import date, datetime

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy.exc import SQLAlchemyError

from models import db
from services.cache import plan_cache
from services.conflict_prevention import ConflictPreventionEngine
from services.errors import PlannerError
from services.payloads import TIME_PATTERN
from services.planner_store import PlannerStore
from services.planning_domain import StudyPlan, parse_date
from services.redistribution_service import (
    RedistributionEngine,
    RedistributionOptions,
    create_user_reschedule,
    find_session,
)
from services.session_status import calculate_total_study_hours, check_session_status
from services.study_suggestions import generate_smart_suggestions
from utils.etag_helper import with_etag

logger = logging.getLogger(__name__)

api_study_plan_bp = Blueprint('api_study_plan', __name__, url_prefix='/api/study-plan')


def _bad_request(message: str, status: int = 400):
    return jsonify({'success': False, 'message': message}), status


def _parse_day(value, field_name: str) -> date:
    try:
        day = parse_date(value)
    except (AttributeError, TypeError, ValueError):
        day = None
    if day is None:
        raise PlannerError(f"{field_name} must be an ISO date (YYYY-MM-DD)")
    return day


def _load_plan_payload(store: PlannerStore) -> list:
    """Stored plans as dicts, served from the cache when possible."""
    cached = plan_cache.get_plans(store.user_id)
    if cached is not None:
        return cached
    payload = [p.to_dict() for p in store.plans()]
    plan_cache.store_plans(store.user_id, payload)
    return payload


@api_study_plan_bp.route('', methods=['GET'])
@login_required
@with_etag
def get_study_plan():
    """Stored plan with each session's derived ``display_status``."""
    try:
        store = PlannerStore(current_user.id)
        payload = _load_plan_payload(store)
        now = datetime.now()
        completed_hours = 0.0
        for plan_dict in payload:
            plan = StudyPlan.from_dict(plan_dict)
            completed_hours += calculate_total_study_hours(plan.planned_tasks)
            for session_dict, session in zip(plan_dict['planned_tasks'], plan.planned_tasks):
                session_dict['display_status'] = check_session_status(session, plan.date, now).value
        return jsonify({
            'success': True,
            'plans': payload,
            'completed_hours': round(completed_hours, 2),
        })
    except SQLAlchemyError as e:
        logger.error(f"Error loading study plan: {e}")
        return jsonify({'success': False, 'message': 'Failed to load study plan'}), 500


@api_study_plan_bp.route('/generate', methods=['POST'])
@login_required
def generate_plan():
    try:
        store = PlannerStore(current_user.id)
        tasks = store.tasks()
        result = store.regenerate(tasks=tasks)
        unscheduled_ids = {s.task_id for s in result.suggestions}
        suggestions = generate_smart_suggestions(tasks, [t for t in tasks if t.id in unscheduled_ids])
        return jsonify({
            'success': True,
            'plans': [p.to_dict() for p in result.plans],
            'unscheduled': [s.to_dict() for s in result.suggestions],
            'suggestions': [s.to_dict() for s in suggestions],
        })
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error generating study plan: {e}")
        return jsonify({'success': False, 'message': 'Failed to generate study plan'}), 500


@api_study_plan_bp.route('/sessions/<plan_date>/<task_id>/<int:session_number>/complete', methods=['POST'])
@login_required
def complete_session(plan_date, task_id, session_number):
    data = request.get_json(silent=True) or {}
    try:
        day = _parse_day(plan_date, 'plan_date')
        store = PlannerStore(current_user.id)
        plans = store.plans()
        engine = RedistributionEngine(store.settings(), store.commitments())
        session = engine.complete_session(plans, day, session_number, task_id, data.get('actual_hours'))
        store.save_plans(plans)
        return jsonify({'success': True, 'session': session.to_dict()})
    except PlannerError as e:
        return jsonify(e.to_dict()), e.http_status
    except SQLAlchemyError as e:
        logger.error(f"Error completing session {task_id}-{session_number}: {e}")
        return _bad_request('Failed to complete session', 500)


@api_study_plan_bp.route('/sessions/<plan_date>/<task_id>/<int:session_number>/skip', methods=['POST'])
@login_required
def skip_session(plan_date, task_id, session_number):
    data = request.get_json(silent=True) or {}
    try:
        day = _parse_day(plan_date, 'plan_date')
        partial_hours = data.get('partial_hours')
        if partial_hours is not None and (not isinstance(partial_hours, (int, float)) or partial_hours <= 0):
            raise PlannerError('partial_hours must be a positive number')

        store = PlannerStore(current_user.id)
        plans = store.plans()
        engine = RedistributionEngine(store.settings(), store.commitments())
        skipped = engine.skip_session(
            plans, day, session_number, task_id,
            partial_hours=partial_hours,
            reason=data.get('reason') or 'user_choice',
        )
        store.save_plans(plans)
        return jsonify({'success': True, 'session': skipped.to_dict()})
    except PlannerError as e:
        return jsonify(e.to_dict()), e.http_status
    except SQLAlchemyError as e:
        logger.error(f"Error skipping session {task_id}-{session_number}: {e}")
        return _bad_request('Failed to skip session', 500)


@api_study_plan_bp.route('/sessions/<plan_date>/<task_id>/<int:session_number>/move', methods=['POST'])
@login_required
def move_session(plan_date, task_id, session_number):
    """
    Move a session.

    With ``target_date`` and ``start_time`` the move is manual and validated
    against that slot. Without them the session goes to the first free slot
    today.
    """
    data = request.get_json(silent=True) or {}
    try:
        day = _parse_day(plan_date, 'plan_date')
        store = PlannerStore(current_user.id)
        plans = store.plans()
        engine = RedistributionEngine(store.settings(), store.commitments())
        session = find_session(plans, day, task_id, session_number)
        before = copy.copy(session)

        if data.get('target_date') or data.get('start_time'):
            target_date = _parse_day(data.get('target_date'), 'target_date')
            start_time = data.get('start_time') or ''
            if not TIME_PATTERN.match(start_time):
                raise PlannerError('start_time must be HH:MM')
            result = engine.move_session_to_slot(plans, day, task_id, session_number, target_date, start_time)
        else:
            result = engine.move_individual_session(plans, day, task_id, session_number)

        if not result.success:
            return jsonify({
                'success': False,
                'message': 'Session could not be moved to the requested slot',
                **result.to_dict(),
            }), 409

        store.save_plans(plans)
        reschedule = create_user_reschedule(before, day, result.new_date, session.start_time, session.end_time)
        return jsonify({
            'success': True,
            **result.to_dict(),
            'session': session.to_dict(),
            'reschedule': reschedule.to_dict(),
        })
    except PlannerError as e:
        return jsonify(e.to_dict()), e.http_status
    except SQLAlchemyError as e:
        logger.error(f"Error moving session {task_id}-{session_number}: {e}")
        return _bad_request('Failed to move session', 500)


@api_study_plan_bp.route('/redistribute', methods=['POST'])
@login_required
def redistribute():
    """Move every missed session forward; nothing is stored when the run is rolled back."""
    data = request.get_json(silent=True) or {}
    try:
        options = RedistributionOptions.from_dict(data.get('options') or data)
        store = PlannerStore(current_user.id)
        plans = store.plans()
        engine = RedistributionEngine(store.settings(), store.commitments())
        result = engine.redistribute_missed_sessions(plans, store.tasks(), options)

        if result.success and result.total_sessions_moved:
            store.save_plans(plans)
        payload = result.to_dict()
        if result.success:
            payload['plans'] = [p.to_dict() for p in plans]
        return jsonify(payload), 200 if result.success else 409
    except (TypeError, ValueError) as e:
        return _bad_request(f"Invalid redistribution options: {e}")
    except SQLAlchemyError as e:
        logger.error(f"Error redistributing sessions: {e}")
        return _bad_request('Failed to redistribute sessions', 500)


@api_study_plan_bp.route('/validate-slot', methods=['POST'])
@login_required
def validate_slot():
    data = request.get_json(silent=True) or {}
    try:
        day = _parse_day(data.get('date'), 'date')
        start_time, end_time = data.get('start_time') or '', data.get('end_time') or ''
        if not TIME_PATTERN.match(start_time) or not TIME_PATTERN.match(end_time):
            raise PlannerError('start_time and end_time must be HH:MM')

        store = PlannerStore(current_user.id)
        existing = next((p.planned_tasks for p in store.plans() if p.date == day), [])
        engine = ConflictPreventionEngine(store.settings(), store.commitments())
        validation = engine.is_time_slot_available(
            day, start_time, end_time, existing, exclude_session_id=data.get('exclude_session_id'),
        )
        return jsonify({'success': True, **validation.to_dict()})
    except PlannerError as e:
        return jsonify(e.to_dict()), e.http_status
