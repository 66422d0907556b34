"""
Tasks API Routes
CRUD for tasks. Creating a task can be gated on a feasibility check, and
deleting one re-plans the remaining work.
"""

import logging

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy.exc import SQLAlchemyError

from models import Task, db
from services.errors import PlannerError, TaskNotFeasibleError
from services.payloads import parse_task_payload
from services.planner_store import PlannerStore
from services.redistribution_service import redistribute_after_task_deletion
from services.task_feasibility import assess_add_task_feasibility
from utils.etag_helper import with_etag

logger = logging.getLogger(__name__)

api_tasks_bp = Blueprint('api_tasks', __name__, url_prefix='/api/tasks')


def _get_owned_task(task_id: int):
    return db.session.query(Task).filter_by(id=task_id, user_id=current_user.id).first()


def _flag(name: str) -> bool:
    data = request.get_json(silent=True) or {}
    value = data.get(name, request.args.get(name, False))
    if isinstance(value, str):
        return value.lower() == 'true'
    return bool(value)


@api_tasks_bp.route('', methods=['GET'])
@login_required
@with_etag
def list_tasks():
    """List the user's tasks, optionally filtered by ``status``."""
    try:
        query = db.session.query(Task).filter_by(user_id=current_user.id)
        status = request.args.get('status')
        if status:
            query = query.filter(Task.status == status)
        tasks = query.order_by(Task.deadline.is_(None), Task.deadline, Task.id).all()
        return jsonify({'success': True, 'tasks': [t.to_dict() for t in tasks], 'total': len(tasks)})
    except SQLAlchemyError as e:
        logger.error(f"Error listing tasks: {e}")
        return jsonify({'success': False, 'message': 'Failed to load tasks'}), 500


@api_tasks_bp.route('', methods=['POST'])
@login_required
def create_task():
    """
    Create a task and re-plan.

    With ``check_feasibility=true`` the task is first planned together with
    the existing ones; if less than half of it fits, nothing is saved and the
    response is 422 with the feasibility report.
    """
    data = request.get_json(silent=True) or {}
    try:
        new_task = parse_task_payload(data)
        store = PlannerStore(current_user.id)
        existing_tasks = store.tasks()

        if _flag('check_feasibility'):
            feasibility = assess_add_task_feasibility(
                new_task,
                existing_tasks + [new_task],
                store.settings(),
                store.commitments(),
                store.plans(),
            )
            if feasibility.blocks_new_task:
                raise TaskNotFeasibleError(
                    f"Task '{new_task.title}' {feasibility.reason} before its deadline",
                    {'feasibility': feasibility.to_dict()},
                )

        row = Task(user_id=current_user.id)
        row.apply_domain(new_task)
        db.session.add(row)
        db.session.commit()

        result = store.regenerate()
        logger.info(f"Task {row.id} created by user {current_user.id}")
        return jsonify({
            'success': True,
            'task': row.to_dict(),
            'unscheduled': [s.to_dict() for s in result.suggestions],
        }), 201
    except PlannerError as e:
        return jsonify(e.to_dict()), e.http_status
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error creating task: {e}")
        return jsonify({'success': False, 'message': 'Failed to create task'}), 500


@api_tasks_bp.route('/<int:task_id>', methods=['GET'])
@login_required
def get_task(task_id):
    task = _get_owned_task(task_id)
    if task is None:
        return jsonify({'success': False, 'message': 'Task not found'}), 404
    return jsonify({'success': True, 'task': task.to_dict()})


@api_tasks_bp.route('/<int:task_id>', methods=['PUT', 'PATCH'])
@login_required
def update_task(task_id):
    task = _get_owned_task(task_id)
    if task is None:
        return jsonify({'success': False, 'message': 'Task not found'}), 404

    data = request.get_json(silent=True) or {}
    try:
        task.apply_domain(parse_task_payload(data, current=task.to_domain()))
        db.session.commit()
        result = PlannerStore(current_user.id).regenerate()
        return jsonify({
            'success': True,
            'task': task.to_dict(),
            'unscheduled': [s.to_dict() for s in result.suggestions],
        })
    except PlannerError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.http_status
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error updating task {task_id}: {e}")
        return jsonify({'success': False, 'message': 'Failed to update task'}), 500


@api_tasks_bp.route('/<int:task_id>', methods=['DELETE'])
@login_required
def delete_task(task_id):
    """Delete a task, drop its sessions and re-plan what is left."""
    task = _get_owned_task(task_id)
    if task is None:
        return jsonify({'success': False, 'message': 'Task not found'}), 404

    try:
        store = PlannerStore(current_user.id)
        remaining = [t for t in store.tasks() if t.id != str(task_id)]
        result = redistribute_after_task_deletion(
            remaining, store.settings(), store.commitments(), store.plans()
        )
        store.save_plans(result.plans)

        db.session.delete(task)
        db.session.commit()
        logger.info(f"Task {task_id} deleted by user {current_user.id}")
        return jsonify({
            'success': True,
            'message': 'Task deleted',
            'unscheduled': [s.to_dict() for s in result.suggestions],
        })
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error deleting task {task_id}: {e}")
        return jsonify({'success': False, 'message': 'Failed to delete task'}), 500
