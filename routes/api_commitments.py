"""
Commitments API Routes
Fixed commitments with conflict detection. A strict overlap with another
commitment is refused with 409; an override (a one-time entry replacing a
recurring one on some dates) is saved and reported back.
"""

import logging
from datetime import date
from typing import List, Optional

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy.exc import SQLAlchemyError

from models import FixedCommitment, db
from services.commitment_conflicts import ConflictResult, find_all_commitment_conflicts
from services.errors import CommitmentConflictError, CommitmentValidationError, PlannerError
from services.payloads import TIME_PATTERN, parse_commitment_payload
from services.planner_store import PlannerStore
from services.planning_domain import FixedCommitment as DomainCommitment
from services.planning_domain import OccurrenceOverride, parse_date, time_to_minutes

logger = logging.getLogger(__name__)

api_commitments_bp = Blueprint('api_commitments', __name__, url_prefix='/api/commitments')


def _get_owned_commitment(commitment_id: int):
    return db.session.query(FixedCommitment).filter_by(id=commitment_id, user_id=current_user.id).first()


def _find_conflicts(candidate: DomainCommitment, exclude_id: Optional[str] = None) -> List[ConflictResult]:
    existing = PlannerStore(current_user.id).commitments()
    return find_all_commitment_conflicts(candidate, existing, exclude_commitment_id=exclude_id)


def _raise_on_strict(conflicts: List[ConflictResult]) -> List[ConflictResult]:
    """Return the override conflicts; raise when any conflict is strict."""
    strict = [c for c in conflicts if c.is_strict]
    if strict:
        titles = ', '.join(c.conflicting_commitment.title for c in strict)
        raise CommitmentConflictError(
            f"Commitment overlaps with: {titles}",
            {'conflicts': [c.to_dict() for c in strict]},
        )
    return [c for c in conflicts if c.has_conflict and not c.is_strict]


def _parse_occurrence_date(value: str) -> date:
    try:
        return parse_date(value)
    except ValueError as e:
        raise CommitmentValidationError('Occurrence date must be YYYY-MM-DD') from e


@api_commitments_bp.route('', methods=['GET'])
@login_required
def list_commitments():
    rows = (
        db.session.query(FixedCommitment)
        .filter_by(user_id=current_user.id)
        .order_by(FixedCommitment.id)
        .all()
    )
    return jsonify({'success': True, 'commitments': [c.to_dict() for c in rows]})


@api_commitments_bp.route('/check', methods=['POST'])
@login_required
def check_commitment():
    """Dry-run conflict check; nothing is saved."""
    data = request.get_json(silent=True) or {}
    try:
        candidate = parse_commitment_payload(data)
        exclude = data.get('exclude_commitment_id')
        conflicts = _find_conflicts(candidate, str(exclude) if exclude is not None else None)
        return jsonify({
            'success': True,
            'has_conflict': bool(conflicts),
            'has_strict_conflict': any(c.is_strict for c in conflicts),
            'conflicts': [c.to_dict() for c in conflicts],
        })
    except PlannerError as e:
        return jsonify(e.to_dict()), e.http_status


@api_commitments_bp.route('', methods=['POST'])
@login_required
def create_commitment():
    data = request.get_json(silent=True) or {}
    try:
        candidate = parse_commitment_payload(data)
        overrides = _raise_on_strict(_find_conflicts(candidate))

        row = FixedCommitment(user_id=current_user.id)
        row.apply_domain(candidate)
        db.session.add(row)
        db.session.commit()

        PlannerStore(current_user.id).regenerate()
        logger.info(f"Commitment {row.id} created by user {current_user.id} ({len(overrides)} overrides)")
        return jsonify({
            'success': True,
            'commitment': row.to_dict(),
            'overrides': [c.to_dict() for c in overrides],
        }), 201
    except PlannerError as e:
        return jsonify(e.to_dict()), e.http_status
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error creating commitment: {e}")
        return jsonify({'success': False, 'message': 'Failed to create commitment'}), 500


@api_commitments_bp.route('/<int:commitment_id>', methods=['PUT', 'PATCH'])
@login_required
def update_commitment(commitment_id):
    row = _get_owned_commitment(commitment_id)
    if row is None:
        return jsonify({'success': False, 'message': 'Commitment not found'}), 404

    data = request.get_json(silent=True) or {}
    try:
        candidate = parse_commitment_payload(data, current=row.to_domain())
        overrides = _raise_on_strict(_find_conflicts(candidate, exclude_id=str(row.id)))

        row.apply_domain(candidate)
        db.session.commit()
        PlannerStore(current_user.id).regenerate()
        return jsonify({
            'success': True,
            'commitment': row.to_dict(),
            'overrides': [c.to_dict() for c in overrides],
        })
    except PlannerError as e:
        return jsonify(e.to_dict()), e.http_status
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error updating commitment {commitment_id}: {e}")
        return jsonify({'success': False, 'message': 'Failed to update commitment'}), 500


@api_commitments_bp.route('/<int:commitment_id>', methods=['DELETE'])
@login_required
def delete_commitment(commitment_id):
    row = _get_owned_commitment(commitment_id)
    if row is None:
        return jsonify({'success': False, 'message': 'Commitment not found'}), 404
    try:
        db.session.delete(row)
        db.session.commit()
        PlannerStore(current_user.id).regenerate()
        return jsonify({'success': True, 'message': 'Commitment deleted'})
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error deleting commitment {commitment_id}: {e}")
        return jsonify({'success': False, 'message': 'Failed to delete commitment'}), 500


@api_commitments_bp.route('/<int:commitment_id>/occurrences/<occurrence>', methods=['DELETE'])
@login_required
def delete_occurrence(commitment_id, occurrence):
    """Remove a single occurrence of a commitment."""
    row = _get_owned_commitment(commitment_id)
    if row is None:
        return jsonify({'success': False, 'message': 'Commitment not found'}), 404
    try:
        day = _parse_occurrence_date(occurrence)
        commitment = row.to_domain()
        if day not in commitment.deleted_occurrences:
            commitment.deleted_occurrences.append(day)
        commitment.modified_occurrences.pop(day, None)

        row.apply_domain(commitment)
        db.session.commit()
        PlannerStore(current_user.id).regenerate()
        return jsonify({'success': True, 'commitment': row.to_dict()})
    except PlannerError as e:
        return jsonify(e.to_dict()), e.http_status
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error deleting occurrence {occurrence} of commitment {commitment_id}: {e}")
        return jsonify({'success': False, 'message': 'Failed to delete occurrence'}), 500


@api_commitments_bp.route('/<int:commitment_id>/occurrences/<occurrence>', methods=['PATCH'])
@login_required
def modify_occurrence(commitment_id, occurrence):
    """Change the time, title, category or all-day flag of a single occurrence."""
    row = _get_owned_commitment(commitment_id)
    if row is None:
        return jsonify({'success': False, 'message': 'Commitment not found'}), 404

    data = request.get_json(silent=True) or {}
    try:
        day = _parse_occurrence_date(occurrence)
        override = OccurrenceOverride.from_dict(data)
        for name in ('start_time', 'end_time'):
            value = getattr(override, name)
            if value is not None and not TIME_PATTERN.match(value):
                raise CommitmentValidationError('Invalid occurrence', {name: 'Must be HH:MM'})
        if override.start_time and override.end_time:
            if time_to_minutes(override.start_time) >= time_to_minutes(override.end_time):
                raise CommitmentValidationError('Invalid occurrence', {'time': 'end_time must be after start_time'})
        if not override.to_dict():
            raise CommitmentValidationError('Nothing to change for this occurrence')

        commitment = row.to_domain()
        commitment.modified_occurrences[day] = override
        row.apply_domain(commitment)
        db.session.commit()
        PlannerStore(current_user.id).regenerate()
        return jsonify({'success': True, 'commitment': row.to_dict()})
    except PlannerError as e:
        return jsonify(e.to_dict()), e.http_status
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error modifying occurrence {occurrence} of commitment {commitment_id}: {e}")
        return jsonify({'success': False, 'message': 'Failed to modify occurrence'}), 500
