"""
Settings API Routes
Read and update scheduling preferences. An update is range-checked, checked
against manually moved sessions, and then the plan is regenerated.
"""

import logging

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy.exc import SQLAlchemyError

from models import UserSettings, db
from services.errors import PlannerError
from services.planner_store import PlannerStore
from services.settings_validation import (
    create_settings_change_message,
    get_settings_change_recommendation,
    validate_settings_change,
    validate_settings_values,
)

logger = logging.getLogger(__name__)

api_settings_bp = Blueprint('api_settings', __name__, url_prefix='/api/settings')


@api_settings_bp.route('', methods=['GET'])
@login_required
def get_settings():
    return jsonify({'success': True, 'settings': PlannerStore(current_user.id).settings().to_dict()})


@api_settings_bp.route('', methods=['PUT'])
@login_required
def update_settings():
    data = request.get_json(silent=True) or {}
    try:
        store = PlannerStore(current_user.id)
        old_settings = store.settings()
        new_settings = validate_settings_values(data, current=old_settings)

        validation = validate_settings_change(store.plans(), old_settings, new_settings)
        options = get_settings_change_recommendation(validation)

        row = UserSettings.for_user(current_user.id)
        row.apply_domain(new_settings)
        db.session.add(row)
        db.session.commit()

        result = store.regenerate()
        logger.info(f"Settings updated for user {current_user.id}")
        return jsonify({
            'success': True,
            'message': create_settings_change_message(validation, options),
            'settings': new_settings.to_dict(),
            'validation': validation.to_dict(),
            'options': options.to_dict(),
            'unscheduled': [s.to_dict() for s in result.suggestions],
        })
    except PlannerError as e:
        return jsonify(e.to_dict()), e.http_status
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error updating settings: {e}")
        return jsonify({'success': False, 'message': 'Failed to update settings'}), 500
