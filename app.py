"""
TimePilot application factory.
"""

import logging

from flask import Flask, jsonify
from flask_login import LoginManager
from werkzeug.exceptions import HTTPException

from config import Config
from models import User, db
from routes.api_commitments import api_commitments_bp
from routes.api_settings import api_settings_bp
from routes.api_study_plan import api_study_plan_bp
from routes.api_suggestions import api_suggestions_bp
from routes.api_tasks import api_tasks_bp
from routes.auth import auth_bp
from routes.health_production import health_production_bp
from services.errors import PlannerError
from utils.startup_validation import BlueprintRegistry, run_startup_validation

logger = logging.getLogger(__name__)

login_manager = LoginManager()


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({'success': False, 'message': 'Authentication required'}), 401


def _configure_logging(level_name: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(PlannerError)
    def handle_planner_error(error):
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'success': False, 'message': error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        db.session.rollback()
        logger.error(f"Unhandled error: {error}", exc_info=True)
        return jsonify({'success': False, 'message': 'Internal server error'}), 500


def create_app(config_object=None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_object or Config)
    _configure_logging(app.config.get('LOG_LEVEL', 'INFO'))

    db.init_app(app)
    login_manager.init_app(app)

    registry = BlueprintRegistry(app)
    for blueprint in (
        auth_bp,
        api_tasks_bp,
        api_commitments_bp,
        api_study_plan_bp,
        api_settings_bp,
        api_suggestions_bp,
        health_production_bp,
    ):
        registry.register(blueprint)
    app.extensions['blueprint_registry'] = registry

    _register_error_handlers(app)

    with app.app_context():
        db.create_all()
        if app.config.get('RUN_STARTUP_VALIDATION'):
            run_startup_validation(db)

    logger.info(f"TimePilot started ({app.config.get('ENV')}), {len(registry.loaded)} blueprints")
    return app
