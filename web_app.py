# web_app.py
from flask import Flask, current_app, request, session, jsonify
from werkzeug.exceptions import HTTPException

import habits_repo
from auth import AuthManager
from config import Config
from errors import HabitError, StorageError, ValidationError
from habit_manager import backend_for
from local_storage import LocalHabitStorage


def create_app(overrides=None):
    """Build the Flask app; ``overrides`` are applied on top of Config."""
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    engine = habits_repo.make_engine(app.config['DATABASE_URL'])
    habits_repo.init_db(engine)
    app.extensions['habits_engine'] = engine
    app.extensions['habits_storage'] = LocalHabitStorage(app.config['HABITS_FILE'])

    _register_error_handlers(app)
    _register_auth_routes(app)
    _register_habit_routes(app)
    return app


# ---------------- Helpers ---------------- #
def _engine():
    return current_app.extensions['habits_engine']


def _backend():
    """Session present -> database, otherwise the anonymous local document."""
    return backend_for(
        session.get('user_uid'),
        current_app.extensions['habits_engine'],
        current_app.extensions['habits_storage'],
    )


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def _required_str(data, key):
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{key}' is required")
    return value.strip()


def _optional_str(data, key):
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"'{key}' must be a string")
    return value


def _start_session(user_id):
    session.clear()
    session.permanent = True
    session['user_uid'] = user_id


def _register_error_handlers(app):
    @app.errorhandler(HabitError)
    def handle_habit_error(e):
        if isinstance(e, StorageError):
            app.logger.error("[%s %s] storage error: %s", request.method, request.path, e.message)
        return jsonify({'success': False, 'error': e.public_message}), e.status_code

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        if isinstance(e, HTTPException):
            return e
        app.logger.exception("[%s %s] unhandled error", request.method, request.path)
        return jsonify({'success': False, 'error': 'Internal server error'}), 500


# ---------------- Auth ---------------- #
def _register_auth_routes(app):
    @app.route('/api/auth', methods=['POST'])
    def signup():
        data = _json_body()
        user_id = AuthManager.sign_up(_engine(), data.get('email'), data.get('password'))
        _start_session(user_id)
        return jsonify({'success': True, 'message': 'User created successfully'}), 201

    @app.route('/api/auth/login', methods=['POST'])
    def login():
        data = _json_body()
        user_id = AuthManager.login(_engine(), data.get('email'), data.get('password'))
        _start_session(user_id)
        return jsonify({'success': True, 'message': 'Login successful'}), 200

    @app.route('/api/auth/check', methods=['GET'])
    def auth_check():
        return jsonify({'authenticated': bool(session.get('user_uid'))})

    @app.route('/api/auth/logout', methods=['POST'])
    def logout():
        session.clear()
        return jsonify({'success': True, 'message': 'Logged out successfully'}), 200


# ---------------- Habits API ---------------- #
def _register_habit_routes(app):
    @app.route('/api/habits', methods=['GET'])
    def list_habits():
        habits = _backend().list_habits()
        app.logger.debug("[habits_api GET] %d habits", len(habits))
        return jsonify({'success': True, 'habits': habits}), 200

    @app.route('/api/habits', methods=['POST'])
    def create_habit():
        data = _json_body()
        habit = _backend().create_habit(
            _required_str(data, 'name'),
            _optional_str(data, 'description'),
            _optional_str(data, 'color'),
        )
        app.logger.info("[habits_api POST] created %r", habit['name'])
        return jsonify({'success': True, 'habit': habit}), 201

    @app.route('/api/habits', methods=['PATCH'])
    def toggle_habit():
        data = _json_body()
        habit_name = _required_str(data, 'habitName')
        if data.get('date') is None:
            raise ValidationError("'date' is required")
        completed = _backend().toggle_completion(habit_name, data['date'])
        return jsonify({'success': True, 'completed': completed}), 200

    @app.route('/api/habits', methods=['DELETE'])
    def delete_habit():
        data = _json_body()
        habit_name = _required_str(data, 'habitName')
        _backend().delete_habit(habit_name)
        app.logger.info("[habits_api DELETE] deleted %r", habit_name)
        return jsonify({'success': True, 'message': 'Habit deleted successfully!'}), 200
