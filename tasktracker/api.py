"""JSON API. Every route acts on behalf of the cookie owner in ``g.user_id``."""
from flask import Blueprint, current_app, g, jsonify, request

from tasktracker.errors import TrackerError
from tasktracker.models import db
from tasktracker.service import TrackerService

api = Blueprint('api', __name__)

EDITABLE_TASK_FIELDS = ('title', 'frequency', 'reset_day')


def get_service():
    if 'service' not in g:
        state = current_app.extensions['tasktracker']
        g.service = TrackerService(
            db.session, state.clock, state.write_lock, sweeper=state.make_sweeper(db.session),
        )
    return g.service


def _payload():
    return request.get_json(silent=True) or request.form


def _flag(value):
    return (value or '').lower() in ('1', 'true', 'yes')


@api.errorhandler(TrackerError)
def handle_tracker_error(err):
    return jsonify(err.to_dict()), err.status_code


# -------------------- Categories --------------------
@api.route('/categories', methods=['GET'])
def list_categories():
    return jsonify(get_service().list_categories(g.user_id))


@api.route('/categories', methods=['POST'])
def create_category():
    data = _payload()
    return jsonify(get_service().create_category(g.user_id, data.get('name'))), 201


@api.route('/categories/<int:category_id>', methods=['DELETE'])
def delete_category(category_id):
    get_service().delete_category(g.user_id, category_id)
    return jsonify({'success': True})


# -------------------- Tasks --------------------
@api.route('/tasks', methods=['GET'])
def list_tasks():
    tasks = get_service().list_tasks(
        g.user_id,
        category_id=request.args.get('category_id') or None,
        include_history=_flag(request.args.get('history')),
    )
    return jsonify(tasks)


@api.route('/tasks', methods=['POST'])
def create_task():
    data = _payload()
    task = get_service().create_task(
        g.user_id,
        title=data.get('title'),
        frequency=data.get('frequency'),
        category_id=data.get('category_id'),
        reset_day=data.get('reset_day'),
    )
    return jsonify(task), 201


@api.route('/tasks/<int:task_id>/toggle', methods=['PATCH'])
def toggle_task(task_id):
    return jsonify(get_service().toggle_task(g.user_id, task_id))


@api.route('/tasks/<int:task_id>/reset', methods=['PATCH'])
def reset_task(task_id):
    return jsonify(get_service().reset_task(g.user_id, task_id))


@api.route('/tasks/<int:task_id>', methods=['PATCH'])
def edit_task(task_id):
    data = _payload()
    changes = {key: data[key] for key in EDITABLE_TASK_FIELDS if key in data}
    return jsonify(get_service().update_task(g.user_id, task_id, **changes))


@api.route('/tasks/<int:task_id>', methods=['DELETE'])
def delete_task(task_id):
    get_service().delete_task(g.user_id, task_id)
    return jsonify({'success': True})


# -------------------- History --------------------
@api.route('/completions', methods=['GET'])
def completions():
    history = get_service().completion_history(
        g.user_id, request.args.get('start_date'), request.args.get('end_date'),
    )
    return jsonify(history)
