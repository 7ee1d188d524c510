"""
Recurring Task Tracker
----------------------
Flask app using SQLite (SQLAlchemy) to track recurring chores:
  - categories of daily / weekly / monthly / one-time tasks per browser
  - weekly and monthly tasks reset on a configurable day
  - completion history kept for three months for calendar views
Run:
  pip install -e .
  python -m tasktracker
Open http://127.0.0.1:3001/tasks/api/tasks
"""
import logging
import sys
import threading
import uuid
from dataclasses import dataclass
from datetime import date

from flask import Flask, g, jsonify, request
from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.middleware.proxy_fix import ProxyFix

from tasktracker.api import api
from tasktracker.config import Config
from tasktracker.errors import MigrationError
from tasktracker.ledger import CompletionLedger
from tasktracker.migrations import current_schema_version, run_migrations
from tasktracker.models import db
from tasktracker.sweeper import RetentionSweeper

logger = logging.getLogger(__name__)


@dataclass
class TrackerState:
    """Per-application collaborators shared by all requests."""

    clock: object
    write_lock: object
    retention_months: int

    def make_sweeper(self, session):
        return RetentionSweeper(CompletionLedger(session), self.clock, self.retention_months)


def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute('PRAGMA foreign_keys=ON')
    cursor.close()


def create_app(config=None, clock=None):
    """Build the application and upgrade its database.

    ``clock`` returns today's date; it defaults to the server's local date.
    Raises MigrationError when the database cannot be upgraded.
    """
    app = Flask(__name__)
    app.config.from_object(Config)
    app.config.from_prefixed_env('TASK_TRACKER')
    if config:
        app.config.update(config)

    if app.config['PRODUCTION']:
        # behind nginx or another reverse proxy
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1)

    db.init_app(app)
    state = TrackerState(
        clock=clock or date.today,
        write_lock=threading.RLock(),
        retention_months=app.config['RETENTION_MONTHS'],
    )
    app.extensions['tasktracker'] = state

    with app.app_context():
        event.listen(db.engine, 'connect', _enable_foreign_keys)
        run_migrations(db.engine)
        logger.info('Database ready at schema version %s', current_schema_version())
        state.make_sweeper(db.session).sweep()

    _register_identity(app)
    app.register_blueprint(api, url_prefix=app.config['BASE_PATH'] + '/api')

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(err):
        db.session.rollback()
        logger.exception('Database error while handling %s %s', request.method, request.path)
        return jsonify({'error': 'Internal server error'}), 500

    return app


# -------------------- Identity --------------------
def _register_identity(app):
    cookie_name = app.config['COOKIE_NAME']

    @app.before_request
    def identify_user():
        user_id = request.cookies.get(cookie_name)
        g.new_user = not user_id
        g.user_id = user_id or str(uuid.uuid4())

    @app.after_request
    def issue_user_cookie(response):
        if g.get('new_user'):
            response.set_cookie(
                cookie_name,
                g.user_id,
                max_age=app.config['COOKIE_MAX_AGE'],
                httponly=True,
                samesite='Lax',
                secure=app.config['COOKIE_SECURE'],
            )
        return response


def setup_logging(level=logging.INFO):
    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def main():
    setup_logging()
    try:
        app = create_app()
    except MigrationError:
        logger.critical('Failed to initialize database')
        sys.exit(1)
    logger.info('Server running at http://localhost:%s%s', app.config['PORT'], app.config['BASE_PATH'])
    app.run(host='0.0.0.0', port=app.config['PORT'])


if __name__ == '__main__':
    main()
