"""Default configuration.

Values can be overridden with ``TASK_TRACKER_*`` environment variables
(``TASK_TRACKER_PORT=8080``) or by the mapping passed to ``create_app``.
"""
import os

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
DB_PATH = os.path.join(BASE_DIR, 'tasks.db')


class Config:
    SQLALCHEMY_DATABASE_URI = 'sqlite:///' + DB_PATH
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    BASE_PATH = '/tasks'
    PORT = 3001

    # trust X-Forwarded-* headers and send secure cookies
    PRODUCTION = os.environ.get('TASK_TRACKER_ENV') == 'production'

    COOKIE_NAME = 'task_tracker_user'
    COOKIE_MAX_AGE = 365 * 24 * 60 * 60  # one year, in seconds
    COOKIE_SECURE = PRODUCTION

    # completion facts older than this many calendar months are swept
    RETENTION_MONTHS = 3
