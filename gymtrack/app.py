from flask import Flask
from flask_mail import Mail
import os

from .models.database import init_db
from .models.gym import DEFAULT_MAX_CAPACITY, DEFAULT_SESSION_HOURS
from .utils.email_utils import DEFAULT_QR_CODE_BASE_URL
from .utils.fanout import DEFAULT_WORKERS


def create_app(test_config=None):
    app = Flask(__name__)

    # Configuration
    app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'change-me-in-production')
    app.config['DATABASE_PATH'] = os.environ.get('DATABASE_PATH', 'gymtrack.db')
    app.config['APP_NAME'] = os.environ.get('APP_NAME', 'GymTrack Lite')

    # Environment-level SMTP, used when neither the gym nor system settings have one
    app.config['MAIL_SERVER'] = os.environ.get('MAIL_SERVER')
    app.config['MAIL_PORT'] = int(os.environ.get('MAIL_PORT', '587'))
    app.config['MAIL_USE_TLS'] = os.environ.get('MAIL_USE_TLS', 'true').lower() == 'true'
    app.config['MAIL_USE_SSL'] = os.environ.get('MAIL_USE_SSL', 'false').lower() == 'true'
    app.config['MAIL_USERNAME'] = os.environ.get('MAIL_USERNAME')
    app.config['MAIL_PASSWORD'] = os.environ.get('MAIL_PASSWORD')
    app.config['MAIL_DEFAULT_SENDER'] = os.environ.get('MAIL_DEFAULT_SENDER')

    # Gym defaults and bulk sending
    app.config['DEFAULT_SESSION_HOURS'] = int(os.environ.get('DEFAULT_SESSION_HOURS', DEFAULT_SESSION_HOURS))
    app.config['DEFAULT_MAX_CAPACITY'] = int(os.environ.get('DEFAULT_MAX_CAPACITY', DEFAULT_MAX_CAPACITY))
    app.config['BULK_EMAIL_WORKERS'] = int(os.environ.get('BULK_EMAIL_WORKERS', DEFAULT_WORKERS))
    app.config['QR_CODE_BASE_URL'] = os.environ.get('QR_CODE_BASE_URL', DEFAULT_QR_CODE_BASE_URL)

    if test_config:
        app.config.update(test_config)

    # Initialize database
    init_db(app.config['DATABASE_PATH'])

    # Initialize Mail
    app.mail = Mail(app)

    return app
