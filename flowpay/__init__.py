import os
import logging
from logging.handlers import RotatingFileHandler
from flask import Flask
from .config import Config
from .extensions import db, celery_app, migrate
from .blueprints.api import api_bp
from .blueprints.storefront import storefront_bp
from .commands import init_db_command, create_store_command

def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    db.init_app(app)
    migrate.init_app(app, db)

    celery_app.conf.update(
        broker_url=app.config['CELERY_BROKER_URL'],
        result_backend=app.config['CELERY_RESULT_BACKEND'],
        task_always_eager=app.config['CELERY_TASK_ALWAYS_EAGER'],
        broker_connection_retry_on_startup=app.config['CELERY_BROKER_CONNECTION_RETRY_ON_STARTUP'],
        worker_max_tasks_per_child=app.config['CELERY_WORKER_MAX_TASKS_PER_CHILD'],
    )

    # [중요] Celery 태스크에서 DB 접근을 위해 앱 참조 저장
    celery_app.flask_app = app

    app.register_blueprint(api_bp)
    app.register_blueprint(storefront_bp)

    app.cli.add_command(init_db_command)
    app.cli.add_command(create_store_command)

    from . import models  # noqa: F401  (Flask-Migrate 가 모든 테이블을 인식하도록)

    if not app.debug and not app.testing:
        if not os.path.exists('logs'):
            os.mkdir('logs')
        file_handler = RotatingFileHandler('logs/flowpay.log', maxBytes=102400, backupCount=10)
        file_handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s: %(message)s'))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)
        app.logger.setLevel(logging.INFO)

    return app
