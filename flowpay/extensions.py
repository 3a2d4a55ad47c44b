from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from celery import Celery

db = SQLAlchemy()
migrate = Migrate()

# [중요] 워커와 웹 양쪽에서 같은 인스턴스를 사용 (create_app 에서 설정 주입)
celery_app = Celery(__name__, broker='redis://redis:6379/0')
