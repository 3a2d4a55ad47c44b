import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    SECRET_KEY = os.getenv('SECRET_KEY')
    if not SECRET_KEY:
        raise ValueError("SECRET_KEY must be set in the .env file.")

    BASE_DIR = os.path.abspath(os.path.dirname(__file__))

    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL')
    if not SQLALCHEMY_DATABASE_URI:
        user = os.getenv('POSTGRES_USER', 'postgres')
        pw = os.getenv('POSTGRES_PASSWORD', 'password')
        host = os.getenv('POSTGRES_HOST', 'db')
        port = os.getenv('POSTGRES_PORT', '5432')
        db_name = os.getenv('POSTGRES_DB', 'flowpay')
        SQLALCHEMY_DATABASE_URI = f"postgresql://{user}:{pw}@{host}:{port}/{db_name}"

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': 30,
        'max_overflow': 60,
        'pool_timeout': 30,
        'pool_recycle': 1800,
        'pool_pre_ping': True,
        'connect_args': {
            'connect_timeout': 10,
            # 결제 콜백 처리 중 DB 대기가 무한히 늘어지지 않도록 제한 (ms)
            'options': '-c statement_timeout=15000'
        }
    }

    CELERY_BROKER_URL = os.getenv('CELERY_BROKER_URL', 'redis://redis:6379/0')
    CELERY_RESULT_BACKEND = os.getenv('CELERY_RESULT_BACKEND', 'redis://redis:6379/0')
    CELERY_BROKER_CONNECTION_RETRY_ON_STARTUP = True
    CELERY_WORKER_MAX_TASKS_PER_CHILD = 50
    CELERY_TASK_ALWAYS_EAGER = os.getenv('CELERY_TASK_ALWAYS_EAGER', 'false').lower() == 'true'

    NOTIFICATION_MAX_RETRIES = int(os.getenv('NOTIFICATION_MAX_RETRIES', 3))

    # (connect, read) seconds
    GATEWAY_TIMEOUT = (5, 20)
    CARRIER_TIMEOUT = (5, 15)

    PAYPAL_API_BASE = os.getenv('PAYPAL_API_BASE', 'https://api-m.paypal.com')
    PAYPAL_SANDBOX_API_BASE = os.getenv('PAYPAL_SANDBOX_API_BASE', 'https://api-m.sandbox.paypal.com')

    ENFORCE_AMOUNT_MATCH = os.getenv('ENFORCE_AMOUNT_MATCH', 'true').lower() == 'true'

    SENDGRID_API_KEY = os.getenv('SENDGRID_API_KEY')
    SENDGRID_FROM_EMAIL = os.getenv('SENDGRID_FROM_EMAIL', 'no-reply@flowpay.local')
    SENDGRID_FROM_NAME = os.getenv('SENDGRID_FROM_NAME', 'FlowPay')

    APP_BASE_URL = os.getenv('APP_BASE_URL', 'http://localhost:5000')
    LOW_STOCK_THRESHOLD = int(os.getenv('LOW_STOCK_THRESHOLD', 5))

class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    CELERY_BROKER_URL = 'memory://'
    CELERY_RESULT_BACKEND = 'cache+memory://'
    CELERY_TASK_ALWAYS_EAGER = True
    ENFORCE_AMOUNT_MATCH = True
    SENDGRID_API_KEY = None
