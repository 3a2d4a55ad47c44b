from flowpay import create_app
from flowpay.extensions import celery_app
from flowpay import celery_tasks  # noqa: F401  (태스크 등록)

app = create_app()
# [중요] docker-compose 명령어가 'celery'라는 이름을 찾으므로 별칭 할당
celery = celery_app
