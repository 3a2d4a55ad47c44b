from flask import current_app

from flowpay.extensions import celery_app, db
from flowpay.errors import CarrierTransportError
from flowpay.models import Order
from flowpay.services.email_service import EmailService
from flowpay.services.event_service import EventService
from flowpay.services.shipping_service import ShippingService

# [중요] 모든 태스크는 celery_app.flask_app 의 앱 컨텍스트 안에서 실행 (create_app 에서 주입)

def _backoff(retries):
    return min(2 ** retries * 30, 600)

def _retry(task, exc, **kwargs):
    return task.retry(
        exc=exc,
        countdown=_backoff(task.request.retries),
        max_retries=current_app.config['NOTIFICATION_MAX_RETRIES'],
        **kwargs
    )

@celery_app.task(bind=True)
def task_send_order_confirmation(self, order_id):
    """주문 확인 메일 발송"""
    with self.app.flask_app.app_context():
        try:
            sent = EmailService.send_order_confirmation(order_id)
            return {'status': 'completed', 'result': {'sent': sent}}
        except Exception as e:
            current_app.logger.error(f"Order confirmation email failed order={order_id}: {e}")
            raise _retry(self, e)

@celery_app.task(bind=True)
def task_emit_order_created(self, order_id):
    with self.app.flask_app.app_context():
        order = db.session.get(Order, order_id)
        if order is None:
            return {'status': 'error', 'message': 'order not found'}
        event = EventService.emit_order_created(order)
        return {'status': 'completed', 'result': {'event_id': event.id}}

@celery_app.task(bind=True)
def task_check_low_stock(self, store_id, items):
    """재고 임계값 확인 (items: [[product_id, variant_id], ...])"""
    with self.app.flask_app.app_context():
        emitted = EventService.check_low_stock(store_id, [tuple(i) for i in items])
        return {'status': 'completed', 'result': {'events': emitted}}

@celery_app.task(bind=True)
def task_auto_dispatch_shipment(self, order_id):
    """자동 발송. 전송 에러만 제한 횟수 재시도하고, 최종 실패는 주문에 기록"""
    with self.app.flask_app.app_context():
        try:
            return ShippingService.auto_dispatch(order_id)
        except CarrierTransportError as e:
            max_retries = current_app.config['NOTIFICATION_MAX_RETRIES']
            if self.request.retries >= max_retries:
                order = db.session.get(Order, order_id)
                if order is not None:
                    ShippingService.record_failure(order, f"{e} (after {max_retries} retries)")
                current_app.logger.error(f"Auto-dispatch gave up order={order_id}: {e}")
                return {'status': 'error', 'message': str(e)}
            current_app.logger.warning(f"Auto-dispatch transport error order={order_id}, retrying: {e}")
            raise _retry(self, e)

@celery_app.task(bind=True)
def task_send_gift_cards(self, gift_card_ids):
    """구매된 기프트카드 코드 메일 발송"""
    with self.app.flask_app.app_context():
        sent = []
        for index, gift_card_id in enumerate(gift_card_ids):
            try:
                if EmailService.send_gift_card(gift_card_id):
                    sent.append(gift_card_id)
            except Exception as e:
                current_app.logger.error(f"Gift card email failed gift_card={gift_card_id}: {e}")
                # 이미 보낸 카드는 재시도 대상에서 제외
                raise _retry(self, e, args=[gift_card_ids[index:]])
        return {'status': 'completed', 'result': {'sent': sent}}
