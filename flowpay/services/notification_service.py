from flask import current_app

from flowpay import celery_tasks

class NotificationDispatcher:
    """
    정산 후 부가 작업을 Celery 로 넘긴다. 결과를 기다리지 않으며,
    큐 등록 실패도 로그만 남기고 정산 결과에는 영향을 주지 않는다.
    """

    @staticmethod
    def _enqueue(task, order_id, *args):
        try:
            result = task.delay(*args)
            return result.id
        except Exception as e:
            current_app.logger.error(f"Notification enqueue failed order={order_id} task={task.name}: {e}")
            return None

    @staticmethod
    def dispatch(order, snapshot=None, ledger_report=None):
        order_id = order.id
        store_id = order.store_id
        stock_items = [[i.product_id, i.variant_id] for i in order.items if i.product_id]

        task_ids = {
            'confirmation_email': NotificationDispatcher._enqueue(
                celery_tasks.task_send_order_confirmation, order_id, order_id),
            'order_created': NotificationDispatcher._enqueue(
                celery_tasks.task_emit_order_created, order_id, order_id),
            'auto_dispatch': NotificationDispatcher._enqueue(
                celery_tasks.task_auto_dispatch_shipment, order_id, order_id),
        }
        if stock_items and snapshot is not None:
            task_ids['low_stock'] = NotificationDispatcher._enqueue(
                celery_tasks.task_check_low_stock, order_id, store_id, stock_items)
        if ledger_report is not None and ledger_report.issued_gift_card_ids:
            task_ids['gift_cards'] = NotificationDispatcher._enqueue(
                celery_tasks.task_send_gift_cards, order_id, list(ledger_report.issued_gift_card_ids))
        return task_ids
