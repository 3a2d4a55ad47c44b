from flask import current_app

from flowpay.constants import EventType
from flowpay.extensions import db
from flowpay.models import BundleComponent, Product, ProductVariant, Store, StoreEvent, WaitlistEntry

class EventService:

    @staticmethod
    def emit(store_id, event_type, resource_type=None, resource_id=None, data=None):
        try:
            event = StoreEvent(
                store_id=store_id,
                event_type=event_type,
                resource_type=resource_type,
                resource_id=resource_id,
                data=data or {},
            )
            db.session.add(event)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        current_app.logger.info(f"Event {event_type} store={store_id} {resource_type}={resource_id}")
        return event

    @staticmethod
    def emit_order_created(order):
        return EventService.emit(
            order.store_id,
            EventType.ORDER_CREATED,
            resource_type='order',
            resource_id=order.id,
            data={
                'order_number': order.order_number,
                'customer_email': order.customer_email,
                'customer_name': order.customer_name,
                'total': str(order.total),
                'item_count': len(order.items),
                'discount_code': order.discount_code,
            },
        )

    @staticmethod
    def low_stock_threshold(store_id):
        store = db.session.get(Store, store_id)
        value = store.get_setting('LOW_STOCK_THRESHOLD') if store else None
        try:
            return int(value) if value is not None else current_app.config['LOW_STOCK_THRESHOLD']
        except ValueError:
            return current_app.config['LOW_STOCK_THRESHOLD']

    @staticmethod
    def _stock_targets(store_id, items):
        """(product_id, variant_id) 목록. 번들은 구성품으로 펼친다."""
        targets = []
        for product_id, variant_id in items:
            if not product_id:
                continue
            product = Product.query.filter_by(id=product_id, store_id=store_id).first()
            if product is None:
                continue
            if product.is_bundle:
                for comp in BundleComponent.query.filter_by(bundle_product_id=product.id).all():
                    targets.append((comp.product_id, comp.variant_id))
            else:
                targets.append((product.id, variant_id))
        return list(dict.fromkeys(targets))

    @staticmethod
    def check_low_stock(store_id, items):
        """
        items: [(product_id, variant_id), ...]
        0 이하 -> product.out_of_stock, 0 < 재고 <= 임계값 -> product.low_stock
        """
        threshold = EventService.low_stock_threshold(store_id)
        emitted = []
        for product_id, variant_id in EventService._stock_targets(store_id, items):
            product = db.session.get(Product, product_id)
            if variant_id:
                variant = db.session.get(ProductVariant, variant_id)
                inventory = variant.inventory if variant else None
                label = f"{product.name} / {variant.title}" if variant else product.name
            else:
                inventory = product.inventory
                label = product.name

            if inventory is None:
                continue

            data = {'product_id': product_id, 'variant_id': variant_id, 'name': label,
                    'inventory': inventory, 'threshold': threshold}
            if inventory <= 0:
                data['waitlist_count'] = WaitlistEntry.query.filter_by(
                    store_id=store_id, product_id=product_id, variant_id=variant_id, is_notified=False
                ).count()
                EventService.emit(store_id, EventType.OUT_OF_STOCK, 'product', product_id, data)
                emitted.append(EventType.OUT_OF_STOCK)
            elif inventory <= threshold:
                EventService.emit(store_id, EventType.LOW_STOCK, 'product', product_id, data)
                emitted.append(EventType.LOW_STOCK)
        return emitted
