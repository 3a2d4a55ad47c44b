import re
from dataclasses import dataclass, asdict, field
from typing import Optional

import requests
from flask import current_app

from flowpay.constants import FulfillmentStatus, ShipmentStatus
from flowpay.errors import CarrierError, CarrierTransportError
from flowpay.extensions import db
from flowpay.models import Order, Shipment, ShippingProvider
from flowpay.utils import to_decimal, utcnow

DEFAULT_PACKAGE = {'weight': 1, 'width': 20, 'height': 20, 'length': 20, 'quantity': 1}

@dataclass
class ShipmentAddress:
    name: str
    phone: str
    street: str
    city: str
    email: Optional[str] = None
    zip_code: Optional[str] = None
    apartment: Optional[str] = None
    floor: Optional[str] = None
    entrance: Optional[str] = None

@dataclass
class ShipmentRequest:
    order_id: int
    order_number: str
    recipient: ShipmentAddress
    sender: ShipmentAddress
    package: dict = field(default_factory=lambda: dict(DEFAULT_PACKAGE))
    items: list = field(default_factory=list)
    notes: str = ''

@dataclass
class ShipmentResult:
    provider_shipment_id: str
    tracking_number: str
    label_url: Optional[str] = None

class CargoCarrier:
    """Cargo 배송 API (shipments/create 만 사용)"""
    name = 'cargo'
    BASE_URL = 'https://api-v2.cargo.co.il/api'
    CARRIER_EXPRESS = 1
    CARRIER_BOX = 2

    def __init__(self, settings):
        self.settings = settings or {}
        self.api_token = self.settings.get('api_token')
        self.customer_code = self.settings.get('customer_code')
        if not self.api_token or not self.customer_code:
            raise CarrierError('Cargo credentials are missing', code='not_configured')

    @staticmethod
    def normalize_phone(phone):
        digits = re.sub(r'\D', '', phone or '')
        if digits.startswith('972'):
            digits = '0' + digits[3:]
        return digits

    def _address(self, address):
        return {
            'name': address.name,
            'street1': address.street,
            'city': address.city,
            'phone': self.normalize_phone(address.phone),
            'email': address.email or '',
            'entrance': address.entrance or '',
            'floor': address.floor or '',
            'apartment': address.apartment or '',
        }

    def create_shipment(self, shipment_request):
        body = {
            'shipping_type': 1,
            'number_of_parcels': shipment_request.package.get('quantity') or 1,
            'total_value': float(sum(to_decimal(i['price']) * i['quantity'] for i in shipment_request.items)),
            'transaction_id': shipment_request.order_number,
            'order_id': shipment_request.order_id,
            'carrier_id': self.CARRIER_BOX if self.settings.get('use_box_shipment') else self.CARRIER_EXPRESS,
            'customer_code': self.customer_code,
            'notes': shipment_request.notes,
            'to_address': self._address(shipment_request.recipient),
            'from_address': self._address(shipment_request.sender),
        }
        try:
            resp = requests.post(
                f"{self.BASE_URL}/shipments/create",
                json=body,
                headers={'Authorization': f"Bearer {self.api_token}"},
                timeout=current_app.config['CARRIER_TIMEOUT'],
            )
        except requests.exceptions.RequestException as e:
            raise CarrierTransportError(f"Cargo request failed: {e}")

        if resp.status_code >= 500:
            raise CarrierTransportError(f"Cargo API error: {resp.status_code}")
        try:
            data = resp.json()
        except ValueError:
            raise CarrierError(f"Cargo returned a non-JSON response ({resp.status_code})", code='bad_response')

        if resp.status_code >= 400 or data.get('errors') is True or data.get('error'):
            raise CarrierError(data.get('message') or data.get('error') or f"HTTP {resp.status_code}",
                               code='api_error')

        shipment_id = str((data.get('data') or {}).get('shipment_id') or '')
        if not shipment_id:
            raise CarrierError('Cargo response has no shipment_id', code='bad_response')
        return ShipmentResult(provider_shipment_id=shipment_id, tracking_number=shipment_id)

CARRIERS = {
    CargoCarrier.name: CargoCarrier,
}

class ShippingService:

    @staticmethod
    def get_auto_send_provider(store_id):
        provider = ShippingProvider.query.filter_by(store_id=store_id, is_active=True, is_default=True).first()
        if provider is None or not (provider.settings or {}).get('auto_send_on_payment'):
            return None
        return provider

    @staticmethod
    def build_request(order, provider):
        settings = provider.settings or {}
        address = order.shipping_address or {}
        recipient = ShipmentAddress(
            name=address.get('name') or order.customer_name or '',
            phone=address.get('phone') or order.customer_phone or '',
            street=' '.join(p for p in [address.get('street'), address.get('house_number')] if p),
            city=address.get('city') or '',
            email=order.customer_email,
            zip_code=address.get('zip_code'),
            apartment=address.get('apartment'),
            floor=address.get('floor'),
            entrance=address.get('entrance'),
        )
        sender = ShipmentAddress(
            name=settings.get('sender_name') or order.store.store_name,
            phone=settings.get('sender_phone') or '',
            street=settings.get('sender_street') or '',
            city=settings.get('sender_city') or '',
            zip_code=settings.get('sender_zip_code'),
        )
        package = dict(DEFAULT_PACKAGE)
        package.update(settings.get('default_package') or {})
        return ShipmentRequest(
            order_id=order.id,
            order_number=order.order_number,
            recipient=recipient,
            sender=sender,
            package=package,
            items=[{'name': i.name, 'quantity': i.quantity, 'price': str(i.price)} for i in order.items],
            notes=order.note or '',
        )

    @staticmethod
    def record_failure(order, message):
        order.shipment_error = message
        order.shipment_error_at = utcnow()
        db.session.commit()

    @staticmethod
    def auto_dispatch(order_id):
        """
        결제 완료 후 자동 발송. 성공 시 Shipment 저장 + fulfilled,
        배송사 업무 에러는 주문에 기록하고 종료. 전송 에러(CarrierTransportError)는 호출자(Celery)가 재시도.
        """
        order = db.session.get(Order, order_id)
        if order is None:
            return {'status': 'skipped', 'message': 'order not found'}

        provider = ShippingService.get_auto_send_provider(order.store_id)
        if provider is None:
            return {'status': 'skipped', 'message': 'auto send disabled'}

        if Shipment.query.filter_by(order_id=order.id, status=ShipmentStatus.CREATED).first():
            return {'status': 'skipped', 'message': 'shipment already exists'}

        carrier_cls = CARRIERS.get(provider.provider)
        if carrier_cls is None:
            ShippingService.record_failure(order, f"Unsupported carrier: {provider.provider}")
            return {'status': 'error', 'message': order.shipment_error}

        try:
            shipment_request = ShippingService.build_request(order, provider)
            result = carrier_cls(provider.settings).create_shipment(shipment_request)
        except CarrierTransportError:
            raise
        except CarrierError as e:
            current_app.logger.warning(f"Auto-dispatch failed order={order.id} code={e.code}: {e}")
            ShippingService.record_failure(order, str(e))
            return {'status': 'error', 'message': str(e)}

        try:
            db.session.add(Shipment(
                store_id=order.store_id,
                order_id=order.id,
                provider=provider.provider,
                provider_shipment_id=result.provider_shipment_id,
                tracking_number=result.tracking_number,
                label_url=result.label_url,
                status=ShipmentStatus.CREATED,
                recipient=asdict(shipment_request.recipient),
            ))
            order.fulfillment_status = FulfillmentStatus.FULFILLED
            order.shipment_error = None
            order.shipment_error_at = None
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        current_app.logger.info(
            f"Auto-dispatched order {order.order_number} via {provider.provider}, tracking {result.tracking_number}"
        )
        return {'status': 'success', 'tracking_number': result.tracking_number}
