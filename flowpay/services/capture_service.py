from dataclasses import replace

import requests
from flask import current_app

from flowpay.errors import CaptureFailedError
from flowpay.services.gateways import get_normalizer
from flowpay.services.gateways.base import PaymentDetails

ALREADY_CAPTURED = 'ORDER_ALREADY_CAPTURED'

class PayPalClient:
    """PayPal Orders v2 API 최소 클라이언트 (capture 전용)"""

    def __init__(self, client_id, client_secret, sandbox=False, timeout=None):
        self.client_id = client_id
        self.client_secret = client_secret
        cfg = current_app.config
        self.base_url = cfg['PAYPAL_SANDBOX_API_BASE'] if sandbox else cfg['PAYPAL_API_BASE']
        self.timeout = timeout or cfg['GATEWAY_TIMEOUT']

    @classmethod
    def for_store(cls, store):
        client_id = store.get_setting('PAYPAL_CLIENT_ID')
        client_secret = store.get_setting('PAYPAL_CLIENT_SECRET')
        if not client_id or not client_secret:
            raise CaptureFailedError(f"PayPal is not configured for store {store.slug}")
        return cls(client_id, client_secret, sandbox=store.get_setting('PAYPAL_MODE', 'live') == 'sandbox')

    def _access_token(self):
        resp = requests.post(
            f"{self.base_url}/v1/oauth2/token",
            auth=(self.client_id, self.client_secret),
            data={'grant_type': 'client_credentials'},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        token = (resp.json() or {}).get('access_token')
        if not token:
            raise CaptureFailedError('PayPal OAuth response did not include an access token')
        return token

    def capture_order(self, provider_order_id, payer_id=None):
        """
        capture 를 정확히 1회 호출.
        반환: (status, capture_id, amount, error_issue)
        """
        token = self._access_token()
        headers = {
            'Authorization': f"Bearer {token}",
            'Content-Type': 'application/json',
            # 같은 주문에 대한 재요청은 PayPal 측에서 멱등 처리
            'PayPal-Request-Id': f"capture-{provider_order_id}-{payer_id or 'na'}",
        }
        resp = requests.post(
            f"{self.base_url}/v2/checkout/orders/{provider_order_id}/capture",
            headers=headers,
            json={},
            timeout=self.timeout,
        )
        body = resp.json() if resp.content else {}

        if resp.status_code >= 400:
            issue = ((body.get('details') or [{}])[0]).get('issue') or body.get('name')
            return body.get('status'), None, None, issue

        capture = {}
        for unit in body.get('purchase_units') or []:
            captures = (unit.get('payments') or {}).get('captures') or []
            if captures:
                capture = captures[0]
                break
        amount = (capture.get('amount') or {}).get('value')
        return body.get('status'), capture.get('id'), amount, None

def capture_if_required(store, signal):
    """
    two-phase 게이트웨이의 잠정 성공 신호를 capture 결과로 확정.
    실패 시 CaptureFailedError (아무것도 저장하지 않음).
    """
    normalizer = get_normalizer(signal.provider)
    if not signal.success or not normalizer.two_phase or not signal.requires_capture:
        return signal

    provider_order_id = signal.request_id
    try:
        client = PayPalClient.for_store(store)
        status, capture_id, amount, issue = client.capture_order(provider_order_id, signal.capture_token)
    except requests.exceptions.RequestException as e:
        current_app.logger.error(f"PayPal capture request failed store={store.slug} order={provider_order_id}: {e}")
        raise CaptureFailedError(f"PayPal capture request failed: {e}")

    if status == 'COMPLETED' or issue == ALREADY_CAPTURED:
        if issue == ALREADY_CAPTURED:
            current_app.logger.info(f"PayPal order {provider_order_id} already captured, treating as success")
        payment = PaymentDetails(transaction_id=capture_id or provider_order_id)
        return replace(
            signal,
            status='captured',
            requires_capture=False,
            payment=payment,
            amount=normalizer.amount(amount) if amount else signal.amount,
        )

    current_app.logger.warning(
        f"PayPal capture not completed store={store.slug} order={provider_order_id} status={status} issue={issue}"
    )
    raise CaptureFailedError(f"PayPal capture failed: {issue or status}")
