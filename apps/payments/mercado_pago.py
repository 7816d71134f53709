"""
Thin Mercado Pago REST client.

Only the calls the storefront needs: checkout preferences, card payments,
payment lookup/search, credential verification and webhook signatures.
"""

import hashlib
import hmac
import logging
import uuid

import requests
from django.conf import settings

logger = logging.getLogger(__name__)


class MercadoPagoError(Exception):
    """Mercado Pago refused a request or could not be reached."""

    def __init__(self, message, status_code=None, response=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response = response or {}


class MercadoPagoClient:
    def __init__(self, access_token, base_url=None, timeout=None):
        if not access_token:
            raise MercadoPagoError("Mercado Pago is not configured for this restaurant")
        config = settings.MERCADO_PAGO_CONFIG
        self.access_token = access_token
        self.base_url = (base_url or config['API_URL']).rstrip('/')
        self.timeout = timeout or config['TIMEOUT']

    def _headers(self, idempotency_key=None):
        headers = {
            'Authorization': f'Bearer {self.access_token}',
            'Content-Type': 'application/json',
        }
        if idempotency_key:
            headers['X-Idempotency-Key'] = idempotency_key
        return headers

    def _request(self, method, path, **kwargs):
        url = f"{self.base_url}{path}"
        try:
            response = requests.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f'Mercado Pago {method} {path} failed: {str(e)}')
            raise MercadoPagoError('Could not reach Mercado Pago')

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code >= 400:
            message = data.get('message') or data.get('error') or f'Mercado Pago API Error: {response.status_code}'
            logger.warning(f'Mercado Pago {method} {path} returned {response.status_code}: {message}')
            raise MercadoPagoError(message, status_code=response.status_code, response=data)
        return data

    def create_preference(self, payload):
        return self._request('POST', '/checkout/preferences', headers=self._headers(), json=payload)

    def create_payment(self, payload, idempotency_key=None):
        return self._request(
            'POST', '/v1/payments',
            headers=self._headers(idempotency_key or str(uuid.uuid4())),
            json=payload,
        )

    def get_payment(self, payment_id):
        return self._request('GET', f'/v1/payments/{payment_id}', headers=self._headers())

    def search_payments(self, external_reference):
        """Payments for an external reference, newest first."""
        data = self._request(
            'GET', '/v1/payments/search',
            headers=self._headers(),
            params={
                'sort': 'date_created',
                'criteria': 'desc',
                'external_reference': external_reference,
            },
        )
        return data.get('results') or []

    def verify_credentials(self):
        """True when the access token is accepted."""
        try:
            self._request('GET', '/users/me', headers=self._headers())
        except MercadoPagoError as e:
            if e.status_code in (401, 403):
                return False
            raise
        return True


def verify_webhook_signature(secret, x_signature, x_request_id, data_id):
    """
    Check the ``x-signature`` header Mercado Pago puts on notifications.

    The header reads ``ts=<timestamp>,v1=<hex digest>``; v1 is the
    HMAC-SHA256, keyed with the webhook secret, of
    ``id:<data id>;request-id:<x-request-id>;ts:<timestamp>;``.
    """
    if not x_signature or not x_request_id:
        logger.warning("Mercado Pago webhook without signature headers")
        return False

    parts = {}
    for part in x_signature.split(','):
        if '=' in part:
            key, value = part.split('=', 1)
            parts[key.strip()] = value.strip()

    ts = parts.get('ts')
    v1 = parts.get('v1')
    if not ts or not v1:
        logger.warning(f"Malformed Mercado Pago signature header: {x_signature}")
        return False

    manifest = f"id:{str(data_id).lower()};request-id:{x_request_id};ts:{ts};"
    expected = hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()
    if not hmac.compare_digest(expected, v1):
        logger.warning("Mercado Pago webhook signature mismatch")
        return False
    return True
