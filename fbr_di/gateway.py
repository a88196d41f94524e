"""
Client for the FBR Digital Invoicing gateway.

Every call returns a SubmissionResult. Gateway and transport problems are
reported through its ``outcome`` rather than raised, so callers always get
the raw response and the payload that was sent.
"""

import logging
import time
from functools import partial
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Optional

import requests

from .errors import GatewayConfigError

logger = logging.getLogger(__name__)

BASE_URL = 'https://gw.fbr.gov.pk'
VALIDATE_PATH = '/di_data/v1/di/validateinvoicedata'
POST_PATH = '/di_data/v1/di/postinvoicedata'

# Buyer lookups and reference data have no sandbox variant
BUYER_PATHS = {
    'reg_type': '/dist/v1/Get_Reg_Type',
    'status': '/dist/v1/statl',
}
REFERENCE_PATH = '/pdi/v1'

SANDBOX = 'sandbox'
PRODUCTION = 'production'

RETRY_STATUSES = (502, 503, 504)


class GatewayOutcome(str, Enum):
    VALID = 'valid'
    INVALID = 'invalid'
    TRANSPORT_ERROR = 'transport_error'
    REMOTE_ERROR = 'remote_error'


@dataclass
class SubmissionResult:
    outcome: GatewayOutcome
    status_code: Optional[int] = None
    body: Any = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    payload: Any = None
    fbr_invoice_number: Optional[str] = None

    @property
    def success(self):
        return self.outcome == GatewayOutcome.VALID

    @property
    def warning(self):
        """Gateway accepted the request but flagged its content"""
        return self.outcome == GatewayOutcome.INVALID

    @property
    def hard_failure(self):
        return self.outcome in (GatewayOutcome.TRANSPORT_ERROR, GatewayOutcome.REMOTE_ERROR)

    def to_dict(self):
        return {
            'success': self.success,
            'outcome': self.outcome.value,
            'status_code': self.status_code,
            'response_data': self.body,
            'error': self.error,
            'error_code': self.error_code,
            'request_payload': self.payload,
            'fbr_invoice_number': self.fbr_invoice_number,
        }


def extract_invoice_number(body):
    """Authority-assigned invoice number from a post response, if any"""
    if not isinstance(body, dict):
        return None
    if body.get('invoiceNumber'):
        return body['invoiceNumber']
    statuses = (body.get('validationResponse') or {}).get('invoiceStatuses') or []
    if statuses and isinstance(statuses[0], dict):
        return statuses[0].get('invoiceNo') or None
    return None


def _validation_errors(validation):
    errors = []
    if validation.get('error'):
        errors.append(validation['error'])
    for status in validation.get('invoiceStatuses') or []:
        if isinstance(status, dict) and status.get('error'):
            errors.append(f"Item {status.get('itemSNo', '?')}: {status['error']}")
    return '; '.join(errors) or None


def _error_code(validation):
    if validation.get('errorCode'):
        return validation['errorCode']
    for status in validation.get('invoiceStatuses') or []:
        if isinstance(status, dict) and status.get('errorCode'):
            return status['errorCode']
    return None


def interpret_response(status_code, body, payload=None, require_invoice_number=False):
    """Map an HTTP status and parsed body onto a SubmissionResult"""
    if not 200 <= status_code < 300:
        message = None
        if isinstance(body, dict):
            message = body.get('error') or body.get('message') or body.get('raw_response')
        return SubmissionResult(
            outcome=GatewayOutcome.REMOTE_ERROR,
            status_code=status_code,
            body=body,
            error=f'FBR gateway returned HTTP {status_code}' + (f': {message}' if message else ''),
            payload=payload,
        )

    if not isinstance(body, dict) or 'raw_response' in body:
        return SubmissionResult(
            outcome=GatewayOutcome.REMOTE_ERROR,
            status_code=status_code,
            body=body,
            error='Could not parse FBR gateway response',
            payload=payload,
        )

    validation = body.get('validationResponse') or {}
    status = str(validation.get('status') or '').lower()
    if status == 'invalid' or validation.get('statusCode') == '01':
        return SubmissionResult(
            outcome=GatewayOutcome.INVALID,
            status_code=status_code,
            body=body,
            error=_validation_errors(validation) or 'FBR marked the invoice as Invalid',
            error_code=_error_code(validation),
            payload=payload,
        )

    invoice_number = extract_invoice_number(body)
    if require_invoice_number and not invoice_number:
        return SubmissionResult(
            outcome=GatewayOutcome.REMOTE_ERROR,
            status_code=status_code,
            body=body,
            error='FBR gateway did not return an invoice number',
            payload=payload,
        )

    return SubmissionResult(
        outcome=GatewayOutcome.VALID,
        status_code=status_code,
        body=body,
        payload=payload,
        fbr_invoice_number=invoice_number,
    )


def interpret_lookup(status_code, body, payload=None):
    """Lookups carry no validationResponse: any parsed 2xx body is a result"""
    if not 200 <= status_code < 300 or (isinstance(body, dict) and 'raw_response' in body):
        return interpret_response(status_code, body, payload=payload)
    return SubmissionResult(
        outcome=GatewayOutcome.VALID,
        status_code=status_code,
        body=body,
        payload=payload,
    )


def extract_registration_type(body):
    """Registered / Unregistered from a Get_Reg_Type reply, if present"""
    if not isinstance(body, dict):
        return None
    for key, value in body.items():
        if key.lower().replace('_', '') in ('registrationtype', 'regtype') and value:
            return str(value).strip()
    return None


def _parse_body(response):
    # Safe JSON parsing
    try:
        return response.json()
    except ValueError:
        return {'raw_response': response.text}


class GatewayClient:
    """Validate and post invoice payloads against one gateway environment.

    Also looks up buyer registrations and reference lists with the same
    token, retry policy and result type.
    """

    def __init__(self, token, environment=SANDBOX, base_url=BASE_URL, timeout=30,
                 max_retries=2, backoff=1.0, session=None, sleep=time.sleep):
        if environment not in (SANDBOX, PRODUCTION):
            raise GatewayConfigError(f'Unknown FBR environment: {environment}')
        self.token = token
        self.environment = environment
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff = backoff
        self.session = session or requests.Session()
        self._sleep = sleep

    def endpoint(self, path):
        suffix = '_sb' if self.environment == SANDBOX else ''
        return f'{self.base_url}{path}{suffix}'

    def validate(self, payload):
        """Dry run: never changes anything on the gateway side"""
        return self._send(
            self.endpoint(VALIDATE_PATH),
            payload,
            retry_exceptions=(requests.exceptions.ConnectionError, requests.exceptions.Timeout),
            retry_statuses=RETRY_STATUSES,
        )

    def post(self, payload):
        """Record the invoice with FBR.

        Only retried when the connection was never established, so a
        timed-out post is reported instead of being sent twice.
        """
        return self._send(
            self.endpoint(POST_PATH),
            payload,
            retry_exceptions=(requests.exceptions.ConnectTimeout,),
            retry_statuses=(),
            interpret=partial(interpret_response, require_invoice_number=True),
        )

    def check_buyer(self, ntn, kind='reg_type', on_date=None):
        """Look up a buyer's registration type (``reg_type``) or active status (``status``)"""
        if kind not in BUYER_PATHS:
            raise ValueError(f'Unknown buyer check: {kind}')
        if kind == 'reg_type':
            payload = {'Registration_No': ntn}
        else:
            payload = {'regno': ntn, 'date': on_date or date.today().isoformat()}
        return self._send(
            f'{self.base_url}{BUYER_PATHS[kind]}',
            payload,
            retry_exceptions=(requests.exceptions.ConnectionError, requests.exceptions.Timeout),
            retry_statuses=RETRY_STATUSES,
            interpret=interpret_lookup,
        )

    def reference(self, name):
        """GET one reference list (provinces, doctypecode, transtypecode, uom)"""
        return self._send(
            f'{self.base_url}{REFERENCE_PATH}/{name}',
            None,
            retry_exceptions=(requests.exceptions.ConnectionError, requests.exceptions.Timeout),
            retry_statuses=RETRY_STATUSES,
            method='get',
            interpret=interpret_lookup,
        )

    def _headers(self):
        if not self.token:
            raise GatewayConfigError('FBR token not configured. Please add FBR token in Settings.')
        return {
            'Content-Type': 'application/json',
            'Authorization': f'Bearer {self.token}',
        }

    def _send(self, url, payload, retry_exceptions, retry_statuses, method='post',
              interpret=interpret_response):
        headers = self._headers()
        options = {'headers': headers, 'timeout': self.timeout}
        if payload is not None:
            options['json'] = payload
        attempt = 0
        while True:
            try:
                response = getattr(self.session, method)(url, **options)
            except requests.exceptions.RequestException as e:
                if isinstance(e, retry_exceptions) and attempt < self.max_retries:
                    attempt = self._wait(attempt, url, e)
                    continue
                logger.error('FBR request to %s failed: %s', url, e)
                return SubmissionResult(
                    outcome=GatewayOutcome.TRANSPORT_ERROR,
                    error=str(e),
                    payload=payload,
                )

            if response.status_code in retry_statuses and attempt < self.max_retries:
                attempt = self._wait(attempt, url, f'HTTP {response.status_code}')
                continue

            result = interpret(response.status_code, _parse_body(response), payload=payload)
            logger.info('FBR %s -> HTTP %s (%s)', url, response.status_code, result.outcome.value)
            return result

    def _wait(self, attempt, url, reason):
        delay = self.backoff * (2 ** attempt)
        logger.warning('FBR request to %s failed (%s), retrying in %.1fs', url, reason, delay)
        self._sleep(delay)
        return attempt + 1
