import pytest
import requests

from fbr_di.gateway import GatewayClient
from fbr_di.models import Company, Invoice, InvoiceItem, Settings
from fbr_di.service import InvoiceService
from fbr_di.storage import InvoiceStore

VALID_BODY = {
    'dated': '2025-05-26 10:00:00',
    'validationResponse': {
        'statusCode': '00',
        'status': 'Valid',
        'error': '',
        'invoiceStatuses': [
            {'itemSNo': '1', 'statusCode': '00', 'status': 'Valid', 'invoiceNo': '', 'errorCode': '', 'error': ''},
        ],
    },
}

POSTED_BODY = {
    'invoiceNumber': '8885801DI1747119701593',
    'dated': '2025-05-26 10:00:05',
    'validationResponse': {
        'statusCode': '00',
        'status': 'Valid',
        'error': '',
        'invoiceStatuses': [
            {'itemSNo': '1', 'statusCode': '00', 'status': 'Valid',
             'invoiceNo': '8885801DI1747119701593-1', 'errorCode': '', 'error': ''},
        ],
    },
}

INVALID_BODY = {
    'dated': '2025-05-26 10:00:00',
    'validationResponse': {
        'statusCode': '01',
        'status': 'Invalid',
        'errorCode': '0052',
        'error': 'Provide proper HS Code with invoice no. null',
        'invoiceStatuses': None,
    },
}


class FakeResponse:

    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        self._body = body
        self.text = text if text is not None else ''

    def json(self):
        if self._body is None:
            raise ValueError('No JSON object could be decoded')
        return self._body


class FakeSession:
    """Stands in for requests.Session; replies are consumed in order"""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []

    def post(self, url, json=None, headers=None, timeout=None):
        return self._reply('post', url, json, headers, timeout)

    def get(self, url, headers=None, timeout=None):
        return self._reply('get', url, None, headers, timeout)

    def _reply(self, method, url, json, headers, timeout):
        self.calls.append({'method': method, 'url': url, 'json': json, 'headers': headers,
                           'timeout': timeout})
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply

    def urls(self):
        return [call['url'] for call in self.calls]


@pytest.fixture
def company():
    return Company(
        id='acme',
        name='Acme',
        business_name='Acme Traders',
        address='Karachi',
        province='Sindh',
        ntn='888-580-1',
        fbr_token='sandbox-token',
    )


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def invoice():
    return Invoice(
        id=1,
        company_id='acme',
        invoice_number='INV-0001',
        invoice_date='2025-05-26',
        scenario_id='SN002',
        buyer_name='Bilal',
        buyer_business_name='Bilal Stores',
        buyer_ntn_cnic='42101-1234567-1',
        buyer_address='Lahore',
        buyer_province='Punjab',
        items=[InvoiceItem(description='Widget', hs_code='0101.2100', uom='Numbers, pieces, units',
                           unit_price=1000, quantity=400)],
        sales_tax_rate=18,
    )


@pytest.fixture
def store(tmp_path):
    return InvoiceStore(str(tmp_path / 'invoices.db'))


@pytest.fixture
def session():
    return FakeSession(FakeResponse(200, VALID_BODY))


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def service(store, session, sleeps, company):
    store.save_company(company)

    def factory(token, environment):
        return GatewayClient(token, environment=environment, session=session, backoff=0,
                             sleep=sleeps.append)

    return InvoiceService(store, client_factory=factory, auto_post_delay=1.5, sleep=sleeps.append)


@pytest.fixture
def connection_error():
    return requests.exceptions.ConnectionError('Connection refused')
