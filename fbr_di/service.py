"""
Invoice pipeline actions.

Each action takes the seller Company and tenant Settings explicitly, loads the
invoice from the store, and writes back only through the store's conditional
updates.
"""

import dataclasses
import logging
import threading
import time

from . import lifecycle
from .errors import GatewayConfigError, InvalidTransition, ValidationError
from .gateway import BUYER_PATHS, GatewayClient, GatewayOutcome
from .models import EDITABLE_FIELDS, DocumentStatus, Invoice, safe_float
from .ntn import normalize_ntn
from .payload import build_payload, generate_reference_no
from .reference import REFERENCE_TYPES, fallback
from .regression import run_regression

logger = logging.getLogger(__name__)

# Invoice ids with a post in flight in this process
_posting = set()
_posting_guard = threading.Lock()


def _begin_post(invoice_id):
    with _posting_guard:
        if invoice_id in _posting:
            return False
        _posting.add(invoice_id)
        return True


def _end_post(invoice_id):
    with _posting_guard:
        _posting.discard(invoice_id)


def default_client_factory(token, environment):
    from . import config

    return GatewayClient(
        token,
        environment=environment,
        timeout=config.FBR_TIMEOUT,
        max_retries=config.FBR_MAX_RETRIES,
        backoff=config.FBR_BACKOFF,
    )


class InvoiceService:

    def __init__(self, store, client_factory=None, auto_post_delay=1.5, sleep=time.sleep):
        self.store = store
        self.client_factory = client_factory or default_client_factory
        self.auto_post_delay = auto_post_delay
        self._sleep = sleep

    def client(self, company, settings):
        return self.client_factory(settings.token_for(company), settings.environment)

    # ----------------- EDITING -----------------
    def create_invoice(self, company, settings, data):
        invoice = Invoice(
            company_id=company.id,
            scenario_id=data.get('scenario_id') or settings.scenario_id,
            sales_tax_rate=safe_float(data.get('sales_tax_rate', settings.sales_tax_rate)),
            further_tax_rate=safe_float(data.get('further_tax_rate', settings.further_tax_rate)),
        )
        fields = {name: value for name, value in data.items() if name in EDITABLE_FIELDS}
        fields.pop('scenario_id', None)
        lifecycle.edit_invoice(invoice, items=data.get('items') or [], **fields)
        self._check_number(company, invoice)
        return self.store.create_invoice(invoice)

    def update_invoice(self, company, invoice_id, data):
        invoice = self.store.get_invoice(invoice_id, company.id)
        fields = {name: value for name, value in data.items() if name in EDITABLE_FIELDS}
        change = lifecycle.edit_invoice(
            invoice,
            items=data.get('items'),
            sales_tax_rate=data.get('sales_tax_rate'),
            further_tax_rate=data.get('further_tax_rate'),
            **fields,
        )
        self._check_number(company, invoice)
        return self.store.update_invoice(invoice, change)

    def _check_number(self, company, invoice):
        if not invoice.invoice_number:
            raise ValidationError('Invoice number is required', field='invoice_number')
        if self.store.invoice_number_exists(company.id, invoice.invoice_number, exclude_id=invoice.id):
            raise ValidationError(
                f'Invoice number {invoice.invoice_number} already exists. Please use a different number.',
                field='invoice_number',
            )

    # ----------------- GATEWAY -----------------
    def build_payload(self, company, settings, invoice_id):
        invoice = self.store.get_invoice(invoice_id, company.id)
        return invoice, self._payload(invoice, company, settings)

    def _payload(self, invoice, company, settings):
        if not invoice.reference_no:
            invoice.reference_no = self.store.set_reference_no(invoice.id, generate_reference_no())
        return build_payload(invoice, company, settings)

    def validate_invoice(self, company, settings, invoice_id):
        """Dry-run the invoice against the gateway; the invoice is not changed"""
        invoice, payload = self.build_payload(company, settings, invoice_id)
        result = self.client(company, settings).validate(payload)
        logger.info('Validated invoice %s: %s', invoice.invoice_number, result.outcome.value)
        return result

    def post_invoice(self, company, settings, invoice_id, override_warnings=False, preflight=True):
        """Post a draft invoice to FBR and record the authority invoice number.

        With ``preflight`` the invoice is validated first and the post is
        skipped when FBR flags it as Invalid, unless ``override_warnings``.
        """
        if not _begin_post(invoice_id):
            raise InvalidTransition('This invoice is already being posted to FBR', field='status')
        try:
            invoice = self.store.get_invoice(invoice_id, company.id)
            lifecycle.check_document_transition(invoice, DocumentStatus.FBR_POSTED, via_gateway=True)
            payload = self._payload(invoice, company, settings)
            client = self.client(company, settings)

            if preflight:
                check = client.validate(payload)
                if check.hard_failure:
                    return check
                if check.warning and not override_warnings:
                    logger.info('Post of invoice %s halted: %s', invoice.invoice_number, check.error)
                    return check
                if check.warning:
                    logger.warning('Posting invoice %s despite FBR warning: %s',
                                   invoice.invoice_number, check.error)

            result = client.post(payload)
            if not result.success:
                return result

            posted_at = lifecycle.now_iso()
            if not self.store.mark_posted(invoice.id, result.fbr_invoice_number, result.body, posted_at):
                logger.error('Invoice %s posted as %s but was no longer a draft',
                             invoice.invoice_number, result.fbr_invoice_number)
                return dataclasses.replace(
                    result,
                    outcome=GatewayOutcome.REMOTE_ERROR,
                    error=(f'Invoice was changed while posting; FBR invoice number '
                           f'{result.fbr_invoice_number} was not recorded'),
                )
            lifecycle.mark_posted(invoice, result.fbr_invoice_number, result.body, posted_at)
            logger.info('Invoice %s posted to FBR as %s', invoice.invoice_number, result.fbr_invoice_number)
            return result
        finally:
            _end_post(invoice_id)

    def submit_invoice(self, company, settings, invoice_id, auto_post=False):
        """Validate, and when the gateway reports Valid optionally post after a short pause"""
        validation = self.validate_invoice(company, settings, invoice_id)
        posted = None
        if auto_post and validation.success:
            self._sleep(self.auto_post_delay)
            posted = self.post_invoice(company, settings, invoice_id, preflight=False)
        return validation, posted

    # ----------------- STATUS -----------------
    def change_status(self, company, invoice_id, status, note=''):
        invoice = self.store.get_invoice(invoice_id, company.id)
        change = lifecycle.change_status(invoice, status, note)
        self.store.apply_change(invoice, change)
        return invoice, change

    def change_payment_status(self, company, invoice_id, payment_status, note=''):
        invoice = self.store.get_invoice(invoice_id, company.id)
        change = lifecycle.change_payment_status(invoice, payment_status, note)
        self.store.apply_change(invoice, change)
        return invoice, change

    def record_payment(self, company, invoice_id, amount, note=''):
        invoice = self.store.get_invoice(invoice_id, company.id)
        change = lifecycle.record_payment(invoice, amount, note)
        self.store.apply_change(invoice, change)
        return invoice, change

    def history(self, company, invoice_id):
        self.store.get_invoice(invoice_id, company.id)
        return self.store.history(invoice_id)

    # ----------------- LOOKUPS -----------------
    def check_buyer(self, company, settings, ntn, kind='reg_type', on_date=None):
        """Ask FBR how a buyer is registered, using the seller's token"""
        if kind not in BUYER_PATHS:
            raise ValidationError(f'Unknown buyer check type: {kind}', field='type')
        result = normalize_ntn(ntn)
        if not result.ok:
            raise ValidationError(result.error, field='ntn')
        check = self.client(company, settings).check_buyer(result.normalized, kind, on_date)
        logger.info('Buyer %s check (%s): %s', result.normalized, kind, check.outcome.value)
        return check

    def reference_data(self, company, settings, kind):
        """One FBR reference list; the built-in copy when the gateway cannot supply it"""
        if kind not in REFERENCE_TYPES:
            raise ValidationError(
                f"Unknown reference type: {kind}. Use one of: {', '.join(REFERENCE_TYPES)}",
                field='type',
            )
        name = REFERENCE_TYPES[kind][0]
        try:
            result = self.client(company, settings).reference(name)
        except GatewayConfigError as e:
            logger.warning('Using built-in %s list: %s', kind, e)
            return fallback(kind)
        if result.success and isinstance(result.body, list):
            return result.body
        logger.warning('Using built-in %s list: %s', kind, result.error or 'unexpected response')
        return fallback(kind)

    # ----------------- SANDBOX -----------------
    def run_regression(self, company, settings, scenarios=None, delay=0.5):
        return run_regression(self.client(company, settings), company, scenarios=scenarios,
                              delay=delay, sleep=self._sleep)

