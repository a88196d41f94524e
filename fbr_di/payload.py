"""Build the validateinvoicedata / postinvoicedata request body."""

import logging
import random
import time
from datetime import date

from .errors import PayloadError
from .models import DEFAULT_HS_CODE, DEFAULT_PROVINCE, DEFAULT_SALE_TYPE, DEFAULT_UOM, RegistrationType
from .ntn import normalize_ntn
from .scenarios import sale_type_for
from .tax import item_tax

logger = logging.getLogger(__name__)


def generate_reference_no():
    return f'INV-{int(time.time() * 1000)}-{random.randint(0, 999):03d}'


def ensure_reference_no(invoice):
    """Assign the invoice's gateway reference once; later calls reuse it"""
    if not invoice.reference_no:
        invoice.reference_no = generate_reference_no()
    return invoice.reference_no


def format_rate(rate):
    rate = float(rate or 0)
    if rate.is_integer():
        return f'{int(rate)}%'
    return f'{rate:g}%'


def seller_fields(company):
    """Seller block of the payload, with a normalized NTN/CNIC"""
    if not company or not (company.ntn or '').strip():
        raise PayloadError('Seller NTN/CNIC is not configured. Please add it in Settings.',
                           field='sellerNTNCNIC')

    result = normalize_ntn(company.ntn)
    if not result.ok:
        raise PayloadError(f'Seller {result.error}', field='sellerNTNCNIC')

    return {
        'sellerNTNCNIC': result.normalized,
        'sellerBusinessName': company.display_name,
        'sellerProvince': company.province or DEFAULT_PROVINCE,
        'sellerAddress': company.address or '',
    }


def _buyer_ntn(invoice, normalize_buyer):
    raw = invoice.buyer_ntn_cnic or ''
    if not normalize_buyer or not raw.strip():
        return raw

    result = normalize_ntn(raw)
    if not result.ok:
        raise PayloadError(f'Buyer {result.error}', field='buyerNTNCNIC')
    return result.normalized


def resolve_classification(invoice, settings, scenario_id):
    """Single HS code / UOM / sale type for the whole invoice"""
    first = invoice.items[0] if invoice.items else None
    hs_code = (invoice.hs_code or (first.hs_code if first else '')
               or (settings.hs_code if settings else '') or DEFAULT_HS_CODE)
    uom = (invoice.uom or (first.uom if first else '')
           or (settings.uom if settings else '') or DEFAULT_UOM)
    sale_type = invoice.sale_type or sale_type_for(scenario_id) or DEFAULT_SALE_TYPE
    return hs_code, uom, sale_type


def build_items(invoice, hs_code, uom, sale_type):
    rate = format_rate(invoice.sales_tax_rate)
    items = []
    for item in invoice.items:
        line_total = item.line_total
        items.append({
            'hsCode': hs_code,
            'productDescription': item.description,
            'rate': rate,
            'uoM': uom,
            'quantity': item.quantity,
            'totalValues': line_total,
            'valueSalesExcludingST': line_total,
            'fixedNotifiedValueOrRetailPrice': 0,
            'salesTaxApplicable': item_tax(line_total, invoice.sales_tax_rate),
            'salesTaxWithheldAtSource': 0,
            'extraTax': '',
            'furtherTax': item_tax(line_total, invoice.further_tax_rate),
            'sroScheduleNo': '',
            'fedPayable': 0,
            'discount': 0,
            'saleType': sale_type,
            'sroItemSerialNo': '',
        })
    return items


def build_payload(invoice, company, settings=None, scenario=None, normalize_buyer=True):
    """Build JSON payload for an invoice.

    ``scenario`` may be a ScenarioDefinition or a bare scenario id; it
    overrides the scenario stored on the invoice. Raises PayloadError for
    anything the gateway would reject outright (missing or malformed
    seller identifier, malformed buyer identifier, no items).
    """
    if not invoice.items:
        raise PayloadError('At least one item is required. Items cannot be empty.', field='items')

    seller = seller_fields(company)
    buyer_ntn = _buyer_ntn(invoice, normalize_buyer)

    scenario_id = getattr(scenario, 'id', scenario) or invoice.scenario_id
    if not scenario_id and settings:
        scenario_id = settings.scenario_id
    hs_code, uom, sale_type = resolve_classification(invoice, settings, scenario_id)

    payload = {
        'invoiceType': invoice.invoice_type or 'Sale Invoice',
        'invoiceDate': invoice.invoice_date or date.today().isoformat(),
        **seller,
        'buyerNTNCNIC': buyer_ntn,
        'buyerBusinessName': invoice.buyer_display_name,
        'buyerProvince': invoice.buyer_province or DEFAULT_PROVINCE,
        'buyerAddress': invoice.buyer_address or '',
        'buyerRegistrationType': invoice.buyer_registration_type or RegistrationType.UNREGISTERED.value,
        'invoiceRefNo': ensure_reference_no(invoice),
        'scenarioId': scenario_id or 'SN000',
        'items': build_items(invoice, hs_code, uom, sale_type),
    }

    logger.debug('Built payload for invoice %s (%s, %d items)',
                 invoice.invoice_number, payload['scenarioId'], len(payload['items']))
    return payload


def build_scenario_payload(scenario, company):
    """Scenario template with the current seller substituted in.

    Buyer and item fields are the scenario's own; the buyer identifier is
    sent exactly as written so the gateway's own validation is exercised.
    """
    payload = scenario.template()
    payload.update(seller_fields(company))
    if not payload.get('invoiceDate'):
        payload['invoiceDate'] = date.today().isoformat()
    if 'invoiceRefNo' not in payload:
        payload['invoiceRefNo'] = generate_reference_no()
    return payload
