import re

import pytest

from fbr_di.errors import PayloadError
from fbr_di.models import Company, InvoiceItem, Settings
from fbr_di.payload import build_payload, build_scenario_payload, format_rate, resolve_classification
from fbr_di.scenarios import get_scenario


def test_payload_header(invoice, company, settings):
    payload = build_payload(invoice, company, settings)

    assert payload['invoiceType'] == 'Sale Invoice'
    assert payload['invoiceDate'] == '2025-05-26'
    assert payload['sellerNTNCNIC'] == '8885801'
    assert payload['sellerBusinessName'] == 'Acme Traders'
    assert payload['sellerProvince'] == 'Sindh'
    assert payload['sellerAddress'] == 'Karachi'
    assert payload['buyerNTNCNIC'] == '4210112345671'
    assert payload['buyerBusinessName'] == 'Bilal Stores'
    assert payload['buyerProvince'] == 'Punjab'
    assert payload['buyerRegistrationType'] == 'Unregistered'
    assert payload['scenarioId'] == 'SN002'
    assert re.match(r'^INV-\d+-\d{3}$', payload['invoiceRefNo'])


def test_payload_items(invoice, company, settings):
    item = build_payload(invoice, company, settings)['items'][0]

    assert item['hsCode'] == '0101.2100'
    assert item['productDescription'] == 'Widget'
    assert item['rate'] == '18%'
    assert item['uoM'] == 'Numbers, pieces, units'
    assert item['quantity'] == 400
    assert item['valueSalesExcludingST'] == 400000
    assert item['salesTaxApplicable'] == 72000
    assert item['furtherTax'] == 0
    assert item['saleType'] == 'Goods at standard rate (default)'
    for name in ('fixedNotifiedValueOrRetailPrice', 'salesTaxWithheldAtSource', 'fedPayable', 'discount'):
        assert item[name] == 0
    assert item['sroScheduleNo'] == ''
    assert item['sroItemSerialNo'] == ''


def test_further_tax_is_reported_per_line(invoice, company, settings):
    invoice.further_tax_rate = 3
    item = build_payload(invoice, company, settings)['items'][0]
    assert item['furtherTax'] == 12000


@pytest.mark.parametrize('rate,expected', [(18, '18%'), (18.0, '18%'), (0, '0%'), (None, '0%'), (1.43, '1.43%')])
def test_format_rate(rate, expected):
    assert format_rate(rate) == expected


def test_reference_is_stable_across_builds(invoice, company, settings):
    first = build_payload(invoice, company, settings)
    second = build_payload(invoice, company, settings)
    assert first['invoiceRefNo'] == second['invoiceRefNo'] == invoice.reference_no


def test_existing_reference_is_kept(invoice, company, settings):
    invoice.reference_no = 'INV-1-001'
    assert build_payload(invoice, company, settings)['invoiceRefNo'] == 'INV-1-001'


@pytest.mark.parametrize('ntn', ['', '   ', None])
def test_missing_seller_ntn(invoice, company, settings, ntn):
    company.ntn = ntn
    with pytest.raises(PayloadError) as excinfo:
        build_payload(invoice, company, settings)
    assert excinfo.value.field == 'sellerNTNCNIC'
    assert 'not configured' in str(excinfo.value)


def test_malformed_seller_ntn(invoice, company, settings):
    company.ntn = '12345'
    with pytest.raises(PayloadError) as excinfo:
        build_payload(invoice, company, settings)
    assert excinfo.value.field == 'sellerNTNCNIC'


def test_malformed_buyer_ntn(invoice, company, settings):
    invoice.buyer_ntn_cnic = '42101-12'
    with pytest.raises(PayloadError) as excinfo:
        build_payload(invoice, company, settings)
    assert excinfo.value.field == 'buyerNTNCNIC'


def test_buyer_ntn_sent_as_is_without_normalization(invoice, company, settings):
    invoice.buyer_ntn_cnic = '42101-12'
    payload = build_payload(invoice, company, settings, normalize_buyer=False)
    assert payload['buyerNTNCNIC'] == '42101-12'


def test_empty_items_rejected(invoice, company, settings):
    invoice.items = []
    with pytest.raises(PayloadError) as excinfo:
        build_payload(invoice, company, settings)
    assert excinfo.value.field == 'items'


def test_defaults_for_blank_buyer_fields(invoice, company, settings):
    invoice.buyer_province = ''
    invoice.buyer_ntn_cnic = ''
    invoice.buyer_business_name = ''
    payload = build_payload(invoice, company, settings)
    assert payload['buyerProvince'] == 'Sindh'
    assert payload['buyerNTNCNIC'] == ''
    assert payload['buyerBusinessName'] == 'Bilal'


def test_scenario_argument_overrides_invoice(invoice, company, settings):
    payload = build_payload(invoice, company, settings, scenario=get_scenario('SN008'))
    assert payload['scenarioId'] == 'SN008'
    assert payload['items'][0]['saleType'] == '3rd Schedule Goods'


def test_scenario_falls_back_to_settings(invoice, company):
    invoice.scenario_id = ''
    payload = build_payload(invoice, company, Settings(scenario_id='SN001'))
    assert payload['scenarioId'] == 'SN001'


def test_classification_precedence(invoice):
    settings = Settings(hs_code='9999.9999', uom='KG')
    assert resolve_classification(invoice, settings, 'SN002')[:2] == ('0101.2100', 'Numbers, pieces, units')

    invoice.hs_code = '1111.1111'
    assert resolve_classification(invoice, settings, 'SN002')[0] == '1111.1111'

    invoice.hs_code = ''
    invoice.items = [InvoiceItem(description='Bare', unit_price=1, quantity=1)]
    assert resolve_classification(invoice, settings, 'SN002')[:2] == ('9999.9999', 'KG')
    assert resolve_classification(invoice, None, 'SN999') == (
        '0000.0000', 'Numbers, pieces, units', 'Goods at standard rate (default)')


def test_scenario_payload_substitutes_seller(company):
    payload = build_scenario_payload(get_scenario('SN002'), company)

    assert payload['sellerNTNCNIC'] == '8885801'
    assert payload['sellerBusinessName'] == 'Acme Traders'
    assert payload['buyerNTNCNIC'] == '1234567'
    assert payload['scenarioId'] == 'SN002'
    assert payload['invoiceDate']
    assert payload['invoiceRefNo'].startswith('INV-')


def test_scenario_payload_keeps_template_values(company):
    payload = build_scenario_payload(get_scenario('SN008'), company)
    assert payload['invoiceDate'] == '2025-04-21'
    assert payload['invoiceRefNo'] == '0'
    # seller block always comes from the company
    assert payload['sellerAddress'] == 'Karachi'
    assert payload['sellerNTNCNIC'] == '8885801'


def test_scenario_payload_does_not_mutate_catalog(company):
    scenario = get_scenario('SN001')
    payload = build_scenario_payload(scenario, company)
    payload['items'][0]['quantity'] = 999
    assert scenario.template()['items'][0]['quantity'] == 1
    assert 'sellerNTNCNIC' not in scenario.payload


def test_scenario_payload_requires_seller_ntn():
    with pytest.raises(PayloadError):
        build_scenario_payload(get_scenario('SN002'), Company(id='x', name='No NTN'))
