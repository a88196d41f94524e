"""
Sandbox scenario catalog.

Each entry is a complete validateinvoicedata_sb request for one regulatory
case, minus the seller block (substituted with the current company at run
time). Templates without an ``invoiceDate`` or ``invoiceRefNo`` get today's
date and a fresh reference when the payload is built.
"""

import copy
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

CATALOG_VERSION = '2025.05'

SANDBOX_BUYER = 'FERTILIZER MANUFAC IRS NEW'


@dataclass(frozen=True)
class ScenarioDefinition:
    id: str
    name: str
    sale_type: str
    description: str = ''
    payload: Mapping[str, Any] = field(default_factory=dict)

    def template(self):
        """Mutable deep copy of the payload template"""
        return copy.deepcopy(dict(self.payload))


def _item(sale_type, **values):
    item = {
        'hsCode': '0101.2100',
        'productDescription': 'TEST',
        'rate': '18%',
        'uoM': 'Numbers, pieces, units',
        'quantity': 1,
        'totalValues': 0,
        'valueSalesExcludingST': 0,
        'fixedNotifiedValueOrRetailPrice': 0,
        'salesTaxApplicable': 0,
        'salesTaxWithheldAtSource': 0,
        'extraTax': 0,
        'furtherTax': 0,
        'sroScheduleNo': '',
        'fedPayable': 0,
        'discount': 0,
        'saleType': sale_type,
        'sroItemSerialNo': '',
    }
    item.update(values)
    return item


def _scenario(scenario_id, name, sale_type, buyer_ntn, item, description='',
              registration='Unregistered', **header):
    payload = {
        'invoiceType': 'Sale Invoice',
        'buyerNTNCNIC': buyer_ntn,
        'buyerBusinessName': SANDBOX_BUYER,
        'buyerProvince': 'Sindh',
        'buyerAddress': 'Karachi',
        'scenarioId': scenario_id,
        'buyerRegistrationType': registration,
        'items': [item],
    }
    payload.update(header)
    return ScenarioDefinition(
        id=scenario_id,
        name=f'{scenario_id} – {name}',
        sale_type=sale_type,
        description=description,
        payload=MappingProxyType(payload),
    )


STANDARD = 'Goods at standard rate (default)'
REDUCED = 'Goods at Reduced Rate'
THIRD_SCHEDULE = '3rd Schedule Goods'

# Order matches the sandbox catalog fetch order; use list_scenarios(sort_by_id=True)
# for the ID-sorted view.
SCENARIOS = (
    _scenario(
        'SN002', 'Goods at Standard Rate to Unregistered Buyers', STANDARD, '1234567',
        _item(STANDARD, productDescription='test', quantity=400,
              valueSalesExcludingST=1000, salesTaxApplicable=180, extraTax=''),
        description='Sale to unregistered buyer/consumer at 18% standard rate',
    ),
    _scenario(
        'SN001', 'Goods at Standard Rate to Registered Buyers', STANDARD, '2046004',
        _item(STANDARD, productDescription='', valueSalesExcludingST=205000.0,
              salesTaxApplicable=36900),
        description='Sale to registered business at 18% standard rate',
        registration='Registered',
    ),
    _scenario(
        'SN003', 'Steel Melting and Re-rolling', 'Steel melting and re-rolling', '3710505701479',
        _item('Steel melting and re-rolling', hsCode='7214.1010', productDescription='',
              uoM='MT', valueSalesExcludingST=205000.0, salesTaxApplicable=36900),
    ),
    _scenario(
        'SN004', 'Ship Breaking', 'Ship breaking', '3710505701479',
        _item('Ship breaking', hsCode='7204.4910', productDescription='', uoM='MT',
              valueSalesExcludingST=175000, salesTaxApplicable=31500),
    ),
    _scenario(
        'SN008', 'Sale of 3rd Schedule Goods', THIRD_SCHEDULE, '3710505701479',
        _item(THIRD_SCHEDULE, productDescription='test', quantity=100, totalValues=145,
              fixedNotifiedValueOrRetailPrice=1000, salesTaxApplicable=180),
        description='Goods listed in 3rd Schedule with special tax treatment',
        invoiceDate='2025-04-21',
        invoiceRefNo='0',
        sellerAddress='Karachi',
    ),
    _scenario(
        'SN005', 'Reduced Rate Sale', REDUCED, '1000000000000',
        _item(REDUCED, hsCode='0102.2930', productDescription='product Description41',
              rate='1%', valueSalesExcludingST=1000.00, salesTaxApplicable=10,
              salesTaxWithheldAtSource=50.23, extraTax='', furtherTax=120.00,
              sroScheduleNo='EIGHTH SCHEDULE Table 1', fedPayable=50.36, discount=56.36,
              sroItemSerialNo='82'),
        description='Sale of goods at reduced tax rate (lower than standard 18%)',
    ),
    _scenario(
        'SN006', 'Exempt Goods Sale', 'Exempt goods', '2046004',
        _item('Exempt goods', hsCode='0102.2930', productDescription='product Description41',
              rate='Exempt', valueSalesExcludingST=10, salesTaxWithheldAtSource=50.23,
              extraTax='', furtherTax=120.00, sroScheduleNo='6th Schd Table I',
              fedPayable=50.36, discount=56.36, sroItemSerialNo='100'),
        description='Sale of goods that are exempt from Sales Tax',
        registration='Registered',
    ),
    _scenario(
        'SN007', 'Zero Rated Sale', 'Goods at zero-rate', '3710505701479',
        _item('Goods at zero-rate', productDescription='test', rate='0%', quantity=100,
              valueSalesExcludingST=100, sroScheduleNo='327(I)/2008', sroItemSerialNo='1'),
        description='Sale of goods taxed at zero rate (exports & certain goods)',
    ),
    _scenario(
        'SN016', 'Processing / Conversion of Goods', 'Processing/Conversion of Goods',
        '1000000000078',
        _item('Processing/Conversion of Goods', productDescription='test', rate='5%',
              valueSalesExcludingST=100, salesTaxApplicable=5),
        description='Processing or converting goods (toll manufacturing)',
    ),
    _scenario(
        'SN017', 'Sale of Goods where FED is Charged in ST Mode', 'Goods (FED in ST Mode)',
        '7000009',
        _item('Goods (FED in ST Mode)', rate='8%', valueSalesExcludingST=100,
              salesTaxApplicable=8),
        description='Goods where FED is charged in Sales Tax mode',
    ),
    _scenario(
        'SN018', 'Sale of Services where FED is Charged in ST Mode',
        'Services (FED in ST Mode)', '1000000000056',
        _item('Services (FED in ST Mode)', rate='8%', quantity=20,
              valueSalesExcludingST=1000, salesTaxApplicable=80),
    ),
    _scenario(
        'SN019', 'Sale of Services', 'Services', '1000000000000',
        _item('Services', hsCode='0101.2900', rate='5%', valueSalesExcludingST=100,
              salesTaxApplicable=5, sroScheduleNo='ICTO TABLE I',
              sroItemSerialNo='1(ii)(ii)(a)'),
    ),
    _scenario(
        'SN026', 'Goods at Standard Rate to Registered Buyers', STANDARD, '1000000000078',
        _item(STANDARD, quantity=123, valueSalesExcludingST=1000, salesTaxApplicable=180),
        description='Retail sale to end consumer at standard 18% rate',
        invoiceDate='2025-05-16',
        invoiceRefNo='SI-20250421-001',
    ),
    _scenario(
        'SN027', '3rd Schedule Goods to Registered Buyers', THIRD_SCHEDULE, '7000006',
        _item(THIRD_SCHEDULE, productDescription='test', fixedNotifiedValueOrRetailPrice=100,
              salesTaxApplicable=18),
        description='Retail sale of 3rd Schedule goods to consumer',
        invoiceDate='2025-05-10',
        invoiceRefNo='',
    ),
    _scenario(
        'SN009', 'Cotton Ginners', 'Cotton ginners', '2046004',
        _item('Cotton ginners', productDescription='test', quantity=0, totalValues=2500,
              valueSalesExcludingST=2500, salesTaxApplicable=450),
        registration='Registered',
        invoiceDate='2025-05-15',
        invoiceRefNo='',
    ),
    _scenario(
        'SN010', 'Telecommunication Services', 'Telecommunication services', '1000000000000',
        _item('Telecommunication services', productDescription='test', rate='17%',
              quantity=1000, valueSalesExcludingST=100, salesTaxApplicable=17),
        invoiceDate='2025-05-15',
        invoiceRefNo='SI-20250515-001',
    ),
    _scenario(
        'SN011', 'Toll Manufacturing', 'Toll Manufacturing', '3710505701479',
        _item('Toll Manufacturing', hsCode='7214.9990', productDescription='', uoM='MT',
              totalValues=205000, valueSalesExcludingST=205000, salesTaxApplicable=36900),
        invoiceDate='2025-05-26',
        invoiceRefNo='',
    ),
    _scenario(
        'SN012', 'Petroleum Products', 'Petroleum Products', '1000000000000',
        _item('Petroleum Products', rate='1.43%', quantity=123, totalValues=132,
              valueSalesExcludingST=100, salesTaxApplicable=1.43, salesTaxWithheldAtSource=2,
              sroScheduleNo='1450(I)/2021', sroItemSerialNo='4'),
        invoiceDate='2025-05-15',
        invoiceRefNo='SI-20250515-001',
    ),
    _scenario(
        'SN013', 'Electricity Supply to Retailers', 'Electricity Supply to Retailers',
        '1000000000000',
        _item('Electricity Supply to Retailers', rate='5%', quantity=123, totalValues=212,
              valueSalesExcludingST=1000, salesTaxApplicable=50, salesTaxWithheldAtSource=11,
              sroScheduleNo='1450(I)/2021', sroItemSerialNo='4'),
        invoiceDate='2025-05-15',
        invoiceRefNo='SI-20250515-001',
    ),
    _scenario(
        'SN014', 'Gas to CNG Stations', 'Gas to CNG stations', '1000000000000',
        _item('Gas to CNG stations', quantity=123, valueSalesExcludingST=1000,
              salesTaxApplicable=180),
        invoiceDate='2025-05-15',
        invoiceRefNo='SI-20250515-001',
    ),
    _scenario(
        'SN015', 'Mobile Phones (Ninth Schedule)', 'Mobile Phones', '1000000000000',
        _item('Mobile Phones', quantity=123, valueSalesExcludingST=1234,
              salesTaxApplicable=222.12, sroScheduleNo='NINTH SCHEDULE', sroItemSerialNo='1(A)'),
        invoiceDate='2025-05-15',
        invoiceRefNo='SI-20250515-001',
        additional1='',
        additional2='',
        additional3='',
    ),
    _scenario(
        'SN020', 'Electric Vehicle (1%)', 'Electric Vehicle', '1000000000000',
        _item('Electric Vehicle', hsCode='0101.2900', rate='1%', quantity=122,
              valueSalesExcludingST=1000, salesTaxApplicable=10,
              sroScheduleNo='6th Schd Table III', sroItemSerialNo='20'),
        invoiceDate='2025-04-21',
        invoiceRefNo='SI-20250421-001',
    ),
    _scenario(
        'SN028', 'Goods at Reduced Rate', REDUCED, '1000000000000',
        _item(REDUCED, rate='1%', valueSalesExcludingST=99.01,
              fixedNotifiedValueOrRetailPrice=100, salesTaxApplicable=0.99, extraTax='',
              sroScheduleNo='EIGHTH SCHEDULE Table 1', totalValues=100, sroItemSerialNo='70'),
        description='Retail sale to consumer at reduced tax rate',
        invoiceDate='2025-05-16',
        invoiceRefNo='',
    ),
    _scenario(
        'SN021', 'Cement / Concrete Block', 'Cement /Concrete Block', '1000000000000',
        _item('Cement /Concrete Block', rate='Rs.3 per unit', quantity=12,
              valueSalesExcludingST=123, fixedNotifiedValueOrRetailPrice=3,
              salesTaxApplicable=36),
        invoiceDate='2025-04-21',
        invoiceRefNo='SI-20250421-001',
    ),
    _scenario(
        'SN022', 'Potassium Chlorate', 'Potassium Chlorate', '1000000000000',
        _item('Potassium Chlorate', hsCode='3104.2000', rate='18% + Rs.60/kg', uoM='KG',
              valueSalesExcludingST=100, fixedNotifiedValueOrRetailPrice=60,
              salesTaxApplicable=78, sroScheduleNo='EIGHTH SCHEDULE Table 1',
              sroItemSerialNo='56'),
        invoiceDate='2025-04-21',
        invoiceRefNo='SI-20250421-001',
    ),
    _scenario(
        'SN023', 'CNG Sales', 'CNG Sales', '1000000000000',
        _item('CNG Sales', rate='Rs.200/unit', quantity=123, valueSalesExcludingST=234,
              fixedNotifiedValueOrRetailPrice=200, salesTaxApplicable=24600,
              sroScheduleNo='581(1)/2024', sroItemSerialNo='Region-I'),
        invoiceDate='2025-04-21',
        invoiceRefNo='SI-20250421-001',
    ),
    _scenario(
        'SN025', 'Non-Adjustable Supplies', 'Non-Adjustable Supplies', '1000000000078',
        _item('Non-Adjustable Supplies', rate='0%', valueSalesExcludingST=100,
              sroScheduleNo='EIGHTH SCHEDULE Table 1', sroItemSerialNo='81'),
        invoiceDate='2025-05-16',
        invoiceRefNo='',
    ),
    _scenario(
        'SN024', 'Goods Sold that are Listed in SRO 297(1)/2023', 'Goods as per SRO.297(|)/2023',
        '1000000000000',
        _item('Goods as per SRO.297(|)/2023', rate='25%', quantity=123,
              valueSalesExcludingST=1000, salesTaxApplicable=250,
              sroScheduleNo='297(I)/2023-Table-I', sroItemSerialNo='12'),
        description='Goods with unique tax rules under SRO 297(I)/2023',
    ),
)

_BY_ID = {scenario.id: scenario for scenario in SCENARIOS}


def get_scenario(scenario_id):
    """Look up a catalog entry, None when the id is unknown"""
    return _BY_ID.get(scenario_id)


def list_scenarios(sort_by_id=False):
    if sort_by_id:
        return sorted(SCENARIOS, key=lambda scenario: scenario.id)
    return list(SCENARIOS)


def sale_type_for(scenario_id):
    scenario = get_scenario(scenario_id)
    return scenario.sale_type if scenario else None
