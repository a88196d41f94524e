"""
FBR reference lists: provinces, document types, transaction types and UOMs.

The gateway serves these under /pdi/v1; the copies below are used whenever
it cannot be reached or answers with something other than a list.
"""

PROVINCES = (
    {'stateProvinceCode': 2, 'stateProvinceDesc': 'BALOCHISTAN'},
    {'stateProvinceCode': 4, 'stateProvinceDesc': 'AZAD JAMMU AND KASHMIR'},
    {'stateProvinceCode': 5, 'stateProvinceDesc': 'CAPITAL TERRITORY'},
    {'stateProvinceCode': 6, 'stateProvinceDesc': 'KHYBER PAKHTUNKHWA'},
    {'stateProvinceCode': 7, 'stateProvinceDesc': 'PUNJAB'},
    {'stateProvinceCode': 8, 'stateProvinceDesc': 'SINDH'},
    {'stateProvinceCode': 9, 'stateProvinceDesc': 'GILGIT BALTISTAN'},
)

DOC_TYPES = (
    {'docTypeId': 9, 'docDescription': 'Debit Note'},
    {'docTypeId': 4, 'docDescription': 'Sale Invoice'},
)


def _trans(type_id, desc):
    return {'transactioN_TYPE_ID': type_id, 'transactioN_DESC': desc}


# Key spelling is the gateway's own
TRANS_TYPES = (
    _trans(75, 'Goods at standard rate (default)'),
    _trans(24, 'Goods at Reduced Rate'),
    _trans(80, 'Goods at zero-rate'),
    _trans(85, 'Petroleum Products'),
    _trans(62, 'Electricity Supply to Retailers'),
    _trans(129, 'SIM'),
    _trans(77, 'Gas to CNG stations'),
    _trans(122, 'Mobile Phones'),
    _trans(25, 'Processing/Conversion of Goods'),
    _trans(23, '3rd Schedule Goods'),
    _trans(21, 'Goods (FED in ST Mode)'),
    _trans(22, 'Services (FED in ST Mode)'),
    _trans(18, 'Services'),
    _trans(81, 'Exempt goods'),
    _trans(82, 'DTRE goods'),
    _trans(130, 'Cotton ginners'),
    _trans(132, 'Electric Vehicle'),
    _trans(134, 'Cement /Concrete Block'),
    _trans(84, 'Telecommunication services'),
    _trans(123, 'Steel melting and re-rolling'),
    _trans(125, 'Ship breaking'),
    _trans(115, 'Potassium Chlorate'),
    _trans(178, 'CNG Sales'),
    _trans(181, 'Toll Manufacturing'),
    _trans(138, 'Non-Adjustable Supplies'),
    _trans(139, 'Goods as per SRO.297(|)/2023'),
)

UOMS = tuple(
    {'uoM_ID': uom_id, 'description': description}
    for uom_id, description in (
        (3, 'MT'), (4, 'Bill of lading'), (5, 'SET'), (6, 'KWH'), (8, '40KG'),
        (9, 'Liter'), (11, 'SqY'), (12, 'Bag'), (13, 'KG'), (46, 'MMBTU'),
        (48, 'Meter'), (50, 'Pcs'), (53, 'Carat'), (55, 'Cubic Metre'), (57, 'Dozen'),
        (59, 'Gram'), (61, 'Gallon'), (63, 'Kilogram'), (65, 'Pound'), (67, 'Timber Logs'),
        (69, 'Numbers, pieces, units'), (71, 'Packs'), (73, 'Pair'), (75, 'Square Foot'),
        (77, 'Square Metre'), (79, 'Thousand Unit'), (81, 'Mega Watt'), (83, 'Foot'),
        (85, 'Barrels'), (87, 'NO'), (118, 'Meter'), (120, 'MT'), (110, 'KWH'),
        (112, 'Packs'), (114, 'Meter'), (116, 'Liter'), (117, 'Bag'), (98, 'MMBTU'),
        (99, 'Numbers, pieces, units'), (100, 'Square Foot'), (101, 'Thousand Unit'),
        (102, 'Barrels'), (88, 'Others'), (96, '1000 kWh'),
    )
)

# name accepted by the API -> (gateway path segment, built-in list)
REFERENCE_TYPES = {
    'provinces': ('provinces', PROVINCES),
    'doctypes': ('doctypecode', DOC_TYPES),
    'transtypes': ('transtypecode', TRANS_TYPES),
    'uoms': ('uom', UOMS),
}


def fallback(name):
    """Built-in copy of a reference list, as fresh dicts"""
    return [dict(entry) for entry in REFERENCE_TYPES[name][1]]
