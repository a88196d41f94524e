from fbr_di.models import Invoice, InvoiceItem
from fbr_di.tax import apply_totals, calculate_totals, item_tax


def test_standard_rate_invoice():
    totals = calculate_totals([InvoiceItem(unit_price=1000, quantity=400)], 18)
    assert totals.subtotal == 400000
    assert totals.sales_tax == 72000
    assert totals.further_tax == 0
    assert totals.total == 472000


def test_total_is_sum_of_parts():
    items = [
        InvoiceItem(unit_price=99.99, quantity=3),
        InvoiceItem(unit_price=0.1, quantity=7),
        InvoiceItem(unit_price=1250.5, quantity=1.5),
    ]
    totals = calculate_totals(items, 17, 3)

    subtotal = 0.0
    for item in items:
        subtotal += item.unit_price * item.quantity
    assert totals.subtotal == subtotal
    assert totals.sales_tax == subtotal * 17 / 100
    assert totals.further_tax == subtotal * 3 / 100
    assert totals.total == totals.subtotal + totals.sales_tax + totals.further_tax


def test_recalculation_is_idempotent():
    items = [InvoiceItem(unit_price=33.33, quantity=3), InvoiceItem(unit_price=0.7, quantity=11)]
    assert calculate_totals(items, 18, 4) == calculate_totals(items, 18, 4)


def test_missing_rates_count_as_zero():
    totals = calculate_totals([InvoiceItem(unit_price=10, quantity=2)], None, None)
    assert totals.total == 20


def test_empty_items():
    totals = calculate_totals([], 18)
    assert totals.subtotal == 0
    assert totals.total == 0


def test_apply_totals_writes_derived_fields():
    invoice = Invoice(items=[InvoiceItem(unit_price=1000, quantity=400)], sales_tax_rate=18,
                      further_tax_rate=3)
    apply_totals(invoice)
    first = (invoice.subtotal, invoice.sales_tax_amount, invoice.further_tax_amount, invoice.total)
    apply_totals(invoice)
    assert (invoice.subtotal, invoice.sales_tax_amount, invoice.further_tax_amount, invoice.total) == first
    assert invoice.further_tax_amount == 12000
    assert invoice.total == 484000


def test_item_tax_rounds_to_cents():
    assert item_tax(99.99, 18) == 18.0
    assert item_tax(1000, 0) == 0
