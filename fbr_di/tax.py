"""Invoice totals: subtotal, sales tax, further tax and grand total."""

from dataclasses import dataclass


@dataclass(frozen=True)
class TaxTotals:
    subtotal: float
    sales_tax: float
    further_tax: float
    total: float


def _rate(value):
    return float(value) if value else 0.0


def calculate_totals(items, sales_tax_rate, further_tax_rate=0):
    """Compute invoice totals from line items and percentage rates.

    No intermediate rounding: the same inputs always give the same floats.
    """
    subtotal = 0.0
    for item in items:
        subtotal += item.unit_price * item.quantity

    sales_tax = subtotal * _rate(sales_tax_rate) / 100
    further_tax = subtotal * _rate(further_tax_rate) / 100
    total = subtotal + sales_tax + further_tax

    return TaxTotals(
        subtotal=subtotal,
        sales_tax=sales_tax,
        further_tax=further_tax,
        total=total,
    )


def apply_totals(invoice):
    """Recompute and store the derived money fields of an invoice"""
    totals = calculate_totals(invoice.items, invoice.sales_tax_rate, invoice.further_tax_rate)
    invoice.subtotal = totals.subtotal
    invoice.sales_tax_amount = totals.sales_tax
    invoice.further_tax_amount = totals.further_tax
    invoice.total = totals.total
    return totals


def item_tax(line_total, rate):
    """Per-line tax amount as reported to the gateway (2 decimal places)"""
    return round(line_total * _rate(rate) / 100, 2)
