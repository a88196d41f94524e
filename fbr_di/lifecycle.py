"""
Invoice lifecycle.

An invoice moves along two independent axes. The document axis tracks the
invoice's standing with FBR::

    draft -> fbr_posted -> verified -> paid
    verified -> draft        (correct and resubmit)
    draft -> deleted

``fbr_posted`` is only ever entered through a successful gateway post
(``mark_posted``). The payment axis tracks collection::

    pending -> partial -> paid
    pending -> overdue
    any non-paid -> pending | cancelled
    paid <-> partial        (an edit changed the total)

Every change returns a StatusChange so it can be written to the audit trail.
"""

from dataclasses import dataclass
from typing import Optional
from datetime import datetime, timezone

from .errors import InvalidTransition, InvoiceLocked, ValidationError
from .models import EDITABLE_FIELDS, DocumentStatus, InvoiceItem, PaymentStatus
from .tax import apply_totals, calculate_totals

DOCUMENT = 'status'
PAYMENT = 'payment_status'

DOCUMENT_TRANSITIONS = {
    DocumentStatus.DRAFT: {DocumentStatus.FBR_POSTED, DocumentStatus.DELETED},
    DocumentStatus.FBR_POSTED: {DocumentStatus.VERIFIED},
    DocumentStatus.VERIFIED: {DocumentStatus.PAID, DocumentStatus.DRAFT},
    DocumentStatus.PAID: set(),
    DocumentStatus.DELETED: set(),
}

# Reached only through the gateway, never by an operator
GATEWAY_ONLY = {DocumentStatus.FBR_POSTED}

EDITABLE_STATUSES = {DocumentStatus.DRAFT, DocumentStatus.VERIFIED}

PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.PARTIAL, PaymentStatus.PAID, PaymentStatus.OVERDUE,
                            PaymentStatus.CANCELLED},
    PaymentStatus.PARTIAL: {PaymentStatus.PARTIAL, PaymentStatus.PAID, PaymentStatus.PENDING,
                            PaymentStatus.CANCELLED},
    PaymentStatus.OVERDUE: {PaymentStatus.PARTIAL, PaymentStatus.PAID, PaymentStatus.PENDING,
                            PaymentStatus.CANCELLED},
    PaymentStatus.CANCELLED: {PaymentStatus.PENDING},
    PaymentStatus.PAID: set(),
}

# Statuses an operator may set directly; partial/paid come from record_payment
MANUAL_PAYMENT_STATUSES = {PaymentStatus.PENDING, PaymentStatus.OVERDUE, PaymentStatus.CANCELLED}


@dataclass(frozen=True)
class StatusChange:
    axis: str
    old: str
    new: str
    changed_at: str
    note: str = ''
    # amount_paid the change was computed from; storage swaps on it
    previous_amount: Optional[float] = None

    def to_dict(self):
        return {
            'axis': self.axis,
            'old': self.old,
            'new': self.new,
            'changed_at': self.changed_at,
            'note': self.note,
        }


def now_iso():
    return datetime.now(timezone.utc).isoformat()


def _coerce(enum_cls, value, axis):
    try:
        return enum_cls(value)
    except ValueError:
        raise InvalidTransition(f'Unknown {axis} value: {value}', field=axis) from None


def is_editable(invoice):
    return _coerce(DocumentStatus, invoice.status, DOCUMENT) in EDITABLE_STATUSES


def ensure_editable(invoice):
    if not is_editable(invoice):
        raise InvoiceLocked(
            f'Only draft and verified invoices can be edited. Current status: {invoice.status}',
            field='status',
        )


def check_document_transition(invoice, new_status, via_gateway=False):
    """Raise InvalidTransition unless the document may move to new_status"""
    current = _coerce(DocumentStatus, invoice.status, DOCUMENT)
    target = _coerce(DocumentStatus, new_status, DOCUMENT)

    if target in GATEWAY_ONLY and not via_gateway:
        raise InvalidTransition(f'{target.value} can only be set by a successful FBR post',
                                field=DOCUMENT)
    if target not in DOCUMENT_TRANSITIONS[current]:
        raise InvalidTransition(f'Cannot change status from {current.value} to {target.value}',
                                field=DOCUMENT)
    return current, target


def change_status(invoice, new_status, note=''):
    """Operator-confirmed document status change"""
    current, target = check_document_transition(invoice, new_status)
    invoice.status = target.value
    return StatusChange(DOCUMENT, current.value, target.value, now_iso(), note)


def mark_posted(invoice, fbr_invoice_number, response, posted_at=None):
    """Apply a successful gateway post: status and FBR fields move together"""
    current, target = check_document_transition(invoice, DocumentStatus.FBR_POSTED, via_gateway=True)
    posted_at = posted_at or now_iso()
    invoice.status = target.value
    invoice.fbr_invoice_number = fbr_invoice_number
    invoice.fbr_response = response
    invoice.fbr_posted_at = posted_at
    return StatusChange(DOCUMENT, current.value, target.value, posted_at,
                        f'FBR invoice number {fbr_invoice_number}')


def check_payment_transition(invoice, new_status):
    current = _coerce(PaymentStatus, invoice.payment_status, PAYMENT)
    target = _coerce(PaymentStatus, new_status, PAYMENT)
    if target not in PAYMENT_TRANSITIONS[current]:
        raise InvalidTransition(
            f'Cannot change payment status from {current.value} to {target.value}',
            field=PAYMENT,
        )
    return current, target


def change_payment_status(invoice, new_status, note=''):
    target = _coerce(PaymentStatus, new_status, PAYMENT)
    if target not in MANUAL_PAYMENT_STATUSES:
        raise InvalidTransition(f'Record a payment to mark an invoice {target.value}', field=PAYMENT)

    current, target = check_payment_transition(invoice, target)
    previous = invoice.amount_paid
    invoice.payment_status = target.value
    if target == PaymentStatus.PENDING:
        invoice.amount_paid = 0.0
    return StatusChange(PAYMENT, current.value, target.value, now_iso(), note, previous)


def record_payment(invoice, amount, note=''):
    """Add a payment; the invoice becomes paid once the total is covered"""
    try:
        amount = float(amount)
    except (TypeError, ValueError):
        raise ValidationError(f'Invalid payment amount: {amount!r}', field='amount') from None
    if amount <= 0:
        raise ValidationError('Payment amount must be greater than zero', field='amount')

    paid = invoice.amount_paid + amount
    if round(paid, 2) > round(invoice.total, 2):
        raise ValidationError(
            f'Payment of {amount:.2f} would bring the amount paid to {paid:.2f}, '
            f'more than the invoice total of {invoice.total:.2f}',
            field='amount',
        )

    target = PaymentStatus.PAID if round(paid, 2) == round(invoice.total, 2) else PaymentStatus.PARTIAL
    current, target = check_payment_transition(invoice, target)
    previous = invoice.amount_paid
    invoice.amount_paid = paid
    invoice.payment_status = target.value
    return StatusChange(PAYMENT, current.value, target.value, now_iso(),
                        note or f'Payment of {amount:.2f}', previous)


def edit_invoice(invoice, items=None, sales_tax_rate=None, further_tax_rate=None, **fields):
    """Apply operator edits to a draft or verified invoice.

    Items are replaced as a whole set and totals are recomputed. An edit that
    would bring the total below what has already been paid is refused. When
    the new total moves a paid invoice back to partial (or a partial one to
    paid), the payment StatusChange is returned for the audit trail;
    otherwise None.
    """
    ensure_editable(invoice)

    unknown = set(fields) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

    if items is not None:
        items = [item if isinstance(item, InvoiceItem) else InvoiceItem.from_dict(item)
                 for item in items]
        if not items:
            raise ValidationError('At least one item is required. Items cannot be empty.',
                                  field='items')
        for index, item in enumerate(items, start=1):
            if not item.description or not item.unit_price or not item.quantity:
                raise ValidationError(
                    f'Item {index} is missing required fields (description, unit_price, or quantity)',
                    field='items',
                )

    sales_rate = invoice.sales_tax_rate if sales_tax_rate is None else float(sales_tax_rate)
    further_rate = invoice.further_tax_rate if further_tax_rate is None else float(further_tax_rate)
    totals = calculate_totals(invoice.items if items is None else items, sales_rate, further_rate)
    if round(invoice.amount_paid, 2) > round(totals.total, 2):
        raise ValidationError(
            f'New total of {totals.total:.2f} is less than the {invoice.amount_paid:.2f} already paid',
            field='items',
        )

    if items is not None:
        invoice.items = items
    for name, value in fields.items():
        setattr(invoice, name, value)
    invoice.sales_tax_rate = sales_rate
    invoice.further_tax_rate = further_rate
    apply_totals(invoice)
    return _settle_payment(invoice)


def _settle_payment(invoice):
    # Derived from amount_paid against the new total, not an operator transition
    current = _coerce(PaymentStatus, invoice.payment_status, PAYMENT)
    if current not in (PaymentStatus.PARTIAL, PaymentStatus.PAID):
        return None

    target = (PaymentStatus.PAID if round(invoice.amount_paid, 2) == round(invoice.total, 2)
              else PaymentStatus.PARTIAL)
    if target == current:
        return None
    invoice.payment_status = target.value
    return StatusChange(PAYMENT, current.value, target.value, now_iso(),
                        f'Invoice total changed to {invoice.total:.2f}', invoice.amount_paid)
