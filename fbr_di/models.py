"""Records consumed and updated by the invoicing pipeline."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

DEFAULT_PROVINCE = 'Sindh'
DEFAULT_HS_CODE = '0000.0000'
DEFAULT_UOM = 'Numbers, pieces, units'
DEFAULT_SALE_TYPE = 'Goods at standard rate (default)'


class InvoiceType(str, Enum):
    SALE = 'Sale Invoice'
    DEBIT = 'Debit Note'
    CREDIT = 'Credit Note'


class RegistrationType(str, Enum):
    REGISTERED = 'Registered'
    UNREGISTERED = 'Unregistered'


class DocumentStatus(str, Enum):
    DRAFT = 'draft'
    FBR_POSTED = 'fbr_posted'
    VERIFIED = 'verified'
    PAID = 'paid'
    DELETED = 'deleted'


class PaymentStatus(str, Enum):
    PENDING = 'pending'
    PARTIAL = 'partial'
    PAID = 'paid'
    OVERDUE = 'overdue'
    CANCELLED = 'cancelled'


@dataclass
class Company:
    """Seller profile, maintained through settings"""
    id: str = ''
    name: str = ''
    business_name: str = ''
    address: str = ''
    province: str = ''
    ntn: str = ''
    fbr_token: str = ''

    @property
    def display_name(self):
        return self.business_name or self.name


@dataclass
class Settings:
    """Tenant defaults for new invoices and gateway access"""
    sales_tax_rate: float = 18.0
    further_tax_rate: float = 0.0
    scenario_id: str = 'SN002'
    fbr_token: str = ''
    hs_code: str = DEFAULT_HS_CODE
    uom: str = DEFAULT_UOM
    environment: str = 'sandbox'

    def token_for(self, company):
        # A company's own token wins; the tenant token covers companies without one
        return (company.fbr_token if company else '') or self.fbr_token


@dataclass
class InvoiceItem:
    description: str = ''
    hs_code: str = ''
    uom: str = ''
    unit_price: float = 0.0
    quantity: float = 0.0

    @property
    def line_total(self):
        return self.unit_price * self.quantity

    def to_dict(self):
        return {
            'description': self.description,
            'hs_code': self.hs_code,
            'uom': self.uom,
            'unit_price': self.unit_price,
            'quantity': self.quantity,
            'line_total': self.line_total,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            description=data.get('description') or data.get('item_name') or '',
            hs_code=data.get('hs_code') or '',
            uom=data.get('uom') or '',
            unit_price=safe_float(data.get('unit_price')),
            quantity=safe_float(data.get('quantity')),
        )


@dataclass
class Invoice:
    id: Optional[int] = None
    company_id: str = ''
    invoice_number: str = ''
    invoice_date: str = ''
    invoice_type: str = InvoiceType.SALE.value
    scenario_id: str = ''

    # Buyer snapshot, copied from the customer at creation time
    buyer_name: str = ''
    buyer_business_name: str = ''
    buyer_ntn_cnic: str = ''
    buyer_address: str = ''
    buyer_province: str = ''
    buyer_registration_type: str = RegistrationType.UNREGISTERED.value

    # One classification per invoice, applied to every line in the payload
    hs_code: str = ''
    uom: str = ''
    sale_type: str = ''

    items: List[InvoiceItem] = field(default_factory=list)

    # Derived by fbr_di.tax, never edited directly
    subtotal: float = 0.0
    sales_tax_rate: float = 0.0
    sales_tax_amount: float = 0.0
    further_tax_rate: float = 0.0
    further_tax_amount: float = 0.0
    total: float = 0.0

    status: str = DocumentStatus.DRAFT.value
    payment_status: str = PaymentStatus.PENDING.value
    amount_paid: float = 0.0

    reference_no: str = ''
    fbr_invoice_number: Optional[str] = None
    fbr_response: Optional[Dict[str, Any]] = None
    fbr_posted_at: Optional[str] = None

    @property
    def buyer_display_name(self):
        return self.buyer_business_name or self.buyer_name

    def to_dict(self):
        return {
            'id': self.id,
            'company_id': self.company_id,
            'invoice_number': self.invoice_number,
            'invoice_date': self.invoice_date,
            'invoice_type': self.invoice_type,
            'scenario_id': self.scenario_id,
            'buyer_name': self.buyer_name,
            'buyer_business_name': self.buyer_business_name,
            'buyer_ntn_cnic': self.buyer_ntn_cnic,
            'buyer_address': self.buyer_address,
            'buyer_province': self.buyer_province,
            'buyer_registration_type': self.buyer_registration_type,
            'hs_code': self.hs_code,
            'uom': self.uom,
            'sale_type': self.sale_type,
            'items': [item.to_dict() for item in self.items],
            'subtotal': self.subtotal,
            'sales_tax_rate': self.sales_tax_rate,
            'sales_tax_amount': self.sales_tax_amount,
            'further_tax_rate': self.further_tax_rate,
            'further_tax_amount': self.further_tax_amount,
            'total': self.total,
            'status': self.status,
            'payment_status': self.payment_status,
            'amount_paid': self.amount_paid,
            'reference_no': self.reference_no,
            'fbr_invoice_number': self.fbr_invoice_number,
            'fbr_response': self.fbr_response,
            'fbr_posted_at': self.fbr_posted_at,
        }


# Fields an operator may change while the invoice is still editable
EDITABLE_FIELDS = (
    'invoice_number',
    'invoice_date',
    'invoice_type',
    'scenario_id',
    'buyer_name',
    'buyer_business_name',
    'buyer_ntn_cnic',
    'buyer_address',
    'buyer_province',
    'buyer_registration_type',
    'hs_code',
    'uom',
    'sale_type',
)


def safe_float(value):
    """Convert to float safely, return 0 if invalid"""
    try:
        return float(value)
    except (ValueError, TypeError):
        return 0.0
