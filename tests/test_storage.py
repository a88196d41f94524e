import pytest

from fbr_di import lifecycle
from fbr_di.errors import InvalidTransition, InvoiceLocked, NotFoundError
from fbr_di.tax import apply_totals


@pytest.fixture
def saved(store, company, invoice):
    store.save_company(company)
    invoice.id = None
    apply_totals(invoice)
    return store.create_invoice(invoice)


def test_company_round_trip(store, company):
    store.save_company(company)
    assert store.get_company('acme') == company


def test_unknown_company(store):
    with pytest.raises(NotFoundError):
        store.get_company('nobody')


def test_invoice_round_trip(store, saved):
    loaded = store.get_invoice(saved.id, 'acme')
    assert loaded.invoice_number == 'INV-0001'
    assert loaded.buyer_ntn_cnic == '42101-1234567-1'
    assert loaded.total == 472000
    assert [item.description for item in loaded.items] == ['Widget']
    assert loaded.status == 'draft'
    assert loaded.payment_status == 'pending'


def test_invoice_is_scoped_to_company(store, saved):
    with pytest.raises(NotFoundError):
        store.get_invoice(saved.id, 'other')


def test_duplicate_number_check(store, saved):
    assert store.invoice_number_exists('acme', 'INV-0001')
    assert not store.invoice_number_exists('acme', 'INV-0001', exclude_id=saved.id)
    assert not store.invoice_number_exists('other', 'INV-0001')


def test_item_order_is_kept(store, saved):
    lifecycle.edit_invoice(saved, items=[
        {'description': 'B', 'unit_price': 1, 'quantity': 1},
        {'description': 'A', 'unit_price': 2, 'quantity': 1},
        {'description': 'C', 'unit_price': 3, 'quantity': 1},
    ])
    store.update_invoice(saved)
    assert [item.description for item in store.get_invoice(saved.id).items] == ['B', 'A', 'C']


def test_update_refused_once_posted(store, saved):
    assert store.mark_posted(saved.id, 'FBR-1', {'invoiceNumber': 'FBR-1'}, '2025-05-26T10:00:00')
    with pytest.raises(InvoiceLocked):
        store.update_invoice(saved)


def test_reference_is_set_once(store, saved):
    assert store.set_reference_no(saved.id, 'INV-1-001') == 'INV-1-001'
    assert store.set_reference_no(saved.id, 'INV-2-002') == 'INV-1-001'
    assert store.get_invoice(saved.id).reference_no == 'INV-1-001'


def test_mark_posted_is_compare_and_swap(store, saved):
    assert store.mark_posted(saved.id, 'FBR-1', {'invoiceNumber': 'FBR-1'}, '2025-05-26T10:00:00')
    assert not store.mark_posted(saved.id, 'FBR-2', {'invoiceNumber': 'FBR-2'}, '2025-05-26T10:00:01')

    loaded = store.get_invoice(saved.id)
    assert loaded.status == 'fbr_posted'
    assert loaded.fbr_invoice_number == 'FBR-1'
    assert loaded.fbr_response == {'invoiceNumber': 'FBR-1'}
    assert loaded.fbr_posted_at == '2025-05-26T10:00:00'
    assert len(store.history(saved.id)) == 1


def test_stale_status_change_is_refused(store, saved):
    stale = store.get_invoice(saved.id)
    fresh = store.get_invoice(saved.id)

    store.apply_change(fresh, lifecycle.change_payment_status(fresh, 'overdue'))
    change = lifecycle.change_payment_status(stale, 'cancelled')
    with pytest.raises(InvalidTransition):
        store.apply_change(stale, change)
    assert store.get_invoice(saved.id).payment_status == 'overdue'


def test_stale_payments_cannot_both_land(store, saved):
    store.apply_change(saved, lifecycle.record_payment(saved, 1000))
    first = store.get_invoice(saved.id)
    second = store.get_invoice(saved.id)

    store.apply_change(first, lifecycle.record_payment(first, 400000))
    change = lifecycle.record_payment(second, 400000)
    with pytest.raises(InvalidTransition):
        store.apply_change(second, change)

    stored = store.get_invoice(saved.id)
    assert stored.amount_paid == 401000
    assert stored.payment_status == 'partial'
    assert len(store.history(saved.id)) == 2


def test_edit_after_a_payment_landed_is_refused(store, saved):
    stale = store.get_invoice(saved.id)
    store.apply_change(saved, lifecycle.record_payment(saved, 1000))

    lifecycle.edit_invoice(stale, items=[{'description': 'Cheap', 'unit_price': 1, 'quantity': 1}])
    with pytest.raises(InvoiceLocked):
        store.update_invoice(stale)
    assert store.get_invoice(saved.id).total == 472000


def test_edit_writes_derived_payment_change(store, saved):
    store.apply_change(saved, lifecycle.record_payment(saved, saved.total))
    invoice = store.get_invoice(saved.id)

    change = lifecycle.edit_invoice(invoice, further_tax_rate=3)
    store.update_invoice(invoice, change)

    stored = store.get_invoice(saved.id)
    assert (stored.total, stored.payment_status) == (484000, 'partial')
    assert [entry.new for entry in store.history(saved.id)] == ['paid', 'partial']


def test_history_is_ordered(store, saved):
    store.apply_change(saved, lifecycle.record_payment(saved, 1000))
    store.apply_change(saved, lifecycle.change_payment_status(saved, 'pending', note='Bounced cheque'))

    history = store.history(saved.id)
    assert [(change.axis, change.old, change.new) for change in history] == [
        ('payment_status', 'pending', 'partial'),
        ('payment_status', 'partial', 'pending'),
    ]
    assert history[1].note == 'Bounced cheque'
    assert store.get_invoice(saved.id).amount_paid == 0
