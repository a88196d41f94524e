"""sqlite3 persistence for the fields the invoicing pipeline reads and writes."""

import json
import logging
import sqlite3

from .errors import InvalidTransition, InvoiceLocked, NotFoundError
from .lifecycle import DOCUMENT, PAYMENT, StatusChange
from .models import Company, DocumentStatus, Invoice, InvoiceItem

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS companies (
    id TEXT PRIMARY KEY,
    name TEXT,
    business_name TEXT,
    address TEXT,
    province TEXT,
    ntn TEXT,
    fbr_token TEXT
);

CREATE TABLE IF NOT EXISTS invoices (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    company_id TEXT,
    invoice_number TEXT,
    invoice_date TEXT,
    invoice_type TEXT,
    scenario_id TEXT,
    buyer_name TEXT,
    buyer_business_name TEXT,
    buyer_ntn_cnic TEXT,
    buyer_address TEXT,
    buyer_province TEXT,
    buyer_registration_type TEXT,
    hs_code TEXT,
    uom TEXT,
    sale_type TEXT,
    subtotal REAL DEFAULT 0,
    sales_tax_rate REAL DEFAULT 0,
    sales_tax_amount REAL DEFAULT 0,
    further_tax_rate REAL DEFAULT 0,
    further_tax_amount REAL DEFAULT 0,
    total REAL DEFAULT 0,
    status TEXT DEFAULT 'draft',
    payment_status TEXT DEFAULT 'pending',
    amount_paid REAL DEFAULT 0,
    reference_no TEXT,
    fbr_invoice_number TEXT UNIQUE,
    fbr_response TEXT,
    fbr_posted_at TEXT,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS invoice_items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    invoice_id INTEGER REFERENCES invoices(id),
    position INTEGER,
    description TEXT,
    hs_code TEXT,
    uom TEXT,
    unit_price REAL,
    quantity REAL,
    line_total REAL
);

CREATE TABLE IF NOT EXISTS status_history (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    invoice_id INTEGER REFERENCES invoices(id),
    axis TEXT,
    old_status TEXT,
    new_status TEXT,
    changed_at TEXT,
    note TEXT
);
"""

# Columns written on create and on edit
INVOICE_COLUMNS = (
    'company_id', 'invoice_number', 'invoice_date', 'invoice_type', 'scenario_id',
    'buyer_name', 'buyer_business_name', 'buyer_ntn_cnic', 'buyer_address',
    'buyer_province', 'buyer_registration_type', 'hs_code', 'uom', 'sale_type',
    'subtotal', 'sales_tax_rate', 'sales_tax_amount', 'further_tax_rate',
    'further_tax_amount', 'total',
)

EDITABLE = tuple(status.value for status in (DocumentStatus.DRAFT, DocumentStatus.VERIFIED))


class InvoiceStore:

    def __init__(self, db_path):
        self.db_path = db_path
        self.init_db()

    def _connect(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self):
        conn = self._connect()
        try:
            conn.executescript(SCHEMA)
            conn.commit()
        finally:
            conn.close()

    # ----------------- COMPANIES -----------------
    def save_company(self, company):
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    "INSERT OR REPLACE INTO companies (id, name, business_name, address, province, ntn, fbr_token) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    (company.id, company.name, company.business_name, company.address,
                     company.province, company.ntn, company.fbr_token),
                )
        finally:
            conn.close()
        return company

    def get_company(self, company_id):
        conn = self._connect()
        try:
            row = conn.execute("SELECT * FROM companies WHERE id = ?", (company_id,)).fetchone()
        finally:
            conn.close()

        if not row:
            raise NotFoundError('Company not found')
        return Company(**{key: row[key] or '' for key in row.keys()})

    # ----------------- INVOICES -----------------
    def create_invoice(self, invoice):
        values = [getattr(invoice, column) for column in INVOICE_COLUMNS]
        placeholders = ', '.join('?' for _ in INVOICE_COLUMNS)
        conn = self._connect()
        try:
            with conn:
                cursor = conn.execute(
                    f"INSERT INTO invoices ({', '.join(INVOICE_COLUMNS)}, status, payment_status, reference_no) "
                    f"VALUES ({placeholders}, ?, ?, ?)",
                    values + [invoice.status, invoice.payment_status, invoice.reference_no],
                )
                invoice.id = cursor.lastrowid
                self._write_items(conn, invoice)
        finally:
            conn.close()
        logger.info('Created invoice %s (id=%s)', invoice.invoice_number, invoice.id)
        return invoice

    def get_invoice(self, invoice_id, company_id=None):
        conn = self._connect()
        try:
            query = "SELECT * FROM invoices WHERE id = ?"
            params = [invoice_id]
            if company_id:
                query += " AND company_id = ?"
                params.append(company_id)
            row = conn.execute(query, params).fetchone()
            if not row:
                raise NotFoundError('Invoice not found')
            items = conn.execute(
                "SELECT * FROM invoice_items WHERE invoice_id = ? ORDER BY position",
                (invoice_id,),
            ).fetchall()
        finally:
            conn.close()
        return _invoice_from_row(row, items)

    def invoice_number_exists(self, company_id, invoice_number, exclude_id=None):
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT id FROM invoices WHERE company_id = ? AND invoice_number = ? "
                "AND id != ? AND status != ?",
                (company_id, invoice_number, exclude_id or -1, DocumentStatus.DELETED.value),
            ).fetchone()
        finally:
            conn.close()
        return row is not None

    def update_invoice(self, invoice, payment_change=None):
        """Persist edited fields and replace the item set.

        Refused unless the stored invoice is still draft or verified and no
        payment landed since it was loaded. A payment_change derived from
        the edit is written in the same transaction.
        """
        assignments = ', '.join(f'{column} = ?' for column in INVOICE_COLUMNS)
        values = [getattr(invoice, column) for column in INVOICE_COLUMNS]
        conn = self._connect()
        try:
            with conn:
                cursor = conn.execute(
                    f"UPDATE invoices SET {assignments} WHERE id = ? AND status IN (?, ?) AND amount_paid = ?",
                    values + [invoice.id, *EDITABLE, invoice.amount_paid],
                )
                if cursor.rowcount == 0:
                    raise InvoiceLocked('Invoice is no longer editable or was paid since it was loaded',
                                        field='status')
                conn.execute("DELETE FROM invoice_items WHERE invoice_id = ?", (invoice.id,))
                self._write_items(conn, invoice)
                if payment_change:
                    self._swap(conn, invoice, payment_change)
        finally:
            conn.close()
        return invoice

    def set_reference_no(self, invoice_id, reference_no):
        """Store the idempotency reference unless one already exists; return the stored one"""
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    "UPDATE invoices SET reference_no = ? "
                    "WHERE id = ? AND (reference_no IS NULL OR reference_no = '')",
                    (reference_no, invoice_id),
                )
            row = conn.execute("SELECT reference_no FROM invoices WHERE id = ?", (invoice_id,)).fetchone()
        finally:
            conn.close()
        return row['reference_no'] if row else None

    def apply_change(self, invoice, change):
        """Write a status change, conditioned on the stored row still matching what it was computed from"""
        conn = self._connect()
        try:
            with conn:
                self._swap(conn, invoice, change)
        finally:
            conn.close()
        return change

    def mark_posted(self, invoice_id, fbr_invoice_number, response, posted_at):
        """Compare-and-swap draft -> fbr_posted together with the FBR fields.

        Returns False, leaving the row untouched, when the invoice is no
        longer a draft.
        """
        conn = self._connect()
        try:
            with conn:
                cursor = conn.execute(
                    "UPDATE invoices SET status = ?, fbr_invoice_number = ?, fbr_response = ?, "
                    "fbr_posted_at = ? WHERE id = ? AND status = ?",
                    (DocumentStatus.FBR_POSTED.value, fbr_invoice_number, json.dumps(response),
                     posted_at, invoice_id, DocumentStatus.DRAFT.value),
                )
                if cursor.rowcount == 0:
                    return False
                self._write_history(conn, invoice_id, StatusChange(
                    DOCUMENT, DocumentStatus.DRAFT.value, DocumentStatus.FBR_POSTED.value,
                    posted_at, f'FBR invoice number {fbr_invoice_number}',
                ))
        finally:
            conn.close()
        return True

    def history(self, invoice_id):
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT axis, old_status, new_status, changed_at, note FROM status_history "
                "WHERE invoice_id = ? ORDER BY id",
                (invoice_id,),
            ).fetchall()
        finally:
            conn.close()
        return [
            StatusChange(row['axis'], row['old_status'], row['new_status'], row['changed_at'],
                         row['note'] or '')
            for row in rows
        ]

    # ---------------- HELPER FUNCTIONS -----------------
    def _swap(self, conn, invoice, change):
        if change.axis == DOCUMENT:
            sql = "UPDATE invoices SET status = ? WHERE id = ? AND status = ?"
            params = [change.new, invoice.id, change.old]
        elif change.axis == PAYMENT:
            sql = ("UPDATE invoices SET payment_status = ?, amount_paid = ? "
                   "WHERE id = ? AND payment_status = ?")
            params = [change.new, invoice.amount_paid, invoice.id, change.old]
            if change.previous_amount is not None:
                sql += " AND amount_paid = ?"
                params.append(change.previous_amount)
        else:
            raise ValueError(f'Unknown status axis: {change.axis}')

        cursor = conn.execute(sql, params)
        if cursor.rowcount == 0:
            raise InvalidTransition(
                f'Invoice {change.axis} changed since it was loaded', field=change.axis)
        self._write_history(conn, invoice.id, change)

    def _write_items(self, conn, invoice):
        conn.executemany(
            "INSERT INTO invoice_items (invoice_id, position, description, hs_code, uom, "
            "unit_price, quantity, line_total) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            [
                (invoice.id, position, item.description, item.hs_code, item.uom,
                 item.unit_price, item.quantity, item.line_total)
                for position, item in enumerate(invoice.items)
            ],
        )

    def _write_history(self, conn, invoice_id, change):
        conn.execute(
            "INSERT INTO status_history (invoice_id, axis, old_status, new_status, changed_at, note) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (invoice_id, change.axis, change.old, change.new, change.changed_at, change.note),
        )


def _invoice_from_row(row, item_rows):
    invoice = Invoice(id=row['id'])
    for column in INVOICE_COLUMNS:
        value = row[column]
        if value is not None:
            setattr(invoice, column, value)
    invoice.status = row['status']
    invoice.payment_status = row['payment_status']
    invoice.amount_paid = row['amount_paid'] or 0.0
    invoice.reference_no = row['reference_no'] or ''
    invoice.fbr_invoice_number = row['fbr_invoice_number']
    invoice.fbr_response = json.loads(row['fbr_response']) if row['fbr_response'] else None
    invoice.fbr_posted_at = row['fbr_posted_at']
    invoice.items = [
        InvoiceItem(
            description=item['description'] or '',
            hs_code=item['hs_code'] or '',
            uom=item['uom'] or '',
            unit_price=item['unit_price'] or 0.0,
            quantity=item['quantity'] or 0.0,
        )
        for item in item_rows
    ]
    return invoice
