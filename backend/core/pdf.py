"""
PDF rendering for invoices, customer statements and tabular report exports.
Drawn directly on a ReportLab canvas; invoice barcodes are Code128 images
produced with python-barcode and Pillow.
"""
import io
import logging
from decimal import Decimal

import barcode
from barcode.writer import ImageWriter
from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from .utils import get_setting

logger = logging.getLogger(__name__)

NAVY = HexColor('#1B2A4A')
SLATE = HexColor('#64748B')
SLATE_PALE = HexColor('#F1F5F9')
WHITE = HexColor('#FFFFFF')

MARGIN = 40


def format_money(value):
    if value is None:
        value = Decimal('0')
    return f"{Decimal(value):,.2f}"


def barcode_image(value):
    """Code128 barcode of ``value`` as a PIL image (no human-readable text)"""
    code128 = barcode.get_barcode_class('code128')
    instance = code128(str(value), writer=ImageWriter())
    return instance.render({
        'write_text': False,
        'module_height': 8.0,
        'quiet_zone': 2.0,
    })


class PDFDocument:
    """Canvas with a moving cursor and automatic page breaks"""

    def __init__(self, title, pagesize=A4):
        self.buffer = io.BytesIO()
        self.width, self.height = pagesize
        self.c = canvas.Canvas(self.buffer, pagesize=pagesize)
        self.c.setTitle(title)
        self.title = title
        self.page_num = 1
        self.y = self.height - MARGIN

    @property
    def content_width(self):
        return self.width - 2 * MARGIN

    def ensure_space(self, needed):
        if self.y - needed < MARGIN + 20:
            self.new_page()

    def new_page(self):
        self.footer()
        self.c.showPage()
        self.page_num += 1
        self.y = self.height - MARGIN

    def footer(self):
        self.c.setFont('Helvetica', 8)
        self.c.setFillColor(SLATE)
        self.c.drawRightString(self.width - MARGIN, MARGIN / 2, f"Page {self.page_num}")
        self.c.setFillColor(NAVY)

    def company_header(self):
        name = get_setting('company_name', 'Paper Products Ltd')
        address = get_setting('company_address', '')
        phone = get_setting('company_phone', '')
        self.c.setFillColor(NAVY)
        self.c.setFont('Helvetica-Bold', 16)
        self.c.drawString(MARGIN, self.y, name)
        self.y -= 14
        self.c.setFont('Helvetica', 9)
        self.c.setFillColor(SLATE)
        for line in [address, phone]:
            if line:
                self.c.drawString(MARGIN, self.y, line)
                self.y -= 11
        self.c.setFillColor(NAVY)
        self.y -= 6

    def heading(self, text, size=13):
        self.ensure_space(size + 8)
        self.c.setFont('Helvetica-Bold', size)
        self.c.drawString(MARGIN, self.y, text)
        self.y -= size + 6

    def text(self, text, size=9, bold=False, x=None):
        self.ensure_space(size + 4)
        self.c.setFont('Helvetica-Bold' if bold else 'Helvetica', size)
        self.c.drawString(MARGIN if x is None else x, self.y, str(text))
        self.y -= size + 4

    def key_values(self, pairs, size=9):
        for label, value in pairs:
            self.ensure_space(size + 4)
            self.c.setFont('Helvetica-Bold', size)
            self.c.drawString(MARGIN, self.y, f"{label}:")
            self.c.setFont('Helvetica', size)
            self.c.drawString(MARGIN + 110, self.y, str(value if value not in (None, '') else '-'))
            self.y -= size + 4

    def table(self, columns, rows, widths=None, numeric=()):
        """
        Draw a table; ``columns`` are header labels, ``rows`` lists of cell
        values, ``numeric`` the indexes of right-aligned columns.
        """
        if widths is None:
            widths = [self.content_width / len(columns)] * len(columns)
        row_height = 16

        def draw_header():
            self.c.setFillColor(NAVY)
            self.c.rect(MARGIN, self.y - 4, sum(widths), row_height, fill=1, stroke=0)
            self.c.setFillColor(WHITE)
            self.c.setFont('Helvetica-Bold', 8)
            x = MARGIN
            for index, label in enumerate(columns):
                if index in numeric:
                    self.c.drawRightString(x + widths[index] - 4, self.y, str(label))
                else:
                    self.c.drawString(x + 4, self.y, str(label))
                x += widths[index]
            self.c.setFillColor(NAVY)
            self.y -= row_height

        self.ensure_space(row_height * 2)
        draw_header()
        for row_index, row in enumerate(rows):
            if self.y - row_height < MARGIN + 20:
                self.new_page()
                draw_header()
            if row_index % 2:
                self.c.setFillColor(SLATE_PALE)
                self.c.rect(MARGIN, self.y - 4, sum(widths), row_height, fill=1, stroke=0)
                self.c.setFillColor(NAVY)
            self.c.setFont('Helvetica', 8)
            x = MARGIN
            for index, value in enumerate(row):
                cell = '' if value is None else str(value)
                max_chars = max(int(widths[index] / 4.5), 4)
                if len(cell) > max_chars:
                    cell = cell[:max_chars - 1] + '…'
                if index in numeric:
                    self.c.drawRightString(x + widths[index] - 4, self.y, cell)
                else:
                    self.c.drawString(x + 4, self.y, cell)
                x += widths[index]
            self.y -= row_height
        self.y -= 6

    def image(self, pil_image, width, height, x=None):
        self.ensure_space(height + 4)
        self.c.drawImage(ImageReader(pil_image), MARGIN if x is None else x, self.y - height, width=width, height=height)
        self.y -= height + 4

    def render(self):
        self.footer()
        self.c.save()
        return self.buffer.getvalue()


def render_invoice_pdf(invoice):
    doc = PDFDocument(f"Invoice {invoice.invoice_number}")
    doc.company_header()

    top = doc.y
    doc.heading(f"INVOICE {invoice.invoice_number}", size=14)
    try:
        doc.c.drawImage(
            ImageReader(barcode_image(invoice.invoice_number)),
            doc.width - MARGIN - 170, top - 30, width=170, height=40,
        )
    except Exception as e:
        logger.warning(f"Could not render barcode for invoice {invoice.invoice_number}: {str(e)}")

    customer = invoice.customer
    doc.key_values([
        ('Date', invoice.date),
        ('Due date', invoice.due_date),
        ('Status', invoice.get_status_display()),
        ('Customer', invoice.customer_name or customer.name),
        ('Address', customer.address),
        ('Phone', customer.phone),
        ('Billed by', invoice.billed_by.display_name if invoice.billed_by_id else ''),
    ])
    doc.y -= 6

    rows = []
    for item in invoice.items.select_related('inventory_item'):
        rows.append([
            item.inventory_item.sku,
            item.inventory_item.name,
            item.quantity,
            format_money(item.unit_price),
            format_money(item.line_total),
        ])
    doc.table(
        ['SKU', 'Description', 'Qty', 'Unit price', 'Total'],
        rows,
        widths=[80, 215, 50, 85, 85],
        numeric=(2, 3, 4),
    )

    doc.key_values([
        ('Subtotal', format_money(invoice.subtotal)),
        ('Tax', format_money(invoice.tax_amount)),
        ('Discount', format_money(invoice.discount_amount)),
        ('Total', format_money(invoice.total_amount)),
        ('Balance due', format_money(invoice.balance)),
    ])

    if invoice.bank_account_id:
        doc.y -= 6
        doc.text('Payment details', bold=True)
        account = invoice.bank_account
        doc.key_values([
            ('Bank', account.bank_name),
            ('Account name', account.account_name),
            ('Account number', account.account_number),
        ])
    if invoice.notes:
        doc.y -= 6
        doc.text('Notes', bold=True)
        doc.text(invoice.notes)
    return doc.render()


def render_statement_pdf(ledger):
    customer = ledger['customer']
    period = ledger['period']
    doc = PDFDocument(f"Statement {customer['name']}")
    doc.company_header()
    doc.heading('CUSTOMER STATEMENT', size=14)
    doc.key_values([
        ('Customer', customer['name']),
        ('Period', f"{period['start_date']} to {period['end_date']}"),
        ('Opening balance', format_money(ledger['opening_balance'])),
    ])
    doc.y -= 6
    rows = [
        [t['date'], t['type'], t['reference'], t['description'],
         format_money(t['debit']) if t['debit'] else '',
         format_money(t['credit']) if t['credit'] else '',
         format_money(t['balance'])]
        for t in ledger['transactions']
    ]
    doc.table(
        ['Date', 'Type', 'Reference', 'Description', 'Debit', 'Credit', 'Balance'],
        rows,
        widths=[60, 55, 80, 135, 65, 60, 60],
        numeric=(4, 5, 6),
    )
    totals = ledger['totals']
    doc.key_values([
        ('Total invoiced', format_money(totals['total_invoices'])),
        ('Total paid', format_money(totals['total_payments'])),
        ('Closing balance', format_money(ledger['closing_balance'])),
    ])
    return doc.render()


def render_table_pdf(title, columns, rows, subtitle=None):
    """Generic landscape table used by report exports"""
    doc = PDFDocument(title, pagesize=landscape(A4))
    doc.company_header()
    doc.heading(title, size=14)
    if subtitle:
        doc.text(subtitle)
    numeric = tuple(
        index for index, _ in enumerate(columns)
        if rows and all(isinstance(row[index], (int, float, Decimal)) for row in rows if row[index] is not None)
    )
    formatted = [
        [format_money(v) if isinstance(v, Decimal) else v for v in row]
        for row in rows
    ]
    doc.table(columns, formatted, numeric=numeric)
    return doc.render()
