"""
Invoice import from spreadsheet rows.

Rows come in one of two shapes, detected from the first row:

    spaced     "Invoice No", "Date", "Customer", "Product", "Quantity",
               "Item Unit Price", "Item Total Price", "Invoice Total"
    camelCase  invoiceNo, date, customer, product, quantity,
               itemUnitPrice, itemTotalPrice, invoiceTotal

One row is one invoice line; lines are grouped by invoice number. Imported
invoices are historical: they are approved on arrival and do not move stock.
"""
import logging
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from backend.core.cache_signals import suspend_cache_signals
from backend.core.exceptions import ValidationFailed
from backend.inventory.models import InventoryItem
from backend.locations.models import Location, team_for_location
from backend.parties.models import Customer
from backend.sales.models import Invoice, InvoiceItem
from .parsers import parse_currency, parse_date, clean_text
from .progress import ImportProgress

logger = logging.getLogger(__name__)

FORMAT_SPACED = 'spaced'
FORMAT_CAMEL = 'camel'

COLUMNS = {
    FORMAT_SPACED: {
        'invoice_number': 'Invoice No',
        'date': 'Date',
        'customer': 'Customer',
        'product': 'Product',
        'quantity': 'Quantity',
        'unit_price': 'Item Unit Price',
        'line_total': 'Item Total Price',
        'invoice_total': 'Invoice Total',
        'status': 'Status',
    },
    FORMAT_CAMEL: {
        'invoice_number': 'invoiceNo',
        'date': 'date',
        'customer': 'customer',
        'product': 'product',
        'quantity': 'quantity',
        'unit_price': 'itemUnitPrice',
        'line_total': 'itemTotalPrice',
        'invoice_total': 'invoiceTotal',
        'status': 'status',
    },
}

PAID_MARKERS = {'paid', 'yes', 'true', 'completed'}

UNASSIGNED_LOCATION = 'Unassigned'

TEMPLATE_COLUMNS = list(COLUMNS[FORMAT_SPACED].values())


def detect_format(row):
    if 'Invoice No' in row or 'Invoice' in row:
        return FORMAT_SPACED
    if 'invoiceNo' in row:
        return FORMAT_CAMEL
    raise ValidationFailed(
        "Unrecognised invoice format. Expected 'Invoice No', 'Date', 'Customer', ... "
        "or invoiceNo, date, customer, ... columns"
    )


def _value(row, columns, field):
    value = row.get(columns[field])
    # Google Sheets exports label the number column "Invoice"
    if value is None and field == 'invoice_number':
        value = row.get('Invoice')
    return value


def group_rows(rows, row_format):
    """Group line rows into invoices keyed by invoice number, in sheet order"""
    columns = COLUMNS[row_format]
    invoices = {}
    for row in rows:
        number = clean_text(_value(row, columns, 'invoice_number'))
        customer = clean_text(_value(row, columns, 'customer'))
        product = clean_text(_value(row, columns, 'product'))
        if not number or not customer or not product:
            continue

        quantity = parse_currency(_value(row, columns, 'quantity'))
        unit_price = parse_currency(_value(row, columns, 'unit_price'))
        line_total = parse_currency(_value(row, columns, 'line_total')) or quantity * unit_price

        invoice = invoices.get(number)
        if invoice is None:
            invoice = {
                'invoice_number': number,
                'date': parse_date(_value(row, columns, 'date')) or timezone.localdate(),
                'customer_name': customer,
                'total_amount': parse_currency(_value(row, columns, 'invoice_total')),
                'paid': clean_text(_value(row, columns, 'status')).lower() in PAID_MARKERS,
                'items': [],
            }
            invoices[number] = invoice
        invoice['items'].append({
            'product_name': product,
            'quantity': quantity,
            'unit_price': unit_price,
            'line_total': line_total,
        })
    return list(invoices.values())


def default_import_location():
    location, created = Location.objects.get_or_create(
        name=UNASSIGNED_LOCATION, defaults={'description': 'Customers created by imports without a location'}
    )
    if created:
        logger.info(f"Created '{UNASSIGNED_LOCATION}' location for imported customers")
    return location


def default_billing_user():
    """Admin-role user, else any active user"""
    User = get_user_model()
    user = User.objects.filter(role__name='Admin', is_active=True).order_by('id').first()
    if user is None:
        user = User.objects.filter(is_active=True).order_by('id').first()
    return user


def find_or_create_customer(name):
    customer = Customer.objects.select_related('relationship_manager', 'team').filter(name__iexact=name).first()
    if customer:
        return customer
    location = default_import_location()
    customer = Customer.objects.create(name=name, location=location, team=team_for_location(location))
    logger.info(f"Created new customer during invoice import: {name}")
    return customer


def find_inventory_item(product_name):
    return InventoryItem.objects.select_related('location').filter(
        Q(name__iexact=product_name) | Q(product__name__iexact=product_name)
    ).order_by('id').first()


def import_single_invoice(data, default_user):
    """
    Returns ``(invoice, missing_products)``; raises ``ValidationFailed``
    when the invoice cannot be imported.
    """
    number = data['invoice_number']
    if Invoice.objects.filter(invoice_number=number).exists():
        raise ValidationFailed(f"Invoice {number} already exists")

    lines = []
    missing = []
    for item in data['items']:
        inventory_item = find_inventory_item(item['product_name'])
        if inventory_item is None:
            missing.append(item['product_name'])
        else:
            lines.append((inventory_item, item))

    if not lines:
        raise ValidationFailed(f"No matching products found for invoice {number}", missing_products=missing)

    total = data['total_amount'] or sum((item['line_total'] for _, item in lines), Decimal('0.00'))
    if total < 0:
        raise ValidationFailed(f"Invalid total amount ({total}) for invoice {number}")

    with transaction.atomic():
        customer = find_or_create_customer(data['customer_name'])
        billing_user = customer.relationship_manager or default_user
        status = Invoice.STATUS_PAID if data['paid'] else Invoice.STATUS_OPEN

        invoice = Invoice.objects.create(
            invoice_number=number,
            date=data['date'],
            due_date=data['date'] + timedelta(days=customer.default_payment_term_days),
            customer=customer,
            customer_name=customer.name,
            billed_by=billing_user,
            team=customer.team,
            region=billing_user.region,
            location=lines[0][0].location,
            total_amount=total,
            balance=Decimal('0.00') if data['paid'] else total,
            status=status,
            approval_status=Invoice.APPROVAL_APPROVED,
            approved_at=timezone.now(),
            notes='Imported',
        )
        InvoiceItem.objects.bulk_create([
            InvoiceItem(
                invoice=invoice,
                inventory_item=inventory_item,
                quantity=item['quantity'],
                unit_price=item['unit_price'],
                line_total=item['line_total'],
            )
            for inventory_item, item in lines
        ])

        if customer.last_order_date is None or customer.last_order_date < invoice.date:
            customer.last_order_date = invoice.date
            customer.save(update_fields=['last_order_date', 'updated_at'])

    return invoice, missing


def import_invoices(rows, notify_user_id=None):
    """
    Import invoice rows; never aborts on a bad invoice. Returns
    ``{total, successful, failed, errors, warnings}``.
    """
    if not rows:
        raise ValidationFailed("No invoice rows provided")
    row_format = detect_format(rows[0])
    invoices = group_rows(rows, row_format)
    logger.info(f"Parsed {len(invoices)} invoices from {len(rows)} {row_format} rows")

    progress = ImportProgress(notify_user_id, 'Invoice import', len(invoices))

    default_user = default_billing_user()
    if default_user is None:
        progress.failed("No suitable billing user found for import")
        raise ValidationFailed("No suitable billing user found for import")

    results = {
        'total': len(invoices),
        'successful': 0,
        'failed': 0,
        'errors': [],
        'warnings': [],
    }

    with suspend_cache_signals():
        for index, data in enumerate(invoices, 1):
            number = data['invoice_number']
            try:
                invoice, missing = import_single_invoice(data, default_user)
            except ValidationFailed as e:
                results['failed'] += 1
                results['errors'].append({
                    'invoice_number': number,
                    'error': e.message,
                    'missing_products': e.extra.get('missing_products', []),
                })
            except Exception as e:
                logger.error(f"Error importing invoice {number}: {str(e)}", exc_info=True)
                results['failed'] += 1
                results['errors'].append({
                    'invoice_number': number,
                    'error': f"Error importing invoice {number}: {str(e)}",
                    'missing_products': [],
                })
            else:
                results['successful'] += 1
                if missing:
                    results['warnings'].append(f"Invoice {number}: Missing products - {', '.join(missing)}")
            progress.step(index)

    message = (
        f"Import completed: {results['successful']} invoices imported successfully, "
        f"{results['failed']} failed"
    )
    progress.done(message, {'successful': results['successful'], 'failed': results['failed']})
    return results
