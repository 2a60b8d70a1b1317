"""Sales target achievement from approved invoices"""
from decimal import Decimal

from django.db.models import Sum


def achieved_for(user, product, year, month):
    """Quantity and amount a user billed for a product during one month"""
    from backend.sales.models import Invoice, InvoiceItem

    totals = InvoiceItem.objects.filter(
        invoice__billed_by=user,
        invoice__approval_status=Invoice.APPROVAL_APPROVED,
        invoice__date__year=year,
        invoice__date__month=month,
        inventory_item__product=product,
    ).exclude(invoice__status=Invoice.STATUS_CANCELLED).aggregate(
        quantity=Sum('quantity'),
        amount=Sum('line_total'),
    )
    return totals['quantity'] or Decimal('0'), totals['amount'] or Decimal('0')


def refresh_achievement(target):
    quantity, amount = achieved_for(target.user, target.product, target.year, target.month)
    if quantity != target.achieved_quantity or amount != target.achieved_amount:
        target.achieved_quantity = quantity
        target.achieved_amount = amount
        target.save(update_fields=['achieved_quantity', 'achieved_amount', 'updated_at'])
    return target


def percent(achieved, target):
    if not target:
        return None
    return round(float(achieved) / float(target) * 100, 2)
