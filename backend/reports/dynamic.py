"""
Ad-hoc grouped aggregates over an allow-list of models.

A query names a model, an optional date window on one of that model's date
fields, the fields to group by and the aggregates to compute, e.g.

    {"model": "invoice", "date_field": "date", "start_date": "2025-01-01",
     "end_date": "2025-03-31", "group_by": ["status"],
     "aggregate": ["count", "sum:total_amount"]}
"""
from django.db.models import Sum, Count, Avg, Min, Max
from django.utils.dateparse import parse_date

from backend.catalog.models import Product
from backend.core.exceptions import ValidationFailed
from backend.inventory.models import InventoryItem
from backend.parties.models import Customer
from backend.payments.models import CustomerPayment
from backend.sales.models import Invoice, InvoiceItem
from backend.waybills.models import Waybill

MAX_ROWS = 1000

# timestamp columns are filtered on their date part
DATETIME_FIELDS = {'created_at', 'updated_at', 'approved_at', 'processed_at', 'payment_date'}

AGGREGATES = {
    'sum': Sum,
    'avg': Avg,
    'min': Min,
    'max': Max,
    'count': Count,
}

# model name -> (model, date fields, group-by fields, numeric fields)
QUERYABLE = {
    'invoice': (
        Invoice,
        ['date', 'due_date', 'created_at', 'approved_at'],
        ['status', 'approval_status', 'customer__name', 'team__name', 'region__name',
         'location__name', 'billed_by__username', 'payment_method'],
        ['total_amount', 'tax_amount', 'discount_amount', 'balance'],
    ),
    'invoice_item': (
        InvoiceItem,
        ['invoice__date'],
        ['inventory_item__sku', 'inventory_item__name', 'inventory_item__product__name',
         'inventory_item__product__product_group__name', 'invoice__status', 'invoice__team__name'],
        ['quantity', 'unit_price', 'line_total'],
    ),
    'customer_payment': (
        CustomerPayment,
        ['payment_date', 'created_at'],
        ['payment_method', 'status', 'customer__name', 'bank_account__bank_name'],
        ['amount'],
    ),
    'customer': (
        Customer,
        ['created_at', 'onboarding_date', 'last_order_date'],
        ['location__name', 'team__name', 'relationship_manager__username'],
        ['opening_balance'],
    ),
    'inventory_item': (
        InventoryItem,
        ['created_at', 'updated_at'],
        ['location__name', 'product__name', 'product__product_group__name', 'unit'],
        ['current_quantity', 'unit_price', 'min_stock'],
    ),
    'waybill': (
        Waybill,
        ['date', 'created_at', 'processed_at'],
        ['status', 'transfer_type', 'location__name', 'supplier'],
        [],
    ),
    'product': (
        Product,
        ['created_at'],
        ['product_group__name'],
        ['monthly_target'],
    ),
}


def _as_list(value):
    if value in (None, ''):
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


def _parse_aggregate(spec, numeric_fields):
    """'count' or '<fn>:<field>' -> (alias, expression)"""
    name, _, field = spec.partition(':')
    if name not in AGGREGATES:
        raise ValidationFailed(f"Unknown aggregate: {name}")
    if name == 'count' and not field:
        return 'count', Count('id')
    if field not in numeric_fields:
        raise ValidationFailed(f"Cannot aggregate field: {field}")
    return f"{name}_{field}", AGGREGATES[name](field)


def run_query(params):
    model_name = params.get('model')
    if model_name not in QUERYABLE:
        raise ValidationFailed(f"Invalid model. Allowed models: {', '.join(QUERYABLE)}")
    model, date_fields, group_fields, numeric_fields = QUERYABLE[model_name]

    queryset = model.objects.all()

    date_field = params.get('date_field') or date_fields[0]
    if date_field not in date_fields:
        raise ValidationFailed(f"Invalid date field. Allowed: {', '.join(date_fields)}")
    start = parse_date(params.get('start_date') or '')
    end = parse_date(params.get('end_date') or '')
    lookup = f"{date_field}__date" if date_field in DATETIME_FIELDS else date_field
    if start:
        queryset = queryset.filter(**{f"{lookup}__gte": start})
    if end:
        queryset = queryset.filter(**{f"{lookup}__lte": end})

    group_by = _as_list(params.get('group_by'))
    invalid = [field for field in group_by if field not in group_fields]
    if invalid:
        raise ValidationFailed(f"Cannot group by: {', '.join(invalid)}", allowed=group_fields)

    aggregates = dict(
        _parse_aggregate(spec, numeric_fields) for spec in (_as_list(params.get('aggregate')) or ['count'])
    )

    if group_by:
        first_alias = next(iter(aggregates))
        rows = list(
            queryset.values(*group_by).annotate(**aggregates).order_by(f"-{first_alias}")[:MAX_ROWS]
        )
        return {
            'model': model_name,
            'query_type': 'group_by',
            'result_count': len(rows),
            'data': rows,
        }

    return {
        'model': model_name,
        'query_type': 'aggregate',
        'aggregation': queryset.aggregate(**aggregates),
    }
