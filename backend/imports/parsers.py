"""Value parsing for spreadsheet imports"""
import csv
import json
import re
from datetime import datetime, date
from decimal import Decimal, InvalidOperation

CURRENCY_NOISE = re.compile(r'[₦$£€,\s]|^[Nn](?=\d)')

DATE_FORMATS = [
    '%Y-%m-%d',
    '%m/%d/%Y',
    '%d %b %Y',
    '%d %B %Y',
    '%d-%b-%Y',
]

MONTHS = {
    'jan': 1, 'feb': 2, 'mar': 3, 'apr': 4, 'may': 5, 'jun': 6,
    'jul': 7, 'aug': 8, 'sep': 9, 'oct': 10, 'nov': 11, 'dec': 12,
}


def parse_currency(value):
    """
    '₦1,500.00', '$1,200', 'N25,500' or a number -> Decimal.
    Anything unparseable becomes 0.
    """
    if value is None or isinstance(value, bool):
        return Decimal('0')
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    cleaned = CURRENCY_NOISE.sub('', str(value).strip())
    if not cleaned:
        return Decimal('0')
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return Decimal('0')


def _parse_short_date(value):
    """'1-Sep-25' -> 2025-09-01; two-digit years below 50 are 20xx"""
    parts = re.split(r'[-–—]', value)
    if len(parts) != 3:
        return None
    day, month, year = (p.strip() for p in parts)
    month_number = MONTHS.get(month[:3].lower())
    if month_number is None or not day.isdigit() or not year.isdigit():
        return None
    year = int(year)
    if len(parts[2].strip()) <= 2:
        year += 2000 if year < 50 else 1900
    try:
        return date(year, month_number, int(day))
    except ValueError:
        return None


def parse_date(value):
    """Sheet date -> ``date``; None when the value cannot be read"""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None

    parsed = _parse_short_date(text)
    if parsed:
        return parsed

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def clean_text(value):
    if value is None:
        return ''
    return ' '.join(str(value).split())


def read_rows_file(path):
    """Rows from a CSV file (header row) or a JSON file holding a list of objects"""
    with open(path, 'r', encoding='utf-8-sig') as f:
        if path.lower().endswith('.json'):
            data = json.load(f)
            return data if isinstance(data, list) else data.get('rows', [])
        return list(csv.DictReader(f))
