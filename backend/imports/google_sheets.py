"""
Read-only access to the company's Google Sheets workbooks through the
Sheets v4 REST API (``spreadsheets.values.get``) with an API key.
"""
import logging
from urllib.parse import quote

import requests
from django.conf import settings

from backend.core.exceptions import CRMError, ValidationFailed
from .customers import import_customers
from .invoices import import_invoices

logger = logging.getLogger(__name__)

VALUES_URL = 'https://sheets.googleapis.com/v4/spreadsheets/{spreadsheet_id}/values/{range}'
TIMEOUT = 30

CUSTOMERS_SHEET = 'CUSTOMERS'
INVOICES_SHEET = 'INVOICE LIST'


class SheetsError(CRMError):
    status_code = 502


def is_configured():
    return bool(settings.GOOGLE_SHEETS_API_KEY)


def credential_status():
    return {
        'api_key_configured': bool(settings.GOOGLE_SHEETS_API_KEY),
        'database_sheet_configured': bool(settings.GOOGLE_SHEETS_DATABASE_ID),
        'master_sheet_configured': bool(settings.GOOGLE_SHEETS_MASTER_ID),
    }


def read_sheet(spreadsheet_id, sheet_range):
    """Raw cell values (list of rows) for a sheet range"""
    if not is_configured():
        raise ValidationFailed("Google Sheets API key is not configured")
    if not spreadsheet_id:
        raise ValidationFailed("Spreadsheet ID is not configured")

    url = VALUES_URL.format(spreadsheet_id=spreadsheet_id, range=quote(sheet_range, safe=''))
    try:
        response = requests.get(url, params={'key': settings.GOOGLE_SHEETS_API_KEY}, timeout=TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.error(f"Failed to read sheet '{sheet_range}': {str(e)}")
        raise SheetsError(f"Failed to read Google Sheet '{sheet_range}'") from e

    values = response.json().get('values', [])
    logger.info(f"Read {len(values)} rows from sheet '{sheet_range}'")
    return values


def rows_to_dicts(values):
    """First row is the header; short rows are padded with empty strings"""
    if not values:
        return []
    header = [str(cell).strip() for cell in values[0]]
    records = []
    for raw in values[1:]:
        if not any(str(cell).strip() for cell in raw):
            continue
        padded = list(raw) + [''] * (len(header) - len(raw))
        records.append(dict(zip(header, padded)))
    return records


def read_customers():
    return rows_to_dicts(read_sheet(settings.GOOGLE_SHEETS_DATABASE_ID, CUSTOMERS_SHEET))


def read_invoices():
    return rows_to_dicts(read_sheet(settings.GOOGLE_SHEETS_MASTER_ID, INVOICES_SHEET))


SCOPES = ('customers', 'invoices', 'all')


def import_from_google_sheets(scope='all', notify_user_id=None):
    """Customers first so invoice rows can match them; returns per-scope results"""
    if scope not in SCOPES:
        raise ValidationFailed(f"Scope must be one of: {', '.join(SCOPES)}")

    results = {}
    if scope in ('customers', 'all'):
        rows = read_customers()
        results['customers'] = import_customers(rows, notify_user_id) if rows else {'imported': 0, 'skipped': 0, 'errors': []}
    if scope in ('invoices', 'all'):
        rows = read_invoices()
        results['invoices'] = import_invoices(rows, notify_user_id) if rows else {
            'total': 0, 'successful': 0, 'failed': 0, 'errors': [], 'warnings': []
        }
    logger.info(f"Google Sheets import ({scope}) finished: {results}")
    return results
