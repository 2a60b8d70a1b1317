"""
Permission catalogue and role definitions.

Permissions are plain strings of the form ``resource:action``. A role holds a
list of them; ``resource:*`` grants every action on one resource and ``*``
grants everything.
"""

PERMISSIONS = {
    # Customers
    'CUSTOMERS_VIEW': 'customers:view',
    'CUSTOMERS_CREATE': 'customers:create',
    'CUSTOMERS_EDIT': 'customers:edit',
    'CUSTOMERS_DELETE': 'customers:delete',
    'CUSTOMERS_EXPORT': 'customers:export',
    'CUSTOMERS_IMPORT': 'customers:import',

    # Invoices
    'INVOICES_VIEW': 'invoices:view',
    'INVOICES_CREATE': 'invoices:create',
    'INVOICES_EDIT': 'invoices:edit',
    'INVOICES_DELETE': 'invoices:delete',
    'INVOICES_APPROVE': 'invoices:approve',
    'INVOICES_EXPORT': 'invoices:export',
    'INVOICES_IMPORT': 'invoices:import',

    # Payments
    'PAYMENTS_VIEW': 'payments:view',
    'PAYMENTS_CREATE': 'payments:create',
    'PAYMENTS_EDIT': 'payments:edit',
    'PAYMENTS_DELETE': 'payments:delete',
    'PAYMENTS_APPROVE': 'payments:approve',
    'PAYMENTS_EXPORT': 'payments:export',
    'PAYMENTS_IMPORT': 'payments:import',

    # Users
    'USERS_VIEW': 'users:view',
    'USERS_CREATE': 'users:create',
    'USERS_EDIT': 'users:edit',
    'USERS_DELETE': 'users:delete',
    'USERS_ACTIVATE': 'users:activate',
    'USERS_DEACTIVATE': 'users:deactivate',

    # Roles
    'ROLES_VIEW': 'roles:view',
    'ROLES_CREATE': 'roles:create',
    'ROLES_EDIT': 'roles:edit',
    'ROLES_DELETE': 'roles:delete',

    # Teams
    'TEAMS_VIEW': 'teams:view',
    'TEAMS_CREATE': 'teams:create',
    'TEAMS_EDIT': 'teams:edit',
    'TEAMS_DELETE': 'teams:delete',
    'TEAMS_ASSIGN_MEMBERS': 'teams:assign_members',

    # Locations
    'LOCATIONS_VIEW': 'locations:view',
    'LOCATIONS_CREATE': 'locations:create',
    'LOCATIONS_EDIT': 'locations:edit',
    'LOCATIONS_DELETE': 'locations:delete',

    # Products
    'PRODUCTS_VIEW': 'products:view',
    'PRODUCTS_CREATE': 'products:create',
    'PRODUCTS_EDIT': 'products:edit',
    'PRODUCTS_DELETE': 'products:delete',
    'PRODUCTS_MANAGE_GROUPS': 'products:manage_groups',

    # Inventory
    'INVENTORY_VIEW': 'inventory:view',
    'INVENTORY_CREATE': 'inventory:create',
    'INVENTORY_EDIT': 'inventory:edit',
    'INVENTORY_DELETE': 'inventory:delete',
    'INVENTORY_ADJUST': 'inventory:adjust',
    'INVENTORY_VIEW_ALL_LOCATIONS': 'inventory:view_all_locations',
    'INVENTORY_MANAGE_ALL_LOCATIONS': 'inventory:manage_all_locations',

    # Waybills
    'WAYBILLS_VIEW': 'waybills:view',
    'WAYBILLS_CREATE': 'waybills:create',
    'WAYBILLS_EDIT': 'waybills:edit',
    'WAYBILLS_DELETE': 'waybills:delete',
    'WAYBILLS_APPROVE': 'waybills:approve',

    # Credits
    'CREDITS_VIEW': 'credits:view',
    'CREDITS_CREATE': 'credits:create',
    'CREDITS_APPLY': 'credits:apply',
    'CREDITS_DELETE': 'credits:delete',

    # Sales returns
    'RETURNS_VIEW': 'returns:view',
    'RETURNS_CREATE': 'returns:create',
    'RETURNS_APPROVE': 'returns:approve',
    'RETURNS_DELETE': 'returns:delete',

    # Reports
    'REPORTS_VIEW_DASHBOARD': 'reports:view_dashboard',
    'REPORTS_VIEW_SALES': 'reports:view_sales',
    'REPORTS_VIEW_FINANCIAL': 'reports:view_financial',
    'REPORTS_VIEW_AR_AGING': 'reports:view_ar_aging',
    'REPORTS_VIEW_OVERDUE': 'reports:view_overdue',
    'REPORTS_VIEW_PAYMENTS': 'reports:view_payments',
    'REPORTS_VIEW_INVENTORY': 'reports:view_inventory',
    'REPORTS_EXPORT': 'reports:export',

    # System settings
    'SETTINGS_VIEW': 'settings:view',
    'SETTINGS_EDIT': 'settings:edit',
    'SETTINGS_MANAGE_REGIONS': 'settings:manage_regions',

    # Audit and admin
    'AUDIT_VIEW': 'audit:view',
    'ADMIN_IMPORT_GOOGLE_SHEETS': 'admin:import_google_sheets',
    'ADMIN_FIX_DATA': 'admin:fix_data',
    'ADMIN_VIEW_LOGS': 'admin:view_logs',
}

P = PERMISSIONS

ALL_PERMISSIONS = list(PERMISSIONS.values())

PERMISSION_GROUPS = {
    'CUSTOMER_FULL': [
        P['CUSTOMERS_VIEW'], P['CUSTOMERS_CREATE'], P['CUSTOMERS_EDIT'],
        P['CUSTOMERS_DELETE'], P['CUSTOMERS_EXPORT'], P['CUSTOMERS_IMPORT'],
    ],
    'CUSTOMER_BASIC': [P['CUSTOMERS_VIEW'], P['CUSTOMERS_CREATE'], P['CUSTOMERS_EDIT']],
    'CUSTOMER_READONLY': [P['CUSTOMERS_VIEW']],
    'INVOICE_FULL': [
        P['INVOICES_VIEW'], P['INVOICES_CREATE'], P['INVOICES_EDIT'], P['INVOICES_DELETE'],
        P['INVOICES_APPROVE'], P['INVOICES_EXPORT'], P['INVOICES_IMPORT'],
    ],
    'INVOICE_BASIC': [P['INVOICES_VIEW'], P['INVOICES_CREATE'], P['INVOICES_EDIT']],
    'INVOICE_READONLY': [P['INVOICES_VIEW']],
    'PAYMENT_FULL': [
        P['PAYMENTS_VIEW'], P['PAYMENTS_CREATE'], P['PAYMENTS_EDIT'], P['PAYMENTS_DELETE'],
        P['PAYMENTS_APPROVE'], P['PAYMENTS_EXPORT'], P['PAYMENTS_IMPORT'],
    ],
    'PAYMENT_BASIC': [P['PAYMENTS_VIEW'], P['PAYMENTS_CREATE'], P['PAYMENTS_EDIT']],
    'PAYMENT_READONLY': [P['PAYMENTS_VIEW']],
    'USER_FULL': [
        P['USERS_VIEW'], P['USERS_CREATE'], P['USERS_EDIT'], P['USERS_DELETE'],
        P['USERS_ACTIVATE'], P['USERS_DEACTIVATE'],
    ],
    'USER_READONLY': [P['USERS_VIEW']],
    'ROLE_FULL': [P['ROLES_VIEW'], P['ROLES_CREATE'], P['ROLES_EDIT'], P['ROLES_DELETE']],
    'ROLE_READONLY': [P['ROLES_VIEW']],
    'PRODUCT_FULL': [
        P['PRODUCTS_VIEW'], P['PRODUCTS_CREATE'], P['PRODUCTS_EDIT'],
        P['PRODUCTS_DELETE'], P['PRODUCTS_MANAGE_GROUPS'],
    ],
    'INVENTORY_FULL': [
        P['INVENTORY_VIEW'], P['INVENTORY_CREATE'], P['INVENTORY_EDIT'],
        P['INVENTORY_DELETE'], P['INVENTORY_ADJUST'],
    ],
    'REPORTS_ALL': [
        P['REPORTS_VIEW_DASHBOARD'], P['REPORTS_VIEW_SALES'], P['REPORTS_VIEW_AR_AGING'],
        P['REPORTS_VIEW_OVERDUE'], P['REPORTS_VIEW_PAYMENTS'], P['REPORTS_VIEW_INVENTORY'],
        P['REPORTS_EXPORT'],
    ],
    'REPORTS_FINANCIAL': [
        P['REPORTS_VIEW_DASHBOARD'], P['REPORTS_VIEW_AR_AGING'], P['REPORTS_VIEW_OVERDUE'],
        P['REPORTS_VIEW_PAYMENTS'], P['REPORTS_EXPORT'],
    ],
    'REPORTS_SALES': [P['REPORTS_VIEW_DASHBOARD'], P['REPORTS_VIEW_SALES'], P['REPORTS_EXPORT']],
}

G = PERMISSION_GROUPS

DEFAULT_ROLES = {
    'SUPER_ADMIN': {
        'name': 'Super Admin',
        'permissions': ['*'],
        'description': 'Full system access with all permissions',
    },
    'ADMIN': {
        'name': 'Admin',
        'permissions': (
            G['CUSTOMER_FULL'] + G['INVOICE_FULL'] + G['PAYMENT_FULL'] + G['USER_READONLY']
            + [P['ROLES_VIEW']]
            + G['PRODUCT_FULL'] + G['INVENTORY_FULL'] + G['REPORTS_ALL']
            + [
                P['TEAMS_VIEW'], P['TEAMS_EDIT'], P['LOCATIONS_VIEW'], P['LOCATIONS_EDIT'],
                P['WAYBILLS_VIEW'], P['WAYBILLS_CREATE'], P['WAYBILLS_EDIT'],
                P['CREDITS_VIEW'], P['CREDITS_CREATE'], P['RETURNS_VIEW'], P['RETURNS_CREATE'],
                P['SETTINGS_VIEW'],
            ]
        ),
        'description': 'Administrative access without user/role management',
    },
    'SALES_MANAGER': {
        'name': 'Sales Manager',
        'permissions': (
            G['CUSTOMER_FULL'] + G['INVOICE_FULL']
            + [P['PAYMENTS_VIEW'], P['PAYMENTS_CREATE']]
            + G['REPORTS_SALES']
            + [
                P['REPORTS_VIEW_AR_AGING'], P['REPORTS_VIEW_OVERDUE'], P['PRODUCTS_VIEW'],
                P['INVENTORY_VIEW'], P['TEAMS_VIEW'], P['USERS_VIEW'], P['CREDITS_VIEW'],
                P['CREDITS_CREATE'], P['RETURNS_VIEW'], P['RETURNS_CREATE'],
            ]
        ),
        'description': 'Manage sales team, customers, and invoices',
    },
    'ACCOUNTANT': {
        'name': 'Accountant',
        'permissions': (
            [P['CUSTOMERS_VIEW']]
            + G['INVOICE_FULL'] + G['PAYMENT_FULL'] + G['INVENTORY_FULL'] + G['REPORTS_FINANCIAL']
            + [
                P['PRODUCTS_VIEW'], P['WAYBILLS_VIEW'], P['WAYBILLS_CREATE'], P['WAYBILLS_EDIT'],
                P['CREDITS_VIEW'], P['CREDITS_CREATE'], P['CREDITS_APPLY'],
                P['RETURNS_VIEW'], P['RETURNS_APPROVE'], P['AUDIT_VIEW'],
            ]
        ),
        'description': 'Manage financial operations, inventory, and reporting',
    },
    'SALES_REP': {
        'name': 'Sales Rep',
        'permissions': (
            G['CUSTOMER_BASIC'] + G['INVOICE_BASIC']
            + [
                P['PAYMENTS_VIEW'], P['PAYMENTS_CREATE'], P['REPORTS_VIEW_DASHBOARD'],
                P['REPORTS_VIEW_SALES'], P['PRODUCTS_VIEW'], P['INVENTORY_VIEW'], P['CREDITS_VIEW'],
            ]
        ),
        'description': 'Create and manage customer orders',
    },
    'INVENTORY_MANAGER': {
        'name': 'Inventory Manager',
        'permissions': (
            G['PRODUCT_FULL'] + G['INVENTORY_FULL']
            + [
                P['WAYBILLS_VIEW'], P['WAYBILLS_CREATE'], P['WAYBILLS_EDIT'], P['WAYBILLS_APPROVE'],
                P['REPORTS_VIEW_INVENTORY'], P['REPORTS_EXPORT'], P['CUSTOMERS_VIEW'], P['INVOICES_VIEW'],
            ]
        ),
        'description': 'Manage products, inventory, and waybills',
    },
    'VIEWER': {
        'name': 'Viewer',
        'permissions': [
            P['CUSTOMERS_VIEW'], P['INVOICES_VIEW'], P['PAYMENTS_VIEW'], P['PRODUCTS_VIEW'],
            P['INVENTORY_VIEW'], P['REPORTS_VIEW_DASHBOARD'], P['REPORTS_VIEW_SALES'],
            P['TEAMS_VIEW'], P['USERS_VIEW'],
        ],
        'description': 'Read-only access to most system data',
    },
}


def has_permission(user_permissions, required):
    """Exact match, then ``resource:*``, then the global ``*``."""
    if not user_permissions:
        return False
    if required in user_permissions:
        return True
    resource = required.split(':', 1)[0]
    if f'{resource}:*' in user_permissions:
        return True
    return '*' in user_permissions


def has_any_permission(user_permissions, required):
    return any(has_permission(user_permissions, perm) for perm in required)


def has_all_permissions(user_permissions, required):
    return all(has_permission(user_permissions, perm) for perm in required)


def get_permissions_by_resource():
    """Group the catalogue by resource, preserving declaration order"""
    grouped = {}
    for permission in ALL_PERMISSIONS:
        resource = permission.split(':', 1)[0]
        grouped.setdefault(resource, []).append(permission)
    return grouped


def _label_part(part):
    return (part[:1].upper() + part[1:]).replace('_', ' ')


def get_permission_label(permission):
    """'reports:view_ar_aging' -> 'Reports - View ar aging'"""
    resource, _, action = permission.partition(':')
    return f'{_label_part(resource)} - {_label_part(action)}'


def is_valid_permission(permission):
    if permission == '*':
        return True
    if permission in ALL_PERMISSIONS:
        return True
    resource, _, action = permission.partition(':')
    return action == '*' and resource in get_permissions_by_resource()
