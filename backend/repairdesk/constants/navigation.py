"""Navigation registry shared by the API (/iam/navigation) and the Python client.

Visibility is a rendering convenience only; every endpoint behind a link
checks the same permission again from the signed token.
"""
from __future__ import annotations
from typing import Dict, Iterable, List

from repairdesk.constants.permissions import permissions_for_role

NAVIGATION: List[Dict[str, str]] = [
    {'key': 'dashboard', 'label': 'Dashboard', 'path': '/', 'permission': 'RPT.READ'},
    {'key': 'customers', 'label': 'Customers', 'path': '/customers', 'permission': 'CUST.READ'},
    {'key': 'jobs', 'label': 'Jobs', 'path': '/jobs', 'permission': 'JOB.READ'},
    {'key': 'inventory', 'label': 'Inventory', 'path': '/inventory', 'permission': 'INV.READ'},
    {'key': 'invoices', 'label': 'Invoices', 'path': '/invoices', 'permission': 'BILL.READ'},
    {'key': 'messages', 'label': 'Messages', 'path': '/messages', 'permission': 'MSG.READ'},
    {'key': 'technician', 'label': 'My Jobs', 'path': '/technician', 'permission': 'INV.USE'},
    {'key': 'technician-analytics', 'label': 'Technician Analytics', 'path': '/technician-analytics', 'permission': 'JOB.ASSIGN'},
    {'key': 'accounting', 'label': 'Accounting', 'path': '/accounting', 'permission': 'RPT.FINANCE'},
    {'key': 'users', 'label': 'User Management', 'path': '/users', 'permission': 'ADMIN.USER.MANAGE'},
    {'key': 'settings', 'label': 'Settings', 'path': '/settings', 'permission': 'ADMIN.SETTINGS.MANAGE'},
]


def visible_links(perms: Iterable[str]) -> List[Dict[str, str]]:
    granted = set(perms)
    return [
        {'key': link['key'], 'label': link['label'], 'path': link['path']}
        for link in NAVIGATION if link['permission'] in granted
    ]


def visible_navigation(role: str) -> List[Dict[str, str]]:
    """Links shown for a role; an unknown role sees nothing."""
    return visible_links(permissions_for_role(role))
