"""Central enum-like definitions to avoid typos in permission/service strings.
Extend cautiously; never rename codes silently, add new ones and retire old ones.
"""
from __future__ import annotations
from typing import List, Dict

SERVICES = ['JOB', 'INV', 'BILL', 'CUST', 'MSG', 'RPT', 'ADMIN']

SERVICE_ACTIONS = {
    'JOB': ['READ', 'CREATE', 'UPDATE', 'DELETE', 'ASSIGN'],
    'INV': ['READ', 'MANAGE', 'USE'],
    'BILL': ['READ', 'MANAGE'],
    'CUST': ['READ', 'MANAGE'],
    'MSG': ['READ', 'SEND'],
    'RPT': ['READ', 'FINANCE'],
    'ADMIN': ['USER.MANAGE', 'SETTINGS.MANAGE'],
}


def build_all_permission_codes() -> List[str]:
    codes: List[str] = []
    for svc, actions in SERVICE_ACTIONS.items():
        for act in actions:
            codes.append(f"{svc}.{act}")
    return codes

ALL_PERMISSION_CODES = build_all_permission_codes()

ROLE_SUPER_ADMIN = 'super-admin'
ROLE_ADMIN = 'admin'
ROLE_TECHNICIAN = 'technician'
ALL_ROLES = (ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_TECHNICIAN)

ROLE_PRESETS: Dict[str, List[str]] = {
    ROLE_TECHNICIAN: [
        'JOB.READ', 'JOB.UPDATE',
        'INV.READ', 'INV.USE',
        'CUST.READ',
        'MSG.READ', 'MSG.SEND',
        'RPT.READ',
    ],
    # Admin: runs the shop floor and the books, but cannot manage staff accounts
    ROLE_ADMIN: [
        'JOB.READ', 'JOB.CREATE', 'JOB.UPDATE', 'JOB.DELETE', 'JOB.ASSIGN',
        'INV.READ', 'INV.MANAGE', 'INV.USE',
        'BILL.READ', 'BILL.MANAGE',
        'CUST.READ', 'CUST.MANAGE',
        'MSG.READ', 'MSG.SEND',
        'RPT.READ', 'RPT.FINANCE',
    ],
    ROLE_SUPER_ADMIN: ['*'],
}


def permissions_for_role(role: str) -> List[str]:
    codes = ROLE_PRESETS.get(role, [])
    if '*' in codes:
        return list(ALL_PERMISSION_CODES)
    return list(codes)
