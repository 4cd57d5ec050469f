"""Centralized constants for the OpenAPI document builder.

Splitting these out keeps `repairdesk/openapi_builder.py` concise. Tests depend
on deterministic ordering and content.
"""
from typing import Dict, List, Tuple

# Entity registry: (SchemaName, list path, id param, read permission)
ENTITIES: List[Tuple[str, str, str, str]] = [
    ("Job", "/jobs", "job_id", "JOB.READ"),
    ("Customer", "/customers", "customer_id", "CUST.READ"),
    ("InventoryItem", "/inventory/items", "item_id", "INV.READ"),
    ("Invoice", "/invoices", "invoice_id", "BILL.READ"),
    ("User", "/iam/users", "user_id", "ADMIN.USER.MANAGE"),
]

# Field types per schema; "id" is always present and required.
SCHEMA_FIELDS: Dict[str, Dict[str, str]] = {
    "Job": {
        "reference": "string", "customer_id": "integer", "customer_name": "string", "customer_email": "string",
        "customer_phone": "string", "device": "string", "serial_number": "string", "issue": "string",
        "status": "string", "status_label": "string", "priority": "string", "due_date": "string",
        "assigned_user_id": "integer", "assigned_to": "string", "external_cost_cents": "integer",
        "has_notification": "boolean", "notes": "string",
    },
    "Customer": {
        "name": "string", "email": "string", "phone": "string", "location": "string",
        "jobs_completed": "integer", "total_spent_cents": "integer",
    },
    "InventoryItem": {
        "sku": "string", "name": "string", "category": "string", "quantity": "integer",
        "price_cents": "integer", "supplier": "string", "last_ordered": "string", "low_stock": "boolean",
    },
    "Invoice": {
        "invoice_number": "string", "job_id": "integer", "recipient_name": "string", "recipient_email": "string",
        "amount_cents": "integer", "status": "string", "issue_date": "string", "due_date": "string",
    },
    "User": {
        "name": "string", "email": "string", "role": "string", "is_active": "boolean",
        "phone": "string", "company": "string",
    },
}

# Lifecycle vocabularies published as x-transitions on the schema.
SCHEMA_TRANSITIONS: Dict[str, List[str]] = {
    "Job": ["received", "diagnosis", "repair-in-progress", "stress-test", "repair-completed", "ready-for-delivery", "picked-up"],
    "Invoice": ["draft", "sent", "overdue", "paid"],
}

# Declarative registry for action (state-changing) endpoints under the single-resource path.
ACTION_REGISTRY: Dict[str, List[Dict[str, str]]] = {
    "Job": [
        {"action": "status", "method": "put", "summary": "Change job status", "permission": "JOB.UPDATE"},
        {"action": "assign", "method": "put", "summary": "Assign job technician", "permission": "JOB.ASSIGN"},
        {"action": "notify", "method": "post", "summary": "Email the customer", "permission": "MSG.SEND"},
        {"action": "parts", "method": "post", "summary": "Attach a part from inventory", "permission": "INV.USE"},
    ],
    "InventoryItem": [
        {"action": "stock", "method": "patch", "summary": "Adjust stock level", "permission": "INV.MANAGE"},
    ],
    "Invoice": [
        {"action": "send", "method": "post", "summary": "Send invoice", "permission": "BILL.MANAGE"},
        {"action": "pay", "method": "post", "summary": "Mark invoice paid", "permission": "BILL.MANAGE"},
        {"action": "mark-overdue", "method": "post", "summary": "Mark invoice overdue", "permission": "BILL.MANAGE"},
    ],
    "User": [
        {"action": "deactivate", "method": "post", "summary": "Deactivate user", "permission": "ADMIN.USER.MANAGE"},
        {"action": "activate", "method": "post", "summary": "Activate user", "permission": "ADMIN.USER.MANAGE"},
    ],
}

# Write permission for create / update / delete on each entity.
MANAGE_PERMISSION: Dict[str, Dict[str, str]] = {
    "Job": {"post": "JOB.CREATE", "put": "JOB.UPDATE", "delete": "JOB.DELETE"},
    "Customer": {"post": "CUST.MANAGE", "put": "CUST.MANAGE", "delete": "CUST.MANAGE"},
    "InventoryItem": {"post": "INV.MANAGE", "put": "INV.MANAGE", "delete": "INV.MANAGE"},
    "Invoice": {"post": "BILL.MANAGE", "put": "BILL.MANAGE", "delete": "BILL.MANAGE"},
    "User": {"post": "ADMIN.USER.MANAGE", "put": "ADMIN.USER.MANAGE", "delete": "ADMIN.USER.MANAGE"},
}

SORT_PARAM_MAP = {
    "Job": "SortJobsParam",
    "Customer": "SortCustomersParam",
    "InventoryItem": "SortInventoryParam",
    "Invoice": "SortInvoicesParam",
    "User": None,
}

SORT_DETAILS = {
    "SortJobsParam": "Multi-field sort (created_at,updated_at,due_date,priority,status,customer_name,reference,id). Prefix - for desc",
    "SortCustomersParam": "Multi-field sort (name,email,updated_at,id). Prefix - for desc",
    "SortInventoryParam": "Multi-field sort (name,sku,category,quantity,price,updated_at,id). Prefix - for desc",
    "SortInvoicesParam": "Multi-field sort (invoice_number,issue_date,due_date,amount,status,recipient_name,id). Prefix - for desc",
}

# Read-only endpoints outside the entity registry: path -> (summary, permission)
EXTRA_GETS: Dict[str, Tuple[str, str]] = {
    "/iam/navigation": ("Navigation links visible to the caller", ""),
    "/iam/technicians": ("Active technicians", "JOB.READ"),
    "/inventory/logs": ("Inventory movement log", "INV.READ"),
    "/inventory/report": ("Parts usage report", "INV.READ"),
    "/inventory/usages": ("Part usage records", "INV.READ"),
    "/messages/contacts": ("Contacts with unread counts", "MSG.READ"),
    "/reports/dashboard": ("Dashboard summary", "RPT.READ"),
    "/reports/metrics": ("Status counts per domain", "RPT.READ"),
    "/reports/profit": ("Monthly revenue, parts cost and margin", "RPT.FINANCE"),
    "/reports/technicians": ("Technician workload", "JOB.ASSIGN"),
}

__all__ = [
    "ENTITIES",
    "SCHEMA_FIELDS",
    "SCHEMA_TRANSITIONS",
    "ACTION_REGISTRY",
    "MANAGE_PERMISSION",
    "SORT_PARAM_MAP",
    "SORT_DETAILS",
    "EXTRA_GETS",
]
