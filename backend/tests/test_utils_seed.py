"""Test seeding utilities to reduce duplication.

The suite shares one in-memory database, so every helper is idempotent on its
natural key (email, sku) and tests pick keys nobody else uses.
"""
from typing import Optional
from repairdesk import get_db
from repairdesk.models.authz import User
from repairdesk.constants.permissions import ROLE_TECHNICIAN


def ensure_user(email: str, role: str = ROLE_TECHNICIAN, name: Optional[str] = None, password: str = 'pw') -> User:
    session = get_db()
    u = session.query(User).filter_by(email=email).one_or_none()
    if not u:
        u = User(name=name or email.split('@')[0], email=email, role=role, password_hash='')
        u.set_password(password)
        session.add(u); session.commit(); session.refresh(u)
    return u


def ensure_customer(name: str, email: Optional[str] = None, phone: Optional[str] = None, location: Optional[str] = None):
    from repairdesk.models.customer import Customer  # lazy import to avoid test import cycles
    session = get_db()
    c = session.query(Customer).filter_by(name=name).one_or_none()
    if not c:
        c = Customer(name=name, email=email, phone=phone, location=location, created_by=0)
        session.add(c); session.commit(); session.refresh(c)
    return c


def ensure_item(sku: str, name: Optional[str] = None, quantity: int = 0, price_cents: int = 0, category: str = 'Parts'):
    """Idempotently ensure an InventoryItem exists (by SKU). Returns the item.

    Args:
        sku: Unique stock keeping unit (lookup key)
        name: Display name (defaults to sku if omitted)
        quantity: Initial stock level
        price_cents: Unit price in cents
        category: Catalogue grouping
    """
    from repairdesk.models.inventory_item import InventoryItem
    session = get_db()
    item = session.query(InventoryItem).filter_by(sku=sku).one_or_none()
    if not item:
        item = InventoryItem(sku=sku, name=name or sku, category=category, quantity=quantity,
                             price_cents=price_cents, created_by=0)
        session.add(item); session.commit(); session.refresh(item)
    return item


def create_job(customer_name: str, device: str = 'Laptop', issue: str = 'Broken', **fields):
    """Create a Job directly (non-idempotent). Returns the Job with its reference set."""
    from repairdesk.models.job import Job
    session = get_db()
    job = Job(customer_name=customer_name, device=device, issue=issue, created_by=0, **fields)
    session.add(job); session.flush()
    job.reference = Job.make_reference(job.id)
    session.commit(); session.refresh(job)
    return job


__all__ = ['ensure_user', 'ensure_customer', 'ensure_item', 'create_job']
