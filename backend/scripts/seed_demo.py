#!/usr/bin/env python
"""Idempotent seed script for staff accounts and optional demo data.

Usage:
    python backend/scripts/seed_demo.py                # ensure the three staff accounts
    python backend/scripts/seed_demo.py --demo         # also add sample customers, parts and jobs
    python backend/scripts/seed_demo.py --dry-run      # run logic then rollback (no DB changes)
    python backend/scripts/seed_demo.py --show-users   # print accounts and their permission counts
"""
from __future__ import annotations
import os, sys, argparse, textwrap
from datetime import date, timedelta
from sqlalchemy import select, inspect

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from repairdesk import create_app, get_db  # noqa: E402
from repairdesk.models.authz import Base, User  # noqa: E402
from repairdesk.models.customer import Customer  # noqa: E402
from repairdesk.models.job import Job  # noqa: E402
from repairdesk.models.inventory_item import InventoryItem, InventoryLog  # noqa: E402
from repairdesk.models import audit, part_usage, invoice, message, kv_entry, notification, repair_log  # noqa: E402,F401
from repairdesk.constants.permissions import ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_TECHNICIAN, permissions_for_role  # noqa: E402

STAFF = [
    (ROLE_SUPER_ADMIN, 'Owner', 'SEED_OWNER_EMAIL', 'owner@example.com'),
    (ROLE_ADMIN, 'Front Desk', 'SEED_ADMIN_EMAIL', 'admin@example.com'),
    (ROLE_TECHNICIAN, 'Sam Tech', 'SEED_TECH_EMAIL', 'tech@example.com'),
]

DEMO_CUSTOMERS = [
    ('Dana Whitfield', 'dana@example.com', '555-0101', 'Downtown'),
    ('Luis Ortega', 'luis@example.com', '555-0102', 'Riverside'),
]

DEMO_PARTS = [
    ('SCR-IP13', 'iPhone 13 Screen', 'Screens', 8, 8999, 'PartsHub'),
    ('BAT-IP12', 'iPhone 12 Battery', 'Batteries', 3, 2999, 'PartsHub'),
    ('SSD-512', '512GB NVMe SSD', 'Storage', 12, 5499, 'DiskCo'),
]


def ensure_staff(session):
    password = os.getenv('SEED_PASSWORD', 'ChangeMe123!')
    created = 0
    for role, name, env_key, default_email in STAFF:
        email = os.getenv(env_key, default_email).lower()
        if session.execute(select(User).where(User.email==email)).scalar_one_or_none():
            continue
        user = User(name=name, email=email, role=role, specialties=[] if role != ROLE_TECHNICIAN else ['Phones'])
        user.set_password(password)
        session.add(user)
        created += 1
        print(f"[INFO] Created {role} account {email} with temporary password.")
    session.flush()
    return created


def ensure_demo_data(session):
    owner = session.execute(select(User).where(User.role==ROLE_SUPER_ADMIN).order_by(User.id)).scalars().first()
    tech = session.execute(select(User).where(User.role==ROLE_TECHNICIAN).order_by(User.id)).scalars().first()
    owner_id = owner.id if owner else 0
    customers = {}
    for name, email, phone, location in DEMO_CUSTOMERS:
        c = session.execute(select(Customer).where(Customer.email==email)).scalar_one_or_none()
        if not c:
            c = Customer(name=name, email=email, phone=phone, location=location, created_by=owner_id)
            session.add(c)
        customers[email] = c
    for sku, name, category, qty, price, supplier in DEMO_PARTS:
        if session.execute(select(InventoryItem).where(InventoryItem.sku==sku)).scalar_one_or_none():
            continue
        item = InventoryItem(sku=sku, name=name, category=category, quantity=qty, price_cents=price,
                             supplier=supplier, created_by=owner_id)
        session.add(item)
        session.flush()
        session.add(InventoryLog(action=InventoryLog.ACTION_ADDED, item_id=item.id, item_name=name, quantity=qty,
                                 user=owner.name if owner else None, notes='Seeded'))
    session.flush()
    if session.execute(select(Job.id).limit(1)).first():
        return
    dana = customers['dana@example.com']
    samples = [
        (dana, 'iPhone 13', 'Cracked screen', Job.STATUS_REPAIR_IN_PROGRESS, Job.PRIORITY_HIGH),
        (customers['luis@example.com'], 'Dell XPS 15', 'Does not boot', Job.STATUS_RECEIVED, Job.PRIORITY_MEDIUM),
    ]
    for customer, device, issue, status, priority in samples:
        job = Job(
            customer_id=customer.id, customer_name=customer.name, customer_email=customer.email,
            customer_phone=customer.phone, device=device, issue=issue, status=status, priority=priority,
            due_date=date.today() + timedelta(days=3), has_notification=True, created_by=owner_id,
            assigned_user_id=tech.id if tech else None, assigned_to=tech.name if tech else None,
        )
        session.add(job)
        session.flush()
        job.reference = Job.make_reference(job.id)


def print_user_summary(session):
    users = session.execute(select(User).order_by(User.id)).scalars().all()
    if not users:
        print("[INFO] No users present.")
        return
    email_w = max(len(u.email) for u in users)
    print(f"{'Email'.ljust(email_w)} | Role        | Perms")
    print('-' * (email_w + 28))
    for u in users:
        print(f"{u.email.ljust(email_w)} | {u.role.ljust(11)} | {len(permissions_for_role(u.role))}")


def parse_args():
    p = argparse.ArgumentParser(
        description="Seed RepairDesk staff accounts and demo data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed staff: seed_demo.py\n  with demo data: seed_demo.py --demo\n  dry run: seed_demo.py --dry-run\n"""),
    )
    p.add_argument('--demo', action='store_true', help='Add sample customers, inventory and jobs')
    p.add_argument('--show-users', action='store_true', help='Print accounts after seeding')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    return p.parse_args()


def main():
    args = parse_args()
    app = create_app()
    with app.app_context():
        session = get_db()
        engine = session.get_bind()
        if not inspect(engine).has_table('users'):
            # bootstrap fallback; real deployments run `alembic upgrade head`
            Base.metadata.create_all(engine)
        try:
            created = ensure_staff(session)
            if args.demo:
                ensure_demo_data(session)
            if args.dry_run:
                session.rollback()
                print(f"[DRY-RUN] (rolled back) Accounts would create: {created}")
            else:
                session.commit()
                print(f"[DONE] Accounts created: {created}")
            if args.show_users:
                print('\nAccounts:')
                print_user_summary(session)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


if __name__ == '__main__':
    main()
