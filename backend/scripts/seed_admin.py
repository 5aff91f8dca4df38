#!/usr/bin/env python
"""Idempotent bootstrap for the super-admin account and stored permission maps.

Usage:
    python backend/scripts/seed_admin.py                       # ensure schema + super-admin
    python backend/scripts/seed_admin.py --email a@b.c --password secret
    python backend/scripts/seed_admin.py --show-admins         # print admin -> permission counts
    python backend/scripts/seed_admin.py --validate            # report stored entries outside the registry
    python backend/scripts/seed_admin.py --validate --fix      # rewrite them with the sanitized map
    python backend/scripts/seed_admin.py --export-json [FILE]  # dump the permission registry
"""
from __future__ import annotations
import os, sys, argparse, textwrap, json, hashlib
from sqlalchemy import select, text

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from fieldledger import create_app, get_db  # type: ignore
from fieldledger.constants.permissions import (
    MODULE_ACTIONS, MODULE_LABELS, SPECIAL_ACTION_LABELS, ALL_PERMISSION_CODES, ROLE_SUB_ADMIN,
)
from fieldledger.models.admin import Admin
from fieldledger.services.admins import seed_super_admin
from fieldledger.services.permissions import sanitize_permissions, serialize_permissions


def ensure_schema(session):
    try:
        session.execute(text('SELECT 1 FROM admins LIMIT 1'))
    except Exception:
        # bootstrap only; real deployments run alembic upgrade
        session.rollback()
        from fieldledger.models.base import Base
        Base.metadata.create_all(session.get_bind())
    finally:
        session.commit()


def find_invalid_permissions(session):
    """Return ``[(admin, stored, sanitized)]`` for sub-admins whose stored map has unknown entries."""
    problems = []
    for admin in session.execute(select(Admin).where(Admin.role == ROLE_SUB_ADMIN)).scalars().all():
        stored = admin.permissions or {}
        cleaned = serialize_permissions(sanitize_permissions(stored))
        as_sets = {k: set(map(str, v)) for k, v in stored.items() if isinstance(v, list)}
        if as_sets != {k: set(v) for k, v in cleaned.items()} or len(as_sets) != len(stored):
            problems.append((admin, stored, cleaned))
    return problems


def print_admin_summary(session):
    admins = session.execute(select(Admin).order_by(Admin.id)).scalars().all()
    if not admins:
        print('[INFO] No admins present.')
        return
    email_w = max(len(a.email) for a in admins)
    print(f"{'Email'.ljust(email_w)} | Role        | Active | Grants")
    print('-' * (email_w + 40))
    for a in admins:
        grants = sum(len(v) for v in (a.permissions or {}).values() if isinstance(v, list))
        print(f"{a.email.ljust(email_w)} | {a.role.ljust(11)} | {str(a.is_active).ljust(6)} | {grants}")


def build_registry_payload():
    registry = {
        module.value: {
            'label': MODULE_LABELS[module],
            'actions': [a.value for a in actions],
        }
        for module, actions in MODULE_ACTIONS.items()
    }
    canonical = json.dumps(registry, sort_keys=True, separators=(',', ':'))
    return {
        'modules': registry,
        'special_action_labels': {a.value: label for a, label in SPECIAL_ACTION_LABELS.items()},
        'meta': {
            'permission_codes': len(ALL_PERMISSION_CODES),
            'registry_checksum_sha256': hashlib.sha256(canonical.encode('utf-8')).hexdigest(),
        },
    }


def parse_args():
    p = argparse.ArgumentParser(
        description='Seed the super-admin and check stored permission maps',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed: seed_admin.py\n  check: seed_admin.py --validate\n  export: seed_admin.py --export-json registry.json\n""")
    )
    p.add_argument('--email', default=os.getenv('DEFAULT_ADMIN_EMAIL', 'admin@example.com'))
    p.add_argument('--password', default=os.getenv('DEFAULT_ADMIN_PASSWORD', 'ChangeMe123!'))
    p.add_argument('--show-admins', action='store_true', help='Print admins and grant counts after seeding')
    p.add_argument('--validate', action='store_true', help='Report sub-admin permission entries unknown to the registry; exits 2 on problems')
    p.add_argument('--fix', action='store_true', help='With --validate, rewrite offending maps instead of failing')
    p.add_argument('--export-json', nargs='?', const='-', metavar='FILE', help='Export the permission registry (to FILE or stdout if omitted)')
    return p.parse_args()


def main():
    args = parse_args()
    app = create_app()
    with app.app_context():
        session = get_db()
        try:
            ensure_schema(session)
            admin = seed_super_admin(session, args.email, args.password)
            print(f'[DONE] Super-admin: {admin.email} (id={admin.id})')
            if args.validate:
                problems = find_invalid_permissions(session)
                if not problems:
                    print('[VALIDATION] OK: all stored permission maps are within the registry.')
                elif args.fix:
                    for a, stored, cleaned in problems:
                        a.permissions = cleaned
                        print(f'[FIX] {a.email}: {stored} -> {cleaned}')
                    session.commit()
                else:
                    print('\n[VALIDATION] FAIL:')
                    for a, stored, cleaned in problems:
                        print(f' - {a.email}: stored {stored}, registry allows {cleaned}')
                    sys.exit(2)
            if args.show_admins:
                print('\nAdmin Summary:')
                print_admin_summary(session)
            if args.export_json is not None:
                payload = build_registry_payload()
                if args.export_json == '-':
                    print(json.dumps(payload, indent=2, sort_keys=True))
                else:
                    with open(args.export_json, 'w', encoding='utf-8') as f:
                        json.dump(payload, f, indent=2, sort_keys=True)
                    print(f'[INFO] Exported JSON to {args.export_json}')
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


if __name__ == '__main__':
    main()
