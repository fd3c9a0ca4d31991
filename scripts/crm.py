"""Operator CLI for the CRM admin console.

Runs the same provisioning operations as the HTTP API, wired from the
environment settings.
"""
from __future__ import annotations
import argparse
import json
import sys
from pathlib import Path

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from crm_console.config import load_settings
from crm_console.core.errors import ProvisioningError
from crm_console.services import build_services
from scripts import audit


def _print_json(payload) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="CRM admin console operator CLI")
    parser.add_argument("--operator", default="cli",
                        help="Operator identifier for audit logs (default: cli)")

    sub = parser.add_subparsers(dest="cmd")

    sc = sub.add_parser("create-user")
    sc.add_argument("--employee-id", required=True)
    sc.add_argument("--name", required=True)
    sc.add_argument("--email", required=True)
    sc.add_argument("--mobile", required=True)
    sc.add_argument("--department-id", required=True)
    sc.add_argument("--role-id", required=True)
    sc.add_argument("--line-manager-id")

    sd = sub.add_parser("delete-user")
    sd.add_argument("--user-id", required=True)

    sr = sub.add_parser("reset-password")
    sr.add_argument("--email", required=True)

    sv = sub.add_parser("resend-verification")
    sv.add_argument("--email", required=True)

    ss = sub.add_parser("toggle-status")
    ss.add_argument("--user-id", required=True)

    sa = sub.add_parser("toggle-access")
    sa.add_argument("--user-id", required=True)

    srec = sub.add_parser("reconcile")
    srec.add_argument("--repair", action="store_true",
                      help="Delete orphaned identities instead of only reporting them")

    sub.add_parser("stats")
    sub.add_parser("verify-audit")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Command-line entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.cmd:
        parser.print_help()
        return 0

    if args.cmd == "verify-audit":
        total, valid = audit.verify_audit_log()
        print(f"Audit log: {valid}/{total} events with valid signatures")
        return 0 if total == valid else 1

    services = build_services(load_settings(), source="cli")
    provisioning = services.provisioning
    operator = args.operator

    try:
        if args.cmd == "create-user":
            user = provisioning.create_user(
                {
                    "employeeId": args.employee_id,
                    "name": args.name,
                    "email": args.email,
                    "mobile": args.mobile,
                    "departmentId": args.department_id,
                    "roleId": args.role_id,
                    "lineManagerId": args.line_manager_id,
                },
                operator=operator,
            )
            print(f"[create-user] Created {user['email']} (id={user['id']})", file=sys.stderr)
            _print_json(user)
        elif args.cmd == "delete-user":
            provisioning.delete_user(args.user_id, operator=operator)
            print(f"[delete-user] Deleted {args.user_id}", file=sys.stderr)
        elif args.cmd == "reset-password":
            temp_password = provisioning.reset_password(args.email, operator=operator)
            print(f"[reset-password] Temporary password set for {args.email}; deliver it securely", file=sys.stderr)
            print(temp_password)
        elif args.cmd == "resend-verification":
            provisioning.resend_verification(args.email, operator=operator)
            print(f"[resend-verification] Verification email sent to {args.email}", file=sys.stderr)
        elif args.cmd == "toggle-status":
            user = provisioning.toggle_status(args.user_id, operator=operator)
            print(f"[toggle-status] {user['email']}: status={user['status']} access={user['dashboardAccess']}", file=sys.stderr)
        elif args.cmd == "toggle-access":
            user = provisioning.toggle_blocked(args.user_id, operator=operator)
            print(f"[toggle-access] {user['email']}: access={user['dashboardAccess']}", file=sys.stderr)
        elif args.cmd == "reconcile":
            report = provisioning.reconcile(repair=args.repair, operator=operator)
            _print_json(report)
        elif args.cmd == "stats":
            _print_json(provisioning.user_statistics())
        else:
            parser.print_help()
    except ProvisioningError as e:
        print(f"[{args.cmd}] Error ({e.kind}): {e.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
