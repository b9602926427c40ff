#!/usr/bin/env python3
"""
Run one SLA escalation sweep against a tenant database.

Usage:
    python scripts/trigger_escalation.py --database-url sqlite:///hr.db \
        --directory members.yaml [--tenant acme] [--config engine.yaml]

``--directory`` is a YAML file with a top-level ``members`` list whose
entries carry ``DirectoryMember`` fields.  Prints the sweep result as JSON
and commits; exits 1 when any entity failed to escalate.
"""

import argparse
import json
import sys
from pathlib import Path

# Add project root to path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from approval_config import get_engine_settings
from approval_config.loader import load_yaml_file
from approval_kernel.db.engine import TenantDatabases
from approval_kernel.logging_config import configure_logging
from approval_services.directory import InMemoryEmployeeDirectory
from approval_services.notifications import LoggingNotificationDispatcher
from approval_batch.scheduler import EscalationScheduler


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--database-url", required=True)
    parser.add_argument("--directory", required=True, type=Path)
    parser.add_argument("--tenant", default="default")
    parser.add_argument("--config", type=Path, default=None)
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    configure_logging(level=args.log_level, stream=sys.stderr)

    settings = get_engine_settings(args.config)
    directory = InMemoryEmployeeDirectory.from_records(
        load_yaml_file(args.directory).get("members", []),
        head_roles=settings.roles.department_head_roles,
    )

    tenants = TenantDatabases()
    tenants.register(args.tenant, args.database_url)
    scheduler = EscalationScheduler(
        tenants,
        directory_factory=lambda _tenant_id: directory,
        notifier=LoggingNotificationDispatcher(),
        settings=settings,
    )
    try:
        result = scheduler.sweep_tenant(args.tenant)
    finally:
        tenants.close_all()

    if result is None:
        print(json.dumps({"tenant": args.tenant, "error": "sweep failed"}))
        return 1
    print(json.dumps({"tenant": args.tenant, **result.to_dict()}, indent=2))
    return 1 if result.errors else 0


if __name__ == "__main__":
    sys.exit(main())
