#!/usr/bin/env python3
"""
Install a policy pack (workflows, matrices, delegations) into a database.

Usage:
    python scripts/seed_policies.py --database-url sqlite:///hr.db \
        [--pack approval_config/sets/default_policies.yaml] [--create-tables]

Without ``--pack`` the pack named by the engine settings is installed.
Records whose (entity_type, name) already exist are skipped, so the script
can be re-run safely.
"""

import argparse
import json
import sys
from pathlib import Path

# Add project root to path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from approval_config import get_default_policy_pack, get_engine_settings
from approval_config.loader import load_policy_pack
from approval_kernel.db.engine import Database
from approval_kernel.exceptions import InvalidPolicyDefinitionError
from approval_kernel.logging_config import configure_logging
from approval_services.policy_store import PolicyStore


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--database-url", required=True)
    parser.add_argument("--pack", type=Path, default=None)
    parser.add_argument("--config", type=Path, default=None)
    parser.add_argument("--create-tables", action="store_true")
    parser.add_argument("--actor", default="seed")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    configure_logging(level="INFO", stream=sys.stderr)

    settings = get_engine_settings(args.config)
    if args.pack is not None:
        pack = load_policy_pack(args.pack, settings.default_level_sla_minutes)
    else:
        pack = get_default_policy_pack(settings)

    db = Database(args.database_url)
    try:
        if args.create_tables:
            db.create_tables()
        with db.session_scope() as session:
            result = PolicyStore(session).seed(pack, created_by_id=args.actor)
    except InvalidPolicyDefinitionError as exc:
        print(f"Policy pack rejected: {exc}", file=sys.stderr)
        return 1
    finally:
        db.dispose()

    print(json.dumps(vars(result), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
