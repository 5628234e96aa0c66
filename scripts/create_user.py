"""Create a user in the configured MongoDB.

Usage:
  python scripts/create_user.py --name Alice --email alice@example.com --password '...' --role vendor

NOTE: This is intended for local/dev.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from storefront.auth.crud import create_user
from storefront.auth.policy import ROLES
from storefront.config import load_config
from storefront.db import connect, init_db


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--name", required=True)
    ap.add_argument("--email", required=True)
    ap.add_argument("--password", required=True)
    ap.add_argument("--role", choices=list(ROLES), default="customer")
    args = ap.parse_args()

    cfg = load_config()
    db = connect(cfg)
    init_db(db)

    try:
        u = create_user(db, name=args.name, email=args.email, password=args.password, role=args.role)
    except ValueError as e:
        sys.exit(f"Could not create user: {e}")

    print("Created user:")
    print(u)


if __name__ == "__main__":
    main()
