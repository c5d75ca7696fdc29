"""
Seed default leave policies and a system administrator, then grant annual
entitlements for the given leave year(s). Existing policies are left unchanged;
balances already open in another period are skipped. Run from the project root
with .env loaded.

Usage:
  python scripts/seed_policy.py              # seeds policies, grants the current year
  python scripts/seed_policy.py 2026         # grants 2026
"""
import sys
from datetime import date

from leave_engine.db.init_db import init_db
from leave_engine.db.session import SessionLocal
from leave_engine.services.balance_service import grant_annual_entitlements


def main():
    years = [date.today().year]
    if len(sys.argv) > 1:
        years = [int(y) for y in sys.argv[1:]]

    db = SessionLocal()
    try:
        admin = init_db(db)
        for year in sorted(years):
            result = grant_annual_entitlements(db, year, actor_id=admin.id)
            print(f"Entitlements for {year}: credited={result['credited']}, skipped={len(result['skipped'])}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
