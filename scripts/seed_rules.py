"""Seed script for default payroll rules.

Run with:
    python scripts/seed_rules.py [--database-url URL]

Creates the payout tables if needed and inserts one default rule per role
(service agent, content creator, developer, designer, marketing specialist).
Existing rules with the same name are left untouched.
"""

from __future__ import annotations

import argparse
import asyncio

from payout_engine.database import create_session_factory, create_tables, get_engine
from payout_engine.services.rule_service import PayrollRuleService


async def seed(database_url: str | None = None) -> None:
    engine = get_engine(database_url)
    await create_tables(engine)
    session_factory = create_session_factory(engine)

    async with session_factory() as session:
        created = await PayrollRuleService(session).seed_default_rules()
        await session.commit()

    await engine.dispose()

    for rule in created:
        print(f"Created rule: {rule.name} ({rule.target_label}, {rule.rate_type} {rule.amount})")
    if not created:
        print("Default rules already present, nothing to do.")


def main() -> None:
    """Run seed script."""
    parser = argparse.ArgumentParser(description="Seed default payroll rules")
    parser.add_argument(
        "--database-url",
        help="Database URL (defaults to DATABASE_URL from the environment)",
    )
    args = parser.parse_args()

    print("Seeding payroll rules...")
    asyncio.run(seed(args.database_url))
    print("\nDone!")


if __name__ == "__main__":
    main()
