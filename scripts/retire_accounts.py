"""
Script to retire a batch of accounts from the command line

    python scripts/retire_accounts.py teacher 42 43 --reason "Resigned"
"""

import argparse
import asyncio
import json
import sys
import os
import logging

# Add current directory to path to allow imports from core, models, etc.
sys.path.append(os.getcwd())

from core.config import settings
from core.database import async_session_maker, engine
from core.exceptions import RetirementException
from core.logging import setup_logging
from retirement.coordinator import RetirementCoordinator
from retirement.profiles import PROFILES, get_profile

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Archive and remove school accounts")
    parser.add_argument("role", help=f"Account role ({', '.join(PROFILES)})")
    parser.add_argument("user_ids", nargs="+", help="Numeric user ids to retire")
    parser.add_argument("--reason", default=None, help="Archive reason")
    parser.add_argument(
        "--drift-policy",
        choices=["skip", "fail"],
        default=settings.SCHEMA_DRIFT_POLICY,
        help="Abort when an expected optional table is missing",
    )
    return parser.parse_args(argv)


async def retire(args) -> int:
    profile = get_profile(args.role)
    if profile is None:
        logger.error(f"Unknown role {args.role!r}; expected one of {', '.join(PROFILES)}")
        return 2

    try:
        async with async_session_maker() as session:
            coordinator = RetirementCoordinator(session, profile, drift_policy=args.drift_policy)
            result = await coordinator.retire(args.user_ids, args.reason)
    except RetirementException as e:
        logger.error(f"Retirement failed: {e}")
        return 1
    finally:
        await engine.dispose()

    print(json.dumps({
        "archived": [account.to_response() for account in result.archived],
        "summary": result.summary(),
    }, indent=2))
    return 0


if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(retire(parse_args())))
