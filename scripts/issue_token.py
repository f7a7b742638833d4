#!/usr/bin/env python3
"""Sync a local identity and print a bearer token for it.

Stands in for the browser login flow during development.

Usage:
    python scripts/issue_token.py --github-id 1001 --username alice
"""

import argparse
import asyncio

from tskills_registry.core.auth import create_jwt
from tskills_registry.core.config import get_settings
from tskills_registry.core.database import Database
from tskills_registry.core.logging import configure_logging
from tskills_registry.services.registry import RegistryService


async def issue(github_id: int, username: str, email: str | None) -> str:
    settings = get_settings()
    db = Database(settings.database_url)
    try:
        registry = RegistryService(db, settings=settings)
        user = await registry.sync_identity(
            {"github_id": github_id, "username": username, "email": email}
        )
        return create_jwt(user.id, settings=settings)
    finally:
        await db.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Issue a development access token")
    parser.add_argument("--github-id", type=int, required=True)
    parser.add_argument("--username", required=True)
    parser.add_argument("--email", default=None)
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings.log_level, "text")
    print(asyncio.run(issue(args.github_id, args.username, args.email)))


if __name__ == "__main__":
    main()
