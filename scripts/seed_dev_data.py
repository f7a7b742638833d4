#!/usr/bin/env python3
"""Seed a development database with users, an organization, a team and skills.

Usage:
    python scripts/seed_dev_data.py

Uses TSKILLS_DATABASE_URL (or the default localhost database). Creates the
tables if they do not exist. Not idempotent: run it against a fresh database.
"""

import asyncio

from tskills_registry.core.auth import Principal
from tskills_registry.core.config import get_settings
from tskills_registry.core.database import Database
from tskills_registry.core.logging import configure_logging
from tskills_registry.services.registry import RegistryService

USERS = [
    (1001, "alice", "alice@acme.dev"),
    (1002, "bob", "bob@acme.dev"),
    (1003, "carol", "carol@acme.dev"),
]

SKILL_CONTENT = """---
name: {name}
description: {description}
---

# {name}

Instructions for the agent go here.
"""


async def seed() -> None:
    settings = get_settings()
    db = Database(settings.database_url)
    await db.init_db(settings.default_rate_limits)
    registry = RegistryService(db, settings=settings)

    try:
        users = {}
        for github_id, username, email in USERS:
            user = await registry.sync_identity(
                {"github_id": github_id, "username": username, "email": email}
            )
            users[username] = Principal(user_id=user.id, username=user.username)

        alice, bob = users["alice"], users["bob"]

        await registry.create_organization(alice, {"slug": "acme-robotics", "name": "Acme Robotics"})
        await registry.add_member(alice, "acme-robotics", {"username": "bob", "role": "admin"})
        await registry.add_member(alice, "acme-robotics", {"username": "carol"})
        await registry.create_team(alice, "acme-robotics", {"slug": "platform", "name": "Platform"})
        await registry.add_team_member(alice, "acme-robotics", "platform", "carol")

        skills = [
            (alice, {"name": "code-review", "description": "Review diffs for defects",
                     "tags": ["review"], "tools": ["claude"]}, ["1.0.0", "1.1.0-beta.1", "1.1.0"]),
            (alice, {"name": "scratchpad", "description": "Private notes", "visibility": "private"}, ["0.1.0"]),
            (bob, {"name": "release-notes", "description": "Draft release notes", "org": "acme-robotics",
                   "tags": ["docs"]}, ["2.0.0"]),
            (bob, {"name": "deploy-runbook", "description": "Platform deploy steps", "org": "acme-robotics",
                   "team": "platform"}, ["0.3.0", "0.10.0"]),
        ]
        for principal, meta, versions in skills:
            skill = await registry.publish_skill(principal, meta)
            for version in versions:
                content = SKILL_CONTENT.format(name=skill.name, description=skill.description)
                await registry.publish_version(
                    principal, f"{skill.owner}/{skill.name}", {"version": version, "content": content}
                )
        print("Seeded development data.")
    finally:
        await db.dispose()


if __name__ == "__main__":
    configure_logging(get_settings().log_level, "text")
    asyncio.run(seed())
