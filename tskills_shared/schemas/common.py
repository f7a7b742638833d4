"""
Enums and field rules shared by the registry server and its clients.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import NamedTuple, Optional


class Visibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"
    ORG = "org"
    TEAM = "team"


class OrgRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


# Higher rank = more privilege. Used to block grants above the caller's own role.
ORG_ROLE_RANK: dict[OrgRole, int] = {
    OrgRole.MEMBER: 1,
    OrgRole.ADMIN: 2,
    OrgRole.OWNER: 3,
}


class RateLimitAction(str, Enum):
    API = "api"
    PUBLISH = "publish"


# ---------------------------------------------------------------------------
# Field rules
# ---------------------------------------------------------------------------

# Start with a letter, hyphen-separated alphanumeric segments,
# no trailing or doubled hyphens.
SLUG_PATTERN = r"^[a-z][a-z0-9]*(-[a-z0-9]+)*$"
SKILL_NAME_PATTERN = SLUG_PATTERN
USERNAME_PATTERN = r"^[a-zA-Z][a-zA-Z0-9_-]*$"
VERSION_PATTERN = r"^[0-9]+\.[0-9]+\.[0-9]+(-[0-9A-Za-z.-]+)?(\+[0-9A-Za-z.-]+)?$"

MIN_SLUG_LENGTH = 2
MAX_SLUG_LENGTH = 64
MAX_USERNAME_LENGTH = 39  # GitHub username limit
MAX_VERSION_LENGTH = 32
MAX_DESCRIPTION_LENGTH = 500

RESERVED_SKILL_NAMES = frozenset({
    "new", "create", "delete", "update", "list", "help",
    "login", "logout", "whoami", "publish", "install", "uninstall",
    "search", "info", "org", "team", "outdated", "deprecate",
    "sync", "config", "add", "import", "setup", "init", "share", "invite",
    "admin", "api", "www", "app", "registry",
    "undefined", "null", "true", "false",
})

_SLUG_RE = re.compile(SLUG_PATTERN)
_USERNAME_RE = re.compile(USERNAME_PATTERN)
_VERSION_RE = re.compile(VERSION_PATTERN, re.ASCII)


def check_skill_name(name: str) -> str:
    """Return ``name`` if valid, else raise ``ValueError`` naming the rule."""
    if not MIN_SLUG_LENGTH <= len(name) <= MAX_SLUG_LENGTH:
        raise ValueError(
            f"Skill name must be {MIN_SLUG_LENGTH}-{MAX_SLUG_LENGTH} characters"
        )
    if not _SLUG_RE.fullmatch(name):
        raise ValueError(
            "Skill name must be lowercase, start with a letter, and contain only "
            "letters, numbers, and single hyphens"
        )
    if name in RESERVED_SKILL_NAMES:
        raise ValueError(f'"{name}" is a reserved name and cannot be used')
    return name


def check_version(version: str) -> str:
    if len(version) > MAX_VERSION_LENGTH:
        raise ValueError(f"Version must be {MAX_VERSION_LENGTH} characters or less")
    if not _VERSION_RE.fullmatch(version):
        raise ValueError("Version must follow semver format (e.g., 1.0.0, 2.1.3-beta)")
    return version


def is_valid_owner(owner: str) -> bool:
    """Owners are usernames or org slugs."""
    return bool(_USERNAME_RE.fullmatch(owner) or _SLUG_RE.fullmatch(owner))


class SkillRef(NamedTuple):
    owner: str
    name: str
    version: Optional[str] = None

    def __str__(self) -> str:
        base = f"{self.owner}/{self.name}"
        return f"{base}@{self.version}" if self.version else base


def parse_skill_ref(ref: str) -> SkillRef:
    """Parse ``owner/name`` or ``owner/name@version``.

    Raises ``ValueError`` with a message naming the offending part.
    """
    if not ref:
        raise ValueError("Skill reference is required")

    skill_part, _, version = ref.partition("@")
    parts = skill_part.split("/")
    if len(parts) != 2 or not all(parts):
        raise ValueError("Invalid skill format. Use: owner/name or owner/name@version")

    owner, name = parts
    if not is_valid_owner(owner):
        raise ValueError(
            "Invalid owner format. Must start with a letter and contain only "
            "letters, numbers, underscores, or hyphens"
        )
    check_skill_name(name)
    if version:
        check_version(version)
    return SkillRef(owner=owner, name=name, version=version or None)
