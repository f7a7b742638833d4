# SQLModel definitions, imported here so Alembic sees the full metadata.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .user import User  # noqa: F401
from .organization import Organization  # noqa: F401
from .org_member import OrgMember  # noqa: F401
from .team import Team  # noqa: F401
from .team_member import TeamMember  # noqa: F401
from .skill import Skill  # noqa: F401
from .skill_version import SkillVersion  # noqa: F401
from .rate_limit import RateLimitCounter, RateLimitConfig  # noqa: F401
