"""Users, teams and permissions loaded from a TOML directory file.

Example file::

    [users.alice]
    token = "change-me"
    display_name = "Alice"

    [teams.acme]
    name = "Acme"

    [teams.acme.members]
    alice = ["team_admin"]
    bob = []
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import toml

from core.errors import ConfigurationError

logger = logging.getLogger(__name__)

TEAM_ADMIN = "team_admin"


@dataclass
class User:
    """An authenticated dashboard user."""
    id: str
    display_name: str = ""


@dataclass
class Team:
    """A team and the permissions each member holds in it."""
    id: str
    name: str
    members: Dict[str, List[str]] = field(default_factory=dict)


class IdentityProvider:
    """Resolves bearer tokens to users and checks team membership."""

    def __init__(self, users: Dict[str, User], tokens: Dict[str, str], teams: Dict[str, Team]):
        self._users = users
        self._tokens = tokens
        self._teams = teams

    @classmethod
    def from_file(cls, path: Path) -> "IdentityProvider":
        """Load users and teams from a TOML file.

        Raises:
            ConfigurationError: If the file is missing or malformed
        """
        if not path.exists():
            raise ConfigurationError(f"Identity file not found: {path}")

        logger.info(f"Loading identities from {path}")

        try:
            with open(path, "r") as f:
                data = toml.load(f)
        except Exception as e:
            raise ConfigurationError(f"Failed to parse identity file: {e}")

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict) -> "IdentityProvider":
        users: Dict[str, User] = {}
        tokens: Dict[str, str] = {}
        teams: Dict[str, Team] = {}

        try:
            for user_id, entry in data.get("users", {}).items():
                users[user_id] = User(id=user_id, display_name=entry.get("display_name", user_id))
                token = entry.get("token")
                if token:
                    tokens[token] = user_id

            for team_id, entry in data.get("teams", {}).items():
                members = {
                    member: list(permissions)
                    for member, permissions in entry.get("members", {}).items()
                }
                teams[team_id] = Team(id=team_id, name=entry.get("name", team_id), members=members)
        except (AttributeError, TypeError) as e:
            raise ConfigurationError(f"Invalid identity file: {e}")

        logger.info(f"Loaded {len(users)} users and {len(teams)} teams")
        return cls(users, tokens, teams)

    def get_current_user(self, token: Optional[str]) -> Optional[User]:
        """Return the user a bearer token belongs to, if any."""
        if not token:
            return None
        user_id = self._tokens.get(token)
        return self._users.get(user_id) if user_id else None

    def get_team(self, user_id: str, team_id: str) -> Optional[Team]:
        """Return the team if ``user_id`` is a member of it."""
        team = self._teams.get(team_id)
        if not team or user_id not in team.members:
            return None
        return team

    def has_permission(self, user: User, team: Team, permission: str) -> bool:
        return permission in team.members.get(user.id, [])
