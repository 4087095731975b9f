"""
Auth0 JWT validation OR dev-mode bypass. Controlled by FF_USE_AUTH0 flag.

A user can belong to several teams. The token carries the memberships in the
`https://docshare.app/teams` claim; the request picks one with the X-Team-Id
header (first membership when absent). The active team decides where documents
land and which conversion queue their jobs go to.
"""

import logging
import time
from dataclasses import dataclass, field, replace
from typing import Optional

import httpx
from jose import jwt, JWTError

from .config import get_settings
from .exceptions import TeamAccessDenied
from .flags import get_flags

logger = logging.getLogger(__name__)

CLAIM_NAMESPACE = "https://docshare.app"


@dataclass(frozen=True)
class TeamMembership:
    team_id: str
    plan: str = "free"
    role: str = "MEMBER"


@dataclass
class AuthenticatedUser:
    user_id: str
    email: str = ""
    name: str = ""
    team_id: str = ""  # active team for this request
    plan: str = "free"  # plan of the active team
    roles: list[str] = field(default_factory=list)
    teams: list[TeamMembership] = field(default_factory=list)

    def membership(self, team_id: str) -> Optional[TeamMembership]:
        for team in self.teams:
            if team.team_id == team_id:
                return team
        return None


# Dev-mode user, returned when FF_USE_AUTH0=false
DEV_USER = AuthenticatedUser(
    user_id="dev-user",
    email="dev@local",
    name="Dev User",
    team_id="dev-team",
    plan="business",
    roles=["admin"],
    teams=[TeamMembership("dev-team", plan="business", role="ADMIN")],
)


def user_from_claims(claims: dict) -> AuthenticatedUser:
    """Build a user from verified token claims. No team is selected yet."""
    teams = []
    for entry in claims.get(f"{CLAIM_NAMESPACE}/teams") or []:
        if isinstance(entry, str):
            teams.append(TeamMembership(entry))
        elif isinstance(entry, dict) and entry.get("id"):
            teams.append(TeamMembership(
                team_id=entry["id"],
                plan=entry.get("plan") or "free",
                role=entry.get("role") or "MEMBER",
            ))

    return AuthenticatedUser(
        user_id=claims.get("sub", ""),
        email=claims.get("email", claims.get(f"{CLAIM_NAMESPACE}/email", "")),
        name=claims.get("name", claims.get(f"{CLAIM_NAMESPACE}/name", "")),
        roles=claims.get(f"{CLAIM_NAMESPACE}/roles", []),
        teams=teams,
    )


def select_team(user: AuthenticatedUser, team_id: str = "") -> AuthenticatedUser:
    """
    Return a copy of `user` acting within `team_id`.
    Raises TeamAccessDenied when the user is not a member.
    """
    if not team_id:
        if not user.teams:
            raise TeamAccessDenied("User does not belong to any team")
        membership = user.teams[0]
    else:
        membership = user.membership(team_id)
        if membership is None:
            logger.warning("User %s denied access to team %s", user.user_id, team_id)
            raise TeamAccessDenied(f"Not a member of team {team_id}")

    return replace(user, team_id=membership.team_id, plan=membership.plan)


class Auth0Client:
    """Validates Auth0 JWT tokens. Caches JWKS keys."""

    def __init__(self):
        self._jwks: Optional[dict] = None
        self._jwks_fetched_at: float = 0
        self._jwks_ttl: int = 600  # 10 minutes

    async def _get_jwks(self, domain: str) -> dict:
        now = time.time()
        if self._jwks and (now - self._jwks_fetched_at) < self._jwks_ttl:
            return self._jwks

        async with httpx.AsyncClient() as client:
            resp = await client.get(f"https://{domain}/.well-known/jwks.json", timeout=10)
            resp.raise_for_status()
            self._jwks = resp.json()
            self._jwks_fetched_at = now
            return self._jwks

    async def verify_token(self, token: str) -> dict:
        """Verify signature, audience and issuer. Returns the claims."""
        settings = get_settings()
        domain = settings.auth0_domain

        jwks = await self._get_jwks(domain)
        kid = jwt.get_unverified_header(token).get("kid")
        key = next((k for k in jwks.get("keys", []) if k["kid"] == kid), None)
        if key is None:
            raise JWTError("Unable to find matching key in JWKS")

        return jwt.decode(
            token,
            {name: key[name] for name in ("kty", "kid", "use", "n", "e")},
            algorithms=[settings.auth0_algorithm],
            audience=settings.auth0_audience,
            issuer=f"https://{domain}/",
        )


# Singleton
_auth0_client = Auth0Client()


async def get_current_user(authorization: str = "", team_id: str = "") -> AuthenticatedUser:
    """
    Resolve the current user and active team.
    If FF_USE_AUTH0 is false, returns the dev user.

    Raises PermissionError for a missing/invalid token and TeamAccessDenied
    when the requested team is not one of the user's.
    """
    user = await authenticate(authorization)
    if user is DEV_USER and not team_id:
        return DEV_USER
    return select_team(user, team_id)


async def authenticate(authorization: str = "") -> AuthenticatedUser:
    """
    Verify the caller only. No team is selected, so memberships are not checked.
    Raises PermissionError for a missing/invalid token.
    """
    if not get_flags().use_auth0:
        return DEV_USER

    if not authorization:
        raise PermissionError("Missing Authorization header")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise PermissionError("Invalid Authorization header. Use: Bearer <token>")

    try:
        claims = await _auth0_client.verify_token(token)
    except JWTError as e:
        raise PermissionError(f"Invalid token: {e}")

    return user_from_claims(claims)
