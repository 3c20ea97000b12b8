"""
chapterhub.api.deps — FastAPI dependency injection
===================================================

Identity comes from a bearer JWT (HS256) issued by the hosted identity
provider; ``sub`` is the member id.  The role is always read from the
``members`` table, never from the token, and mapped to an
:class:`~chapterhub.engine.policy.Actor` using the configured executive
role set.
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from chapterhub.config import ChapterHubConfig, load_config
from chapterhub.database.engine import create_db_engine
from chapterhub.database.models import Member
from chapterhub.engine.policy import Action, Actor, evaluate

_WEAK_SECRETS = frozenset({
    "chapterhub-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Use the signing secret of your identity provider's project."
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()
JWT_AUDIENCE: str | None = os.getenv("JWT_AUDIENCE") or None


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> ChapterHubConfig:
    return load_config()


def get_session(engine: Annotated[Engine, Depends(get_engine)]):
    with Session(engine) as session:
        yield session


def get_token_payload(authorization: Annotated[str | None, Header()] = None) -> dict:
    """Validate the bearer JWT and return its claims. Raises 401 if invalid."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt.decode(
            token,
            JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            audience=JWT_AUDIENCE,
            options={"require": ["sub"], "verify_aud": JWT_AUDIENCE is not None},
        )
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    return payload


def get_current_actor(
    payload: Annotated[dict, Depends(get_token_payload)],
    engine: Annotated[Engine, Depends(get_engine)],
    cfg: Annotated[ChapterHubConfig, Depends(get_config)],
) -> Actor:
    """Resolve the caller to a registered, validated member.

    Raises 403 if the caller is unregistered, or is a non-executive member
    whose registration is still pending.  Pending callers can still reach
    ``/api/auth/me`` and ``POST /api/members/me``, which only need the token.
    """
    member_id = str(payload["sub"])
    with Session(engine) as session:
        member = session.get(Member, member_id)
        if member is None:
            raise HTTPException(status.HTTP_403_FORBIDDEN, "Not a registered member")
        role = member.role
        validated = member.is_validated
    actor = Actor.from_role(member_id, role, cfg.executive_roles)
    if not validated and not actor.executive:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Membership pending validation")
    return actor


def require_executive(actor: Annotated[Actor, Depends(get_current_actor)]) -> Actor:
    decision = evaluate(actor, Action.EXECUTIVE_AREA)
    if not decision.allowed:
        raise HTTPException(status.HTTP_403_FORBIDDEN, decision.reason)
    return actor


CurrentActor = Annotated[Actor, Depends(get_current_actor)]
ExecutiveActor = Annotated[Actor, Depends(require_executive)]
