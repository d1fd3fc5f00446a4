"""
Authentication for library routes.

The client signs in with Supabase Auth and sends the access token as a Bearer
header. Library reads/writes go through a client scoped to that token so row
level security keeps each user inside their own `core.medias` rows.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, HTTPException, Request
from supabase import Client

from geeklogg_backend.db import create_supabase_anon_client, create_supabase_user_client

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthenticatedUser:
    id: str
    email: str | None
    token: str


def get_bearer_token(request: Request) -> str | None:
    """
    Extract the Bearer token from the Authorization header, or None.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def require_user(request: Request) -> AuthenticatedUser:
    token = get_bearer_token(request)
    if token:
        try:
            user_response = create_supabase_anon_client().auth.get_user(token)
        except Exception as e:
            logger.warning(f"Failed to validate token: {e}")
            user_response = None

        if user_response and user_response.user:
            return AuthenticatedUser(
                id=str(user_response.user.id),
                email=user_response.user.email,
                token=token,
            )

    raise HTTPException(
        status_code=401,
        detail="Authentication required. Please provide a valid access token.",
        headers={"WWW-Authenticate": "Bearer"},
    )


CurrentUser = Annotated[AuthenticatedUser, Depends(require_user)]


def get_user_db(user: CurrentUser) -> Client:
    """
    Supabase client that carries the user's token, so RLS applies.
    """
    return create_supabase_user_client(user.token)


UserSupabaseClient = Annotated[Client, Depends(get_user_db)]
