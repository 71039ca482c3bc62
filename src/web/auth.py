"""Caller identity gate.

Authentication happens upstream (reverse proxy / auth middleware), which
forwards the resolved user ID in ``settings.user_id_header``. This module
only checks that an identity is present and, when configured, allowed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.chat.errors import Unauthorized
from src.config import settings

if TYPE_CHECKING:
    from aiohttp import web

logger = logging.getLogger(__name__)


def resolve_user_id(request: web.Request) -> str:
    """Return the caller's user ID or raise ``Unauthorized``."""
    user_id = request.headers.get(settings.user_id_header, "").strip()
    if not user_id:
        logger.warning("Unauthorized request: missing %s (%s)", settings.user_id_header, request.path)
        msg = "Unauthorized"
        raise Unauthorized(msg)

    allowed = settings.get_allowed_user_ids()
    if allowed and user_id not in allowed:
        logger.warning("Unauthorized request: user %s not in allowlist", user_id)
        msg = "Unauthorized"
        raise Unauthorized(msg)

    return user_id
