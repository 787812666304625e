"""Owner credential authentication for Django REST Framework.

The admin order surface has exactly one privileged identity: the store
owner.  A request is the owner's when it carries either

* ``X-User-Id: <OWNER_ID>``, or
* ``Authorization: Bearer <OWNER_TOKEN>``

matching the configured values.  There is no broader admin role.

Security decisions
------------------
* **Fail Closed**: an empty ``OWNER_ID`` / ``OWNER_TOKEN`` setting never
  matches, so an unconfigured deployment has no owner at all.
* Comparisons use ``hmac.compare_digest`` (constant time).
* Non-matching credentials are **not** an authentication failure: the
  request simply stays anonymous and ``IsOwner`` answers with a 404, so a
  caller cannot probe whether a given order exists.
"""

from __future__ import annotations

import hmac

import structlog
from django.conf import settings

from rest_framework.authentication import BaseAuthentication

logger = structlog.get_logger(__name__)


class OwnerPrincipal:
    """Lightweight user object for requests authenticated as the owner.

    No Django ``User`` row backs the owner; DRF only needs
    ``is_authenticated`` and the throttles need a stable ``pk``.
    """

    is_authenticated = True
    is_active = True

    def __init__(self, owner_id: str, credential: str) -> None:
        self.pk = owner_id or "owner"
        self.credential = credential

    def __str__(self) -> str:
        return f"owner({self.credential})"


def _matches(supplied: str, expected: str) -> bool:
    if not supplied or not expected:
        return False
    return hmac.compare_digest(supplied.encode(), expected.encode())


def resolve_owner(headers) -> OwnerPrincipal | None:
    """Return the owner principal for *headers*, or ``None``."""
    owner_id = settings.OWNER_ID
    owner_token = settings.OWNER_TOKEN

    if _matches(headers.get("X-User-Id", ""), owner_id):
        return OwnerPrincipal(owner_id, credential="user-id")

    auth_header = headers.get("Authorization", "")
    parts = auth_header.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        if _matches(parts[1], owner_token):
            return OwnerPrincipal(owner_id, credential="bearer")
    return None


class OwnerCredentialAuthentication(BaseAuthentication):
    """DRF authentication class recognising the owner credentials."""

    def authenticate(self, request):
        """Return ``(OwnerPrincipal, None)`` or ``None`` (not the owner)."""
        principal = resolve_owner(request.headers)
        if principal is None:
            return None
        structlog.contextvars.bind_contextvars(actor="owner")
        logger.info("owner_authenticated", credential=principal.credential)
        return (principal, None)
