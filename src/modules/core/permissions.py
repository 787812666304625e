"""Permissions for owner-only endpoints."""

from __future__ import annotations

import structlog

from rest_framework.exceptions import NotFound
from rest_framework.permissions import BasePermission

from modules.core.authentication import OwnerPrincipal

logger = structlog.get_logger(__name__)


class IsOwner(BasePermission):
    """Allow only the owner; everyone else gets a plain 404.

    Raising ``NotFound`` (instead of returning ``False``, which DRF turns
    into 401/403) makes a denied request indistinguishable from a request
    for an order id that does not exist.
    """

    def has_permission(self, request, view) -> bool:
        if isinstance(request.user, OwnerPrincipal):
            return True
        logger.warning(
            "owner_access_denied",
            method=request.method,
            path=request.path,
        )
        raise NotFound()
