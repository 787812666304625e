"""Exceptions shared across modules."""

from __future__ import annotations


class ImmutableRecordError(Exception):
    """An append-only record (or an order) was edited or deleted."""
