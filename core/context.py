"""
Context management utilities for shop (tenant) isolation handling.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Optional
from uuid import UUID

# Context variable to hold the ID of the current active shop
# Using contextvars ensures thread-safety and async compatibility
_current_shop_id: ContextVar[Optional[UUID]] = ContextVar("current_shop_id", default=None)


def set_current_shop_id(shop_id: UUID):
    """
    Sets the shop UUID for the current execution context.
    """
    _current_shop_id.set(shop_id)


def get_current_shop_id() -> Optional[UUID]:
    """
    Retrieves the shop UUID from the current execution context.
    Returns None if no context is active.
    """
    return _current_shop_id.get()


def reset_current_shop_id():
    """
    Resets the context variable to None.
    """
    _current_shop_id.set(None)


@contextmanager
def shop_context(shop_id: UUID):
    """
    Activates a shop for the duration of a block and restores the previous one afterwards.
    Used by background workers, which have no request to carry the tenant.
    """
    token = _current_shop_id.set(shop_id)
    try:
        yield
    finally:
        _current_shop_id.reset(token)
