"""Shared helpers for bounding calls into the message store."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from triprelay.errors import OperationTimeoutError, PersistenceError, RelayError

T = TypeVar("T")


async def bounded_store_call(call: Awaitable[T], timeout: float | None, what: str) -> T:
    """Await a store call, mapping its failures onto the relay taxonomy.

    ``TimeoutError`` becomes :class:`OperationTimeoutError`; any other
    non-relay exception becomes :class:`PersistenceError`.
    """
    try:
        return await asyncio.wait_for(call, timeout=timeout)
    except RelayError:
        raise
    except TimeoutError as exc:
        raise OperationTimeoutError(f"{what} timed out after {timeout}s") from exc
    except Exception as exc:
        raise PersistenceError(f"{what} failed: {exc}") from exc
