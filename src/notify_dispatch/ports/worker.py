"""Lifecycle protocol for standing background loops."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class IBackgroundWorker(Protocol):
    async def start(self) -> None:
        """Start the loop."""
        ...

    async def stop(self) -> None:
        """Stop the loop, waiting briefly for the current pass."""
        ...
