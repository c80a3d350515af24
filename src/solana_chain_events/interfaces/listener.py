"""EventListener type - callbacks receiving ordered batches of swap events."""

from __future__ import annotations

from typing import Awaitable, Callable, Union

from solana_chain_events.models.events import SwapEvent

EventListener = Callable[[tuple[SwapEvent, ...]], Union[Awaitable[None], None]]
