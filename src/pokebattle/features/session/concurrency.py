from __future__ import annotations

import asyncio
import os
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any

__all__ = ["run_blocking"]


def _worker_count() -> int:
    configured = os.environ.get("POKEBATTLE_WORKERS", "")
    if configured.strip().isdigit():
        return max(1, int(configured))
    return max(1, min(32, os.cpu_count() or 1))


_EXECUTOR = ThreadPoolExecutor(max_workers=_worker_count(), thread_name_prefix="pokebattle-session")


async def run_blocking(func: Callable[..., Any], /, *args: Any, **kwargs: Any) -> Any:
    """Run a blocking service call on the bounded session pool."""

    loop = asyncio.get_running_loop()
    bound = partial(func, *args, **kwargs)
    return await loop.run_in_executor(_EXECUTOR, bound)
