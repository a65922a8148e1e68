"""Invoke helpers — call sync or async handlers uniformly.

Perch handlers can be ``def`` or ``async def``. Coroutine functions run
on the request's task; plain functions run in a worker thread so a
blocking handler never stalls other requests.

Usage::

    from perch._internal.invoke import invoke

    result = await invoke(handler, *args, **kwargs)
"""

import functools
import inspect
from typing import Any

import anyio.to_thread


async def invoke(handler: Any, *args: Any, **kwargs: Any) -> Any:
    """Call a handler and await the result if it's awaitable.

    Works with both sync and async callables::

        # async — awaited on the current task
        async def GET(request):
            data = await fetch_data()
            return Response.json(data)

        # sync — runs in a worker thread
        def GET(request):
            return Response.json(read_file())
    """
    if inspect.iscoroutinefunction(handler):
        return await handler(*args, **kwargs)

    call = functools.partial(handler, *args, **kwargs)
    result = await anyio.to_thread.run_sync(call, abandon_on_cancel=True)
    if inspect.isawaitable(result):
        result = await result
    return result
