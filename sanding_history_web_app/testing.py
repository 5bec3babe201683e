import asyncio
import time
from collections.abc import Callable

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse


def wait_for(
    condition: Callable[[], bool],
    timeout: float = 5.0,
    poll_interval: float = 0.01,
    error_message: str = "Condition not met within timeout",
) -> None:
    """Wait for a condition to become true, polling at regular intervals.

    Raises TimeoutError if the condition is not met within the timeout period.
    """
    start_time = time.monotonic()
    while not condition():
        if time.monotonic() - start_time > timeout:
            raise TimeoutError(error_message)
        time.sleep(poll_interval)


def create_slow_app(delay_seconds: float) -> FastAPI:
    """A FastAPI app whose only endpoint answers after delay_seconds, for drain tests."""
    app = FastAPI()

    @app.get("/slow")
    async def slow() -> PlainTextResponse:
        await asyncio.sleep(delay_seconds)
        return PlainTextResponse("done")

    return app
