"""Output relay: streams a sandbox's combined stdout/stderr as text chunks."""

from __future__ import annotations

import codecs
import inspect
import logging
from collections.abc import Awaitable, Callable

from execution.errors import StreamError
from execution.provider import OutputStream, SandboxHandle, SandboxProvider

logger = logging.getLogger(__name__)

OutputCallback = Callable[[str], Awaitable[None] | None]


class OutputSubscription:
    """Async iterator of decoded output chunks for one attach.

    Ends for good at end-of-stream; ``close()`` releases the underlying
    stream early. Multibyte characters split across reads are joined.
    """

    def __init__(self, stream: OutputStream, sandbox_name: str):
        self._stream = stream
        self._sandbox_name = sandbox_name
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._finished = False
        self._closed = False

    @property
    def finished(self) -> bool:
        return self._finished

    def __aiter__(self) -> OutputSubscription:
        return self

    async def __anext__(self) -> str:
        while not self._finished:
            try:
                data = await self._stream.read()
            except (OSError, RuntimeError, ValueError) as exc:
                logger.warning("Output stream of %s ended abnormally: %s", self._sandbox_name, exc)
                data = b""
            if not data:
                tail = self._decoder.decode(b"", final=True)
                await self.close()
                if tail:
                    return tail
                break
            text = self._decoder.decode(data)
            if text:
                return text
        raise StopAsyncIteration

    async def close(self) -> None:
        self._finished = True
        if self._closed:
            return
        self._closed = True
        await self._stream.close()
        status = self._stream.exit_status
        if status not in (None, 0):
            logger.warning("Output stream of %s closed with status %s", self._sandbox_name, status)

    async def __aenter__(self) -> OutputSubscription:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


class OutputRelay:
    def __init__(self, provider: SandboxProvider):
        self.provider = provider

    async def subscribe(self, sandbox: SandboxHandle) -> OutputSubscription:
        try:
            stream = await self.provider.attach(sandbox)
        except (RuntimeError, OSError) as exc:
            raise StreamError(f"Failed to attach to sandbox {sandbox.name}: {exc}") from exc
        return OutputSubscription(stream, sandbox.name)

    async def attach(self, sandbox: SandboxHandle, on_data: OutputCallback) -> None:
        """Push every chunk to ``on_data`` until the stream ends."""
        async with await self.subscribe(sandbox) as subscription:
            async for chunk in subscription:
                result = on_data(chunk)
                if inspect.isawaitable(result):
                    await result
