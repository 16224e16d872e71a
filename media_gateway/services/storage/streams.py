"""Async readable adapters fed to backend uploads."""

from typing import AsyncIterator, Protocol

import httpx


class AsyncReadable(Protocol):
    """Anything exposing ``async read(size)`` like an async file object."""

    async def read(self, size: int = -1) -> bytes: ...


class IteratorReader:
    """Expose an async byte iterator through ``read(size)``."""

    def __init__(self, chunks: AsyncIterator[bytes]):
        self._chunks = chunks
        self._buffer = bytearray()
        self._exhausted = False

    async def read(self, size: int = -1) -> bytes:
        while not self._exhausted and (size < 0 or len(self._buffer) < size):
            try:
                self._buffer.extend(await self._chunks.__anext__())
            except StopAsyncIteration:
                self._exhausted = True

        if size < 0 or size >= len(self._buffer):
            data = bytes(self._buffer)
            self._buffer.clear()
            return data

        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data


class HttpxStreamReader(IteratorReader):
    """Read the body of a streamed ``httpx`` response incrementally."""

    def __init__(self, response: httpx.Response):
        super().__init__(response.aiter_bytes())
        self.response = response


class CountingReader:
    """Wrap a readable and count the bytes handed out."""

    def __init__(self, inner: AsyncReadable):
        self._inner = inner
        self.bytes_read = 0

    async def read(self, size: int = -1) -> bytes:
        data = await self._inner.read(size)
        self.bytes_read += len(data)
        return data
