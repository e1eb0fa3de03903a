"""
TCP forwarding engine.

Each listening port runs an asyncio server acting as a minimal HTTP proxy:
the first request line names the upstream target, ``CONNECT`` requests are
answered with ``200 OK`` and any other method has its request line replayed
upstream. After that, bytes are relayed in both directions until one side
closes.
"""

import asyncio
import logging
import socket
from collections import defaultdict
from typing import Any, Dict, List, Optional, Set, Tuple
from urllib.parse import urlsplit

from ...core.interfaces.engine import IForwardEngine, EngineResult

logger = logging.getLogger(__name__)

BUFFER_SIZE = 1 << 16
DEFAULT_HTTP_PORT = 80
CONNECT_ESTABLISHED = b"HTTP/1.1 200 OK\r\n\r\n"


def hostport(target: str) -> Tuple[str, int]:
    """
    Resolve a request target to the upstream host and port.

    Authority form (``host:port``) is used as-is; absolute form
    (``http://host[:port]/path``) defaults to port 80.

    Raises:
        ValueError: For empty, origin-form or asterisk-form targets
    """
    if not target:
        raise ValueError("empty request target")
    if target[0] == '/':
        raise ValueError("origin-form not yet supported")
    if target[0] == '*':
        raise ValueError("asterisk-form not yet supported")

    if "://" not in target:
        host, sep, port = target.rpartition(':')
        if not sep or not host or not port.isdigit():
            raise ValueError(f"invalid authority-form target: {target!r}")
        return host.strip('[]'), int(port)

    parsed = urlsplit(target)
    if not parsed.hostname:
        raise ValueError(f"absolute-form target without host: {target!r}")
    return parsed.hostname, parsed.port or DEFAULT_HTTP_PORT


class TcpForwardEngine(IForwardEngine):
    """
    Forwarding engine built on ``asyncio.start_server``.

    Starting a port that is already listening and stopping one that is not
    are successful no-ops.
    """

    def __init__(self, bind_host: str = "0.0.0.0", dial_timeout: float = 10.0,
                 buffer_size: int = BUFFER_SIZE):
        self._bind_host = bind_host
        self._dial_timeout = dial_timeout
        self._buffer_size = buffer_size
        self._servers: Dict[int, asyncio.AbstractServer] = {}
        self._connections: Dict[int, Set["asyncio.Task[Any]"]] = defaultdict(set)
        self._lock = asyncio.Lock()

    def listening_ports(self) -> List[int]:
        return sorted(self._servers)

    def connection_count(self, port: int) -> int:
        """Number of live client connections accepted on ``port``."""
        return len(self._connections.get(port, ()))

    def bound_address(self, port: int) -> Optional[Tuple[str, int]]:
        """Actual socket address of the server bound for ``port``."""
        server = self._servers.get(port)
        if server is None or not server.sockets:
            return None
        address = server.sockets[0].getsockname()
        return address[0], address[1]

    async def start(self, port: int) -> EngineResult:
        """Start listening on the given port."""
        async with self._lock:
            if port in self._servers:
                logger.debug(f"Already listening on :{port}")
                return EngineResult.success()

            try:
                server = await asyncio.start_server(
                    lambda reader, writer: self._accept(port, reader, writer),
                    host=self._bind_host,
                    port=port,
                    reuse_address=True,
                )
            except OSError as e:
                reason = f"failed to listen on {self._bind_host}:{port}: {e.strerror or e}"
                logger.error(reason)
                return EngineResult.failure(reason)

            self._servers[port] = server

        logger.info(f"forward: listening on {self._bind_host}:{port}")
        return EngineResult.success()

    async def stop(self, port: int) -> EngineResult:
        """Stop listening on the given port and drop its connections."""
        async with self._lock:
            server = self._servers.pop(port, None)
            if server is None:
                logger.debug(f"Not listening on :{port}")
                return EngineResult.success()

            server.close()

            connections = self._connections.pop(port, set())
            for task in connections:
                task.cancel()
            if connections:
                await asyncio.gather(*connections, return_exceptions=True)

            try:
                await server.wait_closed()
            except OSError as e:
                return EngineResult.failure(f"failed to close listener on :{port}: {e}")

        logger.info(f"forward: stopped listening on {self._bind_host}:{port}")
        return EngineResult.success()

    async def _accept(self, port: int, reader: asyncio.StreamReader,
                      writer: asyncio.StreamWriter) -> None:
        task = asyncio.current_task()
        assert task is not None
        self._connections[port].add(task)
        try:
            await self._serve(reader, writer)
        finally:
            connections = self._connections.get(port)
            if connections is not None:
                connections.discard(task)

    async def _serve(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        peer = writer.get_extra_info('peername')
        self._enable_keepalive(writer)
        logger.debug(f"accepted {peer}")

        upstream_writer: Optional[asyncio.StreamWriter] = None
        try:
            request_line = await self._read_request_line(reader)
            parts = request_line.decode('latin-1').split(' ')
            if len(parts) < 2:
                raise ValueError(f"invalid request-line: {request_line!r}")
            method, target = parts[0], parts[1]

            host, target_port = hostport(target.strip())
            upstream_reader, upstream_writer = await asyncio.wait_for(
                asyncio.open_connection(host, target_port), timeout=self._dial_timeout)
            self._enable_keepalive(upstream_writer)
            logger.info(f"{peer} {request_line.decode('latin-1').strip()}")

            if method == "CONNECT":
                await self._discard_headers(reader)
                writer.write(CONNECT_ESTABLISHED)
                await writer.drain()
            else:
                upstream_writer.write(request_line)
                await upstream_writer.drain()

            await self._relay(reader, writer, upstream_reader, upstream_writer)
        except (ValueError, OSError, asyncio.TimeoutError) as e:
            logger.warning(f"{peer}: {e}")
        finally:
            for stream in (upstream_writer, writer):
                if stream is not None:
                    stream.close()
            logger.debug(f"disconnected {peer}")

    async def _read_request_line(self, reader: asyncio.StreamReader) -> bytes:
        # Blank lines before the request line are ignored
        while True:
            line = await reader.readline()
            if not line:
                raise ConnectionError("client closed before sending a request")
            if line.strip():
                return line

    async def _discard_headers(self, reader: asyncio.StreamReader) -> None:
        while True:
            line = await reader.readline()
            if not line:
                raise ConnectionError("client closed during CONNECT headers")
            if not line.strip():
                return

    async def _relay(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter,
                     upstream_reader: asyncio.StreamReader,
                     upstream_writer: asyncio.StreamWriter) -> None:
        # The connection ends as soon as either direction reaches EOF
        pipes = {
            asyncio.ensure_future(self._pipe(reader, upstream_writer)),
            asyncio.ensure_future(self._pipe(upstream_reader, writer)),
        }
        try:
            await asyncio.wait(pipes, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for pipe in pipes:
                pipe.cancel()
            await asyncio.gather(*pipes, return_exceptions=True)

    async def _pipe(self, src: asyncio.StreamReader, dst: asyncio.StreamWriter) -> None:
        try:
            while True:
                chunk = await src.read(self._buffer_size)
                if not chunk:
                    break
                dst.write(chunk)
                await dst.drain()
        except OSError as e:
            logger.debug(f"relay interrupted: {e}")
        finally:
            if not dst.is_closing() and dst.can_write_eof():
                try:
                    dst.write_eof()
                except OSError as e:
                    logger.debug(f"half-close failed: {e}")

    def _enable_keepalive(self, writer: asyncio.StreamWriter) -> None:
        sock = writer.get_extra_info('socket')
        if sock is not None:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
