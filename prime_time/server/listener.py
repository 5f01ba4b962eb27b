from __future__ import annotations

import errno
import socket
import socketserver
import threading
import time
from dataclasses import dataclass

from loguru import logger

from prime_time.core.config import ServerSettings
from prime_time.server.constants import RECV_BYTES, FaultReason
from prime_time.server.session import PrimeSession
from prime_time.server.stats import ServerStats

# accept() errors that mean "try again shortly" rather than "listener is broken".
_TRANSIENT_ACCEPT_ERRNOS = frozenset(
    {errno.EMFILE, errno.ENFILE, errno.ENOBUFS, errno.ENOMEM, errno.ECONNABORTED}
)


@dataclass(frozen=True)
class ListenerError(Exception):
    code: str
    message: str = ""


class _Handler(socketserver.BaseRequestHandler):
    server: _ThreadingServer

    def setup(self) -> None:
        self.connection_id = self.server.stats.connection_opened()
        host, port = self.client_address[:2]
        self.label = f"conn-{self.connection_id} {host}:{port}"
        self.session = PrimeSession(
            max_line_bytes=self.server.settings.max_line_bytes,
            malformed_reply=self.server.settings.malformed_reply,
            label=self.label,
        )
        idle_timeout = self.server.settings.idle_timeout_seconds
        if idle_timeout is not None:
            self.request.settimeout(float(idle_timeout))
        logger.debug(f"[{self.label}] connected")

    def handle(self) -> None:  # noqa: D401
        """Feed socket bytes through the session until it closes."""
        session = self.session
        try:
            while not session.closed:
                chunk = self.request.recv(RECV_BYTES)
                answered_before = session.answered
                replies = session.feed(chunk) if chunk else session.finish()
                if replies:
                    self.request.sendall(b"".join(replies))
                self.server.stats.record_answers(session.answered - answered_before)
        except TimeoutError:
            logger.debug(f"[{self.label}] idle timeout")
            session.fault(FaultReason.IDLE_TIMEOUT)
        except OSError as exc:
            logger.debug(f"[{self.label}] connection error: {exc}")
            session.fault(FaultReason.IO_ERROR)

    def finish(self) -> None:
        session = self.session
        stats = self.server.stats
        if session.fault_kind is FaultReason.MALFORMED:
            stats.record_malformed()
        elif session.fault_kind is FaultReason.LINE_TOO_LONG:
            stats.record_oversized()
        elif session.fault_kind is not None:
            stats.record_io_fault()
        stats.connection_closed()

        suffix = f" reason={session.fault_reason}" if session.fault_reason else ""
        logger.debug(
            f"[{self.label}] closed state={session.state} "
            f"lines={session.lines_processed}{suffix}"
        )


class _ThreadingServer(socketserver.ThreadingMixIn, socketserver.TCPServer):
    daemon_threads = True
    allow_reuse_address = True
    request_queue_size = 128

    def __init__(self, address, settings: ServerSettings, stats: ServerStats) -> None:  # type: ignore[no-untyped-def]
        self.settings = settings
        self.stats = stats
        super().__init__(address, _Handler)

    def get_request(self):  # type: ignore[no-untyped-def]
        try:
            return super().get_request()
        except OSError as exc:
            if exc.errno in _TRANSIENT_ACCEPT_ERRNOS:
                # Re-raised as OSError: socketserver drops this accept and loops.
                logger.warning(f"accept() failed, retrying: {exc}")
                time.sleep(0.05)
                raise
            # Not an OSError, so it escapes socketserver's serve_forever.
            logger.error(f"accept() failed, listening socket unusable: {exc}")
            raise ListenerError("accept_failed", str(exc)) from exc

    def handle_error(self, request, client_address) -> None:  # type: ignore[no-untyped-def]
        logger.exception(f"Unhandled error serving {client_address}")

    def shutdown_request(self, request) -> None:  # type: ignore[no-untyped-def]
        try:
            request.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        self.close_request(request)


class PrimeTimeServer:
    def __init__(
        self, *, settings: ServerSettings, stats: ServerStats | None = None
    ) -> None:
        self._settings = settings
        self._stats = stats or ServerStats()
        self._thread: threading.Thread | None = None
        self._server: _ThreadingServer | None = None
        self._shutdown = threading.Event()
        self._failure: BaseException | None = None

    @property
    def settings(self) -> ServerSettings:
        return self._settings

    @property
    def stats(self) -> ServerStats:
        return self._stats

    @property
    def address(self) -> tuple[str, int]:
        if self._server is None:
            return (self._settings.host, int(self._settings.port))
        host, port = self._server.server_address[:2]
        return (str(host), int(port))

    def start(self) -> None:
        """Bind and serve on a background thread.

        Raises ``ListenerError`` if the address cannot be bound.
        """
        if self._server is not None:
            return
        addr = (self._settings.host, int(self._settings.port))
        try:
            self._server = _ThreadingServer(addr, self._settings, self._stats)
        except OSError as exc:
            logger.error(f"Failed to bind {addr[0]}:{addr[1]}: {exc}")
            raise ListenerError("bind_failed", str(exc)) from exc

        self._shutdown.clear()
        self._failure = None
        server = self._server

        def _serve() -> None:
            try:
                server.serve_forever(poll_interval=0.5)
            except BaseException as exc:  # noqa: BLE001
                logger.exception(f"Listener failed: {exc}")
                self._failure = exc
                self._shutdown.set()

        self._thread = threading.Thread(
            target=_serve, name="prime-time-listener", daemon=True
        )
        self._thread.start()
        host, port = self.address
        logger.info(f"Prime Time listening on {host}:{port}")

    def request_stop(self) -> None:
        """Ask ``serve_forever`` to return. Safe to call from a signal handler."""
        self._shutdown.set()

    def serve_forever(self) -> None:
        """Serve until ``request_stop`` is called or the listener dies."""
        self.start()
        try:
            while not self._shutdown.wait(0.5):
                pass
        finally:
            self.stop()
        if isinstance(self._failure, ListenerError):
            raise self._failure
        if self._failure is not None:
            raise ListenerError("listener_failed", str(self._failure)) from self._failure

    def stop(self) -> None:
        self._shutdown.set()
        server, self._server = self._server, None
        if server is None:
            return
        if self._failure is None:
            server.shutdown()
        if self._thread is not None:
            self._thread.join(timeout=2)
            self._thread = None
        server.server_close()
        logger.info(f"Prime Time stopped: {self._stats.snapshot()}")
