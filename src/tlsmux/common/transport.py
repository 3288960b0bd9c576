"""
TLSMux Transport Module
Secure transport capability used by the reactor for each client connection.
"""

import logging
import socket
import ssl

from abc import ABC, abstractmethod
from typing import Any, Optional

from .constants import DEFAULT_HANDSHAKE_TIMEOUT, DEFAULT_WRITE_TIMEOUT
from ..exceptions import InitError, HandshakeError, ReadError, SendError


log = logging.getLogger(__name__)


class SecureTransport(ABC):
    """
    Per-connection secure channel operations.

    A session is whatever object the implementation hands back from
    handshake(); the reactor only stores it and passes it back in.
    Sessions must expose fileno() so they can be waited on.
    """

    @abstractmethod
    def handshake(self, sock: socket.socket) -> Any:
        """
        Run the server-side handshake on an accepted raw connection.

        Returns:
            Session object for the connection

        Raises:
            HandshakeError: If the handshake fails
        """

    @abstractmethod
    def read(self, session: Any, max_len: int) -> Optional[bytes]:
        """
        Read up to max_len plaintext bytes.

        Returns:
            Bytes read, b'' on orderly end of data, None if nothing is
            available yet

        Raises:
            ReadError: On transport fault
        """

    @abstractmethod
    def write(self, session: Any, data: bytes) -> int:
        """
        Write plaintext bytes to the client.

        Returns:
            Number of bytes written

        Raises:
            SendError: On transport fault
        """

    @abstractmethod
    def close(self, session: Any) -> None:
        """Release transport resources for a session. Called once."""

    def pending(self, session: Any) -> int:
        """Plaintext bytes already buffered inside the transport."""
        return 0


class TLSTransport(SecureTransport):
    """
    TLS transport on top of the stdlib ssl module.

    Example usage:
        transport = TLSTransport(certfile="cert.pem", keyfile="key.pem")
        server = Server(port=6666, transport=transport)
    """

    def __init__(
        self,
        certfile: str,
        keyfile: str,
        handshake_timeout: float = DEFAULT_HANDSHAKE_TIMEOUT,
        write_timeout: float = DEFAULT_WRITE_TIMEOUT,
    ):
        self.certfile = certfile
        self.keyfile = keyfile
        self.handshake_timeout = handshake_timeout
        self.write_timeout = write_timeout

        try:
            context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
            context.minimum_version = ssl.TLSVersion.TLSv1_2
            context.load_cert_chain(certfile, keyfile)
        except OSError as e:
            raise InitError(f"Unable to create TLS context: {e}") from e

        self._context = context

    def handshake(self, sock: socket.socket) -> ssl.SSLSocket:
        # Blocks the reactor for at most handshake_timeout
        sock.settimeout(self.handshake_timeout)

        session = None
        try:
            session = self._context.wrap_socket(
                sock,
                server_side=True,
                do_handshake_on_connect=False,
            )
            session.do_handshake()
        except (OSError, ValueError) as e:
            if session is not None:
                session.close()
            raise HandshakeError(f"TLS handshake failed: {e}") from e

        session.setblocking(False)
        log.debug(f"TLS session established: {session.version()} {session.cipher()[0]}")
        return session

    def read(self, session: ssl.SSLSocket, max_len: int) -> Optional[bytes]:
        try:
            return session.recv(max_len)
        except (ssl.SSLWantReadError, ssl.SSLWantWriteError):
            # Partial TLS record, the rest arrives later
            return None
        except ssl.SSLZeroReturnError:
            return b''
        except OSError as e:
            raise ReadError(f"TLS read failed: {e}") from e

    def write(self, session: ssl.SSLSocket, data: bytes) -> int:
        try:
            session.settimeout(self.write_timeout)
            session.sendall(data)
        except OSError as e:
            raise SendError(f"TLS write failed: {e}") from e
        finally:
            if session.fileno() != -1:
                session.setblocking(False)

        return len(data)

    def close(self, session: ssl.SSLSocket) -> None:
        session.close()

    def pending(self, session: ssl.SSLSocket) -> int:
        return session.pending()
