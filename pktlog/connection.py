"""Lifecycle of one logged connection: handshake, payloads, teardown."""

import logging
from typing import Optional

from .context import PacketContext
from .errors import PacketLogError
from .segmenter import SegmentWriter
from .sink import PacketSink

logger = logging.getLogger("pktlog")


class ConnectionLog:
    """Synthesizes the packets of one intercepted connection into a sink.

    The client context carries client -> server packets, the server context
    the reverse. After the first failure the connection stops logging.
    """

    def __init__(
        self,
        sink: PacketSink,
        src_addr: str,
        src_port,
        dst_addr: str,
        dst_port,
        writer: Optional[SegmentWriter] = None,
    ):
        src_hw_addr, dst_hw_addr = sink.hw_addrs()
        self.client = PacketContext.from_strings(
            src_addr, src_port, dst_addr, dst_port,
            src_hw_addr=src_hw_addr, dst_hw_addr=dst_hw_addr,
        )
        self.server = self.client.reversed()
        self.server.src_hw_addr, self.server.dst_hw_addr = sink.hw_addrs(reverse=True)
        self._writer = writer or SegmentWriter(sink)
        self.active = True

    def __repr__(self):
        c = self.client
        return f"ConnectionLog({c.src_ip}:{c.src_port} -> {c.dst_ip}:{c.dst_port})"

    def open(self) -> None:
        """Log the three-way handshake."""
        self._run(self._handshake)

    def log(self, payload: bytes, from_client: bool = True) -> None:
        """Log payload sent by the client (or server) and the peer's ACK."""
        if not payload:
            return
        if from_client:
            sender, receiver = self.client, self.server
        else:
            sender, receiver = self.server, self.client
        self._run(self._writer.send_payload, sender, receiver, "PA", payload)

    def close(self) -> None:
        """Log the FIN exchange."""
        self._run(self._teardown)

    def _handshake(self) -> None:
        client, server = self.client, self.server
        self._writer.write_packet(client, "S")
        server.ack = client.seq
        server.advance_ack(1)
        client.advance_seq(1)

        self._writer.write_packet(server, "SA")
        client.ack = server.seq
        client.advance_ack(1)
        server.advance_seq(1)

        self._writer.write_packet(client, "A")

    def _teardown(self) -> None:
        client, server = self.client, self.server
        self._writer.write_packet(client, "FA")
        client.advance_seq(1)
        server.advance_ack(1)

        self._writer.write_packet(server, "FA")
        server.advance_seq(1)
        client.advance_ack(1)

        self._writer.write_packet(client, "A")

    def _run(self, func, *args) -> None:
        if not self.active:
            logger.debug("Logging disabled for %r, dropping event", self)
            return
        try:
            func(*args)
        except PacketLogError as exc:
            self.active = False
            logger.error("Disabling packet logging for %r: %s", self, exc)
            raise
