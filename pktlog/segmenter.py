"""MSS segmentation of logged payloads."""

import logging
from typing import Optional

from .context import PacketContext
from .errors import PacketLogError
from .sink import PacketSink
from .synthesizer import PacketSynthesizer

logger = logging.getLogger("pktlog")

# Keeps Ether + IP + TCP + payload under a 1500-byte MTU
MSS = 1420


class SegmentWriter:
    """Turns payloads into TCP segments and hands them to a sink."""

    def __init__(
        self,
        sink: PacketSink,
        synthesizer: Optional[PacketSynthesizer] = None,
        mss: int = MSS,
    ):
        self._sink = sink
        self._synthesizer = synthesizer or PacketSynthesizer()
        self.mss = mss

    def write_packet(self, context: PacketContext, flags, payload: bytes = b"") -> None:
        """Synthesize one frame from context and dispatch it."""
        frame = self._synthesizer.synthesize(context, flags, payload)
        self._sink.dispatch(frame)
        logger.debug(
            "%s:%s -> %s:%s [%s] seq=%d ack=%d len=%d",
            context.src_ip, context.src_port, context.dst_ip, context.dst_port,
            flags, context.seq, context.ack, len(payload),
        )

    def send_payload(
        self,
        sender: PacketContext,
        receiver: PacketContext,
        flags,
        payload: bytes,
    ) -> None:
        """Log payload from sender, then the receiver's cumulative ACK.

        Frames already dispatched stay in the sink if a later one fails.
        """
        view = memoryview(bytes(payload))
        offset = 0
        try:
            while offset < len(view):
                chunk = view[offset:offset + self.mss].tobytes()
                self.write_packet(sender, flags, chunk)
                receiver.advance_ack(len(chunk))
                offset += len(chunk)

            self.write_packet(receiver, "A")
        except PacketLogError as exc:
            logger.warning("Failed to write to packet log: %s", exc)
            raise
