"""Synthetic Ethernet/IP/TCP frame construction."""

import logging
import random
import struct

from scapy.error import Scapy_Exception
from scapy.layers.inet import IP, TCP
from scapy.layers.inet6 import IPv6
from scapy.layers.l2 import Ether
from scapy.packet import Raw

from .context import PacketContext
from .errors import FrameConstructionError

logger = logging.getLogger("pktlog")

TCP_WINDOW = 32767
IPV4_TTL = 64
IPV6_HOP_LIMIT = 255
ETHERTYPE_IPV4 = 0x0800
ETHERTYPE_IPV6 = 0x86DD


class PacketSynthesizer:
    """Builds one complete frame per call from a context and TCP flags."""

    def synthesize(self, context: PacketContext, flags, payload: bytes = b"") -> bytes:
        """Build a frame and advance the context's sequence number.

        A SYN in flags starts the half-connection over with a random ISN.
        The context is only updated once every layer has been built.
        """
        payload = bytes(payload)
        try:
            tcp = TCP(
                sport=context.src_port,
                dport=context.dst_port,
                ack=context.ack,
                flags=flags,
                window=TCP_WINDOW,
                urgptr=0,
            )
            seq = self.generate_random_isn() if tcp.flags.S else context.seq
            tcp.seq = seq

            if context.family == 4:
                ip = IP(
                    src=str(context.src_ip),
                    dst=str(context.dst_ip),
                    id=self.generate_ip_id(),
                    flags="DF",
                    ttl=IPV4_TTL,
                    proto=6,
                )
                ethertype = ETHERTYPE_IPV4
            else:
                ip = IPv6(
                    src=str(context.src_ip),
                    dst=str(context.dst_ip),
                    tc=0,
                    fl=0,
                    nh=6,
                    hlim=IPV6_HOP_LIMIT,
                )
                ethertype = ETHERTYPE_IPV6

            packet = (
                Ether(src=context.src_hw_addr, dst=context.dst_hw_addr, type=ethertype)
                / ip
                / tcp
            )
            if payload:
                packet = packet / Raw(load=payload)
            frame = bytes(packet)
        except (Scapy_Exception, struct.error, ValueError, TypeError, OSError) as exc:
            logger.error("Error building packet: %s", exc)
            raise FrameConstructionError(f"Error building packet: {exc}") from exc

        context.seq = seq
        context.advance_seq(len(payload))
        return frame

    @staticmethod
    def generate_random_isn() -> int:
        """Generate a random initial sequence number."""
        return random.randint(0, 0xFFFFFFFF)

    @staticmethod
    def generate_ip_id() -> int:
        return random.randint(0, 0xFFFF)
