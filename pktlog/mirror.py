"""ARP resolution of the mirror target's hardware address."""

import ipaddress
import logging
import time
from typing import Callable, Iterable, Optional, Tuple

from scapy.arch import get_if_addr, get_if_hwaddr
from scapy.config import conf
from scapy.error import Scapy_Exception
from scapy.layers.l2 import ARP, Ether
from scapy.packet import Packet
from scapy.sendrecv import sendp, sniff

from .errors import (
    AddressConversionFailure,
    DispatchError,
    ResolutionTimeout,
    UnsupportedTargetFamily,
)

logger = logging.getLogger("pktlog")

BROADCAST_HW_ADDR = "ff:ff:ff:ff:ff:ff"
ZERO_HW_ADDR = "00:00:00:00:00:00"
ARP_OP_REQUEST = 1
ARP_OP_REPLY = 2
ARP_HW_ETHER = 1
ARP_PROTO_IPV4 = 0x0800

MAX_ATTEMPTS = 50
RETRY_INTERVAL = 1.0
CAPTURE_WINDOW = 0.01
CAPTURE_COUNT = 1000


class ArpTransport:
    """Live ARP send/capture on one interface via scapy.

    The listening socket is opened on enter, before the first request goes
    out, so replies arriving between send and capture are not lost.
    """

    def __init__(self, iface: str):
        self.iface = iface
        self._socket = None

    def __enter__(self):
        try:
            self._socket = conf.L2listen(iface=self.iface, filter="arp")
        except (Scapy_Exception, OSError) as exc:
            raise DispatchError(f"Error opening capture on {self.iface}: {exc}") from exc
        return self

    def __exit__(self, exc_type, exc, tb):
        if self._socket is not None:
            self._socket.close()
            self._socket = None
        return False

    def local_addresses(self) -> Tuple[str, str]:
        """Return (hardware address, IPv4 address) of the interface."""
        return get_if_hwaddr(self.iface), get_if_addr(self.iface)

    def send(self, frame: Packet) -> None:
        sendp(frame, iface=self.iface, verbose=False)

    def capture(self, window: float, count: int) -> Iterable[Packet]:
        return sniff(opened_socket=self._socket, timeout=window, count=count, store=True)


def build_request(local_hw_addr: str, local_ip: str, target_ip: str) -> Packet:
    """Broadcast who-has request for target_ip."""
    return Ether(dst=BROADCAST_HW_ADDR, src=local_hw_addr) / ARP(
        hwtype=ARP_HW_ETHER,
        ptype=ARP_PROTO_IPV4,
        op=ARP_OP_REQUEST,
        hwsrc=local_hw_addr,
        psrc=local_ip,
        hwdst=ZERO_HW_ADDR,
        pdst=target_ip,
    )


def match_reply(packet, target_ip: str) -> Optional[str]:
    """Return the sender hardware address if packet answers for target_ip."""
    if isinstance(packet, (bytes, bytearray)):
        packet = Ether(bytes(packet))
    if not packet.haslayer(Ether) or not packet.haslayer(ARP):
        return None

    arp = packet[ARP]
    if arp.op != ARP_OP_REPLY:
        return None
    if arp.ptype != ARP_PROTO_IPV4:
        return None
    if arp.hwtype != ARP_HW_ETHER:
        return None
    if arp.psrc != target_ip:
        return None
    # Sender field must agree with the frame's source address
    if str(arp.hwsrc).lower() != str(packet[Ether].src).lower():
        return None
    return str(arp.hwsrc).lower()


def validate_target(target_ip: str) -> str:
    """Only IPv4 mirror targets are supported."""
    try:
        return str(ipaddress.IPv4Address(str(target_ip).strip()))
    except ValueError:
        pass
    try:
        ipaddress.IPv6Address(str(target_ip).strip())
    except ValueError:
        raise AddressConversionFailure(
            f"Error converting dst IP address: {target_ip!r}"
        ) from None
    raise UnsupportedTargetFamily(f"Mirror target must be IPv4: {target_ip}")


class MirrorResolver:
    """Resolves a mirror target's hardware address with repeated ARP requests."""

    def __init__(
        self,
        transport_factory: Callable[[str], ArpTransport] = ArpTransport,
        sleep: Callable[[float], None] = time.sleep,
        max_attempts: int = MAX_ATTEMPTS,
        retry_interval: float = RETRY_INTERVAL,
        capture_window: float = CAPTURE_WINDOW,
        capture_count: int = CAPTURE_COUNT,
    ):
        self._transport_factory = transport_factory
        self._sleep = sleep
        self.max_attempts = max_attempts
        self.retry_interval = retry_interval
        self.capture_window = capture_window
        self.capture_count = capture_count

    def local_addresses(self, iface: str) -> Tuple[str, str]:
        """Hardware and IPv4 address of iface, raising if either is missing."""
        try:
            hw_addr, ip = self._transport_factory(iface).local_addresses()
        except (Scapy_Exception, OSError, ValueError) as exc:
            raise AddressConversionFailure(
                f"Error getting addresses of {iface}: {exc}"
            ) from exc
        if not hw_addr or hw_addr == ZERO_HW_ADDR:
            raise AddressConversionFailure(f"Error getting src ethernet address of {iface}")
        if not ip or ip == "0.0.0.0":
            raise AddressConversionFailure(f"Error getting src IP address of {iface}")
        return hw_addr.lower(), ip

    def resolve(
        self,
        target_ip: str,
        iface: str,
        local_hw_addr: Optional[str] = None,
        local_ip: Optional[str] = None,
    ) -> str:
        """Return the hardware address of target_ip on iface.

        Raises ResolutionTimeout after max_attempts requests go unanswered.
        """
        target_ip = validate_target(target_ip)
        if local_hw_addr is None or local_ip is None:
            found_hw_addr, found_ip = self.local_addresses(iface)
            local_hw_addr = local_hw_addr or found_hw_addr
            local_ip = local_ip or found_ip

        request = build_request(local_hw_addr, local_ip, target_ip)
        logger.debug("Resolving mirror target %s on %s", target_ip, iface)

        with self._transport_factory(iface) as transport:
            for attempt in range(1, self.max_attempts + 1):
                try:
                    transport.send(request)
                except (Scapy_Exception, OSError) as exc:
                    raise DispatchError(f"Error writing arp packet: {exc}") from exc

                try:
                    frames = transport.capture(self.capture_window, self.capture_count)
                except (Scapy_Exception, OSError) as exc:
                    raise DispatchError(f"Error capturing arp replies: {exc}") from exc

                for frame in frames:
                    hw_addr = match_reply(frame, target_ip)
                    if hw_addr is not None:
                        logger.info("Mirror target is up: %s", hw_addr)
                        return hw_addr

                logger.debug("No ARP reply from %s (attempt %d)", target_ip, attempt)
                if attempt < self.max_attempts:
                    self._sleep(self.retry_interval)

        raise ResolutionTimeout(
            f"Mirror target {target_ip} did not answer {self.max_attempts} ARP requests"
        )
