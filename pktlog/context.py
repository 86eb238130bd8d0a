"""Per-direction TCP state for synthesized connections."""

import ipaddress
from dataclasses import dataclass, field
from typing import Optional, Union

from .errors import AddressConversionFailure, AddressFamilyMismatch


SEQ_MOD = 1 << 32
ZERO_HW_ADDR = "00:00:00:00:00:00"

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


def detect_family(addr: str) -> int:
    """Return 4 or 6 for textual address, raise if neither."""
    try:
        return ipaddress.ip_address(addr.strip()).version
    except (ValueError, AttributeError):
        raise AddressFamilyMismatch(f"Unspec address family: {addr!r}") from None


def parse_address(addr: str, family: int) -> IPAddress:
    """Convert textual address in the given family to its binary form."""
    try:
        if family == 4:
            return ipaddress.IPv4Address(addr.strip())
        if family == 6:
            return ipaddress.IPv6Address(addr.strip())
    except (ValueError, AttributeError) as exc:
        raise AddressConversionFailure(
            f"Error converting IPv{family} address: {addr!r}"
        ) from exc
    raise AddressFamilyMismatch(f"Unknown address family: {family!r}")


def parse_port(port) -> int:
    """Convert textual or integer port into a 16-bit value."""
    try:
        value = int(str(port).strip(), 10)
    except ValueError:
        raise AddressConversionFailure(f"Error converting port: {port!r}") from None
    if not 0 <= value <= 0xFFFF:
        raise AddressConversionFailure(f"Port out of range: {port!r}")
    return value


@dataclass
class PacketContext:
    """State needed to synthesize one side's packets of a connection."""
    family: int
    src_ip: IPAddress
    dst_ip: IPAddress
    src_port: int
    dst_port: int
    seq: int = 0
    ack: int = 0
    src_hw_addr: str = ZERO_HW_ADDR
    dst_hw_addr: str = ZERO_HW_ADDR
    _frozen: bool = field(default=False, init=False, repr=False, compare=False)

    def __post_init__(self):
        if self.family not in (4, 6):
            raise AddressFamilyMismatch(f"Unknown address family: {self.family!r}")
        if self.src_ip.version != self.family or self.dst_ip.version != self.family:
            raise AddressFamilyMismatch(
                f"Src and dst address families do not match: {self.src_ip}, {self.dst_ip}"
            )
        self.seq %= SEQ_MOD
        self.ack %= SEQ_MOD
        self._frozen = True

    def __setattr__(self, name, value):
        if name == "family" and getattr(self, "_frozen", False):
            raise AttributeError("address family cannot change after creation")
        super().__setattr__(name, value)

    @classmethod
    def from_strings(
        cls,
        src_addr: str,
        src_port,
        dst_addr: str,
        dst_port,
        src_hw_addr: str = ZERO_HW_ADDR,
        dst_hw_addr: str = ZERO_HW_ADDR,
        family: Optional[int] = None,
    ) -> "PacketContext":
        """Build a context from the textual endpoints the interceptor reports."""
        if family is None:
            family = detect_family(src_addr)
        if family not in (4, 6):
            raise AddressFamilyMismatch(f"Unknown address family: {family!r}")
        if detect_family(dst_addr) != family:
            raise AddressFamilyMismatch(
                f"Src and dst address families do not match: {src_addr}, {dst_addr}"
            )

        return cls(
            family=family,
            src_ip=parse_address(src_addr, family),
            dst_ip=parse_address(dst_addr, family),
            src_port=parse_port(src_port),
            dst_port=parse_port(dst_port),
            src_hw_addr=src_hw_addr,
            dst_hw_addr=dst_hw_addr,
        )

    def reversed(self) -> "PacketContext":
        """Context for the opposite direction, with fresh counters."""
        return PacketContext(
            family=self.family,
            src_ip=self.dst_ip,
            dst_ip=self.src_ip,
            src_port=self.dst_port,
            dst_port=self.src_port,
            src_hw_addr=self.dst_hw_addr,
            dst_hw_addr=self.src_hw_addr,
        )

    def advance_seq(self, count: int) -> None:
        self.seq = (self.seq + count) % SEQ_MOD

    def advance_ack(self, count: int) -> None:
        self.ack = (self.ack + count) % SEQ_MOD
