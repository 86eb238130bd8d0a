"""Destinations for synthesized frames: a pcap file or a live interface."""

import logging
import os
import threading
from typing import BinaryIO, Optional, Tuple

from scapy.error import Scapy_Exception
from scapy.packet import Raw
from scapy.sendrecv import sendp

from .context import ZERO_HW_ADDR
from .errors import ContainerFormatError, DispatchError
from .mirror import MirrorResolver, validate_target
from .pcap import PcapFile

logger = logging.getLogger("pktlog")

# Placeholder link-layer addresses for frames that only ever land in a file.
PCAP_SRC_HW_ADDR = "02:00:00:00:00:01"
PCAP_DST_HW_ADDR = "02:00:00:00:00:02"


class PacketSink:
    """Common interface for frame destinations."""

    def dispatch(self, frame: bytes) -> None:
        raise NotImplementedError

    def hw_addrs(self, reverse: bool = False) -> Tuple[str, str]:
        """Link-layer (src, dst) addresses for one direction of a connection.

        reverse selects the server -> client direction.
        """
        raise NotImplementedError

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class PcapSink(PacketSink):
    """Appends frames as records to a capture file."""

    def __init__(
        self,
        handle: BinaryIO,
        src_hw_addr: str = PCAP_SRC_HW_ADDR,
        dst_hw_addr: str = PCAP_DST_HW_ADDR,
        owns_handle: bool = False,
        pcap_file: Optional[PcapFile] = None,
    ):
        self._pcap = pcap_file or PcapFile(handle)
        self._pcap.prepare()
        self._handle = handle
        self._owns_handle = owns_handle
        self._src_hw_addr = src_hw_addr
        self._dst_hw_addr = dst_hw_addr
        self._lock = threading.Lock()

    @classmethod
    def open(cls, path: str, **kwargs) -> "PcapSink":
        """Open or create path for appending without discarding a valid capture."""
        try:
            fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o644)
            handle = os.fdopen(fd, "r+b", buffering=0)
        except OSError as exc:
            raise ContainerFormatError(f"Failed to open pcap file {path}: {exc}") from exc
        try:
            sink = cls(handle, owns_handle=True, **kwargs)
        except Exception:
            handle.close()
            raise
        logger.info("Logging packets to pcap file %s", path)
        return sink

    def dispatch(self, frame: bytes) -> None:
        with self._lock:
            self._pcap.write_record(frame)

    def hw_addrs(self, reverse: bool = False) -> Tuple[str, str]:
        if reverse:
            return self._dst_hw_addr, self._src_hw_addr
        return self._src_hw_addr, self._dst_hw_addr

    def close(self) -> None:
        if self._owns_handle and not self._handle.closed:
            self._handle.close()


class MirrorSink(PacketSink):
    """Transmits frames on a live interface toward a mirror target."""

    def __init__(self, iface: str, src_hw_addr: str, dst_hw_addr: str = ZERO_HW_ADDR):
        self.iface = iface
        self._src_hw_addr = src_hw_addr
        self._dst_hw_addr = dst_hw_addr

    @classmethod
    def open(cls, iface: str, target_ip: str, resolver=None) -> "MirrorSink":
        """Resolve the mirror target's hardware address and build the sink."""
        target_ip = validate_target(target_ip)
        resolver = resolver or MirrorResolver()
        src_hw_addr, src_ip = resolver.local_addresses(iface)
        dst_hw_addr = resolver.resolve(
            target_ip, iface, local_hw_addr=src_hw_addr, local_ip=src_ip
        )
        logger.info("Mirroring packets to %s (%s) on %s", target_ip, dst_hw_addr, iface)
        return cls(iface, src_hw_addr=src_hw_addr, dst_hw_addr=dst_hw_addr)

    def dispatch(self, frame: bytes) -> None:
        try:
            sendp(Raw(load=frame), iface=self.iface, verbose=False)
        except (Scapy_Exception, OSError) as exc:
            raise DispatchError(f"Error writing packet to {self.iface}: {exc}") from exc

    def hw_addrs(self, reverse: bool = False) -> Tuple[str, str]:
        # Both directions leave this interface toward the mirror target
        return self._src_hw_addr, self._dst_hw_addr
