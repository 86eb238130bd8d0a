"""libpcap capture file container.

Layout (native byte order):
- 24-byte global header: magic, version 2.4, thiszone, sigfigs, snaplen, linktype
- Repeated records: 16-byte header (ts_sec, ts_usec, incl_len, orig_len) + frame
"""

import logging
import os
import struct
import time
from typing import BinaryIO, Callable

from .errors import ContainerFormatError, DispatchError

logger = logging.getLogger("pktlog")

PCAP_MAGIC = 0xA1B2C3D4
PCAP_VERSION_MAJOR = 2
PCAP_VERSION_MINOR = 4
SNAPLEN = 1500
LINKTYPE_ETHERNET = 1

GLOBAL_HEADER = struct.Struct("=IHHiIII")
RECORD_HEADER = struct.Struct("=IIII")


class PcapFile:
    """Appends frames as pcap records to a seekable read/write handle."""

    def __init__(self, handle: BinaryIO, clock: Callable[[], float] = time.time):
        self._handle = handle
        self._clock = clock

    @property
    def handle(self) -> BinaryIO:
        return self._handle

    @staticmethod
    def global_header() -> bytes:
        return GLOBAL_HEADER.pack(
            PCAP_MAGIC,
            PCAP_VERSION_MAJOR,
            PCAP_VERSION_MINOR,
            0,
            0,
            SNAPLEN,
            LINKTYPE_ETHERNET,
        )

    def prepare(self) -> None:
        """Make the handle ready for appending records.

        An empty file gets a fresh global header. A file starting with our
        magic is appended to as-is. Anything else is truncated and restarted.
        On error the handle stays open at an undefined position.
        """
        fh = self._handle
        try:
            size = fh.seek(0, os.SEEK_END)
            if size > 0:
                fh.seek(0, os.SEEK_SET)
                head = fh.read(GLOBAL_HEADER.size)
                if head is None or len(head) != GLOBAL_HEADER.size:
                    raise ContainerFormatError(
                        f"Short read of pcap header: {0 if head is None else len(head)} bytes"
                    )
                magic = GLOBAL_HEADER.unpack(head)[0]
                if magic == PCAP_MAGIC:
                    fh.seek(0, os.SEEK_END)
                    logger.debug("Appending to existing pcap file (%d bytes)", size)
                    return
                logger.warning("Foreign content in pcap file, truncating")
                fh.seek(0, os.SEEK_SET)
                fh.truncate(0)
            self._write_exact(self.global_header(), ContainerFormatError, "pcap header")
        except OSError as exc:
            raise ContainerFormatError(f"Error preparing pcap file: {exc}") from exc

    def write_record(self, frame: bytes) -> None:
        """Append one record header followed by the frame bytes."""
        now = self._clock()
        ts_sec = int(now)
        ts_usec = int((now - ts_sec) * 1_000_000)
        header = RECORD_HEADER.pack(ts_sec, ts_usec, len(frame), len(frame))
        try:
            self._write_exact(header, DispatchError, "pcap record hdr")
            self._write_exact(frame, DispatchError, "pcap record packet")
        except OSError as exc:
            raise DispatchError(f"Error writing pcap record: {exc}") from exc

    def _write_exact(self, data: bytes, error: type, what: str) -> None:
        written = self._handle.write(data)
        if written != len(data):
            raise error(f"Error writing {what}: wrote {written} of {len(data)} bytes")
