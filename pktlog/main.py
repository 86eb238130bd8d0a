"""pktlog entry point."""

import argparse
import logging
import sys

from .connection import ConnectionLog
from .errors import PacketLogError
from .logger import setup_logging
from .mirror import MirrorResolver
from .sink import MirrorSink, PcapSink


def parse_endpoint(value: str):
    """Split "IP:PORT" or "[IPv6]:PORT" into (ip, port) strings."""
    if value.startswith("["):
        host, sep, port = value[1:].partition("]:")
    else:
        host, sep, port = value.rpartition(":")
    if not sep or not host or not port:
        raise argparse.ArgumentTypeError(f"expected IP:PORT, got {value!r}")
    return host, port


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="pktlog - write decrypted payloads as a synthetic TCP trace"
    )
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--pcap", help="Capture file to create or append to")
    target.add_argument("--mirror-iface", help="Interface to mirror packets on")
    parser.add_argument("--mirror-target", help="IPv4 address of the mirror host")
    parser.add_argument("--src", type=parse_endpoint, help="Client endpoint IP:PORT")
    parser.add_argument("--dst", type=parse_endpoint, help="Server endpoint IP:PORT")
    parser.add_argument("--request", action="append", default=[],
                        help="File with client payload (repeatable)")
    parser.add_argument("--response", action="append", default=[],
                        help="File with server payload (repeatable)")
    parser.add_argument("--resolve-only", action="store_true",
                        help="Only resolve the mirror target and exit")
    parser.add_argument("--verbose", action="store_true", help="Enable DEBUG logging")
    return parser


def _read(path: str) -> bytes:
    with open(path, "rb") as fh:
        return fh.read()


def open_sink(args, resolver=None):
    if args.pcap:
        return PcapSink.open(args.pcap)
    return MirrorSink.open(args.mirror_iface, args.mirror_target, resolver=resolver)


def run(args, resolver=None) -> None:
    logger = logging.getLogger("pktlog")

    if args.resolve_only:
        resolver = resolver or MirrorResolver()
        hw_addr = resolver.resolve(args.mirror_target, args.mirror_iface)
        print(hw_addr)
        return

    with open_sink(args, resolver=resolver) as sink:
        conn = ConnectionLog(sink, args.src[0], args.src[1], args.dst[0], args.dst[1])
        logger.info("Logging connection %s:%s -> %s:%s", *args.src, *args.dst)
        conn.open()
        # Requests and responses alternate, extra ones trail in order
        requests = [_read(p) for p in args.request]
        responses = [_read(p) for p in args.response]
        for i in range(max(len(requests), len(responses))):
            if i < len(requests):
                conn.log(requests[i], from_client=True)
            if i < len(responses):
                conn.log(responses[i], from_client=False)
        conn.close()


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.mirror_iface and not args.mirror_target:
        parser.error("--mirror-iface requires --mirror-target")
    if args.resolve_only and not args.mirror_iface:
        parser.error("--resolve-only requires --mirror-iface")
    if not args.resolve_only and (args.src is None or args.dst is None):
        parser.error("--src and --dst are required")

    logger = setup_logging(logging.DEBUG if args.verbose else logging.INFO)
    logger.info("Starting pktlog...")

    try:
        run(args)
    except PacketLogError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        return 1
    except OSError as exc:
        logger.error("Error reading payload: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
