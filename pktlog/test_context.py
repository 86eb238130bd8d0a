"""Unit tests for context.py"""

import ipaddress

import pytest

from pktlog.context import PacketContext, detect_family, parse_port, ZERO_HW_ADDR
from pktlog.errors import AddressConversionFailure, AddressFamilyMismatch


class TestDetectFamily:
    """Tests for detect_family."""

    def test_ipv4(self):
        assert detect_family("192.168.1.1") == 4

    def test_ipv6(self):
        assert detect_family("2001:db8::1") == 6

    def test_unrecognized(self):
        """Test hostnames and garbage have no address family."""
        with pytest.raises(AddressFamilyMismatch):
            detect_family("example.com")


class TestParsePort:
    """Tests for parse_port."""

    def test_text_and_int(self):
        assert parse_port("443") == 443
        assert parse_port(8080) == 8080
        assert parse_port("65535") == 65535

    @pytest.mark.parametrize("port", ["http", "", "65536", "-1"])
    def test_invalid(self, port):
        with pytest.raises(AddressConversionFailure):
            parse_port(port)


class TestPacketContext:
    """Tests for PacketContext."""

    def test_from_strings_ipv4(self):
        """Test context creation from textual 4-tuple."""
        ctx = PacketContext.from_strings("192.168.1.1", "12345", "10.0.0.1", "443")

        assert ctx.family == 4
        assert ctx.src_ip == ipaddress.IPv4Address("192.168.1.1")
        assert ctx.dst_ip.packed == bytes([10, 0, 0, 1])
        assert ctx.src_port == 12345
        assert ctx.dst_port == 443
        assert ctx.seq == 0
        assert ctx.ack == 0
        assert ctx.src_hw_addr == ZERO_HW_ADDR
        assert ctx.dst_hw_addr == ZERO_HW_ADDR

    def test_from_strings_ipv6(self):
        ctx = PacketContext.from_strings("2001:db8::1", "1000", "2001:db8::2", "80")

        assert ctx.family == 6
        assert len(ctx.src_ip.packed) == 16

    def test_family_mismatch(self):
        """Test mixing IPv4 and IPv6 endpoints is rejected."""
        with pytest.raises(AddressFamilyMismatch):
            PacketContext.from_strings("192.168.1.1", "1", "2001:db8::2", "2")

    def test_unspec_family(self):
        with pytest.raises(AddressFamilyMismatch):
            PacketContext.from_strings("not-an-ip", "1", "10.0.0.1", "2")

    def test_conversion_failure_in_stated_family(self):
        """Test an address that does not parse in an explicit family."""
        with pytest.raises(AddressConversionFailure):
            PacketContext.from_strings("::1", "1", "10.0.0.1", "2", family=4)

    def test_bad_port(self):
        with pytest.raises(AddressConversionFailure):
            PacketContext.from_strings("10.0.0.1", "https", "10.0.0.2", "443")

    def test_unspecified_address_is_accepted(self):
        """0.0.0.0 parses as a valid IPv4 address.

        Only text that fails to parse is a conversion error; the all-zero
        address is not treated as one.
        """
        ctx = PacketContext.from_strings("0.0.0.0", "1", "10.0.0.1", "2")
        assert int(ctx.src_ip) == 0

    def test_unknown_family_rejected(self):
        with pytest.raises(AddressFamilyMismatch):
            PacketContext(
                family=5,
                src_ip=ipaddress.IPv4Address("1.1.1.1"),
                dst_ip=ipaddress.IPv4Address("2.2.2.2"),
                src_port=1,
                dst_port=2,
            )

    def test_family_is_immutable(self):
        ctx = PacketContext.from_strings("1.1.1.1", "1", "2.2.2.2", "2")
        with pytest.raises(AttributeError):
            ctx.family = 6
        assert ctx.family == 4

    def test_reversed(self):
        """Test reversed context swaps endpoints and starts fresh counters."""
        ctx = PacketContext.from_strings(
            "1.1.1.1", "100", "2.2.2.2", "200",
            src_hw_addr="aa:aa:aa:aa:aa:01", dst_hw_addr="aa:aa:aa:aa:aa:02",
        )
        ctx.seq = 77
        ctx.ack = 88

        rev = ctx.reversed()

        assert rev.src_ip == ctx.dst_ip
        assert rev.dst_ip == ctx.src_ip
        assert rev.src_port == 200
        assert rev.dst_port == 100
        assert rev.src_hw_addr == "aa:aa:aa:aa:aa:02"
        assert rev.dst_hw_addr == "aa:aa:aa:aa:aa:01"
        assert rev.seq == 0
        assert rev.ack == 0

    def test_counters_wrap(self):
        """Test seq/ack arithmetic is modulo 2^32."""
        ctx = PacketContext.from_strings("1.1.1.1", "1", "2.2.2.2", "2")
        ctx.seq = 0xFFFFFFFF
        ctx.ack = 0xFFFFFFF0

        ctx.advance_seq(1)
        ctx.advance_ack(0x20)

        assert ctx.seq == 0
        assert ctx.ack == 0x10
