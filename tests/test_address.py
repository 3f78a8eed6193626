"""Tests for the address module."""

import ipaddress

import pytest

from whoisrdap.address import (
    AddressClass,
    classify,
    extract_range,
    from_key,
    parse_address,
    refang,
    to_key,
    unmap,
)
from whoisrdap.exceptions import InvalidAddress, UnsupportedVersion


class TestRefang:
    def test_bracket_dot(self):
        assert refang("192[.]168[.]1[.]1") == "192.168.1.1"

    def test_bracket_word_dot(self):
        assert refang("192[dot]168[dot]1[dot]1") == "192.168.1.1"

    def test_paren_dot(self):
        assert refang("192(.)168(.)1(.)1") == "192.168.1.1"

    def test_paren_word_dot(self):
        assert refang("192(dot)168(dot)1(dot)1") == "192.168.1.1"

    def test_mixed_notation(self):
        assert refang("10[.]0(.)1[dot]2") == "10.0.1.2"

    def test_case_insensitive(self):
        assert refang("10[DOT]0[Dot]1[dot]2") == "10.0.1.2"

    def test_strips_whitespace(self):
        assert refang("  8.8.8.8\n") == "8.8.8.8"


class TestParseAddress:
    def test_ipv4(self):
        assert parse_address("8.8.8.8") == ipaddress.IPv4Address("8.8.8.8")

    def test_ipv6(self):
        addr = parse_address("2001:67c:2e8:22::c100:68b")
        assert addr.version == 6

    def test_defanged(self):
        assert parse_address("1[.]1[.]1[.]1") == ipaddress.IPv4Address("1.1.1.1")

    @pytest.mark.parametrize("text", ["", "not-an-ip", "999.1.1.1", "1.2.3.0/24", "::g"])
    def test_invalid(self, text):
        with pytest.raises(InvalidAddress):
            parse_address(text)

    def test_invalid_is_value_error(self):
        with pytest.raises(ValueError):
            parse_address("example.com")


class TestClassify:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("8.8.8.8", AddressClass.UNICAST),
            ("2001:4860:4860::8888", AddressClass.UNICAST),
            ("127.0.0.1", AddressClass.LOOPBACK),
            ("::1", AddressClass.LOOPBACK),
            ("169.254.10.1", AddressClass.LINK_LOCAL),
            ("fe80::1", AddressClass.LINK_LOCAL),
            ("224.0.0.1", AddressClass.MULTICAST),
            ("ff02::1", AddressClass.MULTICAST),
            ("0.0.0.0", AddressClass.UNSPECIFIED),
            ("::", AddressClass.UNSPECIFIED),
            ("10.1.2.3", AddressClass.PRIVATE),
            ("192.168.1.1", AddressClass.PRIVATE),
            ("240.0.0.1", AddressClass.RESERVED),
            ("100.64.0.1", AddressClass.RESERVED),
        ],
    )
    def test_classes(self, text, expected):
        assert classify(parse_address(text)) is expected

    def test_mapped_loopback(self):
        assert classify(parse_address("::ffff:127.0.0.1")) is AddressClass.LOOPBACK

    def test_mapped_unicast(self):
        assert classify(parse_address("::ffff:8.8.8.8")) is AddressClass.UNICAST


class TestUnmap:
    def test_mapped(self):
        assert unmap(parse_address("::ffff:8.8.8.8")) == ipaddress.IPv4Address("8.8.8.8")

    def test_plain_addresses_unchanged(self):
        assert unmap(parse_address("8.8.8.8")) == ipaddress.IPv4Address("8.8.8.8")
        assert unmap(parse_address("2001:db8::1")) == ipaddress.IPv6Address("2001:db8::1")


class TestToKey:
    def test_sixteen_bytes(self):
        assert len(to_key(parse_address("8.8.8.8"))) == 16
        assert len(to_key(parse_address("2001:db8::1"))) == 16

    def test_ipv4_matches_mapped_ipv6(self):
        v4 = to_key(parse_address("192.168.1.1"))
        v6 = to_key(parse_address("::ffff:192.168.1.1"))
        assert v4 == v6
        assert v4 == bytes(10) + b"\xff\xff" + bytes([192, 168, 1, 1])

    def test_ipv6_is_packed(self):
        addr = parse_address("2001:db8::1")
        assert to_key(addr) == addr.packed

    def test_order_follows_numeric_order(self):
        keys = [to_key(parse_address(a)) for a in ("1.2.3.4", "1.2.3.5", "9.0.0.0", "2001:db8::")]
        assert keys == sorted(keys)

    def test_from_key_round_trip(self):
        assert from_key(to_key(parse_address("8.8.4.4"))) == ipaddress.IPv4Address("8.8.4.4")
        assert from_key(to_key(parse_address("2001:db8::1"))) == ipaddress.IPv6Address("2001:db8::1")

    def test_from_key_wrong_length(self):
        with pytest.raises(InvalidAddress):
            from_key(b"\x01\x02")


class TestExtractRange:
    def test_v4(self):
        low, high = extract_range(
            {"ipVersion": "v4", "startAddress": "8.8.8.0", "endAddress": "8.8.8.255"}
        )
        assert low == to_key(ipaddress.IPv4Address("8.8.8.0"))
        assert high == to_key(ipaddress.IPv4Address("8.8.8.255"))

    def test_v6(self):
        low, high = extract_range(
            {
                "ipVersion": "v6",
                "startAddress": "2001:67c:2e8::",
                "endAddress": "2001:67c:2e8:ffff:ffff:ffff:ffff:ffff",
            }
        )
        assert low == ipaddress.IPv6Address("2001:67c:2e8::").packed
        assert high == ipaddress.IPv6Address("2001:67c:2e8:ffff:ffff:ffff:ffff:ffff").packed

    def test_single_address_range(self):
        low, high = extract_range(
            {"ipVersion": "v4", "startAddress": "1.2.3.4", "endAddress": "1.2.3.4"}
        )
        assert low == high

    def test_cidr_bounds_widened(self):
        low, high = extract_range(
            {"ipVersion": "v4", "startAddress": "10.0.0.0/8", "endAddress": "10.0.0.0/8"}
        )
        assert from_key(low) == ipaddress.IPv4Address("10.0.0.0")
        assert from_key(high) == ipaddress.IPv4Address("10.255.255.255")

    def test_query_address_falls_inside(self):
        low, high = extract_range(
            {"ipVersion": "v4", "startAddress": "8.8.8.0", "endAddress": "8.8.8.255"}
        )
        assert low <= to_key(parse_address("8.8.8.8")) <= high
        assert not low <= to_key(parse_address("8.8.9.0")) <= high

    @pytest.mark.parametrize("version", [None, "v5", "ipv4", 4])
    def test_unsupported_version(self, version):
        with pytest.raises(UnsupportedVersion):
            extract_range({"ipVersion": version, "startAddress": "1.2.3.0", "endAddress": "1.2.3.255"})

    def test_missing_bound(self):
        with pytest.raises(InvalidAddress):
            extract_range({"ipVersion": "v4", "startAddress": "1.2.3.0"})

    def test_family_mismatch(self):
        with pytest.raises(InvalidAddress):
            extract_range({"ipVersion": "v4", "startAddress": "2001:db8::", "endAddress": "2001:db8::ff"})

    def test_reversed_range(self):
        with pytest.raises(InvalidAddress):
            extract_range({"ipVersion": "v4", "startAddress": "1.2.3.255", "endAddress": "1.2.3.0"})
