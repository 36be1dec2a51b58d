import pytest

from whoami.ip import AddressVersion, ip_version, is_likely_public, normalize, parse_chain


class TestNormalize:
    def test_trims_and_parses_ipv4(self):
        assert normalize("  1.2.3.4  ") == "1.2.3.4"

    def test_takes_first_hop_of_chain(self):
        assert normalize(" 1.2.3.4, 5.6.7.8 ") == "1.2.3.4"

    def test_strips_ipv4_port(self):
        assert normalize("1.2.3.4:1234") == "1.2.3.4"

    def test_strips_ipv6_brackets_port_and_zone(self):
        assert normalize("[fe80::1%en0]:443") == "fe80::1"

    def test_strips_bare_zone_id(self):
        assert normalize("fe80::1%eth0") == "fe80::1"

    def test_brackets_without_port(self):
        assert normalize("[2001:db8::1]") == "2001:db8::1"

    def test_preserves_case_and_compression(self):
        assert normalize("2001:DB8:0:0::1") == "2001:DB8:0:0::1"

    @pytest.mark.parametrize(
        "raw", [None, "", "   ", "nope", "999.2.3.4", "1.2.3", "1.2.3.4.5", "::g", "1.2.3.4:abc"]
    )
    def test_rejects_invalid(self, raw):
        assert normalize(raw) is None

    def test_rejects_ipv6_with_unbracketed_port_garbage(self):
        assert normalize("2001:db8::1/64") is None

    @pytest.mark.parametrize(
        "raw", ["1.2.3.4:80", "[::1]:8080", "fe80::1%lo", " 10.0.0.1 , x", "2606:4700::1111"]
    )
    def test_idempotent(self, raw):
        once = normalize(raw)
        assert once is not None
        assert normalize(once) == once

    @pytest.mark.parametrize("raw", ["[1.2.3.4\n]", "[::1\n]:443", "1.2.3.4\n:80"])
    def test_trailing_newline_inside_value_is_rejected(self, raw):
        assert normalize(raw) is None


class TestParseChain:
    def test_drops_invalid_and_keeps_order(self):
        assert parse_chain("1.1.1.1, nope, 2.2.2.2:55") == ["1.1.1.1", "2.2.2.2"]

    def test_keeps_duplicates(self):
        assert parse_chain("1.1.1.1,1.1.1.1") == ["1.1.1.1", "1.1.1.1"]

    def test_strips_brackets_per_hop(self):
        assert parse_chain("[2001:db8::1]:443, 9.9.9.9") == ["2001:db8::1", "9.9.9.9"]

    def test_empty_input(self):
        assert parse_chain(None) == []
        assert parse_chain("") == []
        assert parse_chain(" , ,") == []


class TestIpVersion:
    def test_detects_versions(self):
        assert ip_version("1.2.3.4") is AddressVersion.IPV4
        assert ip_version("2001:db8::1") is AddressVersion.IPV6
        assert ip_version("nope") is AddressVersion.UNKNOWN
        assert ip_version("1.2.3.4\n") is AddressVersion.UNKNOWN
        assert ip_version("::1\n") is AddressVersion.UNKNOWN


class TestIsLikelyPublic:
    @pytest.mark.parametrize(
        "ip",
        [
            "127.0.0.1",
            "10.1.2.3",
            "192.168.1.1",
            "172.16.0.1",
            "100.64.0.1",
            "169.254.10.10",
            "0.1.2.3",
            "192.0.2.5",
            "198.18.0.1",
            "198.51.100.7",
            "203.0.113.9",
            "224.0.0.1",
            "255.255.255.255",
            "::",
            "::1",
            "fe80::1",
            "fc00::1",
            "fd12:3456::1",
            "ff02::1",
            "2001:db8::1",
        ],
    )
    def test_non_public_ranges(self, ip):
        assert is_likely_public(ip) is False

    @pytest.mark.parametrize(
        "ip", ["1.1.1.1", "8.8.8.8", "172.32.0.1", "223.255.255.255", "2606:4700:4700::1111"]
    )
    def test_public_addresses(self, ip):
        assert is_likely_public(ip) is True

    def test_garbage_is_not_public(self):
        assert is_likely_public("unknown") is False
