"""
Tests for DNS resolution.

Run: python3 -m pytest tests/test_dns.py -v
"""

from unittest.mock import MagicMock, patch

import dns.exception
import dns.resolver

from bandwidth_bro.network.dns import DNSTester, describe_dns_error


class TestForwardLookup:
    """Tests for DNSTester.forward_lookup."""

    @patch("dns.resolver.Resolver")
    def test_resolves(self, mock_resolver_class):
        resolver = MagicMock()
        resolver.resolve.return_value = ["142.250.80.46", "142.250.80.47"]
        mock_resolver_class.return_value = resolver

        result = DNSTester(timeout=3).forward_lookup("google.com")

        assert result.success
        assert result.answers == ["142.250.80.46", "142.250.80.47"]
        assert result.nameserver is None
        assert resolver.lifetime == 3
        resolver.resolve.assert_called_once_with("google.com", "A")

    @patch("dns.resolver.Resolver")
    def test_specific_nameserver(self, mock_resolver_class):
        resolver = MagicMock()
        resolver.resolve.return_value = ["142.250.80.46"]
        mock_resolver_class.return_value = resolver

        result = DNSTester().forward_lookup("google.com", nameserver="1.1.1.1", timeout=2)

        assert resolver.nameservers == ["1.1.1.1"]
        assert resolver.timeout == 2
        assert result.nameserver == "1.1.1.1"

    @patch("dns.resolver.Resolver")
    def test_nxdomain(self, mock_resolver_class):
        mock_resolver_class.return_value.resolve.side_effect = dns.resolver.NXDOMAIN()

        result = DNSTester().forward_lookup("nothing.invalid")

        assert not result.success
        assert result.answers == []
        assert "NXDOMAIN" in result.error

    @patch("dns.resolver.Resolver")
    def test_timeout(self, mock_resolver_class):
        mock_resolver_class.return_value.resolve.side_effect = dns.exception.Timeout()

        result = DNSTester(timeout=5).forward_lookup("google.com")

        assert not result.success
        assert result.error == "DNS query timeout after 5s"
        assert result.response_time_ms is not None


class TestSystemDnsServers:
    """Tests for DNSTester.get_system_dns_servers."""

    @patch("dns.resolver.Resolver")
    def test_lists_nameservers(self, mock_resolver_class):
        mock_resolver_class.return_value.nameservers = ["192.168.1.1", "fe80::1"]
        assert DNSTester().get_system_dns_servers() == ["192.168.1.1", "fe80::1"]

    @patch("dns.resolver.Resolver", side_effect=dns.resolver.NoResolverConfiguration())
    def test_no_resolv_conf(self, mock_resolver_class):
        assert DNSTester().get_system_dns_servers() == []


class TestDescribeDnsError:
    """Tests for describe_dns_error."""

    def test_no_answer_names_record_type(self):
        text = describe_dns_error(dns.resolver.NoAnswer(), "AAAA", 5)
        assert text == "No AAAA record found"

    def test_no_nameservers(self):
        assert describe_dns_error(dns.resolver.NoNameservers(), "A", 5) == "No nameservers available"
