from whoami.config import Settings, parse_timeout_ms


class TestParseTimeout:
    def test_default_when_missing(self):
        assert parse_timeout_ms(None, 4000) == 4000
        assert parse_timeout_ms("  ", 4000) == 4000

    def test_malformed_falls_back(self):
        assert parse_timeout_ms("fast", 4000) == 4000

    def test_capped_at_default(self):
        assert parse_timeout_ms("10000", 4000) == 4000

    def test_lower_values_kept(self):
        assert parse_timeout_ms("2500", 4000) == 2500
        assert parse_timeout_ms("-3", 4000) == 1


class TestSettings:
    def test_strips_trailing_slash_from_base_urls(self):
        settings = Settings(bgpview_base_url="http://stub/", ipapi_base_url=" http://ipapi/ ")
        assert settings.bgpview_base_url == "http://stub"
        assert settings.ipapi_base_url == "http://ipapi"

    def test_socket_address_trusted_by_default(self):
        assert Settings().use_socket_address is True
        assert Settings(trust_socket_address="nonsense").use_socket_address is True

    def test_socket_address_can_be_disabled(self):
        for raw in ("0", "false", "OFF", "no"):
            assert Settings(trust_socket_address=raw).use_socket_address is False

    def test_reads_prefixed_env(self, monkeypatch):
        monkeypatch.setenv("WHOAMI_ENRICH_PROVIDERS", "ipapi")
        monkeypatch.setenv("WHOAMI_ENRICH_TIMEOUT_MS", "1500")
        settings = Settings()
        assert settings.enrich_providers == "ipapi"
        assert settings.enrich_timeout == 1500
