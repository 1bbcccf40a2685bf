"""
Configuration Tests.
"""

from decimal import Decimal

from trading_gateway.config import (
    PREVIEW_FEE_RATE,
    TOKEN_LIFETIME_SECONDS,
    CredentialsConfig,
    GatewayConfig,
)


class TestDefaults:

    def test_constants(self):
        assert PREVIEW_FEE_RATE == Decimal("0.005")
        assert TOKEN_LIFETIME_SECONDS == 120

    def test_rate_limit_default(self):
        assert GatewayConfig().rate_limit.min_interval_seconds == 0.1

    def test_brokerage_path(self):
        endpoints = GatewayConfig().endpoints

        assert endpoints.brokerage_path("/orders") == "/api/v3/brokerage/orders"
        assert endpoints.api_url == "https://api.coinbase.com"

    def test_to_dict_has_no_secrets(self):
        config = GatewayConfig(credentials=CredentialsConfig(api_key_id="k", private_key_pem="secret-pem"))

        assert "secret-pem" not in str(config.to_dict())


class TestFromEnv:

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("GATEWAY_MIN_INTERVAL_SECONDS", "0.25")
        monkeypatch.setenv("GATEWAY_READ_TIMEOUT_SECONDS", "12")
        monkeypatch.setenv("GATEWAY_WATCHLIST", "btc, eth,,sol")
        monkeypatch.setenv("GATEWAY_QUOTE_CURRENCY", "usdc")

        config = GatewayConfig.from_env(dotenv=False)

        assert config.rate_limit.min_interval_seconds == 0.25
        assert config.timeout.read_timeout_seconds == 12.0
        assert config.market_data.watchlist == ["BTC", "ETH", "SOL"]
        assert config.market_data.quote_currency == "USDC"

    def test_credentials_stay_lazy(self, monkeypatch):
        monkeypatch.delenv("COINBASE_API_KEY_ID", raising=False)
        monkeypatch.delenv("COINBASE_PRIVATE_KEY", raising=False)

        config = GatewayConfig.from_env(dotenv=False)

        assert config.credentials.resolve() == (None, None)
        monkeypatch.setenv("COINBASE_API_KEY_ID", "later")
        assert config.credentials.resolve()[0] == "later"

    def test_explicit_credentials_win(self, monkeypatch):
        monkeypatch.setenv("COINBASE_API_KEY_ID", "from-env")

        creds = CredentialsConfig(api_key_id="explicit")

        assert creds.resolve()[0] == "explicit"
