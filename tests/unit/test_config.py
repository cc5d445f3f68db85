"""Tests for configuration defaults, env overrides and fail-fast chain settings."""

from __future__ import annotations

from decimal import Decimal

import pytest
from pydantic import ValidationError

from agentgate.core.config import AppSettings, ChainConfig, PaymentConfig, StoreConfig
from tests.fakes import WALLET


def test_missing_chain_settings_fail_fast():
    with pytest.raises(ValidationError):
        AppSettings()


def test_chain_settings_from_env(monkeypatch):
    monkeypatch.setenv("AGENTGATE_CHAIN_RPC_URL", "https://evm-t3.cronos.org/")
    monkeypatch.setenv("AGENTGATE_CHAIN_MASTER_WALLET", WALLET)
    monkeypatch.setenv("AGENTGATE_CHAIN_CHAIN_ID", "338")
    settings = AppSettings()
    assert settings.chain.chain_id == 338
    assert settings.chain.currency == "TCRO"
    assert settings.chain.decimals == 18
    assert settings.api_prefix == "/pipeline"


def test_rejects_malformed_wallet():
    with pytest.raises(ValidationError):
        ChainConfig(rpc_url="https://rpc.test", master_wallet="0x1234", chain_id=1)


def test_rejects_non_http_rpc_url():
    with pytest.raises(ValidationError):
        ChainConfig(rpc_url="ws://rpc.test", master_wallet=WALLET, chain_id=1)


def test_payment_config_defaults():
    config = PaymentConfig()
    assert config.scheme == "L402"
    assert config.min_fee == Decimal("0.01")
    assert config.reject_replays is False


def test_store_config_env_override(monkeypatch):
    monkeypatch.setenv("AGENTGATE_STORE_BACKEND", "redis")
    monkeypatch.setenv("AGENTGATE_STORE_TTL_SECONDS", "60")
    config = StoreConfig()
    assert config.backend == "redis"
    assert config.ttl_seconds == 60
