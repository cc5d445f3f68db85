"""Shared pytest fixtures."""

from __future__ import annotations

import os

import pytest

from agentgate.core.config import AgentsConfig, AppSettings, ChainConfig
from tests.fakes import CHAIN_ID, RPC_URL, WALLET, WORKER_URL


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep host AGENTGATE_* variables out of the tests."""
    for key in list(os.environ):
        if key.startswith("AGENTGATE_"):
            monkeypatch.delenv(key)


@pytest.fixture
def chain_config() -> ChainConfig:
    return ChainConfig(rpc_url=RPC_URL, master_wallet=WALLET, chain_id=CHAIN_ID)


@pytest.fixture
def settings(chain_config) -> AppSettings:
    return AppSettings(chain=chain_config, agents=AgentsConfig(worker_base_url=WORKER_URL))
