"""Application configuration using pydantic-settings with grouped env prefixes."""

from __future__ import annotations

from decimal import Decimal
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class ChainConfig(BaseSettings):
    """Blockchain RPC and payment recipient. No defaults for the required trio."""

    model_config = {"env_prefix": "AGENTGATE_CHAIN_"}

    rpc_url: str
    master_wallet: str
    chain_id: int
    currency: str = "TCRO"
    decimals: int = 18
    rpc_timeout_seconds: float = 10.0

    @field_validator("rpc_url")
    @classmethod
    def check_rpc_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("rpc_url must be an http(s) URL")
        return v

    @field_validator("master_wallet")
    @classmethod
    def check_wallet(cls, v: str) -> str:
        body = v[2:] if v.lower().startswith("0x") else ""
        if len(body) != 40 or any(c not in "0123456789abcdefABCDEF" for c in body):
            raise ValueError("master_wallet must be a 0x-prefixed 20-byte hex address")
        return v


class PaymentConfig(BaseSettings):
    """Payment protocol knobs."""

    model_config = {"env_prefix": "AGENTGATE_PAYMENT_"}

    scheme: str = "L402"
    min_fee: Decimal = Decimal("0.01")  # quoted for nodes with a missing/bad price
    reject_replays: bool = False


class AgentsConfig(BaseSettings):
    """Remote agent invocation."""

    model_config = {"env_prefix": "AGENTGATE_AGENTS_"}

    worker_base_url: str = "http://localhost:3001"
    timeout_seconds: float = 120.0


class StoreConfig(BaseSettings):
    """Task store backend and retention."""

    model_config = {"env_prefix": "AGENTGATE_STORE_"}

    backend: Literal["memory", "redis"] = "memory"
    ttl_seconds: int = 24 * 60 * 60
    max_entries: int = 10_000


class RedisConfig(BaseSettings):
    """Redis connection for the shared task store."""

    model_config = {"env_prefix": "AGENTGATE_REDIS_"}

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    key_prefix: str = "agentgate"


class AppSettings(BaseSettings):
    """Root application settings aggregating all sub-configs."""

    model_config = {"env_prefix": "AGENTGATE_"}

    environment: Literal["dev", "staging", "prod"] = "dev"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 4000
    api_prefix: str = "/pipeline"
    shutdown_grace_seconds: float = 5.0

    chain: ChainConfig = Field(default_factory=ChainConfig)
    payment: PaymentConfig = Field(default_factory=PaymentConfig)
    agents: AgentsConfig = Field(default_factory=AgentsConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    redis: RedisConfig = Field(default_factory=RedisConfig)
