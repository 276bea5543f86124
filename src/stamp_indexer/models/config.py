"""Configuration models for the indexer service."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class StacksNetwork(str, Enum):
    """Stacks network the monitored contract lives on."""

    TESTNET = "testnet"
    MAINNET = "mainnet"


class ChainhookProvider(str, Enum):
    """Where chainhook predicates are registered."""

    HIRO = "hiro"  # hosted Chainhooks API
    LOCAL = "local"  # self-hosted chainhook node


HIRO_API_URLS = {
    StacksNetwork.TESTNET: "https://api.testnet.hiro.so",
    StacksNetwork.MAINNET: "https://api.mainnet.hiro.so",
}


@dataclass
class FaucetConfig:
    """STX faucet settings."""

    enabled: bool = True
    allow_mainnet: bool = False
    address: str = ""  # faucet wallet, shown on the status endpoint
    amount_stx: str = "1"
    cooldown_minutes: int = 60 * 24
    ip_cooldown_minutes: int | None = None  # defaults to cooldown_minutes

    @property
    def effective_ip_cooldown_minutes(self) -> int:
        if self.ip_cooldown_minutes is None:
            return self.cooldown_minutes
        return self.ip_cooldown_minutes


@dataclass
class IndexerConfig:
    """Complete service configuration."""

    # Server
    host: str = "0.0.0.0"
    port: int = 3000
    external_url: str = "http://localhost:3000"
    log_level: str = "info"
    max_body_size: int = 5 * 1024 * 1024  # 5 MiB

    # Contract
    contract_address: str = "ST1G4ZDXED8XM2XJ4Q4GJ7F4PG4EJQ1KKXVPSAX13"
    contract_name: str = "bitcoin-stamp"

    # Stacks
    network: StacksNetwork = StacksNetwork.TESTNET
    stacks_api_base_url: str = ""  # derived from network when empty

    # Chainhook
    auth_token: str = ""  # loaded from env var STAMP_INDEXER_CHAINHOOK_AUTH_TOKEN
    provider: ChainhookProvider = ChainhookProvider.HIRO
    chainhook_node_url: str = "http://localhost:20456"
    hiro_api_key: str = ""
    chainhooks_base_url: str = ""  # derived from network when empty
    register_on_start: bool = True

    # Faucet
    faucet: FaucetConfig = field(default_factory=FaucetConfig)

    @property
    def contract_identifier(self) -> str:
        return f"{self.contract_address}.{self.contract_name}"

    @property
    def effective_stacks_api_url(self) -> str:
        return self.stacks_api_base_url or HIRO_API_URLS[self.network]

    @property
    def effective_chainhooks_url(self) -> str:
        return self.chainhooks_base_url or HIRO_API_URLS[self.network]
