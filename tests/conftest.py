"""Shared fixtures for stamp_indexer tests."""

from __future__ import annotations

import pytest
from aiohttp.test_utils import TestClient, TestServer
from pytest_metadata.plugin import metadata_key

from stamp_indexer.api.queries import QueryService
from stamp_indexer.api.server import IndexerHttpApi, create_app
from stamp_indexer.chainhook.extractor import ContractCallExtractor
from stamp_indexer.faucet.service import FaucetService
from stamp_indexer.models.config import FaucetConfig, IndexerConfig, StacksNetwork
from stamp_indexer.storage.memory import InMemoryEventLedger
from stamp_indexer.webhooks.dispatcher import WebhookDispatcher

from tests.factories import CONTRACT_ID
from tests.mocks import FakeClock, MockSigner, MockStacksClient

AUTH_TOKEN = "test-chainhook-secret"

EXPLORER_BASE = "https://explorer.hiro.so"


def explorer_link(kind: str, id: str) -> str:
    """Build an HTML anchor to the Stacks explorer for the report."""
    return f'<a href="{EXPLORER_BASE}/{kind}/{id}?chain=testnet" target="_blank">{id}</a>'


# ── Report metadata ──────────────────────────────────────────────


def pytest_configure(config):
    """Add contract info to the HTML report Environment table."""
    meta = config.stash.setdefault(metadata_key, {})
    meta["Network"] = "Stacks Testnet"
    meta["Contract"] = CONTRACT_ID


def pytest_html_results_summary(prefix, summary, postfix):
    prefix.append(
        '<div style="margin:8px 0;padding:10px;background:#f8f9fa;border:1px solid #dee2e6;'
        'border-radius:4px;font-family:monospace;font-size:13px;">'
        "<strong>Stacks Testnet Explorer</strong><br/>"
        f'Contract: {explorer_link("txid", CONTRACT_ID)}'
        "</div>"
    )


def make_test_config(**overrides) -> IndexerConfig:
    """Build an IndexerConfig suitable for testing."""
    defaults = dict(
        host="127.0.0.1",
        port=0,
        external_url="https://indexer.example.com",
        contract_address=CONTRACT_ID.split(".")[0],
        contract_name=CONTRACT_ID.split(".")[1],
        network=StacksNetwork.TESTNET,
        auth_token=AUTH_TOKEN,
        register_on_start=False,
        faucet=FaucetConfig(amount_stx="1.5", cooldown_minutes=60),
    )
    defaults.update(overrides)
    return IndexerConfig(**defaults)


@pytest.fixture
def test_config():
    return make_test_config()


@pytest.fixture
def ledger():
    return InMemoryEventLedger()


@pytest.fixture
def extractor():
    return ContractCallExtractor(CONTRACT_ID)


@pytest.fixture
def dispatcher(ledger, extractor):
    return WebhookDispatcher(ledger, extractor)


@pytest.fixture
def queries(ledger):
    return QueryService(ledger)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_signer():
    return MockSigner()


@pytest.fixture
def mock_stacks():
    return MockStacksClient()


@pytest.fixture
def faucet(test_config, mock_stacks, mock_signer, clock):
    return FaucetService(
        test_config.faucet, test_config.network, mock_stacks,
        signer=mock_signer, clock=clock,
    )


@pytest.fixture
def app(test_config, dispatcher, queries, faucet, mock_stacks):
    """aiohttp application wired to in-memory components and mocks."""
    api = IndexerHttpApi(test_config.auth_token, dispatcher, queries, faucet, mock_stacks)
    return create_app(api, max_body_size=test_config.max_body_size)


@pytest.fixture
async def client(app):
    async with TestClient(TestServer(app)) as c:
        yield c


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {AUTH_TOKEN}"}
