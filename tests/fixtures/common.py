"""Common test fixtures for Sivic tests.

This module provides fixtures that can be reused across different test modules.
"""

import pytest
from unittest.mock import AsyncMock

from sivic.config import HeliusConfig
from sivic.constants import JUPITER_V6_PROGRAM_ID, TOKEN_PROGRAM_ID, BPF_LOADER_UPGRADEABLE
from sivic.services.cache_service import ResponseCache
from sivic.services.rpc_service import RPCService

# Fixed "now" used by the analyzer tests, in epoch milliseconds
NOW_MS = 1_700_000_000_000
DAY_SECONDS = 86_400

USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
USDT_MINT = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"
WSOL_MINT = "So11111111111111111111111111111111111111112"
PROGRAM_DATA_ADDRESS = "4Ec7ZxZS6Sbdg5UGSLHbAnM7GQHp2eFd4KYWRexAipQT"
UPGRADE_AUTHORITY = "CvQZZ23qYDWF2RUpxYJ8y9K4skmuvYEEjH7fK58jtipQ"

SIGNATURE = "4" * 88


class FakeClock:
    """Manually advanced monotonic clock in seconds."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def block_time_days_ago(days: float) -> int:
    """Unix block time ``days`` before NOW_MS."""
    return int(NOW_MS / 1000 - days * DAY_SECONDS)


def make_signatures(count: int, newest_days_ago: float = 1, oldest_days_ago: float = 100,
                    failed: int = 0):
    """Build a newest-first getSignaturesForAddress result."""
    signatures = []
    for i in range(count):
        if count == 1:
            days = oldest_days_ago
        else:
            days = newest_days_ago + (oldest_days_ago - newest_days_ago) * i / (count - 1)
        signatures.append({
            "signature": f"sig{i}",
            "slot": 250_000_000 - i,
            "blockTime": block_time_days_ago(days),
            "err": {"InstructionError": [0, "Custom"]} if i < failed else None,
        })
    return signatures


def make_mint_account(supply: str = "1000000000000", decimals: int = 6,
                      mint_authority=None, freeze_authority=None):
    """Build a jsonParsed getAccountInfo value for an SPL mint."""
    return {
        "data": {
            "parsed": {
                "type": "mint",
                "info": {
                    "decimals": decimals,
                    "supply": supply,
                    "mintAuthority": mint_authority,
                    "freezeAuthority": freeze_authority,
                    "isInitialized": True,
                },
            },
            "program": "spl-token",
            "space": 82,
        },
        "executable": False,
        "lamports": 1461600,
        "owner": TOKEN_PROGRAM_ID,
    }


def make_holders(*percentages, supply_raw: int = 1_000_000_000_000):
    """Build a getTokenLargestAccounts value from supply percentages."""
    return [
        {
            "address": f"holder{i}",
            "amount": str(int(supply_raw * pct / 100)),
            "decimals": 6,
        }
        for i, pct in enumerate(percentages)
    ]


@pytest.fixture
def fake_clock():
    """Create a manually advanced clock for the cache."""
    return FakeClock()


@pytest.fixture
def millis_clock():
    """Create a frozen epoch-millisecond clock for the analyzer."""
    return lambda: NOW_MS


@pytest.fixture
def helius_config():
    """Helius configuration with an API key."""
    return HeliusConfig(api_key="test-key", rpc_url="https://rpc.test", api_url="https://api.test/v0",
                        public_rpc_url="https://public.test")


@pytest.fixture
def unconfigured_helius_config():
    """Helius configuration without an API key."""
    return HeliusConfig(api_key=None, public_rpc_url="https://public.test")


@pytest.fixture
def response_cache(fake_clock):
    """Create a response cache driven by the fake clock."""
    return ResponseCache(default_ttl=60.0, max_size=100, clock=fake_clock)


@pytest.fixture
def sample_mint_account():
    """A mint with both authorities revoked."""
    return make_mint_account()


@pytest.fixture
def sample_holders():
    """Ten holders with 5% each."""
    return make_holders(*([5.0] * 10))


@pytest.fixture
def sample_signatures():
    """Twenty successful signatures spanning 100 days."""
    return make_signatures(20)


@pytest.fixture
def sample_token_metadata():
    """Helius token-metadata record with immutable metadata."""
    return {
        "account": USDC_MINT,
        "onChainMetadata": {
            "metadata": {
                "data": {
                    "name": "Clean Token",
                    "symbol": "CLN",
                    "uri": "https://example.com/clean.json",
                },
                "isMutable": False,
                "updateAuthority": UPGRADE_AUTHORITY,
            }
        },
        "legacyMetadata": None,
    }


@pytest.fixture
def sample_program_account():
    """An upgradeable program account."""
    return {
        "data": {
            "parsed": {
                "type": "program",
                "info": {"programData": PROGRAM_DATA_ADDRESS},
            },
            "program": "bpf-upgradeable-loader",
            "space": 36,
        },
        "executable": True,
        "lamports": 1141440,
        "owner": BPF_LOADER_UPGRADEABLE,
    }


@pytest.fixture
def sample_program_data_account():
    """Program data account with an upgrade authority."""
    return {
        "data": {
            "parsed": {
                "type": "programData",
                "info": {"authority": UPGRADE_AUTHORITY, "slot": 249_000_000},
            },
            "program": "bpf-upgradeable-loader",
        },
        "executable": False,
        "lamports": 5000000,
        "owner": BPF_LOADER_UPGRADEABLE,
    }


@pytest.fixture
def sample_jupiter_transaction():
    """Successful Jupiter swap with a 20 000 lamport fee and 6 inner instruction sets."""
    return {
        "slot": 250_000_000,
        "blockTime": block_time_days_ago(0),
        "meta": {
            "err": None,
            "fee": 20_000,
            "innerInstructions": [{"index": i, "instructions": []} for i in range(6)],
            "logMessages": [f"Program {JUPITER_V6_PROGRAM_ID} invoke [1]"],
        },
        "transaction": {
            "signatures": [SIGNATURE],
            "message": {
                "accountKeys": [
                    {"pubkey": "CvQZZ23qYDWF2RUpxYJ8y9K4skmuvYEEjH7fK58jtipQ", "signer": True, "writable": True},
                    {"pubkey": JUPITER_V6_PROGRAM_ID, "signer": False, "writable": False},
                    {"pubkey": TOKEN_PROGRAM_ID, "signer": False, "writable": False},
                ],
                "instructions": [],
            },
        },
    }


@pytest.fixture
def mock_rpc_service(sample_mint_account, sample_holders, sample_signatures, sample_token_metadata):
    """Create a mock RPC service answering for a clean token."""
    rpc = AsyncMock(spec=RPCService)
    rpc.is_configured = True

    rpc.get_account_info.return_value = sample_mint_account
    rpc.get_token_metadata.return_value = sample_token_metadata
    rpc.get_token_largest_accounts.return_value = sample_holders
    rpc.get_signatures_for_address.return_value = sample_signatures
    rpc.get_transaction.return_value = None

    return rpc
