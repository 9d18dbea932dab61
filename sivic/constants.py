"""Constants used throughout the Sivic application.

Program-ID tables are plain data: new loaders or DEXes are added here, not
in the analyzers that consume them.
"""

from dataclasses import dataclass

# SPL token program
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"

# BPF loader variants that own deployed programs
BPF_LOADER_UPGRADEABLE = "BPFLoaderUpgradeab1e11111111111111111111111"
BPF_LOADER_2 = "BPFLoader2111111111111111111111111111111111"
BPF_LOADER_1 = "BPFLoader1111111111111111111111111111111111"

BPF_LOADERS = frozenset({
    BPF_LOADER_UPGRADEABLE,
    BPF_LOADER_2,
    BPF_LOADER_1,
})

# DEX program IDs mapped to the DEX they belong to
JUPITER_V6_PROGRAM_ID = "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4"
JUPITER_V4_PROGRAM_ID = "JUP4Fb2cqiRUcaTHdrPC8h2gNsA2ETXiPDD33WcGuJB"
RAYDIUM_AMM_PROGRAM_ID = "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8"
RAYDIUM_CLMM_PROGRAM_ID = "CAMMCzo5YL8w4VFF8KVHrK22GGUsp5VTaW7grrKgrWqK"
ORCA_WHIRLPOOL_PROGRAM_ID = "whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc"
METEORA_PROGRAM_ID = "LBUZKhRxPF3XUpBCjp4YzTKgLccjZhTSDM9YuVaPwxo"
LIFINITY_PROGRAM_ID = "EewxydAPCCVuNEyrVN68PuSYdQ7wKn27V9Gjeoi8dy3S"

DEX_PROGRAMS = {
    JUPITER_V6_PROGRAM_ID: "Jupiter",
    JUPITER_V4_PROGRAM_ID: "Jupiter",
    RAYDIUM_AMM_PROGRAM_ID: "Raydium",
    RAYDIUM_CLMM_PROGRAM_ID: "Raydium",
    ORCA_WHIRLPOOL_PROGRAM_ID: "Orca",
    METEORA_PROGRAM_ID: "Meteora",
    LIFINITY_PROGRAM_ID: "Lifinity",
}

LAMPORTS_PER_SOL = 1_000_000_000


class CACHE_KEYS:
    """Named keys for the shared response cache."""

    DEFILLAMA_PROTOCOLS = "defillama:protocols"
    DEFILLAMA_CHAINS = "defillama:chains"
    DEFILLAMA_SOL_PRICE = "defillama:sol-price"
    DEFILLAMA_DEX_OVERVIEW = "defillama:dex-overview"
    SOLANA_PROTOCOLS = "solana:protocols"
    NETWORK_HEALTH = "solana:network-health"


class CACHE_TTL:
    """Cache TTL tiers in seconds."""

    SHORT = 60.0
    MEDIUM = 5 * 60.0


@dataclass(frozen=True)
class RiskThresholds:
    """Thresholds used by the on-chain analyzer and the on-chain layer score.

    Percentages are expressed on a 0-100 scale.
    """

    top_holder_critical_pct: float = 50.0
    top_holder_high_pct: float = 25.0
    top10_concentration_pct: float = 80.0
    failure_rate_pct: float = 30.0
    new_token_days: int = 7
    young_token_days: int = 30
    low_usage_tx_count: int = 10
    signature_limit: int = 100
    top_holder_limit: int = 10


DEFAULT_THRESHOLDS = RiskThresholds()
