"""
Static security rules for Solana programs.

The rules are derived from historical exploit patterns and grouped into
exploit categories A-J. Matching is a fast regex pre-screen over source
code; findings carry a fixed confidence because a textual match is only
weak evidence.
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Pattern, Sequence, Tuple

from sivic.models.analysis import SecurityFinding, Severity

PATTERN_MATCH_CONFIDENCE = 70

SEVERITY_SCORES = {
    Severity.CRITICAL: 25,
    Severity.HIGH: 15,
    Severity.MEDIUM: 8,
    Severity.LOW: 3,
}

EXPLOIT_CATEGORIES = {
    "A": "Reentrancy",
    "B": "Oracle/Price Manipulation",
    "C": "Access Control",
    "D": "Token Minting/Burning",
    "E": "Flashloan Attacks",
    "F": "Logic/Math Errors",
    "G": "Contract Exploitation",
    "H": "Liquidity/Pool Attacks",
    "I": "Governance Attacks",
    "J": "Signature/Validation",
}

_I = re.IGNORECASE


@dataclass(frozen=True)
class SecurityRule:
    id: str
    name: str
    category: str
    severity: Severity
    description: str
    patterns: Tuple[Pattern, ...]
    remediation: str
    references: Tuple[str, ...] = ()
    exploit_examples: Tuple[str, ...] = ()
    on_chain_indicators: Tuple[str, ...] = ()


def _rx(*patterns: str, flags: int = _I) -> Tuple[Pattern, ...]:
    return tuple(re.compile(p, flags) for p in patterns)


SOLANA_SECURITY_RULES: Tuple[SecurityRule, ...] = (
    # Category A: reentrancy
    SecurityRule(
        id="SOL-REENT-001",
        name="Missing Reentrancy Guard",
        category="A",
        severity=Severity.CRITICAL,
        description="No reentrancy protection in functions with external calls",
        patterns=_rx(r"invoke_signed\s*\(", r"invoke\s*\(", r"CpiContext"),
        remediation="Implement reentrancy guard using mutex pattern or Anchor's #[access_control]. "
                    "Use check-effects-interactions pattern.",
        references=("https://github.com/coral-xyz/sealevel-attacks/tree/main/programs/9-closing-accounts",),
        exploit_examples=("Siren ($3.45M)", "Conic Finance ($3.2M)", "EraLend ($3.4M)"),
    ),
    SecurityRule(
        id="SOL-REENT-002",
        name="State Update After External Call",
        category="A",
        severity=Severity.HIGH,
        description="State variables updated after making external calls",
        patterns=_rx(r"invoke.*\n.*=\s*\d", r"invoke.*\n.*\.set\("),
        remediation="Move all state updates before external calls (check-effects-interactions pattern).",
        exploit_examples=("Penpie ($27M)",),
    ),
    # Category B: oracle and price manipulation
    SecurityRule(
        id="SOL-ORACLE-001",
        name="Single Oracle Dependency",
        category="B",
        severity=Severity.HIGH,
        description="Protocol relies on a single price oracle source",
        patterns=_rx(r"get_price\s*\(", r"fetch_price\s*\(", r"oracle\.get", r"pyth.*get_price"),
        remediation="Use multiple oracle sources (Pyth + Switchboard + Chainlink). "
                    "Implement TWAP for price smoothing.",
        references=("https://www.halborn.com/blog/post/explained-the-mango-markets-exploit-october-2022",),
        exploit_examples=("Mango Markets ($115M)", "Harvest Finance ($25M)", "Polter Finance ($12M)"),
        on_chain_indicators=("Single oracle account referenced",),
    ),
    SecurityRule(
        id="SOL-ORACLE-002",
        name="Missing Price Staleness Check",
        category="B",
        severity=Severity.HIGH,
        description="No validation of oracle price freshness/timestamp",
        patterns=_rx(r"price(?!.*timestamp)", r"get_price(?!.*stale)"),
        remediation="Always check oracle price timestamp. "
                    "Reject prices older than threshold (e.g., 60 seconds).",
        exploit_examples=("Tender Finance ($1.6M)", "Blizz Finance ($21.8M)"),
    ),
    SecurityRule(
        id="SOL-ORACLE-003",
        name="Missing Price Bounds Check",
        category="B",
        severity=Severity.MEDIUM,
        description="No sanity check on oracle price values",
        patterns=_rx(r"price\s*[<>=]"),
        remediation="Implement price deviation checks. Reject prices that deviate >X% from last known price.",
        exploit_examples=("LeadBlock Morpho Blue ($250K)",),
    ),
    # Category C: access control
    SecurityRule(
        id="SOL-ACCESS-001",
        name="Missing Signer Verification",
        category="C",
        severity=Severity.CRITICAL,
        description="Privileged function without signer check",
        patterns=_rx(r"admin|owner|authority", r"set_.*\(", r"update_.*\(", r"withdraw\s*\("),
        remediation="Add require!(ctx.accounts.authority.is_signer) for all privileged operations.",
        references=("https://github.com/coral-xyz/sealevel-attacks/tree/main/programs/0-signer-authorization",),
        exploit_examples=("Crema Finance ($8.8M)", "Radiant V2 ($53M)", "Safemoon ($8.9M)"),
    ),
    SecurityRule(
        id="SOL-ACCESS-002",
        name="Missing Account Owner Validation",
        category="C",
        severity=Severity.CRITICAL,
        description="PDA or program accounts not validated for ownership",
        patterns=_rx(r"AccountInfo", r"UncheckedAccount", r"Account<.*>"),
        remediation="Use Anchor's owner constraint or manually verify account.owner == expected_program_id.",
        references=("https://github.com/coral-xyz/sealevel-attacks/tree/main/programs/2-owner-checks",),
        exploit_examples=("Wormhole ($326M)", "Cashio ($48M)"),
    ),
    SecurityRule(
        id="SOL-ACCESS-003",
        name="Missing Multisig for Admin",
        category="C",
        severity=Severity.HIGH,
        description="Single address controls critical protocol functions",
        patterns=_rx(r"admin|owner|authority"),
        remediation="Use multi-signature wallet (Squads, Realms) for admin functions. Minimum 2/3 signatures.",
        exploit_examples=("Various private key compromises",),
        on_chain_indicators=("Admin is single signature, not multisig",),
    ),
    SecurityRule(
        id="SOL-ACCESS-004",
        name="Upgradeable Without Timelock",
        category="C",
        severity=Severity.HIGH,
        description="Contract can be upgraded without delay",
        patterns=_rx(r"upgrade", r"set_program"),
        remediation="Implement timelock (24-48 hours minimum) for program upgrades to allow user exit.",
        exploit_examples=("UPCX", "Munchables ($62.5M)"),
        on_chain_indicators=("Program is upgradeable", "No timelock in upgrade path"),
    ),
    # Category D: minting and burning
    SecurityRule(
        id="SOL-MINT-001",
        name="Unrestricted Mint Authority",
        category="D",
        severity=Severity.CRITICAL,
        description="Token mint authority not disabled or controlled by multisig",
        patterns=_rx(r"mint_to\s*\(", r"MintTo"),
        remediation="Disable mint authority after initial supply or use multisig control.",
        exploit_examples=("Gala ($22M)", "Holograph ($6.7M)", "Super Sushi Samurai ($4.8M)"),
        on_chain_indicators=("Mint authority is single wallet", "Mint authority not null"),
    ),
    SecurityRule(
        id="SOL-MINT-002",
        name="No Supply Cap",
        category="D",
        severity=Severity.HIGH,
        description="Token has no maximum supply limit enforced",
        patterns=_rx(r"max_supply", r"supply_cap"),
        remediation="Implement hard-coded maximum supply limit in mint function.",
        exploit_examples=("Infinite mint attacks",),
    ),
    SecurityRule(
        id="SOL-MINT-003",
        name="Public Mint Function",
        category="D",
        severity=Severity.MEDIUM,
        description="Minting function accessible without proper access control",
        patterns=_rx(r"pub\s+fn\s+mint", r"#\[access_control\].*mint"),
        remediation="Restrict mint function to authorized addresses only.",
        exploit_examples=("Raft ($3.3M)", "Port3 Network ($166K)"),
    ),
    # Category E: flash loans
    SecurityRule(
        id="SOL-FLASH-001",
        name="Single Block State Change Vulnerability",
        category="E",
        severity=Severity.HIGH,
        description="Critical operations can complete within single block/transaction",
        patterns=_rx(r"deposit.*withdraw", r"stake.*unstake", r"borrow.*repay"),
        remediation="Implement time delays or multi-block confirmation for large value operations.",
        exploit_examples=("Euler V1 ($197M)", "Beanstalk ($181M)", "Saddle Finance ($11M)"),
    ),
    SecurityRule(
        id="SOL-FLASH-002",
        name="Flash Loan Donation Attack Vector",
        category="E",
        severity=Severity.HIGH,
        description="Donation/empty market attack possible through flashloan",
        patterns=_rx(r"donate\s*\(", r"transfer.*total_supply"),
        remediation="Prevent pool manipulation by implementing minimum liquidity requirements.",
        exploit_examples=("Hundred Finance ($7M)", "Onyx Protocol ($2.1M)", "Sonne Finance ($20M)"),
    ),
    # Category F: logic and math errors
    SecurityRule(
        id="SOL-MATH-001",
        name="Unchecked Arithmetic",
        category="F",
        severity=Severity.HIGH,
        description="Arithmetic operations without overflow/underflow protection",
        patterns=_rx(r"\+\s*\d", r"\-\s*\d", r"\*\s*\d", r"/\s*\d", flags=0),
        remediation="Use checked_add, checked_sub, checked_mul, checked_div. "
                    "Enable overflow-checks in Cargo.toml.",
        references=("https://github.com/coral-xyz/sealevel-attacks/tree/main/programs/4-integer-overflow",),
        exploit_examples=("Compound V2 ($147M)", "ValueDefi ($11M)"),
    ),
    SecurityRule(
        id="SOL-MATH-002",
        name="Division Before Multiplication",
        category="F",
        severity=Severity.MEDIUM,
        description="Division performed before multiplication causing precision loss",
        patterns=_rx(r"/.*\*", flags=0),
        remediation="Always multiply before dividing to maintain precision.",
        exploit_examples=("Wise Lending V1 ($464K)", "Decimal miscalculation exploits"),
    ),
    SecurityRule(
        id="SOL-MATH-003",
        name="Rounding Error Vulnerability",
        category="F",
        severity=Severity.MEDIUM,
        description="Rounding in token calculations can be exploited",
        patterns=_rx(r"round|floor|ceil") + _rx(r"as u\d+", flags=0),
        remediation="Implement dust thresholds. Use consistent rounding direction. Consider all edge cases.",
        exploit_examples=("Midas Capital ($600K)", "Tropykus RSK ($150K)"),
    ),
    # Category G: contract exploitation
    SecurityRule(
        id="SOL-CPI-001",
        name="Unvalidated CPI Call",
        category="G",
        severity=Severity.CRITICAL,
        description="Cross-Program Invocation without program ID validation",
        patterns=_rx(r"invoke\s*\(", r"invoke_signed\s*\(", r"CpiContext"),
        remediation="Always validate the program ID of CPI targets against known constants.",
        references=("https://github.com/coral-xyz/sealevel-attacks/tree/main/programs/8-arbitrary-cpi",),
        exploit_examples=("Cashio ($48M)", "Various CPI exploits"),
    ),
    SecurityRule(
        id="SOL-CPI-002",
        name="User-Controlled Call Data",
        category="G",
        severity=Severity.CRITICAL,
        description="External call parameters controlled by user input",
        patterns=_rx(r"invoke.*user|input|param", r"data:.*ctx\.accounts"),
        remediation="Strictly validate and sanitize all user inputs before use in CPI calls.",
        exploit_examples=("Unizen ($2.1M)", "Router exploits"),
    ),
    # Category H: liquidity and pools
    SecurityRule(
        id="SOL-LIQ-001",
        name="Concentrated LP Holdings",
        category="H",
        severity=Severity.HIGH,
        description="Single address holds majority of LP tokens",
        patterns=(),
        remediation="Ensure LP token distribution or implement vesting for team allocations.",
        exploit_examples=("Bald ($23M)", "Various rugpulls"),
        on_chain_indicators=("Top holder has >50% of LP tokens",),
    ),
    SecurityRule(
        id="SOL-LIQ-002",
        name="Missing Slippage Protection",
        category="H",
        severity=Severity.MEDIUM,
        description="No slippage limits on swap operations",
        patterns=_rx(r"slippage|min_out|minimum", r"swap(?!.*slippage)"),
        remediation="Implement user-definable slippage tolerance. Default to reasonable limits (0.5-3%).",
        exploit_examples=("MEV sandwich attacks",),
    ),
    # Category I: governance
    SecurityRule(
        id="SOL-GOV-001",
        name="Flash Loan Governance Attack Vector",
        category="I",
        severity=Severity.HIGH,
        description="Governance voting possible within single block (flash-voteable)",
        patterns=_rx(r"vote|proposal|governance"),
        remediation="Implement voting delay (at least 1 block). Snapshot voting power before proposal.",
        exploit_examples=("Beanstalk ($181M)", "Curio ($16M)"),
    ),
    SecurityRule(
        id="SOL-GOV-002",
        name="Insufficient Quorum",
        category="I",
        severity=Severity.MEDIUM,
        description="Governance quorum too low for critical decisions",
        patterns=_rx(r"quorum"),
        remediation="Set appropriate quorum levels (minimum 10-20% for critical decisions).",
        exploit_examples=("Voting power inflation attacks",),
        on_chain_indicators=("Quorum < 10% of total supply",),
    ),
    # Category J: signatures and validation
    SecurityRule(
        id="SOL-VAL-001",
        name="Missing Account Discriminator",
        category="J",
        severity=Severity.HIGH,
        description="Account type not verified with discriminator byte",
        patterns=_rx(r"Account<|AccountLoader<", r"AccountInfo"),
        remediation="Use Anchor discriminators or implement manual account type tags (first 8 bytes).",
        references=("https://github.com/coral-xyz/sealevel-attacks/tree/main/programs/3-type-cosplay",),
        exploit_examples=("Type confusion attacks",),
    ),
    SecurityRule(
        id="SOL-VAL-002",
        name="Signature Replay Vulnerability",
        category="J",
        severity=Severity.HIGH,
        description="Signed messages can be replayed",
        patterns=_rx(r"verify.*signature", r"ed25519_verify"),
        remediation="Include nonce or timestamp in signed message. Track used signatures to prevent replay.",
        exploit_examples=("Portal ($326M)", "AzukiDAO ($68K)"),
    ),
    SecurityRule(
        id="SOL-VAL-003",
        name="Missing Input Validation",
        category="J",
        severity=Severity.MEDIUM,
        description="User inputs not properly validated before use",
        patterns=_rx(r"param|input|arg"),
        remediation="Validate all user inputs: check ranges, types, and sanity of values.",
        exploit_examples=("Convergence ($210K)", "Various input validation exploits"),
    ),
)


def match_security_patterns(
    code: str,
    rules: Optional[Sequence[SecurityRule]] = None
) -> List[SecurityFinding]:
    """
    Match source code against the security rules.

    Each rule is reported at most once, for the first of its patterns that
    matches.

    Args:
        code: Program source code
        rules: Rules to apply, defaults to every Solana rule

    Returns:
        Findings in rule order
    """
    findings: List[SecurityFinding] = []
    if not code:
        return findings

    for rule in SOLANA_SECURITY_RULES if rules is None else rules:
        for pattern in rule.patterns:
            matches = [m.group(0) for m in pattern.finditer(code)]
            if matches:
                findings.append(SecurityFinding(
                    rule_id=rule.id,
                    rule_name=rule.name,
                    severity=rule.severity,
                    description=rule.description,
                    evidence=f'Found {len(matches)} occurrence(s): "{matches[0]}"',
                    remediation=rule.remediation,
                    confidence=PATTERN_MATCH_CONFIDENCE,
                    references=rule.references,
                ))
                break
    return findings


def calculate_pattern_score(findings: Iterable[SecurityFinding]) -> int:
    """Sum of severity scores over the findings, capped at 100."""
    return min(sum(SEVERITY_SCORES[f.severity] for f in findings), 100)


def get_rules_by_category(category: str) -> List[SecurityRule]:
    return [rule for rule in SOLANA_SECURITY_RULES if rule.category == category]


def get_rules_by_severity(severity: Severity) -> List[SecurityRule]:
    return [rule for rule in SOLANA_SECURITY_RULES if rule.severity == severity]
