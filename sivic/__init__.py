"""Sivic Solana security API.

This package exposes the risk-scoring core behind the Sivic dashboard: an
on-chain analyzer, a three-layer risk aggregator, an MEV heuristic scorer
and the cached data gateways that feed them.
"""

__version__ = "1.0.0"
__author__ = "Sivic Team"
__email__ = "dev@sivic.app"
