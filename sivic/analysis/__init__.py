"""Security analysis: on-chain analyzer, detection layers, aggregation and MEV scoring."""
