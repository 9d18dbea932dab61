"""Test configuration for pytest.

This module imports fixtures that should be available to all tests.
"""

# Import fixtures
from tests.fixtures.common import (  # noqa
    fake_clock,
    millis_clock,
    helius_config,
    unconfigured_helius_config,
    mock_rpc_service,
    response_cache,
    sample_mint_account,
    sample_holders,
    sample_signatures,
    sample_token_metadata,
    sample_program_account,
    sample_program_data_account,
    sample_jupiter_transaction,
)
