"""External API integrations.

This package contains:
- Provider protocol: Interfaces for the bank and brokerage providers
- Plaid client: Bank transactions, accounts and item status
- SnapTrade client: Brokerage accounts and positions
"""

from integrations.provider_protocol import (
    BankProviderClient,
    BrokerageProviderClient,
)

__all__ = [
    "BankProviderClient",
    "BrokerageProviderClient",
]
