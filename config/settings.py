"""
Configuration constants and settings for Oasis Staking Rewards.

Centralizes all configuration including:
- Nexus API endpoint
- Token denomination
- Event type names
- Known epoch ranges
"""

import os
from dotenv import load_dotenv

load_dotenv()

# ═══ Nexus API ═══
NEXUS_API_URL = os.getenv("NEXUS_API_URL", "https://nexus.oasis.io/v1")

# ═══ User Configuration ═══
DELEGATOR_ADDRESS = os.getenv("DELEGATOR_ADDRESS", "")

# ═══ Denomination ═══
ROSE_DECIMALS = 9
SHARE_PRICE_EXTRA_DECIMALS = 18
SHARE_PRICE_SCALE = 10**SHARE_PRICE_EXTRA_DECIMALS

# ═══ Consensus Event Types ═══
EVENT_ESCROW_ADD = "staking.escrow.add"
EVENT_ESCROW_DEBONDING_START = "staking.escrow.debonding_start"

# ═══ Sampling ═══
MONTHLY_SAMPLES = 12
# Validator history is fetched from this many epochs before the period start
# so the start-of-period snapshot can be located.
HISTORY_LOOKBACK_EPOCHS = 100

# ═══ Known Epoch Ranges ═══
# Calendar year -> (first epoch, last epoch). Years not listed here are
# resolved against the API by epoch start timestamp.
EPOCH_RANGES = {
    2024: (28809, 37689),
}
