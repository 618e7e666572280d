"""
Application constants to replace magic numbers throughout the codebase.
"""
from decimal import Decimal

# Default values
ZERO = Decimal('0')

# Database query limits
DEFAULT_QUERY_LIMIT = 50
MAX_QUERY_LIMIT = 500

# Field sizes
MAX_TICKER_LENGTH = 16
MAX_SETUP_LENGTH = 100
