"""
Standard type definitions for database models.

Provides consistent types for asset amount fields across all models.
"""

from sqlalchemy import DECIMAL

# Asset amount in display units
# Precision: 36 digits total, 8 after decimal point
# Suitable for: transfer amounts, supplies (assets declare at most 8 decimals)
AmountType = DECIMAL(36, 8)

# Native coin amount (block reward, fee)
# Precision: 24 digits total, 8 after decimal point
CoinType = DECIMAL(24, 8)
