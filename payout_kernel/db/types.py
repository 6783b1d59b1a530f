"""
Module: payout_kernel.db.types
Responsibility: Column types and precision constants shared by every payout
    model, so that precision is declared once.
Architecture position: Kernel > DB.  May be imported by models/.  MUST NOT
    import from models/, services/ or selectors/.

Invariants enforced:
    - Money columns carry exactly 2 decimal places (minor units).  Rounding
      happens in domain/money.py before values reach the database.
    - Rate columns (fee and TDS percentages) carry 6 decimal places, so
      0.5% is stored as 0.005000 without loss.  Rate columns must name
      RATE explicitly in ``mapped_column``; a bare ``Mapped[Decimal]``
      resolves to MONEY through Base.type_annotation_map.
"""

from sqlalchemy import Numeric

MONEY_DECIMAL_PLACES = 2
RATE_DECIMAL_PLACES = 6

# Monetary amount, 18 digits total
MONEY = Numeric(18, MONEY_DECIMAL_PLACES)

# Fractional rate such as a fee or TDS percentage (0.005 == 0.5%)
RATE = Numeric(9, RATE_DECIMAL_PLACES)
