"""Largest values the schema columns can store."""
from decimal import Decimal

# BIGINT primary keys
MAX_ID = 2 ** 63 - 1

# NUMERIC(12, 2) money columns
MAX_AMOUNT = Decimal('9999999999.99')

# INTEGER quantity columns
MAX_QUANTITY = 2 ** 31 - 1
