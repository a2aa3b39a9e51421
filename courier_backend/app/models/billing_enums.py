"""
Transaction enumerations.
"""

import enum


class TransactionType(str, enum.Enum):
    """
    Transaction type enumeration.

    The ref_id of a transaction points at a different entity per type:
        MERCHANT_WALLET -> merchant
        RIDER_PAYMENT -> rider
        COD_SETTLEMENT, COMMISSION -> parcel
    """
    MERCHANT_WALLET = "Merchant Wallet"
    COD_SETTLEMENT = "COD Settlement"
    RIDER_PAYMENT = "Rider Payment"
    COMMISSION = "Commission"


class TransactionDirection(str, enum.Enum):
    """Money direction relative to the referenced account."""
    CREDIT = "credit"
    DEBIT = "debit"
