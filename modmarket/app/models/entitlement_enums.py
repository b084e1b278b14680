"""
Entitlement and ledger enumerations.
"""

import enum


UNASSIGNED_SERVER_ID = -1  # purchase held in personal storage, not on any server


class EntitlementState(str, enum.Enum):
    """Lifecycle of a purchase entitlement as seen by the reconciliation tick."""
    ACTIVE = "ACTIVE"  # Within its paid period (or expired, awaiting renewal funds)
    RENEWED = "RENEWED"  # Auto-renewed at least once
    EXPIRED_REMOVED = "EXPIRED_REMOVED"  # Mod taken off the server / released from claims


class DepositMode(str, enum.Enum):
    """How a deposit is applied to the stored balance."""
    SET = "SET"  # Overwrite balance with the gross amount
    ADD = "ADD"  # Add the amount net of commission
