"""
User roles enumeration.

Defines the role types for the mod marketplace.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.
    
    Roles:
        ADMIN: Marketplace operator (deposits, cash-outs, manual reconciliation)
        DEVELOPER: Publishes mods and receives purchase earnings
        BUYER: Buys mods and subscriptions for their servers (default role)
    """
    ADMIN = "ADMIN"
    DEVELOPER = "DEVELOPER"
    BUYER = "BUYER"
