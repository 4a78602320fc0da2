"""
User roles enumeration.

Defines the role types carried in access tokens.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Full access, including wallet adjustments and deletes
        MANAGER: Manages a set of client accounts and their orders
        DISPATCH: Works the order pipeline (SKUs, pickups, labels)
        ACCOUNTANT: Wallet adjustments and ledger reports
        USER: End customer (brand) owning one wallet account
    """
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    DISPATCH = "DISPATCH"
    ACCOUNTANT = "ACCOUNTANT"
    USER = "USER"


STAFF_ROLES = [UserRole.ADMIN, UserRole.MANAGER, UserRole.DISPATCH, UserRole.ACCOUNTANT]
