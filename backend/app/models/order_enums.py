"""
Order enumerations.
"""

import enum


class FulfillmentMode(str, enum.Enum):
    """
    Which pricing and status vocabulary governs an order.

    CARRIER: ingested from the carrier aggregator, priced per SKU
    EASY_SHIP: entered manually with flat order/shipping amounts
    """
    CARRIER = "CARRIER"
    EASY_SHIP = "EASY_SHIP"


class OrderStatus(str, enum.Enum):
    """
    Order status enumeration.

    Status flow:
        NEW → In Progress (AWB assigned)
        NEW / In Progress → HMI (held, money issue) or RTD / Schedule (funded)
        RTD / Schedule → Received (pickup scheduled) → SHIPPED
        RTD ⇄ PNA, SHIPPED → RTD (unship), HMI → Archived ⇄ HMI, HMI → RA
    """
    NEW = "NEW"
    IN_PROGRESS = "In Progress"
    HMI = "HMI"
    SCHEDULE = "Schedule"
    RTD = "RTD"
    RECEIVED = "Received"
    PNA = "PNA"
    SHIPPED = "SHIPPED"
    ARCHIVED = "Archived"
    RA = "RA"


class OrderEvent(str, enum.Enum):
    """Events accepted by the order state machine."""
    ASSIGN_AWB = "ASSIGN_AWB"
    HOLD = "HOLD"
    FUND = "FUND"
    ARCHIVE = "ARCHIVE"
    UNARCHIVE = "UNARCHIVE"
    RETURN_ADJUST = "RETURN_ADJUST"
    MARK_UNAVAILABLE = "MARK_UNAVAILABLE"
    MARK_AVAILABLE = "MARK_AVAILABLE"
    PICKUP_SCHEDULED = "PICKUP_SCHEDULED"
    LABEL_GENERATED = "LABEL_GENERATED"
    SHIP = "SHIP"
    UNSHIP = "UNSHIP"
