"""
Domain enums (minimal set used for clarity in services).
"""

from enum import Enum


class DeliveryOutcome(str, Enum):
    DELIVERED = "DELIVERED"
    GONE = "GONE"  # target permanently invalid, drop the subscription
    FAILED = "FAILED"  # transient, subscription kept
