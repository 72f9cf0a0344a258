"""
Enumerated value types shared by every layer of the production board.

All enums are ``str`` subclasses so that they serialise to the same strings
the persistence layer and the activity trail store.
"""

from __future__ import annotations

from enum import Enum


class MaterialCategory(str, Enum):
    """Material category used by stage allow-lists."""

    RAW = "raw"
    WIP = "wip"
    FINISHED = "finished"


class StageLogicType(str, Enum):
    """Which transition applies when an item enters a stage."""

    PASSTHROUGH = "passthrough"
    SPLIT = "split"
    MERGE = "merge"
    EXIT = "exit"


class ItemStatus(str, Enum):
    """Kanban item lifecycle status. Everything but ACTIVE is terminal."""

    ACTIVE = "active"
    CONSUMED = "consumed"
    SOLD = "sold"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not ItemStatus.ACTIVE


class ActivityAction(str, Enum):
    """Action recorded on an activity log entry."""

    MOVED = "moved"
    SPLIT = "split"
    MERGED = "merged"
    SOLD = "sold"
    ADDED = "added"
    REJECTED = "rejected"
    UNDONE = "undone"  # Compensating entry written by undo


class SalesChannel(str, Enum):
    """Sales channels an exit stage may enable."""

    SHOPEE = "shopee"
    TOKOPEDIA = "tokopedia"
    WHATSAPP = "whatsapp"
    OFFLINE = "offline"
    B2B = "b2b"
    KOL_GIFT = "kol_gift"

    @property
    def label(self) -> str:
        return SALES_CHANNEL_LABELS[self]


SALES_CHANNEL_LABELS: dict[SalesChannel, str] = {
    SalesChannel.SHOPEE: "Shopee",
    SalesChannel.TOKOPEDIA: "Tokopedia",
    SalesChannel.WHATSAPP: "WhatsApp",
    SalesChannel.OFFLINE: "Offline Store",
    SalesChannel.B2B: "B2B / Corporate",
    SalesChannel.KOL_GIFT: "KOL / Gift",
}
