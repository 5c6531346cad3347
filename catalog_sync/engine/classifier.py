"""Decide what a feed item needs relative to its persisted record."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from .feed import FeedItem


class SyncDecision(str, Enum):
    SKIP = "skip"
    CREATE_NEW = "create_new"
    NO_OP = "no_op"


@dataclass(frozen=True, slots=True)
class Classification:
    decision: SyncDecision
    supersedes: bool = False
    previous_price: Decimal | None = None


def classify(item: FeedItem, stored_price: Decimal | None) -> Classification:
    """Classify ``item`` given the price stored for its identifier, if any.

    A price change is treated as a republish: the document store cannot edit
    documents in place, so the old document is replaced by a new one.
    """

    if not item.id:
        return Classification(SyncDecision.SKIP)
    if stored_price is None:
        return Classification(SyncDecision.CREATE_NEW)
    if stored_price == item.price:
        return Classification(SyncDecision.NO_OP, previous_price=stored_price)
    return Classification(SyncDecision.CREATE_NEW, supersedes=True, previous_price=stored_price)


__all__ = ["Classification", "SyncDecision", "classify"]
