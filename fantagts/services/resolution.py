"""Sub-auction resolution strategies.

Both strategies turn the sealed bids of one sub-auction into wins. They never
touch storage or session state; the engine applies what they return.

Ties on the highest amount are broken with the injected ``random.Random``.
The draw is intentionally non-deterministic unless the source is seeded.
"""

import random
from collections import OrderedDict
from decimal import Decimal, ROUND_HALF_EVEN
from typing import Dict, List

from .session_state import SealedBid, WinResult


def round_half_even(value: Decimal) -> int:
    """Round to the nearest integer, exact halves go to the even neighbour."""
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_EVEN))


def group_bids_by_slot(bids: List[SealedBid], slot_order: List[str]) -> "OrderedDict[str, List[SealedBid]]":
    """Group bids per slot, slots in round order, bids in submission order."""
    grouped: "OrderedDict[str, List[SealedBid]]" = OrderedDict()
    ordered_bids = sorted(bids, key=lambda b: b.submitted_at)
    for slot_id in slot_order:
        slot_bids = [b for b in ordered_bids if b.slot_id == slot_id]
        if slot_bids:
            grouped[slot_id] = slot_bids
    return grouped


def pick_highest(bids: List[SealedBid], rng: random.Random) -> SealedBid:
    top = max(b.amount for b in bids)
    # Arrival order must not influence a seeded draw
    tie_set = sorted((b for b in bids if b.amount == top), key=lambda b: b.participant_id)
    if len(tie_set) == 1:
        return tie_set[0]
    return rng.choice(tie_set)


class ExclusiveResolution:
    """Highest sealed bid wins the slot and pays its own bid."""

    name = "exclusive"

    def max_cost(self, amount: int) -> int:
        return amount

    def resolve(
        self,
        bids: List[SealedBid],
        slot_order: List[str],
        participant_names: Dict[str, str],
        rng: random.Random,
    ) -> List[WinResult]:
        wins = []
        for slot_id, slot_bids in group_bids_by_slot(bids, slot_order).items():
            best = pick_highest(slot_bids, rng)
            wins.append(WinResult(
                participant_id=best.participant_id,
                display_name=participant_names.get(best.participant_id, best.participant_id),
                slot_id=slot_id,
                bid_amount=best.amount,
                final_cost=best.amount,
            ))
        return wins


class SharedPremiumResolution(ExclusiveResolution):
    """Repeat-auction pricing for when bidders outnumber slots.

    When ``n`` pending participants compete for fewer slots, the
    ``n - slots`` slots with the highest total bids become shareable: every
    bidder on them wins a copy. The top bidder pays its bid, the others pay
    the bid plus the premium. Remaining slots follow the exclusive rule.
    """

    name = "shared_premium"

    def __init__(self, premium: float = 0.10):
        self.premium = Decimal(str(premium))

    def max_cost(self, amount: int) -> int:
        return round_half_even(Decimal(amount) * (1 + self.premium))

    def resolve(
        self,
        bids: List[SealedBid],
        slot_order: List[str],
        participant_names: Dict[str, str],
        rng: random.Random,
    ) -> List[WinResult]:
        grouped = group_bids_by_slot(bids, slot_order)
        shareable_count = max(0, len(participant_names) - len(slot_order))
        by_total = sorted(
            grouped.items(),
            key=lambda item: sum(b.amount for b in item[1]),
            reverse=True,
        )
        shared_slots = dict(by_total[:shareable_count])

        wins = []
        for slot_id, slot_bids in grouped.items():
            if slot_id not in shared_slots:
                wins.extend(super().resolve(slot_bids, [slot_id], participant_names, rng))
                continue

            best = pick_highest(slot_bids, rng)
            others = sorted(
                (b for b in slot_bids if b is not best),
                key=lambda b: b.amount,
                reverse=True,
            )
            for index, bid in enumerate([best] + others):
                premium = Decimal(0) if index == 0 else self.premium
                wins.append(WinResult(
                    participant_id=bid.participant_id,
                    display_name=participant_names.get(bid.participant_id, bid.participant_id),
                    slot_id=slot_id,
                    bid_amount=bid.amount,
                    final_cost=round_half_even(Decimal(bid.amount) * (1 + premium)),
                    premium=float(premium),
                    shared=True,
                ))
        return wins


def get_resolution_strategy(name: str, premium: float = 0.10):
    if name == ExclusiveResolution.name:
        return ExclusiveResolution()
    if name == SharedPremiumResolution.name:
        return SharedPremiumResolution(premium)
    raise ValueError(f"Unknown resolution strategy: {name}")
