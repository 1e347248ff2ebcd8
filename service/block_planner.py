"""
Splits a subject's lecture and lab hours into contiguous teaching blocks.
"""
import random
from dataclasses import dataclass
from typing import List, Optional

from models.entities import RoomType


@dataclass(frozen=True)
class Block:
    kind: RoomType
    hours: int

    @property
    def minutes(self) -> int:
        return self.hours * 60


def split_hours(total: int, rng: random.Random, max_block_hours: int = 3) -> List[int]:
    """
    Split ``total`` hours into block sizes.

    Totals up to ``max_block_hours`` stay whole. Longer totals draw
    ``max(min(3, remaining), randint(min(3, remaining), remaining))`` each
    round: a draw that reaches the remainder closes the split with one block of
    everything left, any other draw peels a full ``max_block_hours`` block.
    """
    if total <= 0:
        return []
    if total <= max_block_hours:
        return [total]

    sizes = []
    remaining = total
    while remaining > 0:
        low = min(max_block_hours, remaining)
        size = max(low, rng.randint(low, remaining))
        if size >= remaining:
            sizes.append(remaining)
            break
        sizes.append(max_block_hours)
        remaining -= max_block_hours
    return sizes


def plan_blocks(
    lecture_hours: int,
    lab_hours: int,
    rng: Optional[random.Random] = None,
    max_block_hours: int = 3,
) -> List[Block]:
    """Lecture blocks first, then lab blocks."""
    rng = rng or random.Random()
    blocks = [Block(RoomType.LECTURE, h) for h in split_hours(lecture_hours, rng, max_block_hours)]
    blocks += [Block(RoomType.LAB, h) for h in split_hours(lab_hours, rng, max_block_hours)]
    return blocks
