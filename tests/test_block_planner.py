import random

from models.entities import RoomType
from service.block_planner import Block, plan_blocks, split_hours


def test_short_totals_stay_whole():
    rng = random.Random(1)
    assert split_hours(0, rng) == []
    assert split_hours(2, rng) == [2]
    assert split_hours(3, rng) == [3]


def test_seven_hours_split_over_many_trials():
    rng = random.Random(2024)
    for _ in range(1000):
        blocks = plan_blocks(7, 0, rng)
        hours = [b.hours for b in blocks]
        assert sum(hours) == 7
        assert all(h <= max(3, hours[-1]) for h in hours)
        assert all(b.kind == RoomType.LECTURE for b in blocks)


def test_split_sizes_are_positive_for_many_totals():
    rng = random.Random(7)
    for total in range(1, 13):
        for _ in range(200):
            sizes = split_hours(total, rng)
            assert sum(sizes) == total
            assert all(size > 0 for size in sizes)


def test_lecture_blocks_come_before_lab_blocks():
    blocks = plan_blocks(2, 3, random.Random(0))
    assert blocks == [Block(RoomType.LECTURE, 2), Block(RoomType.LAB, 3)]
    assert blocks[1].minutes == 180


def test_no_hours_gives_no_blocks():
    assert plan_blocks(0, 0, random.Random(0)) == []


def test_same_seed_same_plan():
    assert plan_blocks(11, 7, random.Random(5)) == plan_blocks(11, 7, random.Random(5))
