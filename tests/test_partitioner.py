"""Tests for splitting an eligible pool into complete brackets"""

import pytest

from bowling_brackets.operations.partitioner import partition_pool
from bowling_brackets.utils.exceptions import InsufficientPoolError, UnevenPoolError


def test_exact_multiple_keeps_pool_order():
    pool = list(range(1, 17))
    plan = partition_pool(pool)
    assert plan.group_count == 2
    assert plan.pool == pool


def test_single_bracket():
    plan = partition_pool(['a', 'b', 'c', 'd', 'e', 'f', 'g', 'h'])
    assert plan.group_count == 1


def test_nine_competitors_reports_remainder():
    with pytest.raises(UnevenPoolError) as info:
        partition_pool(list(range(9)))

    error = info.value
    assert error.code == 'uneven_pool'
    assert error.details == {
        'pool_size': 9,
        'full_groups': 1,
        'remainder': 1,
        'needed_to_complete': 7,
        'to_remove': 1,
    }
    assert "creates 1 complete bracket with 1 remaining" in error.user_message
    assert "Need 7 more competitors or remove 1." in error.user_message


def test_five_competitors_reports_shortfall():
    with pytest.raises(InsufficientPoolError) as info:
        partition_pool(list(range(5)), bracket_type='scratch')

    assert info.value.code == 'insufficient_pool'
    assert info.value.details == {'pool_size': 5, 'needed': 3}
    assert "Need 3 more." in info.value.user_message
    assert "scratch brackets" in info.value.user_message


def test_empty_pool_needs_a_full_bracket():
    with pytest.raises(InsufficientPoolError) as info:
        partition_pool([])
    assert info.value.needed == 8


def test_larger_remainder():
    with pytest.raises(UnevenPoolError) as info:
        partition_pool(list(range(22)))
    assert info.value.full_groups == 2
    assert info.value.remainder == 6
    assert info.value.needed_to_complete == 2


def test_custom_group_size():
    assert partition_pool(list(range(12)), group_size=4).group_count == 3
