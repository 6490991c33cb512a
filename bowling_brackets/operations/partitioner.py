"""
Entry Pool Partitioner

Splits an eligible competitor pool into complete brackets of fixed size.
A pool that is too small or leaves a remainder is rejected with the exact
shortfall or surplus, so the caller can tell the desk how many competitors
to add or drop. Pure computation: no storage access, no shuffling.
"""

from typing import Sequence, TypeVar

from bowling_brackets.constants import BracketConstants
from bowling_brackets.data_models.results import PartitionPlan
from bowling_brackets.utils.exceptions import InsufficientPoolError, UnevenPoolError

T = TypeVar('T')


def partition_pool(pool: Sequence[T], group_size: int = BracketConstants.BRACKET_SIZE,
                   bracket_type: str = None) -> PartitionPlan:
    """
    Check that a pool splits into complete groups.
    
    Args:
        pool: Ordered eligible competitors
        group_size: Seats per bracket
        bracket_type: Bracket type name, used only in messages
        
    Returns:
        PartitionPlan with the group count and the unmodified pool
        
    Raises:
        InsufficientPoolError: Pool holds fewer than group_size competitors
        UnevenPoolError: Pool size is not a multiple of group_size
    """
    size = len(pool)
    if size < group_size:
        raise InsufficientPoolError(size, group_size, bracket_type)
    if size % group_size:
        raise UnevenPoolError(size, group_size)
    return PartitionPlan(group_count=size // group_size, pool=list(pool))
