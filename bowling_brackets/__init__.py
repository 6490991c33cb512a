"""
Bowling brackets engine.

Partitions a session's competitors into 8-seat brackets, records scores,
ranks and completes brackets, and runs the eliminator side game.
"""

__version__ = "0.1.0"

from bowling_brackets.engine import BracketEngine

__all__ = ['BracketEngine', '__version__']
