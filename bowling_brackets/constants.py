"""
Engine-wide constants for the bracket engine.

This module contains the fixed sizes and category names used throughout
the codebase so that no magic numbers leak into the operations layer.
"""

class BracketConstants:
    """Constants related to bracket capacity and seeding."""
    
    # Every bracket holds exactly this many competitors
    BRACKET_SIZE = 8
    
    # Games bowled per bracket entry
    GAMES_PER_ENTRY = 3
    
    # Minimum ranked entries needed to name a winner and runner-up
    MIN_ENTRIES_TO_COMPLETE = 2

class ScoreConstants:
    """Constants for score and handicap arithmetic."""
    
    # Handicap is a percentage of the difference from this base average
    HANDICAP_BASE = 200

class SideGameConstants:
    """Constants for side games."""
    
    # Competitor flag that enrolls a competitor in each side game type
    CATEGORY_FLAGS = {
        'high_game_scratch': 'high_game_scratch',
        'high_game_handicap': 'high_game_handicap',
        'eliminator': 'eliminator',
    }
    
    # Competitor count field that enrolls a competitor in each bracket type
    BRACKET_COUNT_FIELDS = {
        'scratch': 'scratch_brackets',
        'handicap': 'handicap_brackets',
    }
