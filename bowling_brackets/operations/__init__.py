"""
Operations Layer

This package provides the engine's business logic. Operations compose
record-store calls into complete workflows, validate input, and return
OperationResult values instead of raising for expected domain conditions.

Architecture:
- Database layer: Record store contract and SQLAlchemy implementation
- Operations layer: Business logic composition and workflows
- Callers: Whatever transport delivers requests to the engine

Each operations module focuses on one component:
- partitioner: Entry Pool Partitioner (pure)
- bracket_builder: Bracket creation and seeding
- score_ledger: Bracket and side-game scores
- progression: Ranking and bracket completion
- cutoff: Eliminator cut line and eliminations
- competitor_operations: Read-only session and competitor lookups
"""
