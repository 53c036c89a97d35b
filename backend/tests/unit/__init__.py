"""
Unit tests: entities, DTOs, config, the ledger and loan repository against
in-memory SQLite, and the loan service.
"""
