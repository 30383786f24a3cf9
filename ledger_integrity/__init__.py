"""
Ledger Integrity - Source Package

Keeps automatically captured financial transactions trustworthy:
deduplication, invariant validation, field-level change auditing and
merchant-name resolution over one shared transaction record.

DESIGN PRINCIPLES:
1. Duplicate check always precedes persistence
2. Invariant violations are reported, never silently coerced
3. Every accepted mutation is explained by the audit trail
4. Audit failures never fail the ledger write
5. Storage layer is swappable
"""

__version__ = "1.0.0"
