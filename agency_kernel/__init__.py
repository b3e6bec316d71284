"""
Agency Kernel

Persistence, currency and ledger primitives for the agency operations
backend:
- Multi-currency amounts converted eagerly at write time
- Cached exchange rates behind an injectable clock
- Typed domain errors with machine-readable codes
- Structured JSON logging
"""

__version__ = "0.1.0"
