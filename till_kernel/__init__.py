"""
Till Kernel - shared foundation for the daily till audit.

Provides:
- Decimal-only monetary helpers with explicit two-place rounding
- Immutable input records (orders) and the payment method catalog
- Typed exception hierarchy with machine-readable codes
- Structured JSON logging with request-scoped context
"""

__version__ = "0.1.0"
