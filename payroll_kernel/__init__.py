"""
Payroll Kernel

Ambient infrastructure shared by the payroll engine packages:
- Structured JSON logging with request-scoped context
- Typed exception hierarchy with machine-readable codes
- Decimal money rounding and an injectable clock
- SQLAlchemy base classes and append-only persistence guards
"""

__version__ = "0.1.0"
