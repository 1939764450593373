"""
Console Kernel - shared infrastructure for the admin console batch engine.

- Structured JSON logging with job-scoped context
- Typed exception hierarchy with machine-readable codes
- Injectable clock
- SQLAlchemy declarative base for persisted batch outcomes
"""

__version__ = "0.1.0"
