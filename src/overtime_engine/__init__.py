"""Overtime request lifecycle engine.

Submission, multi-role approval, pay formula evaluation and threshold
enforcement for overtime (OT) claims.
"""

__version__ = "0.1.0"
