"""
Pipeline package exports: registration lookup and image submission.
"""

from pipeline.lookup import find_by_email
from pipeline.submission import submit

__all__ = ["find_by_email", "submit"]
