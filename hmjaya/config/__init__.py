# hmjaya/config/__init__.py
from __future__ import annotations

"""
hmjaya.config is a PACKAGE.

- Company identity lives in: hmjaya.config.company
- App runtime settings live in: hmjaya.settings
"""

from .company import company_context

__all__ = ["company_context"]
