"""
Model import hook.

Importing this module ensures all SQLAlchemy models are registered on Base.metadata.
"""

from __future__ import annotations

from yibaoxiao.modules.extraction.models import RecognitionCache  # noqa: F401
