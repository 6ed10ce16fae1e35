"""
Optional inference backends for overlay_kit.

Kept apart from the decode/suppress/track core so that the core can be used
(and tested) without an inference runtime installed.
"""

from __future__ import annotations

__all__ = []
