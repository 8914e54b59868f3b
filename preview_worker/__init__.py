"""
Document preview worker.

Background worker that turns uploaded Word documents into PDF previews.
"""

__version__ = "0.1.0"
