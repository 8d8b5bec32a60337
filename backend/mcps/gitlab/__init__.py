"""
GitLab repository client module exports.
"""

from .client import GitLabClient

__all__ = ["GitLabClient"]
