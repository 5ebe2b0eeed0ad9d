"""
Upstream content API clients
"""

from arena402.upstream.arena import ArenaClient

__all__ = ["ArenaClient"]
