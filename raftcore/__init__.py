"""Replicated log core for the Raft consensus algorithm: entries, unstable tail, log and logging."""

__version__ = "0.1.0"
__all__ = ["logger", "raftlog", "types", "unstable"]