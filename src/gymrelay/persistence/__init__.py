"""Persistence: retrying webhook client and the detached submission sink."""

from gymrelay.persistence.client import PersistenceClient, backoff_wait
from gymrelay.persistence.sink import PersistenceSink

__all__ = ["PersistenceClient", "PersistenceSink", "backoff_wait"]
