"""Local live caches fed by the change feed."""

from moneywise.sync.cache import LiveCollection, release_user_state

__all__ = ["LiveCollection", "release_user_state"]
