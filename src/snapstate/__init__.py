"""snapstate: memoized, immutable state propagation for Python."""

from importlib.metadata import version as _version

__version__ = _version("snapstate")

from snapstate.equality import equal
from snapstate.errors import (
    ConfigError,
    FreezeError,
    NoValueError,
    ReentrantSetError,
    SnapstateError,
    SubscriberError,
)
from snapstate.frozen import FrozenDict, freeze, thaw
from snapstate._publisher import Subscription
from snapstate.store import Store
from snapstate.derived import DerivedView, select
from snapstate.config import IngestConfig
# timeseries, ingest and textual NOT auto-imported — opt-in only

__all__ = [
    "equal",
    "freeze",
    "thaw",
    "FrozenDict",
    "Store",
    "DerivedView",
    "select",
    "Subscription",
    "IngestConfig",
    "SnapstateError",
    "ConfigError",
    "FreezeError",
    "NoValueError",
    "ReentrantSetError",
    "SubscriberError",
]
