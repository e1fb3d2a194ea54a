"""pydefaults - Typed keys and per-key change observation over a key-value preference store."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pydefaults")
except PackageNotFoundError:
    __version__ = "0+local"
from pydefaults.config import DefaultsConfig
from pydefaults.exceptions import (
    DefaultsConfigError,
    DefaultsError,
    InvalidKeyError,
    MissingValueError,
    ObserverStateError,
    ValueTypeError,
)
from pydefaults.keys import Key
from pydefaults.native import MemoryStore, NativeStore, standard_store
from pydefaults.observation import ChangeEvent, ObservationRegistry, Observer, ObserverState
from pydefaults.store import Defaults, load_resource
from pydefaults.updates import updates, wait_for

__all__ = [
    "__version__",
    "ChangeEvent",
    "Defaults",
    "DefaultsConfig",
    "DefaultsConfigError",
    "DefaultsError",
    "InvalidKeyError",
    "Key",
    "MemoryStore",
    "MissingValueError",
    "NativeStore",
    "ObservationRegistry",
    "Observer",
    "ObserverState",
    "ObserverStateError",
    "ValueTypeError",
    "load_resource",
    "standard_store",
    "updates",
    "wait_for",
]
