"""pyphonedata - compact phone prefix data with atomic background refresh."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyphonedata")
except PackageNotFoundError:
    __version__ = "0+local"
from pyphonedata._codec import (
    PrefixMapCodec,
    PrefixMapKind,
    decode_prefix_map,
    decode_single_prefix_map,
    encode_prefix_map,
    encode_single_prefix_map,
)
from pyphonedata.cache import SnapshotCache
from pyphonedata.config import UpdaterConfig
from pyphonedata.daemon import AutoUpdateDaemon, init_auto_update_daemon
from pyphonedata.exceptions import (
    ConfigError,
    CorruptEncodingError,
    FetchError,
    InvalidPrefixMapError,
    LoadError,
    ParseError,
    PersistError,
    PhoneDataError,
    PrefixMapError,
    SnapshotNotReadyError,
    SnapshotStoreError,
    StoreClosedError,
    TooManyValuesError,
)
from pyphonedata.lookup import PhoneDataView
from pyphonedata.models import Snapshot
from pyphonedata.state.store import SnapshotStore
from pyphonedata.updater import RefreshState, SnapshotUpdater

__all__ = [
    "__version__",
    "AutoUpdateDaemon",
    "ConfigError",
    "CorruptEncodingError",
    "FetchError",
    "InvalidPrefixMapError",
    "LoadError",
    "ParseError",
    "PersistError",
    "PhoneDataError",
    "PhoneDataView",
    "PrefixMapCodec",
    "PrefixMapError",
    "PrefixMapKind",
    "RefreshState",
    "Snapshot",
    "SnapshotCache",
    "SnapshotNotReadyError",
    "SnapshotStore",
    "SnapshotStoreError",
    "SnapshotUpdater",
    "StoreClosedError",
    "TooManyValuesError",
    "UpdaterConfig",
    "decode_prefix_map",
    "decode_single_prefix_map",
    "encode_prefix_map",
    "encode_single_prefix_map",
    "init_auto_update_daemon",
]
