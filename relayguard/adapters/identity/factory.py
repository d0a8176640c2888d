"""Factory pattern for creating the identity source selected in settings."""

from relayguard.adapters.identity.base import AbstractIdentitySource
from relayguard.adapters.identity.snapshot import SnapshotIdentitySource
from relayguard.adapters.identity.sqlite_store import SQLiteIdentitySource
from relayguard.core.config import DataSourceMode, Settings
from relayguard.core.errors import ConfigError


def create_identity_source(settings: Settings) -> AbstractIdentitySource:
    """Instantiate the identity source backend once, at startup.

    The store backend is connected (and its schema verified) before it is
    returned; the snapshot backend is fully loaded.

    Returns:
        AbstractIdentitySource: Ready-to-use data source.

    Raises:
        ConfigError: If the snapshot file is unusable or the mode is unknown.
        DataSourceConnectionError: If the store cannot be reached.
    """
    mode = settings.datasource_mode

    if mode is DataSourceMode.STORE:
        source = SQLiteIdentitySource(
            settings.store.path,
            timeout_seconds=settings.store.timeout_seconds,
        )
        source.connect()
        return source

    if mode is DataSourceMode.SNAPSHOT:
        return SnapshotIdentitySource.from_file(settings.snapshot.file_path)

    raise ConfigError(
        code="datasource_unknown_mode",
        message=(
            f"Unknown datasource mode: '{mode}'. Supported modes: store, snapshot-file"
        ),
    )
