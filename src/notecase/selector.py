"""Runtime choice between the local, hosted and REST backends."""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING

from .errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from .backends.base import Backend
    from .config import Settings

logger = logging.getLogger(__name__)


class DataSource(StrEnum):
    """Available persistence variants."""

    LOCAL = "local"
    HOSTED = "hosted"
    REST = "rest"


def parse_data_source(value: str | DataSource) -> DataSource:
    """Convert ``value`` to a ``DataSource``.

    Raises:
        ConfigurationError: If ``value`` names no known source.

    """
    try:
        return DataSource(str(value).lower())
    except ValueError as exc:
        choices = ", ".join(s.value for s in DataSource)
        msg = f"Unknown data source '{value}'. Choose one of: {choices}."
        raise ConfigurationError(msg) from exc


class DataSourceSelector:
    """Hold the active data source and hand out its backend.

    Backends are built lazily by their factory and cached for the lifetime
    of the selector. The active choice lives in memory only.
    """

    def __init__(
        self,
        settings: Settings,
        factories: Mapping[DataSource, Callable[[], Backend]],
        initial: DataSource | str = DataSource.LOCAL,
    ) -> None:
        """Start on ``initial`` when it is available, else on LOCAL."""
        self.settings = settings
        self._factories = dict(factories)
        self._backends: dict[DataSource, Backend] = {}
        self.network_source = parse_data_source(settings.network_source)
        if self.network_source is DataSource.LOCAL:
            msg = "The network data source must be 'hosted' or 'rest'."
            raise ConfigurationError(msg)
        wanted = parse_data_source(initial)
        if not self.is_available(wanted):
            logger.warning(
                "Data source %s is not configured; starting with local storage",
                wanted.value,
            )
            wanted = DataSource.LOCAL
        self._active = wanted

    @property
    def active(self) -> DataSource:
        """Currently selected source."""
        return self._active

    @property
    def local_only(self) -> bool:
        """Whether LOCAL is the only selectable source."""
        return not any(
            self.is_available(source)
            for source in (DataSource.HOSTED, DataSource.REST)
        )

    def is_available(self, source: DataSource) -> bool:
        """Return True when ``source`` has the configuration it needs."""
        if source not in self._factories:
            return False
        if source is DataSource.HOSTED:
            return self.settings.hosted_configured
        if source is DataSource.REST:
            return self.settings.rest_configured
        return True

    def available_sources(self) -> list[DataSource]:
        """Return every selectable source in declaration order."""
        return [source for source in DataSource if self.is_available(source)]

    def select(self, source: DataSource | str) -> DataSource:
        """Switch to ``source``.

        Raises:
            ConfigurationError: If ``source`` is not configured. The active
                source is left unchanged.

        """
        target = parse_data_source(source)
        if not self.is_available(target):
            msg = (
                f"Cannot switch to the {target.value} data source: "
                "its credentials are not configured."
            )
            raise ConfigurationError(msg)
        if target is not self._active:
            logger.info("Switching data source %s -> %s", self._active, target)
        self._active = target
        return target

    def toggle(self) -> DataSource:
        """Flip between LOCAL and the configured network source."""
        if self._active is DataSource.LOCAL:
            return self.select(self.network_source)
        return self.select(DataSource.LOCAL)

    def backend(self, source: DataSource | None = None) -> Backend:
        """Return the (cached) backend for ``source`` or the active source."""
        key = source or self._active
        if key not in self._backends:
            if key not in self._factories:
                msg = f"No backend registered for the {key.value} data source."
                raise ConfigurationError(msg)
            logger.debug("Building %s backend", key.value)
            self._backends[key] = self._factories[key]()
        return self._backends[key]

    def built_backend(self, source: DataSource) -> Backend | None:
        """Return the cached backend for ``source`` without building it."""
        return self._backends.get(source)
