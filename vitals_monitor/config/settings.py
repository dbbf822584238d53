"""
Live key/value settings with change notifications.

Keys follow the form used throughout the application:

    update-interval           generic interval in ms, inherited by vitals without their own
    <vital>-update-interval   per-vital interval in ms (cpu, ram, storage, temp, gpu)
    show-<vital>              per-vital visibility flag

Subscribers register a callback for a key prefix and receive a
SettingChange for every changed key under it. subscribe() returns a
Subscription token; disposing it removes the callback.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from ..const import DEFAULT_UPDATE_INTERVAL, MAX_UPDATE_INTERVAL, MIN_UPDATE_INTERVAL
from ..logging import get_logger
from ..models.vital import MetricKind

logger = get_logger("config.settings")

GENERIC_INTERVAL_KEY = "update-interval"


@dataclass(frozen=True)
class SettingChange:
    """A single key change."""

    key: str
    value: Any
    previous: Any = None


ChangeHandler = Callable[[SettingChange], None]


@dataclass(eq=False)
class Subscription:
    """Disposable handle for a settings subscription."""

    prefix: str
    handler: ChangeHandler
    _settings: "Settings | None" = field(default=None, repr=False)

    @property
    def active(self) -> bool:
        return self._settings is not None

    def dispose(self) -> None:
        """Stop receiving changes. Safe to call more than once."""
        if self._settings is not None:
            self._settings._remove(self)
            self._settings = None


def is_interval_key(key: str) -> bool:
    return key == GENERIC_INTERVAL_KEY or key.endswith(f"-{GENERIC_INTERVAL_KEY}")


class Settings:
    """
    In-memory settings store shared by the scheduler and probes.

    All access happens on the event loop thread; handlers run synchronously
    inside set()/update().
    """

    def __init__(
        self,
        values: Mapping[str, Any] | None = None,
        interval_range: tuple[int, int] = (MIN_UPDATE_INTERVAL, MAX_UPDATE_INTERVAL),
    ):
        self.interval_range = interval_range
        self._values: dict[str, Any] = {}
        self._subscriptions: list[Subscription] = []
        for key, value in (values or {}).items():
            self._values[key] = self._validate(key, value)

    def _validate(self, key: str, value: Any) -> Any:
        if is_interval_key(key) and value is not None:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{key} must be a number of milliseconds, got {value!r}")
            low, high = self.interval_range
            if not low <= value <= high:
                raise ValueError(f"{key} must be within [{low}, {high}] ms, got {value}")
            return int(value)
        if key.startswith("show-") and not isinstance(value, bool):
            raise ValueError(f"{key} must be a boolean, got {value!r}")
        return value

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def get_bool(self, key: str, default: bool = False) -> bool:
        return bool(self._values.get(key, default))

    def get_int(self, key: str, default: int = 0) -> int:
        value = self._values.get(key)
        return default if value is None else int(value)

    def set(self, key: str, value: Any) -> bool:
        """
        Set a key and notify subscribers if the value changed.

        Returns:
            True if the stored value changed

        Raises:
            ValueError: If the value is invalid for the key
        """
        value = self._validate(key, value)
        previous = self._values.get(key)
        if key in self._values and previous == value:
            return False

        self._values[key] = value
        self._notify(SettingChange(key=key, value=value, previous=previous))
        return True

    def update(self, values: Mapping[str, Any]) -> list[str]:
        """
        Apply several keys at once.

        All values are validated before any is stored; subscribers are
        notified afterwards, once per changed key.

        Returns:
            Keys whose value changed
        """
        validated = {key: self._validate(key, value) for key, value in values.items()}

        changes = []
        for key, value in validated.items():
            if key in self._values and self._values[key] == value:
                continue
            changes.append(SettingChange(key=key, value=value, previous=self._values.get(key)))
            self._values[key] = value

        for change in changes:
            self._notify(change)
        return [change.key for change in changes]

    def subscribe(self, prefix: str, handler: ChangeHandler) -> Subscription:
        """
        Call handler for every change of a key starting with prefix.

        Returns:
            Subscription token; dispose() it to unsubscribe
        """
        subscription = Subscription(prefix=prefix, handler=handler, _settings=self)
        self._subscriptions.append(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            pass

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    def _notify(self, change: SettingChange) -> None:
        for subscription in list(self._subscriptions):
            if not subscription.active or not change.key.startswith(subscription.prefix):
                continue
            try:
                subscription.handler(change)
            except Exception:
                logger.exception(f"Settings handler for {subscription.prefix!r} failed on {change.key}")

    # Vital helpers

    def interval_for(self, metric: MetricKind) -> int:
        """Effective interval for a vital: its own key, else the generic one, else the default."""
        own = self._values.get(metric.interval_key)
        if own is not None:
            return int(own)
        return self.get_int(GENERIC_INTERVAL_KEY, DEFAULT_UPDATE_INTERVAL)

    def is_visible(self, metric: MetricKind) -> bool:
        return self.get_bool(metric.visibility_key, True)
