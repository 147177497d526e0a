"""Sesión CGM: ciclo de conexión, bucle de simulación, alertas y consultas."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, replace
from typing import Any, Protocol

from cgm_tool.alerts import (
    MAX_ALERTS,
    LoggingNotifier,
    Notifier,
    build_alert,
    evaluate_alerts,
    haptic_for,
    record_alerts,
)
from cgm_tool.errors import DeviceConnectionError, InvalidSettingsError
from cgm_tool.metrics import (
    DEFAULT_WINDOW_HOURS,
    average_glucose,
    gmi,
    readings_for_period,
    time_in_range,
)
from cgm_tool.model import (
    DEVICE_NAMES,
    Alert,
    AlertType,
    ConnectionStatus,
    Device,
    DeviceType,
    Reading,
    Settings,
    TimeInRange,
    new_id,
)
from cgm_tool.simulation import (
    BASELINE_GLUCOSE,
    Clock,
    RandomSource,
    generate_next_reading,
    utc_now,
)

logger = logging.getLogger(__name__)

Pairer = Callable[[DeviceType], Awaitable[None]]
ReadingListener = Callable[[Reading], None]


class CGMStore(Protocol):
    """Durable storage used by the session. ``SQLiteStore`` implements it."""

    def load_readings(self, limit: int | None = None) -> list[Reading]: ...

    def add_reading(self, reading: Reading, keep: int | None = None) -> None: ...

    def load_settings(self) -> Settings: ...

    def save_settings(self, settings: Settings) -> None: ...

    def load_device(self) -> Device | None: ...

    def save_device(self, device: Device | None) -> None: ...


@dataclass(frozen=True)
class SessionConfig:
    """Runtime parameters of a session."""

    interval_seconds: float = 5 * 60
    pairing_delay: float = 1.5
    max_readings: int = 2880
    max_alerts: int = MAX_ALERTS


class CGMSession:
    """Owns the monitor connection, reading history and alert list.

    All state is mutated from the event loop that drives the session. The
    simulation loop is a single asyncio task: it ticks immediately when
    started and then every ``interval_seconds`` while the session is
    connected to a simulated device with simulation enabled.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        config: SessionConfig | None = None,
        store: CGMStore | None = None,
        notifier: Notifier | None = None,
        rng: RandomSource | None = None,
        clock: Clock = utc_now,
        pairer: Pairer | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._config = config or SessionConfig()
        self._store = store
        self._notifier: Notifier = notifier or LoggingNotifier()
        self._rng: RandomSource = rng or random.Random()
        self._clock = clock
        self._pairer: Pairer = pairer or self._simulated_pairing

        self._readings: list[Reading] = []
        self._alerts: list[Alert] = []
        self._status = ConnectionStatus.DISCONNECTED
        self._device: Device | None = None
        self._simulating = False
        self._task: asyncio.Task[None] | None = None
        self._pairing_attempt = 0
        self._listeners: list[ReadingListener] = []

    # -- estado ----------------------------------------------------------

    @property
    def readings(self) -> list[Reading]:
        """Copy of the history, newest first."""
        return list(self._readings)

    @property
    def current_reading(self) -> Reading | None:
        return self._readings[0] if self._readings else None

    @property
    def connection_status(self) -> ConnectionStatus:
        return self._status

    @property
    def device(self) -> Device | None:
        return self._device

    @property
    def alerts(self) -> list[Alert]:
        return list(self._alerts)

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def is_simulating(self) -> bool:
        return self._simulating

    @property
    def config(self) -> SessionConfig:
        return self._config

    def add_listener(self, listener: ReadingListener) -> None:
        """Register a callback invoked with every new reading."""
        self._listeners.append(listener)

    # -- ciclo de vida ---------------------------------------------------

    async def hydrate(self) -> None:
        """Restore readings, settings and device from the store.

        A stored simulated device resumes connected and simulating. Load
        failures are logged and leave the in-memory defaults in place.
        """
        if self._store is None:
            return
        logger.info("Hydrating CGM state")
        try:
            readings = self._store.load_readings(self._config.max_readings)
            settings = self._store.load_settings()
            device = self._store.load_device()
        except Exception:
            logger.exception("Failed to load CGM state from store")
            return

        self._readings = readings[: self._config.max_readings]
        self._settings = settings
        if device is not None:
            self._device = device
            if device.type is DeviceType.SIMULATED:
                self._status = ConnectionStatus.CONNECTED
                self._simulating = True
                self._sync_loop()
        logger.info(
            "Hydrated CGM state: %d readings, device %s",
            len(self._readings),
            device.name if device else "none",
        )

    async def connect_device(self, device_type: DeviceType) -> Device:
        """Pair with a monitor and mark the session connected.

        Simulated monitors start producing readings right away. A newer
        ``connect_device`` call or a ``disconnect_device`` made while pairing
        supersedes this one.

        Raises:
            DeviceConnectionError: If pairing fails or is superseded; a
                failed pairing leaves the session disconnected.
        """
        logger.info("Connecting %s device", device_type.value)
        self._pairing_attempt += 1
        attempt = self._pairing_attempt
        self._simulating = False
        self._sync_loop()
        self._status = ConnectionStatus.CONNECTING
        try:
            await self._pairer(device_type)
        except asyncio.CancelledError:
            logger.info("Pairing with %s device cancelled", device_type.value)
            self._abandon_pairing(attempt)
            raise
        except Exception as exc:
            logger.error("Pairing with %s device failed: %s", device_type.value, exc)
            self._abandon_pairing(attempt)
            raise DeviceConnectionError(device_type, str(exc)) from exc

        if (
            attempt != self._pairing_attempt
            or self._status is not ConnectionStatus.CONNECTING
        ):
            raise DeviceConnectionError(device_type, "connection cancelled")

        device = Device(
            id=new_id("device"),
            name=DEVICE_NAMES[device_type],
            type=device_type,
            last_sync=self._clock(),
        )
        self._device = device
        self._status = ConnectionStatus.CONNECTED
        self._persist("device", lambda store: store.save_device(device))
        if device_type is DeviceType.SIMULATED:
            self.start_simulation()
        logger.info("Device connected: %s (%s)", device.name, device.id)
        return device

    def disconnect_device(self) -> None:
        """Forget the device, stop simulating and return to disconnected."""
        logger.info("Disconnecting device")
        self._simulating = False
        self._status = ConnectionStatus.DISCONNECTED
        self._device = None
        self._sync_loop()
        self._persist("device", lambda store: store.save_device(None))

    def start_simulation(self) -> None:
        """Resume synthetic readings; ignored unless the device is simulated."""
        if self._device is None or self._device.type is not DeviceType.SIMULATED:
            logger.debug("start_simulation ignored: no simulated device")
            return
        self._simulating = True
        self._sync_loop()

    def stop_simulation(self) -> None:
        """Pause synthetic readings without disconnecting."""
        self._simulating = False
        self._sync_loop()

    def report_signal_loss(self) -> None:
        """Mark the connected monitor as lost.

        The loop stops until the device is connected again. A
        ``signal_loss`` alert is recorded when alerts are enabled.
        """
        if self._status is not ConnectionStatus.CONNECTED:
            return
        name = self._device.name if self._device is not None else "device"
        logger.warning("Signal lost from %s", name)
        self._status = ConnectionStatus.SIGNAL_LOSS
        self._sync_loop()
        if self._settings.alerts_enabled:
            current = self.current_reading
            value = current.value if current is not None else 0
            self._emit([build_alert(AlertType.SIGNAL_LOSS, value, self._clock())])

    def close(self) -> None:
        """Cancel the simulation loop, if any."""
        self._cancel_task()

    # -- alertas y configuración -----------------------------------------

    def acknowledge_alert(self, alert_id: str) -> None:
        """Mark one alert as acknowledged; unknown ids are ignored."""
        self._alerts = [
            replace(a, acknowledged=True) if a.id == alert_id else a
            for a in self._alerts
        ]

    def clear_alerts(self) -> None:
        self._alerts = []

    def update_settings(
        self, changes: Mapping[str, Any] | None = None, **kwargs: Any
    ) -> Settings:
        """Merge a partial update into the settings.

        The new values apply to readings evaluated from now on.

        Raises:
            InvalidSettingsError: On unknown fields or broken threshold
                ordering; current settings are kept.
        """
        merged = {**(changes or {}), **kwargs}
        unknown = sorted(set(merged) - Settings.field_names())
        if unknown:
            raise InvalidSettingsError([f"unknown setting: {name}" for name in unknown])

        candidate = replace(self._settings, **merged)
        problems = candidate.validate()
        if problems:
            raise InvalidSettingsError(problems)

        self._settings = candidate
        self._persist("settings", lambda store: store.save_settings(candidate))
        return candidate

    # -- consultas -------------------------------------------------------

    def get_readings_for_period(self, hours: float) -> list[Reading]:
        return readings_for_period(self._readings, self._clock(), hours)

    def get_time_in_range(self, hours: float = DEFAULT_WINDOW_HOURS) -> TimeInRange:
        return time_in_range(
            self._readings,
            self._clock(),
            target_min=self._settings.target_range_min,
            target_max=self._settings.target_range_max,
            hours=hours,
        )

    def get_average_glucose(self, hours: float = DEFAULT_WINDOW_HOURS) -> int | None:
        return average_glucose(self._readings, self._clock(), hours)

    def get_gmi(self) -> float | None:
        return gmi(self._readings, self._clock())

    # -- bucle de simulación ---------------------------------------------

    def _should_simulate(self) -> bool:
        return (
            self._simulating
            and self._status is ConnectionStatus.CONNECTED
            and self._device is not None
            and self._device.type is DeviceType.SIMULATED
        )

    def _sync_loop(self) -> None:
        """Start or cancel the loop task so it matches the current state."""
        if self._should_simulate():
            if self._task is None or self._task.done():
                self._task = asyncio.get_running_loop().create_task(self._run_loop())
        else:
            self._cancel_task()

    def _cancel_task(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    async def _run_loop(self) -> None:
        while True:
            self._tick()
            await asyncio.sleep(self._config.interval_seconds)

    def _tick(self) -> Reading | None:
        """Generate, store and evaluate one reading."""
        if not self._should_simulate():
            return None

        last_value = self._readings[0].value if self._readings else BASELINE_GLUCOSE
        reading = generate_next_reading(
            last_value, self._readings, rng=self._rng, clock=self._clock
        )
        self._readings.insert(0, reading)
        del self._readings[self._config.max_readings :]
        logger.debug(
            "Simulated reading %s mg/dL (%s)", reading.value, reading.trend.value
        )
        self._persist(
            "reading",
            lambda store: store.add_reading(reading, keep=self._config.max_readings),
        )

        fired = evaluate_alerts(reading, self._settings)
        if fired:
            self._emit(
                [build_alert(t, reading.value, reading.timestamp) for t in fired]
            )

        for listener in list(self._listeners):
            try:
                listener(reading)
            except Exception:
                logger.exception("Reading listener %r failed", listener)
        return reading

    def _emit(self, new_alerts: list[Alert]) -> None:
        self._alerts = record_alerts(self._alerts, new_alerts, self._config.max_alerts)
        for alert in new_alerts:
            logger.info(
                "Alert triggered: %s at %s mg/dL", alert.type.value, alert.value
            )
            haptic = haptic_for(alert.type, self._settings.haptic_feedback)
            try:
                self._notifier.notify(alert, haptic)
            except Exception:
                logger.exception("Notifier failed for %s alert", alert.type.value)

    def _abandon_pairing(self, attempt: int) -> None:
        """Return to disconnected unless a newer attempt owns the state."""
        if attempt == self._pairing_attempt:
            self._status = ConnectionStatus.DISCONNECTED
            self._device = None

    async def _simulated_pairing(self, _device_type: DeviceType) -> None:
        await asyncio.sleep(self._config.pairing_delay)

    def _persist(self, what: str, write: Callable[[CGMStore], None]) -> None:
        """Run a store write; failures are logged and never propagate."""
        if self._store is None:
            return
        try:
            write(self._store)
        except Exception:
            logger.exception("Failed to persist %s", what)
