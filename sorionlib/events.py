"""Event dispatch core for SorionLib.

Every named event gets one registration holding the user handler,
a wrapped callback and its options. The wrapper runs the firing
protocol: hooks, middleware, a best-effort timeout around the
handler, error reporting, and exactly one metrics update plus one
``event_executed`` notification per firing, whatever the outcome.

Wrapped callbacks are attached to the Discord client as
``on_<event>`` listeners, so platform events flow through the same
path as manual ``emit()`` calls.

Key classes:
    EventOptions: Per-registration configuration.
    EventRegistration: Handler, wrapper and mutable enabled flag.
    EventMetrics: Execution counters and a bounded timing window.
    Middleware: Named before/after pair applied to every event.
    EventManager: Registry, dispatcher and metrics owner.
"""

import asyncio
import inspect
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Set, Tuple

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import ConfigurationError, EventLimitError, EventRegistrationError, HandlerTimeoutError
from .utils import merge_options

logger = structlog.get_logger("sorionlib.events")

DEFAULT_MAX_EVENTS = 100
DEFAULT_METRICS_WINDOW = 100
DEFAULT_METRICS_RETENTION_HOURS = 24
DEFAULT_METRICS_SWEEP_INTERVAL = 300  # seconds

# Notification channels observers can subscribe to
ERROR = "error"
EVENT_EXECUTED = "event_executed"
CHANNELS = (ERROR, EVENT_EXECUTED)

Hook = Callable[..., Any]
MiddlewareHook = Callable[[str, Tuple[Any, ...]], Any]


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class EventOptions(BaseModel):
    """Configuration for one event registration.

    Attributes:
        once: Remove the registration after its first firing.
        overwrite: Replace an existing registration of the same name.
        throw_on_error: Re-raise handler failures after reporting them.
        timeout_ms: Handler time limit; 0 disables it, None uses the
            manager default.
        priority: Ordering key for ``list_events`` (higher first).
        category: Group name used for bulk removal.
        enabled: Initial enabled state.
        before_execute: Hook called with the event arguments first.
        after_execute: Hook called with the event arguments after the
            handler succeeds.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    once: bool = False
    overwrite: bool = False
    throw_on_error: bool = False
    timeout_ms: Optional[int] = Field(default=None, ge=0)
    priority: int = 0
    category: str = Field(default="default", min_length=1)
    enabled: bool = True
    before_execute: Optional[Hook] = None
    after_execute: Optional[Hook] = None


@dataclass
class EventRegistration:
    """A registered event. ``enabled`` toggles without re-registering."""

    name: str
    handler: Callable[..., Any]
    wrapped: Callable[..., Awaitable[Any]]
    options: EventOptions
    timeout_ms: int = 0
    enabled: bool = True
    listener_attached: bool = False


@dataclass
class EventMetrics:
    """Execution statistics for one event.

    ``average_time_ms`` is the mean over ``recent_times`` (the rolling
    window); ``mean_time_ms`` is the cumulative mean.
    """

    executions: int = 0
    errors: int = 0
    total_time_ms: float = 0.0
    average_time_ms: float = 0.0
    last_executed: Optional[float] = None  # Unix timestamp
    recent_times: Deque[float] = field(
        default_factory=lambda: deque(maxlen=DEFAULT_METRICS_WINDOW)
    )

    def record(self, elapsed_ms: float, success: bool, now: float) -> None:
        self.executions += 1
        if not success:
            self.errors += 1
        self.total_time_ms += elapsed_ms
        self.recent_times.append(elapsed_ms)
        self.average_time_ms = sum(self.recent_times) / len(self.recent_times)
        self.last_executed = now

    @property
    def mean_time_ms(self) -> float:
        return self.total_time_ms / self.executions if self.executions else 0.0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "executions": self.executions,
            "errors": self.errors,
            "total_time_ms": self.total_time_ms,
            "average_time_ms": self.average_time_ms,
            "mean_time_ms": self.mean_time_ms,
            "last_executed": self.last_executed,
            "recent_times": list(self.recent_times),
        }


@dataclass
class Middleware:
    """Cross-cutting hooks run around every event handler."""

    name: str
    before: Optional[MiddlewareHook] = None
    after: Optional[MiddlewareHook] = None


class EventManager:
    """Registry and dispatcher for named events.

    All state (registrations, categories, middleware, metrics) lives on
    the instance; the bot facade owns one and hands it to whoever
    needs it.

    Args:
        client: Discord client to attach ``on_<event>`` listeners to.
            May be bound later with ``bind()``.
        max_events: Registry ceiling; registration beyond it fails.
        default_timeout_ms: Timeout for events that don't set one.
        metrics_retention_hours: Metrics idle longer than this are
            purged by the sweep.
        metrics_sweep_interval: Seconds between sweeps.
        metrics_window: Timing samples kept per event.
        clock: Wall clock for ``last_executed`` and the sweep.
    """

    def __init__(
        self,
        client=None,
        *,
        max_events: int = DEFAULT_MAX_EVENTS,
        default_timeout_ms: int = 0,
        metrics_retention_hours: float = DEFAULT_METRICS_RETENTION_HOURS,
        metrics_sweep_interval: float = DEFAULT_METRICS_SWEEP_INTERVAL,
        metrics_window: int = DEFAULT_METRICS_WINDOW,
        clock: Callable[[], float] = time.time,
    ):
        if max_events < 1:
            raise ConfigurationError("max_events must be >= 1", setting_name="max_events")
        self.client = client
        self.max_events = max_events
        self.default_timeout_ms = default_timeout_ms
        self.metrics_retention_seconds = metrics_retention_hours * 3600
        self.metrics_sweep_interval = metrics_sweep_interval
        self.metrics_window = metrics_window
        self._clock = clock

        self._events: Dict[str, EventRegistration] = {}
        self._categories: Dict[str, Set[str]] = {}
        self._middleware: Dict[str, Middleware] = {}
        self._metrics: Dict[str, EventMetrics] = {}
        self._observers: Dict[str, List[Callable[..., Any]]] = {c: [] for c in CHANNELS}
        self._sweep_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_event(
        self,
        name: str,
        handler: Callable[..., Any],
        options: Optional[EventOptions] = None,
        **overrides: Any,
    ) -> EventRegistration:
        """Register a handler for a named event.

        Args:
            name: Event name, e.g. ``"message"`` or a custom name.
            handler: Sync or async callable receiving the event args.
            options: EventOptions; keyword overrides are applied on top.

        Returns:
            The new EventRegistration.

        Raises:
            EventRegistrationError: Invalid name or options, non-callable
                handler, or name already registered without overwrite.
            EventLimitError: Registry ceiling reached.
        """
        if not isinstance(name, str) or not name.strip() or any(c.isspace() for c in name):
            raise EventRegistrationError(f"Invalid event name: {name!r}", event_name=str(name))
        if not callable(handler):
            raise EventRegistrationError(
                f"Handler for event '{name}' is not callable", event_name=name
            )
        try:
            if options is None:
                options = EventOptions(**overrides)
            elif overrides:
                options = EventOptions(**merge_options(overrides, options.model_dump()))
        except ValidationError as e:
            raise EventRegistrationError(
                f"Invalid options for event '{name}': {e}", event_name=name
            ) from e

        if name in self._events:
            if not options.overwrite:
                raise EventRegistrationError(
                    f"Event '{name}' is already registered. "
                    "Pass overwrite=True to replace it.",
                    event_name=name,
                )
            self.remove_event(name)
        elif len(self._events) >= self.max_events:
            raise EventLimitError(
                f"Cannot register '{name}': limit of {self.max_events} events reached",
                event_name=name,
                limit=self.max_events,
            )

        timeout_ms = options.timeout_ms
        if timeout_ms is None:
            timeout_ms = self.default_timeout_ms

        registration = EventRegistration(
            name=name,
            handler=handler,
            wrapped=None,  # type: ignore[arg-type]
            options=options,
            timeout_ms=timeout_ms,
            enabled=options.enabled,
        )

        async def wrapped(*args: Any) -> Any:
            return await self._execute(registration, args)

        wrapped.__name__ = f"on_{name}"
        registration.wrapped = wrapped

        # Leftover metrics from a fired once-registration belong to the old handler
        self._metrics.pop(name, None)
        self._events[name] = registration
        self._categories.setdefault(options.category, set()).add(name)
        self._attach(registration)

        logger.debug(
            "event_registered",
            event_name=name,
            category=options.category,
            timeout_ms=timeout_ms,
            once=options.once,
        )
        return registration

    def remove_event(self, name: str) -> bool:
        """Unregister an event, its listener, metrics and category entry.

        Returns:
            True if the event was registered.
        """
        return self._unregister(name, keep_metrics=False)

    def _unregister(self, name: str, *, keep_metrics: bool) -> bool:
        registration = self._events.pop(name, None)
        if registration is None:
            return False

        self._detach(registration)
        if not keep_metrics:
            self._metrics.pop(name, None)

        category = registration.options.category
        members = self._categories.get(category)
        if members is not None:
            members.discard(name)
            if not members:
                del self._categories[category]

        logger.debug("event_removed", event_name=name, category=category)
        return True

    def remove_category(self, category: str) -> int:
        """Remove every event in a category. Returns how many were removed."""
        names = list(self._categories.get(category, ()))
        for name in names:
            self.remove_event(name)
        if names:
            logger.info("event_category_removed", category=category, count=len(names))
        return len(names)

    def remove_all(self) -> int:
        """Remove every registered event."""
        names = list(self._events)
        for name in names:
            self.remove_event(name)
        return len(names)

    def enable_event(self, name: str) -> None:
        self._require(name).enabled = True

    def disable_event(self, name: str) -> None:
        self._require(name).enabled = False

    def is_enabled(self, name: str) -> bool:
        return self._require(name).enabled

    def get(self, name: str) -> Optional[EventRegistration]:
        return self._events.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._events

    def __len__(self) -> int:
        return len(self._events)

    def list_events(self, category: Optional[str] = None) -> List[str]:
        """Registered event names, highest priority first.

        Ties keep registration order.
        """
        registrations = [
            r for r in self._events.values()
            if category is None or r.options.category == category
        ]
        registrations.sort(key=lambda r: -r.options.priority)
        return [r.name for r in registrations]

    @property
    def categories(self) -> Dict[str, Set[str]]:
        """Snapshot of category -> event names."""
        return {c: set(names) for c, names in self._categories.items()}

    def _require(self, name: str) -> EventRegistration:
        registration = self._events.get(name)
        if registration is None:
            raise EventRegistrationError(f"Event '{name}' is not registered", event_name=name)
        return registration

    # ------------------------------------------------------------------
    # Platform listeners
    # ------------------------------------------------------------------

    def bind(self, client) -> None:
        """Attach the Discord client and subscribe every registered event."""
        if self.client is not None and self.client is not client:
            for registration in self._events.values():
                self._detach(registration)
        self.client = client
        for registration in self._events.values():
            self._attach(registration)

    def _attach(self, registration: EventRegistration) -> None:
        if self.client is None or registration.listener_attached:
            return
        self.client.add_listener(registration.wrapped, f"on_{registration.name}")
        registration.listener_attached = True

    def _detach(self, registration: EventRegistration) -> None:
        if self.client is None or not registration.listener_attached:
            return
        self.client.remove_listener(registration.wrapped, f"on_{registration.name}")
        registration.listener_attached = False

    # ------------------------------------------------------------------
    # Middleware and observers
    # ------------------------------------------------------------------

    def add_middleware(
        self,
        name: str,
        *,
        before: Optional[MiddlewareHook] = None,
        after: Optional[MiddlewareHook] = None,
    ) -> Middleware:
        """Add middleware run around every event, in registration order.

        Hooks receive ``(event_name, args)``. Re-adding a name replaces
        the hooks but keeps the original position.
        """
        if before is None and after is None:
            raise ConfigurationError(
                f"Middleware '{name}' needs a before or after hook", setting_name="middleware"
            )
        middleware = Middleware(name=name, before=before, after=after)
        self._middleware[name] = middleware
        logger.debug("middleware_added", middleware=name)
        return middleware

    def remove_middleware(self, name: str) -> bool:
        return self._middleware.pop(name, None) is not None

    @property
    def middleware(self) -> List[str]:
        return list(self._middleware)

    def on(self, channel: str, callback: Callable[..., Any]) -> None:
        """Observe a notification channel.

        ``error`` observers receive ``(error, event_name)``;
        ``event_executed`` observers receive
        ``(event_name, elapsed_ms, success, args)``.
        """
        if channel not in self._observers:
            raise EventRegistrationError(
                f"Unknown notification channel '{channel}'", event_name=channel
            )
        self._observers[channel].append(callback)

    def off(self, channel: str, callback: Callable[..., Any]) -> bool:
        observers = self._observers.get(channel, [])
        if callback in observers:
            observers.remove(callback)
            return True
        return False

    async def _notify(self, channel: str, *payload: Any) -> None:
        for callback in list(self._observers[channel]):
            try:
                await _maybe_await(callback(*payload))
            except Exception as e:
                logger.error("event_observer_error", channel=channel, error=str(e))

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def emit(self, name: str, *args: Any) -> Any:
        """Fire a registered event locally with ``args``.

        Returns the handler's result, or None if the event is unknown,
        disabled, or failed without ``throw_on_error``.
        """
        registration = self._events.get(name)
        if registration is None:
            logger.debug("event_emit_unregistered", event_name=name)
            return None
        return await registration.wrapped(*args)

    async def _execute(self, registration: EventRegistration, args: Tuple[Any, ...]) -> Any:
        name = registration.name
        # Replaced or removed registrations never fire again
        if self._events.get(name) is not registration:
            return None
        if not registration.enabled:
            return None

        options = registration.options
        start = time.perf_counter()
        success = False
        result = None
        try:
            if options.before_execute is not None:
                await _maybe_await(options.before_execute(*args))
            for middleware in list(self._middleware.values()):
                if middleware.before is not None:
                    await _maybe_await(middleware.before(name, args))

            result = await self._run_handler(registration, args)

            if options.after_execute is not None:
                await _maybe_await(options.after_execute(*args))
            for middleware in list(self._middleware.values()):
                if middleware.after is not None:
                    await _maybe_await(middleware.after(name, args))
            success = True
        except Exception as e:
            logger.error("event_handler_error", event_name=name, error=str(e))
            await self._notify(ERROR, e, name)
            if options.throw_on_error:
                raise
            result = None
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            self._record(name, elapsed_ms, success)
            await self._notify(EVENT_EXECUTED, name, elapsed_ms, success, args)
            if options.once and self._events.get(name) is registration:
                # Metrics of the single firing stay readable until swept
                self._unregister(name, keep_metrics=True)
        return result

    async def _run_handler(self, registration: EventRegistration, args: Tuple[Any, ...]) -> Any:
        outcome = registration.handler(*args)
        if not inspect.isawaitable(outcome):
            return outcome
        if registration.timeout_ms <= 0:
            return await outcome

        # Best-effort timeout: the handler is never cancelled, only abandoned
        task = asyncio.ensure_future(outcome)
        done, _ = await asyncio.wait({task}, timeout=registration.timeout_ms / 1000)
        if task in done:
            return task.result()

        task.add_done_callback(_late_settlement(registration.name))
        raise HandlerTimeoutError(
            f"Event '{registration.name}' timed out after {registration.timeout_ms}ms",
            event_name=registration.name,
            timeout_ms=registration.timeout_ms,
        )

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def _record(self, name: str, elapsed_ms: float, success: bool) -> None:
        metrics = self._metrics.get(name)
        if metrics is None:
            metrics = EventMetrics(recent_times=deque(maxlen=self.metrics_window))
            self._metrics[name] = metrics
        metrics.record(elapsed_ms, success, self._clock())

    def get_metrics(self, name: Optional[str] = None):
        """Metrics for one event (dict or None), or for every event."""
        if name is not None:
            metrics = self._metrics.get(name)
            return metrics.as_dict() if metrics is not None else None
        return {event: m.as_dict() for event, m in self._metrics.items()}

    def sweep_metrics(self, now: Optional[float] = None) -> int:
        """Drop metrics idle longer than the retention window."""
        now = self._clock() if now is None else now
        cutoff = now - self.metrics_retention_seconds
        stale = [
            name for name, m in self._metrics.items()
            if m.last_executed is not None and m.last_executed < cutoff
        ]
        for name in stale:
            del self._metrics[name]
        if stale:
            logger.info("event_metrics_swept", count=len(stale))
        return len(stale)

    async def _sweep_loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.metrics_sweep_interval)
                self.sweep_metrics()
        except asyncio.CancelledError:
            pass

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> None:
        """Start the periodic metrics sweep. Safe to call twice."""
        if self._sweep_task is not None and not self._sweep_task.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("event_metrics_sweep_not_started", reason="no running loop")
            return
        self._sweep_task = loop.create_task(self._sweep_loop())
        logger.debug("event_manager_initialized", sweep_interval=self.metrics_sweep_interval)

    @property
    def sweeping(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    def destroy(self) -> None:
        """Remove all events and middleware and stop the sweep."""
        removed = self.remove_all()
        self._middleware.clear()
        if self._sweep_task is not None and not self._sweep_task.done():
            self._sweep_task.cancel()
        self._sweep_task = None
        logger.info("event_manager_destroyed", removed=removed)


def _late_settlement(name: str) -> Callable[[asyncio.Future], None]:
    def _callback(task: asyncio.Future) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.debug("event_late_failure", event_name=name, error=str(exc))
        else:
            logger.debug("event_late_completion", event_name=name)
    return _callback
