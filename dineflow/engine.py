"""Composition root wiring the services onto shared collaborators."""

from __future__ import annotations

from .clock import Clock, SystemClock
from .config import Settings, get_settings
from .events import EventBus, from_settings
from .services import (
    MenuService,
    OrderWorkflow,
    PaymentReconciler,
    ReservationScheduler,
    TableRegistry,
)
from .utils.locks import KeyedLocks


class Engine:
    """All services sharing one clock, event bus and lock registry.

    Request handlers keep a single instance per process and pass their own
    ``AsyncSession`` to each call.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        bus: EventBus | None = None,
        locks: KeyedLocks | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.clock = clock or SystemClock(self.settings.timezone)
        self.bus = bus or from_settings()
        self.locks = locks or KeyedLocks()
        deps = dict(
            clock=self.clock, bus=self.bus, locks=self.locks, settings=self.settings
        )
        self.tables = TableRegistry(**deps)
        self.scheduler = ReservationScheduler(**deps)
        self.menu = MenuService(**deps)
        self.orders = OrderWorkflow(**deps)
        self.payments = PaymentReconciler(scheduler=self.scheduler, **deps)
