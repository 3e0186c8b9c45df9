"""One flow machine per browser session."""
from __future__ import annotations

from collections import OrderedDict
import logging
from typing import Callable, Optional
from uuid import uuid4

from ..infra.identity import IdentityProvider
from .enrollment import EnrollmentStore
from .flow import FlowMachine
from .identity import IdentitySession
from .report import ReportGenerator
from .timers import LoopScheduler, Scheduler

logger = logging.getLogger(__name__)


class FlowRegistry:
    """LRU-bounded map of flow ids to live machines.

    Each flow gets its own identity provider instance (one signed-in user per
    browser) while the store and report generator are shared.
    """

    def __init__(
        self,
        provider_factory: Callable[[], IdentityProvider],
        store: EnrollmentStore,
        reports: ReportGenerator,
        bootstrap_credential: Optional[str] = None,
        scheduler_factory: Callable[[], Scheduler] = LoopScheduler,
        max_flows: int = 1024,
    ) -> None:
        self.provider_factory = provider_factory
        self.store = store
        self.reports = reports
        self.bootstrap_credential = bootstrap_credential
        self.scheduler_factory = scheduler_factory
        self.max_flows = max_flows
        self._flows: "OrderedDict[str, FlowMachine]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._flows)

    def get(self, flow_id: Optional[str]) -> Optional[FlowMachine]:
        if flow_id is None:
            return None
        machine = self._flows.get(flow_id)
        if machine is not None:
            self._flows.move_to_end(flow_id)
        return machine

    async def open(self) -> tuple[str, FlowMachine]:
        """Start a new flow: bootstrap its identity session, then build the machine."""
        session = IdentitySession(self.provider_factory(), self.bootstrap_credential)
        await session.initialize()
        machine = FlowMachine(session, self.store, self.reports, self.scheduler_factory())
        flow_id = uuid4().hex
        self._flows[flow_id] = machine
        while len(self._flows) > self.max_flows:
            evicted_id, evicted = self._flows.popitem(last=False)
            evicted.close()
            logger.info("evicted flow %s", evicted_id, extra={"component": "FlowRegistry", "flow_id": evicted_id})
        logger.info("opened flow %s", flow_id, extra={"component": "FlowRegistry", "flow_id": flow_id})
        return flow_id, machine

    async def get_or_open(self, flow_id: Optional[str]) -> tuple[str, FlowMachine]:
        machine = self.get(flow_id)
        if machine is not None:
            return flow_id, machine
        return await self.open()

    def close(self, flow_id: str) -> None:
        machine = self._flows.pop(flow_id, None)
        if machine is not None:
            machine.close()

    def close_all(self) -> None:
        while self._flows:
            _, machine = self._flows.popitem()
            machine.close()
