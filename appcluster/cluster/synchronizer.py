import asyncio
from datetime import datetime
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Set, Tuple

from .models import (
    ActionKind,
    ActionState,
    Resource,
    ResourceNode,
    ResourceNodeDnsResult,
    ResourceResult,
    ResourceSynchronizationResult,
    ResourceTestResult,
    ResultOutcome,
    SynchronizerState,
    utcnow,
)
from ..utils.logger import get_logger

if TYPE_CHECKING:
    from .schedule import Schedule
    from ..cloudflare_dns import DnsRoleResolver


class SynchronizerListener:
    """Receives state changes and results from a synchronizer.

    Called on the event loop; exceptions are logged and otherwise ignored.
    """

    def on_state_change(
        self, synchronizer: "ResourceSynchronizer", kind: ActionKind, old: ActionState, new: ActionState
    ) -> None:
        pass

    def on_result(
        self,
        synchronizer: "ResourceSynchronizer",
        kind: ActionKind,
        result: ResourceResult,
        previous: Optional[ResourceResult],
    ) -> None:
        pass


class _ActionSlot:
    def __init__(self, kind: ActionKind, schedule: "Schedule", timeout: Optional[float]):
        self.kind = kind
        self.schedule = schedule
        self.timeout = timeout
        self.state = ActionState.IDLE
        self.last_result: Optional[ResourceResult] = None
        self.loop_task: Optional[asyncio.Task] = None


class ResourceSynchronizer:
    """Runs the synchronize and test actions of one resource on their schedules.

    Each action kind moves IDLE -> RESOLVING -> EVALUATING -> (RUNNING) -> DONE -> IDLE.
    A tick that arrives while its kind is not IDLE is dropped. The two kinds are
    independent of each other.
    """

    def __init__(
        self,
        resource: Resource,
        resolver: "DnsRoleResolver",
        listeners: Iterable[SynchronizerListener] = (),
    ):
        self.resource = resource
        self.resolver = resolver
        self.strategy = resource.strategy
        self.logger = get_logger(__name__)
        self._listeners: List[SynchronizerListener] = list(listeners)
        self._slots: Dict[ActionKind, _ActionSlot] = {
            ActionKind.SYNCHRONIZE: _ActionSlot(
                ActionKind.SYNCHRONIZE, resource.synchronize_schedule, resource.synchronize_timeout
            ),
            ActionKind.TEST: _ActionSlot(ActionKind.TEST, resource.test_schedule, resource.test_timeout),
        }
        self._tick_tasks: Set[asyncio.Task] = set()
        self._state = SynchronizerState.STOPPED
        self._state_message: Optional[str] = None

    def __str__(self):
        return f"{self.resource}: {self.local_resource_node.node} -> {self.remote_resource_node.node}"

    @property
    def local_resource_node(self) -> ResourceNode:
        return self.resource.local

    @property
    def remote_resource_node(self) -> ResourceNode:
        return self.resource.remote

    @property
    def state(self) -> SynchronizerState:
        return self._state

    @property
    def state_message(self) -> Optional[str]:
        return self._state_message

    def action_state(self, kind: ActionKind) -> ActionState:
        return self._slots[kind].state

    def last_result(self, kind: ActionKind) -> Optional[ResourceResult]:
        return self._slots[kind].last_result

    @property
    def last_synchronization_result(self) -> Optional[ResourceSynchronizationResult]:
        return self._slots[ActionKind.SYNCHRONIZE].last_result

    @property
    def last_test_result(self) -> Optional[ResourceTestResult]:
        return self._slots[ActionKind.TEST].last_result

    def add_listener(self, listener: SynchronizerListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: SynchronizerListener) -> None:
        self._listeners = [existing for existing in self._listeners if existing is not listener]

    def _disabled_reason(self) -> Optional[str]:
        if not self.resource.enabled:
            return "resource disabled"
        if not self.local_resource_node.node.enabled:
            return "local node disabled"
        if not self.remote_resource_node.node.enabled:
            return "remote node disabled"
        return None

    async def start(self) -> None:
        if self._state is not SynchronizerState.STOPPED:
            return

        reason = self._disabled_reason()
        if reason:
            self._state = SynchronizerState.DISABLED
            self._state_message = reason
            self.logger.info(f"{self}: not scheduled ({reason})")
            return

        self._state = SynchronizerState.ACTIVE
        self._state_message = None
        for slot in self._slots.values():
            slot.loop_task = asyncio.create_task(self._schedule_loop(slot))
        self.logger.info(
            f"{self}: scheduled synchronize '{self.resource.synchronize_schedule.expression}', "
            f"test '{self.resource.test_schedule.expression}'"
        )

    async def stop(self) -> None:
        tasks = [slot.loop_task for slot in self._slots.values() if slot.loop_task] + list(self._tick_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._tick_tasks.clear()
        for slot in self._slots.values():
            slot.loop_task = None
            slot.state = ActionState.IDLE
            slot.last_result = None

        if self._state is SynchronizerState.ACTIVE:
            self.logger.info(f"{self}: stopped")
        self._state = SynchronizerState.STOPPED
        self._state_message = None

    async def _schedule_loop(self, slot: _ActionSlot) -> None:
        last_fire: Optional[datetime] = None
        while True:
            now = utcnow()
            # The wall clock may lag the loop clock; never fire the same instant twice
            fire_at = slot.schedule.next_fire_time(max(now, last_fire) if last_fire else now)
            await asyncio.sleep(max((fire_at - now).total_seconds(), 0))
            last_fire = fire_at
            self.trigger(slot.kind)

    def trigger(self, kind: ActionKind) -> Optional[asyncio.Task]:
        """Issues one tick for ``kind`` without waiting for it.

        Returns the task running the tick, or None when the tick was dropped.
        """
        slot = self._slots[kind]
        if not self._claim(slot):
            return None

        task = asyncio.create_task(self._run_claimed(slot, utcnow()))
        self._tick_tasks.add(task)
        task.add_done_callback(self._tick_tasks.discard)
        return task

    def synchronize_now(self) -> Optional[asyncio.Task]:
        return self.trigger(ActionKind.SYNCHRONIZE)

    def test_now(self) -> Optional[asyncio.Task]:
        return self.trigger(ActionKind.TEST)

    async def run_tick(self, kind: ActionKind) -> Optional[ResourceResult]:
        """Runs one tick for ``kind`` to completion; None when dropped."""
        slot = self._slots[kind]
        if not self._claim(slot):
            return None
        return await self._run_claimed(slot, utcnow())

    def _claim(self, slot: _ActionSlot) -> bool:
        # No await between the check and the transition: this is the run token
        if slot.state is not ActionState.IDLE:
            self.logger.info(f"{self}: {slot.kind.value} still {slot.state.value}, dropping tick")
            return False
        self._set_state(slot, ActionState.RESOLVING)
        return True

    async def _run_claimed(self, slot: _ActionSlot, started_at: datetime) -> ResourceResult:
        result_type = ResourceSynchronizationResult if slot.kind is ActionKind.SYNCHRONIZE else ResourceTestResult
        try:
            result = await self._evaluate_and_run(slot, started_at, result_type)
        except asyncio.CancelledError:
            self._set_state(slot, ActionState.IDLE)
            raise
        except asyncio.TimeoutError as e:
            if slot.timeout:
                result = result_type.error(started_at, f"{slot.kind.value} timed out after {slot.timeout}s")
            else:
                self.logger.error(f"{self}: {slot.kind.value} failed: {e!r}", exc_info=True)
                result = result_type.error(started_at, f"{type(e).__name__}: {e}")
        except Exception as e:
            self.logger.error(f"{self}: {slot.kind.value} failed: {e}", exc_info=True)
            result = result_type.error(started_at, f"{type(e).__name__}: {e}")

        self._set_state(slot, ActionState.DONE)
        self._record(slot, result)
        self._set_state(slot, ActionState.IDLE)
        return result

    async def _evaluate_and_run(self, slot: _ActionSlot, started_at: datetime, result_type) -> ResourceResult:
        local_dns, remote_dns = await self._resolve()

        self._set_state(slot, ActionState.EVALUATING)
        if slot.kind is ActionKind.SYNCHRONIZE:
            eligible = self.strategy.can_synchronize(local_dns, remote_dns)
            action = self.strategy.synchronize
        else:
            eligible = self.strategy.can_test(local_dns, remote_dns)
            action = self.strategy.test

        if not eligible:
            return result_type.skipped(
                started_at,
                f"not eligible: local {local_dns.status.value}, remote {remote_dns.status.value}",
            )

        self._set_state(slot, ActionState.RUNNING)
        self.logger.info(f"{self}: running {slot.kind.value}")
        if slot.timeout:
            return await asyncio.wait_for(action(local_dns, remote_dns), timeout=slot.timeout)
        return await action(local_dns, remote_dns)

    async def _resolve(self) -> Tuple[ResourceNodeDnsResult, ResourceNodeDnsResult]:
        # Both ends come from the same lookups so the pair is judged consistently
        local_dns, remote_dns = await self.resolver.resolve_resource(self.resource)
        return local_dns, remote_dns

    def _record(self, slot: _ActionSlot, result: ResourceResult) -> None:
        previous = slot.last_result
        slot.last_result = result

        message = f"{self}: {slot.kind.value} {result.outcome.name}"
        if result.message:
            message += f" ({result.message})"
        if result.outcome is ResultOutcome.ERROR:
            self.logger.error(message)
        elif result.outcome is ResultOutcome.FAILURE:
            self.logger.warning(message)
        else:
            self.logger.info(message)

        for listener in list(self._listeners):
            try:
                listener.on_result(self, slot.kind, result, previous)
            except Exception as e:
                self.logger.error(f"{self}: result listener failed: {e}", exc_info=True)

    def _set_state(self, slot: _ActionSlot, new: ActionState) -> None:
        old = slot.state
        slot.state = new
        self.logger.debug(f"{self}: {slot.kind.value} {old.value} -> {new.value}")
        for listener in list(self._listeners):
            try:
                listener.on_state_change(self, slot.kind, old, new)
            except Exception as e:
                self.logger.error(f"{self}: state listener failed: {e}", exc_info=True)
