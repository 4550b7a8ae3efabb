from typing import TYPE_CHECKING, Optional

from .models import ActionKind, ResourceResult, ResultOutcome
from .synchronizer import ResourceSynchronizer, SynchronizerListener
from ..utils.logger import get_logger
from ..utils.time import format_timestamp

if TYPE_CHECKING:
    from ..telegram import TelegramNotifier


class ResultNotifier(SynchronizerListener):
    """Pushes outcome changes of synchronize and test runs to Telegram.

    Skipped runs never count as a change: a resource that alternates between
    skipped and successful runs stays quiet.
    """

    def __init__(
        self,
        notifier: "TelegramNotifier",
        notify_result_changes: bool = True,
        notify_errors: bool = True,
        timezone: str = "UTC",
        time_format: str = "%d.%m.%Y %H:%M:%S",
    ):
        self.notifier = notifier
        self.notify_result_changes = notify_result_changes
        self.notify_errors = notify_errors
        self.timezone = timezone
        self.time_format = time_format
        self.logger = get_logger(__name__)
        self._last_outcomes: dict = {}

    def on_result(
        self,
        synchronizer: ResourceSynchronizer,
        kind: ActionKind,
        result: ResourceResult,
        previous: Optional[ResourceResult],
    ) -> None:
        if result.outcome is ResultOutcome.SKIPPED:
            return

        key = (synchronizer.resource.id, kind)
        last_outcome = self._last_outcomes.get(key)
        self._last_outcomes[key] = result.outcome

        local = str(synchronizer.local_resource_node.node)
        remote = str(synchronizer.remote_resource_node.node)

        if result.outcome is ResultOutcome.ERROR and self.notify_errors:
            from ..telegram import ActionError

            self.notifier.notify_action_error(
                ActionError(
                    resource_id=synchronizer.resource.id,
                    local_node=local,
                    remote_node=remote,
                    action=kind.value,
                    error_message=result.message or "unknown error",
                )
            )
            return

        if not self.notify_result_changes or last_outcome is None or last_outcome == result.outcome:
            return

        from ..telegram import ResultChange

        self.notifier.notify_result_change(
            ResultChange(
                resource_id=synchronizer.resource.id,
                local_node=local,
                remote_node=remote,
                action=kind.value,
                current_outcome=result.outcome.name,
                previous_outcome=last_outcome.name,
                completed_at=format_timestamp(result.completed_at, self.timezone, self.time_format),
                message=result.message,
            )
        )
