from pathlib import Path
from typing import Optional

from fluent.runtime import FluentLocalization, FluentResourceLoader

from .events import NodeDnsStatusChange, ResultChange, ActionError
from ..utils.logger import get_logger


class MessageFormatter:
    SUPPORTED_LOCALES = ["en", "ru"]
    DEFAULT_LOCALE = "en"

    def __init__(self, locale: str = "en", locales_dir: Optional[Path] = None):
        self.logger = get_logger(__name__)
        self.locale = locale if locale in self.SUPPORTED_LOCALES else self.DEFAULT_LOCALE

        if locales_dir is None:
            locales_dir = Path(__file__).parent.parent / "locales"

        self.locales_dir = locales_dir
        self._loader = FluentResourceLoader(str(locales_dir / "{locale}"))
        self._l10n = FluentLocalization(
            locales=[self.locale, self.DEFAULT_LOCALE],
            resource_ids=["messages.ftl"],
            resource_loader=self._loader,
        )

    def format_dns_status_change(self, change: NodeDnsStatusChange) -> str:
        return self._l10n.format_value(
            "node-dns-status-changed",
            {
                "resource": change.resource_id,
                "node": change.node_name,
                "previous": change.previous_status,
                "current": change.current_status,
                "detail": change.detail or "-",
            },
        )

    def format_result_change(self, change: ResultChange) -> str:
        msg_id = "result-recovered" if change.current_outcome == "SUCCESS" else "result-changed"
        return self._l10n.format_value(
            msg_id,
            {
                "resource": change.resource_id,
                "local": change.local_node,
                "remote": change.remote_node,
                "action": change.action,
                "previous": change.previous_outcome or "-",
                "current": change.current_outcome,
                "time": change.completed_at or "-",
                "message": change.message or "-",
            },
        )

    def format_action_error(self, error: ActionError) -> str:
        return self._l10n.format_value(
            "action-error",
            {
                "resource": error.resource_id,
                "local": error.local_node,
                "remote": error.remote_node,
                "action": error.action,
                "error": error.error_message,
            },
        )

    def format_service_started(self) -> str:
        return self._l10n.format_value("service-started")

    def format_service_stopped(self) -> str:
        return self._l10n.format_value("service-stopped")
