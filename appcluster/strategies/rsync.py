import shlex
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional

from ..cluster.models import (
    NodeDnsStatus,
    ResourceNode,
    ResourceNodeDnsResult,
    ResourceSynchronizationResult,
    ResourceTestResult,
    ResultOutcome,
    ResultStep,
    utcnow,
)
from ..config import ConfigurationError
from ..utils.logger import get_logger
from .base import SynchronizationStrategy
from .process import ProcessResult, run_command, run_step, format_command

BACKUP_DATE_FORMAT = "%Y-%m-%d"


@dataclass(frozen=True, kw_only=True)
class RsyncResourceNode(ResourceNode):
    username: str
    path: str
    backup_dir: str
    backup_days: int = 0

    def __post_init__(self):
        super().__post_init__()
        # A trailing slash changes what rsync copies
        if not self.path or self.path.endswith("/"):
            raise ConfigurationError(f"{self}: path must be set and must not end in '/': '{self.path}'")
        if not self.backup_dir or self.backup_dir.endswith("/"):
            raise ConfigurationError(
                f"{self}: backup directory must be set and must not end in '/': '{self.backup_dir}'"
            )
        if isinstance(self.backup_days, bool) or not isinstance(self.backup_days, int) or self.backup_days < 0:
            raise ConfigurationError(f"{self}: backup days must be a non-negative integer: {self.backup_days!r}")

    @property
    def destination(self) -> str:
        if self.username:
            return f"{self.username}@{self.node.hostname}:{self.path}"
        return f"{self.node.hostname}:{self.path}"

    @property
    def ssh_target(self) -> str:
        if self.username:
            return f"{self.username}@{self.node.hostname}"
        return self.node.hostname


def expired_backups(names: Iterable[str], today: date, backup_days: int) -> List[str]:
    """Dated backup directory names older than the retention window.

    Names that are not dates are never expired.
    """
    cutoff = today - timedelta(days=backup_days)
    expired = []
    for name in names:
        name = name.strip()
        try:
            backup_date = datetime.strptime(name, BACKUP_DATE_FORMAT).date()
        except ValueError:
            continue
        if backup_date < cutoff:
            expired.append(name)
    return sorted(expired)


def has_changes(result: ProcessResult) -> bool:
    return any(line.strip() for line in result.stdout.splitlines())


class RsyncStrategy(SynchronizationStrategy):
    """Pushes the local node's directory to the remote node with rsync over ssh."""

    name = "rsync"

    def __init__(self, delete: bool = True, rsync: str = "rsync", ssh: str = "ssh"):
        self.delete = delete
        self.rsync = rsync
        self.ssh = ssh
        self.logger = get_logger(__name__)

    # Only a master pushes, and only onto a slave
    def can_synchronize(self, local: ResourceNodeDnsResult, remote: ResourceNodeDnsResult) -> bool:
        return local.status == NodeDnsStatus.MASTER and remote.status == NodeDnsStatus.SLAVE

    def can_test(self, local: ResourceNodeDnsResult, remote: ResourceNodeDnsResult) -> bool:
        return local.status.is_active and remote.status.is_active

    def build_command(
        self,
        local_node: RsyncResourceNode,
        remote_node: RsyncResourceNode,
        dry_run: bool = False,
        backup_name: Optional[str] = None,
    ) -> List[str]:
        command = [self.rsync, "-a", "-e", self.ssh]
        if self.delete:
            command.append("--delete")
        if dry_run:
            command.extend(["--dry-run", "--itemize-changes"])
        elif backup_name and remote_node.backup_days > 0:
            command.extend(["--backup", f"--backup-dir={remote_node.backup_dir}/{backup_name}"])
        command.extend([f"{local_node.path}/", remote_node.destination])
        return command

    async def synchronize(
        self, local: ResourceNodeDnsResult, remote: ResourceNodeDnsResult
    ) -> ResourceSynchronizationResult:
        local_node: RsyncResourceNode = local.resource_node
        remote_node: RsyncResourceNode = remote.resource_node
        today = utcnow().date()

        steps = [
            await run_step(
                self.build_command(local_node, remote_node, backup_name=today.strftime(BACKUP_DATE_FORMAT))
            )
        ]
        if remote_node.backup_days > 0:
            steps.append(await self.prune_backups(remote_node, today))

        return ResourceSynchronizationResult.from_steps(steps)

    async def test(self, local: ResourceNodeDnsResult, remote: ResourceNodeDnsResult) -> ResourceTestResult:
        command = self.build_command(local.resource_node, remote.resource_node, dry_run=True)

        def classify(result: ProcessResult) -> ResultOutcome:
            if result.exit_code != 0 or has_changes(result):
                return ResultOutcome.FAILURE
            return ResultOutcome.SUCCESS

        step = await run_step(command, classify)
        message = None
        if step.outcome is ResultOutcome.FAILURE and step.output:
            changes = [line for line in step.output.splitlines() if line.strip()]
            message = f"{len(changes)} differences found"
        return ResourceTestResult.from_steps([step], message=message)

    async def prune_backups(self, remote_node: RsyncResourceNode, today: date) -> ResultStep:
        started_at = utcnow()
        list_command = [self.ssh, "--", remote_node.ssh_target, "ls", "-1", "--", shlex.quote(remote_node.backup_dir)]
        try:
            listing = await run_command(list_command)
            if listing.exit_code != 0:
                return ResultStep(
                    started_at=started_at,
                    completed_at=utcnow(),
                    outcome=ResultOutcome.FAILURE,
                    command=listing.command,
                    output=listing.stdout or None,
                    error=listing.stderr or None,
                )

            expired = expired_backups(listing.stdout.splitlines(), today, remote_node.backup_days)
            if not expired:
                return ResultStep(
                    started_at=started_at,
                    completed_at=utcnow(),
                    outcome=ResultOutcome.SUCCESS,
                    command=listing.command,
                    output="no expired backups",
                )

            self.logger.info(f"{remote_node}: removing {len(expired)} expired backups: {', '.join(expired)}")
            remove_command = [self.ssh, "--", remote_node.ssh_target, "rm", "-rf", "--"]
            remove_command.extend(shlex.quote(f"{remote_node.backup_dir}/{name}") for name in expired)
            removal = await run_command(remove_command)
            return ResultStep(
                started_at=started_at,
                completed_at=utcnow(),
                outcome=ResultOutcome.SUCCESS if removal.exit_code == 0 else ResultOutcome.FAILURE,
                command=removal.command,
                output=removal.stdout or f"removed {', '.join(expired)}",
                error=removal.stderr or None,
            )
        except OSError as e:
            self.logger.error(f"{remote_node}: unable to prune backups: {e}")
            return ResultStep(
                started_at=started_at,
                completed_at=utcnow(),
                outcome=ResultOutcome.ERROR,
                command=format_command(list_command),
                error=str(e),
            )
