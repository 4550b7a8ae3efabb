import asyncio
import shlex
from dataclasses import dataclass
from typing import Callable, Sequence

from ..cluster.models import ResultOutcome, ResultStep, utcnow
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProcessResult:
    command: str
    exit_code: int
    stdout: str
    stderr: str


def format_command(command: Sequence[str]) -> str:
    return " ".join(shlex.quote(part) for part in command)


async def run_command(command: Sequence[str]) -> ProcessResult:
    command_string = format_command(command)
    logger.debug(f"Running: {command_string}")

    process = await asyncio.create_subprocess_exec(
        *command,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await process.communicate()
    except asyncio.CancelledError:
        if process.returncode is None:
            process.kill()
            await process.wait()
        raise

    return ProcessResult(
        command=command_string,
        exit_code=process.returncode,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )


def exit_zero(result: ProcessResult) -> ResultOutcome:
    return ResultOutcome.SUCCESS if result.exit_code == 0 else ResultOutcome.FAILURE


async def run_step(
    command: Sequence[str], classify: Callable[[ProcessResult], ResultOutcome] = exit_zero
) -> ResultStep:
    """Runs one command and turns its exit into a result step.

    A command that cannot be started becomes an ERROR step.
    """
    started_at = utcnow()
    try:
        result = await run_command(command)
    except OSError as e:
        logger.error(f"Unable to run {format_command(command)}: {e}")
        return ResultStep(
            started_at=started_at,
            completed_at=utcnow(),
            outcome=ResultOutcome.ERROR,
            command=format_command(command),
            error=str(e),
        )

    outcome = classify(result)
    if outcome is not ResultOutcome.SUCCESS:
        logger.warning(f"{result.command} exited {result.exit_code}")

    return ResultStep(
        started_at=started_at,
        completed_at=utcnow(),
        outcome=outcome,
        command=result.command,
        output=result.stdout or None,
        error=result.stderr or None,
    )
