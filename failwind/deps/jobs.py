"""
Job Runner.

This module executes batches of external commands (git clone, fetch,
checkout) with bounded concurrency.

Key features:
- Worker ceiling shared by the whole batch
- Per-job wall-clock timeout with forced termination
- Captured stdout/stderr/exit status and elapsed time
- Failure isolation: every job of a batch always gets a result
- At most one job at a time per plugin name
"""

import asyncio
import contextlib
import logging
import math
import os
import re
import time
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from failwind.deps.errors import DepsError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30000

# git reports fatal problems on stderr even when exit code is zero
_STDERR_ERROR_RE = re.compile(r"^(error|fatal):", re.MULTILINE)


class JobFailed(DepsError):
    """Raised (or reported) when a job exits unsuccessfully."""

    pass


class JobTimedOut(JobFailed):
    """Raised (or reported) when a job exceeds its deadline."""

    pass


class JobPhase(Enum):
    """Phase a job belongs to."""

    CLONE = "clone"
    FETCH = "fetch"
    CHECKOUT = "checkout"
    HOOK = "hook"


@dataclass(frozen=True)
class Job:
    """
    One unit of subprocess work.

    Attributes:
        command: Command argv
        cwd: Working directory
        name: Name of plugin this job works on
        phase: Job phase
        timeout: Deadline in milliseconds (None for runner default)
    """

    command: tuple[str, ...]
    cwd: Path
    name: str
    phase: JobPhase
    timeout: int | None = None


@dataclass(frozen=True)
class JobResult:
    """
    Result of one executed job.

    Attributes:
        job: Executed job
        exit_status: Process exit code (None if process did not finish)
        stdout: Captured standard output
        stderr: Captured standard error
        elapsed: Wall-clock duration in seconds
        timed_out: Whether job was terminated after its deadline
    """

    job: Job
    exit_status: int | None
    stdout: str
    stderr: str
    elapsed: float
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return (
            not self.timed_out
            and self.exit_status == 0
            and _STDERR_ERROR_RE.search(self.stderr) is None
        )

    @property
    def error(self) -> JobFailed | None:
        """Error describing job failure, None for successful job."""
        if self.timed_out:
            return JobTimedOut(
                f"{self.job.phase.value} of {self.job.name!r} timed out "
                f"after {self.elapsed:.1f} seconds"
            )
        if not self.ok:
            details = (self.stderr or self.stdout).strip()
            return JobFailed(
                f"{self.job.phase.value} of {self.job.name!r} failed "
                f"(exit code {self.exit_status}): {details}"
            )
        return None


def default_n_threads() -> int:
    """Default worker ceiling: 80% of available parallelism."""
    return max(1, math.floor(0.8 * (os.cpu_count() or 1)))


class JobRunner:
    """
    Bounded-concurrency executor of job batches.

    Example:
        runner = JobRunner(n_threads=4, timeout=30000)
        results = await runner.run(jobs)
    """

    def __init__(self, n_threads: int | None = None, timeout: int = DEFAULT_TIMEOUT):
        """
        Initialize JobRunner.

        Args:
            n_threads: Maximum number of parallel jobs (None or 0 for default)
            timeout: Default per-job deadline in milliseconds
        """
        self.n_threads = n_threads or default_n_threads()
        self.timeout = timeout

    async def run(self, jobs: Sequence[Job]) -> list[JobResult]:
        """
        Execute batch of jobs.

        Args:
            jobs: Jobs to execute

        Returns:
            One result per job, in the order of `jobs`
        """
        if not jobs:
            return []

        semaphore = asyncio.Semaphore(self.n_threads)
        name_locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

        async def _guarded(job: Job) -> JobResult:
            async with name_locks[job.name]:
                async with semaphore:
                    return await self._execute(job)

        return list(await asyncio.gather(*(_guarded(job) for job in jobs)))

    async def _execute(self, job: Job) -> JobResult:
        timeout_ms = job.timeout if job.timeout is not None else self.timeout
        env = os.environ.copy()
        env["GIT_TERMINAL_PROMPT"] = "0"

        logger.debug("Running %s job for %s: %s", job.phase.value, job.name, job.command)
        start = time.monotonic()

        try:
            process = await asyncio.create_subprocess_exec(
                *job.command,
                cwd=job.cwd,
                env=env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            return JobResult(
                job=job,
                exit_status=None,
                stdout="",
                stderr=f"fatal: could not start {job.command[0]!r}: {e}",
                elapsed=time.monotonic() - start,
            )

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=timeout_ms / 1000
            )
        except TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
            elapsed = time.monotonic() - start
            logger.warning(
                "%s job for %s timed out after %.1f seconds",
                job.phase.value, job.name, elapsed,
            )
            return JobResult(
                job=job,
                exit_status=None,
                stdout="",
                stderr="",
                elapsed=elapsed,
                timed_out=True,
            )

        elapsed = time.monotonic() - start
        logger.debug(
            "%s job for %s finished with %s in %.2f seconds",
            job.phase.value, job.name, process.returncode, elapsed,
        )
        return JobResult(
            job=job,
            exit_status=process.returncode,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
            elapsed=elapsed,
        )
