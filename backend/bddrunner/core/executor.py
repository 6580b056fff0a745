"""Run executor.

Takes one pending run through clone, target validation, execution with live
log capture, report discovery (or the exit-code fallback), and persistence.
Every run ends ``passed`` or ``failed``; the workspace is always removed and
the run's log is kept for a retention window so late pollers see the end.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import shutil
import signal
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from bddrunner.config import Settings, settings as default_settings
from bddrunner.core.exceptions import ConfigurationError, InvalidRunTransition, ProvisioningError, RunError
from bddrunner.core.locator import ReportFormat, discover_report
from bddrunner.core.log_buffer import LogStore, get_log_store
from bddrunner.core.store import RunStore, get_run_store
from bddrunner.models.run import Run, RunStatus
from bddrunner.schemas.report import Feature, ParsedReport, Scenario, Summary
from bddrunner.ws import ConnectionManager, ws_manager

logger = logging.getLogger(__name__)

MAKEFILE_NAMES = ("GNUmakefile", "makefile", "Makefile")
STDERR_PREFIX = "[stderr] "
FALLBACK_FEATURE_NAME = "Test Execution"

# asyncio's default 64 KiB line limit is too small for some reporters
_STREAM_LIMIT = 1024 * 1024
_MAKE_TARGET_RE = re.compile(r"^[A-Za-z0-9_.][A-Za-z0-9_./-]*$")


@dataclass
class CommandResult:
    returncode: int
    stdout: str
    stderr: str


@dataclass
class ExecutionResult:
    exit_code: int
    timed_out: bool = False


# ── Helpers ───────────────────────────────────────────────────────────────────


def build_clone_url(repo: str, token: str = "") -> str:
    """Expand an ``owner/name`` slug to a GitHub HTTPS URL.

    Full URLs, scp-style addresses and filesystem paths are used unchanged.
    """
    if "://" in repo or repo.startswith(("git@", "/", "./", "../")):
        return repo
    slug = repo.strip("/")
    if slug.endswith(".git"):
        slug = slug[:-4]
    if token:
        return f"https://{token}@github.com/{slug}.git"
    return f"https://github.com/{slug}.git"


def build_command(
    make_target: str,
    tags: list[str],
    branch: str | None = None,
    default_branch: str = "main",
) -> list[str]:
    """``make <target>`` plus an ANDed tag filter and a branch override when needed."""
    cmd = ["make", make_target]
    if tags:
        cmd.append(f"TAGS={' and '.join(tags)}")
    if branch and branch != default_branch:
        cmd.append(f"BRANCH={branch}")
    return cmd


def fallback_report(
    exit_code: int,
    make_target: str,
    tags: list[str],
    duration_ms: int,
) -> ParsedReport:
    """Single synthetic scenario derived from the exit code alone."""
    passed = exit_code == 0
    status = "passed" if passed else "failed"
    summary = Summary()
    summary.record(status)
    feature = Feature(
        name=FALLBACK_FEATURE_NAME,
        description="Tests passed" if passed else "Tests failed",
        scenarios=[
            Scenario(
                name=make_target,
                status=status,
                steps=[],
                tags=list(tags),
                duration=duration_ms,
            )
        ],
    )
    return ParsedReport(features=[feature], summary=summary)


class _LogForwarder:
    """Pushes one run's log lines to the broadcaster from its own task.

    ``push`` never waits: when subscribers fall behind and the queue is full,
    lines are dropped from the live stream (they stay in the log buffer).
    """

    def __init__(self, broadcaster: ConnectionManager, run_id: str, maxsize: int) -> None:
        self.broadcaster = broadcaster
        self.run_id = run_id
        self.dropped = 0
        self._queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=maxsize)
        self._task = asyncio.create_task(self._forward())

    def push(self, message: dict[str, Any]) -> None:
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            self.dropped += 1

    async def _forward(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                await self.broadcaster.broadcast(self.run_id, message)
            except Exception:
                logger.debug("executor: log broadcast failed for %s", self.run_id, exc_info=True)
            finally:
                self._queue.task_done()

    async def close(self, timeout: float) -> None:
        """Give queued lines up to *timeout* seconds to go out, then stop."""
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.debug("executor: gave up flushing live log for %s", self.run_id)
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        if self.dropped:
            logger.info("executor: %d live log line(s) not pushed for %s", self.dropped, self.run_id)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def _kill(proc: asyncio.subprocess.Process) -> None:
    """Kill the process and everything it spawned (it leads its own session)."""
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError, AttributeError):
        try:
            proc.kill()
        except ProcessLookupError:
            pass


# ── Executor ──────────────────────────────────────────────────────────────────


class RunExecutor:
    """Executes runs. One instance may serve many runs; each run id is executed once."""

    broadcast_queue_size = 1000
    broadcast_flush_seconds = 5.0

    def __init__(
        self,
        store: RunStore,
        logs: LogStore,
        settings: Settings | None = None,
        broadcaster: ConnectionManager | None = None,
    ) -> None:
        self.store = store
        self.logs = logs
        self.settings = settings or default_settings
        self.broadcaster = broadcaster
        self._forwarders: dict[str, _LogForwarder] = {}

    async def execute(self, run_id: str) -> None:
        started = time.monotonic()
        workdir = Path(self.settings.workspace_root) / run_id

        try:
            try:
                run = await self.store.mark_running(run_id)
            except InvalidRunTransition as exc:
                logger.warning("executor: not executing run %s: %s", run_id, exc)
                return
            if run is None:
                logger.error("executor: run %s not found", run_id)
                return

            logger.info("executor: starting run %s (%s@%s)", run_id, run.repo, run.branch)
            await self._log(run_id, f"Starting test run for {run.repo} on branch {run.branch}")

            repo_dir = await self._provision(run_id, run, workdir)
            await self._validate_target(run_id, repo_dir, run.make_target)

            cmd = build_command(run.make_target, run.tags or [], run.branch, self.settings.default_branch)
            execution = await self._run_tests(run_id, cmd, repo_dir)

            report = await self._collect_results(run_id, repo_dir, execution.exit_code, run, started)
            await self._finish(run_id, report, execution, started)

        except RunError as exc:
            await self._fail(run_id, started, str(exc))
        except Exception as exc:
            logger.exception("executor: run %s crashed", run_id)
            await self._fail(run_id, started, f"Internal error: {exc}")
        finally:
            await asyncio.to_thread(shutil.rmtree, workdir, True)
            self.logs.schedule_eviction(run_id, self.settings.log_retention_seconds)
            await self._close_forwarder(run_id)

    # ── Logging ───────────────────────────────────────────────────────────────

    async def _log(self, run_id: str, line: str) -> None:
        entry = self.logs.append(run_id, line)
        if self.broadcaster is None:
            return
        forwarder = self._forwarders.get(run_id)
        if forwarder is None:
            forwarder = self._forwarders[run_id] = _LogForwarder(
                self.broadcaster, run_id, self.broadcast_queue_size
            )
        forwarder.push({"offset": entry.offset, "line": entry.line})

    async def _close_forwarder(self, run_id: str) -> None:
        forwarder = self._forwarders.pop(run_id, None)
        if forwarder is not None:
            await forwarder.close(self.broadcast_flush_seconds)

    def _redact(self, text: str) -> str:
        token = self.settings.github_token
        return text.replace(token, "***") if token else text

    # ── Steps ─────────────────────────────────────────────────────────────────

    async def _run_command(
        self,
        cmd: list[str],
        cwd: Path,
        timeout: float,
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        """Run to completion, capturing output. Kills the process on timeout and re-raises."""
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=str(cwd),
            env=env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            _kill(proc)
            await proc.wait()
            raise
        return CommandResult(
            returncode=proc.returncode if proc.returncode is not None else 1,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )

    async def _provision(self, run_id: str, run: Run, workdir: Path) -> Path:
        """Create the workspace and shallow-clone the repository into it."""
        try:
            await asyncio.to_thread(workdir.mkdir, parents=True, exist_ok=True)
        except OSError as exc:
            raise ProvisioningError(f"Failed to create workspace: {exc}") from exc

        repo_dir = workdir / "repo"
        url = build_clone_url(run.repo, self.settings.github_token)
        timeout = self.settings.clone_timeout_seconds
        await self._log(run_id, f"Cloning {run.repo}...")

        try:
            result = await self._run_command(
                ["git", "clone", "--depth", "1", "--branch", run.branch, "--", url, str(repo_dir)],
                cwd=workdir,
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            await self._log(run_id, f"Clone timed out after {timeout:.0f}s")
            raise ProvisioningError(f"Failed to clone repository: timed out after {timeout:.0f}s")
        except OSError as exc:
            await self._log(run_id, f"Clone failed: {exc}")
            raise ProvisioningError(f"Failed to clone repository: {exc}") from exc

        if result.returncode != 0:
            detail = self._redact(
                result.stderr.strip() or result.stdout.strip() or f"git exited with code {result.returncode}"
            )
            await self._log(run_id, f"Clone failed: {detail}")
            raise ProvisioningError(f"Failed to clone repository: {detail}")

        await self._log(run_id, "Clone complete")
        return repo_dir

    async def _validate_target(self, run_id: str, repo_dir: Path, make_target: str) -> None:
        """Fail fast on a missing makefile or an unknown target."""
        if not any((repo_dir / name).is_file() for name in MAKEFILE_NAMES):
            raise ConfigurationError("No Makefile found in repository root")
        if not _MAKE_TARGET_RE.match(make_target):
            raise ConfigurationError(f"Invalid make target '{make_target}'")

        timeout = self.settings.dry_run_timeout_seconds
        try:
            result = await self._run_command(["make", "-n", make_target], cwd=repo_dir, timeout=timeout)
        except asyncio.TimeoutError:
            raise ConfigurationError(f"Dry run of make target '{make_target}' timed out after {timeout:.0f}s")
        except OSError as exc:
            raise ConfigurationError(f"Could not run make: {exc}") from exc

        if result.returncode != 0:
            raise ConfigurationError(f"Make target '{make_target}' does not exist in this repository")

    async def _pump(self, run_id: str, stream: asyncio.StreamReader, prefix: str) -> None:
        """Copy a child stream into the run log line by line."""
        while True:
            try:
                raw = await stream.readline()
            except ValueError:
                await self._log(run_id, f"{prefix}[line truncated: longer than {_STREAM_LIMIT} bytes]")
                continue
            if not raw:
                break
            line = raw.decode("utf-8", errors="replace").rstrip()
            if line.strip():
                await self._log(run_id, f"{prefix}{line}")

    async def _run_tests(self, run_id: str, cmd: list[str], repo_dir: Path) -> ExecutionResult:
        """Spawn the test command and stream its output until exit or timeout.

        A spawn failure is reported as exit code 1, not raised.
        """
        await self._log(run_id, f"Running: {' '.join(cmd)}")
        logger.info("executor: running %s in %s", " ".join(cmd), repo_dir)

        env = dict(os.environ)
        if self.settings.github_token:
            env["GITHUB_TOKEN"] = self.settings.github_token

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=str(repo_dir),
                env=env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=_STREAM_LIMIT,
                start_new_session=True,
            )
        except OSError as exc:
            await self._log(run_id, f"Process error: {exc}")
            logger.warning("executor: could not spawn %s: %s", cmd[0], exc)
            return ExecutionResult(exit_code=1)

        timeout = self.settings.run_timeout_seconds
        t_out = asyncio.create_task(self._pump(run_id, proc.stdout, ""))  # type: ignore[arg-type]
        t_err = asyncio.create_task(self._pump(run_id, proc.stderr, STDERR_PREFIX))  # type: ignore[arg-type]
        timed_out = False
        try:
            await asyncio.wait_for(asyncio.gather(t_out, t_err, proc.wait()), timeout=timeout)
        except asyncio.TimeoutError:
            timed_out = True
            t_out.cancel()
            t_err.cancel()
            _kill(proc)
            await proc.wait()
            await self._log(run_id, f"Test execution timed out after {timeout:.0f}s; process killed")

        exit_code = proc.returncode if proc.returncode is not None else 1
        if timed_out and exit_code == 0:
            exit_code = 1
        await self._log(run_id, f"Tests finished with exit code {exit_code}")
        return ExecutionResult(exit_code=exit_code, timed_out=timed_out)

    async def _collect_results(
        self,
        run_id: str,
        repo_dir: Path,
        exit_code: int,
        run: Run,
        started: float,
    ) -> ParsedReport:
        """Parsed report from the repository, or the exit-code fallback."""
        try:
            discovered = await asyncio.to_thread(discover_report, repo_dir)
        except Exception:
            logger.exception("executor: result discovery failed for run %s", run_id)
            discovered = None

        if discovered is not None:
            label = "Cucumber JSON" if discovered.format is ReportFormat.CUCUMBER else "JUnit XML"
            await self._log(run_id, f"Found {label}: {discovered.path.relative_to(repo_dir)}")
            return discovered.report

        await self._log(run_id, "No parseable result files found, using exit code")
        return fallback_report(exit_code, run.make_target, run.tags or [], _elapsed_ms(started))

    async def _finish(
        self,
        run_id: str,
        report: ParsedReport,
        execution: ExecutionResult,
        started: float,
    ) -> None:
        try:
            await self.store.append_features(run_id, report.features)
        except SQLAlchemyError:
            logger.exception("executor: could not store features for run %s", run_id)

        summary = report.summary
        error_message = None
        if execution.timed_out:
            error_message = f"Test execution timed out after {self.settings.run_timeout_seconds:.0f}s"
        status = RunStatus.FAILED if summary.failed > 0 or execution.timed_out else RunStatus.PASSED

        duration_ms = _elapsed_ms(started)
        try:
            await self.store.complete_run(
                run_id,
                status=status,
                duration_ms=duration_ms,
                summary=summary,
                error_message=error_message,
            )
        except SQLAlchemyError:
            logger.exception("executor: could not store final status for run %s", run_id)

        await self._log(run_id, f"Run complete: {status.value} ({summary.passed}/{summary.total} passed)")
        logger.info(
            "executor: run %s done: %s, %d/%d passed in %dms",
            run_id,
            status.value,
            summary.passed,
            summary.total,
            duration_ms,
        )

    async def _fail(self, run_id: str, started: float, message: str) -> None:
        await self._log(run_id, f"Error: {message}")
        logger.warning("executor: run %s failed: %s", run_id, message)
        try:
            await self.store.complete_run(
                run_id,
                status=RunStatus.FAILED,
                duration_ms=_elapsed_ms(started),
                error_message=message,
            )
        except Exception:
            logger.exception("executor: could not mark run %s failed", run_id)


async def run_in_background(run_id: str) -> None:
    """Background-task entry point. Nothing raised here reaches the request path."""
    try:
        executor = RunExecutor(get_run_store(), get_log_store(), broadcaster=ws_manager)
        await executor.execute(run_id)
    except Exception:
        logger.exception("executor: background run %s crashed", run_id)
