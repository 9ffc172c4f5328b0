"""
Copyright 2025 Google LLC

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

     https://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.
"""

import enum
import threading
import time
from dataclasses import dataclass
from typing import Callable

from ..utils.console import dl_print
from ..utils.execution_context import is_dry_run
from ..utils.file import make_log_files
from .launch_plan import LaunchInvocation
from .transport import RemoteSession, RemoteTransport, stop_sessions

DEFAULT_POLL_INTERVAL_SECONDS = 1.0


class ExitStatus(enum.Enum):
  SUCCESS = 'success'
  NON_ZERO_EXIT = 'non-zero exit'
  TRANSPORT_FAILURE = 'transport failure'
  TIMEOUT = 'timeout'
  CANCELLED = 'cancelled'


@dataclass(frozen=True)
class NodeResult:
  """Outcome of the invocation on one member."""

  rank: int
  address: str
  exit_status: ExitStatus
  started_at: float
  finished_at: float
  return_code: int | None = None
  logfile: str | None = None

  @property
  def succeeded(self) -> bool:
    return self.exit_status == ExitStatus.SUCCESS

  @property
  def duration(self) -> float:
    return self.finished_at - self.started_at


@dataclass(frozen=True)
class RunResult:
  """Node results of one run, ordered by rank."""

  nodes: tuple[NodeResult, ...] = ()

  @property
  def failed_ranks(self) -> list[int]:
    return [node.rank for node in self.nodes if not node.succeeded]

  @property
  def succeeded(self) -> bool:
    return bool(self.nodes) and not self.failed_ranks

  def by_rank(self, rank: int) -> NodeResult:
    return next(node for node in self.nodes if node.rank == rank)


class RunCancellation:
  """Run scoped cancellation signal.

  Cancelling more than once, or after the run has finished, has no effect.
  """

  def __init__(self):
    self._event = threading.Event()
    self._lock = threading.Lock()
    self.reason: str | None = None

  def cancel(self, reason: str = 'cancelled') -> None:
    with self._lock:
      if self._event.is_set():
        return
      self.reason = reason
      self._event.set()

  def is_cancelled(self) -> bool:
    return self._event.is_set()


@dataclass
class _RunningNode:
  invocation: LaunchInvocation
  session: RemoteSession
  started_at: float
  logfile: str


class RemoteExecutor:
  """Runs one invocation per member concurrently and collects the outcomes.

  Every session is started before any of them is waited on, so a slow or
  unreachable member never delays the others. Node failures are reported in
  the returned RunResult, they are never raised.
  """

  def __init__(
      self,
      transport: RemoteTransport,
      timeout: float | None = None,
      fail_fast: bool = True,
      poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
      log_dir: str | None = None,
      clock: Callable[[], float] = time.time,
      sleep: Callable[[float], None] = time.sleep,
  ):
    self.transport = transport
    self.timeout = timeout
    self.fail_fast = fail_fast
    self.poll_interval = poll_interval
    self.log_dir = log_dir
    self._clock = clock
    self._sleep = sleep

  def execute(
      self,
      invocations: list[LaunchInvocation],
      cancellation: RunCancellation | None = None,
  ) -> RunResult:
    """Runs `invocations` and blocks until all of them are terminal.

    Args:
      invocations: one invocation per member, dispatched in the given order.
      cancellation: signal that stops every still running session when set.

    Returns:
      The RunResult, sorted by rank.
    """
    if not invocations:
      return RunResult()
    if is_dry_run():
      return self._pretend(invocations)

    cancellation = cancellation or RunCancellation()
    results: dict[int, NodeResult] = {}
    running: dict[int, _RunningNode] = {}
    logfiles = make_log_files([i.name for i in invocations], self.log_dir)
    pending = list(zip(invocations, logfiles))

    run_started_at = self._clock()
    while pending or running:
      try:
        self._dispatch(pending, running, results, cancellation)
        self._poll_running(running, results, cancellation)

        if cancellation.is_cancelled() and running:
          self._cancel_running(running, results, cancellation.reason)

        if not running:
          continue

        self._print_progress(running, results, run_started_at)
        self._sleep(self._next_poll_delay(running))
      except KeyboardInterrupt:
        dl_print('Interrupted, terminating all remote sessions.')
        cancellation.cancel('interrupted')

    return RunResult(
        nodes=tuple(sorted(results.values(), key=lambda node: node.rank))
    )

  def _dispatch(
      self,
      pending: list[tuple[LaunchInvocation, str]],
      running: dict[int, _RunningNode],
      results: dict[int, NodeResult],
      cancellation: RunCancellation,
  ) -> None:
    while pending:
      invocation, logfile = pending[0]
      started_at = self._clock()
      if cancellation.is_cancelled():
        results[invocation.rank] = self._result(
            invocation, ExitStatus.CANCELLED, started_at, started_at, logfile
        )
        pending.pop(0)
        continue
      dl_print(
          f'Launching NODE_RANK={invocation.rank} on host'
          f' {invocation.address}...'
      )
      try:
        session = self.transport.start(
            invocation.address, invocation.command, logfile
        )
      except OSError as e:
        pending.pop(0)
        dl_print(f'Unable to start a session on {invocation.address}: {e}')
        self._finish(
            results,
            cancellation,
            self._result(
                invocation,
                ExitStatus.TRANSPORT_FAILURE,
                started_at,
                self._clock(),
                logfile,
            ),
        )
        continue
      pending.pop(0)
      running[invocation.rank] = _RunningNode(
          invocation, session, started_at, logfile
      )

  def _next_poll_delay(self, running: dict[int, _RunningNode]) -> float:
    """Poll interval, shortened so that no deadline is overslept."""
    if self.timeout is None:
      return self.poll_interval
    next_deadline = min(n.started_at for n in running.values()) + self.timeout
    return max(0.0, min(self.poll_interval, next_deadline - self._clock()))

  def _poll_running(
      self,
      running: dict[int, _RunningNode],
      results: dict[int, NodeResult],
      cancellation: RunCancellation,
  ) -> None:
    timed_out = []
    for rank in sorted(running):
      node = running[rank]
      return_code = node.session.poll()
      now = self._clock()
      if return_code is not None:
        status = self._classify(node.session, return_code)
        result = self._result(
            node.invocation,
            status,
            node.started_at,
            now,
            node.logfile,
            return_code,
        )
      elif self.timeout is not None and now - node.started_at >= self.timeout:
        dl_print(
            f'NODE_RANK={rank} exceeded its {self.timeout}s deadline,'
            ' terminating it.'
        )
        timed_out.append(node.session)
        result = self._result(
            node.invocation,
            ExitStatus.TIMEOUT,
            node.started_at,
            node.started_at + self.timeout,
            node.logfile,
        )
      else:
        continue
      del running[rank]
      self._finish(results, cancellation, result)
    stop_sessions(timed_out)

  def _cancel_running(
      self,
      running: dict[int, _RunningNode],
      results: dict[int, NodeResult],
      reason: str | None,
  ) -> None:
    dl_print(f'Terminating {len(running)} still running sessions: {reason}')
    stopped = sorted(running)
    stop_sessions(running[rank].session for rank in stopped)
    for rank in stopped:
      node = running.pop(rank)
      results[rank] = self._result(
          node.invocation,
          ExitStatus.CANCELLED,
          node.started_at,
          self._clock(),
          node.logfile,
      )
      _print_node_result(results[rank])

  def _finish(
      self,
      results: dict[int, NodeResult],
      cancellation: RunCancellation,
      result: NodeResult,
  ) -> None:
    results[result.rank] = result
    _print_node_result(result)
    if self.fail_fast and not result.succeeded:
      cancellation.cancel(
          f'NODE_RANK={result.rank} on {result.address} ended with'
          f' {result.exit_status.value}'
      )

  def _print_progress(
      self,
      running: dict[int, _RunningNode],
      results: dict[int, NodeResult],
      run_started_at: float,
  ) -> None:
    seconds_elapsed = self._clock() - run_started_at
    total = len(running) + len(results)
    slow_node = running[min(running)]
    dl_print(
        f'[t={seconds_elapsed:.2f}] Completed {len(results)}/{total}, rank'
        f' {slow_node.invocation.rank} still working, logfile'
        f' {slow_node.logfile}'
    )

  def _pretend(self, invocations: list[LaunchInvocation]) -> RunResult:
    now = self._clock()
    nodes = []
    for invocation in invocations:
      dl_print(
          f'NODE_RANK={invocation.rank} on {invocation.address} would run'
          ' the following command, not running since it is a dry run.'
          f' \n{invocation.command}'
      )
      nodes.append(self._result(invocation, ExitStatus.SUCCESS, now, now))
    dl_print('Pretending all the nodes succeeded')
    return RunResult(nodes=tuple(sorted(nodes, key=lambda node: node.rank)))

  @staticmethod
  def _classify(session: RemoteSession, return_code: int) -> ExitStatus:
    if return_code == 0:
      return ExitStatus.SUCCESS
    if session.is_transport_failure(return_code):
      return ExitStatus.TRANSPORT_FAILURE
    return ExitStatus.NON_ZERO_EXIT

  @staticmethod
  def _result(
      invocation: LaunchInvocation,
      status: ExitStatus,
      started_at: float,
      finished_at: float,
      logfile: str | None = None,
      return_code: int | None = None,
  ) -> NodeResult:
    return NodeResult(
        rank=invocation.rank,
        address=invocation.address,
        exit_status=status,
        started_at=started_at,
        finished_at=finished_at,
        return_code=return_code,
        logfile=logfile,
    )


def _print_node_result(result: NodeResult) -> None:
  code = '' if result.return_code is None else f' (code {result.return_code})'
  dl_print(
      f'NODE_RANK={result.rank} on {result.address}:'
      f' {result.exit_status.value}{code} after {result.duration:.2f}s,'
      f' logfile {result.logfile}'
  )
