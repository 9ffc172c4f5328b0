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
from dataclasses import dataclass, field
from typing import Callable

from ..utils.console import dl_print
from ..utils.errors import ConfigurationError, DiscoveryError
from .accelerators import detect_local_accelerator_count
from .discovery import NodeDiscovery
from .executor import RemoteExecutor, RunCancellation, RunResult
from .launch_plan import (
    DEFAULT_COORDINATOR_PORT,
    Launcher,
    LaunchParameters,
    build_launch_plan,
)
from .ranks import assign_ranks, coordinator_of


class RunStatus(enum.Enum):
  """Aggregate outcome of a run, with the process exit code it maps to."""

  SUCCESS = 0
  DISCOVERY_FAILED = 3
  CONFIGURATION_FAILED = 4
  PARTIAL_FAILURE = 5

  @property
  def exit_code(self) -> int:
    return self.value


@dataclass(frozen=True)
class RunOutcome:
  status: RunStatus
  run_result: RunResult = field(default_factory=RunResult)
  message: str = ''

  @property
  def failed_ranks(self) -> list[int]:
    return self.run_result.failed_ranks


@dataclass(frozen=True)
class LaunchRequest:
  """What the invoker asks for, before the cluster is known.

  `expected_nodes` pins the world size; when unset it follows the number of
  discovered members.
  """

  program: str
  program_args: tuple[str, ...] = ()
  coordinator_port: int = DEFAULT_COORDINATOR_PORT
  workers_per_node: int | None = None
  expected_nodes: int | None = None
  launcher: Launcher = Launcher.TORCHRUN
  venv: str | None = None
  workdir: str | None = None


class LaunchCoordinator:
  """Discovers the cluster, plans the launch and runs it on every member."""

  def __init__(
      self,
      discovery: NodeDiscovery,
      executor: RemoteExecutor,
      accelerator_probe: Callable[[], int] = detect_local_accelerator_count,
  ):
    self.discovery = discovery
    self.executor = executor
    self.accelerator_probe = accelerator_probe

  def run(
      self,
      request: LaunchRequest,
      cancellation: RunCancellation | None = None,
  ) -> RunOutcome:
    """Runs `request` once on the discovered cluster.

    Discovery and configuration problems end the run before anything is
    started remotely.
    """
    try:
      addresses = self.discovery.discover()
      members = assign_ranks(addresses)
    except DiscoveryError as e:
      dl_print(f'Discovery failed: {e}')
      return RunOutcome(status=RunStatus.DISCOVERY_FAILED, message=str(e))

    coordinator = coordinator_of(members)
    dl_print(f'Found {len(members)} hosts:')
    for member in members:
      dl_print(f'  rank {member.rank}: {member.address}')
    dl_print(
        f'MASTER_ADDR={coordinator.address},'
        f' MASTER_PORT={request.coordinator_port}'
    )

    try:
      params = LaunchParameters(
          world_size=(
              request.expected_nodes
              if request.expected_nodes is not None
              else len(members)
          ),
          coordinator_address=coordinator.address,
          program=request.program,
          program_args=tuple(request.program_args),
          coordinator_port=request.coordinator_port,
          workers_per_node=request.workers_per_node,
          launcher=request.launcher,
          venv=request.venv,
          workdir=request.workdir,
      )
      invocations = build_launch_plan(params, members, self.accelerator_probe)
    except ConfigurationError as e:
      dl_print(f'Invalid launch configuration: {e}')
      return RunOutcome(status=RunStatus.CONFIGURATION_FAILED, message=str(e))

    dl_print(
        f'GPUS_PER_NODE={invocations[0].workers_per_node}, launching on all'
        ' hosts...'
    )
    run_result = self.executor.execute(invocations, cancellation)
    if run_result.succeeded:
      return RunOutcome(
          status=RunStatus.SUCCESS,
          run_result=run_result,
          message='All ranks finished successfully.',
      )
    return RunOutcome(
        status=RunStatus.PARTIAL_FAILURE,
        run_result=run_result,
        message=f'Ranks {run_result.failed_ranks} did not succeed.',
    )
