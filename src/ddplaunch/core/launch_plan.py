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
import shlex
from dataclasses import dataclass, field
from typing import Callable

from ..utils.errors import ConfigurationError, DiscoveryError
from .accelerators import detect_local_accelerator_count
from .ranks import ClusterMember, coordinator_of

DEFAULT_COORDINATOR_PORT = 29500
MAX_PORT = 65535


class Launcher(enum.Enum):
  """How the program is started on each member."""

  # Wrap the program in torchrun with explicit rendezvous flags.
  TORCHRUN = 'torchrun'
  # Run the program as is; it reads the rendezvous from the environment.
  ENV = 'env'


@dataclass(frozen=True)
class LaunchParameters:
  """Run-wide launch configuration, identical for every member."""

  world_size: int
  coordinator_address: str
  program: str
  program_args: tuple[str, ...] = ()
  coordinator_port: int = DEFAULT_COORDINATOR_PORT
  workers_per_node: int | None = None
  launcher: Launcher = Launcher.TORCHRUN
  venv: str | None = None
  workdir: str | None = None


@dataclass(frozen=True)
class LaunchInvocation:
  """Everything needed to start the program on one member."""

  rank: int
  address: str
  world_size: int
  coordinator_address: str
  coordinator_port: int
  workers_per_node: int
  program: str
  program_args: tuple[str, ...] = ()
  launcher: Launcher = Launcher.TORCHRUN
  venv: str | None = None
  workdir: str | None = None
  environment: dict[str, str] = field(default_factory=dict, compare=False)

  @property
  def name(self) -> str:
    return f'rank-{self.rank}-{self.address}'

  @property
  def command(self) -> str:
    return render_command(self)


def render_environment(
    world_size: int,
    rank: int,
    coordinator_address: str,
    coordinator_port: int,
    workers_per_node: int,
) -> dict[str, str]:
  """Rendezvous variables exported on each member."""
  return {
      'NNODES': str(world_size),
      'NODE_RANK': str(rank),
      'MASTER_ADDR': coordinator_address,
      'MASTER_PORT': str(coordinator_port),
      'GPUS_PER_NODE': str(workers_per_node),
  }


def _quote_path(path: str) -> str:
  """Quotes a remote path, leaving a leading `~/` to the remote shell."""
  if path.startswith('~/'):
    return '~/' + shlex.quote(path[2:])
  return shlex.quote(path)


def render_command(invocation: LaunchInvocation) -> str:
  """Renders the shell command run on the member of `invocation`.

  Args:
    invocation: the per-member invocation.

  Returns:
    A single shell command string, with every user supplied token quoted.
  """
  exports = ' '.join(
      f'{key}={shlex.quote(value)}'
      for key, value in invocation.environment.items()
  )
  steps = [f'export {exports}']
  if invocation.workdir:
    steps.append(f'cd {_quote_path(invocation.workdir)}')
  if invocation.venv:
    steps.append(f'. {_quote_path(invocation.venv + "/bin/activate")}')

  program = [invocation.program, *invocation.program_args]
  if invocation.launcher == Launcher.TORCHRUN:
    program = [
        'torchrun',
        f'--nnodes={invocation.world_size}',
        f'--nproc_per_node={invocation.workers_per_node}',
        f'--node_rank={invocation.rank}',
        f'--master_addr={invocation.coordinator_address}',
        f'--master_port={invocation.coordinator_port}',
        *program,
    ]
  steps.append(' '.join(shlex.quote(token) for token in program))
  # The export applies to the rest of the line, the rest must succeed in turn.
  return steps[0] + '; ' + ' && '.join(steps[1:])


def resolve_workers_per_node(
    params: LaunchParameters,
    accelerator_probe: Callable[[], int] = detect_local_accelerator_count,
) -> int:
  """Takes workers per node from the parameters or probes the local host once.

  Nodes are assumed homogeneous, so the local count applies to every member.
  """
  if params.workers_per_node is not None:
    workers = params.workers_per_node
  else:
    workers = accelerator_probe()
  if workers <= 0:
    raise ConfigurationError(
        f'Workers per node resolved to {workers}. Set --workers-per-node'
        ' or run on a host with accelerators.'
    )
  return workers


def validate_parameters(
    params: LaunchParameters, members: list[ClusterMember]
) -> None:
  """Raises ConfigurationError if `params` cannot describe a run on `members`."""
  if not params.program:
    raise ConfigurationError('No program to run was given.')
  if params.world_size != len(members):
    raise ConfigurationError(
        f'World size {params.world_size} does not match the'
        f' {len(members)} discovered members.'
    )
  if not 0 < params.coordinator_port <= MAX_PORT:
    raise ConfigurationError(
        f'Coordinator port {params.coordinator_port} is not a valid port.'
    )
  try:
    coordinator = coordinator_of(members)
  except DiscoveryError as e:
    raise ConfigurationError(str(e)) from e
  if params.coordinator_address != coordinator.address:
    raise ConfigurationError(
        f'Coordinator address {params.coordinator_address} is not the rank'
        f' {coordinator.rank} member {coordinator.address}.'
    )


def build_launch_plan(
    params: LaunchParameters,
    members: list[ClusterMember],
    accelerator_probe: Callable[[], int] = detect_local_accelerator_count,
) -> list[LaunchInvocation]:
  """Produces one invocation per member, in rank order.

  Args:
    params: run-wide parameters.
    members: ranked cluster members.
    accelerator_probe: called once when `params.workers_per_node` is unset.

  Returns:
    Invocations ordered by rank.

  Raises:
    ConfigurationError: the parameters are invalid for these members.
  """
  validate_parameters(params, members)
  workers_per_node = resolve_workers_per_node(params, accelerator_probe)

  invocations = []
  for member in sorted(members, key=lambda m: m.rank):
    invocations.append(
        LaunchInvocation(
            rank=member.rank,
            address=member.address,
            world_size=params.world_size,
            coordinator_address=params.coordinator_address,
            coordinator_port=params.coordinator_port,
            workers_per_node=workers_per_node,
            program=params.program,
            program_args=tuple(params.program_args),
            launcher=params.launcher,
            venv=params.venv,
            workdir=params.workdir,
            environment=render_environment(
                world_size=params.world_size,
                rank=member.rank,
                coordinator_address=params.coordinator_address,
                coordinator_port=params.coordinator_port,
                workers_per_node=workers_per_node,
            ),
        )
    )
  return invocations
