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

from tabulate import tabulate

from ..core.config import (
    CLUSTER_TAG_KEY_KEY,
    CLUSTER_TAG_VALUE_KEY,
    COORDINATOR_PORT_KEY,
    HOSTFILE_KEY,
    LAUNCHER_KEY,
    REGION_KEY,
    SSH_KEY_KEY,
    SSH_USER_KEY,
    VENV_KEY,
    WORKDIR_KEY,
    WORKERS_PER_NODE_KEY,
    resolve_option,
)
from ..core.coordinator import (
    LaunchCoordinator,
    LaunchRequest,
    RunOutcome,
    RunStatus,
)
from ..core.discovery import (
    DEFAULT_CLUSTER_TAG_KEY,
    Ec2TagDiscovery,
    NodeDiscovery,
    StaticHostDiscovery,
)
from ..core.executor import RemoteExecutor
from ..core.launch_plan import DEFAULT_COORDINATOR_PORT, Launcher
from ..core.transport import (
    DEFAULT_SSH_KEY_PATH,
    DEFAULT_SSH_USER,
    SshTransport,
)
from ..utils.console import dl_exit, dl_print
from ..utils.errors import ConfigurationError
from ..utils.file import read_tail
from ..utils.validation import (
    SystemDependency,
    should_validate_dependencies,
    validate_dependencies_list,
)


def build_discovery(args) -> NodeDiscovery:
  """Picks static host file or EC2 tag discovery from the arguments."""
  hostfile = resolve_option(args.hostfile, HOSTFILE_KEY)
  if hostfile:
    return StaticHostDiscovery(hostfile)
  return Ec2TagDiscovery(
      tag_value=resolve_option(args.cluster_tag_value, CLUSTER_TAG_VALUE_KEY),
      tag_key=resolve_option(
          args.cluster_tag_key, CLUSTER_TAG_KEY_KEY, DEFAULT_CLUSTER_TAG_KEY
      ),
      region=resolve_option(args.region, REGION_KEY),
  )


def build_transport(args) -> SshTransport:
  return SshTransport(
      user=resolve_option(args.ssh_user, SSH_USER_KEY, DEFAULT_SSH_USER),
      key_path=resolve_option(args.ssh_key, SSH_KEY_KEY, DEFAULT_SSH_KEY_PATH),
      port=args.ssh_port,
      connect_timeout=args.connect_timeout,
  )


def _to_int(value, name: str) -> int | None:
  if value is None:
    return None
  try:
    return int(value)
  except (TypeError, ValueError) as e:
    raise ConfigurationError(f'{name} must be an integer, got {value!r}') from e


def build_request(args) -> LaunchRequest:
  """Builds the launch request from flags, environment and config file.

  Raises:
    ConfigurationError: a value from any source is malformed.
  """
  launcher = resolve_option(
      args.launcher, LAUNCHER_KEY, Launcher.TORCHRUN.value
  )
  try:
    launcher = Launcher(launcher)
  except ValueError as e:
    raise ConfigurationError(f'Unknown launcher {launcher!r}') from e
  if args.timeout is not None and args.timeout <= 0:
    raise ConfigurationError(f'Timeout must be positive, got {args.timeout}')
  if args.poll_interval <= 0:
    raise ConfigurationError(
        f'Poll interval must be positive, got {args.poll_interval}'
    )
  return LaunchRequest(
      program=args.program,
      program_args=tuple(args.program_args or ()),
      coordinator_port=_to_int(
          resolve_option(
              args.coordinator_port,
              COORDINATOR_PORT_KEY,
              DEFAULT_COORDINATOR_PORT,
          ),
          'Coordinator port',
      ),
      workers_per_node=_to_int(
          resolve_option(args.workers_per_node, WORKERS_PER_NODE_KEY),
          'Workers per node',
      ),
      expected_nodes=args.expected_nodes,
      launcher=launcher,
      venv=resolve_option(args.venv, VENV_KEY),
      workdir=resolve_option(args.workdir, WORKDIR_KEY),
  )


def print_run_summary(outcome: RunOutcome) -> None:
  """Prints a per-node table and the final status of the run."""
  if outcome.run_result.nodes:
    rows = [
        [
            node.rank,
            node.address,
            node.exit_status.value,
            '' if node.return_code is None else node.return_code,
            f'{node.duration:.2f}',
            node.logfile or '',
        ]
        for node in outcome.run_result.nodes
    ]
    dl_print(
        '\n'
        + tabulate(
            rows,
            headers=[
                'RANK',
                'ADDRESS',
                'STATUS',
                'CODE',
                'SECONDS',
                'LOGFILE',
            ],
            tablefmt='plain',
        )
    )
  for node in outcome.run_result.nodes:
    if not node.succeeded and node.logfile:
      tail = read_tail(node.logfile)
      if tail:
        dl_print(f'Last lines of rank {node.rank} ({node.address}):\n{tail}')
  if outcome.status == RunStatus.PARTIAL_FAILURE:
    dl_print(
        f'Run status: {outcome.status.name}, failed ranks'
        f' {outcome.failed_ranks}'
    )
  else:
    dl_print(f'Run status: {outcome.status.name}. {outcome.message}')


def run(args) -> None:
  """Launches `args.program` on every node of the selected cluster.

  Args:
    args: user provided arguments for running the command.
  """
  if should_validate_dependencies(args):
    validate_dependencies_list([SystemDependency.SSH])

  try:
    request = build_request(args)
  except ConfigurationError as e:
    dl_print(f'Invalid launch configuration: {e}')
    dl_exit(RunStatus.CONFIGURATION_FAILED.exit_code)

  coordinator = LaunchCoordinator(
      discovery=build_discovery(args),
      executor=RemoteExecutor(
          transport=build_transport(args),
          timeout=args.timeout,
          fail_fast=args.fail_fast,
          poll_interval=args.poll_interval,
          log_dir=args.log_dir,
      ),
  )
  outcome = coordinator.run(request)
  print_run_summary(outcome)
  dl_exit(outcome.status.exit_code)
