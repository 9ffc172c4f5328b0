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

import argparse

from argcomplete import ChoicesCompleter

from ..commands.run import run
from ..core.launch_plan import Launcher
from .common import add_cluster_selector_arguments, add_shared_arguments


def set_run_parser(run_parser: argparse.ArgumentParser):
  run_required_arguments = run_parser.add_argument_group(
      'Required Arguments', 'Arguments required for `run`.'
  )
  run_selector_arguments = run_parser.add_argument_group(
      'Cluster Selection', 'Which nodes take part in the run.'
  )
  run_launch_arguments = run_parser.add_argument_group(
      'Launch Arguments', 'How the program is started on each node.'
  )
  run_ssh_arguments = run_parser.add_argument_group(
      'SSH Arguments', 'How the nodes are reached.'
  )

  run_required_arguments.add_argument(
      'program', type=str, help='Program to run on every node, e.g. train.py'
  )
  run_required_arguments.add_argument(
      'program_args',
      nargs=argparse.REMAINDER,
      help='Arguments passed through to the program unmodified.',
  )

  add_cluster_selector_arguments(run_selector_arguments)
  run_selector_arguments.add_argument(
      '--expected-nodes',
      type=int,
      default=None,
      help=(
          'Number of nodes the run must have. The run is rejected when'
          ' discovery finds a different number.'
      ),
  )

  run_launch_arguments.add_argument(
      '--coordinator-port',
      type=int,
      default=None,
      help='Rendezvous port on the rank 0 node. Defaults to 29500.',
  )
  run_launch_arguments.add_argument(
      '--workers-per-node',
      type=int,
      default=None,
      help=(
          'Processes per node. Auto-detected from the GPUs of this host when'
          ' not set.'
      ),
  )
  run_launch_arguments.add_argument(
      '--fail-fast',
      type=bool,
      action=argparse.BooleanOptionalAction,
      default=True,
      help=(
          'Terminate all remaining nodes as soon as one fails. With'
          ' --no-fail-fast every node runs to completion.'
      ),
  )
  run_launch_arguments.add_argument(
      '--timeout',
      type=float,
      default=None,
      help='Deadline in seconds for each node. No deadline by default.',
  )
  launchers = [launcher.value for launcher in Launcher]
  run_launch_arguments.add_argument(
      '--launcher',
      type=str,
      choices=launchers,
      default=None,
      help=(
          'torchrun wraps the program in torchrun; env runs the program'
          ' directly with NNODES, NODE_RANK, MASTER_ADDR, MASTER_PORT and'
          ' GPUS_PER_NODE exported.'
      ),
  ).completer = ChoicesCompleter(launchers)
  run_launch_arguments.add_argument(
      '--venv',
      type=str,
      default=None,
      help='Virtualenv on the nodes to activate before running.',
  )
  run_launch_arguments.add_argument(
      '--workdir',
      type=str,
      default=None,
      help='Directory on the nodes to run the program from.',
  )
  run_launch_arguments.add_argument(
      '--log-dir',
      type=str,
      default=None,
      help='Local directory for per-node logs. A temporary one by default.',
  )
  run_launch_arguments.add_argument(
      '--poll-interval',
      type=float,
      default=1.0,
      help='Seconds between status checks of the running nodes.',
  )

  run_ssh_arguments.add_argument(
      '--ssh-user',
      type=str,
      default=None,
      help='Login user on the nodes. Defaults to SSH_USER, then ec2-user.',
  )
  run_ssh_arguments.add_argument(
      '--ssh-key',
      type=str,
      default=None,
      help=(
          'Private key used to log in. Defaults to SSH_KEY_PATH, then'
          ' ~/.ssh/id_rsa.'
      ),
  )
  run_ssh_arguments.add_argument(
      '--ssh-port',
      type=int,
      default=None,
      help='SSH port of the nodes.',
  )
  run_ssh_arguments.add_argument(
      '--connect-timeout',
      type=int,
      default=None,
      help='Seconds to wait for an SSH connection before failing the node.',
  )

  add_shared_arguments(run_parser)
  run_parser.set_defaults(func=run)
