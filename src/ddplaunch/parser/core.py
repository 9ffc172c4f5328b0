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

from ..utils.console import dl_print
from .config import set_config_parsers
from .discover import set_discover_parser
from .run import set_run_parser
from .version import set_version_parser


def set_parser(parser: argparse.ArgumentParser):
  ddplaunch_subcommands = parser.add_subparsers(
      title='ddplaunch subcommands',
      dest='ddplaunch_subcommands',
      help='Top level commands',
  )
  run_parser = ddplaunch_subcommands.add_parser(
      'run',
      help='Launch a program on every node of a cluster.',
  )
  discover_parser = ddplaunch_subcommands.add_parser(
      'discover',
      help='List the nodes of a cluster with the rank each would get.',
  )
  config_parser = ddplaunch_subcommands.add_parser(
      'config', help='Commands to set and retrieve values from ddplaunch config.'
  )
  version_parser = ddplaunch_subcommands.add_parser(
      'version', help='Command to get ddplaunch version'
  )

  def default_subcommand_function(
      _args,
  ) -> int:  # args is unused, so pylint: disable=invalid-name
    """Default subcommand function.

    Args:
      _args: user provided arguments for running the command.

    Returns:
      0 if successful and 1 otherwise.
    """
    dl_print('Welcome to ddplaunch! See below for overall commands:', flush=True)
    parser.print_help()
    run_parser.print_help()
    discover_parser.print_help()
    config_parser.print_help()
    return 0

  parser.set_defaults(func=default_subcommand_function)
  config_parser.set_defaults(func=default_subcommand_function)

  set_run_parser(run_parser=run_parser)
  set_discover_parser(discover_parser=discover_parser)
  set_config_parsers(config_parser=config_parser)
  set_version_parser(version_parser=version_parser)
