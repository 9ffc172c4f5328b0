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
from typing import Protocol, Any


class ParserOrArgumentGroup(Protocol):

  def add_argument(self, *args, **kwargs) -> Any:
    ...


def add_shared_arguments(
    custom_parser_or_group: ParserOrArgumentGroup, required=False
) -> None:
  """Add shared arguments to the parser or argument group.

  Args:
    custom_parser_or_group: parser or argument group to add shared arguments to.
  """
  custom_parser_or_group.add_argument(
      '--dry-run',
      type=bool,
      action=argparse.BooleanOptionalAction,
      default=False,
      help=(
          'If given `--dry-run`, ddplaunch will print the commands it wants to'
          ' run on each node but not run them. Discovery still queries the'
          ' cluster.'
      ),
      required=required,
  )
  custom_parser_or_group.add_argument(
      '--skip-validation',
      type=bool,
      action=argparse.BooleanOptionalAction,
      default=False,
      help='Skip dependency validation checks (ssh). Independent of --dry-run.',
      required=required,
  )


def add_cluster_selector_arguments(
    custom_parser_or_group: ParserOrArgumentGroup,
) -> None:
  """Add the arguments selecting which nodes belong to the cluster.

  Args:
    custom_parser_or_group: parser or argument group to add arguments to.
  """
  custom_parser_or_group.add_argument(
      '--cluster-tag-key',
      type=str,
      default=None,
      help=(
          'EC2 tag key identifying the cluster nodes. Defaults to'
          ' CLUSTER_TAG_KEY, the config file, then "TrainingCluster".'
      ),
  )
  custom_parser_or_group.add_argument(
      '--cluster-tag-value',
      type=str,
      default=None,
      help=(
          'EC2 tag value identifying the cluster nodes. Defaults to'
          ' CLUSTER_TAG_VALUE, then the config file.'
      ),
  )
  custom_parser_or_group.add_argument(
      '--region',
      type=str,
      default=None,
      help=(
          'AWS region of the cluster. Defaults to the AWS configuration, then'
          ' to the region of this instance.'
      ),
  )
  custom_parser_or_group.add_argument(
      '--hostfile',
      type=str,
      default=None,
      help=(
          'File listing one node address per line. Used instead of EC2 tag'
          ' discovery when given.'
      ),
  )
