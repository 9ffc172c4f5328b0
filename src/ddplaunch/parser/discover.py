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

from ..commands.discover import discover
from .common import add_cluster_selector_arguments


def set_discover_parser(discover_parser):
  discover_selector_arguments = discover_parser.add_argument_group(
      'Cluster Selection', 'Which nodes to list.'
  )
  add_cluster_selector_arguments(discover_selector_arguments)
  discover_parser.set_defaults(func=discover)
