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

from ..core.coordinator import RunStatus
from ..core.ranks import assign_ranks
from ..utils.console import dl_exit, dl_print
from ..utils.errors import DiscoveryError
from .run import build_discovery


def discover(args) -> None:
  """Lists the cluster members and the rank each would be given."""
  discovery = build_discovery(args)
  try:
    members = assign_ranks(discovery.discover())
  except DiscoveryError as e:
    dl_print(f'Discovery failed: {e}')
    dl_exit(RunStatus.DISCOVERY_FAILED.exit_code)

  rows = [
      [m.rank, m.address, 'coordinator' if m.is_coordinator else 'worker']
      for m in members
  ]
  dl_print(
      f'{len(members)} nodes found for {discovery.describe()}:\n'
      + tabulate(rows, headers=['RANK', 'ADDRESS', 'ROLE'], tablefmt='plain')
  )
  dl_exit(0)
