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

from dataclasses import dataclass

from ..utils.errors import DiscoveryError

COORDINATOR_RANK = 0


@dataclass(frozen=True)
class ClusterMember:
  address: str
  rank: int

  @property
  def is_coordinator(self) -> bool:
    return self.rank == COORDINATOR_RANK


def assign_ranks(addresses: list[str]) -> list[ClusterMember]:
  """Maps an address list to cluster members ranked by sorted position.

  The rank of an address only depends on the set of addresses, so every
  process of a run agrees on who rank 0 is without any further exchange.

  Args:
    addresses: member addresses, normally already sorted by discovery.

  Returns:
    Members ordered by rank, the first one being the coordinator.

  Raises:
    DiscoveryError: the address list is empty.
  """
  if not addresses:
    raise DiscoveryError('Cannot assign ranks to an empty member list')
  return [
      ClusterMember(address=address, rank=rank)
      for rank, address in enumerate(sorted(addresses))
  ]


def coordinator_of(members: list[ClusterMember]) -> ClusterMember:
  """Returns the rank 0 member."""
  coordinators = [m for m in members if m.is_coordinator]
  if len(coordinators) != 1:
    raise DiscoveryError(
        f'Expected exactly one rank {COORDINATOR_RANK} member, found'
        f' {len(coordinators)}'
    )
  return coordinators[0]
