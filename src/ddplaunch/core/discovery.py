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

import os
from abc import ABC, abstractmethod

import boto3
import requests
from botocore.exceptions import BotoCoreError, ClientError

from ..utils.console import dl_print
from ..utils.errors import DiscoveryError

DEFAULT_CLUSTER_TAG_KEY = 'TrainingCluster'
RUNNING_STATES = ('running',)

IMDS_TOKEN_URL = 'http://169.254.169.254/latest/api/token'
IMDS_IDENTITY_URL = (
    'http://169.254.169.254/latest/dynamic/instance-identity/document'
)
IMDS_TIMEOUT_SECONDS = 2


class NodeDiscovery(ABC):
  """Resolves the addresses of the members of one cluster."""

  @abstractmethod
  def query(self) -> list[str]:
    """Returns the raw, unordered addresses reported by the backend."""

  @abstractmethod
  def describe(self) -> str:
    """Human readable description of the selector."""

  def discover(self) -> list[str]:
    """Returns member addresses sorted lexicographically.

    Raises:
      DiscoveryError: the backend could not be queried or matched no nodes.
    """
    addresses = sorted(set(self.query()))
    if not addresses:
      raise DiscoveryError(f'No running nodes found for {self.describe()}')
    return addresses


def get_instance_region() -> str:
  """Reads the region of the current EC2 instance from instance metadata.

  Uses an IMDSv2 session token.

  Raises:
    DiscoveryError: metadata is not reachable, e.g. when not running on EC2.
  """
  try:
    token = requests.put(
        IMDS_TOKEN_URL,
        headers={'X-aws-ec2-metadata-token-ttl-seconds': '21600'},
        timeout=IMDS_TIMEOUT_SECONDS,
    )
    token.raise_for_status()
    document = requests.get(
        IMDS_IDENTITY_URL,
        headers={'X-aws-ec2-metadata-token': token.text},
        timeout=IMDS_TIMEOUT_SECONDS,
    )
    document.raise_for_status()
    return document.json()['region']
  except (requests.RequestException, ValueError, KeyError) as e:
    raise DiscoveryError(
        'Unable to determine the AWS region from instance metadata. Pass'
        f' --region explicitly. Cause: {e}'
    ) from e


class Ec2TagDiscovery(NodeDiscovery):
  """Finds EC2 instances carrying the tag `tag_key=tag_value`."""

  def __init__(
      self,
      tag_value: str,
      tag_key: str = DEFAULT_CLUSTER_TAG_KEY,
      region: str | None = None,
      states: tuple[str, ...] = RUNNING_STATES,
      session: boto3.session.Session | None = None,
  ):
    self.tag_key = tag_key
    self.tag_value = tag_value
    self.states = states
    self._session = session
    self._region = region

  def describe(self) -> str:
    return f'tag {self.tag_key}={self.tag_value}'

  def session(self) -> boto3.session.Session:
    """Returns the boto3 session, creating it from the environment on first use.

    Raises:
      DiscoveryError: the AWS profile or credentials setup is invalid.
    """
    if self._session is None:
      try:
        self._session = boto3.session.Session()
      except BotoCoreError as e:
        raise DiscoveryError(f'Unable to create an AWS session: {e}') from e
    return self._session

  def region(self) -> str:
    if not self._region:
      self._region = self.session().region_name or get_instance_region()
    return self._region

  def query(self) -> list[str]:
    if not self.tag_value:
      raise DiscoveryError(
          'No cluster tag value given. Set --cluster-tag-value or'
          ' CLUSTER_TAG_VALUE.'
      )
    region = self.region()
    dl_print(f'Discovering instances with {self.describe()} in {region}...')
    filters = [
        {'Name': f'tag:{self.tag_key}', 'Values': [self.tag_value]},
        {'Name': 'instance-state-name', 'Values': list(self.states)},
    ]
    addresses = []
    try:
      ec2 = self.session().client('ec2', region_name=region)
      paginator = ec2.get_paginator('describe_instances')
      for page in paginator.paginate(Filters=filters):
        for reservation in page.get('Reservations', []):
          for instance in reservation.get('Instances', []):
            address = instance.get('PrivateIpAddress')
            if address:
              addresses.append(address)
            else:
              dl_print(
                  f'Skipping instance {instance.get("InstanceId")} without a'
                  ' private IP address.'
              )
    except (BotoCoreError, ClientError) as e:
      raise DiscoveryError(f'Failed to describe EC2 instances: {e}') from e
    return addresses


class StaticHostDiscovery(NodeDiscovery):
  """Reads member addresses from a file, one per line.

  Blank lines and lines starting with `#` are ignored, as is anything after
  a `#` on a line.
  """

  def __init__(self, path: str):
    self.path = os.path.expanduser(path)

  def describe(self) -> str:
    return f'host file {self.path}'

  def query(self) -> list[str]:
    try:
      with open(self.path, encoding='utf-8') as f:
        lines = f.readlines()
    except OSError as e:
      raise DiscoveryError(f'Unable to read {self.describe()}: {e}') from e
    addresses = []
    for line in lines:
      address = line.split('#', 1)[0].strip()
      if address:
        addresses.append(address)
    return addresses
