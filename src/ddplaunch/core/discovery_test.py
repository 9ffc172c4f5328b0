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

from unittest.mock import MagicMock

import pytest
import requests
from botocore.exceptions import ClientError, NoCredentialsError

from ..utils.errors import DiscoveryError
from .discovery import Ec2TagDiscovery, StaticHostDiscovery, get_instance_region


@pytest.fixture(autouse=True)
def dl_print(mocker):
  return mocker.patch('ddplaunch.core.discovery.dl_print')


def _instance(ip: str | None, instance_id: str = 'i-0') -> dict:
  instance = {'InstanceId': instance_id}
  if ip is not None:
    instance['PrivateIpAddress'] = ip
  return instance


def _session(pages: list[dict], region: str | None = 'us-east-1') -> MagicMock:
  session = MagicMock()
  session.region_name = region
  paginator = session.client.return_value.get_paginator.return_value
  paginator.paginate.return_value = pages
  return session


def test_ec2_discovery_returns_sorted_private_ips():
  session = _session([
      {'Reservations': [{'Instances': [_instance('10.0.0.3')]}]},
      {
          'Reservations': [
              {'Instances': [_instance('10.0.0.1'), _instance('10.0.0.2')]}
          ]
      },
  ])

  discovery = Ec2TagDiscovery(tag_value='mycluster1', session=session)

  assert discovery.discover() == ['10.0.0.1', '10.0.0.2', '10.0.0.3']


def test_ec2_discovery_filters_by_tag_and_running_state():
  session = _session([{'Reservations': [{'Instances': [_instance('10.0.0.1')]}]}])

  Ec2TagDiscovery(
      tag_value='mycluster1', tag_key='Team', session=session
  ).discover()

  session.client.assert_called_once_with('ec2', region_name='us-east-1')
  session.client.return_value.get_paginator.assert_called_once_with(
      'describe_instances'
  )
  paginator = session.client.return_value.get_paginator.return_value
  paginator.paginate.assert_called_once_with(
      Filters=[
          {'Name': 'tag:Team', 'Values': ['mycluster1']},
          {'Name': 'instance-state-name', 'Values': ['running']},
      ]
  )


def test_ec2_discovery_skips_instances_without_private_ip():
  session = _session([
      {
          'Reservations': [
              {'Instances': [_instance(None, 'i-1'), _instance('10.0.0.5')]}
          ]
      },
  ])

  discovery = Ec2TagDiscovery(tag_value='c', session=session)

  assert discovery.discover() == ['10.0.0.5']


def test_ec2_discovery_raises_when_nothing_matches():
  session = _session([{'Reservations': []}])

  with pytest.raises(DiscoveryError):
    Ec2TagDiscovery(tag_value='c', session=session).discover()


def test_ec2_discovery_raises_without_tag_value():
  session = _session([])

  with pytest.raises(DiscoveryError):
    Ec2TagDiscovery(tag_value='', session=session).discover()
  session.client.assert_not_called()


@pytest.mark.parametrize(
    argnames='error',
    argvalues=[
        NoCredentialsError(),
        ClientError(
            {'Error': {'Code': 'AuthFailure', 'Message': 'bad credentials'}},
            'DescribeInstances',
        ),
    ],
)
def test_ec2_discovery_wraps_aws_errors(error):
  session = _session([])
  paginator = session.client.return_value.get_paginator.return_value
  paginator.paginate.side_effect = error

  with pytest.raises(DiscoveryError):
    Ec2TagDiscovery(tag_value='c', session=session).discover()


def test_ec2_discovery_prefers_explicit_region(mocker):
  get_region = mocker.patch('ddplaunch.core.discovery.get_instance_region')
  session = _session([], region='us-east-1')

  discovery = Ec2TagDiscovery(tag_value='c', region='eu-west-1', session=session)

  assert discovery.region() == 'eu-west-1'
  get_region.assert_not_called()


def test_ec2_discovery_falls_back_to_instance_metadata_region(mocker):
  mocker.patch(
      'ddplaunch.core.discovery.get_instance_region', return_value='us-west-2'
  )
  session = _session([], region=None)

  assert Ec2TagDiscovery(tag_value='c', session=session).region() == 'us-west-2'


def test_get_instance_region_reads_identity_document(mocker):
  put = mocker.patch('ddplaunch.core.discovery.requests.put')
  put.return_value.text = 'token'
  get = mocker.patch('ddplaunch.core.discovery.requests.get')
  get.return_value.json.return_value = {'region': 'ap-south-1'}

  assert get_instance_region() == 'ap-south-1'
  assert get.call_args.kwargs['headers'] == {'X-aws-ec2-metadata-token': 'token'}


def test_get_instance_region_raises_when_metadata_unreachable(mocker):
  mocker.patch(
      'ddplaunch.core.discovery.requests.put',
      side_effect=requests.ConnectionError('no route to host'),
  )

  with pytest.raises(DiscoveryError):
    get_instance_region()


def test_static_discovery_reads_host_file(tmp_path):
  hostfile = tmp_path / 'hosts'
  hostfile.write_text(
      '# training nodes\n10.0.0.3\n\n10.0.0.1  # head\n10.0.0.2\n10.0.0.1\n',
      encoding='utf-8',
  )

  discovery = StaticHostDiscovery(str(hostfile))

  assert discovery.discover() == ['10.0.0.1', '10.0.0.2', '10.0.0.3']


def test_static_discovery_raises_on_missing_file(tmp_path):
  with pytest.raises(DiscoveryError):
    StaticHostDiscovery(str(tmp_path / 'missing')).discover()


def test_static_discovery_raises_on_empty_file(tmp_path):
  hostfile = tmp_path / 'hosts'
  hostfile.write_text('# nothing here\n\n', encoding='utf-8')

  with pytest.raises(DiscoveryError):
    StaticHostDiscovery(str(hostfile)).discover()


def test_ec2_discovery_reports_missing_aws_profile(monkeypatch, tmp_path):
  monkeypatch.setenv('AWS_PROFILE', 'no-such-profile')
  monkeypatch.setenv('AWS_CONFIG_FILE', str(tmp_path / 'config'))
  monkeypatch.setenv('AWS_SHARED_CREDENTIALS_FILE', str(tmp_path / 'creds'))

  discovery = Ec2TagDiscovery(tag_value='c1', region='us-east-1')

  with pytest.raises(DiscoveryError, match='no-such-profile'):
    discovery.discover()
