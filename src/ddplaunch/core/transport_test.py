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

import subprocess
from unittest.mock import MagicMock

import pytest

from .transport import SshSession, SshTransport, stop_sessions


def test_build_command_defaults():
  transport = SshTransport(user='ec2-user', key_path='/keys/id_rsa')

  assert transport.build_command('10.0.0.1', 'hostname') == [
      'ssh',
      '-i',
      '/keys/id_rsa',
      '-o',
      'StrictHostKeyChecking=no',
      '-o',
      'BatchMode=yes',
      '-tt',
      'ec2-user@10.0.0.1',
      'hostname',
  ]


def test_build_command_with_port_and_connect_timeout():
  transport = SshTransport(
      user='ubuntu', key_path=None, port=2222, connect_timeout=15
  )

  argv = transport.build_command('node-1', 'true')

  assert '-i' not in argv
  assert argv[-4:] == ['-p', '2222', 'ubuntu@node-1', 'true']
  assert 'ConnectTimeout=15' in argv


def test_build_command_expands_key_path(mocker):
  mocker.patch('os.path.expanduser', return_value='/home/me/.ssh/id_rsa')

  transport = SshTransport(key_path='~/.ssh/id_rsa')

  assert transport.key_path == '/home/me/.ssh/id_rsa'


def test_start_writes_output_to_logfile(mocker, tmp_path):
  popen = mocker.patch('ddplaunch.core.transport.subprocess.Popen')
  logfile = tmp_path / 'rank-0.log'

  session = SshTransport(key_path=None).start(
      '10.0.0.1', 'hostname', str(logfile)
  )

  assert isinstance(session, SshSession)
  kwargs = popen.call_args.kwargs
  assert kwargs['stderr'] == subprocess.STDOUT
  assert kwargs['stdout'].name == str(logfile)


def test_start_raises_when_ssh_cannot_start(mocker, tmp_path):
  mocker.patch(
      'ddplaunch.core.transport.subprocess.Popen',
      side_effect=FileNotFoundError('ssh'),
  )
  with pytest.raises(OSError):
    SshTransport().start('10.0.0.1', 'hostname', str(tmp_path / 'log'))


def test_session_poll_closes_log_on_exit():
  child = MagicMock()
  child.poll.return_value = 0
  log = MagicMock(closed=False)

  assert SshSession(child, log).poll() == 0
  log.close.assert_called_once()


def test_session_poll_keeps_log_open_while_running():
  child = MagicMock()
  child.poll.return_value = None
  log = MagicMock(closed=False)

  assert SshSession(child, log).poll() is None
  log.close.assert_not_called()


def test_session_terminate_does_not_wait_for_child():
  child = MagicMock()
  child.poll.return_value = None

  SshSession(child, MagicMock()).terminate()

  child.terminate.assert_called_once()
  child.wait.assert_not_called()
  child.kill.assert_not_called()


def test_session_reap_waits_for_terminated_child():
  child = MagicMock()
  log = MagicMock(closed=False)

  SshSession(child, log).reap(5)

  child.wait.assert_called_once_with(timeout=5)
  child.kill.assert_not_called()
  log.close.assert_called_once()


def test_session_reap_kills_child_ignoring_sigterm():
  child = MagicMock()
  child.wait.side_effect = [subprocess.TimeoutExpired('ssh', 10), -9]

  SshSession(child, MagicMock(closed=False)).reap(10)

  child.kill.assert_called_once()


class _StubbornChild:
  """Popen stand-in ignoring SIGTERM, advancing a shared clock while waited on."""

  def __init__(self, clock: list[float]):
    self._clock = clock
    self.killed = False

  def poll(self):
    return -9 if self.killed else None

  def terminate(self):
    pass

  def wait(self, timeout=None):
    if self.killed:
      return -9
    self._clock[0] += timeout
    raise subprocess.TimeoutExpired('ssh', timeout)

  def kill(self):
    self.killed = True


def test_stop_sessions_shares_one_grace_period():
  now = [0.0]
  children = [_StubbornChild(now) for _ in range(3)]
  sessions = [SshSession(c, MagicMock(closed=False)) for c in children]

  stop_sessions(sessions, grace_seconds=10, clock=lambda: now[0])

  assert now[0] == 10
  assert all(c.killed for c in children)


def test_stop_sessions_terminates_all_before_waiting():
  calls = []
  sessions = []
  for i in range(2):
    session = MagicMock()
    session.terminate.side_effect = lambda i=i: calls.append(('terminate', i))
    session.reap.side_effect = lambda _, i=i: calls.append(('reap', i))
    sessions.append(session)

  stop_sessions(sessions, grace_seconds=1)

  assert calls == [
      ('terminate', 0),
      ('terminate', 1),
      ('reap', 0),
      ('reap', 1),
  ]


def test_session_terminate_is_a_no_op_after_exit():
  child = MagicMock()
  child.poll.return_value = 1

  SshSession(child, MagicMock()).terminate()

  child.terminate.assert_not_called()


@pytest.mark.parametrize(
    argnames='return_code,expected',
    argvalues=[(255, True), (1, False), (0, False), (-15, False)],
)
def test_session_transport_failure_is_ssh_code_255(return_code, expected):
  session = SshSession(MagicMock(), MagicMock())

  assert session.is_transport_failure(return_code) is expected
