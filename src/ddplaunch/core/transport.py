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
import subprocess
import time
from abc import ABC, abstractmethod
from typing import IO, Callable, Iterable

# OpenSSH reports its own connection and authentication errors with 255.
SSH_TRANSPORT_ERROR_CODE = 255
DEFAULT_SSH_USER = 'ec2-user'
DEFAULT_SSH_KEY_PATH = '~/.ssh/id_rsa'
TERMINATE_GRACE_SECONDS = 10


class RemoteSession(ABC):
  """A command running on a remote host."""

  @abstractmethod
  def poll(self) -> int | None:
    """Returns the exit code, or None while the command is still running."""

  @abstractmethod
  def terminate(self) -> None:
    """Asks the remote command to stop without waiting for it.

    A no-op once it has exited.
    """

  def reap(self, timeout: float) -> None:
    """Waits up to `timeout` seconds for a terminated command, then kills it."""

  def is_transport_failure(self, return_code: int) -> bool:
    """Whether `return_code` means the host was never reached."""
    return False


class RemoteTransport(ABC):
  """Starts commands on remote hosts."""

  @abstractmethod
  def start(self, address: str, command: str, logfile: str) -> RemoteSession:
    """Starts `command` on `address` without waiting for it.

    Raises:
      OSError: the session could not be started at all.
    """


class SshSession(RemoteSession):
  """An ssh client child process, with its output going to a log file."""

  def __init__(self, child: subprocess.Popen, log: IO):
    self._child = child
    self._log = log

  def poll(self) -> int | None:
    return_code = self._child.poll()
    if return_code is not None and not self._log.closed:
      self._log.close()
    return return_code

  def terminate(self) -> None:
    if self._child.poll() is not None:
      return
    # Closing the forced tty delivers SIGHUP to the remote process group.
    self._child.terminate()

  def reap(self, timeout: float) -> None:
    try:
      self._child.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
      self._child.kill()
      self._child.wait()
    if not self._log.closed:
      self._log.close()

  def is_transport_failure(self, return_code: int) -> bool:
    return return_code == SSH_TRANSPORT_ERROR_CODE


class SshTransport(RemoteTransport):
  """Runs commands through the local OpenSSH client."""

  def __init__(
      self,
      user: str = DEFAULT_SSH_USER,
      key_path: str | None = DEFAULT_SSH_KEY_PATH,
      port: int | None = None,
      connect_timeout: int | None = None,
  ):
    self.user = user
    self.key_path = os.path.expanduser(key_path) if key_path else None
    self.port = port
    self.connect_timeout = connect_timeout

  def build_command(self, address: str, command: str) -> list[str]:
    """Returns the argv of the ssh client running `command` on `address`."""
    argv = ['ssh']
    if self.key_path:
      argv += ['-i', self.key_path]
    argv += [
        '-o',
        'StrictHostKeyChecking=no',
        '-o',
        'BatchMode=yes',
        '-tt',
    ]
    if self.connect_timeout:
      argv += ['-o', f'ConnectTimeout={self.connect_timeout}']
    if self.port:
      argv += ['-p', str(self.port)]
    argv += [f'{self.user}@{address}' if self.user else address, command]
    return argv

  def start(self, address: str, command: str, logfile: str) -> RemoteSession:
    # pylint: disable=consider-using-with
    log = open(logfile, 'w', encoding='utf-8')
    try:
      child = subprocess.Popen(
          self.build_command(address, command),
          stdin=subprocess.DEVNULL,
          stdout=log,
          stderr=subprocess.STDOUT,
      )
    except OSError:
      log.close()
      raise
    return SshSession(child, log)


def stop_sessions(
    sessions: Iterable[RemoteSession],
    grace_seconds: float = TERMINATE_GRACE_SECONDS,
    clock: Callable[[], float] = time.monotonic,
) -> None:
  """Terminates all `sessions` at once and kills those outliving the grace.

  All sessions share one grace period.
  """
  sessions = list(sessions)
  for session in sessions:
    session.terminate()
  deadline = clock() + grace_seconds
  for session in sessions:
    session.reap(max(0.0, deadline - clock()))
