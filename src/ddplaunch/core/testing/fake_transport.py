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

from ..transport import SSH_TRANSPORT_ERROR_CODE, RemoteSession, RemoteTransport

TERMINATED_RETURN_CODE = -15


class FakeClock:
  """Clock whose time only moves when `sleep` is called."""

  def __init__(self, start: float = 0.0):
    self.now = start

  def time(self) -> float:
    return self.now

  def sleep(self, seconds: float) -> None:
    self.now += seconds


@dataclass
class _Outcome:
  return_code: int | None
  polls_before_exit: int
  start_error: OSError | None


class FakeSession(RemoteSession):
  """Session finishing with a scripted return code after a number of polls."""

  def __init__(self, address: str, outcome: _Outcome):
    self.address = address
    self._outcome = outcome
    self._polls = 0
    self.terminated = False

  def poll(self) -> int | None:
    if self.terminated:
      return TERMINATED_RETURN_CODE
    if self._outcome.return_code is None:
      return None
    if self._polls < self._outcome.polls_before_exit:
      self._polls += 1
      return None
    return self._outcome.return_code

  def terminate(self) -> None:
    if self.poll() is None:
      self.terminated = True

  def is_transport_failure(self, return_code: int) -> bool:
    return return_code == SSH_TRANSPORT_ERROR_CODE


class FakeTransport(RemoteTransport):
  """Tester transport useful for scripting and asserting remote sessions.

  Hosts without a scripted outcome succeed on their first poll.
  """

  def __init__(self):
    self._outcomes: dict[str, _Outcome] = {}
    self.started: list[tuple[str, str]] = []
    self.sessions: dict[str, FakeSession] = {}

  def set_outcome(
      self,
      address: str,
      return_code: int | None = 0,
      polls_before_exit: int = 0,
      start_error: OSError | None = None,
  ) -> None:
    """Scripts the session on `address`.

    A `return_code` of None makes the session run until terminated.
    """
    self._outcomes[address] = _Outcome(
        return_code, polls_before_exit, start_error
    )

  def set_transport_failure(self, address: str) -> None:
    self.set_outcome(address, return_code=SSH_TRANSPORT_ERROR_CODE)

  def set_hanging(self, address: str) -> None:
    self.set_outcome(address, return_code=None)

  def start(self, address: str, command: str, logfile: str) -> RemoteSession:
    outcome = self._outcomes.get(address, _Outcome(0, 0, None))
    if outcome.start_error is not None:
      raise outcome.start_error
    self.started.append((address, command))
    session = FakeSession(address, outcome)
    self.sessions[address] = session
    return session

  def started_addresses(self) -> list[str]:
    return [address for address, _ in self.started]

  def terminated_addresses(self) -> list[str]:
    return [a for a, session in self.sessions.items() if session.terminated]
