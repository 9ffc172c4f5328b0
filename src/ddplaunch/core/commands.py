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

from ..utils.console import dl_print
from ..utils.execution_context import is_dry_run


def run_command_for_value(
    command,
    task,
    dry_run_return_val='0',
    hide_error=False,
    quiet=False,
) -> tuple[int, str]:
  """Runs the command locally and returns the error code and stdout.

  Prints errors and associated user-facing information

  Args:
    command: user provided command to run.
    task: user provided task name for running the command.
    dry_run_return_val: return value of this command for dry run.
    hide_error: hide the error from the command output upon success.
    quiet: do not print the command or its failure.

  Returns:
    tuple[int, str]
    int: return_code, default is 0
    str: return_val, default is '0'
  """
  if is_dry_run():
    dl_print(
        f'Task: `{task}` is implemented by the following command'
        ' not running since it is a dry run.'
        f' \n{command}'
    )
    return 0, dry_run_return_val

  if not quiet:
    dl_print(f'Task: `{task}` is implemented by `{command}`')
  try:
    output = subprocess.check_output(
        command,
        shell=True,
        stderr=subprocess.STDOUT if not hide_error else subprocess.DEVNULL,
    )
  except subprocess.CalledProcessError as e:
    if not quiet:
      dl_print(f'Task {task} failed with {e.returncode}')
      dl_print('*' * 80)
      dl_print(str(e.output, 'UTF-8'))
      dl_print('*' * 80)
    return e.returncode, str(e.output or b'', 'UTF-8')
  return 0, str(output, 'UTF-8')
