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

from ..utils.console import dl_print
from .commands import run_command_for_value

NVIDIA_SMI_LIST_COMMAND = 'nvidia-smi -L'


def detect_local_accelerator_count() -> int:
  """Counts the GPUs visible on this host with `nvidia-smi -L`.

  Returns:
    Number of listed devices, 0 when nvidia-smi is missing or fails.
  """
  return_code, output = run_command_for_value(
      NVIDIA_SMI_LIST_COMMAND,
      'Detect local GPUs',
      dry_run_return_val='GPU 0: dry run',
      hide_error=True,
      quiet=True,
  )
  if return_code != 0:
    dl_print(
        f'`{NVIDIA_SMI_LIST_COMMAND}` failed with code {return_code}; no'
        ' local accelerators detected.'
    )
    return 0
  count = len([line for line in output.splitlines() if line.startswith('GPU')])
  dl_print(f'Detected {count} local GPUs.')
  return count
