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
import tempfile

from .execution_context import is_dry_run


def make_log_files(names: list[str], log_dir: str | None = None) -> list[str]:
  """Make one log file per remote session.

  Args:
    names: list of session names, used as file name prefixes.
    log_dir: directory to place the files in, a temporary directory if None.

  Returns:
    A list of log file paths, one per name.
  """
  if log_dir is not None:
    ensure_directory_exists(log_dir)

  paths = []
  for name in names:
    # Spaces and slashes are not welcome in file names.
    with tempfile.NamedTemporaryFile(
        delete=False,
        dir=log_dir,
        prefix=name.replace(' ', '-').replace('/', '-') + '-',
        suffix='.log',
    ) as tmp:
      paths.append(tmp.name)
  return paths


def read_tail(path: str, lines: int = 20) -> str:
  """Returns the last `lines` lines of a log file, or '' if it is missing."""
  if not os.path.exists(path):
    return ''
  with open(path, encoding='utf-8', errors='replace') as f:
    return ''.join(f.readlines()[-lines:])


def ensure_directory_exists(directory_path: str) -> None:
  """Checks if a directory exists and creates it if it doesn't.

  Args:
    directory_path: The path to the directory.
  """
  if not is_dry_run() and not os.path.exists(directory_path):
    os.makedirs(directory_path)
