# PYTHON_ARGCOMPLETE_OK

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

r"""ddplaunch: rank assignment and coordinated multi-node launch of a
distributed training job.

Nodes are discovered by EC2 tag or from a host file, ranked by address, and
the program is started on all of them over SSH at once.
"""

import argparse
import sys

import argcomplete

from .core.config import FileSystemConfig, set_config
from .parser.core import set_parser
from .utils.console import dl_print
from .utils.execution_context import set_dry_run
################### Compatibility Check ###################
# Check that the user runs the below version or greater.


major_version_supported = 3
minor_version_supported = 10

user_major_version = sys.version_info[0]
user_minor_version = sys.version_info[1]
if (
    user_major_version < major_version_supported
    or user_minor_version < minor_version_supported
):
  raise RuntimeError(
      'ddplaunch must be run with Python'
      f' {major_version_supported}.{minor_version_supported} or greater.'
      f' User currently is running {user_major_version}.{user_minor_version}'
  )


def main() -> None:
  # Create top level parser for ddplaunch command.
  parser = argparse.ArgumentParser(
      description='ddplaunch command', prog='ddplaunch'
  )
  set_parser(parser=parser)
  argcomplete.autocomplete(parser)

  dl_print('Starting ddplaunch', flush=True)
  main_args = parser.parse_args()
  set_config(FileSystemConfig())
  set_dry_run('dry_run' in main_args and main_args.dry_run)
  main_args.func(main_args)
  dl_print('ddplaunch Done.', flush=True)


if __name__ == '__main__':
  main()
