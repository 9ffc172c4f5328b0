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

import sys
from typing import NoReturn


def dl_print(*args, **kwargs):
  """Helper function to print a prefix before function provided args.

  Args:
    *args: user provided print args.
    **kwargs: user provided print args.
  """
  sys.stdout.write("[DDPLAUNCH] ")
  print(*args, **kwargs)
  sys.stdout.flush()


def dl_exit(error_code) -> NoReturn:
  """Helper function to exit ddplaunch with an associated error code.

  Args:
    error_code: If the code provided is zero, then no issues occurred.
  """
  if error_code == 0:
    dl_print("Exiting ddplaunch cleanly")
    sys.exit(0)
  else:
    dl_print(f"ddplaunch failed, error code {error_code}")
    sys.exit(error_code)
