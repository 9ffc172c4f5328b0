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

import ruamel.yaml
from abc import ABC, abstractmethod
from ..utils import file
from ..utils.console import dl_print
from setuptools_scm import get_version as setuptools_get_version
from importlib.metadata import version, PackageNotFoundError


def _get_version() -> str:
  version_override = os.getenv('DDPLAUNCH_VERSION_OVERRIDE', '')
  if version_override != '':
    return version_override

  try:
    return setuptools_get_version()
  except LookupError:
    pass

  try:
    return version('ddplaunch')
  except PackageNotFoundError:
    pass

  raise LookupError('unable to determine version number')


__version__ = _get_version()
DDPLAUNCH_CONFIG_FILE = os.path.expanduser('~/.config/ddplaunch/config.yaml')

CONFIGS_KEY = 'configs'
CLUSTER_TAG_KEY_KEY = 'cluster-tag-key'
CLUSTER_TAG_VALUE_KEY = 'cluster-tag-value'
REGION_KEY = 'region'
HOSTFILE_KEY = 'hostfile'
SSH_USER_KEY = 'ssh-user'
SSH_KEY_KEY = 'ssh-key'
COORDINATOR_PORT_KEY = 'coordinator-port'
WORKERS_PER_NODE_KEY = 'workers-per-node'
LAUNCHER_KEY = 'launcher'
VENV_KEY = 'venv'
WORKDIR_KEY = 'workdir'

DEFAULT_KEYS = [
    CLUSTER_TAG_KEY_KEY,
    CLUSTER_TAG_VALUE_KEY,
    REGION_KEY,
    HOSTFILE_KEY,
    SSH_USER_KEY,
    SSH_KEY_KEY,
    COORDINATOR_PORT_KEY,
    WORKERS_PER_NODE_KEY,
    LAUNCHER_KEY,
    VENV_KEY,
    WORKDIR_KEY,
]

# Environment variables honoured by the shell launcher this tool replaces.
ENV_VARS = {
    CLUSTER_TAG_KEY_KEY: 'CLUSTER_TAG_KEY',
    CLUSTER_TAG_VALUE_KEY: 'CLUSTER_TAG_VALUE',
    SSH_USER_KEY: 'SSH_USER',
    SSH_KEY_KEY: 'SSH_KEY_PATH',
    COORDINATOR_PORT_KEY: 'MASTER_PORT',
    WORKERS_PER_NODE_KEY: 'GPUS_PER_NODE',
}

yaml = ruamel.yaml.YAML()


class Config(ABC):
  """Stores and manipulates ddplaunch configuration."""

  @abstractmethod
  def set(self, key: str, value: str | None) -> None:
    """Sets the config value"""
    pass

  @abstractmethod
  def get(self, key: str) -> str | None:
    """Reads the config value"""
    pass

  @abstractmethod
  def get_all(
      self,
  ) -> dict[str, str] | None:
    pass


class FileSystemConfig(Config):
  """Configuration manipulation class leveraging the file system."""

  def __init__(self, custom_config_file: str = DDPLAUNCH_CONFIG_FILE) -> None:
    self._config = custom_config_file
    self._allowed_keys = DEFAULT_KEYS

  def _open_configs(self) -> dict | None:
    file.ensure_directory_exists(os.path.dirname(self._config))

    if not os.path.exists(self._config):
      return None

    with open(self._config, encoding='utf-8', mode='r') as stream:
      config_yaml: dict = yaml.load(stream)
      return config_yaml

  def _save_configs(self, config_yaml: dict) -> None:
    with open(self._config, encoding='utf-8', mode='w') as stream:
      yaml.dump(config_yaml, stream)

  def set(self, key: str, value: str | None) -> None:
    if key not in self._allowed_keys:
      dl_print(f'Key {key} is not an allowed ddplaunch config key.')
      return

    config_yaml = self._open_configs()
    if config_yaml is None:
      config_yaml = {'version': 'v1', CONFIGS_KEY: {}}

    config_yaml[CONFIGS_KEY][key] = value
    self._save_configs(config_yaml)

  def get(self, key: str) -> str | None:
    if key not in self._allowed_keys:
      dl_print(f'Key {key} is not an allowed ddplaunch config key.')
      return None

    config_yaml = self._open_configs()
    if config_yaml is None:
      return None

    vals: dict[str, str] = config_yaml[CONFIGS_KEY]
    return vals.get(key)

  def get_all(
      self,
  ) -> dict[str, str] | None:
    config_yaml = self._open_configs()
    if config_yaml is None:
      return None
    val: dict[str, str] = config_yaml[CONFIGS_KEY]
    return val


class InMemoryConfig(Config):
  """Configuration manipulation class in memory."""

  def __init__(self) -> None:
    self._config: dict[str, str] = {}
    self._allowed_keys = DEFAULT_KEYS

  def set(self, key: str, value: str | None) -> None:
    if key not in self._allowed_keys:
      return
    if value is None:
      self._config.pop(key, None)
    else:
      self._config[key] = value

  def get(self, key: str) -> str | None:
    if key not in self._allowed_keys:
      return None
    return self._config.get(key)

  def get_all(
      self,
  ) -> dict[str, str] | None:
    return None if len(self._config) <= 0 else self._config


_config: Config = InMemoryConfig()


def set_config(config: Config):
  global _config
  _config = config


def get_config() -> Config:
  return _config


def resolve_option(cli_value, key: str, default=None):
  """Resolves an option from the command line, environment and config file.

  Args:
    cli_value: value given on the command line, None when the flag was absent.
    key: config key of the option.
    default: value used when no other source provides one.

  Returns:
    The first value found, in order: flag, environment variable, config file,
    default.
  """
  if cli_value is not None:
    return cli_value
  env_var = ENV_VARS.get(key)
  if env_var and os.getenv(env_var):
    return os.getenv(env_var)
  config_value = get_config().get(key)
  if config_value is not None:
    return config_value
  return default
