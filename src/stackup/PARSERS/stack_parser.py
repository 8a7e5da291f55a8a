# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Parsers for YAML stack files.
"""
import logging
import os
from typing import Any, Dict, Optional

import yaml
from dotenv import dotenv_values
from pydantic import ValidationError

from ..exceptions import ConfigError
from ..MODELS.stack_config import ServiceDefinition, StackConfig
from ..UTILS.string_interpolation import EnvironmentInterpolator

logger = logging.getLogger(__name__)


class StackParser:
    """
    Parser for stack files.
    """
    def __init__(self, context: Optional[Dict[str, str]] = None):
        """
        Initializes the parser with an optional environment context for interpolation.

        :param context: Variables for interpolation; defaults to the process environment.
        """
        self.context = dict(context) if context is not None else dict(os.environ)

    def load_env_file(self, env_path: str):
        """
        Merges the variables of a .env file into the interpolation context.
        Variables already in the context win.

        :param env_path: Path to the .env file.
        :raises ConfigError: If the file does not exist.
        """
        if not os.path.exists(env_path):
            raise ConfigError(f"Environment file not found: {env_path}")
        for key, value in dotenv_values(env_path).items():
            if value is not None:
                self.context.setdefault(key, value)

    def parse(self, stack_path: str) -> StackConfig:
        """
        Parses a stack file from a path.

        :param stack_path: Path to the stack file.
        :return: Parsed configuration.
        """
        with open(stack_path, 'r') as f:
            content = f.read()
        return self.parse_from_string(content)

    def parse_from_string(self, content: str) -> StackConfig:
        """
        Parses a stack file from a string.

        :param content: YAML content of the stack file.
        :return: Parsed configuration.
        :raises ConfigError: On undefined variables, invalid YAML or invalid services.
        """
        try:
            content = EnvironmentInterpolator.interpolate(content, self.context)
        except KeyError as e:
            raise ConfigError(e.args[0]) from e

        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML: {e}") from e
        if not data:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError("A stack file must be a mapping with a 'services' key")

        declared = data.get('services') or {}
        if not isinstance(declared, dict):
            raise ConfigError("'services' must be a mapping of service names")

        services = {}
        for name, spec in declared.items():
            services[name] = self._parse_service(name, spec or {})
        logger.debug("Parsed %d service(s)", len(services))

        return StackConfig(services=services)

    def _parse_service(self, name: str, spec: Dict[str, Any]) -> ServiceDefinition:
        """
        Parses a single service definition.

        :param name: The name of the service.
        :param spec: The service mapping from the file.
        :return: A ServiceDefinition instance.
        """
        if not isinstance(spec, dict):
            raise ConfigError(f"Service '{name}' must be a mapping")
        if 'factory' not in spec:
            raise ConfigError(f"Service '{name}' has no factory")
        try:
            return ServiceDefinition(
                name=name,
                factory=spec['factory'],
                args=spec.get('args') or [],
                kwargs=spec.get('kwargs') or {},
                depends_on=spec.get('depends_on'),
            )
        except ValidationError as e:
            raise ConfigError(f"Invalid service '{name}': {e}") from e
