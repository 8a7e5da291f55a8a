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
Utilities for substituting environment variables into stack files.
"""
import re
from typing import Mapping

# ${VAR}, ${VAR:-default}, ${VAR:+value}, or an escaped "$$"
_PATTERN = re.compile(r'\$\$|\$\{([^}:]+)(?::([-+])([^}]*))?\}')


class EnvironmentInterpolator:
    """
    Substitutes ${VAR}, ${VAR:-default} and ${VAR:+value} in a string.
    "$$" produces a literal "$".
    """
    @staticmethod
    def interpolate(template: str, context: Mapping[str, str]) -> str:
        """
        :param template: Text containing placeholders.
        :param context: Variables available for substitution.
        :return: The text with every placeholder replaced.
        :raises KeyError: If a plain ${VAR} is not defined in the context.
        """
        def replace(match):
            if match.group(0) == '$$':
                return '$'
            name, modifier, alternative = match.group(1).strip(), match.group(2), match.group(3)
            value = context.get(name)
            if modifier == '-':
                return value if value else alternative
            if modifier == '+':
                return alternative if value else ''
            if value is None:
                raise KeyError(f"Variable {name} not found in context")
            return value

        return _PATTERN.sub(replace, template)
