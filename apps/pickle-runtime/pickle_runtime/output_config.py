"""Console output format shared by the reporter and the logging setup."""

import os
import sys
from enum import Enum
from typing import Literal

LogFormat = Literal["json", "console", "plain"]


class OutputFormat(str, Enum):
    """Output format options."""
    AUTO = "auto"
    RICH = "rich"
    PLAIN = "plain"
    JSON = "json"


ENV_VAR_NAME = "PICKLE_OUTPUT_FORMAT"


def get_output_format(cli_override: str | None = None) -> OutputFormat:
    """
    Get the output format with priority: CLI parameter > Environment variable > Default (auto).

    Args:
        cli_override: Optional CLI parameter value that takes precedence

    Returns:
        OutputFormat enum value
    """
    # Priority 1: CLI parameter
    if cli_override:
        try:
            return OutputFormat(cli_override.lower())
        except ValueError:
            pass

    # Priority 2: Environment variable
    env_value = os.environ.get(ENV_VAR_NAME)
    if env_value:
        try:
            return OutputFormat(env_value.lower())
        except ValueError:
            pass

    # Priority 3: Default
    return OutputFormat.AUTO


def log_format_for(output_format: OutputFormat) -> LogFormat:
    """Map an output format onto the structlog renderer to use."""
    if output_format == OutputFormat.JSON:
        return "json"
    if output_format == OutputFormat.PLAIN:
        return "plain"
    return "console"


def use_rich_output(output_format: OutputFormat) -> bool:
    """Decide between rich and plain console output.

    AUTO picks rich only on an interactive terminal outside CI/CD; pipes and
    redirects get plain text.
    """
    if output_format == OutputFormat.RICH:
        return True
    if output_format in (OutputFormat.PLAIN, OutputFormat.JSON):
        return False
    is_terminal = sys.stdout.isatty()
    is_ci = any([
        'CI' in os.environ,
        'GITHUB_ACTIONS' in os.environ,
        'JENKINS_HOME' in os.environ,
        'GITLAB_CI' in os.environ,
        'TRAVIS' in os.environ,
    ])
    return is_terminal and not is_ci
