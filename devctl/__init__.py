"""
Dev Controller Module
Provides lifecycle management for the computer-use demo development container
"""

from .config import ConfigRecord, load_config
from .docker_controller import DockerController
from .errors import (
    ControllerError,
    MissingConfigFile,
    MissingCredential,
    SetupFailure,
    BuildFailure,
    LaunchFailure,
    ShellFailure,
    NotFound,
    UserAborted,
)

__version__ = "1.0.0"
__all__ = [
    "ConfigRecord",
    "load_config",
    "DockerController",
    "ControllerError",
    "MissingConfigFile",
    "MissingCredential",
    "SetupFailure",
    "BuildFailure",
    "LaunchFailure",
    "ShellFailure",
    "NotFound",
    "UserAborted",
]
