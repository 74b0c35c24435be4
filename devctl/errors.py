"""
Controller error taxonomy

Every error carries a short message and a hint naming the next command to run.
"""

from typing import Optional


class ControllerError(Exception):
    """Base class for failures reported to the user"""

    hint: Optional[str] = None

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if hint is not None:
            self.hint = hint


class MissingConfigFile(ControllerError):
    hint = "Run 'devctl setup' first."


class MissingCredential(ControllerError):
    hint = "Please edit your env file and add your API key."


class SetupFailure(ControllerError):
    hint = "Check the output of the setup script above."


class BuildFailure(ControllerError):
    hint = "Fix the build error above and run 'devctl build' again."


class LaunchFailure(ControllerError):
    hint = "Try 'devctl build' first."


class ShellFailure(ControllerError):
    hint = "Install the Docker CLI and make sure docker is on PATH."


class NotFound(ControllerError):
    hint = "Use 'devctl dev' to start."


class UserAborted(ControllerError):
    hint = None
