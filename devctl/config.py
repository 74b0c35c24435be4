"""
Configuration Record
Loads the KEY=VALUE env file and derives the container launch settings from it
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from dotenv import dotenv_values

from .errors import MissingConfigFile, MissingCredential


DEFAULT_PROVIDER = "anthropic"
PROVIDERS = ("anthropic", "bedrock", "vertex")
# Providers that authenticate with cloud credentials instead of an API key
CLOUD_PROVIDERS = ("bedrock", "vertex")

CONTAINER_HOME = "/home/computeruse"

# (config key, container environment key), in launch order
FORWARDED_VARIABLES: List[Tuple[str, str]] = [
    ("ANTHROPIC_API_KEY", "ANTHROPIC_API_KEY"),
    ("API_PROVIDER", "API_PROVIDER"),
    ("WIDTH", "WIDTH"),
    ("HEIGHT", "HEIGHT"),
    ("AWS_PROFILE", "AWS_PROFILE"),
    ("AWS_REGION", "AWS_REGION"),
    ("AWS_ACCESS_KEY_ID", "AWS_ACCESS_KEY_ID"),
    ("AWS_SECRET_ACCESS_KEY", "AWS_SECRET_ACCESS_KEY"),
    ("AWS_SESSION_TOKEN", "AWS_SESSION_TOKEN"),
    ("VERTEX_REGION", "CLOUD_ML_REGION"),
    ("VERTEX_PROJECT_ID", "ANTHROPIC_VERTEX_PROJECT_ID"),
]

GCLOUD_CREDENTIALS = ".config/gcloud/application_default_credentials.json"

FALLBACK_CONFIG = (
    "# Copy this file to .env and add your API key\n"
    "ANTHROPIC_API_KEY=your_api_key_here\n"
    "API_PROVIDER=anthropic\n"
    "WIDTH=1024\n"
    "HEIGHT=768\n"
)

logger = logging.getLogger(__name__)


class ConfigRecord:
    """
    Mapping of configuration keys to values, as read from one env file.
    Keys without a value, or with an empty value, count as unset.
    """

    def __init__(self, values: Optional[Dict[str, Optional[str]]] = None,
                 path: Optional[Path] = None):
        self.path = path
        self.values: Dict[str, str] = {
            key: value for key, value in (values or {}).items() if value
        }

    def get(self, key: str) -> Optional[str]:
        return self.values.get(key)

    def __contains__(self, key: str) -> bool:
        return key in self.values

    @property
    def provider(self) -> str:
        return self.get("API_PROVIDER") or DEFAULT_PROVIDER

    def with_overrides(self, **overrides: Optional[str]) -> "ConfigRecord":
        """Return a copy with the given keys replaced; None values are ignored"""
        values = dict(self.values)
        values.update({key: value for key, value in overrides.items() if value is not None})
        return ConfigRecord(values, path=self.path)

    def validate(self) -> None:
        """
        Check the credentials needed to launch

        Raises:
            MissingCredential: no API key and the provider is not a cloud provider
        """
        provider = self.provider
        if provider not in PROVIDERS:
            logger.warning(f"Unknown API_PROVIDER '{provider}', expected one of {', '.join(PROVIDERS)}")

        if "ANTHROPIC_API_KEY" not in self and provider not in CLOUD_PROVIDERS:
            name = self.path.name if self.path else "the env file"
            raise MissingCredential(
                f"ANTHROPIC_API_KEY not set in {name}",
                hint=f"Please edit {name} and add your API key.",
            )

    def environment(self) -> Dict[str, str]:
        """Container environment entries for every forwarded key that is set"""
        environment = {}
        for key, container_key in FORWARDED_VARIABLES:
            value = self.get(key)
            if value:
                environment[container_key] = value
        return environment

    def volumes(self, project_dir: Path, home: Path) -> Dict[str, Dict[str, str]]:
        """
        Volume mounts for the launch, format: {'host_path': {'bind': 'container_path', 'mode': 'rw'}}
        """
        volumes = {
            str(project_dir / "computer_use_demo"): {
                'bind': f"{CONTAINER_HOME}/computer_use_demo/", 'mode': 'rw'},
            str(home / ".anthropic"): {
                'bind': f"{CONTAINER_HOME}/.anthropic", 'mode': 'rw'},
        }
        if "AWS_PROFILE" in self:
            volumes[str(home / ".aws")] = {'bind': f"{CONTAINER_HOME}/.aws", 'mode': 'rw'}
        if "VERTEX_PROJECT_ID" in self:
            volumes[str(home / GCLOUD_CREDENTIALS)] = {
                'bind': f"{CONTAINER_HOME}/{GCLOUD_CREDENTIALS}", 'mode': 'rw'}
        return volumes


def load_config(path: Union[str, Path]) -> ConfigRecord:
    """
    Read the env file

    Raises:
        MissingConfigFile: the file does not exist
    """
    path = Path(path)
    if not path.is_file():
        raise MissingConfigFile(f"{path.name} file not found.")
    return ConfigRecord(dotenv_values(path, interpolate=False), path=path)


def config_lines(path: Union[str, Path]) -> List[str]:
    """Non-comment, non-blank lines of the env file, verbatim"""
    lines = Path(path).read_text(encoding="utf-8").splitlines()
    return [line for line in lines if line and not line.startswith("#")]


def initialize_config(path: Union[str, Path], template: Union[str, Path]) -> bool:
    """
    Create the env file from the template, or from a minimal fallback record

    Returns:
        bool: Whether a file was created
    """
    path = Path(path)
    if path.exists():
        return False

    template = Path(template)
    try:
        content = template.read_text(encoding="utf-8")
    except OSError:
        logger.info(f"Template {template} not readable, writing fallback config")
        content = FALLBACK_CONFIG
    path.write_text(content, encoding="utf-8")
    return True
