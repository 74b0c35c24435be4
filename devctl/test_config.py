#!/usr/bin/env python3
"""
Unit tests for the configuration record
"""

import pytest
from pathlib import Path

from devctl.config import (
    ConfigRecord,
    FALLBACK_CONFIG,
    config_lines,
    initialize_config,
    load_config,
)
from devctl.errors import MissingConfigFile, MissingCredential


def write_env(tmp_path: Path, content: str) -> Path:
    path = tmp_path / ".env"
    path.write_text(content, encoding="utf-8")
    return path


class TestLoadConfig:

    def test_missing_file(self, tmp_path):
        with pytest.raises(MissingConfigFile) as excinfo:
            load_config(tmp_path / ".env")
        assert ".env file not found" in str(excinfo.value)
        assert excinfo.value.hint == "Run 'devctl setup' first."

    def test_comments_and_blank_lines_ignored(self, tmp_path):
        path = write_env(tmp_path, "# comment\n\nANTHROPIC_API_KEY=abc\n# WIDTH=1024\nHEIGHT=768\n")

        record = load_config(path)

        assert record.values == {"ANTHROPIC_API_KEY": "abc", "HEIGHT": "768"}
        assert record.path == path

    def test_empty_values_are_unset(self, tmp_path):
        path = write_env(tmp_path, "ANTHROPIC_API_KEY=abc\nAPI_PROVIDER=\nAWS_PROFILE\n")

        record = load_config(path)

        assert "API_PROVIDER" not in record
        assert "AWS_PROFILE" not in record
        assert record.provider == "anthropic"

    def test_no_interpolation(self, tmp_path):
        path = write_env(tmp_path, "ANTHROPIC_API_KEY=sk-${HOME}\n")

        assert load_config(path).get("ANTHROPIC_API_KEY") == "sk-${HOME}"


class TestValidate:

    @pytest.mark.parametrize("content", [
        "WIDTH=1024\n",
        "API_PROVIDER=anthropic\n",
        "ANTHROPIC_API_KEY=\nAPI_PROVIDER=anthropic\n",
    ])
    def test_missing_api_key(self, tmp_path, content):
        record = load_config(write_env(tmp_path, content))

        with pytest.raises(MissingCredential) as excinfo:
            record.validate()
        assert "ANTHROPIC_API_KEY not set in .env" in str(excinfo.value)

    @pytest.mark.parametrize("provider", ["bedrock", "vertex"])
    def test_cloud_provider_without_key(self, tmp_path, provider):
        record = load_config(write_env(tmp_path, f"API_PROVIDER={provider}\n"))

        record.validate()

    def test_unknown_provider_with_key(self, tmp_path):
        record = load_config(write_env(tmp_path, "ANTHROPIC_API_KEY=abc\nAPI_PROVIDER=other\n"))

        record.validate()
        assert record.provider == "other"

    def test_unknown_provider_without_key(self):
        with pytest.raises(MissingCredential):
            ConfigRecord({"API_PROVIDER": "other"}).validate()


class TestEnvironment:

    def test_only_api_key(self):
        record = ConfigRecord({"ANTHROPIC_API_KEY": "abc"})

        assert record.environment() == {"ANTHROPIC_API_KEY": "abc"}
        assert record.provider == "anthropic"

    def test_unset_keys_never_forwarded(self):
        record = ConfigRecord({
            "API_PROVIDER": "bedrock",
            "AWS_REGION": "us-west-2",
            "AWS_SESSION_TOKEN": "",
            "HIDE_WARNING": "true",
        })

        environment = record.environment()

        assert environment == {"API_PROVIDER": "bedrock", "AWS_REGION": "us-west-2"}
        assert all(environment.values())

    def test_vertex_keys_renamed(self):
        record = ConfigRecord({
            "API_PROVIDER": "vertex",
            "VERTEX_REGION": "us-east5",
            "VERTEX_PROJECT_ID": "my-project",
        })

        assert record.environment() == {
            "API_PROVIDER": "vertex",
            "CLOUD_ML_REGION": "us-east5",
            "ANTHROPIC_VERTEX_PROJECT_ID": "my-project",
        }

    def test_full_record_order(self):
        record = ConfigRecord({
            "AWS_SECRET_ACCESS_KEY": "secret",
            "HEIGHT": "768",
            "ANTHROPIC_API_KEY": "abc",
            "WIDTH": "1024",
            "AWS_ACCESS_KEY_ID": "id",
        })

        assert list(record.environment()) == [
            "ANTHROPIC_API_KEY", "WIDTH", "HEIGHT", "AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY",
        ]

    def test_with_overrides(self):
        record = ConfigRecord({"ANTHROPIC_API_KEY": "abc", "WIDTH": "1024", "HEIGHT": "768"})

        overridden = record.with_overrides(WIDTH="1920", HEIGHT=None)

        assert overridden.get("WIDTH") == "1920"
        assert overridden.get("HEIGHT") == "768"
        assert record.get("WIDTH") == "1024"


class TestVolumes:

    project = Path("/work/demo")
    home = Path("/home/dev")

    def test_default_mounts(self):
        volumes = ConfigRecord({"ANTHROPIC_API_KEY": "abc"}).volumes(self.project, self.home)

        assert volumes == {
            "/work/demo/computer_use_demo": {
                'bind': "/home/computeruse/computer_use_demo/", 'mode': 'rw'},
            "/home/dev/.anthropic": {
                'bind': "/home/computeruse/.anthropic", 'mode': 'rw'},
        }

    def test_aws_profile_mount(self):
        volumes = ConfigRecord({"AWS_PROFILE": "dev"}).volumes(self.project, self.home)

        assert volumes["/home/dev/.aws"] == {'bind': "/home/computeruse/.aws", 'mode': 'rw'}
        assert len(volumes) == 3

    def test_aws_keys_without_profile_do_not_mount(self):
        volumes = ConfigRecord({"AWS_ACCESS_KEY_ID": "id"}).volumes(self.project, self.home)

        assert "/home/dev/.aws" not in volumes

    def test_vertex_credentials_mount(self):
        volumes = ConfigRecord({"VERTEX_PROJECT_ID": "p"}).volumes(self.project, self.home)

        credentials = "/home/dev/.config/gcloud/application_default_credentials.json"
        assert volumes[credentials] == {
            'bind': "/home/computeruse/.config/gcloud/application_default_credentials.json",
            'mode': 'rw',
        }


class TestInitialize:

    def test_copies_template(self, tmp_path):
        template = tmp_path / ".env.example"
        template.write_text("ANTHROPIC_API_KEY=from_template\n", encoding="utf-8")

        created = initialize_config(tmp_path / ".env", template)

        assert created is True
        assert (tmp_path / ".env").read_text(encoding="utf-8") == "ANTHROPIC_API_KEY=from_template\n"

    def test_fallback_without_template(self, tmp_path):
        created = initialize_config(tmp_path / ".env", tmp_path / ".env.example")

        assert created is True
        assert (tmp_path / ".env").read_text(encoding="utf-8") == FALLBACK_CONFIG
        record = load_config(tmp_path / ".env")
        assert record.values == {
            "ANTHROPIC_API_KEY": "your_api_key_here",
            "API_PROVIDER": "anthropic",
            "WIDTH": "1024",
            "HEIGHT": "768",
        }

    def test_existing_file_untouched(self, tmp_path):
        path = write_env(tmp_path, "ANTHROPIC_API_KEY=mine\n")

        created = initialize_config(path, tmp_path / ".env.example")

        assert created is False
        assert path.read_text(encoding="utf-8") == "ANTHROPIC_API_KEY=mine\n"


def test_config_lines(tmp_path):
    path = write_env(tmp_path, "# header\n\nANTHROPIC_API_KEY=abc\nWIDTH=1024 # inline\n")

    assert config_lines(path) == ["ANTHROPIC_API_KEY=abc", "WIDTH=1024 # inline"]
