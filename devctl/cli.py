#!/usr/bin/env python3
"""
Computer Use Demo - development environment controller
Builds the demo image and manages the lifecycle of the development container
"""

import sys
import argparse
import docker
import logging
import shutil
import subprocess
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .config import ConfigRecord, config_lines, initialize_config, load_config
from .docker_controller import DockerController, PUBLISHED_PORTS
from .errors import ControllerError, NotFound, SetupFailure, UserAborted


DOCKER_IMAGE = "computer-use-demo:local"
REMOTE_IMAGE = "ghcr.io/anthropics/anthropic-quickstarts:computer-use-demo-latest"
CONTAINER_NAME = "computer-use-demo-dev"
ENV_FILE = ".env"
ENV_TEMPLATE = ".env.example"
SETUP_SCRIPT = "./setup.sh"

# Subcommand -> (WIDTH, HEIGHT)
SCREEN_PRESETS = {
    "dev-large": ("1920", "1080"),
    "dev-small": ("800", "600"),
}

CONFIRM_ANSWERS = ("y",)

HELP_TEXT = """Computer Use Demo - Development Commands

Setup & Development:
  devctl setup     - Create the env file and run the setup script
  devctl dev       - Start development environment with auto-sync
  devctl build     - Build Docker image locally

Management:
  devctl stop      - Stop the development container
  devctl restart   - Restart the development container
  devctl logs      - Follow container logs
  devctl shell     - Get shell access to running container

Cleanup:
  devctl clean     - Stop container and remove local image
  devctl clean-all - Deep clean: remove everything (with confirmation)

Utilities:
  devctl status    - Show container status
  devctl config    - Show current configuration"""


def _env_path(args) -> Path:
    return args.project_dir / args.env_file


def _controller(args) -> DockerController:
    controller = DockerController(args.container_name, args.image)
    controller.logger.setLevel(logging.INFO if args.verbose else logging.WARNING)
    return controller


def confirm(prompt: str) -> bool:
    """Read one line from stdin and accept only an exact confirmation answer"""
    try:
        answer = input(prompt)
    except EOFError:
        return False
    return answer in CONFIRM_ANSWERS


def cmd_setup(args) -> int:
    print("🔧 Setting up development environment...")
    env_path = _env_path(args)
    if initialize_config(env_path, args.project_dir / ENV_TEMPLATE):
        print(f"📝 Created sample {args.env_file} file")
        print(f"⚠️  Please edit {args.env_file} and add your API key")

    script = args.project_dir / SETUP_SCRIPT
    if script.is_file():
        print("🐍 Running setup script...")
        try:
            returncode = subprocess.call([str(script)], cwd=args.project_dir)
        except OSError as e:
            raise SetupFailure(f"Cannot run {SETUP_SCRIPT}: {e}")
        if returncode != 0:
            raise SetupFailure(f"Setup script exited with code {returncode}")
    else:
        print(f"⚠️  {SETUP_SCRIPT} not found, skipping")

    print("✅ Setup complete!")
    return 0


def cmd_build(args) -> int:
    print("🐳 Building Docker image...")
    with _controller(args) as controller:
        controller.build_image(args.project_dir)
    print("✅ Build complete!")
    return 0


def _start(args, width: Optional[str] = None, height: Optional[str] = None) -> int:
    record: ConfigRecord = load_config(_env_path(args))
    record.validate()
    record = record.with_overrides(WIDTH=width, HEIGHT=height)

    print("🚀 Starting development environment...")
    print("📁 Auto-sync enabled for computer_use_demo/ directory")
    print("")
    print("Access points:")
    print("  - Combined interface: http://localhost:8080")
    print("  - Streamlit only:     http://localhost:8501")
    print("  - Desktop view:       http://localhost:6080/vnc.html")
    print("  - VNC direct:         vnc://localhost:5900")
    print("")

    with _controller(args) as controller:
        controller.start_container(
            environment=record.environment(),
            volumes=record.volumes(args.project_dir, Path.home()),
            ports=PUBLISHED_PORTS,
        )
    print("✅ Development environment started!")
    print("📊 Use 'devctl logs' to follow the logs")
    return 0


def cmd_dev(args) -> int:
    width = getattr(args, "width", None)
    height = getattr(args, "height", None)
    if args.command in SCREEN_PRESETS:
        width, height = SCREEN_PRESETS[args.command]
    return _start(args, width=width, height=height)


def cmd_stop(args) -> int:
    print("🛑 Stopping development container...")
    with _controller(args) as controller:
        if not controller.stop_container():
            print("Container not running")
    print("✅ Container stopped")
    return 0


def cmd_restart(args) -> int:
    try:
        cmd_stop(args)
    except Exception as e:
        logging.getLogger(__name__).warning(f"Stop failed, starting anyway: {e}")
    return cmd_dev(args)


def cmd_logs(args) -> int:
    print("📋 Following container logs (Ctrl+C to exit)...")
    with _controller(args) as controller:
        try:
            controller.stream_logs()
        except NotFound as e:
            print(f"❌ {e.message} {e.hint}")
    return 0


def cmd_shell(args) -> int:
    print("🐚 Opening shell in container...")
    with _controller(args) as controller:
        try:
            return controller.open_shell()
        except NotFound as e:
            print(f"❌ {e.message} {e.hint}")
    return 0


def cmd_status(args) -> int:
    with _controller(args) as controller:
        print("📊 Container Status:")
        try:
            containers = controller.get_container_status()
        except docker.errors.DockerException as e:
            controller.logger.warning(f"Failed to list containers: {e}")
            containers = []
        if containers:
            print(f"{'NAMES':<28}{'STATUS':<12}PORTS")
            for container in containers:
                print(f"{container['name']:<28}{container['status']:<12}{container['ports']}")
        else:
            print("No containers found")

        print("")
        print("🖼️  Docker Images:")
        try:
            images = controller.list_images()
        except docker.errors.DockerException as e:
            controller.logger.warning(f"Failed to list images: {e}")
            images = []
        if images:
            print(f"{'REPOSITORY':<24}{'TAG':<10}{'SIZE':<10}CREATED AT")
            for image in images:
                print(f"{image['repository']:<24}{image['tag']:<10}{image['size']:<10}{image['created']}")
        else:
            print("No local image found")
    return 0


def cmd_config(args) -> int:
    env_path = _env_path(args)
    print("⚙️  Current Configuration:")
    print(f"  Docker Image: {args.image}")
    print(f"  Container:    {args.container_name}")
    print(f"  Config File:  {args.env_file}")
    if env_path.is_file():
        print("")
        print("📝 Environment Variables:")
        for line in config_lines(env_path):
            print(f"  {line}")
    else:
        print(f"  ❌ No {args.env_file} file found")
    return 0


def cmd_clean(args) -> int:
    print("🧹 Cleaning up development environment...")
    with _controller(args) as controller:
        print("  - Stopping container...")
        controller.stop_container()
        print("  - Removing container...")
        controller.remove_container()
        print("  - Removing local image...")
        controller.remove_image()
        print("  - Cleaning up dangling images...")
        controller.prune_dangling_images()
    print("✅ Basic cleanup complete!")
    return 0


def _remove_path(path: Path) -> None:
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logging.getLogger(__name__).warning(f"Failed to remove {path}: {e}")


def cmd_clean_all(args) -> int:
    print("🚨 DEEP CLEAN WARNING")
    print("This will remove:")
    print("  - All project containers and images")
    print("  - Docker build cache")
    print("  - Python virtual environment (.venv/)")
    print("  - Pre-commit hooks")
    print("")
    print("This will NOT remove:")
    print(f"  - Your {args.env_file} configuration")
    print("  - Your ~/.anthropic settings")
    print("")
    if not args.yes and not confirm("Continue with deep clean? [y/N] "):
        raise UserAborted("Cancelled.")

    print("")
    print("🧹 Performing deep cleanup...")
    with _controller(args) as controller:
        print("  - Stopping and removing containers...")
        controller.stop_container()
        controller.remove_container()
        print("  - Removing images...")
        controller.remove_image()
        controller.remove_image(REMOTE_IMAGE)
        print("  - Cleaning Docker cache...")
        controller.prune_system()
    print("  - Removing Python virtual environment...")
    _remove_path(args.project_dir / ".venv")
    print("  - Removing pre-commit hooks...")
    _remove_path(args.project_dir / ".git" / "hooks" / "pre-commit")
    print("✅ Deep cleanup complete!")
    print("💡 Run 'devctl setup' to reinitialize the development environment")
    return 0


def cmd_rebuild(args) -> int:
    cmd_clean(args)
    return cmd_build(args)


COMMANDS: Dict[str, Callable] = {
    "setup": cmd_setup,
    "build": cmd_build,
    "dev": cmd_dev,
    "dev-large": cmd_dev,
    "dev-small": cmd_dev,
    "stop": cmd_stop,
    "restart": cmd_restart,
    "logs": cmd_logs,
    "shell": cmd_shell,
    "status": cmd_status,
    "config": cmd_config,
    "clean": cmd_clean,
    "clean-all": cmd_clean_all,
    "rebuild": cmd_rebuild,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="devctl",
        description="Computer Use Demo development environment controller",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=HELP_TEXT,
    )
    parser.add_argument("--env-file", default=ENV_FILE,
                        help=f"Config file, relative to the project directory (default: {ENV_FILE})")
    parser.add_argument("--project-dir", type=lambda p: Path(p).resolve(), default=Path.cwd(),
                        help="Project directory holding the Dockerfile and sources (default: cwd)")
    parser.add_argument("--image", default=DOCKER_IMAGE,
                        help=f"Local image tag (default: {DOCKER_IMAGE})")
    parser.add_argument("--container-name", default=CONTAINER_NAME,
                        help=f"Development container name (default: {CONTAINER_NAME})")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log Docker operations")

    subparsers = parser.add_subparsers(dest="command", metavar="command")
    subparsers.add_parser("setup", help="Create the env file and run the setup script")
    subparsers.add_parser("build", help="Build Docker image locally")
    for name in ("dev", "restart"):
        sub = subparsers.add_parser(name, help="Start development environment" if name == "dev"
                                    else "Restart the development container")
        sub.add_argument("--width", help="Override WIDTH from the config file")
        sub.add_argument("--height", help="Override HEIGHT from the config file")
    subparsers.add_parser("dev-large", help="Start with a 1920x1080 screen")
    subparsers.add_parser("dev-small", help="Start with an 800x600 screen")
    subparsers.add_parser("stop", help="Stop the development container")
    subparsers.add_parser("logs", help="Follow container logs")
    subparsers.add_parser("shell", help="Get shell access to running container")
    subparsers.add_parser("status", help="Show container status")
    subparsers.add_parser("config", help="Show current configuration")
    subparsers.add_parser("clean", help="Stop container and remove local image")
    clean_all = subparsers.add_parser("clean-all", help="Deep clean: remove everything (with confirmation)")
    clean_all.add_argument("-y", "--yes", action="store_true", help="Skip the confirmation prompt")
    subparsers.add_parser("rebuild", help="Clean and build")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main function"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        print(HELP_TEXT)
        return 0

    try:
        return COMMANDS[args.command](args)
    except ControllerError as e:
        print(f"❌ {e.message}")
        if e.hint:
            print(f"   {e.hint}")
        return 1
    except docker.errors.DockerException as e:
        print(f"❌ Docker not available: {e}")
        return 1


if __name__ == "__main__":
    exit_code = main()
    sys.exit(exit_code)
