import docker
import subprocess
import logging
import sys
from typing import Dict, List, Optional, Any, TextIO
from pathlib import Path
from docker.models.containers import Container

from .errors import BuildFailure, LaunchFailure, NotFound, ShellFailure


# Container port -> host port, published 1:1
PUBLISHED_PORTS: Dict[str, int] = {
    '5900/tcp': 5900,  # VNC
    '8501/tcp': 8501,  # Streamlit
    '6080/tcp': 6080,  # noVNC desktop view
    '8080/tcp': 8080,  # combined interface
}


class DockerController:
    """
    Docker Container Controller Class
    Used to build the demo image and control the lifecycle of the single named development container
    """

    def __init__(self, container_name: str, image: str, logger: Optional[logging.Logger] = None,
                 output: Optional[TextIO] = None):
        """
        Initialize Docker Controller

        Args:
            container_name: Container name
            image: Docker image tag
            logger: Logger instance, optional
            output: Stream receiving build and log output, defaults to stdout
        """
        self.container_name = container_name
        self.image = image
        self._client: Optional[docker.DockerClient] = None
        self.output = output or sys.stdout
        self.logger = logger or self._setup_logger()

    def _setup_logger(self) -> logging.Logger:
        """Setup logger"""
        logger = logging.getLogger(f"DockerController-{self.container_name}")
        logger.setLevel(logging.INFO)

        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            logger.addHandler(handler)

        return logger

    @property
    def client(self) -> docker.DockerClient:
        # Connecting negotiates the API version with the daemon, so defer it until a command needs Docker
        if self._client is None:
            self._client = docker.from_env()
        return self._client

    @client.setter
    def client(self, client: docker.DockerClient):
        self._client = client

    def get_container(self) -> Container:
        """
        Look up the named container

        Raises:
            NotFound: the container does not exist
        """
        try:
            return self.client.containers.get(self.container_name)
        except docker.errors.NotFound:
            raise NotFound(f"Container {self.container_name} not running.")

    def build_image(self, path: Path) -> None:
        """
        Build the image from a build context, streaming build output

        Args:
            path: Build context directory

        Raises:
            BuildFailure: the build reported an error
        """
        self.logger.info(f"Building image {self.image} from {path}")
        try:
            for chunk in self.client.api.build(path=str(path), tag=self.image, rm=True, decode=True):
                if 'error' in chunk:
                    raise BuildFailure(f"Build failed: {chunk['error'].strip()}")
                if 'stream' in chunk:
                    self.output.write(chunk['stream'])
                    self.output.flush()
        except docker.errors.DockerException as e:
            self.logger.error(f"Failed to build image: {e}")
            raise BuildFailure(f"Build failed: {e}")

        self.logger.info(f"Image {self.image} built successfully")

    def start_container(self,
                        environment: Dict[str, str],
                        volumes: Dict[str, Dict[str, str]],
                        ports: Optional[Dict[str, int]] = None) -> Container:
        """
        Launch the named container detached; it is removed by Docker when it stops.
        An existing container with the same name is left alone and the launch fails.

        Args:
            environment: Environment variables
            volumes: Volume mounting, format: {'host_path': {'bind': 'container_path', 'mode': 'rw'}}
            ports: Port mapping, format: {'container_port/protocol': host_port}

        Raises:
            LaunchFailure: Docker refused to create or start the container
        """
        self.logger.info(f"Starting container {self.container_name}, image: {self.image}")
        self.logger.info(f"Forwarding environment: {', '.join(environment) or '<none>'}")
        try:
            container = self.client.containers.run(
                self.image,
                name=self.container_name,
                environment=environment,
                volumes=volumes,
                ports=ports if ports is not None else PUBLISHED_PORTS,
                detach=True,
                auto_remove=True,
            )
        except docker.errors.DockerException as e:
            self.logger.error(f"Failed to start container: {e}")
            raise LaunchFailure(f"Failed to start container: {e}")

        self.logger.info(f"Container {self.container_name} started successfully")
        return container

    def stop_container(self, timeout: int = 10) -> bool:
        """
        Stop container

        Args:
            timeout: Stop timeout in seconds

        Returns:
            bool: Whether a running container was stopped
        """
        try:
            container = self.get_container()
            self.logger.info(f"Stopping container {self.container_name}")
            container.stop(timeout=timeout)
        except NotFound:
            self.logger.info(f"Container {self.container_name} not found")
            return False
        except docker.errors.DockerException as e:
            self.logger.warning(f"Failed to stop container: {e}")
            return False

        self.logger.info(f"Container {self.container_name} stopped")
        return True

    def remove_container(self, force: bool = False) -> bool:
        """
        Remove container

        Args:
            force: Whether to force removal

        Returns:
            bool: Whether a container was removed
        """
        try:
            self.get_container().remove(force=force)
        except NotFound:
            self.logger.info(f"Container {self.container_name} not found")
            return False
        except docker.errors.DockerException as e:
            # Auto-removed containers may vanish between lookup and removal
            self.logger.warning(f"Failed to remove container {self.container_name}: {e}")
            return False

        self.logger.info(f"Container {self.container_name} removed")
        return True

    def remove_image(self, image: Optional[str] = None) -> bool:
        """
        Remove a local image, the controller's own tag by default

        Returns:
            bool: Whether the image was removed
        """
        image = image or self.image
        try:
            self.client.images.remove(image)
        except docker.errors.ImageNotFound:
            self.logger.info(f"Image {image} not found")
            return False
        except docker.errors.DockerException as e:
            self.logger.warning(f"Failed to remove image {image}: {e}")
            return False

        self.logger.info(f"Image {image} removed")
        return True

    def prune_dangling_images(self) -> bool:
        """
        Prune dangling images left behind by rebuilds

        Returns:
            bool: Whether the prune succeeded
        """
        try:
            result = self.client.images.prune(filters={'dangling': True})
        except docker.errors.DockerException as e:
            self.logger.warning(f"Failed to prune dangling images: {e}")
            return False

        self.logger.info(f"Pruned dangling images, reclaimed {result.get('SpaceReclaimed', 0)} bytes")
        return True

    def prune_system(self) -> bool:
        """
        Prune stopped containers, unused networks, dangling images and the build cache

        Returns:
            bool: Whether every prune step succeeded
        """
        steps = [
            ("containers", lambda: self.client.containers.prune()),
            ("networks", lambda: self.client.networks.prune()),
            ("images", lambda: self.client.images.prune(filters={'dangling': True})),
            ("build cache", lambda: self.client.api.prune_builds()),
        ]
        success = True
        for name, prune in steps:
            try:
                prune()
                self.logger.info(f"Pruned {name}")
            except docker.errors.DockerException as e:
                self.logger.warning(f"Failed to prune {name}: {e}")
                success = False
        return success

    def stream_logs(self) -> None:
        """
        Follow container output until the stream ends or the user interrupts

        Raises:
            NotFound: the container does not exist
        """
        container = self.get_container()
        try:
            for chunk in container.logs(stream=True, follow=True):
                self.output.write(chunk.decode('utf-8', errors='replace'))
                self.output.flush()
        except KeyboardInterrupt:
            self.logger.info("Log stream interrupted")
        except docker.errors.NotFound:
            # Container exited and was auto-removed mid-stream
            self.logger.info(f"Container {self.container_name} went away")

    def open_shell(self, command: str = "/bin/bash") -> int:
        """
        Attach an interactive session to the container.
        The Docker CLI owns the terminal for the session.

        Returns:
            int: Exit code of the session

        Raises:
            NotFound: the container does not exist
            ShellFailure: the Docker CLI could not be executed
        """
        container = self.get_container()
        if container.status != 'running':
            raise NotFound(f"Container {self.container_name} not running.")

        self.logger.info(f"Executing command in container: {command}")
        try:
            return subprocess.call(["docker", "exec", "-it", self.container_name, command])
        except OSError as e:
            self.logger.error(f"Failed to run docker exec: {e}")
            raise ShellFailure(f"Cannot run the Docker CLI: {e}")

    def get_container_status(self) -> List[Dict[str, Any]]:
        """
        Get status of containers matching the name

        Returns:
            List of {'name', 'status', 'ports'} dictionaries
        """
        containers = self.client.containers.list(all=True, filters={'name': self.container_name})
        return [
            {
                'name': container.name,
                'status': container.status,
                'ports': format_ports(container.ports),
            }
            for container in containers
        ]

    def list_images(self) -> List[Dict[str, Any]]:
        """
        List local images matching the image tag

        Returns:
            List of {'repository', 'tag', 'size', 'created'} dictionaries
        """
        images = []
        for image in self.client.images.list(name=self.image):
            for repo_tag in image.tags or ['<none>:<none>']:
                repository, _, tag = repo_tag.rpartition(':')
                images.append({
                    'repository': repository,
                    'tag': tag,
                    'size': format_size(image.attrs.get('Size', 0)),
                    'created': image.attrs.get('Created', ''),
                })
        return images

    def close(self):
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self):
        """Context manager entry"""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit"""
        self.close()


def format_ports(ports: Optional[Dict[str, Any]]) -> str:
    """Render a container port map the way `docker ps` does, e.g. 0.0.0.0:8080->8080/tcp"""
    rendered = []
    for container_port, bindings in sorted((ports or {}).items()):
        if not bindings:
            rendered.append(container_port)
            continue
        for binding in bindings:
            rendered.append(f"{binding.get('HostIp', '')}:{binding.get('HostPort', '')}->{container_port}")
    return ", ".join(rendered)


def format_size(size: int) -> str:
    for unit in ('B', 'kB', 'MB', 'GB'):
        # 999.5 and up would round to 1e+03 under three significant digits
        if size < 999.5:
            return f"{size:.3g}{unit}"
        size /= 1000
    return f"{size:.3g}TB"
