"""Discovery engine adapter: OWASP ZAP in an ephemeral Docker container.

Three pieces:

- ``DockerRuntime`` probes the host and launches containers
- ``EngineHandle`` is one container's lifetime; ``release()`` removes it and is
  safe to call more than once
- ``ZapClient`` talks to the ZAP JSON API over httpx
"""

import asyncio
import logging
import socket
import time

import httpx

from siteflow.config import settings
from siteflow.core.exceptions import ScanFailure
from siteflow.core.metrics import engine_instances_active

logger = logging.getLogger(__name__)

# Port ZAP listens on inside the container
_CONTAINER_PORT = 8090


def _free_port() -> int:
    """Ask the OS for an unused local TCP port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class DockerRuntime:
    """Runs docker CLI commands as subprocesses."""

    def __init__(self, binary: str | None = None, image: str | None = None):
        self.binary = binary or settings.DOCKER_BINARY
        self.image = image or settings.ZAP_IMAGE

    async def _run(self, *args: str) -> tuple[int, str, str]:
        proc = await asyncio.create_subprocess_exec(
            self.binary,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await proc.communicate()
        return (
            proc.returncode,
            stdout.decode("utf-8", errors="replace").strip(),
            stderr.decode("utf-8", errors="replace").strip(),
        )

    async def is_available(self) -> bool:
        """True if the docker daemon answers ``docker info``."""
        try:
            code, _, stderr = await self._run("info")
        except (FileNotFoundError, PermissionError) as e:
            logger.warning(f"Docker binary not usable: {e}")
            return False
        if code != 0:
            logger.warning(f"docker info exited with {code}: {stderr[:200]}")
            return False
        return True

    def create_handle(
        self,
        port: int | None = None,
        respect_robots: bool = True,
        max_depth: int = 3,
    ) -> "EngineHandle":
        port = port or settings.ZAP_PORT or _free_port()
        name = f"zap-{int(time.time() * 1000)}-{port}"
        return EngineHandle(
            runtime=self,
            name=name,
            port=port,
            respect_robots=respect_robots,
            max_depth=max_depth,
        )

    def run_args(self, handle: "EngineHandle") -> list[str]:
        return [
            "run", "-d",
            "--name", handle.name,
            "-p", f"{handle.port}:{_CONTAINER_PORT}",
            "-u", "zap",
            self.image,
            "zap.sh", "-daemon",
            "-host", "0.0.0.0",
            "-port", str(_CONTAINER_PORT),
            "-config", "api.disablekey=true",
            "-config", f"spider.parseRobotsTxt={str(handle.respect_robots).lower()}",
            "-config", f"spider.maxDepth={handle.max_depth}",
        ]


class EngineHandle:
    """One ephemeral engine container, from ``start()`` to ``release()``."""

    def __init__(
        self,
        runtime: DockerRuntime,
        name: str,
        port: int,
        respect_robots: bool,
        max_depth: int,
        host: str | None = None,
    ):
        self.runtime = runtime
        self.name = name
        self.port = port
        self.respect_robots = respect_robots
        self.max_depth = max_depth
        self.host = host or settings.ZAP_HOST
        self._started = False
        self._released = False

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def released(self) -> bool:
        return self._released

    async def start(self):
        code, stdout, stderr = await self.runtime._run(*self.runtime.run_args(self))
        if code != 0:
            raise ScanFailure(f"docker run failed ({code}): {stderr[:200]}")
        self._started = True
        engine_instances_active.inc()
        logger.info(f"Engine container {self.name} started ({stdout[:12]}) on port {self.port}")

    async def release(self):
        """Force-remove the container. Errors are logged, never raised."""
        if self._released:
            return
        self._released = True
        try:
            code, _, stderr = await self.runtime._run("rm", "-f", self.name)
            if code != 0:
                logger.warning(f"docker rm -f {self.name} exited with {code}: {stderr[:200]}")
            else:
                logger.info(f"Engine container {self.name} removed")
        except Exception as e:
            logger.warning(f"Failed to remove engine container {self.name}: {e}")
        finally:
            if self._started:
                engine_instances_active.dec()


class ZapClient:
    """Minimal async client for the ZAP JSON API (API key disabled)."""

    def __init__(self, base_url: str, timeout: float | None = None, client: httpx.AsyncClient | None = None):
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout or settings.ZAP_REQUEST_TIMEOUT)

    async def __aenter__(self) -> "ZapClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    async def _get(self, path: str, params: dict | None = None) -> dict:
        response = await self._client.get(f"{self.base_url}{path}", params=params)
        response.raise_for_status()
        return response.json()

    async def version(self) -> str:
        data = await self._get("/JSON/core/view/version/")
        return str(data.get("version", ""))

    async def is_ready(self) -> bool:
        await self.version()
        return True

    async def add_cookie_rule(self, cookie_header: str):
        """Replace the Cookie header of every request ZAP sends."""
        await self._get(
            "/JSON/replacer/action/addRule/",
            params={
                "description": "authcookie",
                "enabled": "true",
                "matchType": "REQ_HEADER",
                "matchRegex": "false",
                "matchString": "Cookie",
                "replacement": cookie_header,
            },
        )

    async def start_spider(self, url: str, max_depth: int) -> str:
        data = await self._get(
            "/JSON/spider/action/scan/",
            params={"url": url, "maxDepth": max_depth, "subtreeOnly": "true"},
        )
        if "scan" not in data:
            raise ScanFailure(f"Spider scan did not return a scan id: {data}", url=url)
        return str(data["scan"])

    async def spider_progress(self, scan_id: str) -> int:
        data = await self._get("/JSON/spider/view/status/", params={"scanId": scan_id})
        try:
            return int(data.get("status", 0))
        except (TypeError, ValueError):
            return 0

    async def start_ajax_spider(self, url: str):
        await self._get("/JSON/ajaxSpider/action/scan/", params={"url": url})

    async def ajax_spider_status(self) -> str:
        data = await self._get("/JSON/ajaxSpider/view/status/")
        return str(data.get("status", ""))

    async def urls(self) -> list[str]:
        data = await self._get("/JSON/core/view/urls/")
        return list(data.get("urls") or [])

    async def spider_results(self, scan_id: str) -> list[str]:
        data = await self._get("/JSON/spider/view/results/", params={"scanId": scan_id})
        return list(data.get("results") or [])
