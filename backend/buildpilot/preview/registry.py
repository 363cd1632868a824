"""
Preview Process Registry

Tracks per-project preview work: static bundles, bundle builds, Expo web
exports and Next.js dev servers. Slow work (npm install, builds, dev server
start-up) runs as a background task with bounded attempts; callers only read
the resulting status:

    loading -> running | error

The build orchestrator never talks to this registry.
"""
import asyncio
import contextlib
import json
import logging
import os
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional

import httpx

from ..config import Settings, settings as default_settings
from ..sandbox import SandboxFileStore
from ..schemas.preview import PreviewStatus
from ..tracer import trace_step

logger = logging.getLogger(__name__)

PLATFORMS = ("web", "ios", "android", "ios_android")

# Searched in order; the first existing file means a servable static preview
STATIC_INDEX_CANDIDATES = (
    "index.html",
    "apps/web/dist/index.html",
    "dist/index.html",
    "frontend/dist/index.html",
)
BUNDLE_ROOTS = ("apps/web", ".", "frontend")
EXPO_INDEX_CANDIDATES = ("dist/index.html", "web-build/index.html")
EXPO_SCRIPTS = ("export:web", "build:web", "export")

PROBE_INTERVAL = 0.25
STOP_GRACE = 5.0


def preview_port(project_id: str, base: int = 4300, span: int = 700) -> int:
    """Stable per-project port in [base, base + span)."""
    return base + zlib.crc32(project_id.encode("utf-8")) % max(span, 1)


def read_package_json(directory: Path) -> Optional[dict]:
    try:
        data = json.loads((directory / "package.json").read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def _dependencies(pkg: dict) -> dict:
    deps = {}
    deps.update(pkg.get("dependencies") or {})
    deps.update(pkg.get("devDependencies") or {})
    return deps


def find_static_index(root: Path) -> Optional[Path]:
    for candidate in STATIC_INDEX_CANDIDATES:
        path = root / candidate
        if path.is_file():
            return path
    return None


def is_nextjs_project(root: Path) -> bool:
    pkg = read_package_json(root)
    if pkg is None:
        return False
    return isinstance(_dependencies(pkg).get("next"), str) or (root / "next.config.js").is_file()


def find_bundle_roots(root: Path) -> List[Path]:
    """Directories with a package.json build script and no dist output yet."""
    found = []
    for rel in BUNDLE_ROOTS:
        directory = (root / rel).resolve()
        pkg = read_package_json(directory)
        if pkg is None or not isinstance((pkg.get("scripts") or {}).get("build"), str):
            continue
        if (directory / "dist" / "index.html").is_file():
            continue
        found.append(directory)
    return found


def looks_like_expo(directory: Path) -> bool:
    pkg = read_package_json(directory)
    if pkg is None:
        return False
    deps = _dependencies(pkg)
    has_runtime = isinstance(deps.get("expo"), str) or isinstance(deps.get("react-native"), str)
    has_config = any(
        (directory / name).is_file() for name in ("app.json", "app.config.js", "app.config.ts")
    )
    return has_runtime and has_config


def find_expo_root(root: Path) -> Optional[Path]:
    candidates = [root / "apps" / "mobile", root / "apps" / "native", root]
    if root.is_dir():
        candidates.extend(sorted(p for p in root.iterdir() if p.is_dir()))
    for candidate in candidates:
        if looks_like_expo(candidate):
            return candidate
    return None


def find_expo_index(expo_root: Path) -> Optional[Path]:
    for candidate in EXPO_INDEX_CANDIDATES:
        path = expo_root / candidate
        if path.is_file():
            return path
    return None


@dataclass
class PreviewEntry:
    """Registry slot for one project's preview."""
    state: str = "loading"
    message: Optional[str] = None
    mode: Optional[str] = None
    port: Optional[int] = None
    direct_url: Optional[str] = None
    attempts: int = 0
    task: Optional[asyncio.Task] = None
    process: Optional[asyncio.subprocess.Process] = None

    def to_status(self) -> PreviewStatus:
        return PreviewStatus(
            state=self.state,
            message=self.message,
            mode=self.mode,
            port=self.port,
            direct_url=self.direct_url,
        )


class PreviewRegistry:
    """
    Concurrency-safe map of project id -> preview entry.

    Lifecycle: status() / ensure_running() start background work when needed;
    stop() tears down a project's task and process; stop_all() runs at shutdown.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        sandbox: Optional[SandboxFileStore] = None,
    ):
        self.settings = settings or default_settings
        self.sandbox = sandbox or SandboxFileStore(self.settings)
        self._entries: Dict[str, PreviewEntry] = {}
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def status(
        self,
        project_id: str,
        build_info: Optional[dict],
        built: bool,
        platform: Optional[str] = None,
    ) -> PreviewStatus:
        """
        Preview status for a project.

        `platform` may ask for a specific framing; otherwise the project's
        build platform is used, defaulting to web.
        """
        if not built:
            return PreviewStatus(state="loading", message="Project not built yet")

        info = build_info or {}
        requested = (platform or "").strip().lower()
        target = requested if requested in PLATFORMS else (info.get("platform") or "web")

        if target == "web":
            return await self._web_status(project_id)
        return await self._mobile_status(project_id, info.get("framework") or "")

    async def ensure_running(self, project_id: str) -> PreviewStatus:
        """Start (or report) the Next.js dev server for a project."""
        root = self.sandbox.project_root(project_id)
        port = preview_port(
            project_id,
            self.settings.preview_base_port,
            self.settings.preview_port_span,
        )
        direct_url = f"http://127.0.0.1:{port}"

        async with self._lock:
            entry = self._entries.get(project_id)
            if entry is not None and entry.mode == "next-dev" and not self._process_exited(entry):
                return entry.to_status()

        # Already served by a process we don't track (e.g. after a reload)
        if await self._check_ready(direct_url, timeout=0.6):
            return await self._set(
                project_id,
                PreviewEntry(state="running", mode="next-dev", port=port, direct_url=direct_url),
            )

        return await self._start(
            project_id,
            PreviewEntry(
                state="loading",
                message="Starting Next.js preview",
                mode="next-dev",
                port=port,
                direct_url=direct_url,
            ),
            lambda entry: self._start_next_dev(root, entry),
            failure_message="Next.js preview failed to start.",
        )

    async def stop(self, project_id: str) -> bool:
        """Cancel background work and terminate the dev server, if any."""
        async with self._lock:
            entry = self._entries.pop(project_id, None)
        if entry is None:
            return False

        if entry.task is not None and not entry.task.done():
            entry.task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await entry.task
        await self._terminate(entry.process)
        logger.info(f"Stopped preview for project {project_id}")
        return True

    async def stop_all(self) -> None:
        for project_id in list(self._entries):
            await self.stop(project_id)

    def get(self, project_id: str) -> Optional[PreviewEntry]:
        return self._entries.get(project_id)

    # ------------------------------------------------------------------
    # Platform branches
    # ------------------------------------------------------------------

    async def _web_status(self, project_id: str) -> PreviewStatus:
        root = self.sandbox.project_root(project_id)

        if await asyncio.to_thread(find_static_index, root):
            return PreviewStatus(state="running", mode="static")

        bundle_roots = await asyncio.to_thread(find_bundle_roots, root)
        if bundle_roots:
            return await self._start(
                project_id,
                PreviewEntry(state="loading", message="Building preview bundle", mode="static"),
                lambda entry: self._build_bundles(root, bundle_roots),
                failure_message="Web preview build failed.",
            )

        if await asyncio.to_thread(is_nextjs_project, root):
            return await self.ensure_running(project_id)

        return PreviewStatus(state="error", message="Web preview not found (preview output missing).")

    async def _mobile_status(self, project_id: str, framework: str) -> PreviewStatus:
        if framework != "shared_mobile":
            return PreviewStatus(
                state="error",
                message="Mobile preview is only supported for Expo/shared_mobile projects.",
            )

        root = self.sandbox.project_root(project_id)
        expo_root = await asyncio.to_thread(find_expo_root, root)
        if expo_root is None:
            return PreviewStatus(state="error", message="Could not locate an Expo project in the sandbox.")

        if await asyncio.to_thread(find_expo_index, expo_root):
            return PreviewStatus(state="running", mode="expo-web")

        return await self._start(
            project_id,
            PreviewEntry(state="loading", message="Exporting Expo web preview", mode="expo-web"),
            lambda entry: self._export_expo(expo_root),
            failure_message="Expo web preview not found (export output missing).",
        )

    # ------------------------------------------------------------------
    # Background work
    # ------------------------------------------------------------------

    async def _set(self, project_id: str, entry: PreviewEntry) -> PreviewStatus:
        async with self._lock:
            self._entries[project_id] = entry
        return entry.to_status()

    async def _start(
        self,
        project_id: str,
        entry: PreviewEntry,
        work: Callable[[PreviewEntry], Awaitable[bool]],
        failure_message: str,
    ) -> PreviewStatus:
        """Register `entry` and run `work` in the background unless already tracked."""
        async with self._lock:
            current = self._entries.get(project_id)
            if current is not None and current.mode == entry.mode:
                if current.state != "running":
                    return current.to_status()
                if current.process is not None and not self._process_exited(current):
                    return current.to_status()
            self._entries[project_id] = entry
            entry.task = asyncio.create_task(
                self._run_attempts(project_id, entry, work, failure_message)
            )
        trace_step("preview.registry", f"{project_id}: {entry.message}")
        return entry.to_status()

    async def _run_attempts(
        self,
        project_id: str,
        entry: PreviewEntry,
        work: Callable[[PreviewEntry], Awaitable[bool]],
        failure_message: str,
    ) -> None:
        max_attempts = max(self.settings.preview_max_attempts, 1)
        while entry.attempts < max_attempts:
            entry.attempts += 1
            try:
                ok = await work(entry)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Preview attempt {entry.attempts} for {project_id} failed: {e}")
                ok = False

            if ok:
                entry.state = "running"
                entry.message = None
                logger.info(f"Preview running for project {project_id} ({entry.mode})")
                return
            await self._terminate(entry.process)
            entry.process = None

        entry.state = "error"
        entry.message = failure_message
        logger.warning(f"Preview gave up for project {project_id} after {entry.attempts} attempt(s)")

    async def _build_bundles(self, root: Path, bundle_roots: List[Path]) -> bool:
        for directory in bundle_roots:
            if not await self._npm_install(directory):
                continue
            await self._run_command(["npm", "run", "build"], directory, self.settings.preview_install_timeout)
        return await asyncio.to_thread(find_static_index, root) is not None

    async def _export_expo(self, expo_root: Path) -> bool:
        await self._npm_install(expo_root)

        scripts = (read_package_json(expo_root) or {}).get("scripts") or {}
        script = next((s for s in EXPO_SCRIPTS if isinstance(scripts.get(s), str)), None)
        if script:
            cmd = ["npm", "run", script]
        else:
            cmd = ["npx", "expo", "export", "--platform", "web", "--output-dir", "dist"]
        await self._run_command(cmd, expo_root, self.settings.preview_install_timeout)
        return await asyncio.to_thread(find_expo_index, expo_root) is not None

    async def _start_next_dev(self, root: Path, entry: PreviewEntry) -> bool:
        await self._npm_install(root)

        env = dict(os.environ)
        env.update({"PORT": str(entry.port), "HOSTNAME": "127.0.0.1", "HOST": "127.0.0.1"})
        entry.process = await asyncio.create_subprocess_exec(
            "npx", "next", "dev", "-p", str(entry.port), "-H", "127.0.0.1",
            cwd=str(root),
            env=env,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
        return await self._check_ready(entry.direct_url, timeout=self.settings.preview_start_timeout)

    # ------------------------------------------------------------------
    # Process helpers
    # ------------------------------------------------------------------

    async def _npm_install(self, directory: Path) -> bool:
        if (directory / "node_modules").is_dir():
            return True
        return await self._run_command(["npm", "install"], directory, self.settings.preview_install_timeout)

    async def _run_command(self, cmd: List[str], cwd: Path, timeout: float) -> bool:
        """Run a command to completion; False on non-zero exit or timeout."""
        trace_step("preview.registry", f"$ {' '.join(cmd)} (cwd={cwd})")
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=str(cwd),
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.warning(f"Could not start {cmd[0]}: {e}")
            return False

        try:
            _, stderr_b = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                proc.kill()
            logger.warning(f"{' '.join(cmd)} timed out after {timeout}s")
            return False

        if proc.returncode != 0:
            stderr = (stderr_b or b"").decode("utf-8", errors="replace")
            logger.warning(f"{' '.join(cmd)} exited with {proc.returncode}: {stderr[-500:]}")
            return False
        return True

    async def _check_ready(self, url: Optional[str], timeout: float) -> bool:
        """Poll `url` until it answers (any status below 500, or 404)."""
        if not url:
            return False
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        async with httpx.AsyncClient(timeout=2.0) as client:
            while True:
                try:
                    response = await client.get(url)
                    if response.status_code < 500 or response.status_code == 404:
                        return True
                except httpx.HTTPError:
                    pass
                if loop.time() >= deadline:
                    return False
                await asyncio.sleep(PROBE_INTERVAL)

    @staticmethod
    def _process_exited(entry: PreviewEntry) -> bool:
        return entry.process is not None and entry.process.returncode is not None

    @staticmethod
    async def _terminate(process: Optional[asyncio.subprocess.Process]) -> None:
        if process is None or process.returncode is not None:
            return
        with contextlib.suppress(ProcessLookupError):
            process.terminate()
        try:
            await asyncio.wait_for(process.wait(), timeout=STOP_GRACE)
        except asyncio.TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                process.kill()


# Global registry instance
_registry: Optional[PreviewRegistry] = None


def get_preview_registry() -> PreviewRegistry:
    """Get or create the global preview registry."""
    global _registry
    if _registry is None:
        _registry = PreviewRegistry()
    return _registry
