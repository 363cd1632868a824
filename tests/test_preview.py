"""
Tests for buildpilot/preview/registry.py
Status resolution and the background task state machine. No real npm or
dev server processes are started.
"""
import json

import pytest
import pytest_asyncio

from buildpilot.preview import PreviewRegistry, preview_port
from buildpilot.preview.registry import find_expo_root, is_nextjs_project
from buildpilot.sandbox import SandboxFile

WEB = {"platform": "web", "framework": "nextjs"}
MOBILE = {"platform": "ios_android", "framework": "shared_mobile"}


@pytest_asyncio.fixture
async def registry(settings, sandbox):
    reg = PreviewRegistry(settings, sandbox)
    yield reg
    await reg.stop_all()


async def _write(sandbox, files):
    await sandbox.write_files("p1", [SandboxFile(path=p, content=c) for p, c in files.items()])


class TestPreviewPort:

    def test_stable_and_in_range(self):
        port = preview_port("p1", 4300, 700)
        assert port == preview_port("p1", 4300, 700)
        assert 4300 <= port < 5000


class TestStatus:

    async def test_not_built_is_loading(self, registry):
        status = await registry.status("p1", WEB, built=False)
        assert status.state == "loading"
        assert status.message == "Project not built yet"

    @pytest.mark.parametrize("index", [
        "index.html",
        "dist/index.html",
        "apps/web/dist/index.html",
        "frontend/dist/index.html",
    ])
    async def test_static_bundle_is_running(self, registry, sandbox, index):
        await _write(sandbox, {index: "<h1>hi</h1>"})
        status = await registry.status("p1", WEB, built=True)
        assert status.state == "running"
        assert status.mode == "static"

    async def test_no_output_is_error(self, registry, sandbox):
        await _write(sandbox, {"README.md": "# hi"})
        status = await registry.status("p1", WEB, built=True)
        assert status.state == "error"

    async def test_mobile_requires_shared_mobile(self, registry, sandbox):
        await _write(sandbox, {"index.html": "x"})
        status = await registry.status("p1", {"platform": "ios", "framework": "swift"}, built=True)
        assert status.state == "error"
        assert "shared_mobile" in status.message

    async def test_requested_platform_overrides(self, registry, sandbox):
        await _write(sandbox, {"index.html": "x"})
        status = await registry.status("p1", WEB, built=True, platform="ios")
        assert status.state == "error"

    async def test_missing_expo_project(self, registry, sandbox):
        await _write(sandbox, {"README.md": "x"})
        status = await registry.status("p1", MOBILE, built=True)
        assert status.state == "error"
        assert "Expo" in status.message

    async def test_exported_expo_is_running(self, registry, sandbox):
        await _write(sandbox, {
            "apps/mobile/package.json": json.dumps({"dependencies": {"expo": "~51.0.0"}}),
            "apps/mobile/app.json": "{}",
            "apps/mobile/dist/index.html": "<div id=root></div>",
        })
        status = await registry.status("p1", MOBILE, built=True)
        assert status.state == "running"
        assert status.mode == "expo-web"


class TestBackgroundWork:

    async def test_bundle_build_runs_in_background(self, registry, sandbox, monkeypatch):
        await _write(sandbox, {"package.json": json.dumps({"scripts": {"build": "vite build"}})})
        root = sandbox.project_root("p1")
        commands = []

        async def fake_run(cmd, cwd, timeout):
            commands.append(cmd)
            if cmd[-1] == "build":
                (root / "dist").mkdir(exist_ok=True)
                (root / "dist" / "index.html").write_text("<h1>built</h1>")
            return True

        monkeypatch.setattr(registry, "_run_command", fake_run)

        first = await registry.status("p1", WEB, built=True)
        assert first.state == "loading"

        await registry.get("p1").task
        assert commands == [["npm", "install"], ["npm", "run", "build"]]

        second = await registry.status("p1", WEB, built=True)
        assert second.state == "running"

    async def test_bounded_attempts_then_error(self, registry, sandbox, settings, monkeypatch):
        await _write(sandbox, {"package.json": json.dumps({"scripts": {"build": "vite build"}})})

        async def failing(cmd, cwd, timeout):
            return False

        monkeypatch.setattr(registry, "_run_command", failing)

        await registry.status("p1", WEB, built=True)
        entry = registry.get("p1")
        await entry.task

        assert entry.state == "error"
        assert entry.attempts == settings.preview_max_attempts
        status = await registry.status("p1", WEB, built=True)
        assert status.state == "error"
        assert status.message == "Web preview build failed."

    async def test_next_dev_already_listening(self, registry, sandbox, monkeypatch):
        await _write(sandbox, {"package.json": json.dumps({"dependencies": {"next": "14.2.0"}})})

        async def ready(url, timeout):
            return True

        monkeypatch.setattr(registry, "_check_ready", ready)
        status = await registry.status("p1", WEB, built=True)

        assert status.state == "running"
        assert status.mode == "next-dev"
        assert status.port == preview_port("p1")
        assert status.direct_url == f"http://127.0.0.1:{status.port}"

    async def test_stop(self, registry, sandbox, monkeypatch):
        await _write(sandbox, {"package.json": json.dumps({"dependencies": {"next": "14.2.0"}})})

        async def ready(url, timeout):
            return True

        monkeypatch.setattr(registry, "_check_ready", ready)
        await registry.status("p1", WEB, built=True)

        assert await registry.stop("p1") is True
        assert registry.get("p1") is None
        assert await registry.stop("p1") is False


class TestDetection:

    def test_nextjs_project(self, tmp_path):
        (tmp_path / "package.json").write_text(json.dumps({"devDependencies": {"next": "14"}}))
        assert is_nextjs_project(tmp_path)

    def test_not_nextjs(self, tmp_path):
        (tmp_path / "package.json").write_text("not json")
        assert not is_nextjs_project(tmp_path)

    def test_expo_root_in_subdirectory(self, tmp_path):
        app = tmp_path / "mobile-app"
        app.mkdir()
        (app / "package.json").write_text(json.dumps({"dependencies": {"react-native": "0.74"}}))
        (app / "app.config.js").write_text("module.exports = {}")
        assert find_expo_root(tmp_path) == app
