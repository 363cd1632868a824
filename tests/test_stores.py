"""
Tests for buildpilot/store
"""
import pytest

from buildpilot.store import ChatStore, ProjectExistsError, ProjectStore, default_title


class TestProjectStore:

    async def test_create_with_defaults(self, db):
        project = await ProjectStore(db).create(project_id="p1")

        assert project.title == default_title("p1") == "Project p1"
        assert project.version == 0
        assert project.built is False
        assert project.files == []
        assert project.images == []
        assert project.build_info is None

    async def test_generated_id(self, db):
        project = await ProjectStore(db).create(title="Recipes")
        assert project.id.startswith("p_")
        assert project.title == "Recipes"

    async def test_duplicate_id_rejected(self, db):
        store = ProjectStore(db)
        await store.create(project_id="p1")
        with pytest.raises(ProjectExistsError):
            await store.create(project_id="p1")

    async def test_get_or_create(self, db):
        store = ProjectStore(db)
        first = await store.get_or_create("p1")
        second = await store.get_or_create("p1")
        assert first.id == second.id
        assert len(await store.list_projects()) == 1

    async def test_update_replaces_json(self, db):
        store = ProjectStore(db)
        project = await store.create(project_id="p1")
        before = project.updated_at

        project = await store.update(project, files=["a.txt"], version=1)

        assert project.files == ["a.txt"]
        assert project.version == 1
        assert project.updated_at >= before

    async def test_update_unknown_field(self, db):
        store = ProjectStore(db)
        project = await store.create(project_id="p1")
        with pytest.raises(AttributeError):
            await store.update(project, nonsense=1)

    async def test_delete_cascades_chat(self, db):
        store = ProjectStore(db)
        chat = ChatStore(db)
        project = await store.create(project_id="p1")
        await chat.append("p1", "user", "hello")

        await store.delete(project)

        assert await store.get("p1") is None
        assert await chat.count("p1") == 0


class TestChatStore:

    async def test_append_and_recent_in_order(self, db):
        await ProjectStore(db).create(project_id="p1")
        chat = ChatStore(db)
        for i in range(5):
            await chat.append("p1", "user" if i % 2 == 0 else "assistant", f"turn {i}")

        recent = await chat.recent("p1", 3)
        assert [t.content for t in recent] == ["turn 2", "turn 3", "turn 4"]

    async def test_retention_cap(self, db):
        await ProjectStore(db).create(project_id="p1")
        chat = ChatStore(db, retention=5)
        for i in range(8):
            await chat.append("p1", "user", f"turn {i}")

        assert await chat.count("p1") == 5
        turns = await chat.recent("p1", 100)
        assert [t.content for t in turns] == [f"turn {i}" for i in range(3, 8)]

    async def test_retention_is_per_project(self, db):
        store = ProjectStore(db)
        await store.create(project_id="p1")
        await store.create(project_id="p2")
        chat = ChatStore(db, retention=2)
        await chat.append("p2", "user", "keep me")
        for i in range(4):
            await chat.append("p1", "user", f"turn {i}")

        assert await chat.count("p2") == 1
        assert await chat.count("p1") == 2

    async def test_image_fields(self, db):
        await ProjectStore(db).create(project_id="p1")
        turn = await ChatStore(db).append("p1", "assistant", "Mockup image generated.", image_url="https://x/y.png")
        assert turn.image_url == "https://x/y.png"
        assert turn.image_data_url is None

    async def test_unknown_role_rejected(self, db):
        await ProjectStore(db).create(project_id="p1")
        with pytest.raises(ValueError):
            await ChatStore(db).append("p1", "system", "nope")
