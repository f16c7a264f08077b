"""Unit tests for ProjectStore persistence."""

import asyncio

import pytest
from models.account import ApiKey
from models.project import AspectRatio, Project, ProjectStatus, Scene, SceneStatus, VideoStyle
from services.project_store import ProjectStore
from utils.errors import InvalidStatusTransition, PersistenceError


def _project(project_id: str = "proj-1", user_id: str = "user-1") -> Project:
    return Project(
        id=project_id,
        user_id=user_id,
        title="Lighthouse",
        prompt="A lighthouse keeper",
        style=VideoStyle.DOCUMENTARY,
        aspect_ratio=AspectRatio.PORTRAIT,
        duration=30,
        status=ProjectStatus.GENERATING,
        script={"title": "Lighthouse", "scenes": []},
    )


def _scenes(numbers=(1, 2, 3)) -> list[Scene]:
    return [Scene("", n, f"desc {n}", f"narration {n}", 10) for n in numbers]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_operations_require_connection(temp_dir):
    store = ProjectStore(str(temp_dir / "unconnected.db"))

    with pytest.raises(RuntimeError, match="Database not connected"):
        await store.get_project("x")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_and_get_project_with_ordered_scenes(store):
    await store.create_project(_project())
    scenes = _scenes((3, 1, 2))
    scenes[1].image_url = "https://cdn.test/1.png"
    await store.insert_scenes("proj-1", scenes)

    project = await store.get_project("proj-1")

    assert project.style == VideoStyle.DOCUMENTARY
    assert project.aspect_ratio == AspectRatio.PORTRAIT
    assert project.script == {"title": "Lighthouse", "scenes": []}
    assert [s.scene_number for s in project.scenes] == [1, 2, 3]
    assert project.scenes[0].image_url == "https://cdn.test/1.png"
    assert project.scenes[0].id == "proj-1-1"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_missing_project_returns_none(store):
    assert await store.get_project("missing") is None


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize("numbers", [(1, 3), (2, 3, 4), (1, 1, 2)])
async def test_non_contiguous_scene_numbers_are_rejected(store, numbers):
    await store.create_project(_project())

    with pytest.raises(PersistenceError):
        await store.insert_scenes("proj-1", _scenes(numbers))

    assert await store.list_scenes("proj-1") == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_duplicate_project_id_is_persistence_error(store):
    await store.create_project(_project())

    with pytest.raises(PersistenceError):
        await store.create_project(_project())


@pytest.mark.unit
@pytest.mark.asyncio
async def test_status_transitions(store):
    await store.create_project(_project())

    failed = await store.update_project("proj-1", status=ProjectStatus.FAILED)
    assert failed.status == ProjectStatus.FAILED

    retried = await store.update_project("proj-1", status=ProjectStatus.GENERATING)
    assert retried.status == ProjectStatus.GENERATING

    with pytest.raises(InvalidStatusTransition):
        await store.update_project("proj-1", status=ProjectStatus.GENERATING)

    done = await store.update_project(
        "proj-1", status=ProjectStatus.COMPLETED, video_url="https://cdn.test/v.mp4"
    )
    assert done.status == ProjectStatus.COMPLETED
    assert done.video_url == "https://cdn.test/v.mp4"

    with pytest.raises(InvalidStatusTransition):
        await store.update_project("proj-1", status=ProjectStatus.FAILED)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_missing_project_returns_none(store):
    assert await store.update_project("missing", status=ProjectStatus.FAILED) is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_projects_is_scoped_to_user(store):
    await store.create_project(_project("a", "user-1"))
    await store.create_project(_project("b", "user-2"))
    await store.create_project(_project("c", "user-1"))

    projects = await store.list_projects("user-1")

    assert {p.id for p in projects} == {"a", "c"}
    assert all(p.scenes == [] for p in projects)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_delete_project_cascades_to_scenes(store):
    await store.create_project(_project())
    await store.insert_scenes("proj-1", _scenes())

    assert await store.delete_project("proj-1", user_id="someone-else") is False
    assert await store.delete_project("proj-1", user_id="user-1") is True

    assert await store.get_project("proj-1") is None
    assert await store.list_scenes("proj-1") == []
    assert await store.delete_project("proj-1") is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_failed_scene_status_round_trips(store):
    await store.create_project(_project())
    scenes = _scenes((1,))
    scenes[0].status = SceneStatus.FAILED
    await store.insert_scenes("proj-1", scenes)

    stored = await store.list_scenes("proj-1")
    assert stored[0].status == SceneStatus.FAILED
    assert stored[0].image_url is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_credits_default_and_debit_floor(store):
    assert await store.get_credits("nobody") == 0

    await store.upsert_profile("user-1", credits=15)
    assert await store.debit_credits("user-1", 10) == 5
    assert await store.debit_credits("user-1", 10) == 0
    assert await store.get_credits("user-1") == 0

    with pytest.raises(PersistenceError):
        await store.debit_credits("nobody", 10)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_api_key_lookup_ignores_inactive_keys(store):
    key = ApiKey(id="k1", user_id="user-1", name="ci", key_hash="abc", key_preview="sk_abc...0000")
    await store.insert_api_key(key)

    assert (await store.find_active_api_key("abc")).id == "k1"

    assert await store.deactivate_api_key("k1", "user-1") is True
    assert await store.find_active_api_key("abc") is None
    assert (await store.get_api_key("k1")).is_active is False


@pytest.mark.unit
@pytest.mark.asyncio
async def test_failed_write_does_not_undo_concurrent_debits(store):
    await store.upsert_profile("alice", 100)
    await store.create_project(_project())

    results = await asyncio.gather(
        *(
            call
            for _ in range(5)
            for call in (store.debit_credits("alice", 10), store.create_project(_project()))
        ),
        return_exceptions=True,
    )

    balances = results[0::2]
    failures = results[1::2]
    assert sorted(balances, reverse=True) == [90, 80, 70, 60, 50]
    assert all(isinstance(f, PersistenceError) for f in failures)
    assert await store.get_credits("alice") == 50


@pytest.mark.unit
@pytest.mark.asyncio
async def test_failed_scene_insert_keeps_concurrent_debit(store):
    await store.upsert_profile("alice", 100)
    await store.create_project(_project())
    await store.insert_scenes("proj-1", _scenes())

    balance, duplicate = await asyncio.gather(
        store.debit_credits("alice", 10),
        store.insert_scenes("proj-1", _scenes()),
        return_exceptions=True,
    )

    assert balance == 90
    assert isinstance(duplicate, PersistenceError)
    assert await store.get_credits("alice") == 90
    assert len(await store.list_scenes("proj-1")) == 3
