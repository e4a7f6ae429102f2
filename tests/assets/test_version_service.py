"""Tests for VersionService — version creation, reads, and deletion."""

import threading
from pathlib import Path

import pytest
from reelledger.assets.models import ContentAsset, ContentType
from reelledger.assets.services import VersionService, default_label, group_lineages
from reelledger.assets.store import LineageStore
from reelledger.errors import ConflictError, InvalidArgumentError, NotFoundError


@pytest.fixture
def service() -> VersionService:
    return VersionService(LineageStore())


def _assert_single_latest(service: VersionService, root_id: str) -> None:
    flagged = [a for a in service.list_versions(root_id) if a.is_latest]
    assert len(flagged) == 1


class _InterleavingStore(LineageStore):
    """Lets another writer commit between a reader's read and its commit."""

    def __init__(self) -> None:
        super().__init__()
        self.interleave = None

    def commit_version(self, asset, expected_latest_id):
        hook, self.interleave = self.interleave, None
        if hook is not None:
            hook()
        return super().commit_version(asset, expected_latest_id)


class TestCreateVersion:
    def test_new_lineage(self, service: VersionService):
        root = service.create_version(None, ContentType.SCRIPT, "line1\nline2")
        assert root.version == 1
        assert root.is_latest is True
        assert root.lineage_root_id == root.id
        assert root.version_label == "Version 1"

    def test_second_version_retires_first(self, service: VersionService):
        root = service.create_version(None, ContentType.SCRIPT, "line1\nline2")
        v2 = service.create_version(root.id, ContentType.SCRIPT, "line1\nline2\nline3")

        assert v2.version == 2
        assert v2.is_latest is True
        assert v2.lineage_root_id == root.id
        assert service.get_asset(root.id).is_latest is False
        _assert_single_latest(service, root.id)

    def test_versions_are_contiguous(self, service: VersionService):
        root = service.create_version(None, ContentType.IMAGE, "https://cdn/1.png")
        for i in range(2, 8):
            service.create_version(root.id, ContentType.IMAGE, f"https://cdn/{i}.png")
        assert [a.version for a in service.list_versions(root.id)] == list(range(1, 8))
        _assert_single_latest(service, root.id)

    def test_custom_label_and_provenance(self, service: VersionService):
        asset = service.create_version(
            None,
            ContentType.VIDEO,
            "https://cdn/cut.mp4",
            "Director's Cut",
            project_id="p1",
            scene_id="s1",
            source_prompt="slow dolly in",
            generation_model="kling-v1",
        )
        assert asset.version_label == "Director's Cut"
        assert asset.project_id == "p1"
        assert asset.generation_model == "kling-v1"

    def test_unknown_lineage(self, service: VersionService):
        with pytest.raises(NotFoundError):
            service.create_version("missing", ContentType.SCRIPT, "text")

    def test_content_type_must_match_lineage(self, service: VersionService):
        root = service.create_version(None, ContentType.SCRIPT, "text")
        with pytest.raises(InvalidArgumentError):
            service.create_version(root.id, ContentType.AUDIO, "https://cdn/a.mp3")

    def test_accepts_string_content_type(self, service: VersionService):
        asset = service.create_version(None, "audio", "https://cdn/a.mp3")
        assert asset.content_type == ContentType.AUDIO


class TestConcurrentCreate:
    def test_lost_race_retries_onto_next_version(self):
        store = _InterleavingStore()
        service = VersionService(store)
        root = service.create_version(None, ContentType.SCRIPT, "v1")
        service.create_version(root.id, ContentType.SCRIPT, "v2")

        winner: list[ContentAsset] = []
        store.interleave = lambda: winner.append(
            service.create_version(root.id, ContentType.SCRIPT, "winner")
        )
        loser = service.create_version(root.id, ContentType.SCRIPT, "loser")

        assert winner[0].version == 3
        assert loser.version == 4
        assert service.get_latest(root.id).id == loser.id
        assert [a.version for a in service.list_versions(root.id)] == [1, 2, 3, 4]
        _assert_single_latest(service, root.id)

    def test_conflict_surfaces_after_retry_budget(self):
        store = _InterleavingStore()
        service = VersionService(store, max_conflict_retries=0)
        root = service.create_version(None, ContentType.SCRIPT, "v1")

        store.interleave = lambda: service.create_version(root.id, ContentType.SCRIPT, "other")
        with pytest.raises(ConflictError):
            service.create_version(root.id, ContentType.SCRIPT, "mine")
        _assert_single_latest(service, root.id)

    def test_threads_produce_gapless_versions(self):
        service = VersionService(LineageStore(), max_conflict_retries=100)
        root = service.create_version(None, ContentType.SCRIPT, "v1")
        barrier = threading.Barrier(4)
        errors: list[Exception] = []

        def writer(n: int) -> None:
            barrier.wait()
            try:
                for i in range(5):
                    service.create_version(root.id, ContentType.SCRIPT, f"w{n}-{i}")
            except Exception as exc:  # noqa: BLE001
                errors.append(exc)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert [a.version for a in service.list_versions(root.id)] == list(range(1, 22))
        _assert_single_latest(service, root.id)


class TestReads:
    def test_get_latest(self, service: VersionService):
        root = service.create_version(None, ContentType.SCRIPT, "a")
        v2 = service.create_version(root.id, ContentType.SCRIPT, "b")
        assert service.get_latest(root.id).id == v2.id

    def test_get_latest_missing(self, service: VersionService):
        with pytest.raises(NotFoundError):
            service.get_latest("nope")

    def test_list_versions_unknown_is_empty(self, service: VersionService):
        assert service.list_versions("nope") == []

    def test_compare_same_lineage(self, service: VersionService):
        root = service.create_version(None, ContentType.SCRIPT, "a")
        v2 = service.create_version(root.id, ContentType.SCRIPT, "b")
        comparison = service.compare(root.id, v2.id)
        assert comparison.a.body == "a"
        assert comparison.b.body == "b"

    def test_compare_across_lineages(self, service: VersionService):
        a = service.create_version(None, ContentType.SCRIPT, "a")
        b = service.create_version(None, ContentType.SCRIPT, "b")
        with pytest.raises(InvalidArgumentError):
            service.compare(a.id, b.id)

    def test_compare_missing(self, service: VersionService):
        a = service.create_version(None, ContentType.SCRIPT, "a")
        with pytest.raises(NotFoundError):
            service.compare(a.id, "missing")

    def test_project_assets_are_latest_only(self, service: VersionService):
        root = service.create_version(None, ContentType.IMAGE, "u1", project_id="p1")
        service.create_version(root.id, ContentType.IMAGE, "u2", project_id="p1")
        service.create_version(None, ContentType.SCRIPT, "text", project_id="p1")
        service.create_version(None, ContentType.SCRIPT, "other", project_id="p2")

        assets = service.list_project_assets("p1")
        assert len(assets) == 2
        assert all(a.is_latest for a in assets)
        assert len(service.list_project_assets("p1", ContentType.IMAGE)) == 1

    def test_scene_assets_highest_version_first(self, service: VersionService):
        root = service.create_version(None, ContentType.SCRIPT, "a", scene_id="s1")
        service.create_version(root.id, ContentType.SCRIPT, "b", scene_id="s1")
        service.create_version(root.id, ContentType.SCRIPT, "c", scene_id="s1")
        assert [a.version for a in service.list_scene_assets("s1")] == [3, 2, 1]

    def test_latest_script_for_scene(self, service: VersionService):
        assert service.latest_script_for_scene("s1") is None
        root = service.create_version(None, ContentType.SCRIPT, "a", scene_id="s1")
        v2 = service.create_version(root.id, ContentType.SCRIPT, "b", scene_id="s1")
        service.create_version(None, ContentType.AUDIO, "https://a.mp3", scene_id="s1")
        assert service.latest_script_for_scene("s1").id == v2.id


class TestRelabel:
    def test_label_only(self, service: VersionService):
        root = service.create_version(None, ContentType.SCRIPT, "a")
        v2 = service.create_version(root.id, ContentType.SCRIPT, "b")
        relabeled = service.relabel(root.id, "Table read")
        assert relabeled.version_label == "Table read"
        assert relabeled.version == 1
        assert relabeled.is_latest is False
        assert service.get_latest(root.id).id == v2.id

    def test_missing(self, service: VersionService):
        with pytest.raises(NotFoundError):
            service.relabel("missing", "x")


class TestDeleteVersion:
    def test_promotes_next_highest(self, service: VersionService):
        root = service.create_version(None, ContentType.SCRIPT, "a")
        v2 = service.create_version(root.id, ContentType.SCRIPT, "b")
        v3 = service.create_version(root.id, ContentType.SCRIPT, "c")

        promoted = service.delete_version(v3.id)

        assert promoted.id == v2.id
        assert service.get_latest(root.id).id == v2.id
        _assert_single_latest(service, root.id)

    def test_next_create_after_delete_continues_numbering(self, service: VersionService):
        root = service.create_version(None, ContentType.SCRIPT, "a")
        v2 = service.create_version(root.id, ContentType.SCRIPT, "b")
        service.delete_version(v2.id)
        v_next = service.create_version(root.id, ContentType.SCRIPT, "c")
        assert v_next.version == 2
        _assert_single_latest(service, root.id)

    def test_emptied_lineage_has_no_latest(self, service: VersionService):
        root = service.create_version(None, ContentType.SCRIPT, "a")
        assert service.delete_version(root.id) is None
        with pytest.raises(NotFoundError):
            service.get_latest(root.id)

    def test_deleting_root_keeps_lineage(self, service: VersionService):
        root = service.create_version(None, ContentType.SCRIPT, "a")
        v2 = service.create_version(root.id, ContentType.SCRIPT, "b")
        service.delete_version(root.id)
        assert service.get_latest(root.id).id == v2.id
        v3 = service.create_version(root.id, ContentType.SCRIPT, "c")
        assert v3.version == 3


class TestRevisePage:
    def test_creates_version_with_page_replaced(self, service: VersionService):
        root = service.create_version(None, ContentType.SCRIPT, "L1\nL2\nL3\nL4", scene_id="s1")
        revised = service.revise_page(root.id, 2, "NEW3\nNEW4", lines_per_page=2)
        assert revised.version == 2
        assert revised.body == "L1\nL2\nNEW3\nNEW4"
        assert revised.scene_id == "s1"
        assert service.get_asset(root.id).body == "L1\nL2\nL3\nL4"

    def test_missing_page(self, service: VersionService):
        root = service.create_version(None, ContentType.SCRIPT, "L1\nL2")
        with pytest.raises(InvalidArgumentError):
            service.revise_page(root.id, 3, "x", lines_per_page=2)

    def test_rejects_media(self, service: VersionService):
        image = service.create_version(None, ContentType.IMAGE, "https://cdn/1.png")
        with pytest.raises(InvalidArgumentError):
            service.revise_page(image.id, 1, "x")


class TestGroupLineages:
    def test_groups_and_sorts(self):
        a1 = ContentAsset(id="a", content_type=ContentType.SCRIPT, is_latest=False)
        a2 = ContentAsset(
            id="a2", lineage_root_id="a", version=2, content_type=ContentType.SCRIPT
        )
        solo = ContentAsset(id="solo", content_type=ContentType.IMAGE)

        lineages = group_lineages([a2, solo, a1])

        assert [lin.root_id for lin in lineages] == ["a", "solo"]
        assert [v.version for v in lineages[0].versions] == [1, 2]
        assert lineages[0].current.id == "a2"
        assert lineages[1].current.id == "solo"

    def test_current_follows_flag_after_promotion(self, service: VersionService):
        root = service.create_version(None, ContentType.SCRIPT, "a")
        v2 = service.create_version(root.id, ContentType.SCRIPT, "b")
        v3 = service.create_version(root.id, ContentType.SCRIPT, "c")
        service.delete_version(v3.id)

        (lineage,) = service.lineages()
        assert lineage.current.id == v2.id

    def test_default_label(self):
        assert default_label(3) == "Version 3"


class TestPersistentService:
    def test_survives_reload(self, tmp_path: Path):
        service = VersionService(LineageStore(tmp_path))
        root = service.create_version(None, ContentType.SCRIPT, "a")
        service.create_version(root.id, ContentType.SCRIPT, "b")

        reloaded = VersionService(LineageStore(tmp_path))
        assert reloaded.get_latest(root.id).body == "b"
        _assert_single_latest(reloaded, root.id)
