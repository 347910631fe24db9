"""Tests for the sync orchestrator."""

import asyncio
import shutil
from dataclasses import replace
from pathlib import Path

import pytest

from tasksync.audit_log import read_audit_log
from tasksync.config import MemorySettingsStore, Settings, SettingsStore, settings_path
from tasksync.errors import SettingsError
from tasksync.models import Scope, ScopeKind, TaskCategory
from tasksync.planning import ScopeStatus
from tasksync.sync.orchestrator import SyncOrchestrator, SyncState, requires_full_sync
from tasksync.vault.embeds import has_single_embed
from tasksync.vault.store import FileSystemStore

EXPECTED_BASES = [
    "Bases/Tasks.base",
    "Bases/Mobile App.base",
    "Bases/Website.base",
    "Bases/Health.base",
]


def _read(vault: Path, rel: str) -> str:
    return (vault / rel).read_text(encoding="utf-8")


class TestSyncAll:
    def test_first_run_creates_every_base(self, populated_vault: Path, make_orchestrator) -> None:
        orchestrator = make_orchestrator(populated_vault)
        result = asyncio.run(orchestrator.sync_all())

        assert [o.scope_id for o in result.outcomes] == [
            "global",
            "project:Mobile App",
            "project:Website",
            "area:Health",
        ]
        assert [o.base_path for o in result.outcomes] == EXPECTED_BASES
        assert result.created == 4
        assert result.embeds_updated == 3
        assert result.success
        assert orchestrator.state is SyncState.DONE
        assert orchestrator.last_result is result

        for rel in EXPECTED_BASES:
            assert (populated_vault / rel).is_file()

    def test_embeds_point_at_owned_base(self, populated_vault: Path, make_orchestrator) -> None:
        asyncio.run(make_orchestrator(populated_vault).sync_all())

        website = _read(populated_vault, "Projects/Website.md")
        assert website == (
            "---\nType: Project\nName: Website\n---\n# Website\n\nLaunch plan.\n\n"
            "## Tasks\n![[Bases/Website.base]]\n"
        )
        assert has_single_embed(_read(populated_vault, "Projects/Mobile App.md"), "Bases/Mobile App.base")
        assert has_single_embed(_read(populated_vault, "Areas/Health.md"), "Bases/Health.base")

    def test_non_project_notes_are_ignored(self, populated_vault: Path, make_orchestrator) -> None:
        asyncio.run(make_orchestrator(populated_vault).sync_all())

        assert not (populated_vault / "Bases" / "Kickoff.base").exists()
        assert "## Tasks" not in _read(populated_vault, "Projects/Kickoff.md")

    def test_rerun_is_idempotent(self, populated_vault: Path, make_orchestrator) -> None:
        orchestrator = make_orchestrator(populated_vault)
        asyncio.run(orchestrator.sync_all())
        before = {rel: _read(populated_vault, rel) for rel in EXPECTED_BASES + ["Projects/Website.md"]}

        result = asyncio.run(orchestrator.sync_all())

        assert result.created == 0
        assert result.updated == 4
        assert result.embeds_updated == 0
        assert {rel: _read(populated_vault, rel) for rel in before} == before

    def test_base_content_matches_scope(self, populated_vault: Path, make_orchestrator) -> None:
        asyncio.run(make_orchestrator(populated_vault).sync_all())

        website = _read(populated_vault, "Bases/Website.base")
        assert "title: Website\n" in website
        assert 'Project == link("Website")' in website
        assert "Health" not in website

        health = _read(populated_vault, "Bases/Health.base")
        assert 'Areas.contains(link("Health"))' in health
        assert "type: area\n" in health

    def test_scope_is_named_after_the_file(self, vault: Path, make_orchestrator) -> None:
        (vault / "Projects" / "website.md").write_text("---\nName: Website Redesign\n---\n", encoding="utf-8")

        result = asyncio.run(make_orchestrator(vault).sync_all())

        assert [o.scope_id for o in result.outcomes] == ["global", "project:website"]
        assert 'Project == link("website")' in _read(vault, "Bases/website.base")

    def test_empty_vault_still_writes_global_base(self, vault: Path, make_orchestrator) -> None:
        result = asyncio.run(make_orchestrator(vault).sync_all())

        assert [o.scope_id for o in result.outcomes] == ["global"]
        assert (vault / "Bases" / "Tasks.base").is_file()


class TestFailureIsolation:
    def test_failing_scope_does_not_abort_siblings(self, populated_vault: Path, make_orchestrator, broken_store) -> None:
        store = broken_store("Bases/Website.base")
        result = asyncio.run(make_orchestrator(populated_vault, store=store).sync_all())

        failed = result.outcome("project:Website")
        assert failed.status is ScopeStatus.FAILED
        assert failed.error_type == "FileSystemError"
        assert result.failures["project:Website"].startswith("FileSystemError: Bases/Website.base")
        assert result.created == 3
        assert not result.success
        assert "## Tasks" not in _read(populated_vault, "Projects/Website.md")
        assert (populated_vault / "Bases" / "Health.base").is_file()

    def test_unresolvable_conflict_is_a_filesystem_failure(self, populated_vault: Path, make_orchestrator, ghost_store) -> None:
        result = asyncio.run(make_orchestrator(populated_vault, store=ghost_store).sync_all())

        assert result.failed == 4
        assert {o.error_type for o in result.outcomes} == {"FileSystemError"}

    def test_lost_races_still_converge(self, populated_vault: Path, make_orchestrator, racing_store) -> None:
        result = asyncio.run(make_orchestrator(populated_vault, store=racing_store).sync_all())

        assert result.success
        assert result.updated == 4
        assert {o.write_status for o in result.outcomes} == {"updated-after-conflict"}
        assert "rival" not in _read(populated_vault, "Bases/Tasks.base")

    def test_path_collision_is_rejected(self, vault: Path, make_orchestrator) -> None:
        (vault / "Projects" / "Client-Server.md").write_text("# Client-Server\n", encoding="utf-8")
        (vault / "Projects" / "Client?Server.md").write_text("# Client?Server\n", encoding="utf-8")

        result = asyncio.run(make_orchestrator(vault).sync_all())

        assert result.outcome("project:Client-Server").status is ScopeStatus.CREATED
        rejected = result.outcome("project:Client?Server")
        assert rejected.status is ScopeStatus.FAILED
        assert rejected.error_type == "ValidationError"
        assert "## Tasks" not in _read(vault, "Projects/Client?Server.md")

    def test_note_renamed_during_discovery(self, populated_vault: Path, make_orchestrator, vanishing_store) -> None:
        store = vanishing_store("Projects/Website.md", "Archive/Website.md")
        result = asyncio.run(make_orchestrator(populated_vault, store=store).sync_all())

        assert result.success
        assert [o.scope_id for o in result.outcomes] == ["global", "project:Mobile App", "area:Health"]
        assert not (populated_vault / "Bases" / "Website.base").exists()

    def test_undecodable_note_fails_only_its_scope(self, populated_vault: Path, make_orchestrator) -> None:
        (populated_vault / "Projects" / "Legacy.md").write_bytes(b"# caf\xe9\n")

        result = asyncio.run(make_orchestrator(populated_vault).sync_all())

        legacy = result.outcome("project:Legacy")
        assert legacy.status is ScopeStatus.FAILED
        assert legacy.error_type == "FileSystemError"
        assert "not valid UTF-8" in legacy.error
        assert result.failed == 1
        assert result.created == 4
        assert (populated_vault / "Projects" / "Legacy.md").read_bytes() == b"# caf\xe9\n"
        assert has_single_embed(_read(populated_vault, "Projects/Website.md"), "Bases/Website.base")

    def test_undecodable_base_file_is_replaced(self, populated_vault: Path, make_orchestrator) -> None:
        (populated_vault / "Bases").mkdir()
        (populated_vault / "Bases" / "Health.base").write_bytes(b"\xff\xfe junk")
        orchestrator = make_orchestrator(populated_vault)

        plan = asyncio.run(orchestrator.compute_plan())
        assert {p.scope.scope_id: p.action for p in plan.scopes}["area:Health"] == "update"

        result = asyncio.run(orchestrator.execute_plan(plan))
        assert result.success
        assert result.outcome("area:Health").status is ScopeStatus.UPDATED
        assert _read(populated_vault, "Bases/Health.base") == plan.scopes[-1].content

    def test_project_cannot_claim_global_base(self, vault: Path, make_orchestrator) -> None:
        (vault / "Projects" / "Tasks.md").write_text("# Tasks project\n", encoding="utf-8")

        result = asyncio.run(make_orchestrator(vault).sync_all())

        assert result.outcome("global").status is ScopeStatus.CREATED
        assert result.outcome("project:Tasks").status is ScopeStatus.FAILED
        assert "title: Tasks\n" in _read(vault, "Bases/Tasks.base")
        assert "type: task\n" in _read(vault, "Bases/Tasks.base")

    def test_invalid_taxonomy_writes_nothing(self, populated_vault: Path, make_orchestrator, small_settings) -> None:
        settings = replace(small_settings, categories=(TaskCategory("Bug"), TaskCategory("bug")))
        result = asyncio.run(make_orchestrator(populated_vault, settings=settings).sync_all())

        assert result.failed == 4
        assert {o.error_type for o in result.outcomes} == {"ValidationError"}
        assert not (populated_vault / "Bases").exists()

    def test_unreadable_settings_abort_the_run(self, populated_vault: Path) -> None:
        path = settings_path(populated_vault)
        path.parent.mkdir(parents=True)
        path.write_text("categories: [unclosed\n", encoding="utf-8")
        orchestrator = SyncOrchestrator(FileSystemStore(populated_vault), SettingsStore(populated_vault))

        with pytest.raises(SettingsError):
            asyncio.run(orchestrator.sync_all())
        assert not (populated_vault / "Bases").exists()


class TestScopeEntryPoints:
    def test_sync_scope_by_id(self, populated_vault: Path, make_orchestrator) -> None:
        result = asyncio.run(make_orchestrator(populated_vault).sync_scope("project:website"))

        assert [o.scope_id for o in result.outcomes] == ["project:Website"]
        assert (populated_vault / "Bases" / "Website.base").is_file()
        assert not (populated_vault / "Bases" / "Tasks.base").exists()

    def test_sync_scope_object(self, populated_vault: Path, make_orchestrator) -> None:
        scope = Scope(ScopeKind.AREA, "Health", document_path="Areas/Health.md")
        result = asyncio.run(make_orchestrator(populated_vault).sync_scope(scope))

        assert result.outcome("area:Health").embed_updated

    def test_sync_global(self, populated_vault: Path, make_orchestrator) -> None:
        result = asyncio.run(make_orchestrator(populated_vault).sync_scope("global"))

        assert [o.scope_id for o in result.outcomes] == ["global"]
        assert not result.outcome("global").embed_updated

    def test_unknown_scope_name(self, populated_vault: Path, make_orchestrator) -> None:
        result = asyncio.run(make_orchestrator(populated_vault).sync_scope("project:Nope"))

        outcome = result.outcome("project:Nope")
        assert outcome.status is ScopeStatus.FAILED
        assert outcome.error_type == "ValidationError"

    def test_malformed_scope_id(self, populated_vault: Path, make_orchestrator) -> None:
        result = asyncio.run(make_orchestrator(populated_vault).sync_scope("milestone:Q3"))

        assert result.failed == 1
        assert result.outcomes[0].scope_id == "milestone:Q3"

    def test_disabled_kind_is_skipped(self, populated_vault: Path, make_orchestrator, small_settings) -> None:
        settings = replace(small_settings, area_bases_enabled=False)
        orchestrator = make_orchestrator(populated_vault, settings=settings)

        single = asyncio.run(orchestrator.sync_scope("area:Health"))
        assert single.outcome("area:Health").status is ScopeStatus.SKIPPED

        full = asyncio.run(orchestrator.sync_all())
        assert full.outcome("area:Health") is None
        assert full.created == 3
        assert not (populated_vault / "Bases" / "Health.base").exists()
        assert "## Tasks" not in _read(populated_vault, "Areas/Health.md")

    def test_explicit_scope_of_disabled_kind_is_skipped(self, populated_vault: Path, make_orchestrator, small_settings) -> None:
        settings = replace(small_settings, project_bases_enabled=False)
        orchestrator = make_orchestrator(populated_vault, settings=settings)

        result = asyncio.run(orchestrator.run([Scope(ScopeKind.PROJECT, "Website", "Projects/Website.md")]))
        assert result.skipped == 1
        assert result.created == 0

    def test_plan_scope_reads_settings_once(self, populated_vault: Path, small_settings) -> None:
        class CountingSettingsStore(MemorySettingsStore):
            snapshots = 0

            def snapshot(self) -> Settings:
                self.snapshots += 1
                return super().snapshot()

        settings_store = CountingSettingsStore(small_settings)
        orchestrator = SyncOrchestrator(FileSystemStore(populated_vault), settings_store)

        plan = asyncio.run(orchestrator.plan_scope("project:website"))

        assert [p.scope.scope_id for p in plan.scopes] == ["project:Website"]
        assert settings_store.snapshots == 1
        assert not (populated_vault / "Bases").exists()

    def test_plan_scope_of_disabled_kind(self, populated_vault: Path, make_orchestrator, small_settings) -> None:
        settings = replace(small_settings, project_bases_enabled=False)
        plan = asyncio.run(make_orchestrator(populated_vault, settings=settings).plan_scope("project:Website"))

        assert plan.scopes == []
        assert plan.rejected == []
        assert [o.scope_id for o in plan.skipped] == ["project:Website"]


class TestParentTaskBases:
    def test_creates_then_updates(self, vault: Path, make_orchestrator) -> None:
        orchestrator = make_orchestrator(vault)

        first = asyncio.run(orchestrator.sync_parent_task("Launch"))
        assert first.outcome("parent-task:Launch").status is ScopeStatus.CREATED
        assert "type: parent-task\n" in _read(vault, "Bases/Launch.base")

        second = asyncio.run(orchestrator.sync_parent_task("Launch"))
        assert second.outcome("parent-task:Launch").status is ScopeStatus.UPDATED

    def test_does_not_overwrite_a_project_base(self, populated_vault: Path, make_orchestrator) -> None:
        orchestrator = make_orchestrator(populated_vault)
        asyncio.run(orchestrator.sync_all())
        before = _read(populated_vault, "Bases/Website.base")

        result = asyncio.run(orchestrator.sync_parent_task("Website"))

        outcome = result.outcome("parent-task:Website")
        assert outcome.status is ScopeStatus.FAILED
        assert outcome.error_type == "ValidationError"
        assert _read(populated_vault, "Bases/Website.base") == before

    def test_blank_name_fails(self, vault: Path, make_orchestrator) -> None:
        result = asyncio.run(make_orchestrator(vault).sync_parent_task(" "))

        assert result.failed == 1
        assert not (vault / "Bases").exists()


class TestTriggers:
    def test_document_created(self, populated_vault: Path, make_orchestrator) -> None:
        (populated_vault / "Projects" / "Launch.md").write_text("# Launch\n", encoding="utf-8")

        result = asyncio.run(make_orchestrator(populated_vault).on_document_created("Projects/Launch.md"))

        assert result.trigger == "document-created"
        assert [o.scope_id for o in result.outcomes] == ["project:Launch"]
        assert _read(populated_vault, "Projects/Launch.md") == "# Launch\n\n## Tasks\n![[Bases/Launch.base]]\n"

    def test_document_created_outside_scope_folders(self, populated_vault: Path, make_orchestrator) -> None:
        (populated_vault / "Tasks" / "Fix login.md").write_text("# Fix\n", encoding="utf-8")

        assert asyncio.run(make_orchestrator(populated_vault).on_document_created("Tasks/Fix login.md")) is None

    def test_document_created_not_indexed(self, populated_vault: Path, make_orchestrator) -> None:
        assert asyncio.run(make_orchestrator(populated_vault).on_document_created("Projects/Ghost.md")) is None

    def test_document_created_with_auto_sync_off(self, populated_vault: Path, make_orchestrator, small_settings) -> None:
        orchestrator = make_orchestrator(populated_vault, settings=replace(small_settings, auto_sync=False))

        assert asyncio.run(orchestrator.on_document_created("Projects/Website.md")) is None
        assert not (populated_vault / "Bases").exists()

    def test_taxonomy_change_regenerates_everything(self, populated_vault: Path, make_orchestrator, small_settings) -> None:
        orchestrator = make_orchestrator(populated_vault)
        asyncio.run(orchestrator.sync_all())
        assert "Features" in _read(populated_vault, "Bases/Website.base")

        current = replace(small_settings, categories=(TaskCategory("Bug"),))
        result = asyncio.run(orchestrator.on_settings_changed(small_settings, current))

        assert result.trigger == "settings-changed"
        assert result.updated == 4
        for rel in EXPECTED_BASES:
            assert "Feature" not in _read(populated_vault, rel)
            assert "All Bugs" in _read(populated_vault, rel)

    def test_enabling_auto_sync_runs_full_sync(self, populated_vault: Path, make_orchestrator, small_settings) -> None:
        previous = replace(small_settings, auto_sync=False)
        result = asyncio.run(make_orchestrator(populated_vault).on_settings_changed(previous, small_settings))

        assert result.trigger == "auto-sync-enabled"
        assert result.created == 4

    def test_irrelevant_or_disabled_changes_do_nothing(self, populated_vault: Path, make_orchestrator, small_settings) -> None:
        orchestrator = make_orchestrator(populated_vault)
        off = replace(small_settings, auto_sync=False)

        assert asyncio.run(orchestrator.on_settings_changed(small_settings, small_settings)) is None
        assert asyncio.run(orchestrator.on_settings_changed(small_settings, off)) is None
        assert not (populated_vault / "Bases").exists()

    def test_requires_full_sync(self, small_settings) -> None:
        assert not requires_full_sync(small_settings, replace(small_settings))
        assert requires_full_sync(small_settings, replace(small_settings, bases_folder="Views"))
        assert requires_full_sync(small_settings, replace(small_settings, area_bases_enabled=False))
        assert not requires_full_sync(small_settings, replace(small_settings, auto_sync=False))


class TestPlanAndConcurrency:
    def test_plan_does_not_write(self, populated_vault: Path, make_orchestrator) -> None:
        orchestrator = make_orchestrator(populated_vault)
        plan = asyncio.run(orchestrator.compute_plan())

        assert [p.action for p in plan.scopes] == ["create"] * 4
        assert not (populated_vault / "Bases").exists()
        assert "[create] Bases/Website.base (7 views)" in plan.summary()

        asyncio.run(orchestrator.execute_plan(plan))
        replanned = asyncio.run(orchestrator.compute_plan())
        assert [p.action for p in replanned.scopes] == ["unchanged"] * 4

    def test_concurrency_gives_same_result(self, populated_vault: Path, make_orchestrator, tmp_path: Path) -> None:
        twin = tmp_path / "twin"
        shutil.copytree(populated_vault, twin)

        serial = asyncio.run(make_orchestrator(populated_vault, concurrency=1).sync_all())
        parallel = asyncio.run(make_orchestrator(twin, concurrency=4).sync_all())

        assert [o.to_dict() for o in serial.outcomes] == [o.to_dict() for o in parallel.outcomes]
        for rel in EXPECTED_BASES + ["Projects/Website.md", "Areas/Health.md"]:
            assert _read(populated_vault, rel) == _read(twin, rel)

    def test_concurrency_must_be_positive(self, vault: Path, make_orchestrator) -> None:
        with pytest.raises(ValueError):
            make_orchestrator(vault, concurrency=0)

    def test_runs_are_audited(self, populated_vault: Path, make_orchestrator, broken_store) -> None:
        store = broken_store("Bases/Health.base")
        asyncio.run(make_orchestrator(populated_vault, store=store, audit_vault=populated_vault).sync_all())

        entries = read_audit_log(populated_vault)
        assert len(entries) == 1
        assert entries[0].operation == "sync-manual"
        assert entries[0].writes.bases_created == 3
        assert entries[0].writes.embeds_updated == 2
        assert list(entries[0].failures) == ["area:Health"]
