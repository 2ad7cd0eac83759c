"""Tests for the assignment index."""

import json

import pytest

from docsync.tracking.assignments import AssignmentIndex, build_partition


@pytest.fixture
def index(store, config):
    return AssignmentIndex(store, config)


class TestBuildPartition:
    """Tests for build_partition()."""

    def test_partition_is_disjoint_and_complete(self):
        """Test each documented file lands in exactly one place."""
        documented = ["app/a.php", "app/b.php", "app/c.php", "app/d.php"]
        assigned, unassigned, conflicts = build_partition(
            documented,
            {"billing": ["app/a.php"], "auth": ["app/b.php"]},
            ["app/c.php"],
        )

        assert assigned == {"auth": ["app/b.php"], "billing": ["app/a.php"]}
        assert unassigned == ["app/d.php"]
        assert conflicts == {}

    def test_exclusion_wins_over_membership(self):
        """Test an excluded path is never assigned."""
        assigned, unassigned, _ = build_partition(
            ["app/a.php"], {"billing": ["app/a.php"]}, ["app/a.php"]
        )

        assert assigned == {"billing": []}
        assert unassigned == []

    def test_conflict_goes_to_first_slug(self):
        """Test a path listed twice is owned by the first slug in order."""
        assigned, _, conflicts = build_partition(
            ["app/a.php"], {"zeta": ["app/a.php"], "alpha": ["app/a.php"]}, []
        )

        assert assigned == {"alpha": ["app/a.php"], "zeta": []}
        assert conflicts == {"app/a.php": ["alpha", "zeta"]}

    def test_module_members_need_not_be_documented(self):
        """Test undocumented module members are still assigned."""
        assigned, unassigned, _ = build_partition([], {"billing": ["app/new.php"]}, [])

        assert assigned == {"billing": ["app/new.php"]}
        assert unassigned == []


class TestAssignmentIndex:
    """Tests for AssignmentIndex."""

    @pytest.mark.asyncio
    async def test_rebuild_persists(self, index, store, config):
        """Test rebuild writes the partition to the store."""
        await index.rebuild(["app/a.php", "app/b.php"], {"billing": ["app/a.php"]})

        data = json.loads(store.read(config.assignment_log_path))
        assert data["assigned"] == {"billing": ["app/a.php"]}
        assert data["unassigned"] == ["app/b.php"]
        assert data["last_analysis"] is not None

    @pytest.mark.asyncio
    async def test_exclude_and_include(self, index):
        """Test exclusion removes a path everywhere and inclusion releases it."""
        await index.rebuild(["app/a.php", "app/b.php"], {"billing": ["app/a.php"]})

        await index.exclude(["app/a.php", "app/b.php"])
        assert index.record.do_not_document == ["app/a.php", "app/b.php"]
        assert index.record.unassigned == []
        assert index.record.assigned["billing"] == []

        await index.include(["app/b.php"], documented=["app/a.php", "app/b.php"])
        assert index.record.do_not_document == ["app/a.php"]
        assert index.record.unassigned == ["app/b.php"]

    @pytest.mark.asyncio
    async def test_include_skips_undocumented(self, index):
        """Test a released path without documentation is not listed as unassigned."""
        await index.exclude(["app/a.php", "app/b.php"])

        await index.include(["app/a.php", "app/b.php"], documented=["app/b.php"])

        assert index.record.do_not_document == []
        assert index.record.unassigned == ["app/b.php"]

    @pytest.mark.asyncio
    async def test_exclusion_survives_rebuild(self, index):
        """Test rebuild keeps do_not_document."""
        await index.exclude(["app/a.php"])
        record = await index.rebuild(["app/a.php"], {})

        assert record.unassigned == []
        assert record.do_not_document == ["app/a.php"]

    @pytest.mark.asyncio
    async def test_assign_moves_from_unassigned(self, index):
        """Test assign moves paths into a module."""
        await index.rebuild(["app/a.php", "app/b.php"], {})
        await index.assign("billing", ["app/a.php"])

        assert index.record.unassigned == ["app/b.php"]
        assert index.record.owner_of("app/a.php") == "billing"

    @pytest.mark.asyncio
    async def test_forget(self, index):
        """Test forget removes paths from assigned and unassigned."""
        await index.rebuild(["app/a.php", "app/b.php"], {"billing": ["app/a.php"]})
        await index.forget(["app/a.php", "app/b.php"])

        assert index.record.assigned == {"billing": []}
        assert index.record.unassigned == []

    @pytest.mark.asyncio
    async def test_rebuild_reports_conflicts(self, index):
        """Test conflicts are kept in the record."""
        record = await index.rebuild(["app/a.php"], {"a": ["app/a.php"], "b": ["app/a.php"]})

        assert record.conflicts == {"app/a.php": ["a", "b"]}
