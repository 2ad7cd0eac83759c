"""Tests for module assignment."""

import pytest

from docsync.generator.base import AssignmentRecommendation, RecommendationAction
from docsync.modules.assignment import ModuleAssigner, common_prefix, common_words
from docsync.modules.graph import (
    DataIntegrityError,
    InsufficientModuleFiles,
    InvalidModuleSlug,
    ModuleAlreadyExists,
    ModuleGraph,
)
from docsync.tracking.assignments import AssignmentIndex

from tests.fakes import seed_documented

AUTH_FILES = [
    "app/Http/Auth/LoginController.php",
    "app/Http/Auth/LogoutController.php",
    "app/Http/Auth/SessionGuard.php",
]
BILLING_FILES = ["app/Billing/Invoice.php", "app/Billing/Charge.php"]


@pytest.fixture
def graph(store, tier_store, config):
    return ModuleGraph(store, tier_store, config)


@pytest.fixture
def assigner(graph, tier_store, store, config, generator):
    return ModuleAssigner(graph, tier_store, AssignmentIndex(store, config), config, generator=generator)


def existing(module: str, files: list[str], confidence: float) -> AssignmentRecommendation:
    return AssignmentRecommendation(
        action=RecommendationAction.ASSIGN_TO_EXISTING,
        module=module,
        files=files,
        confidence=confidence,
    )


def new_module(slug: str, files: list[str], confidence: float = 0.9) -> AssignmentRecommendation:
    return AssignmentRecommendation(
        action=RecommendationAction.CREATE_NEW_MODULE,
        module_slug=slug,
        module_name=slug.title(),
        description=f"{slug} files",
        files=files,
        confidence=confidence,
    )


class TestHelpers:
    """Tests for naming helpers."""

    def test_common_prefix(self):
        """Test the shared basename prefix is found."""
        assert common_prefix(["a/UserController.php", "b/UserService.php"]) == "User"
        assert common_prefix([]) == ""

    def test_common_words(self):
        """Test words are split on case and separators."""
        assert common_words(["app/InvoiceMailer.php", "app/invoice_total.php"])[0] == "invoice"


class TestAnalysis:
    """Tests for analysis and heuristics."""

    def test_calculate_confidence(self, assigner):
        """Test directory grouping and shared prefixes raise confidence."""
        files = ["app/Auth/LoginA.php", "app/Auth/LoginB.php", "app/Auth/LoginC.php"]

        assert assigner.calculate_confidence(files, directory_based=True) == 0.8
        assert assigner.calculate_confidence(files, directory_based=False) == 0.5

    def test_identify_potential_modules(self, assigner):
        """Test directory and concept groupings need the minimum file count."""
        potential = assigner.identify_potential_modules(AUTH_FILES + BILLING_FILES)
        slugs = [p.suggested_slug for p in potential]

        assert "http-auth" in slugs
        assert "authentication" in slugs
        assert all(len(p.files) >= 3 for p in potential)
        assert potential == sorted(potential, key=lambda p: p.confidence, reverse=True)

    @pytest.mark.asyncio
    async def test_analyze_partitions_documented_files(self, assigner, graph, tier_store, store):
        """Test analyze rebuilds the index from modules and artifacts."""
        seed_documented(tier_store, store, AUTH_FILES + BILLING_FILES)
        await graph.create("billing", "Billing", "", BILLING_FILES)

        record = await assigner.analyze()

        assert record.assigned == {"billing": sorted(BILLING_FILES)}
        assert record.unassigned == sorted(AUTH_FILES)
        assert [p.suggested_slug for p in record.potential_modules][0] == "http-auth"

    @pytest.mark.asyncio
    async def test_suggest_module_for_file(self, assigner, graph):
        """Test a module with two files in the same directory is suggested."""
        await graph.create("billing", "Billing", "", BILLING_FILES)

        assert assigner.suggest_module_for_file("app/Billing/Refund.php") == "billing"
        assert assigner.suggest_module_for_file("app/Other/Thing.php") is None
        assert assigner.suggest_module_for_file("docs/source_documents/x.php") is None


class TestRecommendations:
    """Tests for recommendation processing."""

    @pytest.mark.asyncio
    async def test_confidence_gate(self, assigner, graph):
        """Test recommendations below the threshold are only recorded."""
        await graph.create("billing", "Billing", "", BILLING_FILES)
        processed = assigner.process_recommendations(
            [
                existing("billing", ["app/Billing/Refund.php"], 0.9),
                existing("billing", ["app/Billing/Tax.php"], 0.5),
            ]
        )

        assert [r.files for r in processed.assign_to_existing] == [["app/Billing/Refund.php"]]
        assert [r.files for r in processed.low_confidence] == [["app/Billing/Tax.php"]]
        assert processed.errors == []

    @pytest.mark.asyncio
    async def test_explicit_threshold(self, assigner, graph):
        """Test an explicit threshold overrides the configured one."""
        await graph.create("billing", "Billing", "", BILLING_FILES)
        processed = assigner.process_recommendations(
            [existing("billing", ["app/Billing/Tax.php"], 0.5)], threshold=0.4
        )

        assert len(processed.assign_to_existing) == 1

    def test_unknown_module_is_error(self, assigner):
        """Test assigning to an unknown module is reported, not applied."""
        processed = assigner.process_recommendations([existing("nope", ["a.php"], 0.95)])

        assert processed.applicable == []
        assert "Module not found" in processed.errors[0]["error"]

    @pytest.mark.asyncio
    async def test_validate_new_module(self, assigner, graph):
        """Test new module recommendations are validated."""
        await graph.create("billing", "Billing", "", BILLING_FILES)

        with pytest.raises(InvalidModuleSlug):
            assigner.validate_new_module(new_module("Bad Slug", AUTH_FILES))
        with pytest.raises(ModuleAlreadyExists):
            assigner.validate_new_module(new_module("billing", AUTH_FILES))
        with pytest.raises(InsufficientModuleFiles):
            assigner.validate_new_module(new_module("auth", AUTH_FILES[:2]))
        with pytest.raises(DataIntegrityError, match="missing fields"):
            assigner.validate_new_module(
                AssignmentRecommendation(action=RecommendationAction.CREATE_NEW_MODULE, confidence=0.9)
            )
        assigner.validate_new_module(new_module("auth", AUTH_FILES))


class TestApply:
    """Tests for applying recommendations."""

    @pytest.mark.asyncio
    async def test_auto_assign_applies_high_confidence_only(self, assigner, graph, tier_store, store, generator):
        """Test only recommendations above the threshold change modules."""
        seed_documented(tier_store, store, AUTH_FILES + BILLING_FILES + ["app/Billing/Refund.php"])
        await graph.create("billing", "Billing", "", BILLING_FILES)
        generator.recommendations = [
            existing("billing", ["app/Billing/Refund.php"], 0.9),
            new_module("auth", AUTH_FILES, confidence=0.5),
        ]

        result = await assigner.auto_assign()

        assert result.assigned == {"billing": ["app/Billing/Refund.php"]}
        assert result.created == []
        assert result.low_confidence == 1
        assert not graph.exists("auth")
        assert "app/Billing/Refund.php" in graph.require("billing").undocumented_files

        record = assigner.index.record
        assert record.unassigned == sorted(AUTH_FILES)
        assert record.low_confidence[0]["module_slug"] == "auth"
        assert record.last_ai_assignment is not None

    @pytest.mark.asyncio
    async def test_auto_assign_creates_module(self, assigner, graph, tier_store, store, generator):
        """Test a confident create_new_module recommendation creates the module."""
        seed_documented(tier_store, store, AUTH_FILES)
        generator.recommendations = [new_module("auth", AUTH_FILES)]

        result = await assigner.auto_assign()

        assert result.created == ["auth"]
        assert graph.require("auth").undocumented_files == AUTH_FILES
        assert assigner.index.record.assigned["auth"] == sorted(AUTH_FILES)
        assert assigner.index.record.unassigned == []

    @pytest.mark.asyncio
    async def test_file_assigned_at_most_once(self, assigner, graph, tier_store, store, generator):
        """Test two recommendations for one file assign it once."""
        seed_documented(tier_store, store, ["app/Billing/Refund.php"])
        await graph.create("billing", "Billing", "", BILLING_FILES)
        await graph.create("payments", "Payments", "", ["app/Pay/A.php"])
        generator.recommendations = [
            existing("billing", ["app/Billing/Refund.php"], 0.9),
            existing("payments", ["app/Billing/Refund.php"], 0.95),
        ]

        result = await assigner.auto_assign()

        assert result.files_assigned == 1
        assert graph.owners("app/Billing/Refund.php") == ["billing"]
        assert any("Not unassigned" in e for e in result.errors)

    @pytest.mark.asyncio
    async def test_nothing_unassigned_skips_generator(self, assigner, generator):
        """Test the generator is not called when every file is assigned."""
        processed = await assigner.recommend()

        assert processed.applicable == []
        assert generator.called("recommend_assignments") == []

    @pytest.mark.asyncio
    async def test_recommend_without_generator(self, graph, tier_store, store, config):
        """Test recommendations need a generator."""
        assigner = ModuleAssigner(graph, tier_store, AssignmentIndex(store, config), config)

        with pytest.raises(RuntimeError):
            await assigner.recommend()

    @pytest.mark.asyncio
    async def test_do_not_document(self, assigner, tier_store, store):
        """Test excluded files leave the unassigned list and can return."""
        seed_documented(tier_store, store, AUTH_FILES)
        await assigner.analyze()

        await assigner.add_do_not_document([AUTH_FILES[0]])
        assert AUTH_FILES[0] not in (await assigner.analyze()).unassigned

        await assigner.remove_do_not_document([AUTH_FILES[0]])
        assert AUTH_FILES[0] in (await assigner.analyze()).unassigned

    @pytest.mark.asyncio
    async def test_lifting_exclusion_needs_documentation(self, assigner, tier_store, store):
        """Test an excluded file with no tiers stays out of the unassigned list."""
        seed_documented(tier_store, store, AUTH_FILES[:1])
        await assigner.add_do_not_document([AUTH_FILES[0], BILLING_FILES[0]])

        await assigner.remove_do_not_document([AUTH_FILES[0], BILLING_FILES[0]])

        assert assigner.index.record.do_not_document == []
        assert assigner.index.record.unassigned == [AUTH_FILES[0]]
