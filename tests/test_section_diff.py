"""Tests for section-by-section overview diffs."""

from contracts import Persona, MonetisationModel, RiskItem, OverviewSection
from engine.section_diff import diff, section_text, overview_to_text, has_real_changes

from conftest import make_overview


class TestDiff:
    """Test diff()."""

    def test_identical_overviews_yield_no_entries(self):
        assert diff(make_overview(), make_overview()) == []

    def test_identical_overviews_yield_fallback_when_requested(self):
        result = diff(make_overview(), make_overview(), fallback=True)
        assert len(result) == 1
        assert result[0].is_fallback
        assert result[0].section == "Refined Elevator Pitch"
        assert result[0].before == result[0].after

    def test_single_changed_section(self):
        before = make_overview(problem_summary="A")
        after = make_overview(problem_summary="B")
        result = diff(before, after)
        assert len(result) == 1
        entry = result[0]
        assert entry.section == "Problem Summary"
        assert entry.before == "A"
        assert entry.after == "B"
        assert not entry.is_fallback

    def test_whitespace_only_change_is_ignored(self):
        before = make_overview(solution="A waitlist.")
        after = make_overview(solution="  A waitlist.\n")
        assert diff(before, after) == []
        assert not has_real_changes(diff(before, after, fallback=True))

    def test_entries_follow_section_order(self):
        before = make_overview()
        after = make_overview(
            risks=[RiskItem(risk="Churn", mitigation="Annual plans")],
            pitch="New pitch",
            market_size="Global",
        )
        sections = [d.section for d in diff(before, after)]
        assert sections == ["Refined Elevator Pitch", "Market Size", "Risks & Mitigations"]

    def test_structured_sections_are_flattened(self):
        before = make_overview()
        after = make_overview(core_features=["Smart waitlist", "SMS offers", "Deposit capture"])
        result = diff(before, after)
        assert len(result) == 1
        assert result[0].section == "Core Features"
        assert result[0].after == "1. Smart waitlist\n\n2. SMS offers\n\n3. Deposit capture"

    def test_missing_before(self):
        after = make_overview()
        result = diff(None, after)
        assert len(result) == 11
        assert all(d.before == "" for d in result)
        assert has_real_changes(result)

    def test_fallback_when_both_missing_text(self):
        empty = make_overview(pitch="")
        result = diff(empty, empty, fallback=True)
        assert len(result) == 1
        assert result[0].is_fallback
        assert result[0].before == ""
        assert result[0].after == ""

    def test_no_after_yields_empty_list(self):
        assert diff(None, None) == []
        assert diff(None, None, fallback=True) == []
        assert len(diff(make_overview(), None)) == 11


class TestSectionText:
    """Test flattening of structured sections."""

    def test_persona(self):
        overview = make_overview(personas=[
            Persona(name="Dr Lee", role="Owner", summary="Owns two clinics.", needs=["Revenue", "Time"]),
            Persona(name="Sam"),
        ])
        assert section_text(overview, OverviewSection.PERSONAS) == (
            "Dr Lee (Owner)\nSummary: Owns two clinics.\nNeeds: Revenue, Time\n\nSam"
        )

    def test_monetisation(self):
        overview = make_overview(monetisation=[
            MonetisationModel(model="Subscription", description="Per clinic", pricing_notes="£49"),
            MonetisationModel(model="Setup fee"),
        ])
        assert section_text(overview, OverviewSection.MONETISATION) == (
            "Subscription — Per clinic (Notes: £49)\n\nSetup fee"
        )

    def test_risks(self):
        overview = make_overview(risks=[
            RiskItem(risk="Integration access", mitigation="CSV import"),
            RiskItem(risk="Low SMS response"),
        ])
        assert section_text(overview, OverviewSection.RISKS) == (
            "1. Integration access\nMitigation: CSV import\n\n2. Low SMS response"
        )

    def test_empty_list_section(self):
        assert section_text(make_overview(core_features=[]), OverviewSection.CORE_FEATURES) == ""

    def test_overview_to_text_has_every_title(self):
        text = overview_to_text(make_overview(build_notes=""))
        assert text.startswith("Refined Elevator Pitch:\n")
        assert "Build Notes:\n(empty)" in text
        assert "Risks & Mitigations:" in text
