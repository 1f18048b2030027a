"""Section-by-section comparison of two overviews.

Structured sections (personas, features, monetisation, risks) are flattened to
text before comparison so that a diff always shows reviewable prose.
"""

from typing import Callable, List, Optional, Sequence

from contracts.overview_contracts import (
    Overview,
    OverviewSection,
    SECTION_TITLES,
    Persona,
    MonetisationModel,
    RiskItem,
)
from contracts.improvement_contracts import SectionDiff


SECTION_ORDER: List[OverviewSection] = list(OverviewSection)


def _join_entries(entries: Sequence, formatter: Callable[[object, int], str]) -> str:
    if not entries:
        return ""
    return "\n\n".join(formatter(entry, index).strip() for index, entry in enumerate(entries))


def _format_persona(persona: Persona, _index: int) -> str:
    text = persona.name.strip() or "Persona"
    if persona.role and persona.role.strip():
        text += f" ({persona.role.strip()})"
    if persona.summary.strip():
        text += f"\nSummary: {persona.summary.strip()}"
    needs = [n.strip() for n in persona.needs if n.strip()]
    if needs:
        text += f"\nNeeds: {', '.join(needs)}"
    return text


def _format_feature(feature: str, index: int) -> str:
    return f"{index + 1}. {feature.strip()}"


def _format_monetisation(entry: MonetisationModel, _index: int) -> str:
    text = entry.model.strip() or "Model"
    if entry.description.strip():
        text += f" — {entry.description.strip()}"
    if entry.pricing_notes and entry.pricing_notes.strip():
        text += f" (Notes: {entry.pricing_notes.strip()})"
    return text


def _format_risk(entry: RiskItem, index: int) -> str:
    text = f"{index + 1}. {entry.risk.strip() or 'Risk'}"
    if entry.mitigation.strip():
        text += f"\nMitigation: {entry.mitigation.strip()}"
    return text


_LIST_FORMATTERS = {
    OverviewSection.PERSONAS: _format_persona,
    OverviewSection.CORE_FEATURES: _format_feature,
    OverviewSection.MONETISATION: _format_monetisation,
    OverviewSection.RISKS: _format_risk,
}


def section_text(overview: Optional[Overview], section: OverviewSection) -> str:
    """Normalized text of one section; empty string for a missing overview."""
    if overview is None:
        return ""
    value = getattr(overview, section.value)
    formatter = _LIST_FORMATTERS.get(section)
    if formatter is not None:
        return _join_entries(value, formatter)
    return value.strip()


def overview_to_text(overview: Overview) -> str:
    """Render every section under its title, for prompts and scoring."""
    parts = []
    for section in SECTION_ORDER:
        parts.append(f"{SECTION_TITLES[section]}:\n{section_text(overview, section) or '(empty)'}")
    return "\n\n".join(parts)


def diff(
    before: Optional[Overview],
    after: Optional[Overview],
    fallback: bool = False,
) -> List[SectionDiff]:
    """Compare two overviews section by section.

    Only sections whose normalized text differs are returned. With ``fallback``
    set and nothing differing while ``after`` exists, a single placeholder entry
    for the pitch section is returned with ``is_fallback=True`` so that a result
    never shows an empty diff.

    Args:
        before: Previous overview, or None
        after: New overview, or None
        fallback: Synthesize the pitch placeholder instead of an empty list

    Returns:
        List of SectionDiff in section declaration order
    """
    diffs: List[SectionDiff] = []
    for section in SECTION_ORDER:
        before_text = section_text(before, section)
        after_text = section_text(after, section)
        if before_text != after_text:
            diffs.append(
                SectionDiff(
                    section=SECTION_TITLES[section],
                    before=before_text,
                    after=after_text,
                )
            )

    if fallback and not diffs and after is not None:
        first = SECTION_ORDER[0]
        diffs.append(
            SectionDiff(
                section=SECTION_TITLES[first],
                before=section_text(before, first),
                after=section_text(after, first),
                is_fallback=True,
            )
        )

    return diffs


def has_real_changes(diffs: Sequence[SectionDiff]) -> bool:
    """True when at least one entry reflects an actual section change."""
    return any(not d.is_fallback for d in diffs)
