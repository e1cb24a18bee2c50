"""Tests for deterministic file name synthesis."""

from __future__ import annotations

from datetime import date

import pytest

from scan_organizer.config import FilenameSettings
from scan_organizer.naming.filename import (
    FALLBACK_NAME,
    build_filename,
    clean_for_filename,
    format_date,
    is_valid_date,
    normalize_caps,
    replace_umlauts,
    sanitize_title,
)
from scan_organizer.schemas.classification import ClassificationComponents, Component

TODAY = date(2026, 10, 19)


@pytest.fixture()
def config() -> FilenameSettings:
    return FilenameSettings()


def _components(**overrides) -> ClassificationComponents:
    data = {
        "date": "2025-03-01",
        "title": "RECHNUNG ABC",
        "type": "invoice",
        "components": [
            Component(label="vendor", value="ABC GmbH", confidence=0.9),
            Component(label="amount", value="49.90 EUR", confidence=0.85),
        ],
    }
    data.update(overrides)
    return ClassificationComponents(**data)


class TestBuildFilename:
    def test_invoice_scenario(self, config: FilenameSettings) -> None:
        assert build_filename(_components(), config, today=TODAY) == "2025-03-01-Rechnung-Abc-ABC-GmbH-EUR4990"

    def test_deterministic(self, config: FilenameSettings) -> None:
        components = _components()
        assert build_filename(components, config, today=TODAY) == build_filename(components, config, today=TODAY)

    def test_invalid_date_uses_today(self, config: FilenameSettings) -> None:
        name = build_filename(_components(date="March 2025"), config, today=TODAY)
        assert name.startswith("2026-10-19-")

    def test_custom_date_format(self) -> None:
        config = FilenameSettings(date_format="DD.MM.YYYY")
        name = build_filename(_components(components=[]), config, today=TODAY)
        assert name == "01.03.2025-Rechnung-Abc"

    def test_date_disabled(self) -> None:
        config = FilenameSettings(include_date=False)
        assert build_filename(_components(components=[]), config, today=TODAY) == "Rechnung-Abc"

    def test_placeholder_title_dropped(self, config: FilenameSettings) -> None:
        name = build_filename(_components(title="Keine Angabe", components=[]), config, today=TODAY)
        assert name == "2025-03-01"

    @pytest.mark.parametrize("title", ["keine", "N/A", "Unbekannt", "UNKNOWN"])
    def test_other_placeholders_dropped(self, config: FilenameSettings, title: str) -> None:
        assert build_filename(_components(title=title, components=[]), config, today=TODAY) == "2025-03-01"

    def test_empty_result_falls_back(self) -> None:
        config = FilenameSettings(include_date=False, include_components=False)
        assert build_filename(_components(title=""), config, today=TODAY) == FALLBACK_NAME

    def test_umlauts_transliterated(self, config: FilenameSettings) -> None:
        name = build_filename(_components(title="Prüfbericht Größe", components=[]), config, today=TODAY)
        assert name == "2025-03-01-Pruefbericht-Groesse"

    def test_mixed_case_title_kept(self, config: FilenameSettings) -> None:
        name = build_filename(_components(title="Kfz-Versicherung HUK", components=[]), config, today=TODAY)
        assert name == "2025-03-01-Kfz-Versicherung-HUK"

    def test_low_confidence_components_skipped_not_counted(self, config: FilenameSettings) -> None:
        components = [
            Component(label="noise", value="Seite", confidence=0.3),
            Component(label="a", value="Alpha", confidence=0.9),
            Component(label="b", value="Beta", confidence=0.9),
            Component(label="c", value="Gamma", confidence=0.9),
            Component(label="d", value="Delta", confidence=0.9),
        ]
        name = build_filename(_components(title="", components=components), config, today=TODAY)
        assert name == "2025-03-01-Alpha-Beta-Gamma"

    def test_only_first_five_components_scanned(self, config: FilenameSettings) -> None:
        components = [Component(label="x", value=f"Low{i}", confidence=0.1) for i in range(4)]
        components += [
            Component(label="a", value="Alpha", confidence=0.9),
            Component(label="b", value="Beta", confidence=0.9),
        ]
        name = build_filename(_components(title="", components=components), config, today=TODAY)
        assert name == "2025-03-01-Alpha"

    def test_component_without_confidence_uses_default(self, config: FilenameSettings) -> None:
        components = [Component(label="ref", value="Ref123")]
        name = build_filename(_components(title="", components=components), config, today=TODAY)
        assert name == "2025-03-01"

    def test_single_character_component_dropped(self, config: FilenameSettings) -> None:
        components = [Component(label="page", value="X", confidence=0.9)]
        assert build_filename(_components(title="", components=components), config, today=TODAY) == "2025-03-01"

    def test_amount_with_german_format(self, config: FilenameSettings) -> None:
        components = [Component(label="total", value="€ 1.234,56", confidence=0.9)]
        name = build_filename(_components(title="", components=components), config, today=TODAY)
        assert name == "2025-03-01-EUR123456"

    def test_small_amount_kept_as_text(self, config: FilenameSettings) -> None:
        components = [Component(label="fee", value="5 EUR", confidence=0.9)]
        name = build_filename(_components(title="", components=components), config, today=TODAY)
        assert name == "2025-03-01-5-EUR"

    def test_custom_separators(self) -> None:
        config = FilenameSettings(part_separator="_", internal_separator="-")
        assert build_filename(_components(), config, today=TODAY) == "2025-03-01_Rechnung-Abc_ABC-GmbH_EUR4990"


class TestSanitizeTitle:
    def test_output_is_stable(self, config: FilenameSettings) -> None:
        once = sanitize_title("RECHNUNG ABC", config)
        assert once == "Rechnung-Abc"
        assert sanitize_title(once, config) == once

    def test_truncated_to_max_length(self, config: FilenameSettings) -> None:
        assert len(sanitize_title("Sehr " * 30, config)) <= config.title_max_length

    def test_normalize_caps_only_for_all_caps(self) -> None:
        assert normalize_caps("STROMRECHNUNG 2025") == "Stromrechnung 2025"
        assert normalize_caps("Stromrechnung EON") == "Stromrechnung EON"


class TestHelpers:
    def test_clean_for_filename_strips_unsafe_characters(self) -> None:
        assert clean_for_filename("Hello, World! / test", 50) == "Hello-World--test"

    def test_clean_for_filename_keeps_umlauts(self) -> None:
        assert clean_for_filename("Müller Straße", 50) == "Müller-Straße"

    def test_clean_for_filename_truncates(self) -> None:
        assert len(clean_for_filename("a" * 60, 50)) == 50

    def test_replace_umlauts(self) -> None:
        assert replace_umlauts("ÄÖÜäöüß") == "AeOeUeaeoeuess"

    def test_format_date(self) -> None:
        assert format_date("2025-03-01", "DD.MM.YYYY") == "01.03.2025"
        assert format_date("2025-03-01", "YYYYMMDD") == "20250301"

    def test_format_date_leaves_garbage_alone(self) -> None:
        assert format_date("garbage", "YYYY") == "garbage"

    @pytest.mark.parametrize(
        ("value", "expected"),
        [("2025-03-01", True), ("2025-3-1", False), ("01.03.2025", False), ("", False)],
    )
    def test_is_valid_date(self, value: str, expected: bool) -> None:
        assert is_valid_date(value) is expected
