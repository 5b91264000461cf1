# =============================================================================
# Unit Tests - Source Catalog
# =============================================================================

import json

import pytest

from app.errors import CatalogError, ConfigurationError
from app.services.catalog import SourceCatalog, load_catalog, parse_catalog


class TestParseCatalog:
    """Tests for parse_catalog() against decoded JSON documents."""

    def test_generated_document(self):
        catalog = parse_catalog({
            "generated_at": "2025-01-01T00:00:00Z",
            "total_tabs_analyzed": 2,
            "tab_analysis": {"Revenue": "• Sales", "Opex": "• Costs"},
        })
        assert list(catalog) == ["Revenue", "Opex"]
        assert catalog["Opex"] == "• Costs"

    def test_bare_mapping(self):
        catalog = parse_catalog({"Revenue": "Sales"})
        assert dict(catalog) == {"Revenue": "Sales"}

    def test_not_an_object(self):
        with pytest.raises(CatalogError):
            parse_catalog(["Revenue"])

    def test_tab_analysis_not_an_object(self):
        with pytest.raises(CatalogError):
            parse_catalog({"tab_analysis": "oops"})

    def test_non_string_summary(self):
        with pytest.raises(CatalogError, match="Revenue"):
            parse_catalog({"Revenue": 42})

    def test_catalog_error_is_configuration_error(self):
        assert issubclass(CatalogError, ConfigurationError)


class TestSourceCatalog:

    def test_summary_text_folds_newlines(self):
        catalog = SourceCatalog({"Revenue": "• Sales\n• By month", "Opex": "Costs"})
        assert catalog.summary_text() == (
            "- Revenue: • Sales • By month\n- Opex: Costs"
        )

    def test_immutable(self):
        catalog = SourceCatalog({"Revenue": "Sales"})
        with pytest.raises(TypeError):
            catalog["Opex"] = "Costs"

    def test_source_dict_changes_do_not_leak(self):
        entries = {"Revenue": "Sales"}
        catalog = SourceCatalog(entries)
        entries["Opex"] = "Costs"
        assert "Opex" not in catalog

    def test_names_case_sensitive(self):
        catalog = SourceCatalog({"Revenue": "Sales"})
        assert "revenue" not in catalog


class TestLoadCatalog:
    """Tests for load_catalog() reading from disk."""

    def test_load(self, tmp_path):
        path = tmp_path / "tabs_mindmap.json"
        path.write_text(
            json.dumps({"tab_analysis": {"Revenue": "Sales"}}), encoding="utf-8",
        )
        assert dict(load_catalog(path)) == {"Revenue": "Sales"}

    def test_missing_file(self, tmp_path):
        with pytest.raises(CatalogError, match="not found"):
            load_catalog(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(CatalogError, match="unreadable"):
            load_catalog(path)
