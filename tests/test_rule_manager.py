"""
Unit tests for the rule store.
"""

import json
import re

import pytest
import yaml

from foldersort.organization_logic.rule_manager import RuleStore, destination_error
from foldersort.utils.error_handler import CorruptStoreError


def write_rules(path, rules):
    path.write_text(json.dumps(rules))


class TestRuleStore:
    """Test RuleStore persistence and migration."""

    @pytest.fixture
    def rules_file(self, tmp_path):
        return tmp_path / "rules.json"

    @pytest.fixture
    def store(self, rules_file):
        return RuleStore(rules_file)

    def test_missing_file_is_initialized(self, store, rules_file):
        assert store.load() == []
        assert json.loads(rules_file.read_text()) == []

    def test_backfill_assigns_ids_and_enabled(self, store, rules_file):
        write_rules(
            rules_file,
            [
                {"name": "My  Docs", "type": ".pdf", "destination": "Docs"},
                {"namePattern": "CV_", "destination": "CVs"},
            ],
        )

        rules = store.load()

        assert rules[0]["id"] == "My_Docs_0"
        assert re.fullmatch(r"rule_2_[0-9a-f]{8}", rules[1]["id"])
        assert all(rule["enabled"] is True for rule in rules)
        assert json.loads(rules_file.read_text()) == rules

    def test_backfill_is_idempotent(self, store, rules_file):
        write_rules(rules_file, [{"type": ".pdf", "destination": "Docs"}])

        first = store.load()
        second = store.load()

        assert [r["id"] for r in first] == [r["id"] for r in second]

    def test_existing_ids_and_flags_are_kept(self, store, rules_file):
        stored = [{"id": "keep", "type": ".pdf", "destination": "Docs", "enabled": False}]
        write_rules(rules_file, stored)

        assert store.load() == stored

    def test_backfilled_ids_never_collide_with_stored_ones(self, store, rules_file):
        write_rules(
            rules_file,
            [
                {"id": "Docs_1", "type": ".a", "destination": "A"},
                {"name": "Docs", "type": ".b", "destination": "B"},
            ],
        )

        rules = store.load()

        assert rules[0]["id"] == "Docs_1"
        assert re.fullmatch(r"Docs_1_[0-9a-f]{8}", rules[1]["id"])
        assert store.load() == rules

    def test_backfill_keeps_ids_unique_within_one_pass(self):
        rules = [
            {"name": "Docs", "type": ".a", "destination": "A"},
            {"id": "Docs_0", "type": ".b", "destination": "B"},
            {"name": "Docs", "type": ".c", "destination": "C"},
        ]

        assert RuleStore.backfill(rules) is True

        ids = [r["id"] for r in rules]
        assert len(set(ids)) == 3
        assert ids[1] == "Docs_0"
        assert ids[2] == "Docs_2"

    def test_corrupt_file_raises(self, store, rules_file):
        rules_file.write_text("{not json")

        with pytest.raises(CorruptStoreError) as exc_info:
            store.load()

        assert exc_info.value.path == rules_file
        # The broken file is left alone for the user to fix
        assert rules_file.read_text() == "{not json"

    def test_wrong_shape_raises(self, store, rules_file):
        rules_file.write_text(json.dumps({"rules": []}))

        with pytest.raises(CorruptStoreError):
            store.load()

    def test_save_overwrites_atomically(self, store, rules_file, tmp_path):
        rules = [{"id": "r1", "type": ".txt", "destination": "Text", "enabled": True}]

        assert store.save(rules) is True

        assert json.loads(rules_file.read_text()) == rules
        assert [p.name for p in tmp_path.iterdir()] == ["rules.json"]

    def test_save_rejects_non_list(self, store):
        with pytest.raises(ValueError):
            store.save({"id": "r1"})

    @pytest.mark.parametrize("destination", ["../escape", "/abs", "", "."])
    def test_save_rejects_unusable_destination(self, store, rules_file, destination):
        store.save([{"id": "r1", "type": ".pdf", "destination": "Docs"}])

        with pytest.raises(ValueError) as exc_info:
            store.save([{"id": "bad", "type": ".pdf", "destination": destination}])

        assert "bad" in str(exc_info.value)
        assert json.loads(rules_file.read_text())[0]["id"] == "r1"

    def test_create_and_delete_rule(self, store):
        rule = store.create_rule("Docs", type=".pdf", name="PDFs")

        assert rule["id"].startswith("rule_1_")
        assert store.load() == [rule]

        assert store.delete_rule(rule["id"]) is True
        assert store.delete_rule(rule["id"]) is False
        assert store.load() == []

    def test_create_rule_validates(self, store):
        with pytest.raises(ValueError):
            store.create_rule("../outside", type=".pdf")

        with pytest.raises(ValueError):
            store.create_rule("Docs")


class TestRuleValidation:
    """Test validate_rule and destination checks."""

    def setup_method(self):
        self.store = RuleStore("unused.json")

    def test_valid_rule(self):
        assert self.store.validate_rule({"type": ".pdf", "destination": "Docs"}) == []

    def test_rule_needs_a_condition(self):
        errors = self.store.validate_rule({"destination": "Docs"})
        assert any("type" in e for e in errors)

    def test_enabled_must_be_bool(self):
        errors = self.store.validate_rule(
            {"type": ".pdf", "destination": "Docs", "enabled": "yes"}
        )
        assert errors == ["'enabled' must be true or false"]

    @pytest.mark.parametrize(
        "destination", ["", None, "/abs/path", "..", "../up", "a/../../up", "."]
    )
    def test_unusable_destinations(self, destination):
        assert destination_error(destination) is not None

    @pytest.mark.parametrize("destination", ["Docs", "Docs/2024", "a/../b"])
    def test_usable_destinations(self, destination):
        assert destination_error(destination) is None


class TestRuleYaml:
    """Test YAML export and import."""

    def test_export_then_import_into_empty_store(self, tmp_path):
        source = RuleStore(tmp_path / "a" / "rules.json")
        pdf = source.create_rule("Docs", type=".pdf")
        cv = source.create_rule("CVs", name_pattern="CV_")
        export_path = tmp_path / "rules.yaml"

        source.export_rules_to_yaml(export_path)
        exported = yaml.safe_load(export_path.read_text())
        assert [r["id"] for r in exported] == [pdf["id"], cv["id"]]

        target = RuleStore(tmp_path / "b" / "rules.json")
        imported = target.import_rules_from_yaml(export_path)

        assert imported == [pdf, cv]
        assert target.load() == [pdf, cv]

    def test_import_appends_and_regenerates_colliding_ids(self, tmp_path):
        store = RuleStore(tmp_path / "rules.json")
        existing = store.create_rule("Docs", type=".pdf")
        yaml_path = tmp_path / "more.yaml"
        yaml_path.write_text(
            yaml.safe_dump(
                [
                    {"id": existing["id"], "type": ".png", "destination": "Images"},
                    {"namePattern": "CV_", "destination": "CVs"},
                ]
            )
        )

        rules = store.import_rules_from_yaml(yaml_path)

        assert len(rules) == 3
        assert rules[0] == existing
        assert len({r["id"] for r in rules}) == 3
        assert all(r["enabled"] is True for r in rules)

    def test_import_keeps_named_rule_ids_unique(self, tmp_path):
        store = RuleStore(tmp_path / "rules.json")
        write_rules(store.rules_file, [{"id": "Docs_1", "type": ".a", "destination": "A"}])
        yaml_path = tmp_path / "named.yaml"
        yaml_path.write_text(
            yaml.safe_dump(
                [
                    {"name": "Docs", "type": ".x", "destination": "X"},
                    {"name": "Docs", "type": ".b", "destination": "B"},
                ]
            )
        )

        rules = store.import_rules_from_yaml(yaml_path)

        assert rules[0]["id"] == "Docs_1"
        assert len({r["id"] for r in rules}) == 3

    def test_import_replace(self, tmp_path):
        store = RuleStore(tmp_path / "rules.json")
        store.create_rule("Docs", type=".pdf")
        yaml_path = tmp_path / "only.yaml"
        yaml_path.write_text(yaml.safe_dump([{"type": ".png", "destination": "Images"}]))

        rules = store.import_rules_from_yaml(yaml_path, replace=True)

        assert [r["destination"] for r in rules] == ["Images"]

    def test_import_rejects_invalid_rules(self, tmp_path):
        store = RuleStore(tmp_path / "rules.json")
        yaml_path = tmp_path / "bad.yaml"
        yaml_path.write_text(yaml.safe_dump([{"type": ".png"}]))

        with pytest.raises(ValueError):
            store.import_rules_from_yaml(yaml_path)

        assert store.load() == []
