"""
Rule storage and management for the organize engine.
"""

import os
import json
import logging
import secrets
import threading
from pathlib import Path
from typing import Dict, Any, List, Optional, Union
import yaml

from ..utils.error_handler import CorruptStoreError
from ..utils.file_utils import read_json, write_json_atomic, slugify

logger = logging.getLogger(__name__)


def destination_error(destination: Any) -> Optional[str]:
    """Explain why a destination cannot be used, or return None if it can.

    A destination is a folder path relative to the organized folder that
    must not point at the folder itself or outside of it.
    """
    if not destination or not isinstance(destination, str):
        return "Rule must have a non-empty 'destination'"

    normalized = os.path.normpath(destination)
    if os.path.isabs(destination):
        return "'destination' must be a relative folder name"
    if normalized == os.pardir or normalized.startswith(os.pardir + os.sep):
        return "'destination' must stay inside the organized folder"
    if normalized == os.curdir:
        return "'destination' must name a subfolder"
    return None


class RuleStore:
    """Persist the ordered rule list in ``rules.json``.

    Rules are plain dictionaries with the keys ``id``, ``type``,
    ``namePattern``, ``destination``, ``enabled`` and optionally ``name``.
    Their order is the evaluation order and is never changed here.
    """

    def __init__(self, rules_file: Union[str, Path]):
        """Initialize rule store.

        Args:
            rules_file: Path to the rules JSON document
        """
        self.rules_file = Path(rules_file)
        self._lock = threading.RLock()

    def ensure_file(self):
        """Create an empty rule list if the file does not exist yet."""
        with self._lock:
            if not self.rules_file.exists():
                write_json_atomic(self.rules_file, [])

    def _read(self) -> List[Dict[str, Any]]:
        """Read the raw rule list.

        Raises:
            CorruptStoreError: If the file exists but is unreadable or malformed
        """
        if not self.rules_file.exists():
            self.ensure_file()
            return []

        try:
            rules = read_json(self.rules_file)
        except json.JSONDecodeError as e:
            raise CorruptStoreError(self.rules_file, f"invalid JSON: {e}") from e
        except OSError as e:
            raise CorruptStoreError(self.rules_file, f"unreadable: {e}") from e

        if not isinstance(rules, list) or not all(isinstance(r, dict) for r in rules):
            raise CorruptStoreError(self.rules_file, "expected a list of rule objects")

        return rules

    @staticmethod
    def backfill(rules: List[Dict[str, Any]]) -> bool:
        """Assign missing ids and enabled flags in place.

        Args:
            rules: Rule dictionaries, in evaluation order

        Returns:
            True if any rule was changed
        """
        changed = False
        taken = {rule["id"] for rule in rules if rule.get("id")}
        for idx, rule in enumerate(rules):
            if not rule.get("id"):
                name = rule.get("name")
                if name:
                    rule_id = f"{slugify(str(name))}_{idx}"
                else:
                    rule_id = f"rule_{idx + 1}_{secrets.token_hex(4)}"
                # Synthesized ids must not collide with stored ones
                base = rule_id
                while rule_id in taken:
                    rule_id = f"{base}_{secrets.token_hex(4)}"
                rule["id"] = rule_id
                taken.add(rule_id)
                changed = True
            if "enabled" not in rule or rule["enabled"] is None:
                rule["enabled"] = True
                changed = True
        return changed

    def load(self) -> List[Dict[str, Any]]:
        """Load rules, backfilling ids and enabled flags.

        The backfilled list is written back when anything changed, so a
        second load returns the same ids.

        Returns:
            List of rule dictionaries

        Raises:
            CorruptStoreError: If rules.json exists but cannot be parsed
        """
        with self._lock:
            rules = self._read()
            if self.backfill(rules):
                logger.info(f"Backfilled ids/enabled flags in {self.rules_file}")
                write_json_atomic(self.rules_file, rules)
            return rules

    def save(self, rules: List[Dict[str, Any]]) -> bool:
        """Overwrite the persisted rule list.

        Args:
            rules: Rule dictionaries in evaluation order

        Returns:
            True once written

        Raises:
            ValueError: If rules is not a list of rule objects, or a rule
                has a destination that cannot be used
        """
        if not isinstance(rules, list):
            raise ValueError("rules must be a list")

        for rule in rules:
            if not isinstance(rule, dict):
                raise ValueError("rules must be a list of rule objects")
            problem = destination_error(rule.get("destination"))
            if problem:
                raise ValueError(f"Rule {rule.get('id') or '?'}: {problem}")

        with self._lock:
            write_json_atomic(self.rules_file, rules)

        logger.info(f"Saved {len(rules)} rules to {self.rules_file}")
        return True

    def validate_rule(self, rule: Dict[str, Any]) -> List[str]:
        """Validate a rule definition.

        Args:
            rule: Rule dictionary to validate

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        for key in ("type", "namePattern", "name", "id"):
            if rule.get(key) is not None and not isinstance(rule[key], str):
                errors.append(f"'{key}' must be a string")

        if not rule.get("type") and not rule.get("namePattern"):
            errors.append("Rule must set 'type' or 'namePattern' to match anything")

        problem = destination_error(rule.get("destination"))
        if problem:
            errors.append(problem)

        if "enabled" in rule and not isinstance(rule["enabled"], bool):
            errors.append("'enabled' must be true or false")

        return errors

    def create_rule(
        self,
        destination: str,
        type: Optional[str] = None,
        name_pattern: Optional[str] = None,
        name: Optional[str] = None,
        enabled: bool = True,
    ) -> Dict[str, Any]:
        """Append a new rule to the end of the list and persist it.

        Returns:
            The stored rule, including its generated id
        """
        rule: Dict[str, Any] = {"destination": destination, "enabled": enabled}
        if type:
            rule["type"] = type
        if name_pattern:
            rule["namePattern"] = name_pattern
        if name:
            rule["name"] = name

        errors = self.validate_rule(rule)
        if errors:
            raise ValueError(f"Invalid rule: {errors}")

        with self._lock:
            rules = self.load()
            existing = {r["id"] for r in rules}
            rule_id = f"rule_{len(rules) + 1}_{secrets.token_hex(4)}"
            while rule_id in existing:
                rule_id = f"rule_{len(rules) + 1}_{secrets.token_hex(4)}"
            rule["id"] = rule_id
            rules.append(rule)
            self.save(rules)

        return rule

    def delete_rule(self, rule_id: str) -> bool:
        """Remove a rule by id.

        Returns:
            True if a rule was removed
        """
        with self._lock:
            rules = self.load()
            remaining = [r for r in rules if r.get("id") != rule_id]
            if len(remaining) == len(rules):
                return False
            self.save(remaining)
        return True

    def export_rules_to_yaml(self, output_path: Union[str, Path]):
        """Export rules to YAML format.

        Args:
            output_path: Path for YAML file
        """
        rules = self.load()
        with open(output_path, "w") as f:
            yaml.safe_dump(rules, f, default_flow_style=False, sort_keys=False)

        logger.info(f"Exported {len(rules)} rules to {output_path}")

    def import_rules_from_yaml(
        self, yaml_path: Union[str, Path], replace: bool = False
    ) -> List[Dict[str, Any]]:
        """Import rules from a YAML file.

        Imported rules are appended after the existing ones unless
        ``replace`` is set.

        Args:
            yaml_path: Path to YAML file
            replace: Replace the current rule list instead of appending

        Returns:
            The resulting rule list
        """
        with open(yaml_path, "r") as f:
            imported = yaml.safe_load(f) or []

        if not isinstance(imported, list):
            raise ValueError("YAML rule file must contain a list of rules")

        # Validate imported rules
        for i, rule in enumerate(imported):
            if not isinstance(rule, dict):
                raise ValueError(f"Rule {i} is not a mapping")
            errors = self.validate_rule(rule)
            if errors:
                raise ValueError(f"Rule {i} validation errors: {errors}")

        with self._lock:
            rules = [] if replace else self.load()
            existing_ids = {r["id"] for r in rules}
            for rule in imported:
                # Colliding ids are dropped and regenerated below
                if rule.get("id") in existing_ids:
                    rule.pop("id")
                rules.append(rule)
                if rule.get("id"):
                    existing_ids.add(rule["id"])
            self.backfill(rules)
            self.save(rules)

        logger.info(f"Imported {len(imported)} rules from {yaml_path}")
        return rules
