"""
Pure functions that reconcile a form structure with saved answers.

Answers for one part look like::

    {section_id: {sub_section_id: [{field_key: value, ...}, ...]}}

Field coupling is declared on the field itself:

* ``depends_on``: key of a sibling field in the same instance. Changing
  that sibling resets this field to ``""``, and the reset cascades to
  anything depending on this field in turn.
* ``copy_from``: ``{"trigger": <checkbox key>, "field": <source key>}``.
  When the trigger in this instance becomes true, the value of the source
  field is copied from the instance of whichever sub-section in the same
  section declares it.

Nothing here touches the database.
"""

import copy
from collections import defaultdict, deque
from typing import Any, Dict, Iterable, List, Optional

from core_portal.core.constants import PHONE_ANSWER_KEYS
from core_portal.core.exceptions import ValidationFailedError
from core_portal.models.enums import FieldType, FormPartKey
from core_portal.schemas.form import FormPartRead, FormSectionRead, FormSubSectionRead


# ----------------------------------------------------------------
# helpers
# ----------------------------------------------------------------
def _is_empty(value: Any) -> bool:
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return not value
    return False


def _is_truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1", "on")
    return bool(value)


def _instance_limit(sub_section: FormSubSectionRead) -> Optional[int]:
    if not sub_section.is_repeatable:
        return 1
    return sub_section.max_repeat


def _normalize_instances(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list) or not value:
        return [{}]
    return [item if isinstance(item, dict) else {} for item in value]


def find_sub_section(section: FormSectionRead, sub_section_id: str) -> FormSubSectionRead:
    for sub in section.sub_sections:
        if str(sub.id) == str(sub_section_id):
            return sub
    raise ValidationFailedError("Sub-section does not belong to this section")


def find_section(part: FormPartRead, section_id: str) -> FormSectionRead:
    for section in part.sections:
        if str(section.id) == str(section_id):
            return section
    raise ValidationFailedError("Section does not belong to this part")


def find_part(structure: Iterable[FormPartRead], part_key: FormPartKey) -> FormPartRead:
    for part in structure:
        if part.key == part_key:
            return part
    raise ValidationFailedError(f"Form part {part_key.value} is not used by this service")


# ----------------------------------------------------------------
# 1. PRE-FILLED STRUCTURE
# ----------------------------------------------------------------
def merge_part_answers(
    part: FormPartRead,
    saved: Optional[Dict[str, Any]],
    student_phone: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Deep-merges one part's saved answers with its structure so that every
    section and sub-section has an entry and every sub-section has at least
    one instance. Saved values always win over defaults.
    """
    merged = copy.deepcopy(saved) if isinstance(saved, dict) else {}

    for section in part.sections:
        section_key = str(section.id)
        section_answers = merged.get(section_key)
        if not isinstance(section_answers, dict):
            section_answers = {}
        merged[section_key] = section_answers

        for sub in section.sub_sections:
            instances = _normalize_instances(section_answers.get(str(sub.id)))
            limit = _instance_limit(sub)
            if limit:
                instances = instances[:limit]

            for instance in instances:
                for field in sub.fields:
                    if field.key not in instance and field.default_value is not None:
                        instance[field.key] = copy.deepcopy(field.default_value)
                    if (
                        part.key == FormPartKey.PROFILE
                        and field.type == FieldType.PHONE
                        and student_phone
                        and _is_empty(instance.get(field.key))
                    ):
                        instance[field.key] = student_phone

            section_answers[str(sub.id)] = instances

    return merged


def build_prefilled_answers(
    structure: Iterable[FormPartRead],
    saved_by_part: Dict[FormPartKey, Dict[str, Any]],
    student_phone: Optional[str] = None,
) -> Dict[str, Dict[str, Any]]:
    return {
        part.key.value: merge_part_answers(part, saved_by_part.get(part.key), student_phone)
        for part in structure
    }


# ----------------------------------------------------------------
# 2. FIELD CHANGE (cascade + copy)
# ----------------------------------------------------------------
def _dependents_map(sub_section: FormSubSectionRead) -> Dict[str, List[str]]:
    dependents: Dict[str, List[str]] = defaultdict(list)
    for field in sub_section.fields:
        if field.depends_on:
            dependents[field.depends_on].append(field.key)
    return dependents


def reset_dependents(sub_section: FormSubSectionRead, instance: Dict[str, Any], changed_key: str) -> List[str]:
    """Clears every field downstream of `changed_key`. Returns the cleared keys."""
    dependents = _dependents_map(sub_section)
    cleared: List[str] = []
    seen = {changed_key}
    queue = deque([changed_key])

    while queue:
        current = queue.popleft()
        for child in dependents.get(current, []):
            if child in seen:
                continue
            seen.add(child)
            instance[child] = ""
            cleared.append(child)
            queue.append(child)

    return cleared


def _source_instance(
    section: FormSectionRead,
    section_answers: Dict[str, List[Dict[str, Any]]],
    source_key: str,
    fallback: Dict[str, Any],
    current_sub_id: str,
) -> Dict[str, Any]:
    for sub in section.sub_sections:
        if any(f.key == source_key for f in sub.fields):
            if str(sub.id) == current_sub_id:
                return fallback
            instances = _normalize_instances(section_answers.get(str(sub.id)))
            return instances[0]
    return {}


def apply_copy_rules(
    section: FormSectionRead,
    section_answers: Dict[str, List[Dict[str, Any]]],
    sub_section: FormSubSectionRead,
    instance: Dict[str, Any],
    trigger_key: str,
) -> List[str]:
    """Copies `copy_from` sources into `instance` for fields triggered by `trigger_key`."""
    copied: List[str] = []
    for field in sub_section.fields:
        rule = field.copy_from or {}
        if rule.get("trigger") != trigger_key or not rule.get("field"):
            continue
        source = _source_instance(section, section_answers, rule["field"], instance, str(sub_section.id))
        instance[field.key] = copy.deepcopy(source.get(rule["field"], ""))
        copied.append(field.key)
    return copied


def apply_field_change(
    section: FormSectionRead,
    section_answers: Dict[str, List[Dict[str, Any]]],
    sub_section_id: str,
    index: int,
    key: str,
    value: Any,
) -> Dict[str, List[Dict[str, Any]]]:
    """
    Returns a new copy of `section_answers` with `key` set on the given
    instance, dependent fields reset, and copy rules applied.
    """
    sub_section = find_sub_section(section, sub_section_id)
    if not any(f.key == key for f in sub_section.fields):
        raise ValidationFailedError(f"Unknown field '{key}' for this sub-section")

    updated = copy.deepcopy(section_answers) if isinstance(section_answers, dict) else {}
    instances = _normalize_instances(updated.get(str(sub_section.id)))
    limit = _instance_limit(sub_section)
    if limit:
        instances = instances[:limit]
    if index >= len(instances):
        raise ValidationFailedError("Instance index out of range")

    instance = instances[index]
    previous = instance.get(key)
    instance[key] = value

    if previous != value:
        reset_dependents(sub_section, instance, key)

    if _is_truthy(value):
        apply_copy_rules(section, updated, sub_section, instance, key)

    updated[str(sub_section.id)] = instances
    return updated


# ----------------------------------------------------------------
# 3. REPEATABLE INSTANCES
# ----------------------------------------------------------------
def add_instance(sub_section: FormSubSectionRead, instances: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    current = [dict(i) for i in instances] if instances else [{}]
    if not sub_section.is_repeatable:
        raise ValidationFailedError(f"'{sub_section.title}' does not allow multiple entries")
    if sub_section.max_repeat and len(current) >= sub_section.max_repeat:
        raise ValidationFailedError(f"'{sub_section.title}' allows at most {sub_section.max_repeat} entries")

    new_instance = {
        f.key: copy.deepcopy(f.default_value)
        for f in sub_section.fields
        if f.default_value is not None
    }
    return current + [new_instance]


def remove_instance(sub_section: FormSubSectionRead, instances: List[Dict[str, Any]], index: int) -> List[Dict[str, Any]]:
    current = [dict(i) for i in instances] if instances else [{}]
    if len(current) <= 1:
        raise ValidationFailedError("At least one entry is required")
    if index < 0 or index >= len(current):
        raise ValidationFailedError("Instance index out of range")
    return current[:index] + current[index + 1:]


# ----------------------------------------------------------------
# 4. VALIDATION BEFORE SAVE
# ----------------------------------------------------------------
def validate_part_answers(part: FormPartRead, answers: Dict[str, Any], require_complete: bool = False) -> None:
    if not isinstance(answers, dict):
        raise ValidationFailedError("Answers must be an object keyed by section")

    sections = {str(s.id): s for s in part.sections}

    for section_id, section_answers in answers.items():
        section = sections.get(section_id)
        if section is None:
            raise ValidationFailedError(f"Unknown section '{section_id}' for part {part.key.value}")
        if not isinstance(section_answers, dict):
            raise ValidationFailedError(f"Answers for section '{section.title}' must be an object")

        subs = {str(s.id): s for s in section.sub_sections}
        for sub_id, instances in section_answers.items():
            sub = subs.get(sub_id)
            if sub is None:
                raise ValidationFailedError(f"Unknown sub-section '{sub_id}' in '{section.title}'")
            if not isinstance(instances, list) or not all(isinstance(i, dict) for i in instances):
                raise ValidationFailedError(f"Answers for '{sub.title}' must be a list of objects")

            limit = _instance_limit(sub)
            if limit and len(instances) > limit:
                raise ValidationFailedError(
                    f"'{sub.title}' allows at most {limit} {'entry' if limit == 1 else 'entries'}"
                )

    if require_complete:
        missing = missing_required_fields(part, answers)
        if missing:
            extra = f" (and {len(missing) - 1} more)" if len(missing) > 1 else ""
            raise ValidationFailedError(f"{missing[0]} is required{extra}")


def missing_required_fields(part: FormPartRead, answers: Dict[str, Any]) -> List[str]:
    missing: List[str] = []
    for section in part.sections:
        section_answers = answers.get(str(section.id)) or {}
        for sub in section.sub_sections:
            for instance in _normalize_instances(section_answers.get(str(sub.id))):
                for field in sub.fields:
                    if field.required and _is_empty(instance.get(field.key)):
                        missing.append(field.label)
    return missing


# ----------------------------------------------------------------
# 5. EXTRACTION
# ----------------------------------------------------------------
def extract_phone(answers: Dict[str, Any]) -> Optional[str]:
    for section_answers in (answers or {}).values():
        if not isinstance(section_answers, dict):
            continue
        for instances in section_answers.values():
            for instance in _normalize_instances(instances):
                for key in PHONE_ANSWER_KEYS:
                    value = instance.get(key)
                    if isinstance(value, str) and value.strip():
                        return value.strip()
    return None
