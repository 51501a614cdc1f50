# ============================================================================
# src/medical_interpreter/interpretation/normalizers.py
# ============================================================================
"""
Field normalizers for AI JSON output.

Providers return the same logical field as a string, an object, a list or
not at all. Each normalizer is a pure function that accepts any of those
variants and returns the single shape the record stores.
"""

import json
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..core.context import Finding
from ..lab.patterns import format_range

_INLINE_RANGE = re.compile(r"(\d+\.?\d*)\s*(?:-|–|—|to)\s*(\d+\.?\d*)", re.IGNORECASE)
_BRACKETED = re.compile(r"\[.*?\]", re.DOTALL)
_QUOTED = re.compile(r"'([^']+)'|\"([^\"]+)\"")

_NESTED_LIST_KEYS = ("primary_symptoms", "primary_prevention", "first_line_treatments")
_LABEL_KEYS = ("name", "title", "text")


def _text(value: Any) -> str:
    if value is None:
        return ""
    return value.strip() if isinstance(value, str) else str(value).strip()


def _first(mapping: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = mapping.get(key)
        if value not in (None, ""):
            return value
    return None


def normalize_disease_name(value: Any) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    if isinstance(value, dict):
        name = _first(value, "primary_diagnosis", "diagnosis", "name")
        if isinstance(name, str) and name.strip():
            return name.strip()
    return "Unknown"


def normalize_cause(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, dict):
        parts = []
        if value.get("pathophysiology"):
            parts.append(_text(value["pathophysiology"]))
        if value.get("epidemiology"):
            parts.append(f"Epidemiology: {_text(value['epidemiology'])}")
        risk_factors = value.get("risk_factors")
        if isinstance(risk_factors, list) and risk_factors:
            parts.append(f"Risk factors: {', '.join(_text(r) for r in risk_factors)}")
        genetic = value.get("genetic_factors")
        if genetic and genetic != "None":
            parts.append(f"Genetic factors: {_text(genetic)}")
        return "\n\n".join(parts) if parts else json.dumps(value)
    return ""


def normalize_string_array(value: Any) -> List[str]:
    """
    Flatten a list-ish field into a list of strings.

    Mappings contribute their well-known nested lists, else a label field,
    else their string values. A string is parsed as JSON, then as an
    embedded [...] list, then as quoted items, else kept whole.
    """
    if not value:
        return []

    if isinstance(value, list):
        items: List[str] = []
        for item in value:
            if isinstance(item, str):
                items.append(item.strip())
            elif isinstance(item, dict):
                items.extend(_strings_from_mapping(item))
            elif item is not None:
                items.append(str(item).strip())
        return [item for item in items if item]

    if isinstance(value, str):
        try:
            return normalize_string_array(json.loads(value))
        except ValueError:
            pass
        match = _BRACKETED.search(value)
        if match:
            try:
                return normalize_string_array(json.loads(match.group(0)))
            except ValueError:
                quoted = [a or b for a, b in _QUOTED.findall(value)]
                if quoted:
                    return [q for q in quoted if q]
        return [value.strip()] if value.strip() else []

    if isinstance(value, dict):
        return _strings_from_mapping(value)
    text = _text(value)
    return [text] if text else []


def _strings_from_mapping(item: Dict[str, Any]) -> List[str]:
    for key in _NESTED_LIST_KEYS:
        if isinstance(item.get(key), list):
            return [_text(v) for v in item[key] if _text(v)]
    label = _first(item, *_LABEL_KEYS)
    if label is not None:
        return [_text(label)]
    strings: List[str] = []
    for val in item.values():
        if isinstance(val, str) and val.strip():
            strings.append(val.strip())
        elif isinstance(val, list):
            strings.extend(v.strip() for v in val if isinstance(v, str) and v.strip())
    return strings


def normalize_severity(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, dict):
        level = _first(value, "assessment", "level", "severity")
        return _text(level) if level is not None else json.dumps(value)
    return ""


def normalize_duration(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return _text(value)


def normalize_medications(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if not isinstance(value, list):
        return []
    names = []
    for item in value:
        if isinstance(item, str):
            name = item.strip()
        elif isinstance(item, dict):
            name = _text(_first(item, "name", "generic", "drug", "title"))
        else:
            name = ""
        if name:
            names.append(name)
    return names


def normalize_emergency_remedies(result: Dict[str, Any]) -> List[str]:
    raw = _first(
        result, "emergency_home_remedy", "emergency_home_remedies", "first_aid", "emergency_care"
    )
    if isinstance(raw, list):
        return [_text(item) for item in raw if item]
    return [_text(raw)] if raw else []


def normalize_ai_finding(item: Any) -> Optional[Finding]:
    """One AI abnormal_values entry, or None unless test and value are present."""
    if not isinstance(item, dict):
        return None

    test = _text(_first(item, "test", "name"))
    value = _text(_first(item, "value"))
    if not test or not value:
        return None

    interpretation = _text(_first(item, "interpretation", "meaning"))
    reference_range = _text(
        _first(item, "reference_range", "referenceRange", "range", "reference", "ref_range")
    )
    if not reference_range and interpretation:
        match = _INLINE_RANGE.search(interpretation)
        if match:
            reference_range = format_range(match.group(1), match.group(2))

    return Finding(
        test=test,
        value=value,
        unit=_text(_first(item, "unit", "units")),
        reference_range=reference_range,
        flag=_text(_first(item, "flag", "status")),
        severity=_text(_first(item, "severity", "level")),
        interpretation=interpretation,
        source="ai",
    )


def normalize_ai_findings(value: Any) -> List[Finding]:
    if not isinstance(value, list):
        return []
    return [f for f in (normalize_ai_finding(item) for item in value) if f is not None]


def normalize_video_resources(value: Any) -> List[Dict[str, Any]]:
    """AI-suggested videos; only items with both url and title survive."""
    if not isinstance(value, list):
        return []
    videos = []
    for item in value:
        if not isinstance(item, dict) or not item.get("url") or not item.get("title"):
            continue
        videos.append({
            "title": _text(item["title"]),
            "url": _text(item["url"]),
            "channel": _text(_first(item, "channel", "source")),
            "duration": _text(item.get("duration")),
            "reason": _text(_first(item, "reason", "summary")),
            "audioUrl": _text(item.get("audio_url")),
            "language": _text(item.get("language")) or "en",
        })
    return videos


# Global statistics: (record field, snake_case key, camelCase key)
_STATISTICS_TEXT_FIELDS = (
    ("globalPrevalence", "global_prevalence", "globalPrevalence"),
    ("incidenceRate", "incidence_rate", "incidenceRate"),
    ("mortalityRate", "mortality_rate", "mortalityRate"),
    ("ageGroups", "age_groups", "ageGroups"),
    ("genderDistribution", "gender_distribution", "genderDistribution"),
    ("economicImpact", "economic_impact", "economicImpact"),
    ("trends", "trends", "trends"),
    ("caseDistribution", "case_distribution", "caseDistribution"),
)

_PATIENT_IMPACT_FIELDS = (
    ("lifestyleImpact", "lifestyle_impact", "lifestyleImpact"),
    ("workImpact", "work_impact", "workImpact"),
    ("familyImpact", "family_impact", "familyImpact"),
    ("financialImpact", "financial_impact", "financialImpact"),
    ("emotionalImpact", "emotional_impact", "emotionalImpact"),
    ("longTermOutlook", "long_term_outlook", "longTermOutlook"),
    ("qualityOfLife", "quality_of_life", "qualityOfLife"),
    ("precautions", "precautions", "precautions"),
)


def _statistic_text(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, list):
        return "; ".join(_statistic_text(v) for v in value if _statistic_text(v))
    return ""


def normalize_global_statistics(value: Any) -> Optional[Dict[str, Any]]:
    """Fixed camelCase statistics record, or None when the section is missing."""
    if not isinstance(value, dict):
        return None
    stats: Dict[str, Any] = {
        field: _statistic_text(_first(value, snake, camel))
        for field, snake, camel in _STATISTICS_TEXT_FIELDS
    }
    regions = _first(value, "affected_regions", "affectedRegions")
    stats["affectedRegions"] = (
        [_statistic_text(r) for r in regions if _statistic_text(r)]
        if isinstance(regions, list) else []
    )
    stats["lastUpdated"] = datetime.now(timezone.utc).isoformat()
    return stats


def normalize_patient_impact(value: Any) -> Optional[Dict[str, Any]]:
    """Each impact category as a list of strings, or None when the section is missing."""
    if not isinstance(value, dict):
        return None
    facts: Dict[str, Any] = {
        field: normalize_string_array(_first(value, snake, camel))
        for field, snake, camel in _PATIENT_IMPACT_FIELDS
    }
    facts["lastUpdated"] = datetime.now(timezone.utc).isoformat()
    return facts
