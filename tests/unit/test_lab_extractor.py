# ============================================================================
# FILE: tests/unit/test_lab_extractor.py
# ============================================================================
"""
Unit tests for heuristic lab-value extraction
"""

import pytest

from medical_interpreter.lab.extractor import LabValueExtractor
from medical_interpreter.lab.patterns import is_normal_result, is_unit_token, normalize_flag
from medical_interpreter.core.context import Flag
from medical_interpreter.utils.text_normalizer import normalize_lines


@pytest.fixture
def extractor():
    return LabValueExtractor()


def by_test(findings):
    return {f.test: f for f in findings}


class TestSingleLine:
    """Test line-local extraction"""

    def test_abnormal_row(self, extractor):
        findings = extractor.extract("Hemoglobin 9.2 g/dL 12.0-15.5 Low")

        assert len(findings) == 1
        hb = findings[0]
        assert hb.test == "Hemoglobin"
        assert hb.value == "9.2"
        assert hb.unit == "g/dL"
        assert hb.reference_range == "12.0 - 15.5"
        assert hb.flag == "Low"
        assert hb.severity == "low"
        assert hb.interpretation == "Low value (reference 12.0 - 15.5)"
        assert hb.source == "text"

    def test_normal_row_ignored(self, extractor):
        assert extractor.extract("Glucose 95 mg/dL 70-100 Normal") == []

    def test_pipe_table(self, extractor):
        findings = extractor.extract("Hemoglobin | 9.2 | g/dL | 12.0-15.5 | Low")

        assert len(findings) == 1
        assert findings[0].value == "9.2"
        assert findings[0].unit == "g/dL"
        assert findings[0].reference_range == "12.0 - 15.5"

    def test_labeled_range_is_not_a_normal_result(self, extractor):
        findings = extractor.extract("LDL 180 mg/dL (Normal 0-100) High")

        assert len(findings) == 1
        assert findings[0].test == "LDL"
        assert findings[0].value == "180"
        assert findings[0].reference_range == "0 - 100"
        assert findings[0].severity == "high"

    def test_flag_phrase_containing_normal(self, extractor):
        findings = extractor.extract("TSH 8.2 mIU/L 0.4-4.0 Above normal")

        assert len(findings) == 1
        assert findings[0].flag == "High"
        assert findings[0].unit == "mIU/L"

    def test_critical_flag(self, extractor):
        findings = extractor.extract("Sodium 128 mmol/L Critical Low 135-145")

        assert findings[0].flag == "Critical Low"
        assert findings[0].severity == "critical"
        assert findings[0].reference_range == "135 - 145"

    def test_range_from_next_line(self, extractor):
        text = "HEMATOLOGY PANEL\nPlatelets 95 x10^3/uL Low\nRef: 150-400"
        findings = extractor.extract(text)

        assert len(findings) == 1
        assert findings[0].test == "Platelets"
        assert findings[0].unit == "x10^3/uL"
        assert findings[0].reference_range == "150 - 400"
        assert findings[0].interpretation == "Low value (reference 150 - 400)"

    def test_duplicate_tests_keep_first(self, extractor):
        text = "Hemoglobin 9.2 g/dL 12.0-15.5 Low\nHemoglobin 8.1 g/dL 12.0-15.5 Low"
        findings = extractor.extract(text)

        assert len(findings) == 1
        assert findings[0].value == "9.2"


class TestMultiLine:
    """Test buffered multi-line rows"""

    def test_name_value_flag_on_separate_lines(self, extractor):
        text = "Vitamin D Total\n12.5 ng/mL\n30-100 Below range"
        findings = extractor.extract(text)

        assert len(findings) == 1
        vit_d = findings[0]
        assert vit_d.test == "Vitamin D Total"
        assert vit_d.value == "12.5"
        assert vit_d.unit == "ng/mL"
        assert vit_d.reference_range == "30 - 100"
        assert vit_d.flag == "Low"

    def test_line_local_result_wins(self, extractor, sample_lab_text):
        findings = by_test(extractor.extract(sample_lab_text))

        assert set(findings) == {"Hemoglobin", "Ferritin"}
        assert findings["Hemoglobin"].reference_range == "12.0 - 15.5"
        assert findings["Ferritin"].value == "8"


class TestRobustness:
    """Test failure handling"""

    def test_empty_input(self, extractor):
        assert extractor.extract("") == []
        assert extractor.extract(None) == []

    def test_never_raises(self, extractor):
        def broken(text):
            raise RuntimeError("parser bug")

        extractor._extract = broken
        assert extractor.extract("Hemoglobin 9.2 g/dL 12.0-15.5 Low") == []

    def test_deterministic(self, extractor, sample_lab_text):
        assert extractor.extract(sample_lab_text) == extractor.extract(sample_lab_text)


class TestPatterns:
    """Test shared pattern helpers"""

    def test_normal_result(self):
        assert is_normal_result("Result: Negative")
        assert is_normal_result("Glucose 95 WNL")
        assert not is_normal_result("Glucose 150 Normal: 70-100 High")
        assert not is_normal_result("TSH 8.2 below normal")

    def test_flag_normalization(self):
        assert normalize_flag("ELEVATED") is Flag.HIGH
        assert normalize_flag("reduced") is Flag.LOW
        assert normalize_flag("Critical  High") is Flag.CRITICAL_HIGH
        assert normalize_flag("fine") is Flag.NONE

    def test_unit_tokens(self):
        assert is_unit_token("g/dL")
        assert is_unit_token("%")
        assert not is_unit_token("Low")
        assert not is_unit_token("Ref")
        assert not is_unit_token("12.5")

    def test_normalize_lines(self):
        lines = normalize_lines("Header\n-----\n\tWBC\t\t7.2\nab\n")

        assert [line.text for line in lines] == ["Header", "WBC 7.2"]
        assert lines[1].raw == "WBC  7.2"
        assert [line.index for line in lines] == [0, 1]
