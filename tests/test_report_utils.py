"""Tests for Markdown, HTML and JSON run reports."""

from __future__ import annotations

import json

import pytest

from fuzz_models import ExpectedResponse, FuzzCase, FuzzingData
from report_utils import FuzzReportGenerator
from service_caller import FuzzResponse, TestCaseRecorder


@pytest.fixture
def recorder() -> TestCaseRecorder:
    rec = TestCaseRecorder()
    data = FuzzingData("/users", "POST", '{"name": "x"}')
    four = ExpectedResponse.parse("4XX")
    rec.report_result(data, FuzzCase("TrailingSpacesInFields", "name", '{"name": "x "}', "trail", four), FuzzResponse(400))
    rec.report_result(data, FuzzCase("LeadingControlCharsInFields", "name", '{"name": "<b>"}', "lead", four),
                      FuzzResponse(200, "<script>ok</script>"))
    rec.skip(data, FuzzCase("RandomFuzzer", "name", "{}", "random"), "no match")
    rec.record_error("Path [/users] is missing the following mandatory entries: ['description']")
    return rec


class TestReport:
    def test_counts(self, recorder):
        report = FuzzReportGenerator(recorder.results, "http://api.test")
        assert report.counts() == {"fail": 1, "pass": 1, "skip": 1}
        assert report.per_fuzzer()["LeadingControlCharsInFields"]["fail"] == 1

    def test_markdown_lists_errors_only(self, recorder):
        md = FuzzReportGenerator(recorder.results, "http://api.test", recorder.config_errors).generate_markdown()
        assert "Errors: 1 | Passed: 1 | Skipped: 1" in md
        assert "## Errors" in md
        assert "LeadingControlCharsInFields]" in md
        assert "Configuration errors" in md

    def test_html_escapes_bodies(self, recorder):
        page = FuzzReportGenerator(recorder.results, "http://api.test").generate_html()
        assert "<script>ok</script>" not in page
        assert "&lt;script&gt;ok&lt;/script&gt;" in page
        assert "Errors (1)" in page

    def test_empty_run(self):
        page = FuzzReportGenerator([], "").generate_html()
        assert "No tests executed" in page
        assert "No errors found." in FuzzReportGenerator([]).generate_markdown()

    def test_save_writes_all_formats(self, recorder, tmp_path):
        paths = FuzzReportGenerator(recorder.results, "http://api.test", recorder.config_errors).save(tmp_path / "out")
        assert all(p.exists() for p in paths.values())
        doc = json.loads(paths["json"].read_text(encoding="utf-8"))
        assert doc["summary"]["fail"] == 1
        assert len(doc["results"]) == 3
        assert doc["config_errors"]
