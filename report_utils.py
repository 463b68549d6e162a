########################################################
# APIFUZZ - API Contract Fuzzer                        #
# Licensed under AGPL-V3.0                             #
# Author: Perry Mertens pamsniffer@gmail.com (C) 2025  #
# version 1.0  19-10-2026                              #
########################################################
from __future__ import annotations
from datetime import datetime
import html
import json
from collections import Counter
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from service_caller import CaseOutcome, CaseResult

OUTCOME_ORDER = [CaseOutcome.FAIL, CaseOutcome.PASS, CaseOutcome.SKIP]

OUTCOME_STYLES = {
    CaseOutcome.FAIL: "border-left: 4px solid #d32f2f; background-color: #ffebee;",
    CaseOutcome.PASS: "border-left: 4px solid #388e3c; background-color: #e8f5e9;",
    CaseOutcome.SKIP: "border-left: 4px solid #777; background-color: #f0f0f0;",
}

OUTCOME_TITLES = {
    CaseOutcome.FAIL: "Errors",
    CaseOutcome.PASS: "Passed",
    CaseOutcome.SKIP: "Skipped",
}


def _pretty_body(body: str) -> str:
    if not body or not body.strip():
        return "[empty]"
    try:
        return json.dumps(json.loads(body), indent=2, ensure_ascii=False)
    except ValueError:
        return body


class FuzzReportGenerator:
    def __init__(self, results: Sequence[CaseResult], base_url: str = "",
                 config_errors: Optional[Sequence[str]] = None) -> None:
        self.results = list(results)
        self.base_url = base_url or "-"
        self.config_errors = list(config_errors or [])
        self.timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

    def counts(self) -> Dict[str, int]:
        c = Counter(r.outcome.value for r in self.results)
        return {o.value: c.get(o.value, 0) for o in OUTCOME_ORDER}

    def per_fuzzer(self) -> Dict[str, Dict[str, int]]:
        out: Dict[str, Dict[str, int]] = {}
        for r in self.results:
            row = out.setdefault(r.fuzzer, {o.value: 0 for o in OUTCOME_ORDER})
            row[r.outcome.value] += 1
        return dict(sorted(out.items()))

    # ----------------------- Funtion generate_markdown ----------------------------#
    def generate_markdown(self) -> str:
        counts = self.counts()
        md: List[str] = ["# APIFUZZ Report\n"]
        md.append(f"- Base URL: {self.base_url}")
        md.append(f"- Timestamp: {self.timestamp}")
        md.append(f"- Total tests: {len(self.results)}")
        md.append(f"- Errors: {counts['fail']} | Passed: {counts['pass']} | Skipped: {counts['skip']}\n")

        if self.config_errors:
            md.append("## Configuration errors")
            md.extend(f"- {e}" for e in self.config_errors)
            md.append("")

        md.append("## Fuzzers")
        md.append("| Fuzzer | Errors | Passed | Skipped |")
        md.append("|---|---|---|---|")
        for name, row in self.per_fuzzer().items():
            md.append(f"| {name} | {row['fail']} | {row['pass']} | {row['skip']} |")
        md.append("")

        failures = [r for r in self.results if r.outcome is CaseOutcome.FAIL]
        if not failures:
            md.append("No errors found.\n")
            return "\n".join(md)
        md.append("## Errors")
        for r in failures:
            md.append(f"### Test {r.case_id}: {r.method} {r.path} [{r.fuzzer}]")
            md.append(f"- **Target**: {r.target}")
            md.append(f"- **Scenario**: {r.scenario}")
            md.append(f"- **Expected**: {r.expected}")
            md.append(f"- **Status Code**: {r.status_code if r.status_code is not None else '-'}")
            md.append(f"- **Reason**: {r.reason}\n")
        return "\n".join(md)

    def _format_case_html(self, r: CaseResult) -> str:
        status = r.status_code if r.status_code is not None else "-"
        return f"""
            <div class="finding" style="{OUTCOME_STYLES[r.outcome]} margin-bottom: 20px; padding: 15px; border-radius: 4px;">
                <h3 style="margin-top: 0;">
                    Test {r.case_id}: {html.escape(r.method)} {html.escape(r.path)}
                    <small>(HTTP {status})</small>
                </h3>
                <div class="meta" style="margin-bottom: 15px;">
                    <p><strong>Fuzzer:</strong> {html.escape(r.fuzzer)}</p>
                    <p><strong>Target:</strong> {html.escape(r.target)}</p>
                    <p><strong>Scenario:</strong> {html.escape(r.scenario)}</p>
                    <p><strong>Expected:</strong> {html.escape(r.expected)}</p>
                    <p><strong>Result:</strong> {html.escape(r.reason)}</p>
                    <p><strong>Timestamp:</strong> {html.escape(r.timestamp)}</p>
                </div>
                <div class="request-response" style="display: flex; gap: 20px; margin-top: 15px;">
                    <div class="request"><h5>Request body</h5><pre>{html.escape(_pretty_body(r.request_payload))}</pre></div>
                    <div class="response"><h5>Response body</h5><pre>{html.escape(_pretty_body(r.response_body))}</pre></div>
                </div>
                <div style="text-align: right; margin-top: 10px;">
                    <a href="#report-nav" style="color:#555;text-decoration:none;">- Back to index</a>
                </div>
            </div>
            """

    def _generate_section(self, outcome: CaseOutcome, results: List[CaseResult]) -> str:
        cases = "".join(self._format_case_html(r) for r in results)
        return f"""
        <div class="outcome-section">
            <h2 id="{outcome.value}-section" style="color: #333; margin-top: 30px; border-bottom: 1px solid #eee;">
                {OUTCOME_TITLES[outcome]} ({len(results)})
            </h2>
            {cases}
        </div>
        """

    def _generate_summary_table(self) -> str:
        rows = "".join(
            '<tr>'
            f'<td style="padding:6px 12px;">{html.escape(name)}</td>'
            f'<td style="padding:6px 12px;text-align:right;color:#d32f2f;">{row["fail"]}</td>'
            f'<td style="padding:6px 12px;text-align:right;">{row["pass"]}</td>'
            f'<td style="padding:6px 12px;text-align:right;">{row["skip"]}</td>'
            '</tr>'
            for name, row in self.per_fuzzer().items()
        )
        return (
            '<h2 style="margin-top:30px;">Run Summary</h2>'
            '<table style="border-collapse:collapse;font-family:Arial, sans-serif;font-size:14px;">'
            '<thead><tr>'
            '<th style="text-align:left;padding:6px 12px;">Fuzzer</th>'
            '<th style="text-align:right;padding:6px 12px;"><a href="#fail-section">Errors</a></th>'
            '<th style="text-align:right;padding:6px 12px;"><a href="#pass-section">Passed</a></th>'
            '<th style="text-align:right;padding:6px 12px;"><a href="#skip-section">Skipped</a></th>'
            f'</tr></thead><tbody>{rows}</tbody></table>'
        )

    def _generate_config_errors(self) -> str:
        if not self.config_errors:
            return ""
        items = "".join(f"<li>{html.escape(e)}</li>" for e in self.config_errors)
        return f'<div class="config-errors"><h2>Configuration errors</h2><ul>{items}</ul></div>'

    def _generate_html_head(self) -> str:
        return """
        <head>
            <title>APIFUZZ Report</title>
            <meta charset="UTF-8">
            <meta name="viewport" content="width=device-width, initial-scale=1.0">
            <style>
                body { font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; line-height: 1.6;
                       color: #333; max-width: 1200px; margin: 0 auto; padding: 20px; }
                h1 { border-bottom: 2px solid #eee; padding-bottom: 10px; }
                pre { background-color: #f5f5f5; padding: 10px; border-radius: 4px; overflow-x: auto;
                      font-family: Consolas, Monaco, 'Andale Mono', monospace; white-space: pre-wrap; }
                .request, .response { flex: 1; min-width: 0; background: white; padding: 10px;
                                      border-radius: 4px; box-shadow: 0 1px 3px rgba(0,0,0,0.1); }
                .no-findings { background-color: #e8f5e9; padding: 20px; border-radius: 4px; text-align: center; }
            </style>
        </head>
        """

    # ----------------------- Funtion generate_html ----------------------------#
    def generate_html(self) -> str:
        grouped: Dict[CaseOutcome, List[CaseResult]] = {o: [] for o in OUTCOME_ORDER}
        for r in self.results:
            grouped[r.outcome].append(r)
        if not self.results:
            body = ('<div class="no-findings"><h2>No tests executed</h2>'
                    '<p>No fuzzer produced a test case for the selected operations.</p></div>')
        else:
            # passed and skipped cases are only listed when there are no errors to show
            shown = [CaseOutcome.FAIL] if grouped[CaseOutcome.FAIL] else [CaseOutcome.PASS, CaseOutcome.SKIP]
            sections = "".join(self._generate_section(o, grouped[o]) for o in shown if grouped[o])
            body = self._generate_summary_table() + sections
        return f"""<!DOCTYPE html>
        <html>
        {self._generate_html_head()}
        <body>
            <a id="report-nav"></a>
            <header style="margin-bottom: 30px;">
                <h1 style="margin-bottom: 5px;">APIFUZZ Report</h1>
                <div class="report-meta" style="color: #666;">
                    <p><strong>Base URL:</strong> {html.escape(self.base_url)}</p>
                    <p><strong>Timestamp:</strong> {self.timestamp}</p>
                    <p><strong>Total tests:</strong> {len(self.results)}</p>
                </div>
            </header>
            {self._generate_config_errors()}
            {body}
        </body>
        </html>
        """

    def save_json(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        doc = {
            "base_url": self.base_url,
            "timestamp": self.timestamp,
            "summary": self.counts(),
            "config_errors": self.config_errors,
            "results": [r.to_dict() for r in self.results],
        }
        path.write_text(json.dumps(doc, indent=2, ensure_ascii=False), encoding="utf-8")
        return path

    def save(self, output_dir: Union[str, Path]) -> Dict[str, Path]:
        out = Path(output_dir)
        out.mkdir(parents=True, exist_ok=True)
        paths = {
            "html": out / "apifuzz_report.html",
            "markdown": out / "apifuzz_report.md",
            "json": out / "apifuzz_report.json",
        }
        paths["html"].write_text(self.generate_html(), encoding="utf-8")
        paths["markdown"].write_text(self.generate_markdown(), encoding="utf-8")
        self.save_json(paths["json"])
        return paths
