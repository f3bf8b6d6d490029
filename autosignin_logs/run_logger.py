"""
Run Logger - one Markdown file per login run

Each run gets a header (session, URL, masked command line), a navigation
block that is kept current as attempts are added, per-attempt detection and
verification sections, and a closing summary.

Passwords never reach this file: callers log field names, selectors and
outcomes only.
"""

import json
import re
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

NAV_START = "<!-- NAV -->"
NAV_END = "<!-- /NAV -->"


class RunLogger:
    """
    Markdown log of a single login run.

    Usage:
        rl = RunLogger("alice@intranet", url="https://intranet.example.com/login")
        rl.log_heading("Attempt 1")
        rl.log_detection_summary(elements)
        rl.log_assessment(assessment)
        rl.log_outcome(outcome)
    """

    def __init__(
        self,
        target: str,
        url: Optional[str],
        command_line: Optional[str] = None,
        log_dir: str = "./logs",
        session_id: Optional[str] = None
    ):
        self.session_id = session_id or datetime.now().strftime('%Y%m%d-%H%M%S')
        self.dir = Path(log_dir)
        self.dir.mkdir(parents=True, exist_ok=True)
        self.path = self.dir / f'login-{self.session_id}.md'
        self._sections: List[Tuple[str, str]] = []

        header = [f"# Login run {self.session_id}", "", NAV_START, NAV_END, ""]
        if url:
            header.append(f"- **URL**: {url}")
        if target:
            header.append(f"- **Target**: {target}")
        if command_line:
            header += ["", f"```bash\n{command_line}\n```"]
        self.path.write_text("\n".join(header) + "\n\n", encoding='utf-8')

    def _write(self, text: str):
        with open(self.path, 'a', encoding='utf-8') as f:
            f.write(text)

    def log_heading(self, text: str):
        """Start a new section and list it in the navigation block."""
        anchor = re.sub(r"\s+", "-", re.sub(r"[^a-z0-9\s-]", "", text.strip().lower()))
        self._sections.append((text, anchor))
        self._write(f"\n---\n\n## {text}\n\n")
        self._refresh_nav()

    def log_text(self, text: str):
        self._write(f"{text}\n\n")

    def log_kv(self, key: str, value: str):
        self._write(f"- {key}: {value}\n")

    def log_detection_summary(self, elements):
        """
        Write the detected form as a table.

        Args:
            elements: FormElements (anything with a `describe()` dict)
        """
        summary = elements.describe()
        lines = ["### 🔍 Detected Login Form", "", "| Field | Status | Tier | Selector |", "|---|---|---|---|"]
        for name, info in summary.get("fields", {}).items():
            status = "✅ found" if info.get("found") else "➖ missing"
            selector = str(info.get("selector") or "")
            if len(selector) > 60:
                selector = selector[:60] + "..."
            lines.append(f"| {name} | {status} | {info.get('method') or ''} | `{selector}` |")
        lines += [
            "",
            f"**Method:** {summary.get('method')} | **Confidence:** {summary.get('confidence')} | "
            f"**Valid:** {'yes' if summary.get('valid') else 'no'}",
        ]
        self._write("\n".join(lines) + "\n\n")

    def log_assessment(self, assessment):
        """Record a post-submission verification result."""
        mark = "✅" if assessment.success else "❌"
        self._write(f"**Verification:** {mark} {assessment.reason} (confidence {assessment.confidence})\n")
        if assessment.matched_indicator:
            self._write(f"  - matched: `{assessment.matched_indicator}`\n")
        self._write("\n")

    def log_outcome(self, outcome):
        """Close the run with the final LoginOutcome."""
        data = json.dumps(outcome.to_dict(), indent=2, ensure_ascii=False, default=str)
        status = "✅ SUCCESS" if outcome.success else f"❌ {outcome.kind.value.upper()}"
        self._write("\n---\n\n## Summary\n\n")
        self._write(f"**Status:** {status}\n**Attempts:** {outcome.attempts}\n**Duration:** {outcome.elapsed_ms}ms\n")
        if not outcome.success and outcome.reason:
            self._write(f"\n**Reason:** {outcome.reason}\n")
        self._write(f"\n```json\n{data}\n```\n")

    def _refresh_nav(self):
        content = self.path.read_text(encoding='utf-8')
        items = "\n".join(f"- [{title}](#{anchor})" for title, anchor in self._sections)
        start = content.index(NAV_START) + len(NAV_START)
        end = content.index(NAV_END)
        self.path.write_text(content[:start] + "\n" + items + "\n" + content[end:], encoding='utf-8')

    @property
    def log_path(self) -> str:
        return str(self.path)


def create_run_logger(
    target: str,
    url: Optional[str] = None,
    command_line: Optional[str] = None,
    log_dir: str = "./logs"
) -> RunLogger:
    """Create a new run logger instance"""
    return RunLogger(target=target, url=url, command_line=command_line, log_dir=log_dir)
