from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from jsonschema import ValidationError, validate

from flowcode.models import SECTION_ORDER, PlanArtifactSet
from flowcode.utils.io import SCHEMAS_DIR, read_text

FENCE_OPENERS = ("```md", "```json")
CLOSING_FENCE = "```"
FILES_OBJECT_PATTERN = re.compile(r"\{.*\"files\".*\}", flags=re.DOTALL)


class PlanExtractor:
    def __init__(self, schemas_dir: Path = SCHEMAS_DIR) -> None:
        self.schemas_dir = schemas_dir
        self.traces: List[str] = []
        self._schema: Dict | None = None

    def extract(self, response_text: str) -> Optional[PlanArtifactSet]:
        self.traces = []
        payload = self._parse_payload(response_text)
        if payload is None:
            return None
        return self._to_artifacts(payload)

    def _parse_payload(self, response_text: str) -> Any:
        block = self._scan_fenced_block(response_text)
        if block.strip():
            try:
                payload = json.loads(block)
            except json.JSONDecodeError as exc:
                self._record(f"fenced:parse-error line={exc.lineno} col={exc.colno}")
                return None
            self._record("fenced:block")
            return payload

        match = FILES_OBJECT_PATTERN.search(response_text)
        if not match:
            self._record("no-block")
            return None
        try:
            payload = json.loads(match.group(0))
        except json.JSONDecodeError as exc:
            self._record(f"fallback:parse-error line={exc.lineno} col={exc.colno}")
            return None
        self._record("fallback:raw-json")
        return payload

    def _scan_fenced_block(self, response_text: str) -> str:
        in_block = False
        started = False
        depth = 0
        buffer: List[str] = []

        for line in response_text.split("\n"):
            stripped = line.strip()
            if not in_block:
                if stripped.startswith(FENCE_OPENERS):
                    in_block = True
                    started = False
                    depth = 0
                    buffer = []
                continue

            if stripped == CLOSING_FENCE:
                if not started:
                    # Prose-only block: close it so a later fence can open a fresh candidate.
                    in_block = False
                    continue
                if depth == 0:
                    break
                # Braces inside string values skew the count; accept the block if it already parses.
                if self._parses("".join(buffer)):
                    self._record("fenced:unbalanced-but-parsed")
                    break

            if not started and stripped.startswith("{"):
                started = True
            if started:
                buffer.append(line + "\n")
                depth += line.count("{") - line.count("}")

        return "".join(buffer)

    def _to_artifacts(self, payload: Any) -> Optional[PlanArtifactSet]:
        if not isinstance(payload, dict):
            self._record("not-object")
            return None
        try:
            validate(instance=payload, schema=self._plan_schema())
        except ValidationError as exc:
            self._record(f"schema-invalid: {exc.message}")
            return None

        files = payload["files"]
        sections: Dict[str, str] = {}
        for section in SECTION_ORDER:
            value = files.get(section)
            if isinstance(value, str) and value:
                sections[section] = value
            elif value is not None:
                self._record(f"skipped-section:{section}")
        if not sections:
            self._record("no-sections")
            return None

        project_name = payload.get("projectName")
        return PlanArtifactSet(
            sections=sections,
            project_name=project_name if isinstance(project_name, str) else None,
        )

    def _parses(self, text: str) -> bool:
        try:
            json.loads(text)
        except json.JSONDecodeError:
            return False
        return True

    def _plan_schema(self) -> Dict:
        if self._schema is None:
            self._schema = json.loads(read_text(self.schemas_dir / "plan_payload.schema.json"))
        return self._schema

    def _record(self, note: str) -> None:
        self.traces.append(note)
        if os.getenv("FLOWCODE_DEBUG_EXTRACT", "") == "1":
            print(f"[extract] {note}")


def extract_plan(response_text: str) -> Optional[PlanArtifactSet]:
    return PlanExtractor().extract(response_text)
