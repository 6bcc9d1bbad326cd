from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from flowcode.config import FlowcodeConfig
from flowcode.errors import PlanWriteError, StorageError
from flowcode.models import SECTION_ORDER, PlanArtifactSet, section_filename
from flowcode.utils.io import write_text

VERSION_DIR_PATTERN = re.compile(r"^v(\d+)$")


@dataclass
class SectionFile:
    section: str
    path: Path
    size: Optional[int]

    @property
    def exists(self) -> bool:
        return self.size is not None


class PlanVersioner:
    def __init__(
        self,
        config: FlowcodeConfig,
        reporter: Callable[[str], None] | None = None,
    ) -> None:
        self.config = config
        self.reporter = reporter

    def plan_root(self, project_path: str | Path) -> Path:
        return Path(project_path) / self.config.plan_folder

    def version_dir(self, project_path: str | Path, version: int) -> Path:
        return self.plan_root(project_path) / f"v{version}"

    def next_version(self, project_path: str | Path) -> int:
        plan_root = self.plan_root(project_path)
        versions: List[int] = []
        try:
            if not plan_root.is_dir():
                return 1
            for entry in plan_root.iterdir():
                match = VERSION_DIR_PATTERN.match(entry.name)
                if match and entry.is_dir():
                    versions.append(int(match.group(1)))
        except OSError as exc:
            raise StorageError(f"Unable to list plan versions in {plan_root}: {exc}", plan_root) from exc
        if not versions:
            return 1
        return max(versions) + 1

    def write(self, project_path: str | Path, artifacts: PlanArtifactSet, version: int) -> Path:
        versioned_dir = self.version_dir(project_path, version)
        plan_root = self.plan_root(project_path)
        try:
            versioned_dir.mkdir(parents=True, exist_ok=True)
            for section, content in artifacts.ordered():
                write_text(versioned_dir / section_filename(section), content)
                self._report(f"{section}.md")
            for section, content in artifacts.ordered():
                write_text(plan_root / section_filename(section), content)
        except OSError as exc:
            raise PlanWriteError(
                f"Failed writing plan v{version} under {plan_root}: {exc}",
                version,
                plan_root,
            ) from exc
        return versioned_dir

    def describe(self, project_path: str | Path, version: int) -> List[SectionFile]:
        versioned_dir = self.version_dir(project_path, version)
        described: List[SectionFile] = []
        for section in SECTION_ORDER:
            path = versioned_dir / section_filename(section)
            try:
                size = path.stat().st_size if path.is_file() else None
            except OSError as exc:
                raise StorageError(f"Unable to inspect plan file {path}: {exc}", path) from exc
            described.append(SectionFile(section=section, path=path, size=size))
        return described

    def _report(self, line: str) -> None:
        if self.reporter is not None:
            self.reporter(line)
