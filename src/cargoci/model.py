# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

SOURCES_DIR = "$(Build.SourcesDirectory)"
VM_IMAGE = "$(vmImage)"


class UnknownPlatformError(LookupError):
    """A platform name that is not an entry of the job's matrix."""


@dataclass(frozen=True)
class Platform:
    """One matrix entry: a display key and the agent image it runs on."""
    name: str
    vm_image: str


LINUX = Platform("Linux", "ubuntu-16.04")
MACOS = Platform("MacOs", "macOS-10.13")
WINDOWS = Platform("Windows", "vs2017-win2016")

PLATFORMS: Dict[str, Platform] = {p.name: p for p in (LINUX, MACOS, WINDOWS)}


@dataclass(frozen=True)
class Crate:
    """A sub-project with its own test suite, rooted at <sources>/<key>."""
    key: str

    @property
    def working_directory(self) -> str:
        return f"{SOURCES_DIR}/{self.key}"


@dataclass(frozen=True)
class Step:
    """
    A single step inside a CI job.

    Either a script step (`run` is set) or a reference to a step template
    (`template` is set and `parameters` carries its inputs).
    """
    name: str
    run: str | None = None
    cwd: str | None = None
    env: Dict[str, str] = field(default_factory=dict)
    template: str | None = None
    parameters: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_template(self) -> bool:
        return self.template is not None


@dataclass
class JobInstance:
    """One leg of a matrix: the job bound to a single platform."""
    job: "Job"
    platform: Platform

    @property
    def name(self) -> str:
        return f"{self.job.name}_{self.platform.name}"

    @property
    def variables(self) -> Dict[str, str]:
        return {"vmImage": self.platform.vm_image}


@dataclass
class Job:
    """
    A CI job replicated across a platform matrix.

    Steps run in order on every matrix leg.
    """
    name: str
    steps: List[Step]
    display_name: Optional[str] = None
    matrix: List[Platform] = field(default_factory=lambda: [LINUX])
    pool_image: str = VM_IMAGE

    @property
    def platform_names(self) -> List[str]:
        return [p.name for p in self.matrix]

    def platform(self, name: str) -> Platform:
        for p in self.matrix:
            if p.name.lower() == name.lower():
                return p
        raise UnknownPlatformError(f"Job '{self.name}' has no matrix entry '{name}'. Known: {self.platform_names}")

    def instances(self) -> List[JobInstance]:
        return [JobInstance(job=self, platform=p) for p in self.matrix]
