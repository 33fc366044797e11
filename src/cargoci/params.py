"""Template parameters: the schema a pipeline passes to the test job template."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .model import Crate

DEFAULT_TEMPLATE = "azure-test.yml"


class _ParamLoader(yaml.SafeLoader):
    """SafeLoader that keeps float scalars as written: `rust: 1.40` is a version, not 1.4."""


def _float_as_text(loader: yaml.SafeLoader, node: yaml.ScalarNode) -> str:
    return loader.construct_scalar(node)


_ParamLoader.add_constructor("tag:yaml.org,2002:float", _float_as_text)


class ParameterError(Exception):
    """Raised when a parameter file cannot be read or does not fit the schema."""

    def __init__(self, path: str | Path | None, message: str, details: list[str] | None = None):
        self.path = str(path) if path is not None else None
        self.message = message
        self.details = details or []
        super().__init__(str(self))

    def __str__(self) -> str:
        where = f"{self.path}: " if self.path else ""
        lines = [f"{where}{self.message}"]
        lines.extend(f"  {d}" for d in self.details)
        return "\n".join(lines)


class CrateParam(BaseModel):
    model_config = ConfigDict(extra="forbid")

    key: str

    @field_validator("key")
    @classmethod
    def _relative_key(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("crate key must not be empty")
        if value.startswith(("/", "\\")) or ".." in value.replace("\\", "/").split("/"):
            raise ValueError(f"crate key must be a relative path inside the sources: {value!r}")
        return value

    def to_crate(self) -> Crate:
        return Crate(self.key)


class JobParameters(BaseModel):
    """Parameter names match the template's external schema exactly."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    name: str
    display_name: str = Field(alias="displayName")
    cross: bool = False
    rust: str
    crates: list[CrateParam] = []

    @field_validator("rust", mode="before")
    @classmethod
    def _version_as_text(cls, value: Any) -> Any:
        if isinstance(value, float):
            raise ValueError(f"rust version {value!r} was read as a number; quote it, e.g. rust: '1.40'")
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("crates")
    @classmethod
    def _unique_keys(cls, value: list[CrateParam]) -> list[CrateParam]:
        keys = [c.key for c in value]
        dupes = sorted({k for k in keys if keys.count(k) > 1})
        if dupes:
            raise ValueError(f"duplicate crate keys: {dupes}")
        return value

    @property
    def crate_list(self) -> list[Crate]:
        return [c.to_crate() for c in self.crates]

    def as_template_parameters(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


def _find_template_entry(doc: dict[str, Any], template_name: str | None) -> dict[str, Any] | None:
    jobs = doc.get("jobs")
    if not isinstance(jobs, list):
        return None
    entries = [j for j in jobs if isinstance(j, dict) and "template" in j]
    if template_name:
        entries = [j for j in entries if str(j["template"]).replace("\\", "/").endswith(template_name)]
    return entries[0] if entries else None


def parse_parameters(data: Any, *, path: str | Path | None = None, template_name: str | None = None) -> JobParameters:
    """
    Validate a parameter mapping.

    `data` may be the bare mapping, or a pipeline document whose `jobs`
    list references the template with a `parameters:` block.
    """
    if not isinstance(data, dict):
        raise ParameterError(path, "expected a mapping at the top level")

    if "jobs" in data:
        entry = _find_template_entry(data, template_name)
        if entry is None:
            wanted = template_name or "any template"
            raise ParameterError(path, f"no job entry references {wanted}")
        data = entry.get("parameters") or {}

    try:
        return JobParameters.model_validate(data)
    except ValidationError as e:
        details = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise ParameterError(path, "invalid template parameters", details) from e


def load_parameters(path: str | Path, *, template_name: str | None = None) -> JobParameters:
    p = Path(path).expanduser()
    if not p.exists():
        raise ParameterError(p, "parameter file not found")
    try:
        data = yaml.load(p.read_text(encoding="utf-8"), Loader=_ParamLoader)
    except yaml.YAMLError as e:
        raise ParameterError(p, "could not parse YAML", [str(e)]) from e
    return parse_parameters(data, path=p, template_name=template_name)
