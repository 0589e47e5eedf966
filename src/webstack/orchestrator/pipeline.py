from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from webstack.construct import ServerlessWebApp
from webstack.domain.errors import ValidationError
from webstack.domain.models import ConstructProps, EndpointSpec
from webstack.security.validator import SecurityValidationResult
from webstack.settings import DeploymentEnv

logger = logging.getLogger(__name__)


class AppManifest(BaseModel):
    """JSON description of one application: construct id, props and endpoints."""

    model_config = ConfigDict(extra="forbid")

    id: str
    props: ConstructProps = Field(default_factory=ConstructProps)
    endpoints: list[EndpointSpec] = Field(default_factory=list)
    enforce: bool = False


@dataclass(frozen=True)
class SynthResult:
    app: ServerlessWebApp
    manifest_path: str
    endpoints: list[tuple[str, str, str]]  # (method, path, function name)
    results: list[SecurityValidationResult]
    enforced: list[str]

    @property
    def failures(self) -> list[SecurityValidationResult]:
        return [r for r in self.results if not r.passed]


def _describe(exc: pydantic.ValidationError) -> str:
    err = exc.errors()[0]
    loc = ".".join(str(p) for p in err.get("loc", ()))
    msg = str(err.get("msg", "invalid value"))
    if msg.startswith("Value error, "):
        msg = msg[len("Value error, "):]
    return f"{loc}: {msg}" if loc else msg


def load_manifest(manifest_path: Path) -> AppManifest:
    try:
        text = manifest_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValidationError(f"cannot read manifest {manifest_path}: {exc}") from exc
    try:
        return AppManifest.model_validate_json(text)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"invalid manifest {manifest_path}: {_describe(exc)}") from exc


def run_synth(
    manifest_path: Path,
    enforce: Optional[bool] = None,
    env: Optional[DeploymentEnv] = None,
    log_results: bool = False,
) -> SynthResult:
    """
    Build the app a manifest describes, optionally enforce, then audit.

    ``enforce`` overrides the manifest's own flag when given. Relative
    source paths are resolved against the manifest's directory.
    """
    manifest_path = manifest_path.expanduser().resolve()
    manifest = load_manifest(manifest_path)
    base_dir = manifest_path.parent

    app = ServerlessWebApp(manifest.id, props=manifest.props, env=env)

    for spec in manifest.endpoints:
        fields = spec.model_dump()
        source = Path(spec.source_path)
        if not source.is_absolute():
            fields["source_path"] = str(base_dir / source)
        app.add_resource(**fields)

    enforced: list[str] = []
    if manifest.enforce if enforce is None else enforce:
        enforced = app.enforce_security_best_practices()

    results = app.validate_security(log_results=log_results)
    endpoints = [
        (entry.config.method, entry.config.path, entry.function.function_name) for entry in app.registry
    ]
    logger.info("synthesized %s from %s", manifest.id, manifest_path)

    return SynthResult(
        app=app,
        manifest_path=str(manifest_path),
        endpoints=endpoints,
        results=results,
        enforced=enforced,
    )
