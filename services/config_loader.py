from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

import yaml
from pydantic import ValidationError as PydanticValidationError

from api.requests import SloConfigFile, SloRequest
from engine.errors import ValidationError
from engine.registry import SloRegistry

log = logging.getLogger(__name__)


@dataclass
class LoadedConfig:
    sli_ids: List[str] = field(default_factory=list)
    slo_ids: List[str] = field(default_factory=list)


def stable_slo_id(req: SloRequest) -> str:
    """Identifier derived from the definition so restarts keep watermarks and alert state."""
    raw = f"{req.service}:{req.sli}:{req.name}"
    return hashlib.sha256(raw.encode()).hexdigest()[:12]


def parse_config(payload: Dict[str, Any]) -> SloConfigFile:
    try:
        return SloConfigFile.model_validate(payload or {})
    except PydanticValidationError as exc:
        raise ValidationError(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        ) from exc


def _apply(config: SloConfigFile, registry: SloRegistry) -> LoadedConfig:
    loaded = LoadedConfig()
    errors: List[str] = []
    for sli in config.slis:
        try:
            loaded.sli_ids.append(registry.register_sli(sli.to_definition()))
        except ValidationError as exc:
            errors.extend(f"sli {sli.id}: {e}" for e in exc.errors)
    for slo in config.slos:
        definition = slo.to_definition()
        if not definition.slo_id:
            definition = slo.model_copy(update={"id": stable_slo_id(slo)}).to_definition()
        try:
            loaded.slo_ids.append(registry.register(definition))
        except ValidationError as exc:
            errors.extend(f"slo {definition.slo_id}: {e}" for e in exc.errors)
    if errors:
        raise ValidationError(errors)
    return loaded


def load_config(payload: Dict[str, Any], registry: SloRegistry) -> LoadedConfig:
    """Register every SLI and SLO in ``payload``, or nothing when any definition is invalid."""
    config = parse_config(payload)
    # a dry run against a scratch registry keeps the live one untouched on failure
    _apply(config, SloRegistry())
    loaded = _apply(config, registry)
    log.info("loaded %d slis and %d slos from configuration", len(loaded.sli_ids), len(loaded.slo_ids))
    return loaded


def load_config_file(path: str, registry: SloRegistry) -> LoadedConfig:
    with Path(path).open("r", encoding="utf-8") as fh:
        payload = yaml.safe_load(fh)
    return load_config(payload or {}, registry)
