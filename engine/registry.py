"""
Registry of SLI and SLO definitions, the single source of truth read by every other component.

Writes replace the whole mapping (copy-on-write) so a reader holding a
snapshot never observes a half-applied edit.

Copyright (c) 2026 Stefan Kumarasinghe

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at http://www.apache.org/licenses/LICENSE-2.0
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import uuid
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from engine.enums import SloStatus
from engine.errors import NotFound, ValidationError
from engine.slo.definitions import (
    SliDefinition,
    SloDefinition,
    default_alert_rules,
    validate_sli,
    validate_slo,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistrySnapshot:
    slis: Mapping[str, SliDefinition]
    slos: Mapping[str, SloDefinition]

    def get(self, slo_id: str) -> SloDefinition:
        slo = self.slos.get(slo_id)
        if slo is None:
            raise NotFound(f"slo {slo_id!r} not found")
        return slo

    def sli_for(self, slo: SloDefinition) -> SliDefinition:
        sli = self.slis.get(slo.sli_id)
        if sli is None:
            raise NotFound(f"sli {slo.sli_id!r} not found")
        return sli

    def list_by_service(self, service_id: str, include_archived: bool = False) -> List[SloDefinition]:
        return [
            s for s in self.slos.values()
            if s.service_id == service_id and (include_archived or s.active)
        ]


class SloRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._snapshot = RegistrySnapshot(slis=MappingProxyType({}), slos=MappingProxyType({}))

    def snapshot(self) -> RegistrySnapshot:
        return self._snapshot

    def _publish(self, slis: Dict[str, SliDefinition], slos: Dict[str, SloDefinition]) -> None:
        self._snapshot = RegistrySnapshot(slis=MappingProxyType(slis), slos=MappingProxyType(slos))

    def register_sli(self, sli: SliDefinition) -> str:
        with self._lock:
            current = self._snapshot
            errors = validate_sli(sli, current.slis)
            if errors:
                raise ValidationError(errors)
            slis = dict(current.slis)
            slis[sli.sli_id] = sli
            self._publish(slis, dict(current.slos))
        log.info("registered sli %s (%s)", sli.sli_id, sli.aggregation.value)
        return sli.sli_id

    def get_sli(self, sli_id: str) -> SliDefinition:
        sli = self._snapshot.slis.get(sli_id)
        if sli is None:
            raise NotFound(f"sli {sli_id!r} not found")
        return sli

    def _prepare(self, definition: SloDefinition, current: RegistrySnapshot) -> SloDefinition:
        errors = validate_slo(definition, current.slis, current.slos)
        if errors:
            raise ValidationError(errors)
        sli = current.slis[definition.sli_id]
        objective = definition.target if sli.ratio_based else float(definition.time_slice_target)
        return dataclasses.replace(
            definition,
            slo_id=definition.slo_id or uuid.uuid4().hex[:12],
            alert_rules=definition.alert_rules or default_alert_rules(),
            status=SloStatus.active,
            superseded_by=None,
            objective=float(objective),
        )

    def register(self, definition: SloDefinition) -> str:
        with self._lock:
            current = self._snapshot
            slo = self._prepare(definition, current)
            slos = dict(current.slos)
            slos[slo.slo_id] = slo
            self._publish(dict(current.slis), slos)
        log.info("registered slo %s for service %s (objective %.4f%%)", slo.slo_id, slo.service_id, slo.objective)
        return slo.slo_id

    def get(self, slo_id: str) -> SloDefinition:
        return self._snapshot.get(slo_id)

    def list_by_service(self, service_id: str, include_archived: bool = False) -> List[SloDefinition]:
        return self._snapshot.list_by_service(service_id, include_archived)

    def services(self) -> List[str]:
        return sorted({s.service_id for s in self._snapshot.slos.values() if s.active})

    def active(self) -> List[SloDefinition]:
        return [s for s in self._snapshot.slos.values() if s.active]

    def supersede(self, slo_id: str, definition: SloDefinition) -> str:
        """Register ``definition`` and archive ``slo_id`` in one step."""
        with self._lock:
            current = self._snapshot
            old = current.get(slo_id)
            if not old.active:
                raise ValidationError([f"slo {slo_id!r} is already archived"])
            slo = self._prepare(definition, current)
            slos = dict(current.slos)
            slos[slo.slo_id] = slo
            slos[slo_id] = dataclasses.replace(old, status=SloStatus.archived, superseded_by=slo.slo_id)
            self._publish(dict(current.slis), slos)
        log.info("slo %s superseded by %s", slo_id, slo.slo_id)
        return slo.slo_id

    def retire(self, slo_id: str) -> SloDefinition:
        with self._lock:
            current = self._snapshot
            old = current.get(slo_id)
            retired = dataclasses.replace(old, status=SloStatus.archived)
            slos = dict(current.slos)
            slos[slo_id] = retired
            self._publish(dict(current.slis), slos)
        log.info("slo %s retired", slo_id)
        return retired

    def is_active(self, slo_id: str) -> bool:
        slo: Optional[SloDefinition] = self._snapshot.slos.get(slo_id)
        return slo is not None and slo.active
