from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass(frozen=True)
class SeriesPoint:
    time: int
    value: int


@dataclass
class TenantSeries:
    namespace: str
    data: List[SeriesPoint] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "namespace": self.namespace,
            "data": [{"time": p.time, "value": p.value} for p in self.data],
        }


@dataclass
class ServiceSeries:
    service: str
    data: List[SeriesPoint] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "service": self.service,
            "data": [{"time": p.time, "value": p.value} for p in self.data],
        }


@dataclass
class TenantInfo:
    namespace: str
    count: int
    services: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "namespace": self.namespace,
            "count": self.count,
            "services": list(self.services),
        }
