from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class EnvironmentMode(Enum):
    STAGING = ("staging", "Staging")
    PRODUCTION = ("prod", "Prod")

    def __init__(self, marker: str, label: str) -> None:
        self.marker = marker
        self.label = label

    def toggled(self) -> EnvironmentMode:
        if self is EnvironmentMode.STAGING:
            return EnvironmentMode.PRODUCTION
        return EnvironmentMode.STAGING

    def accepts(self, key_name: str) -> bool:
        return self.marker in key_name


@dataclass(slots=True, frozen=True)
class InstanceRecord:
    instance_id: str
    name: str
    ip: str
    instance_type: str
    availability_zone: str
    state: str
    key_name: str
    image_id: str

    @property
    def display_name(self) -> str:
        return self.name or self.instance_id

    @property
    def is_running(self) -> bool:
        return self.state == "running"
