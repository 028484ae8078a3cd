from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

import boto3

from .models import InstanceRecord

DEFAULT_PROFILE = "default"
DEFAULT_REGION = "ap-southeast-1"

logger = logging.getLogger(__name__)


class Ec2InventoryService:
    def __init__(self, profile: str | None = None, region: str = DEFAULT_REGION) -> None:
        self.profile = profile or None
        self.region = region or DEFAULT_REGION
        self._session = boto3.Session(profile_name=self.profile, region_name=self.region)

    @property
    def profile_label(self) -> str:
        return self.profile or DEFAULT_PROFILE

    def list_instances(self, tag_filter: str | None = None) -> list[InstanceRecord]:
        ec2 = self._session.client("ec2")
        paginator = ec2.get_paginator("describe_instances")
        filters = [
            {
                "Name": "instance-state-name",
                "Values": ["running"],
            }
        ]
        tag = parse_tag_filter(tag_filter)
        if tag is not None:
            key, value = tag
            filters.append({"Name": f"tag:{key}", "Values": [value]})
        elif tag_filter:
            logger.warning("Ignoring malformed tag filter %r (expected KEY=VALUE)", tag_filter)

        records: list[InstanceRecord] = []
        for page in paginator.paginate(Filters=filters):
            for reservation in page.get("Reservations", []):
                for instance in reservation.get("Instances", []):
                    records.append(self._to_record(instance))

        logger.info("Fetched %d running instances from %s (%s)", len(records), self.region, self.profile_label)
        return records

    @staticmethod
    def _to_record(instance: dict[str, Any]) -> InstanceRecord:
        return InstanceRecord(
            instance_id=instance["InstanceId"],
            name=_tag_value(instance.get("Tags", []), "Name"),
            ip=instance.get("PublicIpAddress") or instance.get("PrivateIpAddress") or "",
            instance_type=instance.get("InstanceType", ""),
            availability_zone=instance.get("Placement", {}).get("AvailabilityZone", ""),
            state=instance.get("State", {}).get("Name", "unknown"),
            key_name=instance.get("KeyName", ""),
            image_id=instance.get("ImageId", ""),
        )


def parse_tag_filter(value: str | None) -> tuple[str, str] | None:
    if not value:
        return None
    key, separator, tag_value = value.partition("=")
    if not separator or not key:
        return None
    return key, tag_value


def build_demo_instances(region: str = DEFAULT_REGION) -> list[InstanceRecord]:
    region = region or DEFAULT_REGION
    short_region = region.replace("-", "")
    return [
        InstanceRecord(
            instance_id=f"i-{short_region}a1b2c3d4e5f6",
            name="commerce-app",
            ip="54.10.10.21",
            instance_type="t3.small",
            availability_zone=f"{region}a",
            state="running",
            key_name="staging-key",
            image_id="ami-0a1b2c3d4e5f60001",
        ),
        InstanceRecord(
            instance_id=f"i-{short_region}112233445566",
            name="api-worker",
            ip="10.0.2.34",
            instance_type="t3.medium",
            availability_zone=f"{region}b",
            state="running",
            key_name="staging-key",
            image_id="ami-0a1b2c3d4e5f60001",
        ),
        InstanceRecord(
            instance_id=f"i-{short_region}998877665544",
            name="",
            ip="10.0.3.10",
            instance_type="t3.micro",
            availability_zone=f"{region}c",
            state="running",
            key_name="staging-key",
            image_id="ami-0a1b2c3d4e5f60002",
        ),
        InstanceRecord(
            instance_id=f"i-{short_region}0f0e0d0c0b0a",
            name="commerce-app",
            ip="54.20.20.42",
            instance_type="m5.large",
            availability_zone=f"{region}a",
            state="running",
            key_name="prod-key",
            image_id="ami-0a1b2c3d4e5f60003",
        ),
        InstanceRecord(
            instance_id=f"i-{short_region}5a5b5c5d5e5f",
            name="bastion",
            ip="54.20.20.7",
            instance_type="t3.nano",
            availability_zone=f"{region}b",
            state="running",
            key_name="prod-key",
            image_id="ami-0a1b2c3d4e5f60003",
        ),
    ]


def _tag_value(tags: Iterable[dict[str, str]], key: str) -> str:
    for tag in tags:
        if tag.get("Key") == key:
            return tag.get("Value", "")
    return ""
