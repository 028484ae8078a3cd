"""Pytest configuration and fixtures for relocate tests."""

import os
from collections.abc import Callable, Generator

import pytest

from relocate.models import InstanceRecord


@pytest.fixture
def aws_credentials(tmp_path) -> Generator[None, None, None]:
    """Provide fake AWS credentials so boto3 never touches a real account.

    The shared config and credentials files point at paths that do not exist,
    so no profile from the host machine is ever picked up.
    """
    names = (
        "AWS_CONFIG_FILE",
        "AWS_SHARED_CREDENTIALS_FILE",
        "AWS_PROFILE",
        "AWS_ACCESS_KEY_ID",
        "AWS_SECRET_ACCESS_KEY",
        "AWS_SECURITY_TOKEN",
        "AWS_SESSION_TOKEN",
        "AWS_DEFAULT_REGION",
    )
    original = {name: os.environ.get(name) for name in names}
    os.environ.pop("AWS_PROFILE", None)
    os.environ["AWS_CONFIG_FILE"] = str(tmp_path / "aws" / "config")
    os.environ["AWS_SHARED_CREDENTIALS_FILE"] = str(tmp_path / "aws" / "credentials")
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"

    yield

    for name, value in original.items():
        if value is None:
            os.environ.pop(name, None)
        else:
            os.environ[name] = value


@pytest.fixture
def make_record() -> Callable[..., InstanceRecord]:
    """Build InstanceRecord objects with sensible defaults.

    Returns
    -------
    Callable[..., InstanceRecord]
        Factory accepting any InstanceRecord field as keyword override
    """

    def factory(**overrides: str) -> InstanceRecord:
        fields = {
            "instance_id": "i-0000000000000000",
            "name": "",
            "ip": "10.0.0.1",
            "instance_type": "t3.micro",
            "availability_zone": "ap-southeast-1a",
            "state": "running",
            "key_name": "staging-key",
            "image_id": "ami-00000000",
        }
        fields.update(overrides)
        return InstanceRecord(**fields)

    return factory


@pytest.fixture
def mixed_records(make_record: Callable[..., InstanceRecord]) -> list[InstanceRecord]:
    """Three staging and two prod instances in no particular order."""
    return [
        make_record(instance_id="i-web1", name="web-1", ip="54.0.0.1", key_name="prod-key"),
        make_record(instance_id="i-api1", name="api-1", ip="10.0.0.2", key_name="staging-key"),
        make_record(instance_id="i-ca01", name="commerce-app", ip="10.0.0.3", key_name="staging-key"),
        make_record(instance_id="i-zzz9", name="", ip="10.0.0.4", key_name="my-staging-key"),
        make_record(instance_id="i-db01", name="db-primary", ip="54.0.0.5", key_name="prod-db"),
    ]
