"""boto3 adapters for the fleet-spine collaborator protocols.

Maps the registry-neutral contracts in :mod:`fleetspine.core.protocols`
onto AWS services:

    ProvisioningRegistry -> EC2 DescribeInstances
    HeartbeatRegistry    -> SSM DescribeInstanceInformation
    CommandService       -> SSM SendCommand / ListCommandInvocations / ListCommands
    ObjectStore          -> S3 GetBucketLocation / ListObjectsV2 / GetObject

Every adapter wraps botocore failures (``ClientError``, ``BotoCoreError``)
in the matching typed fleet-spine error, chaining the original as cause.
Clients are plain boto3 clients; they are safe to share between threads
running separate orchestrations.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from fleetspine.command.models import (
    DispatchRecord,
    DispatchRequest,
    Filter,
    InvocationRecord,
)
from fleetspine.command.orchestrator import FleetClients
from fleetspine.core.errors import (
    DispatchNotFoundError,
    DispatchSubmissionError,
    ErrorCategory,
    FleetSpineError,
    InvocationQueryError,
    OutputRetrievalError,
    RegistryQueryError,
)
from fleetspine.core.logging import get_logger
from fleetspine.core.settings import FleetSettings

logger = get_logger(__name__)

# S3 reports buckets in the original region with an empty location constraint
_DEFAULT_BUCKET_REGION = "us-east-1"

_CLIENT_CONFIG = Config(retries={"max_attempts": 3, "mode": "adaptive"})


def _error_code(exc: Exception) -> str:
    if isinstance(exc, ClientError):
        return str(exc.response.get("Error", {}).get("Code") or "ClientError")
    return exc.__class__.__name__


# ---------------------------------------------------------------------------
# Fleet directory
# ---------------------------------------------------------------------------


class Ec2ProvisioningRegistry:
    """Counts EC2 instances matching a filter set."""

    def __init__(self, ec2: Any) -> None:
        self.ec2 = ec2

    def describe(self, filters: Sequence[Filter]) -> int:
        ec2_filters = [{"Name": f.name, "Values": list(f.values)} for f in filters]
        try:
            count = 0
            for page in self.ec2.get_paginator("describe_instances").paginate(Filters=ec2_filters):
                for reservation in page.get("Reservations", []):
                    count += len(reservation.get("Instances", []))
            return count
        except (BotoCoreError, ClientError) as exc:
            raise RegistryQueryError(
                f"readiness: ec2 DescribeInstances failed ({_error_code(exc)}): {exc}",
                cause=exc,
            ).with_context(registry="provisioning") from exc


class SsmHeartbeatRegistry:
    """Lists SSM managed-instance agents and their ping status."""

    def __init__(self, ssm: Any) -> None:
        self.ssm = ssm

    def describe(self, filters: Sequence[Filter]) -> list[tuple[str, str]]:
        ssm_filters = [{"Key": f.name, "Values": list(f.values)} for f in filters]
        try:
            agents: list[tuple[str, str]] = []
            paginator = self.ssm.get_paginator("describe_instance_information")
            for page in paginator.paginate(Filters=ssm_filters):
                for info in page.get("InstanceInformationList", []):
                    agents.append((info.get("InstanceId", ""), info.get("PingStatus", "")))
            return agents
        except (BotoCoreError, ClientError) as exc:
            raise RegistryQueryError(
                f"readiness: ssm DescribeInstanceInformation failed ({_error_code(exc)}): {exc}",
                cause=exc,
            ).with_context(registry="heartbeat") from exc


# ---------------------------------------------------------------------------
# Command service
# ---------------------------------------------------------------------------


class SsmCommandService:
    """Sends SSM Run Command requests and reads their status."""

    def __init__(self, ssm: Any) -> None:
        self.ssm = ssm

    def submit(self, request: DispatchRequest, delivery_timeout: int) -> str:
        kwargs: dict[str, Any] = {
            "DocumentName": request.document_name,
            "Targets": [{"Key": t.key, "Values": list(t.values)} for t in request.targets],
            "Parameters": {name: list(values) for name, values in request.parameters.items()},
            "Comment": request.comment,
            "TimeoutSeconds": delivery_timeout,
        }
        if request.output_location is not None:
            kwargs["OutputS3BucketName"] = request.output_location.bucket
            if request.output_location.key_prefix:
                kwargs["OutputS3KeyPrefix"] = request.output_location.key_prefix

        try:
            resp = self.ssm.send_command(**kwargs)
        except (BotoCoreError, ClientError) as exc:
            raise DispatchSubmissionError(
                f"dispatch: ssm SendCommand failed ({_error_code(exc)}): {exc}",
                cause=exc,
            ).with_context(document_name=request.document_name) from exc

        command = resp.get("Command") or {}
        dispatch_id = command.get("CommandId")
        if not dispatch_id:
            raise DispatchSubmissionError(
                "dispatch: ssm SendCommand returned no CommandId"
            ).with_context(document_name=request.document_name)
        return dispatch_id

    def list_invocations(self, dispatch_id: str) -> list[InvocationRecord]:
        try:
            records = []
            paginator = self.ssm.get_paginator("list_command_invocations")
            for page in paginator.paginate(CommandId=dispatch_id):
                for invocation in page.get("CommandInvocations", []):
                    records.append(
                        InvocationRecord(
                            target_id=invocation.get("InstanceId", ""),
                            status=invocation.get("Status", ""),
                        )
                    )
            return records
        except (BotoCoreError, ClientError) as exc:
            raise InvocationQueryError(
                f"poll: ssm ListCommandInvocations failed ({_error_code(exc)}): {exc}",
                cause=exc,
            ).with_context(dispatch_id=dispatch_id) from exc

    def get_dispatch(self, dispatch_id: str) -> DispatchRecord:
        try:
            resp = self.ssm.list_commands(CommandId=dispatch_id)
        except ClientError as exc:
            if _error_code(exc) == "InvalidCommandId":
                raise DispatchNotFoundError(dispatch_id, cause=exc) from exc
            raise self._status_error(dispatch_id, exc) from exc
        except BotoCoreError as exc:
            raise self._status_error(dispatch_id, exc) from exc

        commands = resp.get("Commands") or []
        if not commands:
            raise DispatchNotFoundError(dispatch_id)

        command = commands[0]
        requested = command.get("RequestedDateTime")
        if requested is None:
            raise FleetSpineError(
                f"status: ssm ListCommands returned no RequestedDateTime for {dispatch_id}",
                category=ErrorCategory.DISPATCH,
            ).with_context(stage="status", dispatch_id=dispatch_id)

        return DispatchRecord(
            dispatch_id=command.get("CommandId", dispatch_id),
            status=command.get("Status", ""),
            requested_at=requested,
        )

    @staticmethod
    def _status_error(dispatch_id: str, exc: Exception) -> FleetSpineError:
        return FleetSpineError(
            f"status: ssm ListCommands failed ({_error_code(exc)}): {exc}",
            category=ErrorCategory.DISPATCH,
            cause=exc,
        ).with_context(stage="status", dispatch_id=dispatch_id)


# ---------------------------------------------------------------------------
# Object store
# ---------------------------------------------------------------------------


class S3ObjectStore:
    """S3 access with per-region client pinning."""

    def __init__(self, s3: Any, session: Any | None = None) -> None:
        self.s3 = s3
        self.session = session or boto3.Session()

    def get_bucket_region(self, bucket: str) -> str:
        try:
            resp = self.s3.get_bucket_location(Bucket=bucket)
        except (BotoCoreError, ClientError) as exc:
            raise OutputRetrievalError(
                f"output: s3 GetBucketLocation failed for {bucket} ({_error_code(exc)}): {exc}",
                cause=exc,
            ) from exc
        return resp.get("LocationConstraint") or _DEFAULT_BUCKET_REGION

    def for_region(self, region: str) -> S3ObjectStore:
        client = self.session.client("s3", region_name=region, config=_CLIENT_CONFIG)
        return S3ObjectStore(client, self.session)

    def list_keys(self, bucket: str, prefix: str, max_keys: int) -> list[str]:
        try:
            resp = self.s3.list_objects_v2(Bucket=bucket, Prefix=prefix, MaxKeys=max_keys)
        except (BotoCoreError, ClientError) as exc:
            raise OutputRetrievalError(
                f"output: s3 ListObjectsV2 failed for s3://{bucket}/{prefix} ({_error_code(exc)}): {exc}",
                cause=exc,
            ) from exc
        return [obj["Key"] for obj in resp.get("Contents") or []]

    def get_object(self, bucket: str, key: str) -> bytes:
        try:
            resp = self.s3.get_object(Bucket=bucket, Key=key)
            return resp["Body"].read()
        except (BotoCoreError, ClientError) as exc:
            raise OutputRetrievalError(
                f"output: s3 GetObject failed for s3://{bucket}/{key} ({_error_code(exc)}): {exc}",
                cause=exc,
            ) from exc


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


class AwsClients:
    """Builds the fleet-spine collaborators from one boto3 session."""

    @staticmethod
    def session(settings: FleetSettings) -> Any:
        return boto3.Session(profile_name=settings.aws_profile, region_name=settings.aws_region)

    @classmethod
    def from_settings(cls, settings: FleetSettings, session: Any | None = None) -> FleetClients:
        session = session or cls.session(settings)
        ssm = session.client("ssm", config=_CLIENT_CONFIG)
        logger.debug("aws.clients.created", region=session.region_name, profile=settings.aws_profile)
        return FleetClients(
            provisioning=Ec2ProvisioningRegistry(session.client("ec2", config=_CLIENT_CONFIG)),
            heartbeat=SsmHeartbeatRegistry(ssm),
            commands=SsmCommandService(ssm),
            store=S3ObjectStore(session.client("s3", config=_CLIENT_CONFIG), session),
        )


__all__ = [
    "Ec2ProvisioningRegistry",
    "SsmHeartbeatRegistry",
    "SsmCommandService",
    "S3ObjectStore",
    "AwsClients",
]
