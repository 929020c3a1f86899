"""boto3 adapters for EC2, SSM and S3."""

from fleetspine.aws.clients import (
    AwsClients,
    Ec2ProvisioningRegistry,
    S3ObjectStore,
    SsmCommandService,
    SsmHeartbeatRegistry,
)

__all__ = [
    "AwsClients",
    "Ec2ProvisioningRegistry",
    "S3ObjectStore",
    "SsmCommandService",
    "SsmHeartbeatRegistry",
]
