"""
fleet-spine - readiness-gated remote command orchestration.

Waits until every provisioned fleet member reports a live agent, dispatches
one remote command to a target selector, polls the per-target invocations
to completion and collects the captured output.

- fleetspine.core: errors, logging, settings, collaborator protocols
- fleetspine.command: readiness waiter, invocation poller, output retriever,
  orchestrator and resource lifecycle
- fleetspine.aws: boto3 adapters (EC2, SSM, S3)
- fleetspine.cli: ``fleetspine`` command line
"""

__version__ = "0.1.0"
