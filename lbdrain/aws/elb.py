"""Classic Elastic Load Balancing calls used by the drain/restore workflow.

Every function takes a boto3 ``elb`` client and performs exactly one
logical provider operation.  Reads raise :class:`QueryError`; mutations
raise :class:`ActionError`.  Nothing here retries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from lbdrain.errors import ActionError, QueryError

logger = logging.getLogger(__name__)

#: Error code returned by ``describe_instance_health`` for an instance the
#: load balancer does not know about.
INVALID_INSTANCE_CODE = "InvalidInstance"

#: Error code for a load balancer name that does not exist.
LB_NOT_FOUND_CODE = "LoadBalancerNotFound"


@dataclass(frozen=True)
class LoadBalancer:
    """Settings of one classic load balancer relevant to wait budgets."""

    name: str
    health_check_timeout: int = 0
    draining_enabled: bool = False
    draining_timeout: int = 0
    instances: Tuple[str, ...] = field(default_factory=tuple)


def _error_code(exc: BaseException) -> str:
    """Extract AWS error code from a botocore ClientError (or return '')."""
    resp = getattr(exc, "response", None)
    if resp and isinstance(resp, dict):
        return resp.get("Error", {}).get("Code", "")
    return ""


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def describe_load_balancer(elb_client: Any, name: str) -> LoadBalancer:
    """Describe *name*; raises :class:`QueryError` if it cannot be described.

    Draining settings are not populated; see :func:`load_balancer_settings`.
    """
    try:
        resp = elb_client.describe_load_balancers(LoadBalancerNames=[name])
    except ClientError as exc:
        if _error_code(exc) == LB_NOT_FOUND_CODE:
            raise QueryError(f"Load balancer '{name}' not found") from exc
        raise QueryError(f"Couldn't describe load balancer '{name}': {exc}") from exc
    except BotoCoreError as exc:
        raise QueryError(f"Couldn't describe load balancer '{name}': {exc}") from exc

    descriptions = resp.get("LoadBalancerDescriptions", [])
    if not descriptions:
        raise QueryError(f"Load balancer '{name}' not found")

    desc = descriptions[0]
    return LoadBalancer(
        name=desc.get("LoadBalancerName", name),
        health_check_timeout=int(desc.get("HealthCheck", {}).get("Timeout", 0)),
        instances=tuple(i["InstanceId"] for i in desc.get("Instances", [])),
    )


def describe_connection_draining(elb_client: Any, name: str) -> Tuple[bool, int]:
    """Return ``(enabled, timeout_seconds)`` for *name*'s connection draining."""
    try:
        resp = elb_client.describe_load_balancer_attributes(LoadBalancerName=name)
    except (BotoCoreError, ClientError) as exc:
        raise QueryError(
            f"Couldn't read attributes of load balancer '{name}': {exc}"
        ) from exc

    draining = resp.get("LoadBalancerAttributes", {}).get("ConnectionDraining", {})
    return bool(draining.get("Enabled", False)), int(draining.get("Timeout", 0))


def load_balancer_settings(elb_client: Any, name: str) -> LoadBalancer:
    """Describe *name* including its connection-draining attributes."""
    lb = describe_load_balancer(elb_client, name)
    enabled, timeout = describe_connection_draining(elb_client, name)
    return LoadBalancer(
        name=lb.name,
        health_check_timeout=lb.health_check_timeout,
        draining_enabled=enabled,
        draining_timeout=timeout,
        instances=lb.instances,
    )


def describe_instance_health(
    elb_client: Any, name: str, instance_id: str,
) -> Optional[str]:
    """Return the raw provider state of *instance_id* in *name*.

    Returns ``None`` when the load balancer reports the instance as not
    registered (``InvalidInstance``) or returns no state at all.
    """
    try:
        resp = elb_client.describe_instance_health(
            LoadBalancerName=name,
            Instances=[{"InstanceId": instance_id}],
        )
    except ClientError as exc:
        if _error_code(exc) == INVALID_INSTANCE_CODE:
            logger.debug("Instance %s not registered with %s", instance_id, name)
            return None
        raise QueryError(
            f"describe-instance-health failed for '{name}': {exc}"
        ) from exc
    except BotoCoreError as exc:
        raise QueryError(
            f"describe-instance-health failed for '{name}': {exc}"
        ) from exc

    states = resp.get("InstanceStates", [])
    if not states:
        return None
    return states[0].get("State")


def find_load_balancers_for_instance(elb_client: Any, instance_id: str) -> List[str]:
    """List names of every load balancer that has *instance_id* registered."""
    names: List[str] = []
    try:
        paginator = elb_client.get_paginator("describe_load_balancers")
        for page in paginator.paginate():
            for desc in page.get("LoadBalancerDescriptions", []):
                members = {i.get("InstanceId") for i in desc.get("Instances", [])}
                if instance_id in members:
                    names.append(desc["LoadBalancerName"])
    except (BotoCoreError, ClientError) as exc:
        raise QueryError(f"Couldn't list load balancers: {exc}") from exc
    return names


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


def register_instance(elb_client: Any, name: str, instance_id: str) -> None:
    """Register *instance_id* with *name*."""
    try:
        elb_client.register_instances_with_load_balancer(
            LoadBalancerName=name,
            Instances=[{"InstanceId": instance_id}],
        )
    except (BotoCoreError, ClientError) as exc:
        raise ActionError(
            f"Failed to register instance {instance_id} with ELB {name}: {exc}"
        ) from exc


def deregister_instance(elb_client: Any, name: str, instance_id: str) -> None:
    """Deregister *instance_id* from *name*."""
    try:
        elb_client.deregister_instances_from_load_balancer(
            LoadBalancerName=name,
            Instances=[{"InstanceId": instance_id}],
        )
    except (BotoCoreError, ClientError) as exc:
        raise ActionError(
            f"Failed to deregister instance {instance_id} from ELB {name}: {exc}"
        ) from exc
