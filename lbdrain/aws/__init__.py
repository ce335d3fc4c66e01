"""AWS service interactions (STS, ELB, EC2, instance metadata)."""

from lbdrain.aws.context import AWSContext, resolve_profile, resolve_region
from lbdrain.aws.elb import (
    INVALID_INSTANCE_CODE,
    LB_NOT_FOUND_CODE,
    LoadBalancer,
    deregister_instance,
    describe_connection_draining,
    describe_instance_health,
    describe_load_balancer,
    find_load_balancers_for_instance,
    load_balancer_settings,
    register_instance,
)
from lbdrain.aws.instance import (
    IMDS_BASE_URL,
    get_local_instance_id,
    resolve_instance_id_from_ip,
)

__all__ = [
    "AWSContext",
    "IMDS_BASE_URL",
    "INVALID_INSTANCE_CODE",
    "LB_NOT_FOUND_CODE",
    "LoadBalancer",
    "deregister_instance",
    "describe_connection_draining",
    "describe_instance_health",
    "describe_load_balancer",
    "find_load_balancers_for_instance",
    "get_local_instance_id",
    "load_balancer_settings",
    "register_instance",
    "resolve_instance_id_from_ip",
    "resolve_profile",
    "resolve_region",
]
