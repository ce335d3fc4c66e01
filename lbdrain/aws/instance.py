"""Instance ID resolution: from an IP address or the local metadata service."""

from __future__ import annotations

import ipaddress
import logging
from typing import Any, List, Optional

import requests
from botocore.exceptions import BotoCoreError, ClientError

from lbdrain.errors import InstanceResolutionError

logger = logging.getLogger(__name__)

IMDS_BASE_URL = "http://169.254.169.254/latest"
IMDS_TOKEN_TTL_SECONDS = 60

# Searched in order; a private address is the usual deploy-hook input.
_IP_FILTERS = ("private-ip-address", "ip-address")


def _instance_ids(resp: dict) -> List[str]:
    return [
        inst["InstanceId"]
        for res in resp.get("Reservations", [])
        for inst in res.get("Instances", [])
    ]


def resolve_instance_id_from_ip(ec2_client: Any, ip_address: str) -> str:
    """Return the ID of the instance owning *ip_address*.

    Tries the private address first, then the public one.  Raises
    :class:`InstanceResolutionError` for malformed input, an unreachable
    API, or no matching instance.
    """
    try:
        ipaddress.ip_address(ip_address)
    except ValueError as exc:
        raise InstanceResolutionError(
            f"invalid ip address provided: '{ip_address}'"
        ) from exc

    for filter_name in _IP_FILTERS:
        try:
            resp = ec2_client.describe_instances(
                Filters=[{"Name": filter_name, "Values": [ip_address]}],
            )
        except (BotoCoreError, ClientError) as exc:
            raise InstanceResolutionError(
                f"Couldn't look up instance for {ip_address}: {exc}"
            ) from exc

        ids = _instance_ids(resp)
        if len(ids) > 1:
            logger.warning(
                "Multiple instances match %s=%s; using %s",
                filter_name, ip_address, ids[0],
            )
        if ids:
            logger.debug("Resolved %s to %s via %s", ip_address, ids[0], filter_name)
            return ids[0]

    raise InstanceResolutionError(f"No instance found with ip address {ip_address}")


def get_local_instance_id(
    *,
    timeout: float = 2.0,
    session: Optional[requests.Session] = None,
) -> str:
    """Return this machine's instance ID from IMDSv2.

    Raises :class:`InstanceResolutionError` if the metadata service is
    unreachable (e.g. not running on EC2).
    """
    http = session or requests.Session()
    try:
        token_resp = http.put(
            f"{IMDS_BASE_URL}/api/token",
            headers={"X-aws-ec2-metadata-token-ttl-seconds": str(IMDS_TOKEN_TTL_SECONDS)},
            timeout=timeout,
        )
        token_resp.raise_for_status()
        id_resp = http.get(
            f"{IMDS_BASE_URL}/meta-data/instance-id",
            headers={"X-aws-ec2-metadata-token": token_resp.text},
            timeout=timeout,
        )
        id_resp.raise_for_status()
    except requests.RequestException as exc:
        raise InstanceResolutionError(
            f"Instance metadata service is unreachable: {exc}"
        ) from exc

    instance_id = id_resp.text.strip()
    if not instance_id:
        raise InstanceResolutionError("Instance metadata returned an empty instance ID")
    return instance_id
