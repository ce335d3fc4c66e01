"""Shared fixtures: an in-memory classic ELB client and config factories."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

import pytest
from botocore.exceptions import ClientError

from lbdrain.config.models import DrainConfig


def client_error(code: str, operation: str = "Operation") -> ClientError:
    """Build a botocore ClientError carrying *code*."""
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakeElbClient:
    """Just enough of the boto3 ``elb`` client for the lifecycle code.

    * ``members`` maps LB name → registered instance IDs.
    * A deregistered instance reports ``OutOfService``; one the LB never
      had reports ``InvalidInstance``.
    * ``stuck`` pins an LB's reported state regardless of actions.
    """

    def __init__(
        self,
        members: Dict[str, Iterable[str]],
        *,
        health_timeout: int = 5,
        draining: Optional[Dict[str, Tuple[bool, int]]] = None,
        undescribable: Iterable[str] = (),
        stuck: Optional[Dict[str, str]] = None,
        deregister_fails: Iterable[str] = (),
        register_fails: Iterable[str] = (),
        health_query_fails: Iterable[str] = (),
    ) -> None:
        self.members = {name: set(ids) for name, ids in members.items()}
        self.drained: Dict[str, set] = {name: set() for name in self.members}
        self.health_timeout = health_timeout
        self.draining = draining or {}
        self.undescribable = set(undescribable)
        self.stuck = stuck or {}
        self.deregister_fails = set(deregister_fails)
        self.register_fails = set(register_fails)
        self.health_query_fails = set(health_query_fails)
        self.calls: List[Tuple[str, str]] = []

    # -- helpers ------------------------------------------------------------

    @property
    def mutations(self) -> List[Tuple[str, str]]:
        return [c for c in self.calls if c[0] in ("register", "deregister")]

    def health_polls(self, name: str) -> int:
        return sum(1 for c in self.calls if c == ("describe_instance_health", name))

    def _describe(self, name: str) -> dict:
        return {
            "LoadBalancerName": name,
            "HealthCheck": {"Timeout": self.health_timeout},
            "Instances": [{"InstanceId": i} for i in sorted(self.members[name])],
        }

    def _check_exists(self, name: str, op: str) -> None:
        if name in self.undescribable or name not in self.members:
            raise client_error("LoadBalancerNotFound", op)

    # -- boto3 surface --------------------------------------------------------

    def describe_load_balancers(self, LoadBalancerNames: List[str]) -> dict:
        name = LoadBalancerNames[0]
        self.calls.append(("describe_load_balancers", name))
        self._check_exists(name, "DescribeLoadBalancers")
        return {"LoadBalancerDescriptions": [self._describe(name)]}

    def get_paginator(self, operation: str):
        fake = self

        class _Paginator:
            def paginate(self):
                fake.calls.append(("paginate", operation))
                return [
                    {
                        "LoadBalancerDescriptions": [
                            fake._describe(n)
                            for n in fake.members
                            if n not in fake.undescribable
                        ]
                    }
                ]

        return _Paginator()

    def describe_load_balancer_attributes(self, LoadBalancerName: str) -> dict:
        self.calls.append(("describe_load_balancer_attributes", LoadBalancerName))
        self._check_exists(LoadBalancerName, "DescribeLoadBalancerAttributes")
        enabled, timeout = self.draining.get(LoadBalancerName, (False, 300))
        return {
            "LoadBalancerAttributes": {
                "ConnectionDraining": {"Enabled": enabled, "Timeout": timeout}
            }
        }

    def describe_instance_health(self, LoadBalancerName: str, Instances: List[dict]) -> dict:
        name = LoadBalancerName
        iid = Instances[0]["InstanceId"]
        self.calls.append(("describe_instance_health", name))
        self._check_exists(name, "DescribeInstanceHealth")
        if name in self.health_query_fails:
            raise client_error("Throttling", "DescribeInstanceHealth")
        if name in self.stuck:
            return {"InstanceStates": [{"InstanceId": iid, "State": self.stuck[name]}]}
        if iid in self.members[name]:
            return {"InstanceStates": [{"InstanceId": iid, "State": "InService"}]}
        if iid in self.drained[name]:
            return {"InstanceStates": [{"InstanceId": iid, "State": "OutOfService"}]}
        raise client_error("InvalidInstance", "DescribeInstanceHealth")

    def deregister_instances_from_load_balancer(self, LoadBalancerName: str, Instances: List[dict]) -> dict:
        name = LoadBalancerName
        self.calls.append(("deregister", name))
        if name in self.deregister_fails:
            raise client_error("AccessDenied", "DeregisterInstancesFromLoadBalancer")
        for inst in Instances:
            self.members[name].discard(inst["InstanceId"])
            self.drained[name].add(inst["InstanceId"])
        return {"Instances": [{"InstanceId": i} for i in sorted(self.members[name])]}

    def register_instances_with_load_balancer(self, LoadBalancerName: str, Instances: List[dict]) -> dict:
        name = LoadBalancerName
        self.calls.append(("register", name))
        if name in self.register_fails:
            raise client_error("AccessDenied", "RegisterInstancesWithLoadBalancer")
        for inst in Instances:
            self.members[name].add(inst["InstanceId"])
            self.drained[name].discard(inst["InstanceId"])
        return {"Instances": [{"InstanceId": i} for i in sorted(self.members[name])]}


def noop_sleep(_: float) -> None:
    """Replacement for time.sleep in tests."""


@pytest.fixture
def fake_elb():
    """Factory fixture: ``fake_elb({"lb-a": ["i-1"]}, ...)``."""
    return FakeElbClient


@pytest.fixture
def make_config(tmp_path):
    """Factory for a :class:`DrainConfig` whose flag files land in *tmp_path*."""

    def _make(**kwargs) -> DrainConfig:
        kwargs.setdefault("flag_dir", str(tmp_path))
        kwargs.setdefault("deployment_id", "d-TEST")
        kwargs.setdefault("deployment_group_id", "g-TEST")
        kwargs.setdefault("region", "eu-central-1")
        return DrainConfig(**kwargs)

    return _make
