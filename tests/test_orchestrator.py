"""Tests for lbdrain.lifecycle.orchestrator — target resolution and phases."""

from __future__ import annotations

import pytest

from conftest import FakeElbClient, noop_sleep
from lbdrain.config.models import DiscoverAll, DiscoverAllLenient, Explicit
from lbdrain.errors import ActionError, ConfigError, WaitTimeoutError
from lbdrain.lifecycle.models import MembershipState, Outcome, Phase
from lbdrain.lifecycle.orchestrator import RegistrationOrchestrator
from lbdrain.state.flags import DEREG_FLAG, ELB_LIST_FLAG, FlagStore

IID = "i-0abc"


@pytest.fixture
def store(tmp_path):
    return FlagStore(tmp_path / "flags")


def _orch(elb, make_config, **cfg):
    return RegistrationOrchestrator(elb, make_config(**cfg), _sleep_fn=noop_sleep)


# ── resolve_deregister_targets ───────────────────────────────────────


class TestResolveDeregisterTargets:
    def test_explicit(self, make_config, store):
        orch = _orch(FakeElbClient({}), make_config)
        names = orch.resolve_deregister_targets(IID, Explicit(("a", "b")), store)
        assert names == ["a", "b"]
        assert store.get(DEREG_FLAG) == "true"
        assert store.get(ELB_LIST_FLAG) == "a b"

    def test_explicit_empty_is_fatal_but_flag_written(self, make_config, store):
        orch = _orch(FakeElbClient({}), make_config)
        with pytest.raises(ConfigError, match="ELB_LIST is empty"):
            orch.resolve_deregister_targets(IID, Explicit(()), store)
        assert store.get(DEREG_FLAG) == "true"

    def test_discover_all(self, make_config, store):
        elb = FakeElbClient({"a": [IID], "b": ["i-other"], "c": [IID, "i-other"]})
        orch = _orch(elb, make_config)
        assert orch.resolve_deregister_targets(IID, DiscoverAll(), store) == ["a", "c"]
        assert store.get(ELB_LIST_FLAG) == "a c"

    def test_discover_all_none_found(self, make_config, store):
        orch = _orch(FakeElbClient({"a": ["i-other"]}), make_config)
        with pytest.raises(ConfigError, match="Couldn't find any"):
            orch.resolve_deregister_targets(IID, DiscoverAll(), store)

    def test_lenient_none_found(self, make_config, store):
        orch = _orch(FakeElbClient({"a": ["i-other"]}), make_config)
        assert orch.resolve_deregister_targets(IID, DiscoverAllLenient(), store) == []
        assert store.get(ELB_LIST_FLAG) == ""


# ── resolve_register_targets ─────────────────────────────────────────


class TestResolveRegisterTargets:
    def test_explicit_ignores_store(self, make_config, store):
        orch = _orch(FakeElbClient({}), make_config)
        assert orch.resolve_register_targets(Explicit(("x",)), store) == ["x"]

    def test_explicit_empty(self, make_config, store):
        orch = _orch(FakeElbClient({}), make_config)
        with pytest.raises(ConfigError, match="ELB_LIST is empty"):
            orch.resolve_register_targets(Explicit(()), store)

    @pytest.mark.parametrize("targets", [DiscoverAll(), DiscoverAllLenient()])
    def test_first_deployment_is_noop(self, make_config, store, targets):
        orch = _orch(FakeElbClient({}), make_config)
        assert orch.resolve_register_targets(targets, store) == []

    @pytest.mark.parametrize("targets", [DiscoverAll(), DiscoverAllLenient()])
    def test_reads_persisted_list(self, make_config, store, targets):
        store.set(DEREG_FLAG, "true")
        store.set(ELB_LIST_FLAG, "a c")
        elb = FakeElbClient({"z": [IID]})
        orch = _orch(elb, make_config)
        assert orch.resolve_register_targets(targets, store) == ["a", "c"]
        assert ("paginate", "describe_load_balancers") not in elb.calls

    def test_missing_list_strict(self, make_config, store):
        store.set(DEREG_FLAG, "true")
        orch = _orch(FakeElbClient({}), make_config)
        with pytest.raises(ConfigError, match="doesn't record"):
            orch.resolve_register_targets(DiscoverAll(), store)

    def test_missing_list_lenient(self, make_config, store):
        store.set(DEREG_FLAG, "true")
        orch = _orch(FakeElbClient({}), make_config)
        assert orch.resolve_register_targets(DiscoverAllLenient(), store) == []

    def test_empty_list_strict(self, make_config, store):
        store.set(DEREG_FLAG, "true")
        store.set(ELB_LIST_FLAG, "")
        orch = _orch(FakeElbClient({}), make_config)
        with pytest.raises(ConfigError, match="Couldn't find any"):
            orch.resolve_register_targets(DiscoverAll(), store)

    def test_empty_list_lenient(self, make_config, store):
        store.set(DEREG_FLAG, "true")
        store.set(ELB_LIST_FLAG, "")
        orch = _orch(FakeElbClient({}), make_config)
        assert orch.resolve_register_targets(DiscoverAllLenient(), store) == []


# ── deregister ───────────────────────────────────────────────────────


class TestDeregister:
    def test_drains_all(self, make_config):
        elb = FakeElbClient({"a": [IID], "b": [IID]})
        report = _orch(elb, make_config).deregister(IID, ["a", "b"])
        assert report.phase is Phase.DEREGISTER
        assert report.processed == ["a", "b"]
        assert elb.mutations == [("deregister", "a"), ("deregister", "b")]
        for t in report.targets:
            assert t.initial_state is MembershipState.IN_SERVICE
            assert t.final_state is MembershipState.OUT_OF_SERVICE

    def test_actions_precede_waits(self, make_config):
        elb = FakeElbClient({"a": [IID], "b": [IID]})
        _orch(elb, make_config).deregister(IID, ["a", "b"])
        ops = [op for op, _ in elb.calls]
        last_mutation = max(i for i, op in enumerate(ops) if op == "deregister")
        first_settings = ops.index("describe_load_balancer_attributes")
        assert last_mutation < first_settings

    def test_undescribable_lb_skipped(self, make_config):
        elb = FakeElbClient({"lb-a": [IID], "lb-b": [IID]}, undescribable=["lb-a"])
        report = _orch(elb, make_config).deregister(IID, ["lb-a", "lb-b"])
        assert report.processed == ["lb-b"]
        assert [s.name for s in report.skipped] == ["lb-a"]
        assert report.skipped[0].reason == "undescribable LB"
        assert report.skipped[0].outcome is Outcome.SKIPPED
        assert elb.mutations == [("deregister", "lb-b")]

    def test_all_skipped_is_success(self, make_config):
        elb = FakeElbClient({"a": [IID]}, undescribable=["a"])
        report = _orch(elb, make_config).deregister(IID, ["a"])
        assert report.processed == []
        assert elb.mutations == []

    def test_no_mutations_outside_target_set(self, make_config):
        elb = FakeElbClient({"a": [IID], "b": [IID], "c": [IID]})
        _orch(elb, make_config).deregister(IID, ["b"])
        assert {name for _, name in elb.mutations} == {"b"}

    def test_duplicates_processed_once(self, make_config):
        elb = FakeElbClient({"a": [IID]})
        report = _orch(elb, make_config).deregister(IID, ["a", "a"])
        assert elb.mutations == [("deregister", "a")]
        assert report.processed == ["a"]

    def test_action_error_aborts(self, make_config):
        elb = FakeElbClient({"a": [IID], "b": [IID]}, deregister_fails=["a"])
        with pytest.raises(ActionError):
            _orch(elb, make_config).deregister(IID, ["a", "b"])
        assert elb.mutations == [("deregister", "a")]

    def test_stuck_lb_times_out(self, make_config):
        elb = FakeElbClient(
            {"a": [IID]},
            stuck={"a": "InService"},
            draining={"a": (True, 10)},
        )
        with pytest.raises(WaitTimeoutError, match="OutOfService on a"):
            _orch(elb, make_config).deregister(IID, ["a"])
        # one validation read plus (30 + 10) // 1 wait polls
        assert elb.health_polls("a") == 1 + 40

    def test_interval_beyond_budget_still_polls_once(self, make_config):
        elb = FakeElbClient({"a": [IID]}, stuck={"a": "InService"})
        with pytest.raises(WaitTimeoutError):
            _orch(elb, make_config, waiter_interval=60).deregister(IID, ["a"])
        assert elb.health_polls("a") == 1 + 1

    def test_stuck_lb_with_wider_interval(self, make_config):
        elb = FakeElbClient({"a": [IID]}, stuck={"a": "InService"})
        with pytest.raises(WaitTimeoutError):
            _orch(elb, make_config, waiter_interval=5).deregister(IID, ["a"])
        assert elb.health_polls("a") == 1 + 30 // 5

    def test_drained_state_is_out_of_service(self, make_config):
        elb = FakeElbClient({"a": [IID]})
        report = _orch(elb, make_config).deregister(IID, ["a"])
        assert report.targets[0].final_state is MembershipState.OUT_OF_SERVICE

    def test_unrecognised_status_times_out(self, make_config):
        elb = FakeElbClient({"a": [IID]}, stuck={"a": "Draining"})
        with pytest.raises(WaitTimeoutError):
            _orch(elb, make_config).deregister(IID, ["a"])
        assert elb.health_polls("a") == 1 + 30


# ── reregister ───────────────────────────────────────────────────────


class TestReregister:
    def test_restores(self, make_config):
        elb = FakeElbClient({"a": [], "b": []})
        report = _orch(elb, make_config).reregister(IID, ["a", "b"])
        assert report.phase is Phase.REGISTER
        assert report.processed == ["a", "b"]
        assert elb.mutations == [("register", "a"), ("register", "b")]
        assert all(t.final_state is MembershipState.IN_SERVICE for t in report.targets)
        assert report.targets[0].initial_state is MembershipState.NOT_MEMBER

    def test_undescribable_lb_skipped(self, make_config):
        elb = FakeElbClient({"a": [], "b": []}, undescribable=["a"])
        report = _orch(elb, make_config).reregister(IID, ["a", "b"])
        assert elb.mutations == [("register", "b")]
        assert report.skipped[0].name == "a"

    def test_register_failure_aborts(self, make_config):
        elb = FakeElbClient({"a": []}, register_fails=["a"])
        with pytest.raises(ActionError):
            _orch(elb, make_config).reregister(IID, ["a"])

    def test_unhealthy_times_out(self, make_config):
        elb = FakeElbClient({"a": []}, stuck={"a": "OutOfService"}, health_timeout=5)
        with pytest.raises(WaitTimeoutError, match="InService"):
            _orch(elb, make_config).reregister(IID, ["a"])
        assert elb.health_polls("a") == 1 + 35

    def test_report_json_is_sorted(self, make_config):
        elb = FakeElbClient({"a": []})
        report = _orch(elb, make_config).reregister(IID, ["a"])
        text = report.to_sorted_json()
        assert text.index('"elapsed_seconds"') < text.index('"phase"') < text.index('"targets"')
        assert '"converged"' in text
