import itertools
import threading
import unittest

import pytest

from appian_deployer.errors import TerminalGatewayError
from appian_deployer.orchestrator import (
    OperationKind,
    OperationOrchestrator,
    RollbackController,
    StatusSnapshot,
    TerminalOutcome,
)

from fakes import FakeClock, FakeGateway


def make_controller(gateway):
    clock = FakeClock()
    orchestrator = OperationOrchestrator(gateway, clock=clock, sleep=clock.sleep)
    return RollbackController(orchestrator)


@pytest.mark.parametrize(
    "outcome,enabled", list(itertools.product(list(TerminalOutcome), [True, False]))
)
def test_rollback_gating(outcome, enabled) -> None:
    gateway = FakeGateway({OperationKind.ROLLBACK: "rb-1"}).script("rb-1", "ROLLED_BACK")
    controller = make_controller(gateway)

    result = controller.maybe_rollback("dep-1", outcome, enabled)

    if outcome is TerminalOutcome.FAILED and enabled:
        assert not result.skipped
        assert result.outcome is TerminalOutcome.SUCCEEDED
        assert [kind for kind, _ in gateway.submissions] == [OperationKind.ROLLBACK]
    else:
        assert result.skipped
        assert gateway.submissions == []


class RollbackControllerTests(unittest.TestCase):
    def test_only_one_rollback_per_deployment(self) -> None:
        gateway = FakeGateway({OperationKind.ROLLBACK: "rb-1"}).script("rb-1", "ROLLED_BACK")
        controller = make_controller(gateway)

        first = controller.maybe_rollback("dep-1", TerminalOutcome.FAILED, True)
        second = controller.maybe_rollback("dep-1", TerminalOutcome.FAILED, True)

        self.assertIs(first, second)
        self.assertEqual(len(gateway.submissions), 1)

    def test_concurrent_requests_submit_once(self) -> None:
        gateway = FakeGateway({OperationKind.ROLLBACK: "rb-1"}).script("rb-1", "RUNNING", "ROLLED_BACK")
        controller = make_controller(gateway)
        results = []

        threads = [
            threading.Thread(
                target=lambda: results.append(
                    controller.maybe_rollback("dep-1", TerminalOutcome.FAILED, True)
                )
            )
            for _ in range(5)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(len(gateway.submissions), 1)
        self.assertEqual(len({id(result) for result in results}), 1)

    def test_submission_failure_is_reported(self) -> None:
        gateway = FakeGateway()
        gateway.submit_errors[OperationKind.ROLLBACK] = TerminalGatewayError("no", status_code=409)
        controller = make_controller(gateway)

        result = controller.maybe_rollback("dep-1", TerminalOutcome.FAILED, True)

        self.assertFalse(result.skipped)
        self.assertEqual(result.outcome, TerminalOutcome.FAILED)
        self.assertIsNone(result.handle)
        self.assertIsInstance(result.error, TerminalGatewayError)

    def test_failed_rollback(self) -> None:
        gateway = FakeGateway({OperationKind.ROLLBACK: "rb-2"}).script("rb-2", "FAILED")
        controller = make_controller(gateway)

        result = controller.maybe_rollback("dep-2", TerminalOutcome.FAILED, True)

        self.assertEqual(result.outcome, TerminalOutcome.FAILED)
        self.assertFalse(result.succeeded)
        self.assertEqual(result.to_dict()["handle"], "rb-2")

    def test_missing_handle_is_rejected(self) -> None:
        controller = make_controller(FakeGateway())
        with self.assertRaises(ValueError):
            controller.maybe_rollback("", TerminalOutcome.FAILED, True)


class RendezvousGateway(FakeGateway):
    """Every status read waits until ``parties`` readers are polling at once."""

    def __init__(self, parties: int) -> None:
        super().__init__()
        self.barrier = threading.Barrier(parties, timeout=5)

    def fetch_status(self, handle, kind):
        self.barrier.wait()
        return StatusSnapshot(handle=handle, kind=kind, raw_status="ROLLED_BACK")


class ConcurrentRollbackTests(unittest.TestCase):
    def test_different_deployments_roll_back_in_parallel(self) -> None:
        gateway = RendezvousGateway(parties=2)
        controller = make_controller(gateway)
        results = {}
        errors = []

        def roll_back(handle: str) -> None:
            try:
                results[handle] = controller.maybe_rollback(handle, TerminalOutcome.FAILED, True)
            except threading.BrokenBarrierError as exc:
                errors.append(exc)

        threads = [threading.Thread(target=roll_back, args=(handle,)) for handle in ("dep-a", "dep-b")]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(errors, [])
        self.assertTrue(results["dep-a"].succeeded)
        self.assertTrue(results["dep-b"].succeeded)
        self.assertEqual(len(gateway.submissions), 2)

    def test_crashed_rollback_does_not_block_a_retry(self) -> None:
        gateway = FakeGateway({OperationKind.ROLLBACK: "rb-1"}).script("rb-1", "ROLLED_BACK")
        controller = make_controller(gateway)
        original_run = controller._run
        calls = []

        def flaky_run(handle, policy):
            calls.append(handle)
            if len(calls) == 1:
                raise KeyError("boom")
            return original_run(handle, policy)

        controller._run = flaky_run

        with self.assertRaises(KeyError):
            controller.maybe_rollback("dep-1", TerminalOutcome.FAILED, True)
        result = controller.maybe_rollback("dep-1", TerminalOutcome.FAILED, True)

        self.assertTrue(result.succeeded)
        self.assertEqual(calls, ["dep-1", "dep-1"])
