import threading
import time
import unittest

import pytest

from appian_deployer.errors import (
    AuthenticationError,
    ExitCode,
    GatewayUnavailableError,
    NotFoundError,
    RemoteFailure,
    TerminalGatewayError,
    TransientGatewayError,
    ValidationError,
)
from appian_deployer.gateway import ResultPayload
from appian_deployer.orchestrator import (
    OperationKind,
    OperationOrchestrator,
    PollPolicy,
    RollbackController,
    StatusClass,
    SubmissionPayload,
    TerminalOutcome,
)

from fakes import FakeClock, FakeGateway

PACKAGE_URL = "https://mysite.appiancloud.com/suite/deployment-management/v2/deployments/exp-1/package-zip"


def make_orchestrator(gateway, **kwargs):
    clock = FakeClock()
    orchestrator = OperationOrchestrator(gateway, clock=clock, sleep=clock.sleep, **kwargs)
    return orchestrator, clock


class ConcreteScenarioTests(unittest.TestCase):
    def test_failed_deployment_after_four_polls_triggers_rollback(self) -> None:
        gateway = FakeGateway(
            {OperationKind.DEPLOYMENT: "dep-1", OperationKind.ROLLBACK: "rb-1"}
        )
        gateway.script("dep-1", "QUEUED", "RUNNING", "RUNNING", "FAILED")
        gateway.script("rb-1", "IN_PROGRESS", "ROLLED_BACK")
        orchestrator, clock = make_orchestrator(gateway)
        policy = PollPolicy(interval_seconds=10, timeout_seconds=3600)

        result = orchestrator.track_submission(OperationKind.DEPLOYMENT, SubmissionPayload(), policy)

        self.assertEqual(result.outcome, TerminalOutcome.FAILED)
        self.assertEqual(result.polls, 4)
        self.assertEqual(clock.sleeps, [10, 10, 10])
        self.assertAlmostEqual(result.elapsed_seconds, 30)
        self.assertIsInstance(result.error, RemoteFailure)
        self.assertEqual(result.error.raw_status, "FAILED")
        self.assertEqual(result.exit_code, ExitCode.FAILED)

        rollback = RollbackController(orchestrator, policy).maybe_rollback(
            result.handle, result.outcome, rollback_enabled=True
        )
        kind, payload = gateway.submissions[-1]
        self.assertIs(kind, OperationKind.ROLLBACK)
        self.assertEqual(payload.document["deploymentUuid"], "dep-1")
        self.assertFalse(rollback.skipped)
        self.assertEqual(rollback.handle, "rb-1")
        self.assertTrue(rollback.succeeded)

    def test_export_completed_on_first_poll(self) -> None:
        gateway = FakeGateway({OperationKind.EXPORT: "exp-1"})
        gateway.script("exp-1", "COMPLETED")
        gateway.results["exp-1"] = ResultPayload.from_dict(
            {"status": "COMPLETED", "packageZip": PACKAGE_URL}
        )
        orchestrator, clock = make_orchestrator(gateway)

        result = orchestrator.track_submission(
            OperationKind.EXPORT, SubmissionPayload(document={"uuids": ["x"]})
        )

        self.assertEqual(result.outcome, TerminalOutcome.SUCCEEDED)
        self.assertEqual(result.polls, 1)
        self.assertEqual(clock.sleeps, [])
        self.assertIsNone(result.error)
        self.assertEqual(result.exit_code, ExitCode.SUCCESS)
        payload = orchestrator.fetch_result(result.handle, OperationKind.EXPORT)
        self.assertEqual(payload.artifact_ref, PACKAGE_URL)


class TerminalFinalityTests(unittest.TestCase):
    def test_no_poll_after_terminal_outcome(self) -> None:
        gateway = FakeGateway().script("h", "COMPLETED", "FAILED")
        orchestrator, _ = make_orchestrator(gateway)

        result = orchestrator.track(OperationKind.EXPORT, "h")

        self.assertEqual(result.outcome, TerminalOutcome.SUCCEEDED)
        self.assertEqual(len(gateway.status_calls), 1)
        self.assertEqual(result.snapshot.raw_status, "COMPLETED")

    def test_remote_cancelled_is_cancelled_outcome(self) -> None:
        gateway = FakeGateway().script("h", "RUNNING", "CANCELLED")
        orchestrator, _ = make_orchestrator(gateway)

        result = orchestrator.track(OperationKind.DEPLOYMENT, "h")

        self.assertEqual(result.outcome, TerminalOutcome.CANCELLED)
        self.assertEqual(result.exit_code, ExitCode.CANCELLED)


class TestTimeout:
    @pytest.mark.parametrize("timeout", [10, 25, 35, 60])
    def test_times_out_at_or_after_deadline(self, timeout) -> None:
        gateway = FakeGateway().script("h", "RUNNING")
        orchestrator, clock = make_orchestrator(gateway)

        result = orchestrator.track(
            OperationKind.DEPLOYMENT, "h", PollPolicy(interval_seconds=10, timeout_seconds=timeout)
        )

        assert result.outcome is TerminalOutcome.TIMED_OUT
        assert result.error is None
        assert timeout <= result.elapsed_seconds < timeout + 10
        assert result.exit_code == ExitCode.TIMED_OUT

    def test_terminal_status_wins_on_the_deadline_poll(self) -> None:
        gateway = FakeGateway().script("h", "RUNNING", "RUNNING", "COMPLETED")
        orchestrator, _ = make_orchestrator(gateway)

        result = orchestrator.track(
            OperationKind.EXPORT, "h", PollPolicy(interval_seconds=10, timeout_seconds=20)
        )

        assert result.outcome is TerminalOutcome.SUCCEEDED
        assert result.polls == 3

    def test_zero_timeout_disables_deadline(self) -> None:
        gateway = FakeGateway().script("h", *(["RUNNING"] * 500), "SUCCEEDED")
        orchestrator, clock = make_orchestrator(gateway)

        result = orchestrator.track(
            OperationKind.DEPLOYMENT, "h", PollPolicy(interval_seconds=10, timeout_seconds=0)
        )

        assert result.outcome is TerminalOutcome.SUCCEEDED
        assert clock.now == 5000


class TransientErrorTests(unittest.TestCase):
    def test_exceeding_bound_fails_with_gateway_unavailable(self) -> None:
        errors = [TransientGatewayError("timeout") for _ in range(4)]
        gateway = FakeGateway().script("h", *errors, "COMPLETED")
        orchestrator, _ = make_orchestrator(gateway)

        result = orchestrator.track(
            OperationKind.DEPLOYMENT, "h", PollPolicy(max_consecutive_transient_errors=3)
        )

        self.assertEqual(result.outcome, TerminalOutcome.FAILED)
        self.assertIsInstance(result.error, GatewayUnavailableError)
        self.assertEqual(result.error.attempts, 4)
        self.assertEqual(len(gateway.status_calls), 4)
        self.assertEqual(result.exit_code, ExitCode.GATEWAY_UNAVAILABLE)

    def test_successful_poll_resets_counter(self) -> None:
        burst = [TransientGatewayError("503", status_code=503) for _ in range(3)]
        gateway = FakeGateway().script("h", *burst, "RUNNING", *burst, "SUCCEEDED")
        orchestrator, _ = make_orchestrator(gateway)

        result = orchestrator.track(
            OperationKind.DEPLOYMENT, "h", PollPolicy(max_consecutive_transient_errors=3)
        )

        self.assertEqual(result.outcome, TerminalOutcome.SUCCEEDED)
        self.assertEqual(result.polls, 2)
        self.assertEqual(len(gateway.status_calls), 8)

    def test_zero_tolerance_fails_on_first_transient_error(self) -> None:
        gateway = FakeGateway().script("h", TransientGatewayError("reset"), "SUCCEEDED")
        orchestrator, _ = make_orchestrator(gateway)

        result = orchestrator.track(
            OperationKind.DEPLOYMENT, "h", PollPolicy(max_consecutive_transient_errors=0)
        )

        self.assertEqual(result.outcome, TerminalOutcome.FAILED)
        self.assertEqual(len(gateway.status_calls), 1)


class TerminalErrorTests(unittest.TestCase):
    def test_terminal_error_ends_tracking_immediately(self) -> None:
        error = TerminalGatewayError("rejected", status_code=400)
        gateway = FakeGateway().script("h", error, "COMPLETED")
        orchestrator, clock = make_orchestrator(gateway)

        result = orchestrator.track(OperationKind.EXPORT, "h", PollPolicy(timeout_seconds=3600))

        self.assertEqual(result.outcome, TerminalOutcome.FAILED)
        self.assertIs(result.error, error)
        self.assertEqual(len(gateway.status_calls), 1)
        self.assertEqual(clock.sleeps, [])

    def test_authentication_error_keeps_its_exit_code(self) -> None:
        gateway = FakeGateway().script("h", AuthenticationError("Authentication failed", status_code=401))
        orchestrator, _ = make_orchestrator(gateway)

        result = orchestrator.track(OperationKind.DEPLOYMENT, "h")

        self.assertEqual(result.exit_code, ExitCode.AUTHENTICATION)

    def test_terminal_gateway_failures_exit_as_failed(self) -> None:
        for error in (TerminalGatewayError("gone", status_code=410), NotFoundError("missing", status_code=404)):
            gateway = FakeGateway().script("h", error)
            orchestrator, _ = make_orchestrator(gateway)

            result = orchestrator.track(OperationKind.DEPLOYMENT, "h")

            self.assertEqual(result.exit_code, ExitCode.FAILED)

    def test_rejected_local_file_keeps_validation_exit_code(self) -> None:
        gateway = FakeGateway()
        gateway.submit_errors[OperationKind.INSPECTION] = ValidationError("Package file not found")
        orchestrator, _ = make_orchestrator(gateway)

        result = orchestrator.track_submission(OperationKind.INSPECTION, SubmissionPayload())

        self.assertEqual(result.exit_code, ExitCode.VALIDATION)

    def test_rejected_submission_becomes_failed_result(self) -> None:
        gateway = FakeGateway()
        gateway.submit_errors[OperationKind.DEPLOYMENT] = TerminalGatewayError("bad request", status_code=400)
        orchestrator, _ = make_orchestrator(gateway)

        result = orchestrator.track_submission(OperationKind.DEPLOYMENT, SubmissionPayload())

        self.assertEqual(result.outcome, TerminalOutcome.FAILED)
        self.assertEqual(result.handle, "")
        self.assertEqual(gateway.status_calls, [])

    def test_submit_propagates_errors(self) -> None:
        gateway = FakeGateway()
        gateway.submit_errors[OperationKind.EXPORT] = TransientGatewayError("down")
        orchestrator, _ = make_orchestrator(gateway)

        with self.assertRaises(TransientGatewayError):
            orchestrator.submit(OperationKind.EXPORT, SubmissionPayload())


class ClassificationInLoopTests(unittest.TestCase):
    def test_unknown_status_keeps_polling_and_is_annotated(self) -> None:
        gateway = FakeGateway().script("h", "SOMETHING_NEW", "completed")
        orchestrator, _ = make_orchestrator(gateway)
        seen = []

        result = orchestrator.track(
            OperationKind.EXPORT, "h", on_snapshot=lambda snapshot, state: seen.append((snapshot, state))
        )

        self.assertEqual(result.outcome, TerminalOutcome.SUCCEEDED)
        self.assertEqual(seen[0][1], StatusClass.RUNNING)
        self.assertEqual(seen[0][0].message, "unrecognized status 'SOMETHING_NEW'")
        self.assertEqual(seen[0][0].raw_status, "SOMETHING_NEW")
        self.assertEqual(seen[1][1], StatusClass.SUCCEEDED)

    def test_single_status_read(self) -> None:
        gateway = FakeGateway().script("h", "PENDING_REVIEW")
        orchestrator, _ = make_orchestrator(gateway)

        state, snapshot = orchestrator.status("h", OperationKind.DEPLOYMENT)

        self.assertEqual(state, StatusClass.PENDING)
        self.assertEqual(snapshot.raw_status, "PENDING_REVIEW")


class CancellationTests(unittest.TestCase):
    def test_cancel_before_start_skips_polling(self) -> None:
        gateway = FakeGateway().script("h", "RUNNING")
        event = threading.Event()
        event.set()
        orchestrator, _ = make_orchestrator(gateway, cancel_event=event)

        result = orchestrator.track(OperationKind.DEPLOYMENT, "h")

        self.assertEqual(result.outcome, TerminalOutcome.CANCELLED)
        self.assertEqual(result.polls, 0)
        self.assertEqual(gateway.status_calls, [])

    def test_cancel_during_tracking_requests_remote_cancel(self) -> None:
        gateway = FakeGateway(cancel_supported=True).script("h", "RUNNING")
        orchestrator, _ = make_orchestrator(gateway)

        result = orchestrator.track(
            OperationKind.DEPLOYMENT, "h", on_snapshot=lambda snapshot, state: orchestrator.cancel()
        )

        self.assertEqual(result.outcome, TerminalOutcome.CANCELLED)
        self.assertEqual(result.polls, 1)
        self.assertEqual(gateway.cancel_calls, [("h", OperationKind.DEPLOYMENT)])
        self.assertEqual(result.exit_code, ExitCode.CANCELLED)

    def test_remote_cancel_failure_is_ignored(self) -> None:
        gateway = FakeGateway(cancel_supported=True).script("h", "RUNNING")
        gateway.cancel_error = TransientGatewayError("down")
        orchestrator, _ = make_orchestrator(gateway)

        result = orchestrator.track(
            OperationKind.DEPLOYMENT, "h", on_snapshot=lambda snapshot, state: orchestrator.cancel()
        )

        self.assertEqual(result.outcome, TerminalOutcome.CANCELLED)

    def test_unsupported_remote_cancel_is_not_called(self) -> None:
        gateway = FakeGateway(cancel_supported=False).script("h", "RUNNING")
        orchestrator, _ = make_orchestrator(gateway)

        orchestrator.track(
            OperationKind.DEPLOYMENT, "h", on_snapshot=lambda snapshot, state: orchestrator.cancel()
        )

        self.assertEqual(gateway.cancel_calls, [])

    def test_cancel_wakes_a_sleeping_loop(self) -> None:
        gateway = FakeGateway().script("h", "RUNNING")
        orchestrator = OperationOrchestrator(gateway)
        timer = threading.Timer(0.1, orchestrator.cancel)
        timer.start()
        started = time.monotonic()
        try:
            result = orchestrator.track(
                OperationKind.DEPLOYMENT, "h", PollPolicy(interval_seconds=60, timeout_seconds=0)
            )
        finally:
            timer.cancel()

        self.assertEqual(result.outcome, TerminalOutcome.CANCELLED)
        self.assertLess(time.monotonic() - started, 10)


class PolicyTests(unittest.TestCase):
    def test_defaults(self) -> None:
        policy = PollPolicy().resolve()
        self.assertEqual(policy.interval_seconds, 10)
        self.assertEqual(policy.timeout_seconds, 3600)
        self.assertEqual(policy.max_consecutive_transient_errors, 5)

    def test_rejects_sub_second_interval(self) -> None:
        with self.assertRaises(ValidationError):
            PollPolicy(interval_seconds=0.5).resolve()

    def test_rejects_timeout_shorter_than_interval(self) -> None:
        with self.assertRaises(ValidationError):
            PollPolicy(interval_seconds=30, timeout_seconds=10).resolve()

    def test_empty_handle_is_rejected(self) -> None:
        orchestrator, _ = make_orchestrator(FakeGateway())
        with self.assertRaises(ValueError):
            orchestrator.track(OperationKind.DEPLOYMENT, "")
