"""
Tests for the IDLE -> ESTIMATING -> DONE / FAILED analysis flow.
"""

import numpy as np
import pytest
from unittest.mock import MagicMock

from estimation_flow import EstimationFlow, EstimationInProgressError, EstimationState
from mace_risk import IncompleteInputError, PatientInput, RiskResult


COMPLETE = PatientInput(age=65, sex="male", medical_history={"Previous Cardiac Event"})
CANNED = RiskResult(risk_percent=12.0, tier="moderate")


class TestEstimationFlow:

    def test_starts_idle(self):
        flow = EstimationFlow(latency=0)
        assert flow.state is EstimationState.IDLE
        assert flow.result is None
        assert flow.error is None

    def test_latency_defaults_to_config(self):
        # conftest sets CARDIOGUARD_LATENCY_SECONDS=0
        assert EstimationFlow().latency == 0

    def test_done_after_complete_input(self):
        flow = EstimationFlow(latency=0)
        result = flow.submit(COMPLETE, rng=np.random.default_rng(3))
        assert isinstance(result, RiskResult)
        assert flow.state is EstimationState.DONE
        assert flow.result is result
        assert flow.error is None

    def test_failed_on_incomplete_input(self):
        flow = EstimationFlow(latency=0)
        assert flow.submit(PatientInput(age=50)) is None
        assert flow.state is EstimationState.FAILED
        assert isinstance(flow.error, IncompleteInputError)
        assert flow.error.missing == ["sex"]

    def test_resubmit_after_failure_clears_error(self):
        flow = EstimationFlow(latency=0)
        flow.submit(PatientInput())
        flow.submit(COMPLETE)
        assert flow.state is EstimationState.DONE
        assert flow.error is None

    def test_failure_clears_previous_result(self):
        flow = EstimationFlow(latency=0)
        flow.submit(COMPLETE)
        flow.submit(PatientInput(sex="female"))
        assert flow.result is None
        assert flow.state is EstimationState.FAILED

    def test_waits_for_latency_before_estimating(self):
        calls = []
        sleep = MagicMock(side_effect=lambda s: calls.append(("sleep", s)))

        def estimator(patient, rng=None):
            calls.append(("estimate", patient))
            return CANNED

        flow = EstimationFlow(latency=1.5, estimator=estimator, sleep=sleep)
        flow.submit(COMPLETE)
        assert calls == [("sleep", 1.5), ("estimate", COMPLETE)]

    def test_zero_latency_does_not_sleep(self):
        sleep = MagicMock()
        EstimationFlow(latency=0, sleep=sleep).submit(COMPLETE)
        sleep.assert_not_called()

    def test_reentrant_submit_refused(self):
        flow = EstimationFlow(latency=0)

        def estimator(patient, rng=None):
            assert flow.in_flight
            assert flow.result is None
            with pytest.raises(EstimationInProgressError):
                flow.submit(patient)
            return CANNED

        flow._estimator = estimator
        assert flow.submit(COMPLETE) is CANNED
        assert flow.state is EstimationState.DONE

    def test_previous_result_cleared_while_estimating(self):
        flow = EstimationFlow(latency=0)
        flow.submit(COMPLETE)
        seen = {}

        def estimator(patient, rng=None):
            seen["result"] = flow.result
            seen["state"] = flow.state
            return CANNED

        flow._estimator = estimator
        flow.submit(COMPLETE)
        assert seen == {"result": None, "state": EstimationState.ESTIMATING}

    def test_unexpected_error_unlocks_flow(self):
        flow = EstimationFlow(latency=0, estimator=MagicMock(side_effect=KeyError("boom")))
        with pytest.raises(KeyError):
            flow.submit(COMPLETE)
        assert not flow.in_flight

    def test_can_submit(self):
        flow = EstimationFlow(latency=0)
        assert flow.can_submit(COMPLETE)
        assert not flow.can_submit(PatientInput(age=40))
        flow.state = EstimationState.ESTIMATING
        assert not flow.can_submit(COMPLETE)

    def test_reset(self):
        flow = EstimationFlow(latency=0)
        flow.submit(COMPLETE)
        flow.reset()
        assert flow.state is EstimationState.IDLE
        assert flow.result is None
