"""
Caller-owned state for one analysis at a time.

The page keeps a single EstimationFlow in its session. The flow moves
IDLE -> ESTIMATING -> DONE | FAILED, and refuses a second submission while
one is outstanding.
"""

import enum
import logging
import time

import app_config
from mace_risk import IncompleteInputError, estimate

logger = logging.getLogger(__name__)


class EstimationState(enum.Enum):
    IDLE = "idle"
    ESTIMATING = "estimating"
    DONE = "done"
    FAILED = "failed"


class EstimationInProgressError(RuntimeError):
    pass


class EstimationFlow:
    def __init__(self, latency=None, estimator=estimate, sleep=time.sleep):
        self.latency = app_config.LATENCY_SECONDS if latency is None else latency
        self._estimator = estimator
        self._sleep = sleep
        self.state = EstimationState.IDLE
        self.result = None
        self.error = None

    @property
    def in_flight(self) -> bool:
        return self.state is EstimationState.ESTIMATING

    def can_submit(self, patient) -> bool:
        return not self.in_flight and patient.is_complete

    def reset(self):
        self.state = EstimationState.IDLE
        self.result = None
        self.error = None

    def submit(self, patient, rng=None):
        """
        Run one estimation behind the simulated latency.

        Returns the RiskResult, or None when the input was incomplete (the
        error is kept on ``self.error`` and the state is FAILED).
        """
        if self.in_flight:
            raise EstimationInProgressError("An analysis is already running.")

        self.result = None
        self.error = None
        self.state = EstimationState.ESTIMATING
        logger.info("Analysis started (age given=%s, sex given=%s)",
                    patient.age is not None, patient.sex is not None)

        try:
            if self.latency > 0:
                self._sleep(self.latency)
            result = self._estimator(patient, rng=rng)
        except IncompleteInputError as exc:
            logger.warning("Analysis rejected: %s", exc)
            self.error = exc
            self.state = EstimationState.FAILED
            return None
        except Exception:
            # Unexpected failure: do not leave the form locked in ESTIMATING
            self.state = EstimationState.IDLE
            raise

        self.result = result
        self.state = EstimationState.DONE
        logger.info("Analysis finished: risk=%.1f%% tier=%s",
                    result.risk_percent, result.tier)
        return result
