"""
Simulated 1-year MACE risk estimation.

The score is a rule-of-thumb point sum plus a small random draw, and the
"feature importance" is a jittered base-weight table normalized to 100%.
Neither comes from a trained model. For demonstration only.
"""

import logging
import numbers
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Tuple

import numpy as np
import pandas as pd

import app_config

logger = logging.getLogger(__name__)

# ============================================================
# Option sets exposed to the form
# ============================================================
SEX_OPTIONS = ("male", "female", "other")

ETHNICITY_OPTIONS = (
    "Asian",
    "Black or African American",
    "Hispanic or Latino",
    "White",
    "Other",
)

MEDICAL_HISTORY_OPTIONS = (
    "Smoking",
    "Previous Cardiac Event",
    "Diabetes",
    "Cancer",
    "Hypertension",
    "Dyslipidemia",
)

CURRENT_MEDICATION_OPTIONS = (
    "Aspirin",
    "Beta Blockers",
    "ACE Inhibitors",
    "Statins",
    "Anticoagulants",
    "Diuretics",
)

# ============================================================
# Risk score points
# ============================================================
BASE_RISK = 5.0
AGE_THRESHOLD = 60
AGE_POINTS_OVER = 10.0
AGE_POINTS_UNDER = 5.0
MALE_POINTS = 3.0
OTHER_SEX_POINTS = 1.0
EHR_POINTS = 2.0

HISTORY_POINTS = {
    "Previous Cardiac Event": 15.0,
    "Smoking": 5.0,
    "Diabetes": 4.0,
    "Hypertension": 3.0,
}

RISK_NOISE_MAX = 5.0   # uniform [0, 5) added on top of the point sum
RISK_FLOOR = 5.0
RISK_CEILING = 40.0

HIGH_RISK_THRESHOLD = 20.0
MODERATE_RISK_THRESHOLD = 10.0

# ============================================================
# Feature importance base weights
# ============================================================
BASE_IMPORTANCE = {
    "Age": 0.30,
    "Sex": 0.15,
    "Ethnicity": 0.05,
    "Smoking": 0.20,
    "Previous Cardiac Event": 0.35,
    "Diabetes": 0.25,
    "Cancer": 0.05,
    "Hypertension": 0.15,
    "Dyslipidemia": 0.10,
    "Aspirin": 0.05,
    "Beta Blockers": 0.05,
    "ACE Inhibitors": 0.05,
    "Statins": 0.10,
    "Anticoagulants": 0.08,
    "Diuretics": 0.03,
    "EHR Data": 0.10,
}

SINGLE_JITTER = 0.10       # Age, Sex, EHR Data
ETHNICITY_JITTER = 0.20
CONDITION_JITTER = 0.15    # history and medication entries
MIN_IMPORTANCE = 0.1       # keeps tiny factors visible on a progress bar

# ============================================================
# Treatment suggestion text
# ============================================================
SMOKING_CESSATION = "Smoking Cessation Counseling/Therapy"

TIER_HIGH = "high"
TIER_MODERATE = "moderate"
TIER_LOW = "low"


class IncompleteInputError(ValueError):
    """Age and/or sex were not provided."""

    def __init__(self, missing):
        self.missing = list(missing)
        super().__init__(
            f"{' and '.join(f.capitalize() for f in self.missing)} "
            f"{'is' if len(self.missing) == 1 else 'are'} required."
        )


@dataclass(frozen=True)
class PatientInput:
    age: Optional[int] = None
    sex: Optional[str] = None
    ethnicity: FrozenSet[str] = frozenset()
    medical_history: FrozenSet[str] = frozenset()
    current_medication: FrozenSet[str] = frozenset()
    ehr_record: bool = False

    def __post_init__(self):
        age = self.age
        # Text field contents: blank means "not entered"
        if isinstance(age, str):
            age = parse_age(age)
        if age is not None:
            if isinstance(age, bool) or not isinstance(age, numbers.Real):
                raise ValueError(f"Age must be a whole number, got {age!r}")
            # is_integer() is False for inf and nan
            if not isinstance(age, numbers.Integral) and not float(age).is_integer():
                raise ValueError(f"Age must be a whole number, got {age!r}")
            if age < 0:
                raise ValueError(f"Age must be non-negative, got {age}")
            age = int(age)
        object.__setattr__(self, "age", age)
        # Empty string from a cleared select means "not chosen"
        if self.sex == "":
            object.__setattr__(self, "sex", None)
        if self.sex is not None and self.sex not in SEX_OPTIONS:
            raise ValueError(f"Unknown sex {self.sex!r}; expected one of {SEX_OPTIONS}")

        for name, options in (
            ("ethnicity", ETHNICITY_OPTIONS),
            ("medical_history", MEDICAL_HISTORY_OPTIONS),
            ("current_medication", CURRENT_MEDICATION_OPTIONS),
        ):
            values = frozenset(getattr(self, name))
            unknown = sorted(values.difference(options))
            if unknown:
                raise ValueError(f"Unknown {name.replace('_', ' ')} option(s): {unknown}")
            object.__setattr__(self, name, values)

        object.__setattr__(self, "ehr_record", bool(self.ehr_record))

    def missing_fields(self) -> List[str]:
        missing = []
        if self.age is None:
            missing.append("age")
        if self.sex is None:
            missing.append("sex")
        return missing

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()


@dataclass(frozen=True)
class FeatureContribution:
    feature: str
    importance: float


@dataclass(frozen=True)
class RiskResult:
    risk_percent: float
    tier: str
    contributions: Tuple[FeatureContribution, ...] = field(default_factory=tuple)
    medications: Tuple[str, ...] = field(default_factory=tuple)
    procedures: Tuple[str, ...] = field(default_factory=tuple)


# ============================================================
# Helper functions
# ============================================================
def parse_age(text) -> Optional[int]:
    """Digits-only age field: '' -> None, '55' -> 55, anything else rejected."""
    if text is None:
        return None
    text = str(text).strip()
    if text == "":
        return None
    if not text.isdigit():
        raise ValueError(f"Age must contain digits only, got {text!r}")
    return int(text)


def make_rng(seed=None) -> np.random.Generator:
    if seed is None:
        seed = app_config.RANDOM_SEED
    return np.random.default_rng(seed)


def _in_display_order(values, options):
    return [o for o in options if o in values]


def compute_mace_risk(patient: PatientInput, rng: np.random.Generator) -> float:
    """Point-sum risk in percent, with a uniform [0, 5) draw, clipped to [5, 40]."""
    score = BASE_RISK
    score += AGE_POINTS_OVER if patient.age > AGE_THRESHOLD else AGE_POINTS_UNDER
    score += MALE_POINTS if patient.sex == "male" else OTHER_SEX_POINTS
    for condition, points in HISTORY_POINTS.items():
        if condition in patient.medical_history:
            score += points
    if patient.ehr_record:
        score += EHR_POINTS
    score += rng.uniform(0.0, RISK_NOISE_MAX)
    return float(np.clip(score, RISK_FLOOR, RISK_CEILING))


def compute_feature_importance(patient: PatientInput, rng: np.random.Generator):
    """
    Jitter the base weight of every provided input, then normalize the
    weights to percentages (floored at MIN_IMPORTANCE) and sort descending.
    """
    def jittered(key, spread):
        return BASE_IMPORTANCE[key] * (1 + rng.uniform(-spread, spread))

    raw = []
    if patient.age is not None:
        raw.append(("Age", jittered("Age", SINGLE_JITTER)))
    if patient.sex is not None:
        raw.append(("Sex", jittered("Sex", SINGLE_JITTER)))
    for e in _in_display_order(patient.ethnicity, ETHNICITY_OPTIONS):
        raw.append((f"Ethnicity: {e}", jittered("Ethnicity", ETHNICITY_JITTER)))
    for h in _in_display_order(patient.medical_history, MEDICAL_HISTORY_OPTIONS):
        raw.append((f"History: {h}", jittered(h, CONDITION_JITTER)))
    for m in _in_display_order(patient.current_medication, CURRENT_MEDICATION_OPTIONS):
        raw.append((f"Medication: {m}", jittered(m, CONDITION_JITTER)))
    if patient.ehr_record:
        raw.append(("EHR Data", jittered("EHR Data", SINGLE_JITTER)))

    if not raw:
        return ()

    weights = np.array([w for _, w in raw], dtype=float)
    total = weights.sum()
    if total > 0:
        pct = np.maximum(MIN_IMPORTANCE, weights / total * 100)
    else:
        pct = np.zeros_like(weights)

    contributions = [
        FeatureContribution(feature=label, importance=float(p))
        for (label, _), p in zip(raw, pct)
    ]
    contributions.sort(key=lambda c: c.importance, reverse=True)
    return tuple(contributions)


def get_treatment_tier(risk: float, history) -> str:
    if risk > HIGH_RISK_THRESHOLD or "Previous Cardiac Event" in history:
        return TIER_HIGH
    elif risk > MODERATE_RISK_THRESHOLD:
        return TIER_MODERATE
    else:
        return TIER_LOW


def recommend_treatments(risk: float, history):
    """Return (tier, medications, procedures) for the risk and history flags."""
    tier = get_treatment_tier(risk, history)
    hypertension = "Hypertension" in history
    diabetes = "Diabetes" in history

    if tier == TIER_HIGH:
        meds = ["High-Intensity Statins", "Dual Antiplatelet Therapy"]
        if hypertension:
            meds.append("ACE Inhibitor or ARB")
        if diabetes:
            meds.append("SGLT2 Inhibitor or GLP-1 RA")
        procedures = ["Coronary Angiography ± PCI", "CABG Evaluation"]
    elif tier == TIER_MODERATE:
        meds = ["Moderate-Intensity Statins", "Aspirin 81mg"]
        if hypertension:
            meds.append("Consider ACE Inhibitor or ARB")
        if diabetes:
            meds.append("Consider Metformin, SGLT2i or GLP-1 RA")
        procedures = ["Consider Coronary Calcium Score", "Consider Stress Test"]
    else:
        meds = [
            "Lifestyle Modifications (Diet, Exercise)",
            "Consider Low-Dose Aspirin (if high ASCVD risk)",
        ]
        if hypertension:
            meds.append("Continue existing BP meds / Lifestyle")
        procedures = ["Routine Follow-up", "Preventive Screening"]

    if "Smoking" in history:
        meds.append(SMOKING_CESSATION)

    return tier, tuple(meds), tuple(procedures)


# ============================================================
# Public entry point
# ============================================================
def estimate(patient: PatientInput, rng: Optional[np.random.Generator] = None) -> RiskResult:
    missing = patient.missing_fields()
    if missing:
        raise IncompleteInputError(missing)

    if rng is None:
        rng = make_rng()

    risk = compute_mace_risk(patient, rng)
    contributions = compute_feature_importance(patient, rng)
    tier, meds, procedures = recommend_treatments(risk, patient.medical_history)

    logger.debug("Estimated MACE risk %.1f%% (tier=%s, %d contributors)",
                 risk, tier, len(contributions))

    return RiskResult(
        risk_percent=risk,
        tier=tier,
        contributions=contributions,
        medications=meds,
        procedures=procedures,
    )


def contributions_frame(contributions) -> pd.DataFrame:
    """Tabular view of the contributors for st.dataframe / CSV export."""
    return pd.DataFrame(
        [{"Feature": c.feature, "Importance (%)": round(c.importance, 1)}
         for c in contributions],
        columns=["Feature", "Importance (%)"],
    )
