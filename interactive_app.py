import logging

import streamlit as st

import app_config
from estimation_flow import EstimationFlow, EstimationState
from mace_risk import (
    CURRENT_MEDICATION_OPTIONS,
    ETHNICITY_OPTIONS,
    MEDICAL_HISTORY_OPTIONS,
    SEX_OPTIONS,
    TIER_HIGH,
    TIER_MODERATE,
    PatientInput,
    contributions_frame,
)

logging.basicConfig(
    level=app_config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# ============================================================
# Page config
# ============================================================
st.set_page_config(
    page_title="CardioGuard MoE – MACE Risk Assessment",
    layout="centered"
)

DISCLAIMER = (
    "**Disclaimer:** This tool provides simulated recommendations based on input data. "
    "It is not a substitute for professional medical advice. Always consult with a "
    "qualified healthcare professional for diagnosis and treatment decisions."
)


# ============================================================
# Helper functions
# ============================================================
def get_risk_category(tier: str):
    """Return (label, color) for the treatment tier."""
    if tier == TIER_HIGH:
        return "High — Intensive therapy / refer", "red"
    elif tier == TIER_MODERATE:
        return "Moderate — Consider meds and testing", "orange"
    else:
        return "Low — Lifestyle focus", "green"


def format_percent(p: float) -> str:
    return f"{p:.1f}%"


def checkbox_group(label: str, options, key_prefix: str):
    """Render one checkbox per option and return the checked ones."""
    st.markdown(f"**{label}**")
    cols = st.columns(3)
    selected = []
    for i, option in enumerate(options):
        with cols[i % 3]:
            if st.checkbox(option, key=f"{key_prefix}-{option}"):
                selected.append(option)
    return selected


def get_flow() -> EstimationFlow:
    # One flow per browser session; it owns the current result
    if "estimation" not in st.session_state:
        st.session_state["estimation"] = EstimationFlow()
    return st.session_state["estimation"]


flow = get_flow()

# ============================================================
# Header
# ============================================================
st.title("CardioGuard MoE")
st.caption("AI-Powered MACE Risk Assessment and Treatment Recommendation")

# ============================================================
# Static patient information
# ============================================================
with st.container(border=True):
    st.subheader("Static Patient Information")
    left, right = st.columns(2)
    with left:
        age = st.number_input(
            "Age",
            min_value=0,
            max_value=130,
            value=None,
            step=1,
            placeholder="e.g., 55",
            key="age",
        )
    with right:
        sex = st.selectbox(
            "Sex",
            SEX_OPTIONS,
            index=None,
            placeholder="Select sex",
            format_func=str.capitalize,
            key="sex",
        )
    ethnicity = checkbox_group("Ethnicity", ETHNICITY_OPTIONS, "ethnicity")

# ============================================================
# Temporal patient information
# ============================================================
with st.container(border=True):
    st.subheader("Temporal Patient Information")
    history = checkbox_group(
        "Medical History (Select all that apply)", MEDICAL_HISTORY_OPTIONS, "history"
    )
    medication = checkbox_group(
        "Current Medication (Select all that apply)", CURRENT_MEDICATION_OPTIONS, "med"
    )
    ehr_file = st.file_uploader("Upload EHR Record (Optional)", key="ehr-record")
    if ehr_file is not None:
        st.caption(f"File selected: {ehr_file.name}")

patient = PatientInput(
    age=age,
    sex=sex,
    ethnicity=frozenset(ethnicity),
    medical_history=frozenset(history),
    current_medication=frozenset(medication),
    ehr_record=ehr_file is not None,
)

# ============================================================
# Analyze
# ============================================================
analyze = st.button(
    "Analyze Patient Data",
    type="primary",
    disabled=not flow.can_submit(patient),
    width="stretch",
    key="analyze",
)
if not flow.in_flight and not patient.is_complete:
    st.caption(":red[Please enter Age and Sex to enable analysis.]")

if analyze:
    with st.spinner("Analyzing data... Please wait."):
        flow.submit(patient)

# ============================================================
# Results
# ============================================================
if flow.state is EstimationState.FAILED:
    st.error(str(flow.error))

if flow.state is EstimationState.DONE:
    result = flow.result
    risk_label, risk_color = get_risk_category(result.tier)

    st.divider()
    st.subheader("Analysis Results")

    with st.container(border=True):
        st.markdown("#### Estimated MACE Risk (1 Year)")
        st.markdown(
            f"<h2 style='color:{risk_color}; text-align:center; margin-bottom:0;'>"
            f"{format_percent(result.risk_percent)}</h2>",
            unsafe_allow_html=True,
        )
        st.markdown(f"**{risk_label}**")
        st.caption(
            "Major Adverse Cardiac Events (e.g., heart attack, stroke, cardiovascular death)"
        )

    if result.contributions:
        with st.container(border=True):
            st.markdown("#### Key Risk Contributors (Feature Importance)")
            st.caption("Factors influencing the risk score calculation.")
            for item in result.contributions:
                name_col, pct_col = st.columns([4, 1])
                name_col.markdown(item.feature)
                pct_col.markdown(f"**{format_percent(item.importance)}**")
                st.progress(min(1.0, item.importance / 100))
            with st.expander("Contributor table"):
                st.dataframe(
                    contributions_frame(result.contributions),
                    width="stretch",
                    hide_index=True,
                )

    med_col, proc_col = st.columns(2)
    with med_col:
        if result.medications:
            st.markdown("#### Medication Suggestions")
            st.markdown("\n".join(f"- {m}" for m in result.medications))
    with proc_col:
        if result.procedures:
            st.markdown("#### Procedure/Surgery Suggestions")
            st.markdown("\n".join(f"- {p}" for p in result.procedures))

    st.caption(DISCLAIMER)

# ============================================================
# About + footer
# ============================================================
with st.expander("About This App"):
    st.markdown(
        """
        ### What this app does

        - Produces a **simulated 1-year MACE risk** from age, sex, medical history
          and whether an EHR record was supplied.
        - The score is a simple point sum plus a small random component, clipped to 5–40%.
        - The **feature importance** chart is illustrative: each provided input gets a
          jittered base weight, normalized to 100%.
        - Treatment suggestions are static text chosen by risk tier and history flags.

        ### Important note

        - There is **no trained model** behind these numbers.
        - It is **not a medical device**. Do not use it to make treatment decisions.
        """
    )

st.markdown("---")
st.markdown(
    "<p style='text-align:center; color:gray;'>"
    "Educational demo only — not for clinical decision-making."
    "</p>",
    unsafe_allow_html=True,
)
