"""
Bottleneck Mapper - Pipeline Throughput Dashboard
Finds the stage that limits closed units per week and prices the fix.

Framework:
- Stage capacity: FTE x focus hours x utilization x rate x yield
- Funnel: each stage's output is discounted by the conversion product to the won stage
- Constraint: the smallest discounted capacity, capped by delivery capacity
"""

import json
import logging
from dataclasses import replace

import pandas as pd
import streamlit as st

from bottleneck_mapper.analysis import run_pipeline
from bottleneck_mapper.config import CASH_EFFICIENCY_THRESHOLD, DEFAULT_WINDOW_DAYS
from bottleneck_mapper.data_loader import parse_backlog, parse_benchmark, parse_scenario, validate_scenario
from bottleneck_mapper.llm import get_ai_recommendations, get_available_models
from bottleneck_mapper.models import AnalysisOptions, ConstraintKind
from bottleneck_mapper.presets import PRESETS
from bottleneck_mapper.recommendations import generate_recommendations
from bottleneck_mapper.report import (
    backlog_frame,
    benchmark_frame,
    capacity_frame,
    export_json,
    fmt_delta,
    fmt_number,
    fmt_ratio,
    impact_frame,
)

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

# =============================================================================
# PAGE SETUP
# =============================================================================

st.set_page_config(
    page_title="Bottleneck Mapper",
    page_icon="◆",
    layout="wide",
    initial_sidebar_state="expanded"
)

st.markdown("""
<style>
    .main-header {
        text-align: center;
        padding: 1.5rem 0 1rem 0;
    }
    .section-header {
        font-size: 1.2rem;
        font-weight: 600;
        padding-bottom: 0.5rem;
        border-bottom: 1px solid rgba(255,255,255,0.1);
        margin-bottom: 1rem;
    }
    .recommendation-card {
        border-left: 4px solid #64748b;
        padding: 0.75rem 1rem;
        margin-bottom: 0.75rem;
        background: rgba(30, 41, 59, 0.5);
        border-radius: 6px;
    }
    .recommendation-card.high { border-left-color: #f43f5e; }
    .recommendation-card.medium { border-left-color: #f59e0b; }
    .recommendation-card.low { border-left-color: #10b981; }
</style>
""", unsafe_allow_html=True)

st.markdown("""
<div class="main-header">
    <h1>◆ Bottleneck Mapper</h1>
    <p style="color: #94a3b8;">Where does pipeline throughput stop, and what is the fix worth?</p>
</div>
""", unsafe_allow_html=True)


@st.cache_data
def load_preset(preset_key: str):
    preset = PRESETS[preset_key]
    scenario = preset["scenario"]()
    previous = preset["previous"]() if "previous" in preset else None
    benchmark = preset["benchmark"]() if "benchmark" in preset else None
    return scenario, previous, benchmark


# =============================================================================
# SIDEBAR
# =============================================================================

with st.sidebar:
    st.markdown("### 📂 Scenario")
    source = st.radio("Source", ["Preset", "Upload JSON"], horizontal=True)

    scenario, previous, benchmark, backlog = None, None, None, []
    if source == "Preset":
        preset_key = st.selectbox(
            "Preset",
            list(PRESETS.keys()),
            format_func=lambda k: PRESETS[k]["label"]
        )
        scenario, previous, benchmark = load_preset(preset_key)
    else:
        scenario_file = st.file_uploader("Scenario", type="json")
        benchmark_file = st.file_uploader("Benchmark (optional)", type="json")
        backlog_file = st.file_uploader("Backlog (optional)", type="json")
        if scenario_file is not None:
            try:
                scenario = parse_scenario(scenario_file.getvalue())
                if benchmark_file is not None:
                    benchmark = parse_benchmark(benchmark_file.getvalue())
                if backlog_file is not None:
                    backlog = parse_backlog(backlog_file.getvalue())
            except (KeyError, TypeError, ValueError) as e:
                st.error(f"Could not parse upload: {e}")
                scenario = None

    st.markdown("---")
    st.markdown("### ⚙️ Configuration")
    window_days = st.number_input(
        "Window (days)", min_value=1.0, value=float(scenario.window_days) if scenario else float(DEFAULT_WINDOW_DAYS)
    )
    cash_threshold = st.number_input(
        "GP30 / CAC threshold", min_value=0.0, value=CASH_EFFICIENCY_THRESHOLD, step=0.5
    )

if scenario is None:
    st.info("Choose a preset or upload a scenario JSON file to begin.")
    st.stop()

if window_days != scenario.window_days:
    scenario = replace(scenario, window_days=window_days)

ok, message = validate_scenario(scenario, backlog)
if ok:
    st.sidebar.success(message)
else:
    st.sidebar.warning(message)

options = AnalysisOptions(cash_efficiency_threshold=cash_threshold)

with st.spinner('🔄 Mapping constraints...'):
    result = run_pipeline(scenario, benchmark=benchmark, previous=previous, backlog=backlog, options=options)
    recommendations = generate_recommendations(result, cash_threshold)

constraint = result.constraint
economics = result.economics
deltas = result.previous_deltas

# =============================================================================
# KEY METRICS
# =============================================================================

st.markdown('<div class="section-header">🎯 Key Metrics</div>', unsafe_allow_html=True)

col1, col2, col3, col4 = st.columns(4)
with col1:
    st.metric(
        "Throughput (won/wk)",
        fmt_number(constraint.system_flow, 2),
        delta=fmt_delta(deltas.get("system_flow_per_week"))
    )
    st.caption(f"Constraint: **{constraint.constraint_label or '—'}**")
with col2:
    st.metric(
        f"Revenue ({fmt_number(window_days)}d)",
        fmt_number(economics.revenue_window),
        delta=fmt_delta(deltas.get("revenue_window"))
    )
with col3:
    st.metric(
        f"Gross profit ({fmt_number(window_days)}d)",
        fmt_number(economics.gross_profit_window),
        delta=fmt_delta(deltas.get("gross_profit_window"))
    )
    st.caption(f"GP per head ceiling: {fmt_number(economics.revenue_per_headcount_ceiling)}")
with col4:
    st.metric(
        "GP30 / CAC",
        fmt_number(economics.cash_efficiency_ratio, 2),
        delta="Cash constrained" if economics.cash_constrained else None,
        delta_color="inverse"
    )
    st.caption(f"LTV/CAC {fmt_number(economics.ltv_to_cac, 1)} | payback {fmt_number(economics.payback_months, 1)} mo")

if constraint.kind == ConstraintKind.DELIVERY:
    st.error(
        f"Delivery binds: demand supports {fmt_number(constraint.demand_flow, 2)}/wk, "
        f"delivery handles {fmt_number(constraint.delivery_flow, 2)}/wk"
    )
elif constraint.kind == ConstraintKind.NONE:
    st.warning("No demand stages defined; throughput is zero.")

# =============================================================================
# TABS
# =============================================================================

tab1, tab2, tab3, tab4, tab5 = st.tabs(
    ["🏭 Capacity", "📏 Benchmarks", "🧪 Impact", "💡 Recommendations", "📤 Export"]
)

with tab1:
    st.markdown('<div class="section-header">Stage capacity and terminal flow</div>', unsafe_allow_html=True)
    st.dataframe(capacity_frame(result), use_container_width=True, hide_index=True)

    if result.required_volumes:
        st.markdown("#### Volume needed to fill delivery")
        st.dataframe(pd.DataFrame([
            {
                'Stage': r.stage_name,
                'Required/wk': fmt_number(r.volume_per_week, 1) if r.reachable else "unreachable",
            }
            for r in result.required_volumes
        ]), use_container_width=True, hide_index=True)

    if result.rate_intervals:
        with st.expander("📖 Conversion rate confidence intervals"):
            st.dataframe(pd.DataFrame([
                {
                    'Step': f"{r.from_stage} → {r.to_stage}",
                    'Rate': fmt_ratio(r.rate, 1),
                    'Interval': f"[{fmt_ratio(r.lower, 1)}, {fmt_ratio(r.upper, 1)}]",
                }
                for r in result.rate_intervals
            ]), use_container_width=True, hide_index=True)

    if result.backlog:
        st.markdown("#### Backlog")
        st.dataframe(backlog_frame(result.backlog), use_container_width=True, hide_index=True)

with tab2:
    if not result.benchmark_rows:
        st.info("No benchmark loaded for this scenario.")
    else:
        st.dataframe(benchmark_frame(result.benchmark_rows), use_container_width=True, hide_index=True)
        if result.best_metric is not None:
            st.success(
                f"Best metric: **{result.best_metric.label}** at {fmt_ratio(result.best_metric.ratio)} of target"
            )

with tab3:
    if not result.impacts:
        st.info("Load a benchmark to simulate restore-to-target impact.")
    else:
        if result.top_impact is not None:
            top = result.top_impact
            st.success(
                f"Top lever: **{top.key.label}** → +{fmt_number(top.economics_delta.gross_profit_window)} "
                f"gross profit over {fmt_number(window_days)} days"
            )
        else:
            st.info("Every lever is at or above target; no uplift available.")
        st.dataframe(impact_frame(result.impacts), use_container_width=True, hide_index=True)

with tab4:
    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("🔴 High Priority", sum(1 for r in recommendations if r['priority'] == 'High'))
    with col2:
        st.metric("🟡 Medium Priority", sum(1 for r in recommendations if r['priority'] == 'Medium'))
    with col3:
        st.metric("🟢 Low Priority", sum(1 for r in recommendations if r['priority'] == 'Low'))

    for rec in recommendations:
        priority_class = rec['priority'].lower()
        st.markdown(f"""
        <div class="recommendation-card {priority_class}">
            <strong>{rec['priority']} · {rec['type'].title()}</strong>
            <h4 style="margin: 0.25rem 0;">{rec['title']}</h4>
            <p style="margin: 0;">{rec['description']}</p>
            <p style="color: #10b981; margin: 0.25rem 0 0 0;"><strong>💰 Impact:</strong> {rec['impact']}</p>
            <p style="color: #94a3b8; margin: 0;"><strong>⚡ Effort:</strong> {rec['effort']}</p>
        </div>
        """, unsafe_allow_html=True)

    st.markdown("---")
    st.markdown("### 🤖 AI Briefing")
    models = get_available_models()
    model = st.selectbox("Model", [m["id"] for m in models],
                         format_func=lambda m: next(x["name"] for x in models if x["id"] == m))
    api_key = st.text_input("OpenRouter API key", type="password")
    if st.button("Generate briefing"):
        with st.spinner("Asking the model..."):
            content, error = get_ai_recommendations(result, recommendations, api_key=api_key or None, model=model)
        if error:
            st.error(error)
        else:
            st.markdown(content)

with tab5:
    payload = export_json(result, benchmark, backlog)
    st.download_button("Download result JSON", payload, file_name="bottleneck_mapper.json",
                       mime="application/json")
    with st.expander("Preview"):
        st.json(json.loads(payload))
