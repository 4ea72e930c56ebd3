"""LLM integration using OpenRouter for narrative bottleneck briefings."""

import logging
import os
from typing import Dict, List, Optional, Tuple

from openai import OpenAI

from bottleneck_mapper.models import ConstraintKind, PipelineResult
from bottleneck_mapper.report import fmt_number, fmt_ratio

logger = logging.getLogger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "anthropic/claude-sonnet-4"


def get_ai_recommendations(
    result: PipelineResult,
    recommendations: List[Dict],
    api_key: Optional[str] = None,
    model: str = DEFAULT_MODEL
) -> Tuple[Optional[str], Optional[str]]:
    """
    Generate a narrative briefing for a pipeline result using OpenRouter.

    Args:
        result: Output of run_pipeline
        recommendations: Rule-based recommendations for the same result
        api_key: OpenRouter API key (or from env OPENROUTER_API_KEY)
        model: Model to use

    Returns:
        Tuple of (response_content, error_message)
    """
    api_key = api_key or os.environ.get("OPENROUTER_API_KEY")

    if not api_key:
        return None, "No API key provided"

    context = _build_context(result, recommendations)

    system_prompt = """You are a revenue operations expert. Analyze pipeline capacity and conversion data and explain where throughput is lost.
Be specific. Reference actual stage names and numbers from the data.
Format your response in clean markdown."""

    user_prompt = f"""## Current Situation

{context}

## Your Task

Based on this data, provide:

1. **Executive Summary** (2-3 sentences)
2. **The Binding Constraint** - Why it binds and what relieving it unlocks
3. **Top 3 Priority Actions** - Specific steps with expected impact
4. **Cash Position** - Whether growth should be throttled by cash"""

    try:
        client = OpenAI(
            base_url=OPENROUTER_BASE_URL,
            api_key=api_key
        )

        response = client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt}
            ],
            max_tokens=1500,
            temperature=0.7
        )

        return response.choices[0].message.content, None

    except Exception as e:
        logger.warning("OpenRouter request failed: %s", e)
        error_msg = str(e)
        if "401" in error_msg:
            return None, "Invalid API key. Check your OpenRouter API key."
        elif "404" in error_msg:
            return None, f"Model '{model}' not found. Try a different model."
        elif "timeout" in error_msg.lower():
            return None, "Request timed out. Try a faster model."
        elif "connection" in error_msg.lower():
            return None, "Connection error. Check your internet connection."
        else:
            return None, f"Error: {error_msg}"


def _build_context(result: PipelineResult, recommendations: List[Dict]) -> str:
    """Build context string for the LLM prompt."""
    scenario = result.scenario
    constraint = result.constraint
    economics = result.economics

    if constraint.kind == ConstraintKind.NONE:
        binding = "none (no demand stages)"
    else:
        binding = constraint.constraint_label

    context = f"""### Scenario: {scenario.name}
- **Window:** {fmt_number(scenario.window_days)} days
- **System throughput:** {fmt_number(constraint.system_flow, 2)} closed units/wk
- **Binding constraint:** {binding}
- **Delivery capacity:** {fmt_number(constraint.delivery_flow, 2)}/wk vs demand {fmt_number(constraint.demand_flow, 2)}/wk

### Economics
- **Revenue (window):** {fmt_number(economics.revenue_window)}
- **Gross profit (window):** {fmt_number(economics.gross_profit_window)}
- **GP per head ceiling:** {fmt_number(economics.revenue_per_headcount_ceiling)}
- **GP30 / CAC:** {fmt_number(economics.cash_efficiency_ratio, 2)}{' (cash constrained)' if economics.cash_constrained else ''}
- **LTV / CAC:** {fmt_number(economics.ltv_to_cac, 2)}

### Stage Capacity
"""

    for i, flow in enumerate(constraint.stage_flows):
        marker = " ← constraint" if i == constraint.constraint_index else ""
        context += (
            f"- **{flow.stage_name}**: {fmt_number(flow.capacity_per_week, 1)}/wk capacity, "
            f"downstream product {flow.downstream_product:.3f}{marker}\n"
        )

    if result.benchmark_rows:
        context += "\n### Benchmark Attainment\n"
        for row in result.benchmark_rows:
            context += f"- **{row.label}**: {fmt_ratio(row.ratio)} ({row.status.value})\n"

    if result.impacts:
        context += "\n### Restore-to-Benchmark Impact\n"
        for impact in result.impacts[:5]:
            context += (
                f"- **{impact.key.label}**: +{fmt_number(impact.flow_delta, 3)}/wk, "
                f"+{fmt_number(impact.economics_delta.gross_profit_window)} gross profit\n"
            )

    if recommendations:
        context += "\n### Rule-based Findings\n"
        for rec in recommendations[:5]:
            context += f"- [{rec['priority']}] {rec['title']}: {rec['impact']}\n"

    return context


def get_available_models() -> List[Dict]:
    """Return list of recommended models for this use case."""
    return [
        {"id": "anthropic/claude-sonnet-4", "name": "Claude Sonnet 4 (Recommended)"},
        {"id": "anthropic/claude-3.5-haiku", "name": "Claude 3.5 Haiku (Fast)"},
        {"id": "openai/gpt-4o", "name": "GPT-4o"},
        {"id": "openai/gpt-4o-mini", "name": "GPT-4o Mini (Fast)"},
        {"id": "google/gemini-2.0-flash-001", "name": "Gemini 2.0 Flash"},
    ]
