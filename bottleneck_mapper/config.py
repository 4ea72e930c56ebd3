"""Configuration constants for the Bottleneck Mapper."""

import math

DAYS_PER_WEEK = 7
DAYS_PER_MONTH = 30
MONTHS_PER_YEAR = 12
DEFAULT_WINDOW_DAYS = 90

# Ratios framed as "higher is better" resolve to this when their denominator is 0
UNBOUNDED = math.inf

FLOW_EPSILON = 1e-9
CASH_EFFICIENCY_THRESHOLD = 3.0
SLIGHTLY_BELOW_THRESHOLD = 0.95
BACKLOG_ALERT_WEEKS = 1.0
DEFAULT_CONFIDENCE = 0.95

DELIVERY_LABEL = "Delivery"
DEFAULT_TERMINAL_STAGE = "CloseWon"

LOWER_IS_BETTER = frozenset({
    "sales_cycle_days",
    "onboarding_days",
    "churn_monthly",
    "cac",
    "dso",
    "no_show_rate",
})

# (id, name, unit, owner) in pipeline order
DEFAULT_STAGE_TEMPLATES = [
    ("s1", "Awareness", "lead", "Marketing"),
    ("s2", "Lead", "lead", "Marketing/SDR"),
    ("s3", "Qualified", "lead", "SDR"),
    ("s4", "Booked", "meeting", "SDR"),
    ("s5", "Show", "meeting", "AE"),
    ("s6", "Proposal", "proposal", "AE/RevOps"),
    ("s7", "CloseWon", "deal", "AE"),
    ("s8", "Onboarding", "client", "Delivery/CS"),
    ("s9", "Aha", "client", "Delivery/CS"),
    ("s10", "Service delivery", "client", "Delivery"),
    ("s11", "Renewal/Expansion", "client", "CS"),
]
DEFAULT_UTILIZATION = 0.85
