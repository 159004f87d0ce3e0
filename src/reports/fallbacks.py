"""
Fallback payloads for each analysis stage.

Used when a stage's backend call fails, and as the neutral placeholders of
the free preview. Each builder returns a validated stage model so a
fallback can never break the stream's schema.
"""

from typing import Any, Dict

from reports.models import (
    OptimizationAnalysis,
    ProfileSynthesis,
    RiskAssessment,
    Roadmap,
)
from reports.user_data import as_number

UK_AVERAGE_SAVINGS_RATE = 8.8


def profile_synthesis_fallback(user_data: Dict[str, Any]) -> ProfileSynthesis:
    """Profile text built from the computed income figures alone."""
    income = user_data.get("income") or {}
    true_rate = as_number(income.get("trueHourlyWage"))
    stated_rate = as_number(income.get("statedHourlyWage"))
    gross = as_number(income.get("grossAnnualSalary"))
    net = as_number(income.get("netAnnualSalary"))
    effective_rate = as_number(income.get("effectiveTaxRate"))
    hidden = as_number(income.get("hiddenAnnualCost"))

    return ProfileSynthesis(
        uncomfortable_truth=(
            f"Your true hourly wage is £{true_rate:.2f}, not the £{stated_rate:.2f} you think. "
            "That difference represents real money you're working for free."
        ),
        income_reality=(
            f"On a gross salary of £{gross:,.0f}, you take home £{net:,.0f} after tax and deductions. "
            f"Your effective tax rate is {effective_rate:.1f}%."
        ),
        hidden_costs_bombshell=(
            f"Your hidden work costs total £{hidden:,.0f} per year. "
            "That's money bleeding from your earnings that you probably don't track."
        ),
        spending_patterns=(
            "Your current savings rate needs examination. "
            f"The UK average is {UK_AVERAGE_SAVINGS_RATE}%. "
            "Every percentage point matters on your path to financial independence."
        ),
        time_tradeoffs=(
            "You're trading your time at a rate you might not fully appreciate. "
            "Understanding the true cost of each hour is the first step to freedom."
        ),
        fire_progress=(
            "Based on your current trajectory, financial independence is achievable "
            "but requires strategic optimisation."
        ),
        overall_rating="Fair",
        one_line_summary=(
            "Your finances have potential, but hidden costs and missed opportunities "
            "are adding years to your timeline."
        ),
    )


def optimization_analysis_fallback(user_data: Dict[str, Any]) -> OptimizationAnalysis:
    return OptimizationAnalysis(
        quick_wins=[],
        strategic_moves=[],
        contrarian_insights=[],
        cross_system_opportunities=[],
        top_recommendation=None,
    )


def risk_assessment_fallback(user_data: Dict[str, Any]) -> RiskAssessment:
    return RiskAssessment(high_priority_risks=[], overall_risk_rating="Moderate")


def roadmap_fallback(user_data: Dict[str, Any]) -> Roadmap:
    return Roadmap(roadmap={}, final_comparison=None, personalized_motivation="")
