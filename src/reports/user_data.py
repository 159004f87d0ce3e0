"""
User data collection.

Flattens the primary scenario and any comparison scenarios into the
single camelCase document every analysis stage receives. Each
calculator contributes one section; a calculator the user never ran
contributes its "not analysed" shape so the document is always complete.

Scenario contents are stored as the calculators produced them, so any
numeric figure may be a number, a numeric string, null or junk. Every
figure read here goes through ``as_number``.

Only the first comparison scenario of each calculator type is used.
"""

import math
from typing import Any, Callable, Dict, Iterable, Optional

from reports.models import Scenario

TAX_TRAP_LOWER = 100_000
TAX_TRAP_UPPER = 125_140
TAX_TRAP_BAND = 25_140
TAX_TRAP_MARGINAL = 0.6

DEFAULT_CONTRACT_HOURS = 37.5
ASSUMED_SPENDING_SHARE = 0.7
SAFE_WITHDRAWAL_MULTIPLE = 25
SAFE_WITHDRAWAL_RATE = 0.04


def as_number(value: Any) -> float:
    """Numeric value of a scenario figure; anything unreadable is 0."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        number = value
    elif isinstance(value, str):
        try:
            number = float(value.strip().replace(",", ""))
        except ValueError:
            return 0
    else:
        return 0
    return number if math.isfinite(number) else 0


def _number(*values: Any, default: float = 0) -> float:
    """First value that reads as a non-zero number, else `default`."""
    for value in values:
        number = as_number(value)
        if number:
            return number
    return default


def _first(*values: Any, default: Any = None) -> Any:
    """First truthy value, else `default`. For text and list fields."""
    for value in values:
        if value:
            return value
    return default


def _parts(scenario: Optional[Scenario]):
    if scenario is None:
        return {}, {}
    return scenario.data.inputs or {}, scenario.data.results or {}


def _dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _net_salary(results: Dict[str, Any]) -> float:
    tax = _dict(results.get("taxBreakdown"))
    return _number(tax.get("netSalary"), results.get("annualNetIncome"))


# =============================================================================
# PRIMARY SCENARIO SECTIONS
# =============================================================================

def extract_income(primary: Scenario) -> Dict[str, Any]:
    inputs, results = _parts(primary)
    tax = _dict(results.get("taxBreakdown"))
    time_breakdown = _dict(results.get("timeBreakdown"))

    gross = _number(inputs.get("salary"))
    net = _net_salary(results)
    pension_percent = _number(inputs.get("pensionPercent"), inputs.get("pensionContribution"))
    pension_amount = gross * (pension_percent / 100)
    contract_hours = _number(inputs.get("contractHours"), inputs.get("weeklyHours"), default=DEFAULT_CONTRACT_HOURS)
    total_hours = _number(time_breakdown.get("weeklyTotalHours"), results.get("totalWeeklyHours"), default=contract_hours)
    stated = _number(results.get("assumedHourlyRate"))
    true_rate = _number(results.get("trueHourlyRate"))
    in_tax_trap = TAX_TRAP_LOWER <= gross <= TAX_TRAP_UPPER

    income = {
        "grossAnnualSalary": gross,
        "netAnnualSalary": net,
        "monthlyTakeHome": net / 12,
        "incomeTax": _number(tax.get("incomeTax")),
        "nationalInsurance": _number(tax.get("nationalInsurance")),
        "studentLoanRepayments": {"total": _number(tax.get("studentLoan"))},
        "pensionContributions": {
            "employee": pension_amount,
            "employer": 0,
            "total": pension_amount,
        },
        "effectiveTaxRate": _number(tax.get("effectiveTaxRate")),
        "marginalTaxRate": _number(tax.get("effectiveMarginalRate")),
        "contractedHoursPerWeek": contract_hours,
        "actualHoursPerWeek": total_hours,
        "unpaidOvertimeHours": total_hours - contract_hours,
        "statedHourlyWage": stated,
        "trueHourlyWage": true_rate,
        "hourlyWageDifference": stated - true_rate,
        "hiddenAnnualCost": _number(results.get("hiddenCosts"), results.get("annualWorkCosts")),
        "inTaxTrap": in_tax_trap,
    }
    if in_tax_trap:
        income["taxTrapCost"] = min(gross - TAX_TRAP_LOWER, TAX_TRAP_BAND) * TAX_TRAP_MARGINAL
    return income


def extract_spending(primary: Scenario) -> Dict[str, Any]:
    inputs, results = _parts(primary)

    commute = _number(inputs.get("commuteCost"))
    work_expenses = _number(inputs.get("workExpenses"))
    work_clothes = _number(inputs.get("workClothes"))
    monthly_net = _net_salary(results) / 12
    monthly_total = commute + work_expenses + work_clothes
    monthly_savings = max(0, monthly_net - monthly_total)
    savings_rate = (monthly_savings / monthly_net) * 100 if monthly_net > 0 else 0

    return {
        "monthlyEssentials": monthly_total,
        "monthlyDiscretionary": 0,
        "monthlyTotal": monthly_total,
        "annualTotal": monthly_total * 12,
        "housing": 0,
        "food": 0,
        "transport": commute * 12,
        "utilities": 0,
        "insurance": 0,
        "debt": 0,
        "entertainment": 0,
        "other": (work_expenses + work_clothes) * 12,
        "monthlySavings": monthly_savings,
        "savingsRate": savings_rate,
        "annualSavings": monthly_savings * 12,
    }


def extract_fire_journey(primary: Scenario) -> Dict[str, Any]:
    inputs, results = _parts(primary)
    fire = _dict(results.get("fireProgress"))

    age = _number(inputs.get("currentAge"), inputs.get("age"), default=30)
    net = _net_salary(results)
    annual_spending = net * ASSUMED_SPENDING_SHARE
    fire_number = _number(fire.get("fireNumber"), default=annual_spending * SAFE_WITHDRAWAL_MULTIPLE)
    savings = _number(inputs.get("currentSavings"), inputs.get("netWorth"))
    progress = (savings / fire_number) * 100 if fire_number > 0 else 0
    savings_rate = ((net - annual_spending) / net) * 100 if net > 0 else 0
    halfway = progress >= 50

    return {
        "currentAge": age,
        "currentNetWorth": savings,
        "currentSavings": savings,
        "currentInvestments": _number(inputs.get("currentInvestments")),
        "targetAnnualSpending": annual_spending,
        "targetFINumber": fire_number,
        "targetFIAge": _number(inputs.get("targetFIAge"), default=55),
        "currentProgressPercent": min(progress, 100),
        "savingsRatePercent": savings_rate,
        "monthsOfExpensesCovered": savings / (annual_spending / 12) if annual_spending > 0 else 0,
        "passiveIncomeMonthly": (savings * SAFE_WITHDRAWAL_RATE) / 12,
        "projections": {
            "coastFI": {"reached": halfway, "yearsToReach": 0 if halfway else 10, "coastFINumber": fire_number * 0.5},
            "leanFI": {"yearsToReach": _number(fire.get("leanFIYears"), default=15), "targetNumber": fire_number * 0.6},
            "standardFI": {
                "yearsToReach": _number(fire.get("yearsToFI"), fire.get("standardFIYears"), default=20),
                "targetNumber": fire_number,
            },
            "fatFI": {"yearsToReach": _number(fire.get("fatFIYears"), default=25), "targetNumber": fire_number * 1.5},
        },
        "milestones": {
            "first10k": savings >= 10_000,
            "first50k": savings >= 50_000,
            "first100k": savings >= 100_000,
            "halfwayToFI": halfway,
            "coastFI": halfway,
        },
        "scenarios": {
            "optimistic": {"assumedReturn": 10, "yearsToFI": _number(fire.get("optimisticYears"), default=15)},
            "realistic": {"assumedReturn": 7, "yearsToFI": _number(fire.get("yearsToFI"), default=20)},
            "pessimistic": {"assumedReturn": 4, "yearsToFI": _number(fire.get("pessimisticYears"), default=30)},
        },
    }


# =============================================================================
# COMPARISON SCENARIO SECTIONS
# =============================================================================

def extract_commute(scenario: Optional[Scenario]) -> Dict[str, Any]:
    if scenario is None:
        return {"hasCommute": False, "alternatives": [], "bestAlternative": {"method": "N/A", "totalAnnualSavings": 0}}

    inputs, results = _parts(scenario)
    return {
        "hasCommute": True,
        "currentMethod": {
            "name": _first(inputs.get("currentMethod"), results.get("currentMethod"), default="Unknown"),
            "oneWayTimeMinutes": _number(inputs.get("oneWayTime"), inputs.get("commuteMinutes")),
            "oneWayDistanceMiles": _number(inputs.get("oneWayDistance")),
            "costPerTrip": _number(inputs.get("costPerTrip")),
            "daysPerWeek": _number(inputs.get("daysPerWeek"), default=5),
            "annualCost": _number(results.get("annualCost"), results.get("currentAnnualCost")),
            "annualHours": _number(results.get("annualHours"), results.get("currentAnnualHours")),
            "annualMiles": _number(results.get("annualMiles")),
            "annualCO2kg": _number(results.get("annualCO2"), results.get("annualCO2kg")),
            "timeValueAtTrueWage": _number(results.get("timeValue"), results.get("timeValueAtTrueWage")),
            "totalAnnualBurden": _number(results.get("totalBurden"), results.get("totalAnnualBurden")),
        },
        "alternatives": results.get("alternatives") or [],
        "bestAlternative": results.get("bestAlternative") or {"method": "N/A", "totalAnnualSavings": 0},
    }


def extract_geo(scenario: Optional[Scenario]) -> Dict[str, Any]:
    if scenario is None:
        return {
            "hasAnalyzed": False,
            "currentLocation": {"city": "UK", "country": "UK", "costOfLivingIndex": 100},
            "targetLocations": [],
        }

    inputs, results = _parts(scenario)
    return {
        "hasAnalyzed": True,
        "currentLocation": {
            "city": _first(inputs.get("currentCity"), results.get("currentCity"), default="UK"),
            "country": "UK",
            "costOfLivingIndex": 100,
            "monthlyRent1Bed": _number(inputs.get("currentRent")),
            "monthlyLivingCost": _number(inputs.get("currentLivingCost")),
        },
        "targetLocations": _first(results.get("targetLocations"), results.get("locations"), default=[]),
        "topRecommendation": _first(results.get("topRecommendation"), results.get("bestLocation")),
    }


def extract_pension(scenario: Optional[Scenario]) -> Dict[str, Any]:
    if scenario is None:
        return {"hasWorkplacePension": False}

    inputs, results = _parts(scenario)
    return {
        "hasWorkplacePension": True,
        "scheme": {
            "name": _first(inputs.get("schemeName"), default="Workplace Pension"),
            "type": _first(inputs.get("schemeType"), default="Defined Contribution"),
            "employeePercent": _number(inputs.get("employeePercent")),
            "employeeAnnual": _number(results.get("employeeAnnual")),
            "employerPercent": _number(inputs.get("employerPercent")),
            "employerAnnual": _number(results.get("employerAnnual")),
            "taxReliefAnnual": _number(results.get("taxRelief"), results.get("taxReliefAnnual")),
            "totalAnnualBenefit": _number(results.get("totalBenefit"), results.get("totalAnnualBenefit")),
            "currentPotValue": _number(inputs.get("currentPot"), inputs.get("currentPotValue")),
            "projectedPotAt65": results.get("projectedPot"),
            "projectedAnnualIncomeAt65": results.get("projectedIncome"),
            "fees": results.get("fees"),
            "lifetimeValueVsNoMatch": _number(results.get("lifetimeValue")),
            "equivalentSalaryIncrease": _number(results.get("equivalentSalaryIncrease")),
        },
        "sippsComparison": results.get("sippsComparison"),
    }


CAR_COST_KEYS = ("annualFuel", "annualInsurance", "annualTax", "annualMOT", "annualServicing", "annualParking")


def extract_car(scenario: Optional[Scenario]) -> Dict[str, Any]:
    if scenario is None:
        return {"ownsCar": False}

    inputs, results = _parts(scenario)
    ownership = {
        "method": _first(inputs.get("ownershipMethod"), default="Bought Outright"),
        "vehicleType": inputs.get("vehicleType"),
        "purchasePrice": _number(inputs.get("purchasePrice")),
        "currentValue": _number(inputs.get("currentValue")),
        "annualDepreciation": _number(results.get("annualDepreciation")),
        "annualFinancePayments": _number(results.get("annualFinancePayments")),
        "totalAnnualCost": _number(results.get("totalAnnualCost")),
        "annualMileage": _number(inputs.get("annualMileage")),
        "costPerMile": _number(results.get("costPerMile")),
        "financeRemaining": _number(inputs.get("financeRemaining")),
        "interestRate": _number(inputs.get("interestRate")),
        "monthlyPayment": _number(inputs.get("monthlyPayment")),
        "workHoursToAfford": _number(results.get("workHoursToAfford")),
        "workDaysToAfford": _number(results.get("workDaysToAfford")),
    }
    for key in CAR_COST_KEYS:
        ownership[key] = _number(results.get(key), inputs.get(key))

    return {
        "ownsCar": True,
        "ownership": ownership,
        "alternatives": results.get("alternatives"),
        "recommendation": results.get("recommendation"),
    }


def extract_student_loans(scenario: Optional[Scenario]) -> Dict[str, Any]:
    if scenario is None:
        return {"hasLoans": False}

    _, results = _parts(scenario)
    return {
        "hasLoans": True,
        "loans": {
            "plan1": results.get("plan1"),
            "plan2": results.get("plan2"),
            "postgrad": results.get("postgrad"),
            "totalMonthlyRepayment": _number(results.get("totalMonthlyRepayment")),
            "totalAnnualRepayment": _number(results.get("totalAnnualRepayment")),
            "combinedMarginalRate": _number(results.get("combinedMarginalRate")),
            "recommendOverpayment": bool(results.get("recommendOverpayment")),
            "overpaymentReasoning": results.get("overpaymentReasoning"),
        },
    }


WFH_COST_KEYS = (
    "commuteCostOffice", "lunchCostOffice", "coffeeCostOffice", "clothingCostOffice",
    "socialCostOffice", "totalOfficeCost", "heatingElectricCostWFH", "lunchCostWFH",
    "coffeeShopCostWFH", "equipmentCostWFH", "totalWFHCost", "netAnnualSavings",
    "timeSavedHours", "timeSavedValue", "hmrcTaxRelief",
)


def extract_work_location(scenario: Optional[Scenario]) -> Dict[str, Any]:
    if scenario is None:
        return {
            "pattern": "5 days office",
            "daysWFH": 0,
            "daysOffice": 5,
            "costs": {key: 0 for key in WFH_COST_KEYS},
        }

    inputs, results = _parts(scenario)
    costs = {key: _number(results.get(key)) for key in WFH_COST_KEYS}
    if results.get("exerciseLost"):
        costs["exerciseLost"] = results["exerciseLost"]

    return {
        "pattern": _first(inputs.get("pattern"), results.get("pattern"), default="Hybrid"),
        "daysWFH": _number(inputs.get("daysWFH"), results.get("daysWFH")),
        "daysOffice": _number(inputs.get("daysOffice"), results.get("daysOffice"), default=5),
        "costs": costs,
        "optimalSplit": results.get("optimalSplit"),
    }


INTENSITY_INPUT_SCORES = (
    "deadlinePressure", "meetingLoad", "multitasking", "autonomy", "micromanagement",
    "sleepQuality", "anxietyLevel", "workLifeBalance", "physicalSymptoms", "mentalFatigue",
)
STRESS_COST_KEYS = ("unpaidOvertimeValue", "healthCosts", "copingSpending", "productivityLoss", "totalAnnualCost")


def extract_work_stress(scenario: Optional[Scenario]) -> Dict[str, Any]:
    if scenario is None:
        return {"hasAnalyzed": False}

    inputs, results = _parts(scenario)
    scores = {key: _number(inputs.get(key), results.get(key), default=5) for key in INTENSITY_INPUT_SCORES}
    scores["compositeIntensityScore"] = _number(
        results.get("compositeIntensityScore"), results.get("intensityScore"), default=5
    )
    scores["compositeStressScore"] = _number(results.get("compositeStressScore"), results.get("stressScore"), default=5)
    scores["burnoutRisk"] = _first(results.get("burnoutRisk"), default="Medium")

    hidden = results.get("hiddenCosts")
    return {
        "hasAnalyzed": True,
        "scores": scores,
        "hiddenCosts": {key: _number(hidden.get(key)) for key in STRESS_COST_KEYS} if isinstance(hidden, dict) else None,
        "adjustedWage": results.get("adjustedWage"),
    }


def extract_carers_allowance(scenario: Optional[Scenario]) -> Optional[Dict[str, Any]]:
    if scenario is None:
        return None

    _, results = _parts(scenario)
    return {
        "eligible": bool(results.get("eligible")),
        "weeklyAmount": _number(results.get("weeklyAmount")),
        "annualAmount": _number(results.get("annualAmount")),
        "niCreditsValue": _number(results.get("niCreditsValue")),
        "impactOnOtherBenefits": results.get("impactOnOtherBenefits"),
        "recommendation": results.get("recommendation"),
    }


# calculator_type -> (section key, extractor)
CALCULATOR_SECTIONS: Dict[str, tuple] = {
    "commute": ("commute", extract_commute),
    "geo": ("geoArbitrage", extract_geo),
    "pension": ("pension", extract_pension),
    "car": ("car", extract_car),
    "student-loans": ("studentLoans", extract_student_loans),
    "wfh": ("workLocation", extract_work_location),
    "intensity": ("workStress", extract_work_stress),
}


def _first_by_calculator(comparisons: Iterable[Scenario]) -> Dict[str, Scenario]:
    by_type: Dict[str, Scenario] = {}
    for scenario in comparisons:
        by_type.setdefault(scenario.calculator_type or "unknown", scenario)
    return by_type


def collect_user_data(
    primary: Scenario,
    comparisons: Iterable[Scenario] = (),
    email: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build the analysis document for one report.

    Args:
        primary: The user's main calculator scenario
        comparisons: Scenarios from the other calculators
        email: Account email, used for the display name

    Returns:
        camelCase dict with profile, income, spending, per-calculator
        sections and fireJourney
    """
    inputs, _ = _parts(primary)
    by_type = _first_by_calculator(comparisons)

    user_data: Dict[str, Any] = {
        "profile": {
            "userId": primary.user_id or "",
            "name": email.split("@")[0] if email and "@" in email else "User",
            "email": email or "",
            "age": _number(inputs.get("currentAge"), inputs.get("age"), default=30),
            "location": _first(inputs.get("location"), inputs.get("region"), default="UK"),
            "industry": _first(inputs.get("industry"), default="Unknown"),
            "jobTitle": _first(inputs.get("jobTitle"), default="Unknown"),
        },
        "income": extract_income(primary),
        "spending": extract_spending(primary),
    }

    extractor: Callable[[Optional[Scenario]], Dict[str, Any]]
    for calculator_type, (section, extractor) in CALCULATOR_SECTIONS.items():
        user_data[section] = extractor(by_type.get(calculator_type))

    user_data["fireJourney"] = extract_fire_journey(primary)

    carers = extract_carers_allowance(by_type.get("carers"))
    if carers is not None:
        user_data["carersAllowance"] = carers

    return user_data
