"""Tests for flattening scenarios into the analysis document."""

import pytest

from reports.user_data import CALCULATOR_SECTIONS, as_number, collect_user_data, extract_income

from report_fakes import make_comparison, make_primary


class TestIncome:

    def test_primary_figures(self):
        income = extract_income(make_primary())

        assert income["grossAnnualSalary"] == 50000
        assert income["netAnnualSalary"] == 38000
        assert income["monthlyTakeHome"] == pytest.approx(38000 / 12)
        assert income["trueHourlyWage"] == 18.4
        assert income["statedHourlyWage"] == 25.64
        assert income["hourlyWageDifference"] == pytest.approx(7.24)
        assert income["unpaidOvertimeHours"] == 7.5
        assert income["hiddenAnnualCost"] == 3600
        assert income["inTaxTrap"] is False
        assert "taxTrapCost" not in income

    @pytest.mark.parametrize("salary,cost", [
        (100000, 0),
        (110000, 6000),
        (125140, 15084),
    ])
    def test_tax_trap(self, salary, cost):
        income = extract_income(make_primary(salary=salary))
        assert income["inTaxTrap"] is True
        assert income["taxTrapCost"] == pytest.approx(cost)

    def test_above_tax_trap(self):
        assert extract_income(make_primary(salary=130000))["inTaxTrap"] is False

    def test_pension_percent(self):
        income = extract_income(make_primary(pensionPercent=5))
        assert income["pensionContributions"]["employee"] == pytest.approx(2500)

    def test_missing_results_default_to_zero(self):
        primary = make_primary()
        primary.data.results = {}
        income = extract_income(primary)

        assert income["netAnnualSalary"] == 0
        assert income["trueHourlyWage"] == 0
        assert income["actualHoursPerWeek"] == 37.5

    def test_numeric_strings(self):
        primary = make_primary(salary="110,000", pensionPercent="5", contractHours=" 40 ")
        primary.data.results = {
            "taxBreakdown": {"netSalary": "66000", "effectiveTaxRate": "31.5"},
            "trueHourlyRate": "20.5",
            "assumedHourlyRate": "52.88",
        }
        income = extract_income(primary)

        assert income["grossAnnualSalary"] == 110000
        assert income["monthlyTakeHome"] == pytest.approx(5500)
        assert income["pensionContributions"]["employee"] == pytest.approx(5500)
        assert income["contractedHoursPerWeek"] == 40
        assert income["hourlyWageDifference"] == pytest.approx(32.38)
        assert income["inTaxTrap"] is True
        assert income["taxTrapCost"] == pytest.approx(6000)

    @pytest.mark.parametrize("junk", [None, "", "n/a", "NaN", "inf", True, [], {"value": 1}])
    def test_unreadable_figures_read_as_zero(self, junk):
        primary = make_primary(salary=junk, pensionPercent=junk, currentSavings=junk, commuteCost=junk)
        primary.data.results = {"taxBreakdown": {"netSalary": junk}, "trueHourlyRate": junk}

        data = collect_user_data(primary)

        assert data["income"]["grossAnnualSalary"] == 0
        assert data["income"]["pensionContributions"]["employee"] == 0
        assert data["income"]["monthlyTakeHome"] == 0
        assert data["income"]["inTaxTrap"] is False
        assert data["spending"]["monthlyTotal"] == 0
        assert data["spending"]["savingsRate"] == 0
        assert data["fireJourney"]["currentSavings"] == 0
        assert data["fireJourney"]["currentProgressPercent"] == 0

    def test_numeric_strings_in_comparisons(self):
        comparisons = [
            make_comparison("wfh", inputs={"daysWFH": "2"}, results={"netAnnualSavings": "1500.50"}),
            make_comparison("intensity", results={"hiddenCosts": {"healthCosts": "300"}}),
        ]
        data = collect_user_data(make_primary(currentAge="41"), comparisons)

        assert data["profile"]["age"] == 41
        assert data["workLocation"]["daysWFH"] == 2
        assert data["workLocation"]["costs"]["netAnnualSavings"] == pytest.approx(1500.5)
        assert data["workStress"]["hiddenCosts"]["healthCosts"] == 300


class TestAsNumber:

    @pytest.mark.parametrize("value,expected", [
        (52000, 52000),
        (18.4, 18.4),
        ("52000", 52000),
        ("52,000.50", 52000.5),
        (None, 0),
        ("abc", 0),
        (False, 0),
        (float("nan"), 0),
    ])
    def test_as_number(self, value, expected):
        assert as_number(value) == expected


class TestCollectUserData:

    def test_profile_name_from_email(self):
        data = collect_user_data(make_primary(), email="alex.smith@example.com")
        assert data["profile"]["name"] == "alex.smith"
        assert data["profile"]["email"] == "alex.smith@example.com"
        assert data["profile"]["age"] == 32

    def test_profile_name_default(self):
        assert collect_user_data(make_primary())["profile"]["name"] == "User"

    def test_sections_without_comparisons(self):
        data = collect_user_data(make_primary())

        for section, _ in CALCULATOR_SECTIONS.values():
            assert section in data
        assert data["commute"]["hasCommute"] is False
        assert data["pension"] == {"hasWorkplacePension": False}
        assert data["car"] == {"ownsCar": False}
        assert data["studentLoans"] == {"hasLoans": False}
        assert data["workStress"] == {"hasAnalyzed": False}
        assert data["geoArbitrage"]["hasAnalyzed"] is False
        assert data["workLocation"]["daysOffice"] == 5
        assert "carersAllowance" not in data

    def test_spending(self):
        spending = collect_user_data(make_primary())["spending"]

        assert spending["monthlyTotal"] == 150
        assert spending["transport"] == 1800
        assert spending["monthlySavings"] == pytest.approx(38000 / 12 - 150)
        assert 0 < spending["savingsRate"] < 100

    def test_comparison_sections(self):
        comparisons = [
            make_comparison("commute", inputs={"currentMethod": "Train", "daysPerWeek": 3},
                            results={"annualCost": 4200, "bestAlternative": {"method": "Bike", "totalAnnualSavings": 3900}}),
            make_comparison("pension", inputs={"employerPercent": 6}, results={"taxRelief": 1000}),
            make_comparison("wfh", inputs={"daysWFH": 2, "daysOffice": 3}, results={"netAnnualSavings": 1500}),
            make_comparison("intensity", results={"burnoutRisk": "High", "hiddenCosts": {"healthCosts": 300}}),
            make_comparison("carers", results={"eligible": True, "weeklyAmount": 81.9}),
        ]
        data = collect_user_data(make_primary(), comparisons)

        assert data["commute"]["hasCommute"] is True
        assert data["commute"]["currentMethod"]["name"] == "Train"
        assert data["commute"]["currentMethod"]["annualCost"] == 4200
        assert data["commute"]["bestAlternative"]["method"] == "Bike"
        assert data["pension"]["scheme"]["employerPercent"] == 6
        assert data["pension"]["scheme"]["taxReliefAnnual"] == 1000
        assert data["workLocation"]["daysWFH"] == 2
        assert data["workLocation"]["costs"]["netAnnualSavings"] == 1500
        assert data["workStress"]["scores"]["burnoutRisk"] == "High"
        assert data["workStress"]["hiddenCosts"]["healthCosts"] == 300
        assert data["carersAllowance"]["eligible"] is True

    def test_first_comparison_per_calculator_wins(self):
        comparisons = [
            make_comparison("car", scenario_id="car-1", inputs={"purchasePrice": 12000}),
            make_comparison("car", scenario_id="car-2", inputs={"purchasePrice": 30000}),
        ]
        data = collect_user_data(make_primary(), comparisons)
        assert data["car"]["ownership"]["purchasePrice"] == 12000

    def test_fire_journey(self):
        fire = collect_user_data(make_primary(currentSavings=60000))["fireJourney"]

        assert fire["targetAnnualSpending"] == pytest.approx(38000 * 0.7)
        assert fire["targetFINumber"] == pytest.approx(38000 * 0.7 * 25)
        assert fire["milestones"]["first50k"] is True
        assert fire["milestones"]["first100k"] is False
        assert fire["currentProgressPercent"] == pytest.approx(60000 / (38000 * 0.7 * 25) * 100)
