import pytest

from devgrowth.growth_accounting import (
    ChartType,
    DateRange,
    GrowthAccountingRow,
    GrowthAccountingService,
    PipelineConfig,
    normalize_period,
    project_cohort_rows,
)


def _values(projection):
    return {series.label: [point.value for point in series.points] for series in projection.series}


@pytest.fixture()
def cohort_rows(scenario_records):
    return GrowthAccountingService(scenario_records).cohort_table()


def test_logo_retention(cohort_rows):
    projection = project_cohort_rows(cohort_rows, ChartType.LOGO_RETENTION)
    assert projection.title == "Developer Retention"
    assert projection.unit == "%"
    assert projection.labels == (0, 1, 2)
    assert _values(projection) == {"Jan 2024": [100.0, 50.0, 100.0], "Feb 2024": [100.0, 0.0]}
    assert projection.degenerate_cohorts == ()


def test_cohort_ltv(cohort_rows):
    projection = project_cohort_rows(cohort_rows, ChartType.COHORT_LTV)
    assert projection.y_axis_label == "Cumulative Commits per User"
    assert projection.unit is None
    assert _values(projection)["Jan 2024"] == [2.0, 3.0, 7.5]


def test_commit_retention_uses_first_month_amount(cohort_rows):
    projection = project_cohort_rows(cohort_rows, ChartType.COMMIT_RETENTION)
    assert _values(projection)["Jan 2024"] == [100.0, 50.0, 225.0]
    assert not any(point.approximated for series in projection.series for point in series.points)


def test_commit_retention_zero_first_month_falls_back_to_one(make_records):
    records = make_records([("X", "2024-01-10", 0), ("X", "2024-02-10", 5)])
    projection = GrowthAccountingService(records).project(ChartType.COMMIT_RETENTION)

    (series,) = projection.series
    assert [point.value for point in series.points] == [0.0, 500.0]
    assert all(point.approximated for point in series.points)


def test_commit_retention_fallback_is_configurable(make_records):
    records = make_records([("X", "2024-01-10", 0), ("X", "2024-02-10", 5)])
    config = PipelineConfig(commit_retention_fallback=10.0)
    projection = GrowthAccountingService(records, config=config).project(ChartType.COMMIT_RETENTION)
    assert projection.series[0].points[1].value == 50.0


def _row(first_month, months_since_first, users, cohort_num_users, inc_amt=0, cum_amt=0, cum_amt_per_user=0.0):
    first = normalize_period(first_month)
    return GrowthAccountingRow(
        first_month=first,
        active_month=normalize_period(first.replace(month=first.month + months_since_first)),
        months_since_first=months_since_first,
        users=users,
        cohort_num_users=cohort_num_users,
        new=0,
        retained=0,
        resurrected=0,
        churned=0,
        inc_amt=inc_amt,
        cum_amt=cum_amt,
        cum_amt_per_user=cum_amt_per_user,
        retained_pctg=0.0,
    )


def test_zero_size_cohort_is_degenerate_not_an_error():
    rows = [_row("2024-01", 0, 0, 0), _row("2024-01", 1, 0, 0), _row("2024-02", 0, 3, 3)]
    projection = project_cohort_rows(rows, ChartType.LOGO_RETENTION)

    assert _values(projection) == {"Jan 2024": [0.0, 0.0], "Feb 2024": [100.0]}
    assert [point.degenerate for point in projection.series[0].points] == [True, True]
    assert [cohort.first_month for cohort in projection.degenerate_cohorts] == [normalize_period("2024-01")]


def test_rows_sorted_within_cohort_and_cohorts_ascending():
    rows = [_row("2024-02", 1, 1, 2), _row("2024-01", 0, 2, 2), _row("2024-02", 0, 2, 2)]
    projection = project_cohort_rows(rows, ChartType.LOGO_RETENTION)
    assert [series.label for series in projection.series] == ["Jan 2024", "Feb 2024"]
    assert [point.months_since_first for point in projection.series[1].points] == [0, 1]


def test_caller_supplied_cohort_order(cohort_rows):
    projection = project_cohort_rows(cohort_rows, ChartType.COHORT_LTV, cohort_order=["2024-02", "2023-06"])
    assert [series.label for series in projection.series] == ["Feb 2024", "Jan 2024"]


def test_mapping_rows_and_string_chart_type():
    rows = [
        {
            "first_month": "2024-01-01T00:00:00Z",
            "active_month": "2024-01-01T00:00:00Z",
            "months_since_first": 0,
            "users": 4,
            "cohort_num_users": 4,
            "inc_amt": 8,
            "cum_amt_per_user": 2.0,
        },
        {
            "first_month": "2024-01-01T00:00:00Z",
            "active_month": "2024-02-01T00:00:00Z",
            "months_since_first": 1,
            "users": 1,
            "cohort_num_users": 4,
            "inc_amt": 2,
            "cum_amt_per_user": 2.5,
        },
    ]
    projection = project_cohort_rows(rows, "logo_retention")
    assert projection.chart_type is ChartType.LOGO_RETENTION
    assert _values(projection) == {"Jan 2024": [100.0, 25.0]}


def test_projection_serializes(cohort_rows):
    payload = project_cohort_rows(cohort_rows, ChartType.LOGO_RETENTION).as_dict()
    assert payload["chart_type"] == "logo_retention"
    assert payload["series"][0]["cohort"] == "2024-01-01T00:00:00Z"
    assert payload["series"][0]["points"][1]["value"] == 50.0


def test_service_projection_with_date_range(scenario_records):
    service = GrowthAccountingService(scenario_records)
    projection = service.project(ChartType.LOGO_RETENTION, date_range=DateRange("2024-02-01", "2024-12-31"))
    assert [series.label for series in projection.series] == ["Feb 2024"]
