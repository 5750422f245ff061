import pytest

from devgrowth.growth_accounting import ActivityRecord


def _make_records(rows):
    return [ActivityRecord.create(subject, period, amount) for subject, period, amount in rows]


@pytest.fixture()
def make_records():
    return _make_records


@pytest.fixture()
def scenario_records():
    # A active Jan/Feb/Mar, B active Jan and Mar (gap in Feb), C active Feb only.
    return _make_records(
        [
            ("A", "2024-01-05", 3),
            ("A", "2024-02-10", 2),
            ("A", "2024-03-20", 4),
            ("B", "2024-01-31T23:59:59Z", 1),
            ("B", "2024-03-01T00:00:00Z", 5),
            ("C", "2024-02-14", 2),
        ]
    )
