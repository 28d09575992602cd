import csv
import io

from mindful_ping.export import CSV_HEADER, render_csv
from mindful_ping.models import DayStats


def test_render_csv_orders_days_resources_and_hours():
    stats = {
        "2024-03-05": DayStats(
            daily={"b.example": 30},
            hourly={"b.example": {0: 30}},
            daily_sessions={"b.example": 1},
            hourly_sessions={"b.example": {0: 1}},
        ),
        "2024-03-04": DayStats(
            daily={"a.example": 90, "z.example": 600},
            hourly={"a.example": {14: 60, 9: 30}, "z.example": {10: 600}},
            daily_sessions={"a.example": 2, "z.example": 1},
            hourly_sessions={"a.example": {14: 1, 9: 1}, "z.example": {10: 1}},
        ),
    }

    lines = render_csv(stats).splitlines()

    assert lines == [
        ",".join(CSV_HEADER),
        "2024-03-04,z.example,10.0,600,,1",
        "2024-03-04,z.example,10.0,600,10:00,1",
        "2024-03-04,a.example,1.5,90,,2",
        "2024-03-04,a.example,0.5,30,9:00,1",
        "2024-03-04,a.example,1.0,60,14:00,1",
        "2024-03-05,b.example,0.5,30,,1",
        "2024-03-05,b.example,0.5,30,0:00,1",
    ]


def test_render_csv_quotes_awkward_resource_names():
    stats = {"2024-03-04": DayStats(daily={'odd,"name"': 60}, daily_sessions={'odd,"name"': 1})}

    rows = list(csv.reader(io.StringIO(render_csv(stats))))

    assert rows[1] == ["2024-03-04", 'odd,"name"', "1.0", "60", "", "1"]


def test_render_csv_without_data_has_only_header():
    assert render_csv({}) == ",".join(CSV_HEADER) + "\n"
