from report_agent.tools.profile import SAMPLE_ROWS, project_sample
from report_agent.utils.dataset import Dataset


def test_sample_takes_first_five_rows(sales):
    sample = project_sample(sales)
    assert len(sample.rows) == SAMPLE_ROWS == 5
    assert [r["id"] for r in sample.rows] == ["1", "2", "3", "4", "5"]
    assert sample.columns == ("id", "name", "amount", "date")
    assert sample.total_rows == 23


def test_sample_is_deterministic(sales):
    assert project_sample(sales) == project_sample(sales)


def test_sample_of_small_dataset():
    ds = Dataset.from_records([{"a": "1", "b": "x"}, {"a": "2", "b": "y"}])
    sample = project_sample(ds)
    assert len(sample.rows) == 2
    assert sample.columns == ("a", "b")
    assert sample.total_rows == 2


def test_sample_metadata_and_csv(sales):
    sample = project_sample(sales)
    assert sample.metadata() == "Total rows: 23\nColumns: id, name, amount, date"
    lines = sample.to_csv().split("\n")
    assert lines[0] == "id,name,amount,date"
    assert lines[1] == "1,customer_1,10.5,2024-01-01"
    assert len(lines) == 6


def test_sample_csv_quotes_delimiters():
    ds = Dataset.from_records([{"city": "Portland, OR", "n": "3"}])
    assert project_sample(ds).to_csv() == 'city,n\n"Portland, OR",3'
