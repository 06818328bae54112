import pandas as pd
import pytest

from common.exceptions import InvalidJobSpec
from data_handling.job_file_conversion import JOB_COLUMNS, jobs_to_dataframe, load_jobs, read_job_file


def test_read_text_job_file(tmp_path):
    job_file = tmp_path / "jobs.txt"
    job_file.write_text("# arrival cores memory duration\n0 2 2 3\n\n0 4 4 1\n1   2 2 1\n")

    jobs = load_jobs(read_job_file(job_file))

    assert [job.id for job in jobs] == [1, 2, 3]
    assert (jobs[2].arrival_time, jobs[2].cores_required, jobs[2].memory_required, jobs[2].execution_time) == (1, 2, 2, 1)


def test_read_csv_job_file(tmp_path):
    job_file = tmp_path / "jobs.csv"
    job_file.write_text("arrival_time,cores_required,memory_required,execution_time\n3,1,2,4\n0,8,16,2\n")

    jobs = load_jobs(read_job_file(job_file))

    assert [(job.id, job.arrival_time, job.weight) for job in jobs] == [(1, 3, 8), (2, 0, 256)]


def test_parquet_round_trip_keeps_ids(tmp_path):
    job_file = tmp_path / "jobs.txt"
    job_file.write_text("0 2 2 3\n4 1 1 1\n")
    jobs = load_jobs(read_job_file(job_file))

    parquet_file = tmp_path / "jobs.parquet"
    jobs_to_dataframe(jobs).to_parquet(parquet_file, index=False, engine="pyarrow")

    assert load_jobs(read_job_file(parquet_file)) == jobs


def test_missing_columns(tmp_path):
    job_file = tmp_path / "jobs.csv"
    job_file.write_text("arrival_time,cores_required\n0,1\n")
    with pytest.raises(ValueError, match="missing columns"):
        read_job_file(job_file)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_job_file(tmp_path / "nope.txt")


def test_invalid_row_reports_its_job_id():
    df = pd.DataFrame([[0, 1, 1, 1], [0, 0, 1, 1]], columns=JOB_COLUMNS)
    with pytest.raises(InvalidJobSpec) as excinfo:
        load_jobs(df)
    assert excinfo.value.job_id == 2


def test_short_text_line_is_rejected(tmp_path):
    job_file = tmp_path / "jobs.txt"
    job_file.write_text("0 1 1 1\n0 1 1\n")
    with pytest.raises(InvalidJobSpec, match="expected 4 fields, got 3") as excinfo:
        read_job_file(job_file)
    assert excinfo.value.job_id == 2


def test_extra_field_on_every_line_is_rejected(tmp_path):
    # An extra leading column must not be taken as an index and shift the job fields
    job_file = tmp_path / "jobs.txt"
    job_file.write_text("0 2 2 3 9\n0 4 4 1 9\n")
    with pytest.raises(InvalidJobSpec, match="expected 4 fields, got 5") as excinfo:
        read_job_file(job_file)
    assert excinfo.value.job_id == 1


def test_extra_field_on_some_lines_is_rejected(tmp_path):
    job_file = tmp_path / "jobs.txt"
    job_file.write_text("# arrival cores memory duration\n0 2 2 3\n\n0 4 4 1 9\n")
    with pytest.raises(InvalidJobSpec, match="got 5") as excinfo:
        read_job_file(job_file)
    assert excinfo.value.job_id == 2


def test_trailing_comment_is_ignored(tmp_path):
    job_file = tmp_path / "jobs.txt"
    job_file.write_text("0 2 2 3  # first job\n")
    jobs = load_jobs(read_job_file(job_file))
    assert (jobs[0].arrival_time, jobs[0].execution_time) == (0, 3)


def test_fractional_values_are_rejected():
    df = pd.DataFrame([[0, 1.5, 1, 1]], columns=JOB_COLUMNS)
    with pytest.raises(InvalidJobSpec, match="whole number"):
        load_jobs(df)


def test_non_numeric_values_are_rejected():
    df = pd.DataFrame([[0, "four", 1, 1]], columns=JOB_COLUMNS)
    with pytest.raises(InvalidJobSpec, match="not a number"):
        load_jobs(df)


def test_negative_arrival_is_rejected():
    df = pd.DataFrame([[-1, 1, 1, 1]], columns=JOB_COLUMNS)
    with pytest.raises(InvalidJobSpec, match="arrival"):
        load_jobs(df)
