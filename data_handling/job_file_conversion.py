import pandas as pd
from pathlib import Path

from common.config import load_config
from common.exceptions import InvalidJobSpec
from common.models import Job


JOB_COLUMNS = ['arrival_time', 'cores_required', 'memory_required', 'execution_time']


def read_text_jobs(input_path):
    """
    Parse 'arrival cores memory duration' lines. Every job line must have exactly four fields,
    otherwise the columns would shift and the wrong jobs would be simulated.
    """
    rows = []
    with open(input_path, 'r') as f:
        for line in f:
            fields = line.split('#', 1)[0].split()
            if not fields:
                continue
            job_id = len(rows) + 1
            if len(fields) != len(JOB_COLUMNS):
                raise InvalidJobSpec(job_id, f"expected {len(JOB_COLUMNS)} fields, got {len(fields)}: '{line.strip()}'")
            rows.append(fields)
    return pd.DataFrame(rows, columns=JOB_COLUMNS)


def read_job_file(input_file):
    """
    Read a job list into a dataframe with one row per job, in submission order.

    Supported formats:
      .parquet  - columns named as JOB_COLUMNS
      .csv      - header row naming JOB_COLUMNS
      other     - whitespace separated 'arrival cores memory duration' per line, as typed
                  into an interactive prompt. '#' starts a comment.
    """
    input_path = Path(input_file)

    if not input_path.exists():
        raise FileNotFoundError(f"Job file not found: {input_file}")

    if input_path.suffix == ".parquet":
        df = pd.read_parquet(input_path)
    elif input_path.suffix == ".csv":
        df = pd.read_csv(input_path, skipinitialspace=True, comment='#', index_col=False)
    else:
        df = read_text_jobs(input_path)

    missing = [column for column in JOB_COLUMNS if column not in df.columns]
    if missing:
        raise ValueError(f"Job file {input_file} is missing columns: {missing}")

    # Drop fully empty rows, a row with only some values is reported by load_jobs
    df = df[JOB_COLUMNS].dropna(how='all').reset_index(drop=True)
    print(f"Read {len(df):,} jobs from {input_path.name}")
    return df


def _to_int(job_id, column, value):
    if pd.isna(value):
        raise InvalidJobSpec(job_id, f"missing {column}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidJobSpec(job_id, f"{column} is not a number: {value!r}") from None
    if not number.is_integer():
        raise InvalidJobSpec(job_id, f"{column} must be a whole number, got {value}")
    return int(number)


def load_jobs(df):
    """
    Turn a job dataframe into Job objects. Ids are assigned 1..N in row order.
    Raises InvalidJobSpec on the first bad row so nothing invalid reaches the simulation.
    """
    jobs = []
    for job_id, row in enumerate(df[JOB_COLUMNS].itertuples(index=False), start=1):
        values = {column: _to_int(job_id, column, getattr(row, column)) for column in JOB_COLUMNS}
        jobs.append(Job(id=job_id, **values))
    return jobs


def jobs_to_dataframe(jobs):
    return pd.DataFrame([
        {
            'job_id': job.id,
            'arrival_time': job.arrival_time,
            'cores_required': job.cores_required,
            'memory_required': job.memory_required,
            'execution_time': job.execution_time,
            'weight': job.weight,
        }
        for job in jobs], columns=['job_id'] + JOB_COLUMNS + ['weight'])


if __name__ == "__main__":
    config = load_config("config.txt")
    input_file = config.get('input_jobs')
    output_directory = config.get('output_directory', 'output')
    output_filename = config.get('output_jobs', 'jobs')

    df = read_job_file(input_file)
    jobs = load_jobs(df)
    jobs_df = jobs_to_dataframe(jobs)

    print(f"\nJobs shape: {jobs_df.shape}")
    print(jobs_df.head())

    output_path = Path(output_directory)
    output_path.mkdir(parents=True, exist_ok=True)

    output_file = output_path / f"{output_filename}.parquet"

    jobs_df.to_parquet(output_file, index=False, engine='pyarrow')
    print(f"\nJobs dataframe saved to: {output_file}")
