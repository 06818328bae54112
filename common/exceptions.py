"""
Errors raised by the job scheduler simulator.

Every failure the simulator can report derives from SchedulerError so callers can
catch the whole family in one place.
"""


class SchedulerError(Exception):
    """Base class for simulator errors."""


class InvalidJobSpec(SchedulerError, ValueError):
    """A job description has a field outside its allowed range."""

    def __init__(self, job_id, reason):
        self.job_id = job_id
        self.reason = reason
        super().__init__(f"Job {job_id}: {reason}")


class UnplaceableJob(SchedulerError):
    """
    A job can never be placed on any node in the pool.
    The assignment events recorded before the failure are kept on the exception.
    """

    def __init__(self, job, reason, events=None):
        self.job = job
        self.job_id = job.id
        self.reason = reason
        self.events = list(events) if events else []
        super().__init__(f"Job {job.id} can never be placed: {reason}")


class SimulationLimitExceeded(SchedulerError):
    def __init__(self, iterations, clock, events=None):
        self.iterations = iterations
        self.clock = clock
        self.events = list(events) if events else []
        super().__init__(f"Simulation stopped after {iterations} iterations at time {clock}")


class ReportWriteError(SchedulerError):
    """The final report could not be persisted."""

    def __init__(self, path, cause):
        self.path = path
        self.cause = cause
        super().__init__(f"Could not write report to {path}: {cause}")


class ConfigError(SchedulerError, ValueError):
    pass
