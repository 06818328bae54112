"""
Shared data models for the Job Scheduler Simulator.

This module contains core data classes used across the simulation and data handling components.
"""

from dataclasses import dataclass

from common.exceptions import InvalidJobSpec


@dataclass(frozen=True)
class Job:
    """A batch job with a two-dimensional resource demand. Fields never change after creation."""

    id: int
    arrival_time: int
    cores_required: int
    memory_required: int
    execution_time: int

    def __post_init__(self):
        if self.id <= 0:
            raise InvalidJobSpec(self.id, f"id must be positive, got {self.id}")
        if self.arrival_time < 0:
            raise InvalidJobSpec(self.id, f"arrival time must not be negative, got {self.arrival_time}")
        if self.cores_required <= 0:
            raise InvalidJobSpec(self.id, f"cores required must be positive, got {self.cores_required}")
        if self.memory_required <= 0:
            raise InvalidJobSpec(self.id, f"memory required must be positive, got {self.memory_required}")
        if self.execution_time <= 0:
            raise InvalidJobSpec(self.id, f"execution time must be positive, got {self.execution_time}")

    @property
    def weight(self):
        """Composite size used by the smallest-weight-first ordering."""
        return self.execution_time * self.cores_required * self.memory_required


@dataclass(frozen=True)
class AssignmentEvent:
    """Records a job being started on a node at a simulated time."""

    job_id: int
    node_id: int
    time: int
