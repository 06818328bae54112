"""
Helpers shared by the simulator tests.
"""
from common.models import Job
from job_scheduler.job_scheduler import (
    ArrivalOrder,
    FirstFitNodeSelection,
    JobSchedulerSimulation,
    create_node_pool,
)


def create_test_job(id, arrival_time, cores, memory, execution_time):
    return Job(id=id, arrival_time=arrival_time, cores_required=cores, memory_required=memory, execution_time=execution_time)


def create_test_simulation(node_count=3, cores=4, memory=8, ordering_policy=None, node_selection=None):
    nodes = create_node_pool(node_count, cores, memory)
    return JobSchedulerSimulation(
        nodes,
        ordering_policy or ArrivalOrder(),
        node_selection or FirstFitNodeSelection(),
        verbose=False,
    )


def as_tuples(events):
    return [(event.job_id, event.node_id, event.time) for event in events]
