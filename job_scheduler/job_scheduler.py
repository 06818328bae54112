from common.exceptions import InvalidJobSpec, SchedulerError, SimulationLimitExceeded, UnplaceableJob
from common.models import AssignmentEvent


DEFAULT_NODE_COUNT = 128
DEFAULT_NODE_CORES = 24
DEFAULT_NODE_MEMORY = 64


class WorkerNode:
    def __init__(self, id, total_cores=DEFAULT_NODE_CORES, total_memory=DEFAULT_NODE_MEMORY):
        self.id = id
        self.total_cores = total_cores
        self.total_memory = total_memory
        self.available_cores = total_cores
        self.available_memory = total_memory
        self.busy_until = 0
        self.occupants = {}  # job id -> (job, end time)

    def can_accommodate(self, job):
        return self.available_cores >= job.cores_required and self.available_memory >= job.memory_required

    def can_ever_accommodate(self, job):
        """True if the job would fit on this node once it is completely free."""
        return self.total_cores >= job.cores_required and self.total_memory >= job.memory_required

    def assign_job(self, job, current_time):
        if not self.can_accommodate(job):
            raise SchedulerError(f"Node {self.id} cannot hold job {job.id}: needs {job.cores_required} cores, {job.memory_required} memory, "
                                 f"has {self.available_cores} cores, {self.available_memory} memory")
        end_time = current_time + job.execution_time
        self.available_cores -= job.cores_required
        self.available_memory -= job.memory_required
        self.occupants[job.id] = (job, end_time)
        # End time of the most recently started job, not of the longest running one
        self.busy_until = end_time
        return end_time

    def release_job(self, job_id):
        occupant = self.occupants.pop(job_id, None)
        if occupant is None:
            raise SchedulerError(f"Node {self.id} has no running job {job_id}")

        job, _ = occupant
        self.available_cores += job.cores_required
        self.available_memory += job.memory_required
        return job

    def completed_jobs(self, current_time):
        """Ids of the occupants whose end time has been reached, in assignment order."""
        return [job_id for job_id, (_, end_time) in self.occupants.items() if end_time <= current_time]

    def is_idle(self):
        return not self.occupants


def create_node_pool(node_count=DEFAULT_NODE_COUNT, cores=DEFAULT_NODE_CORES, memory=DEFAULT_NODE_MEMORY, first_id=1):
    return [WorkerNode(first_id + i, cores, memory) for i in range(node_count)]


class JobOrderingPolicy:
    """
    Base class for queue policies. The order is fixed once, before the simulation starts.
    sorted() is stable, so jobs that compare equal keep their ingestion order.
    """
    name = None

    def sort_key(self, job):
        raise NotImplementedError

    def order(self, jobs):
        return sorted(jobs, key=self.sort_key)


class ArrivalOrder(JobOrderingPolicy):
    """First come, first served"""
    name = "arrival"

    def sort_key(self, job):
        return job.arrival_time


class SmallestWeightFirst(JobOrderingPolicy):
    """Smallest execution_time * cores * memory first"""
    name = "weight"

    def sort_key(self, job):
        return job.weight


class ShortestDurationFirst(JobOrderingPolicy):
    name = "duration"

    def sort_key(self, job):
        return job.execution_time


class NodeSelectionStrategy:
    """Base class for node selection strategies when placing jobs"""
    name = None

    def select_node(self, job, node_list):
        """Returns the node to place the job on, or None if no node fits"""
        raise NotImplementedError

    def has_capacity(self, node, job):
        return node.can_accommodate(job)


class FirstFitNodeSelection(NodeSelectionStrategy):
    """Place job on the first node in list order that fits"""
    name = "first-fit"

    def select_node(self, job, node_list):
        for node in node_list:
            if self.has_capacity(node, job):
                return node
        return None


class BestFitNodeSelection(NodeSelectionStrategy):
    """
    Place job on the fitting node with the fewest free cores.
    Memory only has to fit, it does not take part in the comparison. The first node wins ties.
    """
    name = "best-fit"

    def select_node(self, job, node_list):
        best_node = None
        for node in node_list:
            if self.has_capacity(node, job) and (best_node is None or node.available_cores < best_node.available_cores):
                best_node = node
        return best_node


class WorstFitNodeSelection(NodeSelectionStrategy):
    """Place job on the fitting node with the most free cores, the first node wins ties"""
    name = "worst-fit"

    def select_node(self, job, node_list):
        worst_node = None
        for node in node_list:
            if self.has_capacity(node, job) and (worst_node is None or node.available_cores > worst_node.available_cores):
                worst_node = node
        return worst_node


ORDERING_POLICIES = {policy.name: policy for policy in (ArrivalOrder, SmallestWeightFirst, ShortestDurationFirst)}

NODE_SELECTION_STRATEGIES = {strategy.name: strategy for strategy in (FirstFitNodeSelection, BestFitNodeSelection, WorstFitNodeSelection)}


class JobSchedulerSimulation:
    def __init__(self, node_list, ordering_policy, node_selection_strategy, log_file=None, verbose=True):
        self.node_list = node_list
        self.ordering_policy = ordering_policy
        self.node_selection_strategy = node_selection_strategy
        self.clock = 0
        self.pending = []
        self.events = []
        self.job_tracker = {}  # running job id -> node
        # Tick and released jobs of the most recent iteration
        self.iteration_time = 0
        self.last_released = []
        self.stats = {
            'placed': 0,
            'failed_placement': 0,
            'released': 0,
            'forced_advances': 0,
            'iterations': 0
        }
        self.log_file = log_file
        self.verbose = verbose

    def _log(self, message):
        """Write message to log file and print to console"""
        if self.verbose:
            print(message)
        if self.log_file:
            with open(self.log_file, 'a') as f:
                f.write(message + "\n")

    def load_jobs(self, jobs):
        """Queue the jobs in the order chosen by the ordering policy."""
        seen = set()
        for job in jobs:
            if job.id in seen:
                raise InvalidJobSpec(job.id, "duplicate job id")
            seen.add(job.id)

        self.pending = self.ordering_policy.order(jobs)
        self._log(f"Queued {len(self.pending)} jobs using {self.ordering_policy.name} ordering")

    def check_capacity(self):
        """Reject any pending job that is bigger than every node in the pool."""
        for job in self.pending:
            if not any(node.can_ever_accommodate(job) for node in self.node_list):
                reason = (f"needs {job.cores_required} cores and {job.memory_required} memory, "
                          f"no node has that much total capacity")
                self._log(f"[UNPLACEABLE] Job {job.id}: {reason}")
                raise UnplaceableJob(job, reason, self.events)

    def release_completed_jobs(self):
        released = []
        for node in self.node_list:
            for job_id in node.completed_jobs(self.clock):
                job = node.release_job(job_id)
                del self.job_tracker[job_id]
                released.append(job)
                self.stats['released'] += 1
                self._log(f"[RELEASE] Job {job_id}: Released {job.cores_required} cores, {job.memory_required} memory on Node {node.id} at time {self.clock}")
        return released

    def place_job(self, job):
        node = self.node_selection_strategy.select_node(job, self.node_list)
        if node is None:
            self.stats['failed_placement'] += 1
            return None

        node.assign_job(job, self.clock)
        self.job_tracker[job.id] = node
        event = AssignmentEvent(job_id=job.id, node_id=node.id, time=self.clock)
        self.events.append(event)
        self.stats['placed'] += 1
        self._log(f"[ASSIGN] Job {job.id} assigned to Node {node.id} at time {self.clock}")
        return event

    def step(self):
        """
        Run one iteration of the scheduling loop and return the assignment events it produced.

        The clock first jumps to the earliest pending arrival, finished jobs are released, then every
        arrived job is offered a node in queue order. A job that does not fit does not block the jobs
        behind it. When nothing was placed the clock is advanced by one tick.
        """
        if not self.pending:
            return []

        self.stats['iterations'] += 1
        self.clock = max(self.clock, min(job.arrival_time for job in self.pending))
        self.iteration_time = self.clock
        self.last_released = self.release_completed_jobs()

        placed = []
        for job in self.pending:
            if job.arrival_time > self.clock:
                continue
            event = self.place_job(job)
            if event is not None:
                placed.append(event)

        if placed:
            assigned = {event.job_id for event in placed}
            self.pending = [job for job in self.pending if job.id not in assigned]
        else:
            self._check_for_deadlock()
            self._log(f"[ADVANCE] No job placed at time {self.clock}, advancing to {self.clock + 1}")
            self.clock += 1
            self.stats['forced_advances'] += 1

        return placed

    def _check_for_deadlock(self):
        # Nothing running means every node is completely free, so an arrived job that failed now never fits.
        if self.job_tracker:
            return

        for job in self.pending:
            if job.arrival_time <= self.clock:
                reason = f"does not fit on any empty node at time {self.clock}"
                self._log(f"[UNPLACEABLE] Job {job.id}: {reason}")
                raise UnplaceableJob(job, reason, self.events)

    def iterate(self, max_iterations=None, check_capacity=True):
        """Generator running the loop until the queue is empty, yielding each iteration's events."""
        if check_capacity:
            self.check_capacity()

        iterations = 0
        while self.pending:
            if max_iterations is not None and iterations >= max_iterations:
                self._log(f"[FAIL] Iteration limit of {max_iterations} reached with {len(self.pending)} jobs pending")
                raise SimulationLimitExceeded(iterations, self.clock, self.events)
            yield self.step()
            iterations += 1

    def run(self, jobs=None, max_iterations=None, check_capacity=True, drain=False):
        """Place every job and return the assignment events in the order they happened."""
        if jobs is not None:
            self.load_jobs(jobs)

        for _ in self.iterate(max_iterations=max_iterations, check_capacity=check_capacity):
            pass

        if drain:
            self.drain()

        self._log(f"All jobs placed by time {self.clock}")
        return list(self.events)

    def drain_steps(self):
        """Generator advancing the clock to each remaining completion tick, yielding (tick, released jobs)."""
        while self.job_tracker:
            self.clock = max(self.clock, min(end_time for node in self.node_list for _, end_time in node.occupants.values()))
            self.iteration_time = self.clock
            self.last_released = self.release_completed_jobs()
            yield self.clock, self.last_released

    def drain(self):
        """Advance the clock through the remaining completions until every node is idle."""
        for _ in self.drain_steps():
            pass
        return self.clock

    def get_stats(self):
        """Return simulation statistics"""
        return self.stats.copy()

    def get_current_state(self):
        """Return current cluster state for external logging"""
        return {
            'clock': self.clock,
            'active_jobs': len(self.job_tracker),
            'pending_jobs': len(self.pending),
            'nodes': [{
                'id': n.id,
                'available_cores': n.available_cores,
                'available_memory': n.available_memory,
                'total_cores': n.total_cores,
                'total_memory': n.total_memory,
                'busy_until': n.busy_until
                }
            for n in self.node_list]
        }
