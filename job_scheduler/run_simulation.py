import pandas as pd
from pathlib import Path
import pyarrow.parquet as pq
import pyarrow as pa

from common.config import get_bool, get_int, load_config
from common.exceptions import ConfigError, ReportWriteError, SchedulerError, SimulationLimitExceeded, UnplaceableJob
from data_handling.job_file_conversion import load_jobs, read_job_file
from job_scheduler.job_scheduler import (
    DEFAULT_NODE_CORES,
    DEFAULT_NODE_COUNT,
    DEFAULT_NODE_MEMORY,
    NODE_SELECTION_STRATEGIES,
    ORDERING_POLICIES,
    JobSchedulerSimulation,
    WorkerNode,
)


REPORT_COLUMNS = ["Node ID", "Available Cores", "Available Memory", "Job End Time"]

# Numbered menu choices accepted alongside the policy names
ORDERING_ALIASES = {"1": "arrival", "2": "weight", "3": "duration", "fcfs": "arrival"}
NODE_SELECTION_ALIASES = {"1": "first-fit", "2": "best-fit", "3": "worst-fit"}


def get_strategy_instance(strategy_name, strategy_type):
    name = str(strategy_name).strip().lower()
    if strategy_type == "ordering_policy":
        name = ORDERING_ALIASES.get(name, name)
        if name not in ORDERING_POLICIES:
            raise ConfigError(f"Unknown Ordering Policy: {strategy_name}")
        return ORDERING_POLICIES[name]()

    elif strategy_type == "placement_policy":
        name = NODE_SELECTION_ALIASES.get(name, name.replace("_", "-"))
        if name not in NODE_SELECTION_STRATEGIES:
            raise ConfigError(f"Unknown Placement Policy: {strategy_name}")
        return NODE_SELECTION_STRATEGIES[name]()

    else:
        raise ConfigError("Unknown Strategy Type")


def create_nodes(config):
    """
    Build the worker pool. 'node = count, cores, memory' groups take precedence over the
    uniform node_count / node_cores / node_memory settings. Ids run 1..N in config order.
    """
    groups = []
    for node_config in config.get("nodes", []):
        try:
            groups.append(tuple(int(value) for value in node_config))
        except ValueError:
            raise ConfigError(f"Node group values must be integers, got {node_config}") from None

    if not groups:
        groups.append((
            get_int(config, 'node_count', DEFAULT_NODE_COUNT),
            get_int(config, 'node_cores', DEFAULT_NODE_CORES),
            get_int(config, 'node_memory', DEFAULT_NODE_MEMORY),
        ))

    nodes = []
    for num_nodes, cores, memory in groups:
        if num_nodes < 0 or cores <= 0 or memory <= 0:
            raise ConfigError(f"Invalid node group: {num_nodes} nodes, {cores} cores, {memory} memory")
        for _ in range(num_nodes):
            nodes.append(WorkerNode(id=len(nodes) + 1, total_cores=cores, total_memory=memory))

    if not nodes:
        raise ConfigError("The node pool is empty")
    return nodes


def node_report(node_list):
    """
    One row per node, in node order, with the columns of the utilisation report.
    'Job End Time' is the end tick of the last job started on the node. When a node ran
    overlapping jobs, an earlier started job may finish later than this.
    """
    return pd.DataFrame([
        [node.id, node.available_cores, node.available_memory, node.busy_until]
        for node in node_list], columns=REPORT_COLUMNS)


def write_node_report(node_list, output_file):
    try:
        node_report(node_list).to_csv(output_file, index=False)
    except OSError as e:
        raise ReportWriteError(output_file, e) from e


def write_table(records, columns, output_file):
    try:
        table = pa.Table.from_pandas(pd.DataFrame(records, columns=columns), preserve_index=False)
        pq.write_table(table, output_file)
    except OSError as e:
        raise ReportWriteError(output_file, e) from e


EVENT_COLUMNS = ['event_index', 'time', 'job_id', 'node_id', 'arrival_time', 'execution_time', 'active_jobs', 'pending_jobs']

NODE_COLUMNS = ['snapshot', 'time', 'node_id', 'cores_in_use', 'memory_in_use', 'total_cores', 'total_memory',
                'core_utilisation', 'memory_utilisation']


def snapshot_nodes(snapshot, time, state):
    records = []
    for n_state in state['nodes']:
        cores_in_use = n_state['total_cores'] - n_state['available_cores']
        memory_in_use = n_state['total_memory'] - n_state['available_memory']
        records.append({
            'snapshot': snapshot,
            'time': time,
            'node_id': n_state['id'],
            'cores_in_use': cores_in_use,
            'memory_in_use': memory_in_use,
            'total_cores': n_state['total_cores'],
            'total_memory': n_state['total_memory'],
            'core_utilisation': cores_in_use / n_state['total_cores'],
            'memory_utilisation': memory_in_use / n_state['total_memory'],
        })
    return records


def run_simulation(config):
    """Run simulation with the provided configuration"""

    nodes = create_nodes(config)

    # Create strategy instances from config
    ordering_policy = get_strategy_instance(
        config.get('ordering_policy', 'arrival'),
        'ordering_policy'
    )
    node_selection = get_strategy_instance(
        config.get('placement_policy', 'first-fit'),
        'placement_policy'
    )

    # Setup output directory and file paths
    output_directory = config.get('output_directory', 'output')

    output_path = Path(output_directory)
    output_path.mkdir(parents=True, exist_ok=True)

    output_report = output_path / config.get('output_report', 'worker_node_utilization.csv')
    output_events = output_path / config.get('output_events', 'simulation_log_events.parquet')
    output_nodes = output_path / config.get('output_nodes', 'simulation_log_nodes.parquet')
    output_log = output_path / config.get('output_log', 'simulation.log')

    max_iterations = get_int(config, 'max_iterations', None)
    drain = get_bool(config, 'drain', False)

    # Initialize simulation with logging
    simulation = JobSchedulerSimulation(
        nodes,
        ordering_policy,
        node_selection,
        log_file=str(output_log),
        verbose=get_bool(config, 'verbose', True)
    )

    jobs = load_jobs(read_job_file(config['input_jobs']))
    jobs_by_id = {job.id: job for job in jobs}
    simulation.load_jobs(jobs)

    event_records = []
    node_records = []

    def record(placed, time):
        state = simulation.get_current_state()
        for event in placed:
            job = jobs_by_id[event.job_id]
            event_records.append({
                'event_index': len(event_records),
                'time': event.time,
                'job_id': event.job_id,
                'node_id': event.node_id,
                'arrival_time': job.arrival_time,
                'execution_time': job.execution_time,
                'active_jobs': state['active_jobs'],
                'pending_jobs': state['pending_jobs'],
            })
        node_records.extend(snapshot_nodes(len(node_records) // len(nodes), time, state))

    def write_outputs():
        write_table(event_records, EVENT_COLUMNS, output_events)
        write_table(node_records, NODE_COLUMNS, output_nodes)
        write_node_report(nodes, output_report)

    print(f"Starting simulation with {len(jobs):,} jobs on {len(nodes):,} nodes...")
    try:
        # Snapshot every iteration that changed the ledger, by placement or by release
        for placed in simulation.iterate(max_iterations=max_iterations):
            if placed or simulation.last_released:
                record(placed, simulation.iteration_time)
        if drain:
            for time, _ in simulation.drain_steps():
                record([], time)
    except (UnplaceableJob, SimulationLimitExceeded) as e:
        # Keep what was placed so far for diagnostics
        print(f"\nSimulation aborted: {e}")
        print(f"Writing partial results for {len(e.events):,} placed jobs")
        try:
            write_outputs()
        except ReportWriteError as write_error:
            print(f"Could not write partial results: {write_error}")
        raise

    write_outputs()

    print(f"\nWorker node utilization data has been saved to '{output_report}'.")

    # Print simulation statistics
    stats = simulation.get_stats()
    print("\nSimulation complete:")
    for key, value in stats.items():
        print(f"{key}: {value:,}")

    return simulation


if __name__ == "__main__":
    config = load_config("config.txt")
    try:
        simulation = run_simulation(config)
    except SchedulerError as e:
        raise SystemExit(f"Error: {e}")
