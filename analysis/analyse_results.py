import pandas as pd
import matplotlib.pyplot as plt
import numpy as np
from pathlib import Path

from common.config import load_config


def load_results(events_file, nodes_file):
    """Read the events and node snapshot tables written by run_simulation"""
    events_file = Path(events_file)
    nodes_file = Path(nodes_file)
    for path in (events_file, nodes_file):
        if not path.exists():
            raise FileNotFoundError(f"Simulation output not found: {path}")

    events_df = pd.read_parquet(events_file)
    nodes_df = pd.read_parquet(nodes_file)
    print(f"Events shape: {events_df.shape}")
    print(f"Node snapshots shape: {nodes_df.shape}")
    return events_df, nodes_df


def cluster_utilisation(nodes_df):
    """Aggregate node snapshots into one row per snapshot for the whole cluster."""
    cluster = (
        nodes_df
        .groupby(["snapshot", "time"], as_index=False)
        .agg({
            "cores_in_use": "sum",
            "memory_in_use": "sum",
            "total_cores": "sum",
            "total_memory": "sum",
            "node_id": "count",
        })
        .rename(columns={"node_id": "nodes"})
        .sort_values(["time", "snapshot"])
        .reset_index(drop=True)
    )
    cluster["core_utilisation"] = np.where(cluster["total_cores"] > 0, cluster["cores_in_use"] / cluster["total_cores"], 0.0)
    cluster["memory_utilisation"] = np.where(cluster["total_memory"] > 0, cluster["memory_in_use"] / cluster["total_memory"], 0.0)
    return cluster


def average_utilisation(cluster):
    if cluster.empty:
        return {"core_utilisation": 0.0, "memory_utilisation": 0.0}
    return {
        "core_utilisation": float(cluster["core_utilisation"].mean() * 100),
        "memory_utilisation": float(cluster["memory_utilisation"].mean() * 100),
    }


def job_wait_times(events_df):
    """Ticks each job spent queued between arriving and being assigned"""
    waits = events_df[["job_id", "node_id", "arrival_time", "time"]].copy()
    waits["wait_time"] = waits["time"] - waits["arrival_time"]
    return waits.sort_values("job_id").reset_index(drop=True)


def plot_cluster_utilisation(cluster, events_df, output_file=None):
    fig, axes = plt.subplots(2, 1, figsize=(12, 9))

    # Plot 1: utilisation percentages
    axes[0].step(cluster["time"], cluster["core_utilisation"] * 100, where="post", label="Cores", linewidth=1.5)
    axes[0].step(cluster["time"], cluster["memory_utilisation"] * 100, where="post", label="Memory", linewidth=1.5)
    axes[0].set_xlabel("Time (ticks)")
    axes[0].set_ylabel("Utilisation (%)")
    axes[0].set_ylim(0, 105)
    axes[0].set_title("Cluster utilisation over simulated time")
    axes[0].grid(True, alpha=0.3)
    axes[0].legend()

    # Plot 2: assignments per tick
    assignments = events_df.groupby("time").size()
    axes[1].bar(assignments.index, assignments.values, width=0.8)
    axes[1].set_xlabel("Time (ticks)")
    axes[1].set_ylabel("Jobs assigned")
    axes[1].set_title("Assignments per tick")
    axes[1].grid(True, alpha=0.3)

    plt.tight_layout()
    if output_file:
        fig.savefig(output_file)
        plt.close(fig)
    else:
        plt.show()


if __name__ == "__main__":
    config = load_config("config.txt")
    output_path = Path(config.get('output_directory', 'output'))
    events_df, nodes_df = load_results(
        output_path / config.get('output_events', 'simulation_log_events.parquet'),
        output_path / config.get('output_nodes', 'simulation_log_nodes.parquet'),
    )

    cluster = cluster_utilisation(nodes_df)
    averages = average_utilisation(cluster)

    print("\n" + "="*60)
    print("AVERAGE UTILISATION (over assignment snapshots)")
    print("="*60)
    print(f"Average core utilisation:   {averages['core_utilisation']:.2f}%")
    print(f"Average memory utilisation: {averages['memory_utilisation']:.2f}%")

    waits = job_wait_times(events_df)
    if not waits.empty:
        print(f"Mean wait time:             {waits['wait_time'].mean():.2f} ticks")
        print(f"Max wait time:              {waits['wait_time'].max()} ticks")
    print("="*60 + "\n")

    plot_cluster_utilisation(cluster, events_df, config.get('output_plot'))
