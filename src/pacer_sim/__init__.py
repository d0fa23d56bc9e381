"""pacer-sim - push synthetic workloads through site schedulers."""
