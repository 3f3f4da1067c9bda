"""
Central configuration file for the wait-for graph simulation.
Tune these parameters to alter the workload and how deadlocks are handled.
"""

# --- Wait-For Graph ---
# One of: "adjacency_list", "adjacency_matrix", "hashmap_sets", "networkx"
DEFAULT_WFG_TYPE = "adjacency_list"

# --- Simulation Setup ---
NUM_TRANSACTIONS = 6
NUM_RESOURCES = 4       # Lower number increases resource contention
NUM_OPERATIONS = 40
RANDOM_SEED = 42

# --- Workload Tuning ---
# Probability (0.0 to 1.0) that a transaction holding locks releases one
# instead of requesting another. Lower values make deadlocks more likely.
RELEASE_PROBABILITY = 0.4

# --- Deadlock Handling ---
# One of: "degree", "distance_sum", "youngest"
DEFAULT_VICTIM_STRATEGY = "distance_sum"

# Run detection after every operation and abort a victim when a cycle shows up.
RESOLVE_AFTER_EACH_OPERATION = True

# One of: "first", "all"
DEFAULT_DETECTION_MODE = "first"

# --- Logging ---
LOG_LEVEL = "INFO"
LOG_FORMAT = "%(asctime)s - %(name)s - %(message)s"

# --- Plotting ---
FIGURE_SIZE = (12, 8)
