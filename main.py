import argparse
import logging
import random

import config
from wfgsim.deadlock_detector import analyze_wfg
from wfgsim.scenario import (
    deadlock_scenario,
    generate_workload,
    load_operations,
    resource_ids,
    transaction_ids,
)
from wfgsim.transaction_manager import TransactionManager
from wfgsim.utils import format_cycle, setup_logging
from wfgsim.wait_for_graph import WFG_TYPES, compare_data_structures


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Wait-for graph deadlock detection simulation")
    parser.add_argument("--wfg-type", choices=sorted(WFG_TYPES), default=config.DEFAULT_WFG_TYPE)
    parser.add_argument("--scenario", choices=["random", "deadlock"], default="random")
    parser.add_argument("--ops-file", help="Replay operations from a text file instead of a scenario")
    parser.add_argument("--transactions", type=int, default=config.NUM_TRANSACTIONS)
    parser.add_argument("--resources", type=int, default=config.NUM_RESOURCES)
    parser.add_argument("--operations", type=int, default=config.NUM_OPERATIONS)
    parser.add_argument("--seed", type=int, default=config.RANDOM_SEED)
    parser.add_argument("--strategy", choices=["degree", "distance_sum", "youngest"], default=config.DEFAULT_VICTIM_STRATEGY)
    parser.add_argument("--mode", choices=["first", "all"], default=config.DEFAULT_DETECTION_MODE)
    parser.add_argument("--no-resolve", action="store_true", help="Only detect, never abort a victim")
    parser.add_argument("--compare", action="store_true", help="Replay the graph operations on every representation")
    parser.add_argument("--plot", metavar="PATH", help="Save a drawing of the final wait-for graph")
    parser.add_argument("--log-level", default=config.LOG_LEVEL)
    return parser.parse_args(argv)


def build_operations(args):
    if args.ops_file:
        return load_operations(args.ops_file)
    if args.scenario == "deadlock":
        return deadlock_scenario()
    return None


def main(argv=None):
    """Main function to set up and run the simulation."""
    args = parse_args(argv)
    setup_logging(args.log_level.upper())
    logger = logging.getLogger(__name__)

    resolve = config.RESOLVE_AFTER_EACH_OPERATION and not args.no_resolve
    manager = TransactionManager(
        args.wfg_type,
        transactions=transaction_ids(args.transactions),
        resources=resource_ids(args.resources),
    )

    logger.info(f"Starting simulation on {manager.wfg.name}...")
    operations = build_operations(args)
    if operations is None:
        rng = random.Random(args.seed)
        for _ in range(args.operations):
            if not generate_workload(manager, rng, 1):
                break
            if resolve:
                manager.resolve_all_deadlocks(args.strategy)
    else:
        for operation in operations:
            if operation.tx_id not in manager.transactions:
                manager.add_transaction(operation.tx_id)
            if operation.res_id is not None and operation.res_id not in manager.resources:
                manager.add_resource(operation.res_id)
        manager.run(operations, resolve=resolve, strategy=args.strategy)

    report = manager.detect_deadlock(args.mode)
    if report.has_deadlock:
        for cycle in report.cycles:
            logger.error(f"Deadlock remaining: {format_cycle(cycle)}")
    else:
        logger.info("--- No deadlock detected. ---")

    batches = manager.compute_safe_batches()
    logger.info(f"--- Safe batches ({batches.chromatic_number}) ---")
    for color, members in sorted(batches.groups.items()):
        logger.info(f"  Batch {color}: {members}")

    state = manager.get_state()
    logger.info("--- Final State ---")
    for tx_id, tx_state in state.transactions.items():
        logger.info(f"  {tx_id}: {tx_state.status}, holds {list(tx_state.held_locks)}, waiting for {tx_state.waiting_for}")
    logger.info(f"  Graph: {analyze_wfg(manager.wfg)}")
    logger.info(f"  Metrics: {state.metrics}")

    if args.compare:
        graph_operations = [("add_edge", a, b) for a, b in state.edges]
        for wfg_type, metrics in compare_data_structures(graph_operations, state.nodes).items():
            logger.info(f"  {wfg_type}: {metrics}")

    if args.plot:
        from wfgsim.visualization import visualize_wait_for_graph

        visualize_wait_for_graph(
            manager.wfg, cycle=report.cycle, colors=batches.colors, output_path=args.plot
        )
        logger.info(f"Graph written to {args.plot}")

    logger.info("Simulation finished.")
    return manager


if __name__ == "__main__":
    main()
