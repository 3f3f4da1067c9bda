"""
Victim selection heuristics for breaking a deadlock cycle.

All selectors take the full wait-for graph plus a cycle (a closed node
sequence, first == last) and always return a member of that cycle. Ties go
to the node that appears first in the cycle.
"""

import logging
import re
from collections import deque
from enum import Enum

from wfgsim.errors import EmptyInputError

logger = logging.getLogger(__name__)


class VictimStrategy(Enum):
    DEGREE = "degree"
    DISTANCE_SUM = "distance_sum"
    YOUNGEST = "youngest"


def _cycle_members(cycle):
    if not cycle:
        raise EmptyInputError("Cannot select a victim from an empty cycle")
    members = list(cycle)
    if len(members) > 1 and members[0] == members[-1]:
        members.pop()
    return members


def _pick_max(members, score):
    best, best_score = members[0], None
    for node in members:
        node_score = score(node)
        if best_score is None or node_score > best_score:
            best, best_score = node, node_score
    return best, best_score


def degree_scores(wfg, cycle):
    """out_degree + 0.5 * in_degree over the whole graph, per cycle member."""
    in_degrees = wfg.in_degrees()
    return {
        node: wfg.out_degree(node) + 0.5 * in_degrees.get(node, 0)
        for node in _cycle_members(cycle)
    }


def select_victim_by_degree(wfg, cycle):
    members = _cycle_members(cycle)
    scores = degree_scores(wfg, members)
    victim, score = _pick_max(members, scores.__getitem__)
    logger.debug(f"Degree heuristic picked {victim} (score {score})")
    return victim


def distance_sum(wfg, start):
    """Sum of BFS hop counts from start to every node it can reach."""
    distances = {start: 0}
    queue = deque([start])
    while queue:
        current = queue.popleft()
        for neighbor in wfg.get_neighbors(current):
            if neighbor not in distances:
                distances[neighbor] = distances[current] + 1
                queue.append(neighbor)
    return sum(distances.values())


def select_victim_by_distance(wfg, cycle):
    """
    Picks the member whose BFS distance sum is largest, a proxy for the
    number of indirect waits it takes part in. Falls back to the degree
    heuristic when no member scores above zero.
    """
    members = _cycle_members(cycle)
    victim, score = _pick_max(members, lambda node: distance_sum(wfg, node))
    if score <= 0:
        logger.debug("No positive distance sum, falling back to degree heuristic")
        return select_victim_by_degree(wfg, members)
    logger.debug(f"Distance-sum heuristic picked {victim} (score {score})")
    return victim


def _age_key(node):
    # "T12" -> 12; ids without a numeric suffix count as oldest
    match = re.search(r"(\d+)$", str(node))
    return int(match.group(1)) if match else -1


def select_youngest_victim(wfg, cycle):
    """Highest numeric id suffix, i.e. the most recently started transaction."""
    members = _cycle_members(cycle)
    victim, _ = _pick_max(members, _age_key)
    return victim


_SELECTORS = {
    VictimStrategy.DEGREE: select_victim_by_degree,
    VictimStrategy.DISTANCE_SUM: select_victim_by_distance,
    VictimStrategy.YOUNGEST: select_youngest_victim,
}


def select_victim(wfg, cycle, strategy=VictimStrategy.DISTANCE_SUM):
    """Dispatches to the selector for strategy (enum member or its value)."""
    return _SELECTORS[VictimStrategy(strategy)](wfg, cycle)
