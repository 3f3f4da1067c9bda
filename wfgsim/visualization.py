import matplotlib.pyplot as plt
import networkx as nx

import config

BATCH_COLORS = ["#3b82f6", "#ef4444", "#10b981", "#f59e0b", "#8b5cf6", "#ec4899"]


def visualize_wait_for_graph(wfg, cycle=None, colors=None, victim=None, output_path=None):
    """
    Visualizes the Wait-For Graph using networkx and matplotlib.

    Args:
        wfg: Any wait-for graph representation.
        cycle (list): Optional closed node sequence forming a deadlock.
        colors (dict): Optional node -> batch color index from conflict coloring.
        victim: Optional node chosen for abort, drawn with a thick outline.
        output_path: Save the figure there instead of opening a window.

    Returns:
        The matplotlib Figure.
    """
    G = wfg.to_networkx()
    pos = nx.circular_layout(G)

    fig = plt.figure(figsize=config.FIGURE_SIZE)
    if colors:
        node_color = [BATCH_COLORS[colors.get(node, 0) % len(BATCH_COLORS)] for node in G.nodes]
    else:
        node_color = "lightblue"

    nx.draw(
        G,
        pos,
        with_labels=True,
        node_color=node_color,
        node_size=2500,
        font_size=12,
        font_weight="bold",
        edge_color="gray",
        arrows=True,
    )

    # Highlight the cycle if provided
    if cycle:
        cycle_edges = list(zip(cycle, cycle[1:]))
        nx.draw_networkx_edges(G, pos, edgelist=cycle_edges, edge_color="red", width=3)
        nx.draw_networkx_nodes(G, pos, nodelist=list(dict.fromkeys(cycle)), node_color="orange", node_size=3000)
        plt.title("Deadlock Detected: Cycle Highlighted", fontsize=16, color="red")
    elif colors:
        plt.title(f"Safe Batches: {len(set(colors.values()))} color(s)", fontsize=16)
    else:
        plt.title("Wait-For Graph", fontsize=16)

    if victim is not None and victim in G:
        nx.draw_networkx_nodes(
            G, pos, nodelist=[victim], node_color="orange", edgecolors="black", linewidths=4, node_size=3200
        )

    plt.legend(
        handles=[
            plt.Line2D([0], [0], color="gray", lw=2, label="Waits for"),
            plt.Line2D([0], [0], color="red", lw=2, label="Deadlock Cycle"),
            plt.Line2D(
                [0],
                [0],
                marker="o",
                color="w",
                markerfacecolor="orange",
                markersize=15,
                label="Deadlock Nodes",
            ),
        ],
        loc="upper left",
    )

    if output_path:
        fig.savefig(output_path)
        plt.close(fig)
    else:
        plt.show()
    return fig
