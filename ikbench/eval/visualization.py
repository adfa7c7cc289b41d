"""
Reporting Tools

Renders benchmark statistics:
- Per-variant log lines
- Two-section summary (position, velocity)
- Markdown report
- Bar chart of success rates and solve times
"""

from typing import Optional

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.figure import Figure

from .metrics import BenchmarkResults, VariantStatistics, POSITION, VELOCITY


SEPARATOR = "*" * 36


def format_variant_line(stats: VariantStatistics, phase: str = POSITION) -> str:
    """One summary line for a variant after its sweep."""
    line = (f"{stats.name} found {stats.success_count} solutions "
            f"({100.0 * stats.success_rate:.2f}%) with an average of "
            f"{stats.average_elapsed_seconds:.6f} secs per sample")
    if phase == VELOCITY:
        line += (f"; scaling score {stats.scaled_success_count} solutions "
                 f"({100.0 * stats.scaled_success_rate:.2f}%) at an average scale of "
                 f"{stats.average_scale:.3f}")
    return line


def format_summary(results: BenchmarkResults) -> str:
    """
    Final summary with one section per phase.

    Rates are in percent and times in milliseconds.
    """
    lines = []
    if results.position:
        lines.append(SEPARATOR)
        lines.append("Position IK Summary:")
        for stats in results.position.values():
            lines.append(f"{stats.name}: {100.0 * stats.success_rate:.2f}% success rate "
                         f"with an average time of {1000.0 * stats.average_elapsed_seconds:.2f} ms")
        lines.append(SEPARATOR)

    if results.velocity:
        lines.append(SEPARATOR)
        lines.append("Velocity IK Summary:")
        for stats in results.velocity.values():
            lines.append(f"{stats.name}: {100.0 * stats.success_rate:.2f}% w/o and "
                         f"{100.0 * stats.scaled_success_rate:.2f}% w/ scaling success rates "
                         f"with an average time of {1000.0 * stats.average_elapsed_seconds:.2f} ms")
        lines.append(SEPARATOR)

    return "\n".join(lines)


def generate_benchmark_report(
    results: BenchmarkResults,
    save_path: str,
    title: str = "IK Solver Benchmark Report",
):
    """
    Write a Markdown report with one table per phase.

    Args:
        results: Benchmark statistics
        save_path: Path to save the report (.md file)
        title: Report heading
    """
    report = [f"# {title}\n"]

    if results.position:
        report.append("## Position IK\n")
        report.append("| Solver | Samples | Success Rate | Avg Time (ms) |")
        report.append("|--------|---------|--------------|---------------|")
        for stats in results.position.values():
            report.append(
                f"| {stats.name} | {stats.sample_count} | "
                f"{100.0 * stats.success_rate:.2f}% | "
                f"{1000.0 * stats.average_elapsed_seconds:.3f} |"
            )
        report.append("")

    if results.velocity:
        report.append("## Velocity IK\n")
        report.append("| Solver | Samples | Success Rate | Scaled Success Rate | Avg Time (ms) | Avg Scale |")
        report.append("|--------|---------|--------------|---------------------|---------------|-----------|")
        for stats in results.velocity.values():
            report.append(
                f"| {stats.name} | {stats.sample_count} | "
                f"{100.0 * stats.success_rate:.2f}% | "
                f"{100.0 * stats.scaled_success_rate:.2f}% | "
                f"{1000.0 * stats.average_elapsed_seconds:.3f} | "
                f"{stats.average_scale:.3f} |"
            )
        report.append("")

    with open(save_path, 'w') as f:
        f.write('\n'.join(report))

    print(f"Benchmark report saved to {save_path}")


def plot_benchmark_summary(
    results: BenchmarkResults,
    save_path: Optional[str] = None,
) -> Figure:
    """
    Plot success rates and average solve times for both phases.

    Args:
        results: Benchmark statistics
        save_path: Optional path to save figure

    Returns:
        Matplotlib Figure object
    """
    fig, axes = plt.subplots(2, 2, figsize=(14, 10))

    for row, phase in enumerate((POSITION, VELOCITY)):
        variants = list(results.phase(phase).values())
        names = [s.name for s in variants]
        x = np.arange(len(variants))

        # Success rates
        ax = axes[row, 0]
        if phase == VELOCITY:
            width = 0.35
            ax.bar(x - width / 2, [100.0 * s.success_rate for s in variants], width,
                   label='Exact', alpha=0.8)
            ax.bar(x + width / 2, [100.0 * s.scaled_success_rate for s in variants], width,
                   label='Scaled', alpha=0.8)
            ax.legend()
        else:
            ax.bar(x, [100.0 * s.success_rate for s in variants], alpha=0.8)
        ax.set_ylabel('Success Rate (%)')
        ax.set_ylim(0, 105)
        ax.set_title(f'{phase.capitalize()} IK Success Rate')
        ax.set_xticks(x)
        ax.set_xticklabels(names, rotation=30, ha='right')
        ax.grid(True, alpha=0.3, axis='y')

        # Average time
        ax = axes[row, 1]
        colors = plt.cm.Set3(np.linspace(0, 1, max(len(variants), 1)))
        ax.bar(x, [1000.0 * s.average_elapsed_seconds for s in variants],
               color=colors[:len(variants)], edgecolor='black', alpha=0.8)
        ax.set_ylabel('Average Time (ms)')
        ax.set_title(f'{phase.capitalize()} IK Solve Time')
        ax.set_xticks(x)
        ax.set_xticklabels(names, rotation=30, ha='right')
        ax.grid(True, alpha=0.3, axis='y')

    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
        print(f"Saved benchmark summary plot to {save_path}")

    return fig
