#!/usr/bin/env python3
"""
IK benchmark script.

Runs the position and velocity IK benchmarks for every solver variant on one
kinematic chain and prints a summary.

Usage:
    python scripts/run_benchmark.py --urdf robots/panda_arm.urdf \
        --chain-start panda_link0 --chain-end panda_link8
    python scripts/run_benchmark.py --urdf robots/ur10.urdf --chain-start base_link \
        --chain-end ee_link --random-position-seed --seed 42 --output-dir results/ur10
"""

import argparse
import sys
from pathlib import Path

import numpy as np
import torch
from torch.utils.tensorboard import SummaryWriter

from ikbench.data import ConfigurationError
from ikbench.robot import ChainError, get_kinematic_chain
from ikbench.eval import Benchmark, BenchmarkConfig, build_default_solvers
from ikbench.eval.visualization import (
    format_summary,
    generate_benchmark_report,
    plot_benchmark_summary,
)


def parse_args():
    parser = argparse.ArgumentParser(
        description="Benchmark IK solver variants on random joint configurations",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--urdf", type=str, required=True,
                        help="Path to robot URDF")
    parser.add_argument("--chain-start", type=str, required=True,
                        help="Base link of the chain")
    parser.add_argument("--chain-end", type=str, required=True,
                        help="End-effector link of the chain")
    parser.add_argument("--num-samples-pos", type=int, default=100,
                        help="Number of position IK samples")
    parser.add_argument("--num-samples-vel", type=int, default=1000,
                        help="Number of velocity IK samples")
    parser.add_argument("--timeout", type=float, default=0.005,
                        help="Time budget per position trial in seconds")
    parser.add_argument("--random-position-seed", action="store_true",
                        help="Seed each trial with the previous trial's configuration")
    parser.add_argument("--close-position-seed", action="store_true",
                        help="Seed each trial with a perturbation of its own solution")
    parser.add_argument("--seed", type=int, default=None,
                        help="Random seed for the sample set")
    parser.add_argument("--device", type=str, default="cpu",
                        help="Device (cpu or cuda)")
    parser.add_argument("--output-dir", type=str, default=None,
                        help="Directory for the Markdown report and plot")
    parser.add_argument("--log-dir", type=str, default=None,
                        help="TensorBoard log directory")
    parser.add_argument("--quiet", action="store_true",
                        help="Only print the final summary")
    return parser.parse_args()


def main():
    args = parse_args()

    if args.device.startswith("cuda") and not torch.cuda.is_available():
        print("Warning: CUDA not available, falling back to CPU")
        args.device = "cpu"

    try:
        config = BenchmarkConfig(
            num_position_samples=args.num_samples_pos,
            num_velocity_samples=args.num_samples_vel,
            seed=args.seed,
            timeout=args.timeout,
            device=args.device,
            chain_start=args.chain_start,
            chain_end=args.chain_end,
            random_position_seed=args.random_position_seed,
            close_position_seed=args.close_position_seed,
        )
        chain = get_kinematic_chain(args.urdf, config.chain_start, config.chain_end)
        fk, limits, position_solvers, velocity_solvers = build_default_solvers(chain, config)
        benchmark = Benchmark(fk, limits, position_solvers, velocity_solvers, config,
                              verbose=not args.quiet)
    except (ChainError, ConfigurationError, FileNotFoundError) as e:
        print(f"Error: {e}")
        sys.exit(1)

    if not args.quiet:
        chain.print_tree()
        print(f"Seed strategy: {config.seed_strategy.value}")
        print(f"Nominal configuration: {np.round(benchmark.nominal, 4)}")

    if args.log_dir:
        benchmark.writer = SummaryWriter(log_dir=args.log_dir)

    results = benchmark.run()

    if benchmark.writer is not None:
        benchmark.writer.close()

    print()
    print(format_summary(results))

    if args.output_dir:
        output_dir = Path(args.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        generate_benchmark_report(results, str(output_dir / "benchmark_report.md"))
        plot_benchmark_summary(results, save_path=str(output_dir / "benchmark_summary.png"))


if __name__ == "__main__":
    main()
