"""
Command Line Interface for streamsom with observability
"""

import argparse
import json
import os
import sys
from pathlib import Path

import numpy as np
import pandas as pd
import structlog
from tqdm import tqdm

from streamsom import (
    __version__,
    BasicSOM,
    BatchLearning,
    ClassicLearning,
    DSOM,
    DistanceMetric,
    InitStrategy,
    PLSOM,
    SOMConfig,
    StreamART2A,
    Topology,
    UbiSOM,
    compute_statistics,
    setup_logging,
    trace_operation,
)
from streamsom.export import codebook_to_csv, to_csv

# Initialize observability
setup_logging(
    log_level=os.getenv("LOG_LEVEL", "INFO"),
    json_format=False,  # Use console format for CLI
)

logger = structlog.get_logger()

STREAM_MODELS = ["ubisom", "dsom", "plsom", "art"]


def load_data(file_path: str, format: str = "auto") -> np.ndarray:
    """Load data from various formats"""
    path = Path(file_path)

    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {file_path}")

    if format == "auto":
        format = path.suffix.lower()

    try:
        if format in [".csv", "csv"]:
            df = pd.read_csv(file_path)
            numeric = df.select_dtypes(include=[np.number])
            if numeric.shape[1] == 0:
                raise ValueError("No numeric columns found")
            return numeric.values.astype(np.float64)
        elif format in [".json", "json"]:
            with open(file_path, "r") as f:
                data = json.load(f)
            return np.array(data, dtype=np.float64)
        elif format in [".npy", "npy"]:
            return np.load(file_path).astype(np.float64)
        elif format in [".npz", "npz"]:
            loaded = np.load(file_path)
            # Use first array if multiple arrays in npz
            key = list(loaded.keys())[0]
            return loaded[key].astype(np.float64)
        else:
            raise ValueError(f"Unsupported format: {format}")
    except Exception as e:
        raise ValueError(f"Failed to load data from {file_path}: {e}")


def export_som(som, output_path: str) -> None:
    """Write the prototypes of a map to CSV"""
    try:
        to_csv(som, output_path)
        print(f"SOM exported to: {output_path}")
    except Exception as e:
        print(f"Error exporting SOM: {e}", file=sys.stderr)
        sys.exit(1)


def build_learner(args, width: int, height: int):
    """Offline learner selected by ``--learning``"""
    i_sigma = args.sigma if args.sigma is not None else max(width, height) / 2.0
    if args.learning == "batch":
        return BatchLearning(
            i_sigma=i_sigma,
            f_sigma=args.final_sigma,
            order_epochs=args.order_epochs,
            convergence_epochs=args.fine_tune_epochs,
            verbose=args.verbose,
        )
    return ClassicLearning(
        i_alpha=args.learning_rate,
        f_alpha=args.final_learning_rate,
        i_sigma=i_sigma,
        f_sigma=args.final_sigma,
        order_epochs=args.order_epochs,
        fine_tune_epochs=args.fine_tune_epochs,
        shuffle=args.shuffle,
        seed=args.seed,
        verbose=args.verbose,
    )


def train_command(args) -> None:
    """Train a BasicSOM offline and export its prototypes"""
    print(f"Loading data from: {args.input}")
    try:
        data = load_data(args.input, args.format)
        print(f"Data shape: {data.shape}")

        config = SOMConfig(
            width=args.width,
            height=args.height,
            dimensionality=data.shape[1],
            topology=Topology(args.topology),
            distance_metric=DistanceMetric(args.distance_metric),
            init_strategy=InitStrategy(args.init_strategy),
            seed=args.seed,
        )

        print(
            f"Training SOM: {args.width}x{args.height}, "
            f"{args.order_epochs}+{args.fine_tune_epochs} epochs ({args.learning})"
        )
        print(f"Topology: {args.topology}, Distance: {args.distance_metric}")

        with trace_operation("cli_train", width=args.width, height=args.height):
            som = BasicSOM.from_config(
                config, data if config.init_strategy != InitStrategy.RANDOM else None
            )
            learner = build_learner(args, args.width, args.height)
            learner.train(som, data)

        stats = compute_statistics(som, data)

        print("Training completed!")
        print(f"Quantization Error: {stats.quantization_error:.4f}")
        print(f"Topographic Error: {stats.topographic_error:.4f}")

        export_som(som, args.output)

    except Exception as e:
        print(f"Error training SOM: {e}", file=sys.stderr)
        sys.exit(1)


def build_stream_model(args, data: np.ndarray):
    """Streaming model selected by ``--model``"""
    dimensionality = data.shape[1]
    som_kwargs = {
        "lattice": Topology(args.topology),
        "metric_distance": DistanceMetric(args.distance_metric),
        "seed": args.seed,
    }
    if args.model == "ubisom":
        return UbiSOM(args.width, args.height, dimensionality, T=args.T, **som_kwargs)
    if args.model == "dsom":
        return DSOM(
            args.width,
            args.height,
            dimensionality,
            plasticity=args.plasticity,
            epsilon=args.epsilon,
            **som_kwargs,
        )
    if args.model == "plsom":
        return PLSOM(
            args.width,
            args.height,
            dimensionality,
            neighborhood_range=args.neighborhood_range,
            **som_kwargs,
        )
    if args.model == "art":
        dmin = args.dmin if args.dmin is not None else float(data.min())
        dmax = args.dmax if args.dmax is not None else float(data.max())
        return StreamART2A(
            dimensionality,
            dmin=dmin,
            dmax=dmax,
            learning_rate=args.learning_rate,
            landmark_window_size=args.window,
            q=args.q,
            K=args.K,
            vigilance=args.vigilance,
        )
    raise ValueError(f"Unsupported model: {args.model}")


def stream_command(args) -> None:
    """Feed a dataset one row at a time to a streaming model"""
    print(f"Loading data from: {args.input}")
    try:
        data = load_data(args.input, args.format)
        print(f"Data shape: {data.shape}")

        model = build_stream_model(args, data)
        print(f"Streaming {len(data)} samples into {args.model}")

        rows = tqdm(data, desc=f"Streaming {args.model}") if args.verbose else data
        with trace_operation("cli_stream", model=args.model, samples=len(data)):
            for x in rows:
                model.learn(x)

        print("Streaming completed!")
        if isinstance(model, StreamART2A):
            codebook = model.get_codebook()
            print(f"Codebook size: {len(codebook)}")
            print(f"Vigilance: {model.vigilance:.4f}")
            codebook_to_csv(codebook, model.dimensionality, args.output)
            print(f"Codebook exported to: {args.output}")
        else:
            if isinstance(model, UbiSOM):
                print(f"State: {model.state.phase.value}")
                print(f"Drift: {model.current_drift:.4f}")
            print(f"Quantization Error: {model.quantization_error(data):.4f}")
            export_som(model, args.output)

    except Exception as e:
        print(f"Error streaming data: {e}", file=sys.stderr)
        sys.exit(1)


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("input", help="Input data file")
    parser.add_argument(
        "--format",
        choices=["auto", "csv", "json", "npy", "npz"],
        default="auto",
        help="Input data format",
    )
    parser.add_argument("--width", type=int, default=10, help="SOM width")
    parser.add_argument("--height", type=int, default=10, help="SOM height")
    parser.add_argument(
        "--topology",
        choices=[t.value for t in Topology],
        default="hexagonal",
        help="Lattice topology",
    )
    parser.add_argument(
        "--distance-metric",
        choices=[m.value for m in DistanceMetric],
        default="euclidean",
        help="Distance metric",
    )
    parser.add_argument("--seed", type=int, help="Random seed for reproducibility")
    parser.add_argument("--verbose", action="store_true", help="Verbose output")


def main():
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        description="streamsom Self-Organizing Map CLI",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Train command
    train_parser = subparsers.add_parser("train", help="Train a SOM offline")
    add_common_arguments(train_parser)
    train_parser.add_argument(
        "--output", "-o", default="som.csv", help="Output prototypes CSV"
    )
    train_parser.add_argument(
        "--learning",
        choices=["classic", "batch"],
        default="classic",
        help="Offline learning algorithm",
    )
    train_parser.add_argument(
        "--order-epochs", type=int, default=50, help="Ordering epochs"
    )
    train_parser.add_argument(
        "--fine-tune-epochs", type=int, default=50, help="Fine-tuning epochs"
    )
    train_parser.add_argument(
        "--learning-rate", type=float, default=0.1, help="Initial learning rate"
    )
    train_parser.add_argument(
        "--final-learning-rate", type=float, default=0.01, help="Final learning rate"
    )
    train_parser.add_argument(
        "--sigma", type=float, help="Initial neighborhood radius (auto if not set)"
    )
    train_parser.add_argument(
        "--final-sigma", type=float, default=0.1, help="Final neighborhood radius"
    )
    train_parser.add_argument(
        "--init-strategy",
        choices=[s.value for s in InitStrategy],
        default="random",
        help="Prototype initialization strategy",
    )
    train_parser.add_argument(
        "--shuffle", action="store_true", help="Shuffle the dataset every epoch"
    )

    # Stream command
    stream_parser = subparsers.add_parser(
        "stream", help="Feed a dataset to a streaming model"
    )
    add_common_arguments(stream_parser)
    stream_parser.add_argument(
        "--output", "-o", default="stream.csv", help="Output prototypes/codebook CSV"
    )
    stream_parser.add_argument(
        "--model", choices=STREAM_MODELS, default="ubisom", help="Streaming model"
    )
    stream_parser.add_argument("--T", type=int, default=2000, help="UbiSOM T")
    stream_parser.add_argument(
        "--plasticity", type=float, default=1.0, help="DSOM plasticity"
    )
    stream_parser.add_argument(
        "--epsilon", type=float, default=0.1, help="DSOM learning rate"
    )
    stream_parser.add_argument(
        "--neighborhood-range", type=float, default=2.0, help="PLSOM range"
    )
    stream_parser.add_argument(
        "--learning-rate", type=float, default=0.1, help="StreamART2A learning rate"
    )
    stream_parser.add_argument(
        "--window", type=int, default=1000, help="StreamART2A landmark window size"
    )
    stream_parser.add_argument(
        "--q", type=int, default=50, help="StreamART2A categories per window"
    )
    stream_parser.add_argument(
        "--K", type=int, default=500, help="StreamART2A codebook capacity"
    )
    stream_parser.add_argument(
        "--vigilance", type=float, default=0.9, help="StreamART2A vigilance"
    )
    stream_parser.add_argument(
        "--dmin", type=float, help="Lower input bound (data minimum if not set)"
    )
    stream_parser.add_argument(
        "--dmax", type=float, help="Upper input bound (data maximum if not set)"
    )

    # Version command
    subparsers.add_parser("version", help="Show version information")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    if args.command == "train":
        train_command(args)
    elif args.command == "stream":
        stream_command(args)
    elif args.command == "version":
        print(f"streamsom CLI v{__version__}")
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
