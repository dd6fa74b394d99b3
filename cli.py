#!/usr/bin/env python3
import argparse

from kodar.config import DEFAULT_K
from kodar.orchestrator import run_once


def main():
    parser = argparse.ArgumentParser(description="KODAR clustering pipeline")
    parser.add_argument("dataset", help="CSV with header name,authorUri,publicationUri,title,keywords")
    parser.add_argument("--config", help="Path to YAML config")
    parser.add_argument("--evaluate", dest="evaluate", action="store_true", help="Only score the partitions (inter-cluster density)")
    parser.add_argument("--labeling-mode", dest="labeling_mode", choices=["topic_model", "semantic_fingerprint"], help="Cluster labeling engine")
    parser.set_defaults(evaluate=None)
    args = parser.parse_args()

    overrides = {
        "k": DEFAULT_K,
        "evaluate": args.evaluate,
        "labeling_mode": args.labeling_mode,
    }

    result = run_once(args.dataset, config_path=args.config, overrides=overrides)
    if result.evaluation is not None:
        print(f"inter-cluster density kmeans={result.evaluation.hard:.4f} fkmeans={result.evaluation.fuzzy:.4f}")


if __name__ == "__main__":
    main()
