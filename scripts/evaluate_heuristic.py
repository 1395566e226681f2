#!/usr/bin/env python3
"""Evaluate the offline heuristic classifier on labelled leaf photos.

Dataset structure (one folder per stage code, any subset allowed):
    leaves/
        H0/  E1/  E2/  E3/  N0/

Usage:
    python scripts/evaluate_heuristic.py --data-dir test_data/leaves
    python scripts/evaluate_heuristic.py --data-dir test_data/leaves --max-samples 50
"""

import argparse
import sys
import time
from collections import defaultdict
from pathlib import Path

import numpy as np

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

IMAGE_SUFFIXES = ('.png', '.jpg', '.jpeg', '.webp', '.bmp')


def collect_images(data_dir: Path, max_samples: int):
    """(path, true stage code) pairs, sampled per class with a fixed seed."""
    from core.utils import DiseaseStage

    rng = np.random.default_rng(42)
    samples = []
    for stage in DiseaseStage:
        stage_dir = data_dir / stage.value
        if not stage_dir.is_dir():
            continue
        files = sorted(f for f in stage_dir.iterdir() if f.suffix.lower() in IMAGE_SUFFIXES)
        if len(files) > max_samples:
            picks = rng.choice(len(files), max_samples, replace=False)
            files = [files[i] for i in sorted(picks)]
        print(f"  {stage.value}: {len(files)} images")
        samples.extend((f, stage.value) for f in files)
    return samples


def evaluate(data_dir: str, max_samples: int = 100):
    from core.classifier import create_classifier
    from core.config import EngineConfig
    from core.diagnosis_engine import DiagnosisEngine
    from core.utils import ClassificationError, DiseaseStage

    print("=" * 60)
    print("HEURISTIC CLASSIFIER EVALUATION")
    print("=" * 60)

    data_path = Path(data_dir)
    if not data_path.is_dir():
        print(f"ERROR: {data_dir} is not a directory")
        return None

    samples = collect_images(data_path, max_samples)
    if not samples:
        print(f"ERROR: no stage folders (H0, E1, E2, E3, N0) found in {data_dir}")
        return None

    # No ledger: evaluation runs must not touch the user's history
    engine = DiagnosisEngine(create_classifier(EngineConfig()))
    codes = [stage.value for stage in DiseaseStage]
    confusion = defaultdict(lambda: defaultdict(int))
    correct = 0
    total = 0
    errors = 0
    start_time = time.time()

    for i, (img_path, true_code) in enumerate(samples):
        try:
            result = engine.diagnose(img_path)
        except ClassificationError as e:
            errors += 1
            if errors <= 3:
                print(f"  Error on {img_path.name}: {e.message}")
            continue

        predicted = result.stage.value
        confusion[true_code][predicted] += 1
        correct += predicted == true_code
        total += 1

        if (i + 1) % 20 == 0:
            print(f"  [{i+1}/{len(samples)}] Running accuracy: {correct / total * 100:.1f}%")

    elapsed = time.time() - start_time
    accuracy = correct / total * 100 if total > 0 else 0

    print("\n" + "=" * 60)
    print("RESULTS")
    print("=" * 60)
    print(f"  Total evaluated: {total}")
    print(f"  Errors: {errors}")
    if total:
        print(f"  Time: {elapsed:.1f}s ({elapsed/total*1000:.0f}ms per image)")
    print(f"  Accuracy: {accuracy:.1f}%")
    print()
    print("  Confusion Matrix (rows = actual, columns = predicted):")
    print("        " + "".join(f"{c:>6}" for c in codes))
    for actual in codes:
        row = confusion.get(actual)
        if not row:
            continue
        print(f"  {actual:>4}  " + "".join(f"{row.get(p, 0):>6}" for p in codes))
    print()

    return {"accuracy": accuracy, "total": total, "errors": errors}


def main():
    parser = argparse.ArgumentParser(description="Evaluate the PhytoScan heuristic classifier.")
    parser.add_argument("--data-dir", default="test_data/leaves",
                        help="Directory with one sub-folder per stage code")
    parser.add_argument("--max-samples", type=int, default=100,
                        help="Max images per stage (default: 100)")
    args = parser.parse_args()

    result = evaluate(args.data_dir, args.max_samples)
    sys.exit(0 if result else 1)


if __name__ == "__main__":
    main()
