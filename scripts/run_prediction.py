import os
import re
import time
import json
import matplotlib.pyplot as plt
import numpy as np
from datetime import datetime
from prediction.ppm import PPMLanguageModel
from prediction.vocabulary import Vocabulary
from prediction.evaluate import log_loss, top_k_accuracy, top_predictions

MAX_ORDERS = [1, 2, 3, 4, 5]
TRAIN_FRACTION = 0.9
PROGRESS_EVERY = 100_000
TOP_K = 3


# ---------- Setup ----------
def ensure_dirs():
    base = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
    out = os.path.join(base, "output")
    os.makedirs(out, exist_ok=True)
    return {
        "project_root": base,
        "data_path": os.path.join(base, "data", "training_text.txt"),
        "out_dir": out
    }


# ---------- Text filtering ----------
def normalize_text(text):
    """Keep letters and spaces, upper-cased, with whitespace runs collapsed."""
    text = re.sub(r"\s+", " ", text)
    text = "".join(ch for ch in text if ch.isalpha() or ch == " ")
    return text.upper()


def train(model, symbols):
    context = model.create_context()
    for i, s in enumerate(symbols):
        model.observe(context, s)
        if i % PROGRESS_EVERY == 0 and i > 0:
            print(f"🔹 Processed {i} characters...")
    return context


# ---------- Visualization ----------
def plot_comparisons(results, out_dir):
    """Generate comparison charts for the trained models."""
    plt.style.use('seaborn-v0_8-darkgrid')
    plt.rcParams.update({"font.size": 10, "figure.dpi": 110})

    labels = list(results.keys())
    bits = np.array([r["bits_per_char"] for r in results.values()])
    top1 = np.array([r["top1_accuracy"] for r in results.values()])
    topk = np.array([r[f"top{TOP_K}_accuracy"] for r in results.values()])
    train_times = np.array([r["train_time"] for r in results.values()])
    nodes = np.array([r["num_nodes"] for r in results.values()])

    plots = [
        ("Held-out Cross-Entropy", bits, "Bits / char", "comparison_bits_per_char.png"),
        ("Top-1 Accuracy", top1 * 100, "% correct", "comparison_top1.png"),
        (f"Top-{TOP_K} Accuracy", topk * 100, "% correct", f"comparison_top{TOP_K}.png"),
        ("Training Time", train_times, "Time (s)", "comparison_train_times.png"),
    ]
    for title, vals, ylabel, filename in plots:
        plt.figure(figsize=(9, 5))
        bars = plt.bar(labels, vals)
        plt.bar_label(bars, fmt="%.3f", padding=3)
        plt.title(title)
        plt.ylabel(ylabel)
        plt.xticks(rotation=30)
        plt.tight_layout()
        plt.savefig(os.path.join(out_dir, filename))
        plt.close()

    # ===== Cross-entropy by order, exclusion on/off =====
    plt.figure(figsize=(7, 5))
    for exclusion in (False, True):
        sel = [r for r in results.values() if r["exclusion"] == exclusion]
        plt.plot([r["max_order"] for r in sel], [r["bits_per_char"] for r in sel],
                 marker="o", label="exclusion" if exclusion else "no exclusion")
    plt.xlabel("Max order")
    plt.ylabel("Bits / char (lower is better)")
    plt.title("Cross-Entropy vs Max Order")
    plt.legend()
    plt.tight_layout()
    plt.savefig(os.path.join(out_dir, "bits_vs_order.png"))
    plt.close()

    # ===== Trade-off Scatter: model size vs bits =====
    plt.figure(figsize=(7, 5))
    plt.scatter(nodes, bits, s=150, color="royalblue")
    for i, label in enumerate(labels):
        plt.text(nodes[i], bits[i], label, fontsize=8)
    plt.xlabel("Trie nodes")
    plt.ylabel("Bits / char")
    plt.title("Model Size vs Cross-Entropy Trade-off")
    plt.grid(True, linestyle="--", alpha=0.6)
    plt.tight_layout()
    plt.savefig(os.path.join(out_dir, "size_tradeoff.png"))
    plt.close()

    print(f" Saved {len(plots) + 2} visualizations in {out_dir}")


# ---------- Helpers ----------
def export_prediction_map(model, context, out_path):
    ranked = top_predictions(model, context, k=model.vocabulary_size() - 1)
    pred_map = {
        "max_order": model.max_order,
        "context_order": context.order,
        "predictions": [
            {"char": ch, "probability": round(p, 6)} for ch, p in ranked
        ]
    }
    with open(out_path, "w") as f:
        json.dump(pred_map, f, indent=2)
    print(f" Prediction map written to {out_path}")


# ---------- Main ----------
def main():
    paths = ensure_dirs()
    data_path = paths["data_path"]
    out_dir = paths["out_dir"]

    if not os.path.exists(data_path):
        raise FileNotFoundError(f"Data file not found: {data_path}")

    print(" Reading training text...")
    with open(data_path, "r", encoding="utf-8") as f:
        text = normalize_text(f.read())
    print(f" Read complete. {len(text):,} characters after filtering")

    split = int(len(text) * TRAIN_FRACTION)
    vocab = Vocabulary.from_text(text)
    train_symbols = vocab.encode(text[:split])
    test_symbols = vocab.encode(text[split:])
    print(f" Vocabulary: {vocab.size() - 1} symbols, train={len(train_symbols):,}, held-out={len(test_symbols):,}")

    results = {}
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")

    for order in MAX_ORDERS:
        print(f"\n Training PPM (Order {order})...")
        model = PPMLanguageModel(vocab, max_order=order)
        t0 = time.time()
        context = train(model, train_symbols)
        t1 = time.time()
        print(f" Trie built: {model.num_nodes:,} nodes in {t1 - t0:.3f}s")

        for exclusion in (False, True):
            model.use_exclusion = exclusion
            # score without learning so every configuration sees the same trie
            bits = log_loss(model, test_symbols, context=model.clone_context(context), learn=False)
            top1 = top_k_accuracy(model, test_symbols, k=1, context=model.clone_context(context), learn=False)
            topk = top_k_accuracy(model, test_symbols, k=TOP_K, context=model.clone_context(context), learn=False)
            label = f"PPM-{order}" + (" +excl" if exclusion else "")
            results[label] = {
                "max_order": order,
                "exclusion": exclusion,
                "bits_per_char": round(bits, 6),
                "top1_accuracy": round(top1, 6),
                f"top{TOP_K}_accuracy": round(topk, 6),
                "train_time": round(t1 - t0, 6),
                "num_nodes": model.num_nodes
            }
            print(f" {label}: {bits:.4f} bits/char, top-1={top1:.3f}, top-{TOP_K}={topk:.3f}")

        model.use_exclusion = False
        export_prediction_map(model, context, os.path.join(out_dir, f"ppm_order{order}_{ts}_predictions.json"))

    results_path = os.path.join(out_dir, f"prediction_results_{ts}.json")
    with open(results_path, "w") as f:
        json.dump(results, f, indent=2)

    plot_comparisons(results, out_dir)

    print("\n Prediction comparison complete!")
    print(f"Results saved in: {results_path}")


if __name__ == "__main__":
    main()
