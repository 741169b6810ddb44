# prediction/evaluate.py
# Consumer-side helpers: ranked prediction lists and adaptive scoring of a
# symbol stream (bits per symbol, top-k hit rate).

from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from prediction.ppm import Context, PPMLanguageModel
from prediction.vocabulary import ROOT_SYMBOL


def rank_symbols(probs: Sequence[float]) -> np.ndarray:
    """Symbol indices (root excluded) by descending probability.

    Ties keep the lower index first.
    """
    p = np.asarray(probs, dtype=np.float64)
    order = np.argsort(-p[1:], kind="stable")
    return order + 1


def top_predictions(model: PPMLanguageModel, context: Context, k: int = 5) -> List[Tuple[str, float]]:
    probs = model.get_probs(context)
    ranked = rank_symbols(probs)[:k]
    return [(model.vocab.symbol_at(int(s)), probs[int(s)]) for s in ranked]


def _step(model: PPMLanguageModel, context: Context, symbol: int, learn: bool):
    if learn:
        model.observe(context, symbol)
    else:
        model.advance(context, symbol)


def log_loss(model: PPMLanguageModel, symbols: Iterable[int],
             context: Optional[Context] = None, learn: bool = True) -> float:
    """Average bits per symbol when each symbol is predicted before it is fed in."""
    if context is None:
        context = model.create_context()
    total_bits = 0.0
    n = 0
    for s in symbols:
        if s <= ROOT_SYMBOL:
            continue
        probs = model.get_probs(context)
        total_bits += -np.log2(probs[s])
        n += 1
        _step(model, context, s, learn)
    return float(total_bits / n) if n else 0.0


def top_k_accuracy(model: PPMLanguageModel, symbols: Iterable[int], k: int = 1,
                   context: Optional[Context] = None, learn: bool = True) -> float:
    if k < 1:
        raise ValueError(f"k must be >= 1, got {k}")
    if context is None:
        context = model.create_context()
    hits = 0
    n = 0
    for s in symbols:
        if s <= ROOT_SYMBOL:
            continue
        ranked = rank_symbols(model.get_probs(context))
        if s in ranked[:k]:
            hits += 1
        n += 1
        _step(model, context, s, learn)
    return hits / n if n else 0.0
