# utilities/matching.py
from typing import Any, Optional, Tuple

import numpy as np
from scipy.optimize import linear_sum_assignment
from sklearn.metrics import confusion_matrix


def best_permutation(true: Any, pred: Any, n_classes: Optional[int] = None) -> np.ndarray:
    """
    Match fitted class labels to reference labels by maximal overlap.

    Returns `order` such that fitted class `order[i]` corresponds to reference
    class `i`; fitted per-class arrays are aligned with `means[order]` and
    transition matrices with `A[order][:, order]`.
    """
    true = np.asarray(true).reshape(-1)
    pred = np.asarray(pred).reshape(-1)
    if true.shape != pred.shape:
        raise ValueError(f"Label vectors differ in length: {true.shape[0]} vs {pred.shape[0]}")
    if n_classes is None:
        n_classes = int(max(true.max(), pred.max())) + 1

    C = confusion_matrix(true, pred, labels=list(range(n_classes)))
    row_ind, col_ind = linear_sum_assignment(-C)
    order = np.empty(n_classes, dtype=np.int64)
    order[row_ind] = col_ind
    return order


def best_permutation_accuracy(true: Any, pred: Any, n_classes: Optional[int] = None) -> Tuple[float, np.ndarray]:
    """Share of agreeing labels after optimal relabelling, and the relabelled predictions."""
    true = np.asarray(true).reshape(-1)
    pred = np.asarray(pred).reshape(-1)
    order = best_permutation(true, pred, n_classes)
    mapping = np.argsort(order)
    mapped_pred = mapping[pred]
    return float((mapped_pred == true).mean()), mapped_pred
