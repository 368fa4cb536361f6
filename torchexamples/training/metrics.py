import math


def cosine_similarity(vector1, vector2):
    if len(vector1) != len(vector2):
        raise ValueError(f"Vectors to compute cosine similarity must have the same length, "
                         f"got {len(vector1)} and {len(vector2)}")
    x_max, y_max = max(vector1), max(vector2)
    xs = [x / x_max for x in vector1]
    ys = [y / y_max for y in vector2]
    nominator = sum(x * y for x, y in zip(xs, ys))
    return nominator / math.sqrt(sum(x * x for x in xs) * sum(y * y for y in ys))


def compute_overlap(pred_start, pred_end, true_start, true_end):
    points = (pred_start, pred_end, true_start, true_end)
    overlap = (true_end - true_start) + (pred_end - pred_start) - (max(points) - min(points)) + 1
    return max(overlap, 0)


def compute_f1(pred_start, pred_end, true_start, true_end):
    """Token-level F1 of inclusive spans; (0, 0) is the no-answer span."""
    if (true_start | true_end) == 0:
        return 1.0 if (pred_start | pred_end) == 0 else 0.0
    if pred_start > pred_end:
        return 0.0
    overlap = compute_overlap(pred_start, pred_end, true_start, true_end)
    if overlap == 0:
        return 0.0
    precision = overlap / (pred_end - pred_start + 1)
    recall = overlap / (true_end - true_start + 1)
    return 2 * precision * recall / (precision + recall)


def compute_top_k_spans_with_score(start_scores, starts, end_scores, ends, k):
    """All (start, end, start_score * end_score) with start <= end, best k first. Accepts tensors or lists."""
    start_scores, starts = _as_list(start_scores), _as_list(starts)
    end_scores, ends = _as_list(end_scores), _as_list(ends)
    spans = [(int(s), int(e), ss * es)
             for s, ss in zip(starts, start_scores)
             for e, es in zip(ends, end_scores) if s <= e]
    spans.sort(key=lambda span: span[2], reverse=True)
    return spans[:k]


def _as_list(values):
    return values.tolist() if hasattr(values, "tolist") else list(values)
