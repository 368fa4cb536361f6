import pytest
import torch
from torchexamples.training.metrics import compute_f1, compute_overlap, compute_top_k_spans_with_score, cosine_similarity


class TestF1:
    def test_partial_overlap(self):
        assert compute_overlap(2, 5, 4, 7) == 2
        assert compute_f1(2, 5, 4, 7) == pytest.approx(0.5)

    def test_exact_match(self):
        assert compute_f1(3, 6, 3, 6) == 1.0

    def test_no_answer(self):
        assert compute_f1(0, 0, 0, 0) == 1.0
        assert compute_f1(1, 2, 0, 0) == 0.0

    def test_inverted_prediction(self):
        assert compute_f1(5, 3, 1, 4) == 0.0

    def test_disjoint(self):
        assert compute_overlap(1, 2, 5, 6) == 0
        assert compute_f1(1, 2, 5, 6) == 0.0


class TestTopKSpans:
    def test_best_spans_first(self):
        spans = compute_top_k_spans_with_score([0.9, 0.5], [3, 1], [0.8, 0.6], [2, 4], 2)
        assert [(s, e) for s, e, _ in spans] == [(3, 4), (1, 2)]
        assert [score for _, _, score in spans] == pytest.approx([0.54, 0.4])

    def test_start_after_end_excluded(self):
        spans = compute_top_k_spans_with_score([1.0], [5], [1.0], [4], 3)
        assert spans == []

    def test_accepts_tensors(self):
        spans = compute_top_k_spans_with_score(torch.tensor([0.5]), torch.tensor([2]),
                                               torch.tensor([0.5]), torch.tensor([3]), 1)
        assert spans == [(2, 3, 0.25)]


class TestCosine:
    def test_same_direction(self):
        assert cosine_similarity([1, 2, 0], [2, 4, 0]) == pytest.approx(1.0)

    def test_orthogonal(self):
        assert cosine_similarity([1, 0], [0, 1]) == 0.0

    def test_length_mismatch(self):
        with pytest.raises(ValueError):
            cosine_similarity([1, 2], [1])
