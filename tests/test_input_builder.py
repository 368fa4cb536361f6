from types import SimpleNamespace
from torchexamples.training.input_builder import RobertaInputBuilder

TOKENIZER = SimpleNamespace(bos_index=0, eos_index=2)


class TestRobertaInputBuilder:
    def test_single(self):
        tokens, positions, segments = RobertaInputBuilder(TOKENIZER, 10).build_single([5, 6])
        assert tokens == [0, 5, 6, 2]
        assert positions == [0, 1, 2, 3]
        assert segments == [0, 0, 0, 0]

    def test_pair(self):
        tokens, positions, segments, qlen = RobertaInputBuilder(TOKENIZER, 10).build_pair([5], [7, 8, 9])
        assert tokens == [0, 5, 2, 7, 8, 9, 2]
        assert positions == list(range(7))
        assert segments == [0, 0, 0, 1, 1, 1, 1]
        assert qlen == 3

    def test_pair_truncated_keeps_final_eos(self):
        tokens, positions, segments, qlen = RobertaInputBuilder(TOKENIZER, 5).build_pair([5], [7, 8, 9])
        assert tokens == [0, 5, 2, 7, 2]
        assert len(positions) == len(segments) == 5

    def test_answers_are_shifted_and_deduplicated(self):
        built = RobertaInputBuilder(TOKENIZER, 10).build_with_answers([5], [7, 8, 9], [(0, 1), (2, 2), (0, 1)])
        starts, ends = built[3], built[4]
        assert starts == [3, 5]
        assert ends == [4, 5]

    def test_truncated_answers_become_no_answer(self):
        built = RobertaInputBuilder(TOKENIZER, 5).build_with_answers([5], [7, 8, 9], [(0, 1)])
        assert (built[3], built[4]) == ([0], [0])

    def test_no_answers(self):
        built = RobertaInputBuilder(TOKENIZER, 10).build_with_answers([5], [7], [])
        assert (built[3], built[4]) == ([0], [0])
