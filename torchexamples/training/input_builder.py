class RobertaInputBuilder:
    """Lays out `<s> question </s> context </s>` model inputs with positions and segment ids."""

    def __init__(self, tokenizer, max_positions):
        self.tokenizer = tokenizer
        self.max_positions = max_positions

    def build_single(self, token_ids):
        tokens = [self.tokenizer.bos_index] + list(token_ids) + [self.tokenizer.eos_index]
        return tokens, list(range(len(tokens))), [0] * len(tokens)

    def build_pair(self, question_ids, context_ids):
        tokens = [self.tokenizer.bos_index] + list(question_ids) + [self.tokenizer.eos_index] + list(context_ids)
        tokens = tokens[:self.max_positions - 1] + [self.tokenizer.eos_index]
        question_segment_length = len(question_ids) + 2
        n_question = min(question_segment_length, len(tokens))
        segments = [0] * n_question + [1] * (len(tokens) - n_question)
        return tokens, list(range(len(tokens))), segments, question_segment_length

    def build_with_answers(self, question_ids, context_ids, answers):
        """`answers` are inclusive (start, end) context token spans; spans cut off by truncation are dropped."""
        tokens, positions, segments, qlen = self.build_pair(question_ids, context_ids)
        ground_truths = {}
        for start, end in answers:
            if end + qlen < self.max_positions - 1:
                ground_truths[(start + qlen, end + qlen)] = None
        if not ground_truths:
            ground_truths[(0, 0)] = None
        starts = [s for s, _ in ground_truths]
        ends = [e for _, e in ground_truths]
        return tokens, positions, segments, starts, ends, qlen
