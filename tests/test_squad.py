import pytest
import torch
from torchexamples.training.input_builder import RobertaInputBuilder
from torchexamples.training.squad import (
    NEG_BILLION, SquadCorpus, SquadDataset, UnmatchedTokenError, align_answer_position, read_squad_file)


@pytest.fixture
def builder(tokenizer):
    return RobertaInputBuilder(tokenizer, 32)


class TestReadSquadFile:
    def test_models(self, squad_file):
        squad = read_squad_file(squad_file)
        assert squad.version == "v2.0"
        assert [a.title for a in squad.data] == ["Cats", "Dogs"]
        q2 = squad.data[0].paragraphs[0].qas[1]
        assert q2.is_impossible and q2.answers == []
        assert q2.plausible_answers[0].text == "sat"
        assert squad.data[1].paragraphs[0].qas[0].is_impossible is False


class TestAlignAnswerPosition:
    def test_chars_map_to_tokens(self, tokenizer):
        text = "The cat sat."
        tokens = tokenizer.tokenize(text)
        mapping = align_answer_position(tokens, text, tokenizer.byte_to_unicode)
        assert tokens[mapping[4]] == "c"
        assert tokens[mapping[11]] == "."
        assert 3 not in mapping

    def test_quotes_map_both_chars(self, tokenizer):
        text = "He said ``hi'' ."
        tokens = tokenizer.tokenize(text)
        mapping = align_answer_position(tokens, text, tokenizer.byte_to_unicode)
        assert mapping[8] == mapping[9] == 9
        assert mapping[12] == mapping[13] == 12
        assert tokens[9] == tokens[12] == '"'

    def test_mismatch(self, tokenizer):
        with pytest.raises(UnmatchedTokenError):
            align_answer_position(["Ġab"], "ax", tokenizer.byte_to_unicode)


class TestSquadDataset:
    def test_samples(self, squad_file, tokenizer, builder):
        dataset = SquadDataset(squad_file, tokenizer, builder)
        assert len(dataset) == 3
        q1, q2, q3 = dataset.samples
        assert q1.answers == [(5, 7)]
        assert q2.answers == []
        assert q3.title == "Dogs"
        assert q3.answers == [(3, 5)]
        assert tokenizer.untokenize(q1.context_tokens[5:8]) == "cat"

    def test_batches(self, squad_file, tokenizer, builder, qa_config):
        batches = list(SquadDataset(squad_file, tokenizer, builder).get_batches(qa_config))
        assert [len(b) for b in batches] == [2, 1]
        batch = batches[0]
        assert batch.tokens.shape == (2, 25)
        assert batch.attention_masks.shape == (2, 1, 1, 25)
        assert (batch.tokens[1, 22:] == tokenizer.pad_index).all()
        assert (batch.attention_masks[1, 0, 0, 22:] == NEG_BILLION).all()
        assert (batch.attention_masks[0] == 0).all()
        assert (batch.predict_masks[0, :11] == NEG_BILLION).all()
        assert (batch.predict_masks[0, 11:24] == 0).all()
        assert batch.predict_masks[0, 24] == NEG_BILLION
        assert batch.starts[:, 0].tolist() == [16, 0]
        assert batch.ends[:, 0].tolist() == [18, 0]

    def test_shuffle_keeps_samples(self, squad_file, tokenizer, builder, qa_config):
        dataset = SquadDataset(squad_file, tokenizer, builder)
        assert sum(len(b) for b in dataset.get_batches(qa_config, shuffle=True)) == 3

    def test_dummy_batch(self, qa_config):
        batch = SquadDataset.get_max_dummy_batch(qa_config)
        assert batch.tokens.shape == (2, 32)
        assert batch.attention_masks.shape == (2, 1, 1, 32)
        assert batch.starts.shape == (2, 1)


class TestSquadCorpus:
    def test_documents(self, squad_file, tokenizer, builder):
        corpus = SquadCorpus(squad_file, tokenizer, builder)
        assert len(corpus) == 2
        assert [d.title for d in corpus.documents] == ["Cats", "Dogs"]
        assert corpus.documents[1].context == "A dog ran far away."

    def test_batches_for_question(self, squad_file, tokenizer, builder, qa_config):
        corpus = SquadCorpus(squad_file, tokenizer, builder)
        batches = list(corpus.get_batches_for_question(qa_config, "Who sat?"))
        assert len(batches) == 1
        batch = batches[0]
        assert len(batch) == 2
        assert batch.starts is None and batch.ends is None
        assert batch.predict_masks.shape == batch.tokens.shape
        assert batch.tokens.dtype == torch.long

    def test_dummy_batch_has_no_answers(self, qa_config):
        batch = SquadCorpus.get_max_dummy_batch(qa_config)
        assert batch.starts is None
        assert batch.tokens.shape == (2, 32)
