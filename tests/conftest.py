import json
import pytest
from torchexamples.config import QuestionAnsweringConfig
from torchexamples.tokenizer.byte_level_bpe import ByteLevelBPETokenizer, bytes_to_unicode

MERGES = [("l", "o"), ("lo", "w"), ("Ġ", "low"), ("e", "r")]


def write_vocab_files(path, merges=MERGES):
    """A tiny GPT-2 style resource set: every byte char plus the merged tokens."""
    symbols = list(dict.fromkeys(bytes_to_unicode().values()))
    symbols += ["".join(pair) for pair in merges]
    encoder = {s: 100 + i for i, s in enumerate(symbols)}
    path.mkdir(parents=True, exist_ok=True)
    (path / "encoder.json").write_text(json.dumps(encoder), encoding="utf-8")
    (path / "vocab.bpe").write_text("#version: 0.2\n" + "".join(f"{a} {b}\n" for a, b in merges), encoding="utf-8")
    (path / "dict.txt").write_text("".join(f"{idx} {1000 - i}\n" for i, idx in enumerate(encoder.values())), encoding="utf-8")
    return path


@pytest.fixture
def vocab_dir(tmp_path):
    return write_vocab_files(tmp_path / "vocab")


@pytest.fixture
def tokenizer(vocab_dir):
    return ByteLevelBPETokenizer(vocab_dir)


SQUAD = {
    "version": "v2.0",
    "data": [
        {
            "title": "Cats",
            "paragraphs": [
                {
                    "context": "The cat sat.",
                    "qas": [
                        {"question": "Who sat?", "id": "q1", "answers": [{"text": "cat", "answer_start": 4}], "is_impossible": False},
                        {"question": "Where?", "id": "q2", "answers": [], "is_impossible": True,
                         "plausible_answers": [{"text": "sat", "answer_start": 8}]},
                    ],
                }
            ],
        },
        {
            "title": "Dogs",
            "paragraphs": [
                {
                    "context": "A dog ran far away.",
                    "qas": [{"question": "What ran?", "id": "q3", "answers": [{"text": "dog", "answer_start": 2}]}],
                }
            ],
        },
    ],
}


@pytest.fixture
def squad_file(tmp_path):
    path = tmp_path / "squad.json"
    path.write_text(json.dumps(SQUAD), encoding="utf-8")
    return path


@pytest.fixture
def qa_config(tmp_path):
    return QuestionAnsweringConfig(batch_size=2, max_sequence=32, cuda=False, save_dir=str(tmp_path / "saved"),
                                   data_dir=str(tmp_path), validate_every_n_steps=1, log_every_n_steps=1,
                                   epochs=1, top_k=3)
