import csv, re
from collections import Counter
from pathlib import Path
import torch
from ..tokenizer.vocabulary import Vocabulary

_patterns = [r"\'", r"\"", r"\.", r"<br \/>", r",", r"\(", r"\)", r"\!", r"\?", r"\;", r"\:", r"\s+"]
_replacements = [" '  ", "", " . ", " ", " , ", " ( ", " ) ", " ! ", " ? ", " ", " ", " "]
_patterns_dict = [(re.compile(p), r) for p, r in zip(_patterns, _replacements)]

def basic_english(line):
    """Lower-case, split off punctuation, split on whitespace."""
    line = line.lower()
    for pattern, repl in _patterns_dict:
        line = pattern.sub(repl, line)
    return line.split()

def build_vocab(lines, tokenizer=basic_english, min_freq=1):
    counter = Counter()
    for line in lines:
        counter.update(tokenizer(line))
    return Vocabulary.from_counter(counter, min_freq=min_freq)

def numericalize(vocab, tokens):
    return [vocab.index_of(t) for t in tokens]

# ---------------------------------------------------------------------------
# AG_NEWS: https://github.com/mhjabreel/CharCnn_Keras/tree/master/data/ag_news_csv
# rows are "label","title","description" with labels 1..4
# ---------------------------------------------------------------------------
AG_NEWS_CLASSES = ["World", "Sports", "Business", "Sci/Tech"]

class AGNewsReader:
    def __init__(self, split, data_dir, device="cpu"):
        self.path = Path(data_dir) / f"{split}.csv"
        self.device = device
        self.rows = list(self.enumerate())

    def __len__(self): return len(self.rows)

    def enumerate(self):
        with open(self.path, newline="", encoding="utf-8") as f:
            for row in csv.reader(f):
                if not row: continue
                yield int(row[0]) - 1, " ".join(row[1:])

    def get_batches(self, tokenizer, vocab, batch_size):
        """Yields (labels, flat token ids, offsets) ready for an EmbeddingBag."""
        for i in range(0, len(self.rows), batch_size):
            labels, ids, offsets = [], [], [0]
            for label, text in self.rows[i:i+batch_size]:
                labels.append(label)
                tokens = numericalize(vocab, tokenizer(text))
                ids.extend(tokens)
                offsets.append(len(tokens))
            offsets = torch.tensor(offsets[:-1]).cumsum(dim=0)
            yield (torch.tensor(labels, dtype=torch.long, device=self.device),
                   torch.tensor(ids, dtype=torch.long, device=self.device),
                   offsets.to(self.device))

# ---------------------------------------------------------------------------
# WikiText-2: https://s3.amazonaws.com/research.metamind.io/wikitext/wikitext-2-v1.zip
# ---------------------------------------------------------------------------
WIKITEXT2_FILES = {"train": "wiki.train.tokens", "valid": "wiki.valid.tokens", "test": "wiki.test.tokens"}

def read_wikitext2(data_dir, split):
    path = Path(data_dir) / WIKITEXT2_FILES[split]
    with open(path, encoding="utf-8") as f:
        for line in f:
            yield line
