from collections import Counter
from pathlib import Path

NUM_SPECIAL_SYMBOLS = 4


class FileFormatError(ValueError):
    pass


class Vocabulary:
    """Symbol <-> index table with counts. Special symbols always take the lowest indices."""

    def __init__(self, path=None, bos="<s>", pad="<pad>", eos="</s>", unk="<unk>", extra_special_symbols=None):
        self.bos_word, self.pad_word, self.eos_word, self.unk_word = bos, pad, eos, unk
        self.mask_word = None
        self.symbols = []
        self.counts = []
        self.indices = {}
        self.bos_index = self.add_symbol(bos)
        self.pad_index = self.add_symbol(pad)
        self.eos_index = self.add_symbol(eos)
        self.unk_index = self.add_symbol(unk)
        self.mask_index = None
        for s in extra_special_symbols or []:
            self.add_symbol(s)
        self.num_special_symbols = len(self.symbols)
        if path is not None:
            self.add_from_file(path)

    def __len__(self):
        return len(self.symbols)

    def __contains__(self, symbol):
        return symbol in self.indices

    def __getitem__(self, idx):
        if idx < 0:
            raise IndexError(f"vocabulary index must be non-negative, got {idx}")
        if idx < len(self.symbols):
            return self.symbols[idx]
        return self.unk_word

    def index_of(self, symbol):
        return self.indices.get(symbol, self.unk_index)

    def count(self, symbol):
        idx = self.indices.get(symbol)
        return 0 if idx is None else self.counts[idx]

    def add_symbol(self, word, n=1):
        if word is None:
            raise ValueError("cannot add None to the vocabulary")
        if word in self.indices:
            idx = self.indices[word]
            self.counts[idx] += n
            return idx
        idx = len(self.symbols)
        self.indices[word] = idx
        self.symbols.append(word)
        self.counts.append(n)
        return idx

    def add_mask_symbol(self, mask="<mask>"):
        self.mask_word = mask
        self.mask_index = self.add_symbol(mask)
        return self.mask_index

    def add_from_file(self, path):
        """Read `<token> <count>` lines, in order."""
        for line in Path(path).read_text(encoding="utf-8").splitlines():
            fields = line.strip().split(" ")
            if len(fields) != 2:
                raise FileFormatError(f'Incorrect vocabulary format, expected "<token> <cnt>": "{line}"')
            try:
                count = int(fields[1])
            except ValueError:
                raise FileFormatError(f'Incorrect count in vocabulary line: "{line}"') from None
            self.add_symbol(fields[0], count)

    @classmethod
    def from_counter(cls, counter: Counter, min_freq=1, **kwargs):
        vocab = cls(**kwargs)
        for word, n in sorted(counter.items(), key=lambda kv: (-kv[1], kv[0])):
            if n < min_freq: break
            vocab.add_symbol(word, n)
        return vocab
