import json, logging, math, re
import urllib.request
from pathlib import Path
from .vocabulary import Vocabulary, FileFormatError

logger = logging.getLogger(__name__)

ENCODER_JSON_NAME = "encoder.json"
MERGE_NAME = "vocab.bpe"
DICT_NAME = "dict.txt"
ENCODER_JSON_URL = "https://dl.fbaipublicfiles.com/fairseq/gpt2_bpe/encoder.json"
MERGE_URL = "https://dl.fbaipublicfiles.com/fairseq/gpt2_bpe/vocab.bpe"
DICT_URL = "https://dl.fbaipublicfiles.com/fairseq/gpt2_bpe/dict.txt"

START_CHAR = "Ġ"
INF = math.inf


class ResourceUnavailableError(OSError):
    pass


def bytes_to_unicode():
    """Printable latin-1 chars map to themselves, the rest of 0..255 are shifted past 255."""
    printable = list(range(ord("!"), ord("~") + 1)) + list(range(ord("¡"), ord("¬") + 1)) + list(range(ord("®"), ord("ÿ") + 1))
    table = {chr(b): chr(b) for b in printable}
    n = 0
    for b in range(256):
        if chr(b) in table: continue
        table[chr(b)] = chr(256 + n)
        n += 1
    table[START_CHAR] = START_CHAR
    return table


def get_pairs(word):
    # dict keeps first-seen order so ties on rank resolve to the leftmost pair
    return list(dict.fromkeys(zip(word, word[1:])))


def normalize(text):
    return text.strip().replace("``", '"').replace("''", '"').replace('\\"', '"')


def load_or_download(path, file_name, url):
    file_path = Path(path) / file_name
    if file_path.exists():
        return file_path.read_text(encoding="utf-8")
    try:
        with urllib.request.urlopen(url) as resp:
            contents = resp.read().decode("utf-8")
    except OSError as e:
        raise ResourceUnavailableError(f"File {file_name} not found and cannot be downloaded from {url}: {e}") from e
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(contents, encoding="utf-8")
        logger.info("File %s downloaded from %s and saved to %s", file_name, url, path)
    except OSError as e:
        logger.warning("File %s downloaded from %s but could not be saved into %s: %s", file_name, url, path, e)
    return contents


def parse_merges(contents):
    merges = []
    for line in contents.split("\n"):
        if line.startswith("#version") or not line.strip(): continue
        parts = line.rstrip("\r").split(" ")
        if len(parts) < 2 or not parts[0] or not parts[1]:
            raise FileFormatError(f'Problems met when parsing records in {MERGE_NAME}: invalid line "{line}"')
        merges.append((parts[0], parts[1]))
    return merges


class ByteLevelBPETokenizer:
    """GPT-2 byte-level BPE with a fairseq (RoBERTa) dictionary on top.

    Text -> words -> byte-mapped chars -> BPE merges -> GPT-2 ids -> vocabulary indices.
    """

    def __init__(self, vocab_dir, start_char=START_CHAR):
        self.vocab_dir = Path(vocab_dir)
        self.start_char = start_char
        load_or_download(self.vocab_dir, DICT_NAME, DICT_URL)
        self.vocabulary = Vocabulary(self.vocab_dir / DICT_NAME)
        self.vocabulary.add_mask_symbol()
        self.special_indices = {
            self.vocabulary.bos_word: self.vocabulary.bos_index,
            self.vocabulary.pad_word: self.vocabulary.pad_index,
            self.vocabulary.eos_word: self.vocabulary.eos_index,
            self.vocabulary.unk_word: self.vocabulary.unk_index,
        }
        self.encoder = self._load_encoder()
        self.decoder = {v: k for k, v in self.encoder.items() if k not in self.special_indices}
        self.merges = parse_merges(load_or_download(self.vocab_dir, MERGE_NAME, MERGE_URL))
        self.merge_ranks = {}
        for i, pair in enumerate(self.merges):
            self.merge_ranks.setdefault(pair, i)
        self.byte_to_unicode = bytes_to_unicode()
        self.unicode_to_byte = {v: k for k, v in self.byte_to_unicode.items()}

    def _load_encoder(self):
        contents = load_or_download(self.vocab_dir, ENCODER_JSON_NAME, ENCODER_JSON_URL)
        try:
            encoder = json.loads(contents)
        except json.JSONDecodeError as e:
            raise FileFormatError(f"Problems met when parsing JSON object in {ENCODER_JSON_NAME}: {e}") from e
        if not isinstance(encoder, dict):
            raise FileFormatError(f"{ENCODER_JSON_NAME} must hold a JSON object")
        for word, idx in self.special_indices.items():
            encoder[word] = -idx
        return encoder

    # ---- properties
    @property
    def vocab_size(self): return len(self.vocabulary)
    @property
    def pad_index(self): return self.vocabulary.pad_index
    @property
    def unk_index(self): return self.vocabulary.unk_index
    @property
    def bos_index(self): return self.vocabulary.bos_index
    @property
    def eos_index(self): return self.vocabulary.eos_index
    @property
    def mask_index(self): return self.vocabulary.mask_index
    @property
    def pad_token(self): return self.vocabulary.pad_word
    @property
    def unk_token(self): return self.vocabulary.unk_word
    @property
    def bos_token(self): return self.vocabulary.bos_word
    @property
    def eos_token(self): return self.vocabulary.eos_word
    @property
    def mask_token(self): return self.vocabulary.mask_word

    # ---- encode
    def _words(self, sentence, split_pattern):
        return [self.start_char + w for w in re.split(split_pattern, normalize(sentence))]

    def tokenize(self, sentence, split_pattern=r"\s+"):
        return self.tokenize_words(self._words(sentence, split_pattern))

    def tokenize_words(self, words):
        return [tok for w in words for tok in self.bpe(w)]

    def tokenize_to_ids(self, sentence, split_pattern=r"\s+"):
        return self.words_to_ids(self._words(sentence, split_pattern))

    def words_to_ids(self, words):
        return self.tokens_to_ids(self.tokenize_words(words))

    def tokens_to_ids(self, tokens):
        ids = []
        for token in tokens:
            if token in self.special_indices:
                ids.append(self.special_indices[token]); continue
            encoded = self.encoder.get(token)
            if encoded is None:
                ids.append(self.unk_index)
            elif encoded < 0:
                ids.append(-encoded)
            else:
                ids.append(self.vocabulary.index_of(str(encoded)))
        return ids

    # ---- decode
    def untokenize_to_tokens(self, ids, skip_special_tokens=False):
        tokens = []
        for idx in ids:
            if idx == self.pad_index: continue
            symbol = self.vocabulary[idx]
            try:
                token = self.decoder.get(int(symbol), "")
            except ValueError:
                # specials and other non-numeric symbols decode to themselves
                if skip_special_tokens and (idx < self.vocabulary.num_special_symbols or idx == self.mask_index):
                    continue
                token = symbol
            tokens.append("".join(self.unicode_to_byte[c] for c in token if c in self.unicode_to_byte))
        return tokens

    def untokenize(self, ids, skip_special_tokens=False):
        return "".join(self.untokenize_to_tokens(ids, skip_special_tokens)).replace(self.start_char, " ").strip()

    # ---- bpe
    def bpe(self, word):
        converted = "".join(self.byte_to_unicode[c] for c in word if c in self.byte_to_unicode)
        if not converted:
            return []
        return self._bpe_token(converted)

    def _bpe_token(self, token):
        word = list(token)
        pairs = get_pairs(word)
        if not pairs:
            return [token]
        while len(word) > 1:
            first, second = min(pairs, key=lambda p: self.merge_ranks.get(p, INF))
            if (first, second) not in self.merge_ranks:
                break
            new_word = []; i = 0
            while i < len(word):
                try:
                    j = word.index(first, i)
                except ValueError:
                    new_word.extend(word[i:]); break
                new_word.extend(word[i:j]); i = j
                if i < len(word) - 1 and word[i+1] == second:
                    new_word.append(first + second); i += 2
                else:
                    new_word.append(word[i]); i += 1
            word = new_word
            pairs = get_pairs(word)
        return word
