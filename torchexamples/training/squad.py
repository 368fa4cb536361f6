"""SQuAD v2.0 style question-answering data.

Data: https://rajpurkar.github.io/SQuAD-explorer/
"""
import logging, random
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple
import torch
from pydantic import BaseModel
from tqdm import tqdm

logger = logging.getLogger(__name__)

NEG_BILLION = -1e9


class SquadAnswer(BaseModel):
    text: str
    answer_start: int


class SquadQAPair(BaseModel):
    question: str
    id: str
    answers: List[SquadAnswer] = []
    plausible_answers: List[SquadAnswer] = []
    is_impossible: bool = False


class SquadParagraph(BaseModel):
    context: str
    qas: List[SquadQAPair] = []


class SquadArticle(BaseModel):
    title: str
    url: Optional[str] = None
    paragraphs: List[SquadParagraph]


class SquadFile(BaseModel):
    version: Optional[str] = None
    data: List[SquadArticle]


def read_squad_file(path) -> SquadFile:
    return SquadFile.model_validate_json(Path(path).read_text(encoding="utf-8"))


@dataclass
class SquadDocument:
    title: str
    url: Optional[str]
    context: str
    context_tokens: List[int]


@dataclass
class SquadSample:
    title: str
    url: Optional[str]
    context: str
    context_tokens: List[int]
    id: str
    question: str
    question_tokens: List[int]
    answers: List[Tuple[int, int]] = field(default_factory=list)


@dataclass
class SquadSampleBatch:
    tokens: torch.Tensor
    positions: torch.Tensor
    segments: torch.Tensor
    attention_masks: torch.Tensor
    predict_masks: Optional[torch.Tensor] = None
    starts: Optional[torch.Tensor] = None
    ends: Optional[torch.Tensor] = None

    def __len__(self):
        return self.tokens.size(0)


class UnmatchedTokenError(ValueError):
    pass


def align_answer_position(tokens, text, byte_to_unicode, start_char="Ġ"):
    """Map every char offset of `text` to the index of the token it ended up in."""
    mapping = {}
    i = j = tid = 0
    while i < len(text) and tid < len(tokens):
        token = tokens[tid]
        if j >= len(token):
            tid += 1; j = 0
        elif text[i].isspace():
            i += 1
        elif text[i] not in byte_to_unicode:
            # dropped by the tokenizer
            mapping[i] = tid; i += 1
        elif i + 1 < len(text) and token[j] == '"' and text[i:i+2] in ("``", "''", '\\"'):
            mapping[i] = mapping[i+1] = tid
            i += 2; j += 1
        elif text[i] == token[j]:
            mapping[i] = tid; i += 1; j += 1
        # real "Ġ" chars exist in the corpus, so this only applies after the plain match
        elif token[j] == start_char and j == 0:
            j += 1
        else:
            raise UnmatchedTokenError(f"char {text[i]!r} at {i} does not match token {token!r}")
    return mapping


def _batch_arrays(rows, pad_index, device, with_answers):
    """rows: (tokens, positions, segments, starts, ends, question_segment_length)"""
    max_length = max(len(r[0]) for r in rows)
    tokens, positions, segments, attention, predict, starts, ends = [], [], [], [], [], [], []
    max_answer = max(len(r[3]) for r in rows) if with_answers else 0
    for tok, pos, seg, s, e, qlen in rows:
        n, pad = len(tok), max_length - len(tok)
        tokens.append(tok + [pad_index] * pad)
        positions.append(pos + [0] * pad)
        segments.append(seg + [0] * pad)
        attention.append([0.0] * n + [NEG_BILLION] * pad)
        # only context tokens may be predicted: question segment, final </s> and padding are masked
        head, ctx = min(qlen, n), max(n - qlen - 1, 0)
        predict.append([NEG_BILLION] * head + [0.0] * ctx + [NEG_BILLION] * (max_length - head - ctx))
        if with_answers:
            starts.append(s + [s[-1]] * (max_answer - len(s)))
            ends.append(e + [e[-1]] * (max_answer - len(e)))
    long = dict(dtype=torch.long, device=device)
    batch = SquadSampleBatch(
        tokens=torch.tensor(tokens, **long),
        positions=torch.tensor(positions, **long),
        segments=torch.tensor(segments, **long),
        attention_masks=torch.tensor(attention, dtype=torch.float32, device=device).view(len(rows), 1, 1, max_length),
        predict_masks=torch.tensor(predict, dtype=torch.float32, device=device),
    )
    if with_answers:
        batch.starts = torch.tensor(starts, **long)
        batch.ends = torch.tensor(ends, **long)
    return batch


def _dummy_batch(config, with_answers):
    b, L, device = config.batch_size, config.max_sequence, config.device
    batch = SquadSampleBatch(
        tokens=torch.zeros(b, L, dtype=torch.long, device=device),
        positions=torch.zeros(b, L, dtype=torch.long, device=device),
        segments=torch.zeros(b, L, dtype=torch.long, device=device),
        attention_masks=torch.zeros(b, 1, 1, L, dtype=torch.float32, device=device))
    if with_answers:
        batch.starts = torch.zeros(b, 1, dtype=torch.long, device=device)
        batch.ends = torch.zeros(b, 1, dtype=torch.long, device=device)
    return batch


class SquadDataset:
    """One sample per question; answers are inclusive context token spans."""

    def __init__(self, file_path, tokenizer, input_builder):
        self.file_path = str(file_path)
        self.tokenizer = tokenizer
        self.input_builder = input_builder
        self.samples = self._load(file_path)

    def __len__(self):
        return len(self.samples)

    def _load(self, file_path):
        samples = []
        dataset = read_squad_file(file_path)
        for article in tqdm(dataset.data, desc=f"load {Path(file_path).name}", leave=False):
            for paragraph in article.paragraphs:
                context_tokens = self.tokenizer.tokenize(paragraph.context)
                context_ids = self.tokenizer.tokens_to_ids(context_tokens)
                try:
                    mapping = align_answer_position(context_tokens, paragraph.context,
                                                    self.tokenizer.byte_to_unicode, self.tokenizer.start_char)
                except UnmatchedTokenError as e:
                    logger.warning("Skipping paragraph of %r: %s", article.title, e)
                    continue
                for qa in paragraph.qas:
                    answers = []
                    # plausible answers of impossible questions count as "no answer"
                    if not qa.is_impossible:
                        for ans in qa.answers:
                            start, end = ans.answer_start, ans.answer_start + len(ans.text) - 1
                            if start not in mapping or end not in mapping:
                                logger.debug("Answer %r of %s not aligned", ans.text, qa.id)
                                continue
                            answers.append((mapping[start], mapping[end]))
                    samples.append(SquadSample(
                        title=article.title, url=article.url, context=paragraph.context,
                        context_tokens=context_ids, id=qa.id, question=qa.question,
                        question_tokens=self.tokenizer.tokenize_to_ids(qa.question), answers=answers))
        logger.info("Loaded %d samples from %s", len(samples), file_path)
        return samples

    def get_batches(self, config, shuffle=False):
        samples = self.samples
        if shuffle:
            samples = random.sample(samples, len(samples))
        buffer = []
        for sample in samples:
            buffer.append(self.input_builder.build_with_answers(sample.question_tokens, sample.context_tokens, sample.answers))
            if len(buffer) == config.batch_size:
                yield _batch_arrays(buffer, self.tokenizer.pad_index, config.device, with_answers=True)
                buffer = []
        if buffer:
            yield _batch_arrays(buffer, self.tokenizer.pad_index, config.device, with_answers=True)

    @staticmethod
    def get_max_dummy_batch(config):
        return _dummy_batch(config, with_answers=True)


class SquadCorpus:
    """Paragraphs of a SQuAD-format file, used as a searchable document collection."""

    def __init__(self, file_path, tokenizer, input_builder):
        self.file_path = str(file_path)
        self.tokenizer = tokenizer
        self.input_builder = input_builder
        self.documents = self._load(file_path)

    def __len__(self):
        return len(self.documents)

    def _load(self, file_path):
        documents = []
        dataset = read_squad_file(file_path)
        for article in tqdm(dataset.data, desc=f"load {Path(file_path).name}", leave=False):
            for paragraph in article.paragraphs:
                documents.append(SquadDocument(title=article.title, url=article.url, context=paragraph.context,
                                               context_tokens=self.tokenizer.tokenize_to_ids(paragraph.context)))
        logger.info("Loaded %d documents from %s", len(documents), file_path)
        return documents

    def get_batches_for_question(self, config, question):
        return self.get_batches(config, self.tokenizer.tokenize_to_ids(question), self.documents)

    def get_batches(self, config, question_tokens, documents):
        buffer = []
        for doc in documents:
            tokens, positions, segments, qlen = self.input_builder.build_pair(question_tokens, doc.context_tokens)
            buffer.append((tokens, positions, segments, None, None, qlen))
            if len(buffer) == config.batch_size:
                yield _batch_arrays(buffer, self.tokenizer.pad_index, config.device, with_answers=False)
                buffer = []
        if buffer:
            yield _batch_arrays(buffer, self.tokenizer.pad_index, config.device, with_answers=False)

    @staticmethod
    def get_max_dummy_batch(config):
        return _dummy_batch(config, with_answers=False)
