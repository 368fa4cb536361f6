import numpy as np
from ..tokenizer.vocabulary import NUM_SPECIAL_SYMBOLS

MAX_NORM_SMOOTHING = 0.01
TITLE_WEIGHT = 0.1
# ids below this index are the most frequent entries of the dictionary
STOP_WORD_FILTER_INDEX = 500
# tokens appearing in at least this share of documents
STOP_WORD_FILTER_RATIO = 0.25


class TfIdfDocumentSelector:
    """Ranks documents against a question with TF-IDF weighted cosine similarity.

    `documents` need `.title` and `.context`; `tokenizer` needs `vocab_size` and `tokenize_to_ids`.
    Document vectors are built once here and kept read-only.
    """

    def __init__(self, documents, tokenizer, use_title=True, max_norm_smoothing=MAX_NORM_SMOOTHING,
                 title_weight=TITLE_WEIGHT, stop_word_filter_index=STOP_WORD_FILTER_INDEX,
                 stop_word_filter_ratio=STOP_WORD_FILTER_RATIO):
        self.documents = list(documents)
        self.tokenizer = tokenizer
        self.vocab_size = tokenizer.vocab_size
        self.max_norm_smoothing = max_norm_smoothing
        self.title_weight = title_weight

        context_tokens = [tokenizer.tokenize_to_ids(doc.context.lower()) for doc in self.documents]
        self.document_frequency = np.zeros(self.vocab_size, dtype=np.int64)
        for tokens in context_tokens:
            self.document_frequency[list(set(tokens))] += 1

        stop = np.zeros(self.vocab_size, dtype=bool)
        stop[:stop_word_filter_index] = True
        stop |= self.document_frequency >= stop_word_filter_ratio * len(self.documents)
        self.stop_words = stop
        self.stop_words.flags.writeable = False

        vectors = np.zeros((len(self.documents), self.vocab_size), dtype=np.float64)
        for i, (doc, tokens) in enumerate(zip(self.documents, context_tokens)):
            context_vector = self.tf_idf(tokens, max_norm_tf=True)
            if use_title:
                title_vector = self.tf_idf(tokenizer.tokenize_to_ids(doc.title.lower()))
                vectors[i] = title_weight * title_vector + (1 - title_weight) * context_vector
            else:
                vectors[i] = context_vector
        self.document_vectors = vectors
        self.document_vectors.flags.writeable = False
        self._keep = ~self.stop_words
        # max-normalized rows over non stop-word ids, with their norms
        self._ranking_vectors, self._ranking_norms = self._normalize_rows(self.document_vectors)
        self._ranking_vectors.flags.writeable = False

    def _normalize_rows(self, vectors):
        vectors = np.atleast_2d(vectors)
        row_max = vectors.max(axis=1, keepdims=True)
        rows = np.divide(vectors[:, self._keep], row_max, out=np.zeros((len(vectors), int(self._keep.sum()))),
                         where=row_max > 0)
        return rows, np.sqrt(np.einsum("ij,ij->i", rows, rows))

    def idf(self, tokens, smooth=True):
        n, df = len(self.documents), self.document_frequency[tokens]
        with np.errstate(divide="ignore", invalid="ignore"):
            ifreq = (1 + n) / (1 + df) if smooth else n / df
        return 1 + np.log(ifreq)

    def tf_idf(self, tokens, sublinear_tf=False, smooth_idf=True, no_idf=False, max_norm_tf=False):
        """Dense tf-idf vector over the whole vocabulary; special ids are ignored."""
        tokens = np.asarray([t for t in tokens if t >= NUM_SPECIAL_SYMBOLS], dtype=np.int64)
        frequency = np.bincount(tokens, minlength=self.vocab_size).astype(np.float64)
        weight = np.zeros(self.vocab_size, dtype=np.float64)
        if tokens.size == 0:
            return weight
        unique = np.unique(tokens)
        freq = frequency[unique]
        if max_norm_tf:
            freq = self.max_norm_smoothing + (1 - self.max_norm_smoothing) * freq / frequency.max()
        tf = np.log(freq) + 1 if sublinear_tf else freq
        weight[unique] = tf if no_idf else tf * self.idf(unique, smooth_idf)
        return weight

    def cosine_similarity_of_question(self, question, document):
        """Cosine of max-normalized vectors over non stop-word dimensions."""
        question, document = np.asarray(question), np.asarray(document)
        if question.shape[-1] != document.shape[-1]:
            raise ValueError(f"Vectors to compute cosine similarity must have the same length, "
                             f"got {question.shape[-1]} and {document.shape[-1]}")
        return self._similarities(question, *self._normalize_rows(document))[0]

    def _similarities(self, question, rows, norms):
        q_max = question.max()
        if q_max <= 0:
            return np.zeros(len(rows))
        q = question[self._keep] / q_max
        denominator = np.sqrt(q @ q) * norms
        return np.divide(rows @ q, denominator, out=np.zeros(len(rows)), where=denominator > 0)

    def rank(self, question):
        if not self.documents:
            return []
        weight = self.tf_idf(self.tokenizer.tokenize_to_ids(question.lower()))
        sims = self._similarities(weight, self._ranking_vectors, self._ranking_norms)
        order = np.argsort(-sims, kind="stable")
        return [(self.documents[i], float(sims[i])) for i in order]

    def top_k(self, question, k):
        if k <= 0:
            return []
        return [doc for doc, _ in self.rank(question)[:k]]

    def top1(self, question):
        return self.top_k(question, 1)[0]
