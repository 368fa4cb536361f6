import argparse, json, logging
from dataclasses import dataclass, asdict
import torch
from ..config import QuestionAnsweringConfig
from ..retrieval.tfidf import TfIdfDocumentSelector
from ..tokenizer.byte_level_bpe import ByteLevelBPETokenizer
from ..transformer.roberta import RobertaForQuestionAnswering
from ..training.input_builder import RobertaInputBuilder
from ..training.metrics import compute_top_k_spans_with_score
from ..training.qa_finetune import load_qa_model, model_forward
from ..training.squad import SquadCorpus

logger = logging.getLogger(__name__)

EXIT = "exit"


@dataclass
class PredictionAnswer:
    text: str
    score: float


class QuestionAnsweringInference:
    def __init__(self, config: QuestionAnsweringConfig, model=None, tokenizer=None):
        self.config = config
        self.device = config.device
        self.model = (model or RobertaForQuestionAnswering()).to(self.device)
        self.tokenizer = tokenizer or ByteLevelBPETokenizer(config.vocab_dir)
        self.input_builder = RobertaInputBuilder(self.tokenizer, config.max_sequence)

    def load_model(self, path):
        logger.info("Loading model from %s...", path)
        load_qa_model(self.model, path, self.device)

    def load_corpus(self, path):
        return SquadCorpus(path, self.tokenizer, self.input_builder)

    def build_selector(self, corpus):
        return TfIdfDocumentSelector(corpus.documents, self.tokenizer)

    @torch.no_grad()
    def gpu_memory_warmup(self):
        self.model.eval()
        model_forward(self.model, SquadCorpus.get_max_dummy_batch(self.config), False)

    @torch.no_grad()
    def answer(self, question, corpus, selector, top_k=None):
        """Best spans from the top TF-IDF document, highest score first."""
        top_k = self.config.top_k if top_k is None else top_k
        if top_k < 1:
            raise ValueError(f"top_k must be at least 1, got {top_k}")
        self.model.eval()
        question_ids = self.tokenizer.tokenize_to_ids(question)
        qlen = len(question_ids) + 2
        best_match = selector.top_k(question, top_k)[:1]
        answers = []
        for batch in corpus.get_batches(self.config, question_ids, best_match):
            start_logits, end_logits, _, _ = model_forward(self.model, batch, True)
            k = min(top_k, start_logits.size(-1))
            for i in range(len(batch)):
                start_scores, starts = start_logits[i].topk(k)
                end_scores, ends = end_logits[i].topk(k)
                context = best_match[i].context_tokens
                for start, end, score in compute_top_k_spans_with_score(start_scores, starts, end_scores, ends, top_k):
                    text = self.tokenizer.untokenize(context[max(start - qlen, 0):end - qlen + 1])
                    answers.append(PredictionAnswer(text=text, score=float(score)))
        answers.sort(key=lambda a: a.score, reverse=True)
        return answers[:top_k]

    def search_over_corpus(self, corpus, input_fn=input):
        selector = self.build_selector(corpus)
        self.gpu_memory_warmup()
        while True:
            question = input_fn(f'\nType your question ("{EXIT}" to exit): ')
            if question.strip() == EXIT: break
            answers = self.answer(question, corpus, selector)
            print(f"Predictions:\n{json.dumps([asdict(a) for a in answers], indent=2)}")


def run(config: QuestionAnsweringConfig):
    runner = QuestionAnsweringInference(config)
    runner.load_model(config.load_model_path)
    corpus = runner.load_corpus(config.data_path(config.test_file))
    runner.search_over_corpus(corpus)


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--config", help="JSON file overriding QuestionAnsweringConfig defaults")
    args = ap.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s %(levelname)s: %(message)s")
    run(QuestionAnsweringConfig.from_json(args.config) if args.config else QuestionAnsweringConfig())

if __name__ == "__main__":
    main()
