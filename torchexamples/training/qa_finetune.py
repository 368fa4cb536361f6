"""Fine-tune RoBERTa for extractive question answering on SQuAD v2.0 style data."""
import argparse, logging
from pathlib import Path
import torch
import torch.nn.functional as F
from tqdm import tqdm
from ..config import QuestionAnsweringConfig
from ..tokenizer.byte_level_bpe import ByteLevelBPETokenizer
from ..transformer.roberta import RobertaForQuestionAnswering
from .input_builder import RobertaInputBuilder
from .metrics import compute_f1
from .squad import SquadDataset

logger = logging.getLogger(__name__)


def load_qa_model(model, path, device):
    """Load weights into `model`; missing/unexpected keys are reported, not fatal."""
    obj = torch.load(path, map_location="cpu")
    state = obj["model"] if "model" in obj else obj
    missing, unexpected = model.load_state_dict(state, strict=False)
    if missing: logger.warning("Missing keys when loading %s: %s", path, missing)
    if unexpected: logger.warning("Unexpected keys when loading %s: %s", path, unexpected)
    return model.to(device)


def model_forward(model, batch, apply_predict_masks):
    """Returns (start_logits, end_logits, start_positions, end_positions); positions are None without targets."""
    start_logits, end_logits = model(batch.tokens, batch.positions, batch.segments, batch.attention_masks)
    if apply_predict_masks:
        start_logits = start_logits + batch.predict_masks
        end_logits = end_logits + batch.predict_masks
    start_positions = end_positions = None
    if batch.starts is not None:
        ignore_index = start_logits.size(-1)
        start_positions = batch.starts.clamp(0, ignore_index)
        end_positions = batch.ends.clamp(0, ignore_index)
    return start_logits, end_logits, start_positions, end_positions


def span_loss(start_logits, end_logits, start_positions, end_positions):
    # first listed answer is the training target
    return (F.cross_entropy(start_logits, start_positions[:, 0]) + F.cross_entropy(end_logits, end_positions[:, 0])) / 2


class QuestionAnsweringTraining:
    def __init__(self, config: QuestionAnsweringConfig, model=None, tokenizer=None):
        self.config = config
        self.device = config.device
        self.model = (model or RobertaForQuestionAnswering()).to(self.device)
        self.opt = torch.optim.AdamW(self.model.parameters(), lr=config.learning_rate)
        self.tokenizer = tokenizer or ByteLevelBPETokenizer(config.vocab_dir)
        self.input_builder = RobertaInputBuilder(self.tokenizer, config.max_sequence)

    def load_model(self, path):
        logger.info("Loading model from %s...", path)
        load_qa_model(self.model, path, self.device)

    def load_dataset(self, path):
        return SquadDataset(path, self.tokenizer, self.input_builder)

    def gpu_memory_warmup(self):
        """One forward/backward on a max-size batch so the allocator reserves its peak up front."""
        self.model.train()
        batch = SquadDataset.get_max_dummy_batch(self.config)
        loss = span_loss(*model_forward(self.model, batch, False))
        loss.backward()
        self.opt.zero_grad()

    def train(self, train_ds, valid_ds, test_ds):
        cfg = self.config
        Path(cfg.save_dir).mkdir(parents=True, exist_ok=True)
        correct = start_correct = end_correct = total = 0
        total_loss = 0.0
        step = 1
        self.gpu_memory_warmup()
        self.opt.zero_grad()
        for epoch in range(cfg.epochs):
            pbar = tqdm(train_ds.get_batches(cfg, shuffle=True), desc=f"epoch {epoch}",
                        total=-(-len(train_ds) // cfg.batch_size), leave=False)
            for batch in pbar:
                self.model.train()
                start_logits, end_logits, starts, ends = model_forward(self.model, batch, False)
                loss = span_loss(start_logits, end_logits, starts, ends)
                total_loss += loss.item()
                (loss / cfg.optimize_steps).backward()
                if step % cfg.optimize_steps == 0:
                    self.opt.step(); self.opt.zero_grad()

                pred_starts, pred_ends = start_logits.argmax(-1), end_logits.argmax(-1)
                s_ok, e_ok = pred_starts == starts[:, 0], pred_ends == ends[:, 0]
                correct += (s_ok & e_ok).sum().item()
                start_correct += s_ok.sum().item()
                end_correct += e_ok.sum().item()
                total += len(batch)

                if step % cfg.log_every_n_steps == 0:
                    pbar.set_postfix(acc=f"{correct / total:.4f}", start=f"{start_correct / total:.4f}",
                                     end=f"{end_correct / total:.4f}")
                if step % cfg.validate_every_n_steps == 0:
                    logger.info("step %d loss %.4f", step, total_loss / cfg.validate_every_n_steps)
                    self.validate(valid_ds)
                    self.validate(test_ds)
                    correct = start_correct = end_correct = total = 0
                    total_loss = 0.0
                    path = Path(cfg.save_dir) / f"model_{step}.pt"
                    torch.save({"model": self.model.state_dict(), "step": step}, path)
                step += 1

    @torch.no_grad()
    def validate(self, dataset):
        logger.info("Evaluating on %s...", dataset.file_path)
        self.model.eval()
        correct = start_correct = end_correct = total = 0
        f1 = 0.0
        for batch in dataset.get_batches(self.config, shuffle=False):
            start_logits, end_logits, starts, ends = model_forward(self.model, batch, False)
            pred_starts = start_logits.argmax(-1).tolist()
            pred_ends = end_logits.argmax(-1).tolist()
            for ps, pe, ts, te in zip(pred_starts, pred_ends, starts.tolist(), ends.tolist()):
                truths = list(zip(ts, te))
                if (ps, pe) in truths:
                    correct += 1; start_correct += 1; end_correct += 1
                elif any(ps == s for s, _ in truths):
                    start_correct += 1
                elif any(pe == e for _, e in truths):
                    end_correct += 1
                f1 += max(compute_f1(ps, pe, s, e) for s, e in truths)
            total += len(batch)
        total = max(total, 1)
        result = dict(accuracy=correct / total, f1=f1 / total, start=start_correct / total, end=end_correct / total)
        logger.info("Accuracy: %.4f, %d/%d ---- F1Score: %.4f ---- Start: %.4f, %d ---- End: %.4f, %d",
                    result["accuracy"], correct, total, result["f1"], result["start"], start_correct,
                    result["end"], end_correct)
        return result


def run(config: QuestionAnsweringConfig):
    runner = QuestionAnsweringTraining(config)
    runner.load_model(config.load_model_path)
    train_ds = runner.load_dataset(config.data_path(config.train_file))
    valid_ds = runner.load_dataset(config.data_path(config.valid_file))
    test_ds = runner.load_dataset(config.data_path(config.test_file))
    runner.train(train_ds, valid_ds, test_ds)


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--config", help="JSON file overriding QuestionAnsweringConfig defaults")
    args = ap.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s %(levelname)s: %(message)s")
    run(QuestionAnsweringConfig.from_json(args.config) if args.config else QuestionAnsweringConfig())

if __name__ == "__main__":
    main()
