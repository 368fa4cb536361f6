"""Transformer language model on WikiText-2.

Based on https://pytorch.org/tutorials/beginner/transformer_tutorial.html
Expects the extracted wikitext-2 token files in <data_dir>/wikitext-2.
"""
import time
from pathlib import Path
import torch, torch.nn as nn
from ..transformer.seq2seq import TransformerModel
from ..text.datasets import basic_english, build_vocab, numericalize, read_wikitext2
from .common import get_device, make_writer, banner, Timer

EMSIZE = 200
NHID = 200
NLAYERS = 2
NHEAD = 2
DROPOUT = 0.2
BATCH_SIZE = 64
EVAL_BATCH_SIZE = 32
BPTT = 32
LOG_INTERVAL = 200

def process_input(lines, tokenizer, vocab):
    data = [torch.tensor(numericalize(vocab, tokenizer(line)), dtype=torch.long) for line in lines]
    return torch.cat([t for t in data if t.numel() > 0])

def batchify(data, batch_size):
    """Trim to a multiple of batch_size and lay out as (n_steps, batch_size) columns."""
    nbatch = data.size(0) // batch_size
    return data.narrow(0, 0, nbatch * batch_size).view(batch_size, -1).t().contiguous()

def get_batch(source, i, bptt=BPTT):
    seq_len = min(bptt, source.size(0) - 1 - i)
    return source[i:i+seq_len], source[i+1:i+1+seq_len].reshape(-1)

def train_epoch(epoch, data, model, loss_fn, opt, ntokens, bptt=BPTT):
    model.train()
    total_loss = 0.0
    src_mask = model.generate_square_subsequent_mask(bptt)
    n_batches = data.size(0) // bptt
    for batch, i in enumerate(range(0, data.size(0) - 1, bptt)):
        x, targets = get_batch(data, i, bptt)
        opt.zero_grad()
        mask = src_mask if x.size(0) == bptt else model.generate_square_subsequent_mask(x.size(0))
        out = model(x, mask)
        loss = loss_fn(out.view(-1, ntokens), targets)
        loss.backward()
        torch.nn.utils.clip_grad_norm_(model.parameters(), 0.5)
        opt.step()
        total_loss += loss.item()
        if batch % LOG_INTERVAL == 0 and batch > 0:
            print(f"epoch: {epoch} | batch: {batch} / {n_batches} | loss: {total_loss / LOG_INTERVAL:.2f}")
            total_loss = 0.0

@torch.no_grad()
def evaluate(data, model, loss_fn, ntokens, bptt=BPTT):
    model.eval()
    total_loss = 0.0
    src_mask = model.generate_square_subsequent_mask(bptt)
    for i in range(0, data.size(0) - 1, bptt):
        x, targets = get_batch(data, i, bptt)
        mask = src_mask if x.size(0) == bptt else model.generate_square_subsequent_mask(x.size(0))
        out = model(x, mask)
        total_loss += x.size(0) * loss_fn(out.view(-1, ntokens), targets).item()
    return total_loss / data.size(0)

def run(epochs=16, timeout=3600, logdir=None, data_dir="data"):
    torch.manual_seed(1)
    device = get_device()
    banner("SequenceToSequence", device, epochs, timeout)
    print("\tPreparing training and test data...")
    root = Path(data_dir) / "wikitext-2"
    vocab = build_vocab(read_wikitext2(root, "train"))
    train_data = batchify(process_input(read_wikitext2(root, "train"), basic_english, vocab), BATCH_SIZE).to(device)
    valid_data = batchify(process_input(read_wikitext2(root, "valid"), basic_english, vocab), EVAL_BATCH_SIZE).to(device)
    test_data = batchify(process_input(read_wikitext2(root, "test"), basic_english, vocab), EVAL_BATCH_SIZE).to(device)
    ntokens = len(vocab)

    print("\tCreating the model...")
    model = TransformerModel(ntokens, EMSIZE, NHEAD, NHID, NLAYERS, DROPOUT).to(device)
    loss_fn = nn.CrossEntropyLoss()
    opt = torch.optim.SGD(model.parameters(), lr=2.5)
    sched = torch.optim.lr_scheduler.StepLR(opt, 1, gamma=0.95)
    writer = make_writer(logdir, "seq2seq")
    timer = Timer()
    for epoch in range(1, epochs + 1):
        t0 = time.perf_counter()
        train_epoch(epoch, train_data, model, loss_fn, opt, ntokens)
        val_loss = evaluate(valid_data, model, loss_fn, ntokens)
        print(f"\nEnd of epoch: {epoch} | lr: {opt.param_groups[0]['lr']:.2f} | "
              f"time: {time.perf_counter() - t0:.1f}s | loss: {val_loss:.2f}\n")
        sched.step()
        if writer is not None: writer.add_scalar("seq2seq/loss", val_loss, epoch)
        if timer.expired(timeout): break
    test_loss = evaluate(test_data, model, loss_fn, ntokens)
    print(f"\nEnd of training | time: {timer.elapsed:.1f}s | loss: {test_loss:.2f}\n")
    if writer is not None: writer.close()
    return test_loss
