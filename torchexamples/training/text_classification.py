"""AG_NEWS news-topic classifier.

Based on https://pytorch.org/tutorials/beginner/text_sentiment_ngrams_tutorial.html
Expects train.csv / test.csv from the ag_news_csv release in <data_dir>/AG_NEWS.
"""
import time
from pathlib import Path
import torch, torch.nn as nn
from ..text.classifier import TextClassificationModel
from ..text.datasets import AGNewsReader, basic_english, build_vocab, AG_NEWS_CLASSES
from .common import get_device, make_writer, banner, Timer

EMSIZE = 200
BATCH_SIZE = 128
EVAL_BATCH_SIZE = 128
LOG_INTERVAL = 250

def train_epoch(epoch, batches, model, loss_fn, opt):
    model.train()
    total_acc, total_count = 0, 0
    batches = list(batches)
    for batch, (labels, texts, offsets) in enumerate(batches):
        opt.zero_grad()
        pred = model(texts, offsets)
        loss = loss_fn(pred, labels)
        loss.backward()
        torch.nn.utils.clip_grad_norm_(model.parameters(), 0.5)
        opt.step()
        total_acc += (pred.argmax(1) == labels).sum().item()
        total_count += labels.size(0)
        if batch % LOG_INTERVAL == 0 and batch > 0:
            print(f"epoch: {epoch} | batch: {batch} / {len(batches)} | accuracy: {total_acc / total_count:.2f}")

@torch.no_grad()
def evaluate(batches, model):
    model.eval()
    total_acc, total_count = 0, 0
    for labels, texts, offsets in batches:
        total_acc += (model(texts, offsets).argmax(1) == labels).sum().item()
        total_count += labels.size(0)
    return total_acc / max(total_count, 1)

def run(epochs=16, timeout=3600, logdir=None, data_dir="data"):
    torch.manual_seed(1)
    device = get_device()
    banner("TextClassification", device, epochs, timeout)
    writer = make_writer(logdir, "text")
    print("\tPreparing training and test data...")
    root = Path(data_dir) / "AG_NEWS"
    reader = AGNewsReader("train", root, device)
    vocab = build_vocab(text for _, text in reader.rows)
    print("\tCreating the model...")
    model = TextClassificationModel(len(vocab), EMSIZE, len(AG_NEWS_CLASSES)).to(device)
    loss_fn = nn.CrossEntropyLoss()
    opt = torch.optim.SGD(model.parameters(), lr=5.0)
    sched = torch.optim.lr_scheduler.StepLR(opt, 1, gamma=0.2)
    timer, epoch = Timer(), 0
    for epoch in range(1, epochs + 1):
        t0 = time.perf_counter()
        train_epoch(epoch, reader.get_batches(basic_english, vocab, BATCH_SIZE), model, loss_fn, opt)
        lr = opt.param_groups[0]["lr"]
        print(f"\nEnd of epoch: {epoch} | lr: {lr:.4f} | time: {time.perf_counter() - t0:.1f}s\n")
        if writer is not None: writer.add_scalar("text/lr", lr, epoch)
        sched.step()
        if timer.expired(timeout): break
    test_reader = AGNewsReader("test", root, device)
    t0 = time.perf_counter()
    accuracy = evaluate(test_reader.get_batches(basic_english, vocab, EVAL_BATCH_SIZE), model)
    print(f"\nEnd of training: test accuracy: {accuracy:.2f} | eval time: {time.perf_counter() - t0:.1f}s\n")
    if writer is not None:
        writer.add_scalar("text/accuracy", accuracy, epoch)
        writer.close()
    return accuracy
