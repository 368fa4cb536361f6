"""Various image classifiers trained and evaluated on CIFAR-10 (32x32 color images)."""
import time
import torch, torch.nn as nn
import torch.nn.functional as F
from torch.utils.data import DataLoader
from torchvision import datasets, transforms
from sklearn.metrics import confusion_matrix
from tqdm import tqdm
from ..vision.cifar_models import build_model
from .common import get_device, make_writer, banner, Timer

TRAIN_BATCH_SIZE = 64
TEST_BATCH_SIZE = 128
LOG_INTERVAL = 25
NUM_CLASSES = 10
CLASSES = ["airplane", "automobile", "bird", "cat", "deer", "dog", "frog", "horse", "ship", "truck"]

def batch_sizes(model_name, device):
    """Sizes that fit an 8GB GPU for every architecture."""
    train_bs, test_bs = TRAIN_BATCH_SIZE, TEST_BATCH_SIZE
    if device.type == "cuda":
        train_bs, test_bs = train_bs * 8, test_bs * 8
        if model_name in ("resnet34", "resnet152"):
            test_bs //= 4
        elif model_name in ("resnet50", "resnet101"):
            train_bs //= 6; test_bs //= 8
    return train_bs, test_bs

def train_epoch(model, opt, loss_fn, dl, epoch, device):
    model.train()
    print(f"Epoch: {epoch}...")
    total = correct = 0
    size = len(dl.dataset)
    for batch_id, (x, y) in enumerate(tqdm(dl, desc=f"train {epoch}", leave=False), start=1):
        x, y = x.to(device), y.to(device)
        opt.zero_grad()
        pred = model(x)
        loss = loss_fn(F.log_softmax(pred, 1), y)
        loss.backward(); opt.step()
        total += y.size(0)
        correct += (pred.argmax(1) == y).sum().item()
        if batch_id % LOG_INTERVAL == 0:
            print(f"Train: epoch {epoch} [{min(batch_id * dl.batch_size, size)} / {size}] "
                  f"Loss: {loss.item():.6f} | Accuracy: {correct / total:.6f}")

@torch.no_grad()
def evaluate(model, loss_fn, dl, device, writer=None, tag="cifar10", epoch=0):
    model.eval()
    test_loss, batches, preds, targets = 0.0, 0, [], []
    for x, y in dl:
        x, y = x.to(device), y.to(device)
        pred = model(x)
        test_loss += loss_fn(F.log_softmax(pred, 1), y).item()
        batches += 1
        preds.append(pred.argmax(1).cpu()); targets.append(y.cpu())
    preds, targets = torch.cat(preds), torch.cat(targets)
    accuracy = (preds == targets).float().mean().item()
    print(f"Test set: Average loss {test_loss / max(batches, 1):.4f} | Accuracy {accuracy:.4f}")
    if writer is not None:
        writer.add_scalar(f"{tag}/loss", test_loss / max(batches, 1), epoch)
        writer.add_scalar(f"{tag}/accuracy", accuracy, epoch)
    return accuracy, targets.numpy(), preds.numpy()

def per_class_accuracy(targets, preds, num_classes=NUM_CLASSES):
    cm = confusion_matrix(targets, preds, labels=list(range(num_classes)))
    totals = cm.sum(axis=1)
    return [cm[i, i] / totals[i] if totals[i] else 0.0 for i in range(num_classes)]

def run(epochs=16, timeout=3600, logdir=None, model_name="alexnet", data_dir="data"):
    model_name = model_name.lower()
    torch.manual_seed(1)
    device = get_device()
    train_bs, test_bs = batch_sizes(model_name, device)
    banner(f"{model_name} with CIFAR10", device, epochs, timeout)
    writer = make_writer(logdir, model_name)
    print("\tCreating the model...")
    model = build_model(model_name, NUM_CLASSES).to(device)
    print("\tPreparing training and test data...")
    tf = transforms.ToTensor()
    train_dl = DataLoader(datasets.CIFAR10(data_dir, train=True, download=True, transform=tf), batch_size=train_bs, shuffle=True)
    test_dl = DataLoader(datasets.CIFAR10(data_dir, train=False, download=True, transform=tf), batch_size=test_bs)

    opt = torch.optim.Adam(model.parameters(), lr=0.001)
    loss_fn = nn.NLLLoss()
    timer = Timer()
    targets = preds = None
    for epoch in range(1, epochs + 1):
        t0 = time.perf_counter()
        train_epoch(model, opt, loss_fn, train_dl, epoch, device)
        _, targets, preds = evaluate(model, loss_fn, test_dl, device, writer, model_name, epoch)
        print(f"Elapsed time for this epoch: {time.perf_counter() - t0:.1f} s.")
        if timer.expired(timeout): break
    print(f"Elapsed training time: {timer.elapsed:.1f} s.")
    if targets is not None:
        for name, acc in zip(CLASSES, per_class_accuracy(targets, preds)):
            print(f"  {name:<10} {acc:.4f}")
    if writer is not None: writer.close()
