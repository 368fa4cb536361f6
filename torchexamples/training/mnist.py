"""Simple MNIST convolutional model.

Works with the classic MNIST digits and with Fashion-MNIST, which has the same
format and 60/10k split but is harder to fit. torchvision downloads either one.
"""
from pathlib import Path
import torch, torch.nn as nn
from torch.utils.data import DataLoader
from torchvision import datasets, transforms
from tqdm import tqdm
from ..vision.mnist import MNISTModel
from .common import get_device, make_writer, banner, Timer

TRAIN_BATCH_SIZE = 64
TEST_BATCH_SIZE = 128
LOG_INTERVAL = 100
NORMALIZE = transforms.Normalize((0.1307,), (0.3081,))
DATASETS = {"mnist": datasets.MNIST, "fashion-mnist": datasets.FashionMNIST,
            "fgsm": datasets.MNIST, "fashion-fgsm": datasets.FashionMNIST}

def model_file(dataset):
    return Path(f"{dataset}.model.pt")

def load_data(dataset, data_dir, device, train=True):
    """(train loader or None, test loader). Batch sizes are 4x on CUDA."""
    scale = 4 if device.type == "cuda" else 1
    cls = DATASETS[dataset]
    tf = transforms.Compose([transforms.ToTensor(), NORMALIZE])
    test = DataLoader(cls(data_dir, train=False, download=True, transform=tf), batch_size=TEST_BATCH_SIZE * scale)
    if not train:
        return None, test
    train_dl = DataLoader(cls(data_dir, train=True, download=True, transform=tf), batch_size=TRAIN_BATCH_SIZE * scale, shuffle=True)
    return train_dl, test

def train_epoch(model, opt, loss_fn, dl, epoch, device):
    model.train()
    print(f"Epoch: {epoch}...")
    size = len(dl.dataset)
    for batch_id, (x, y) in enumerate(tqdm(dl, desc=f"train {epoch}", leave=False), start=1):
        x, y = x.to(device), y.to(device)
        opt.zero_grad()
        loss = loss_fn(model(x), y)
        loss.backward(); opt.step()
        if batch_id % LOG_INTERVAL == 0:
            print(f"Train: epoch {epoch} [{min(batch_id * dl.batch_size, size)} / {size}] Loss: {loss.item():.4f}")

@torch.no_grad()
def evaluate(model, dl, device, writer=None, epoch=0, tag="MNIST"):
    model.eval()
    loss_fn = nn.NLLLoss(reduction="sum")
    test_loss, correct, size = 0.0, 0, len(dl.dataset)
    for x, y in dl:
        x, y = x.to(device), y.to(device)
        out = model(x)
        test_loss += loss_fn(out, y).item()
        correct += (out.argmax(1) == y).sum().item()
    print(f"Test set: Average loss {test_loss / size:.4f} | Accuracy {correct / size:.2%}")
    if writer is not None:
        writer.add_scalar(f"{tag}/loss", test_loss / size, epoch)
        writer.add_scalar(f"{tag}/accuracy", correct / size, epoch)
    return test_loss / size, correct / size

def training_loop(dataset, epochs, timeout, writer, device, model, train_dl, test_dl):
    opt = torch.optim.Adam(model.parameters())
    sched = torch.optim.lr_scheduler.StepLR(opt, 1, gamma=0.7)
    loss_fn = nn.NLLLoss()
    timer = Timer()
    for epoch in range(1, epochs + 1):
        train_epoch(model, opt, loss_fn, train_dl, epoch, device)
        evaluate(model, test_dl, device, writer, epoch)
        sched.step()
        if timer.expired(timeout): break
    print(f"Elapsed time: {timer.elapsed:.1f} s.")
    path = model_file(dataset)
    print(f"Saving model to '{path}'")
    torch.save({"model": model.state_dict()}, path)
    return model

def run(epochs=16, timeout=3600, logdir=None, dataset="mnist", data_dir="data"):
    dataset = dataset or "mnist"
    torch.manual_seed(1)
    device = get_device()
    banner(f"MNIST with {dataset}", device, epochs, timeout)
    writer = make_writer(logdir, dataset)
    print("\tPreparing training and test data...")
    train_dl, test_dl = load_data(dataset, data_dir, device)
    print("\tCreating the model...")
    model = MNISTModel().to(device)
    training_loop(dataset, epochs, timeout, writer, device, model, train_dl, test_dl)
    if writer is not None: writer.close()
