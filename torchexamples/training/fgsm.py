"""Fast Gradient Sign Method attack on the MNIST model.

Based on https://pytorch.org/tutorials/beginner/fgsm_tutorial.html
"""
import torch, torch.nn as nn
from ..vision.mnist import MNISTModel
from . import mnist
from .common import get_device, make_writer, banner

EPSILONS = [0, 0.05, 0.1, 0.15, 0.20, 0.25, 0.30, 0.35, 0.40, 0.45, 0.50]

def attack(image, epsilon, data_grad):
    return (image + epsilon * data_grad.sign()).clamp(0.0, 1.0)

def test(model, loss_fn, epsilon, dl, device):
    correct = 0
    for x, y in dl:
        x, y = x.to(device), y.to(device)
        x.requires_grad_(True)
        loss = loss_fn(model(x), y)
        model.zero_grad()
        loss.backward()
        perturbed = attack(x.detach(), epsilon, x.grad)
        with torch.no_grad():
            correct += (model(perturbed).argmax(1) == y).sum().item()
    return correct / len(dl.dataset)

def run(epochs=16, timeout=3600, logdir=None, dataset="fgsm", data_dir="data"):
    dataset = dataset or "fgsm"
    torch.manual_seed(1)
    device = get_device()
    banner(f"FGSM attack with {dataset}", device, epochs, timeout)
    if device.type == "cuda":
        epochs *= 4
    print("\tPreparing training and test data...")
    path = mnist.model_file(dataset)
    model = MNISTModel()
    if not path.exists():
        # the attack needs a trained model to start from
        print(f"\n  Running MNIST on {device.type} in order to pre-train the model.")
        writer = make_writer(logdir, dataset)
        train_dl, test_dl = mnist.load_data(dataset, data_dir, device)
        model.to(device)
        mnist.training_loop(dataset, epochs, timeout, writer, device, model, train_dl, test_dl)
        if writer is not None: writer.close()
        print("Moving on to the Adversarial model.\n")
    else:
        _, test_dl = mnist.load_data(dataset, data_dir, device, train=False)
        obj = torch.load(path, map_location="cpu")
        model.load_state_dict(obj["model"] if "model" in obj else obj)
    model.to(device).eval()
    results = {}
    for eps in EPSILONS:
        results[eps] = test(model, nn.NLLLoss(), eps, test_dl, device)
        print(f"Epsilon: {eps:.2f}, accuracy: {results[eps]:.2%}")
    return results
