import numpy as np
import pytest
import torch
import torch.nn as nn
from torch.utils.data import DataLoader, TensorDataset
from torchexamples.training import cifar10, fgsm, mnist, seq2seq, text_classification
from torchexamples.training.common import Timer, make_writer
from torchexamples.vision.alexnet import AlexNet
from torchexamples.vision.mnist import MNISTModel

CPU = torch.device("cpu")


def image_loader(channels, size, n=8, batch_size=4):
    torch.manual_seed(0)
    x = torch.rand(n, channels, size, size)
    y = torch.randint(0, 10, (n,))
    return DataLoader(TensorDataset(x, y), batch_size=batch_size)


class TestCommon:
    def test_timer(self):
        timer = Timer()
        assert not timer.expired(3600)
        assert timer.expired(-1)

    def test_no_writer_without_logdir(self):
        assert make_writer(None, "mnist") is None

    def test_writer(self, tmp_path):
        writer = make_writer(tmp_path, "mnist")
        writer.add_scalar("x", 1.0, 0)
        writer.close()
        assert [p.name.startswith("mnist-") for p in tmp_path.iterdir()] == [True]


class TestMnist:
    def test_model_file(self):
        assert mnist.model_file("fashion-mnist").name == "fashion-mnist.model.pt"

    def test_training_loop_saves_model(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        dl = image_loader(1, 28)
        mnist.training_loop("mnist", 1, 3600, None, CPU, MNISTModel(), dl, dl)
        obj = torch.load(tmp_path / "mnist.model.pt")
        assert "fc2.weight" in obj["model"]

    def test_evaluate(self):
        loss, accuracy = mnist.evaluate(MNISTModel(), image_loader(1, 28), CPU)
        assert loss > 0
        assert 0.0 <= accuracy <= 1.0


class TestFgsm:
    def test_attack_clamps(self):
        image = torch.tensor([0.0, 0.5, 1.0])
        grad = torch.tensor([-1.0, 1.0, 1.0])
        assert fgsm.attack(image, 0.25, grad).tolist() == [0.0, 0.75, 1.0]

    def test_zero_epsilon_keeps_accuracy(self):
        model = MNISTModel().eval()
        dl = image_loader(1, 28)
        _, clean = mnist.evaluate(model, dl, CPU)
        assert fgsm.test(model, nn.NLLLoss(), 0, dl, CPU) == pytest.approx(clean)


class TestCifar10:
    def test_batch_sizes(self):
        assert cifar10.batch_sizes("alexnet", CPU) == (64, 128)
        assert cifar10.batch_sizes("resnet50", torch.device("cuda")) == (512 // 6, 1024 // 8)

    def test_per_class_accuracy(self):
        acc = cifar10.per_class_accuracy(np.array([0, 0, 1, 2]), np.array([0, 1, 1, 0]), num_classes=4)
        assert acc == [0.5, 1.0, 0.0, 0.0]

    def test_train_and_evaluate(self):
        dl = image_loader(3, 32)
        model = AlexNet()
        opt = torch.optim.Adam(model.parameters(), lr=0.001)
        cifar10.train_epoch(model, opt, nn.NLLLoss(), dl, 1, CPU)
        accuracy, targets, preds = cifar10.evaluate(model, nn.NLLLoss(), dl, CPU)
        assert 0.0 <= accuracy <= 1.0
        assert targets.shape == preds.shape == (8,)


class TestTextClassification:
    def test_run(self, tmp_path):
        root = tmp_path / "AG_NEWS"
        root.mkdir()
        rows = ['"1","Peace talks","in the capital"', '"2","Team wins","the final game"',
                '"3","Stocks rise","on the market"', '"4","New chip","for faster phones"']
        (root / "train.csv").write_text("\n".join(rows * 3) + "\n")
        (root / "test.csv").write_text("\n".join(rows) + "\n")
        accuracy = text_classification.run(epochs=1, timeout=3600, data_dir=tmp_path)
        assert 0.0 <= accuracy <= 1.0


class TestSeq2Seq:
    def test_run(self, tmp_path, monkeypatch):
        monkeypatch.setattr(seq2seq, "BATCH_SIZE", 4)
        monkeypatch.setattr(seq2seq, "EVAL_BATCH_SIZE", 2)
        monkeypatch.setattr(seq2seq, "EMSIZE", 8)
        monkeypatch.setattr(seq2seq, "NHID", 16)
        root = tmp_path / "wikitext-2"
        root.mkdir()
        text = " the cat sat on the mat . the dog ran in the park . \n" * 10
        for name in ("wiki.train.tokens", "wiki.valid.tokens", "wiki.test.tokens"):
            (root / name).write_text(text)
        loss = seq2seq.run(epochs=1, timeout=3600, data_dir=tmp_path)
        assert loss > 0
