import json
import pytest
from torchexamples import examples
from torchexamples.training import cifar10, mnist, qa_finetune, text_classification
from torchexamples.inference import qa


@pytest.fixture
def calls(monkeypatch):
    calls = []
    def recorder(name):
        return lambda *args, **kwargs: calls.append((name, args, kwargs))
    monkeypatch.setattr(mnist, "run", recorder("mnist"))
    monkeypatch.setattr(cifar10, "run", recorder("cifar10"))
    monkeypatch.setattr(text_classification, "run", recorder("text"))
    monkeypatch.setattr(qa_finetune, "run", recorder("qa-train"))
    monkeypatch.setattr(qa, "run", recorder("qa-infer"))
    return calls


class TestExamplesCli:
    def test_no_models_prints_usage(self, capsys):
        assert examples.main([]) == 1
        assert "usage" in capsys.readouterr().out

    def test_unknown_model(self, calls, capsys):
        assert examples.main(["lenet"]) == 1
        assert "Unknown model name: lenet" in capsys.readouterr().err
        assert calls == []

    def test_unknown_model_among_known(self, calls, capsys):
        assert examples.main(["text", "lenet"]) == 1
        assert [c[0] for c in calls] == ["text"]
        assert "Unknown model name: lenet" in capsys.readouterr().err

    def test_known_models_succeed(self, calls):
        assert examples.main(["text"]) == 0

    def test_runs_each_model_in_order(self, calls):
        examples.main(["MNIST", "resnet18", "text", "--epochs", "2", "--timeout", "60", "--data-dir", "d"])
        common = dict(epochs=2, timeout=60, logdir=None, data_dir="d")
        assert calls == [
            ("mnist", (), dict(dataset="mnist", **common)),
            ("cifar10", (), dict(model_name="resnet18", **common)),
            ("text", (), common),
        ]

    def test_fashion_mnist(self, calls):
        examples.main(["fashion-mnist", "--logdir", "runs"])
        assert calls[0][2]["dataset"] == "fashion-mnist"
        assert calls[0][2]["logdir"] == "runs"

    def test_qa_config_file(self, calls, tmp_path):
        path = tmp_path / "qa.json"
        path.write_text(json.dumps({"batch_size": 4, "cuda": False}))
        examples.main(["qa-train", "qa-infer", "--qa-config", str(path)])
        assert [c[0] for c in calls] == ["qa-train", "qa-infer"]
        config = calls[0][1][0]
        assert config.batch_size == 4
        assert config.max_sequence == 384

    def test_run_model_reports_success(self, calls):
        args = examples.build_parser().parse_args(["x"])
        assert examples.run_model("text", args) is True
        assert examples.run_model("nope", args) is False
