import json
from pathlib import Path
import pytest
import torch
from pydantic import ValidationError
from torchexamples.config import QuestionAnsweringConfig


class TestQuestionAnsweringConfig:
    def test_defaults(self):
        config = QuestionAnsweringConfig()
        assert config.batch_size == 8
        assert config.max_sequence == 384
        assert config.learning_rate == 3e-5
        assert config.top_k == 5
        assert config.validate_every_n_steps == 2000

    def test_cuda_off_without_gpu(self, monkeypatch):
        monkeypatch.setattr(torch.cuda, "is_available", lambda: False)
        config = QuestionAnsweringConfig()
        assert config.cuda is False
        assert config.device == torch.device("cpu")
        assert QuestionAnsweringConfig(cuda=True).cuda is False

    def test_cuda_off_when_asked(self):
        assert QuestionAnsweringConfig(cuda=False).device.type == "cpu"

    def test_data_path(self):
        config = QuestionAnsweringConfig(data_dir="squad")
        assert config.data_path(config.train_file) == Path("squad") / "mixed_train.json"

    def test_from_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"batch_size": 2, "learning_rate": 0.001, "cuda": False}))
        config = QuestionAnsweringConfig.from_json(path)
        assert config.batch_size == 2
        assert config.learning_rate == 0.001
        assert config.epochs == 10

    def test_bad_value(self):
        with pytest.raises(ValidationError):
            QuestionAnsweringConfig(batch_size="many")
