import json
from pathlib import Path
import torch
from pydantic import BaseModel, Field, field_validator


class QuestionAnsweringConfig(BaseModel):
    load_model_path: str = "roberta-bertformat-model_weights.pt"
    data_dir: str = "data"
    train_file: str = "mixed_train.json"
    valid_file: str = "mixed_valid.json"
    test_file: str = "test.json"
    vocab_dir: str = "vocab_files"

    batch_size: int = 8
    optimize_steps: int = 1
    max_sequence: int = 384
    cuda: bool = Field(True, validate_default=True)
    save_dir: str = "saved_models"

    learning_rate: float = 3e-5
    log_every_n_steps: int = 10
    validate_every_n_steps: int = 2000
    top_k: int = 5
    epochs: int = 10

    @field_validator("cuda")
    @classmethod
    def _cuda_if_available(cls, v):
        return v and torch.cuda.is_available()

    @property
    def device(self):
        return torch.device("cuda" if self.cuda else "cpu")

    def data_path(self, name):
        return Path(self.data_dir) / name

    @classmethod
    def from_json(cls, path):
        return cls(**json.loads(Path(path).read_text(encoding="utf-8")))
