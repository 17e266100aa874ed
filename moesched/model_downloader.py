"""Download Switch Transformer checkpoints and read their configuration."""

from __future__ import annotations

import json
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from string import Template

from .errors import ModelLoadError, SchedulerError

logger = logging.getLogger(__name__)

HUB_ENDPOINT = "https://huggingface.co"
MIRROR_ENDPOINT = "https://hf-mirror.com"

REQUIRED_MODEL_FILES = (
    "config.json",
    "tokenizer.json",
    "pytorch_model.bin",
    "special_tokens_map.json",
)

SWITCH_TRANSFORMER_MODELS = (
    "google/switch-base-8",
    "google/switch-base-16",
    "google/switch-base-32",
    "google/switch-base-64",
    "google/switch-base-128",
    "google/switch-large-8",
    "google/switch-large-16",
    "google/switch-large-32",
    "google/switch-large-64",
    "google/switch-large-128",
    "google/switch-xxl-8",
    "google/switch-xxl-16",
    "google/switch-xxl-32",
    "google/switch-xxl-64",
    "google/switch-xxl-128",
)

_DOWNLOAD_SCRIPT = Template(
    '''\
import os
import sys

os.environ["HF_ENDPOINT"] = $endpoint

from transformers import AutoConfig, AutoModelForSeq2SeqLM, AutoTokenizer
import torch


def main(model_name, save_dir):
    print(f"downloading {model_name} into {save_dir}")
    try:
        tokenizer = AutoTokenizer.from_pretrained(model_name, cache_dir=save_dir)
        tokenizer.save_pretrained(save_dir)
        config = AutoConfig.from_pretrained(model_name, cache_dir=save_dir)
        config.save_pretrained(save_dir)
        model = AutoModelForSeq2SeqLM.from_pretrained(
            model_name,
            cache_dir=save_dir,
            torch_dtype=torch.float16,
            device_map="auto",
        )
        model.save_pretrained(save_dir)
    except Exception as exc:
        print(f"download failed: {exc}", file=sys.stderr)
        sys.exit(1)
    print(f"model class: {type(model).__name__}")
    print(f"parameters: {sum(p.numel() for p in model.parameters()):,}")
    print(f"experts: {getattr(config, 'num_experts', 'N/A')}")


if __name__ == "__main__":
    main($model_name, $save_dir)
'''
)


@dataclass
class ModelInfo:
    """The model dimensions the scheduler needs."""

    model_type: str
    num_experts: int
    hidden_size: int
    intermediate_size: int
    num_layers: int


def _unsigned(value: object) -> int:
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value
    return 0


class ModelDownloader:
    """Fetches Switch Transformer models into a local cache directory."""

    def __init__(self, cache_dir: str, use_mirror: bool = False, python: str = "python3") -> None:
        self.cache_dir = cache_dir
        self.use_mirror = use_mirror
        self.python = python

    @property
    def endpoint(self) -> str:
        """The hub endpoint the download script talks to."""
        return MIRROR_ENDPOINT if self.use_mirror else HUB_ENDPOINT

    def download_switch_transformer(self, model_name: str) -> str:
        """Download a model with a helper script; return its directory."""
        logger.info("downloading Switch Transformer model %s", model_name)
        model_dir = f"{self.cache_dir}/{model_name}"
        Path(model_dir).mkdir(parents=True, exist_ok=True)

        script_path = Path(model_dir) / "download_model.py"
        script_path.write_text(self.generate_download_script(model_name, model_dir), encoding="utf-8")

        try:
            completed = subprocess.run([self.python, str(script_path)], capture_output=True)
        except OSError as exc:
            raise SchedulerError(f"failed to run the download script: {exc}") from exc

        if completed.returncode != 0:
            stderr = completed.stderr.decode("utf-8", errors="replace")
            raise ModelLoadError(f"model download failed: {stderr}")

        logger.info("model %s downloaded to %s", model_name, model_dir)
        return model_dir

    def generate_download_script(self, model_name: str, model_dir: str) -> str:
        """Return the text of the script that fetches and saves the model."""
        return _DOWNLOAD_SCRIPT.substitute(
            endpoint=repr(self.endpoint),
            model_name=repr(model_name),
            save_dir=repr(model_dir),
        )

    def verify_model(self, model_dir: str) -> bool:
        """Check that every file a usable model needs is present."""
        for name in REQUIRED_MODEL_FILES:
            if not (Path(model_dir) / name).exists():
                raise ModelLoadError(f"missing required file: {name}")
        return True

    def get_model_info(self, model_dir: str) -> ModelInfo:
        """Read the model dimensions from config.json."""
        text = (Path(model_dir) / "config.json").read_text(encoding="utf-8")
        try:
            config = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ModelLoadError(f"invalid config.json: {exc}") from exc
        if not isinstance(config, dict):
            config = {}

        model_type = config.get("model_type")
        return ModelInfo(
            model_type=model_type if isinstance(model_type, str) else "unknown",
            num_experts=_unsigned(config.get("num_experts")),
            hidden_size=_unsigned(config.get("hidden_size")),
            intermediate_size=_unsigned(config.get("intermediate_size")),
            num_layers=_unsigned(config.get("num_layers")),
        )