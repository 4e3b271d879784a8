import json
import os
from pathlib import Path

CONFIG_PATH = Path(os.environ.get("WATCHRANK_CONFIG", Path.home() / ".watchrank.json"))

DEFAULT_CONFIG = {
    "api_base_url": "http://localhost:8000",
    "order_mode": "section",
}


def load_config() -> dict:
    data = dict(DEFAULT_CONFIG)
    if CONFIG_PATH.exists():
        data.update(json.loads(CONFIG_PATH.read_text()))
    return data


def save_config(data: dict) -> None:
    CONFIG_PATH.write_text(json.dumps(data, indent=2))
