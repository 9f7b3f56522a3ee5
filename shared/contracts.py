import json
from functools import lru_cache
from pathlib import Path

ABI_DIR = Path(__file__).parent / "abis"


@lru_cache(maxsize=None)
def _read_abi(name: str) -> tuple:
    with open(ABI_DIR / f"{name}.json") as f:
        return tuple(json.load(f))


def load_abi(name: str) -> list:
    """Load a contract ABI from shared/abis/<name>.json."""
    return list(_read_abi(name))


def abi_functions(name: str) -> set[str]:
    return {item["name"] for item in _read_abi(name) if item.get("type") == "function"}
