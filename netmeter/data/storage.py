"""Request and result save/load functionality using JSON serialization."""

import json
from pathlib import Path

from netmeter.models.request import NetMeteringRequest
from netmeter.models.results import NetMeteringResult


def _write_json(data: dict, filepath: str) -> None:
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, default=str)


def _read_json(filepath: str) -> dict:
    with open(filepath, "r", encoding="utf-8") as f:
        return json.load(f)


def save_request(request: NetMeteringRequest, filepath: str) -> None:
    """Save a request to a JSON file.

    Args:
        request: Request to save.
        filepath: Output file path (should end in .json).

    Raises:
        OSError: If file cannot be written.
    """
    _write_json(request.to_dict(), filepath)


def load_request(filepath: str) -> NetMeteringRequest:
    """Load a request from a JSON file.

    The file uses the same camelCase keys as the request payload.

    Raises:
        FileNotFoundError: If file does not exist.
        json.JSONDecodeError: If file is not valid JSON.
        NetMeteringError: If required fields are missing or malformed.
    """
    return NetMeteringRequest.from_dict(_read_json(filepath))


def save_result(result: NetMeteringResult, filepath: str) -> None:
    """Save a calculation result to a JSON file."""
    _write_json(result.to_dict(), filepath)


def load_result(filepath: str) -> NetMeteringResult:
    """Load a calculation result from a JSON file.

    Raises:
        FileNotFoundError: If file does not exist.
        json.JSONDecodeError: If file is not valid JSON.
        KeyError: If required fields are missing.
    """
    return NetMeteringResult.from_dict(_read_json(filepath))
