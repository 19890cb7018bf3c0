from typing import Any, Dict, List, Union

import requests

from hook_miner.errors import RemoteMiningError


def mine_remote(
    endpoint: str,
    init_code_hash: str,
    flags: Union[int, str, List[Union[int, str]]],
    *,
    deployer: str | None = None,
    max_iterations: int | None = None,
    timeout: float = 300.0,
) -> Dict[str, Any]:
    """ Submit a mining request to a running `hook-miner serve` instance. """
    payload: Dict[str, Any] = {
        "init_code_hash": init_code_hash,
        "flags": flags,
    }
    if deployer is not None:
        payload["deployer"] = deployer
    if max_iterations is not None:
        payload["max_iterations"] = max_iterations

    url = f"{endpoint.rstrip('/')}/api/mine"
    try:
        response = requests.post(url, json=payload, timeout=timeout)
    except requests.RequestException as e:
        raise RemoteMiningError(f"Request to {url} failed: {e}") from e

    if response.status_code != 200:
        raise RemoteMiningError(f"Failed to mine via {url}: {response.status_code} {response.text}")
    return response.json()
