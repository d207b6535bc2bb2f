import json
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

CONFIG_ENV_VAR = "PYUSD_INVOICE_CONFIG"

SEPOLIA_CHAIN_ID = 11155111
PYUSD_SEPOLIA_ADDRESS = "0xCaC524BcA292aaade2DF8A05cC58F0a65B1B3bB9"
PAYMENT_ROUTER_SEPOLIA_ADDRESS = "0xBEdA19E852341961789eF4d684098f80f155dCc7"


@dataclass
class ProtocolConfig:
    protocol_version: str = "pyusd-invoice-1"
    chain_id: int = SEPOLIA_CHAIN_ID
    token_address: str = PYUSD_SEPOLIA_ADDRESS
    router_address: str = PAYMENT_ROUTER_SEPOLIA_ADDRESS
    token_decimals: int = 6
    token_symbol: str = "PYUSD"
    uri_scheme: str = "ethereum"
    rpc_endpoint: str = "https://rpc.sepolia.org"
    explorer_tx_url: str = "https://sepolia.etherscan.io/tx/"
    log_lookback_blocks: int = 10000
    receipt_poll_attempts: int = 60
    receipt_poll_interval_sec: float = 2.0


def _load_json(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as config_fh:
        return json.load(config_fh)


def load_config(path: str) -> ProtocolConfig:
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Configuration file does not exist: {path}")

    raw = _load_json(path)
    defaults = ProtocolConfig()
    return ProtocolConfig(
        protocol_version=raw.get("protocol_version", defaults.protocol_version),
        chain_id=int(raw.get("chain_id", defaults.chain_id)),
        token_address=raw.get("token_address", defaults.token_address),
        router_address=raw.get("router_address", defaults.router_address),
        token_decimals=int(raw.get("token_decimals", defaults.token_decimals)),
        token_symbol=raw.get("token_symbol", defaults.token_symbol),
        uri_scheme=raw.get("uri_scheme", defaults.uri_scheme),
        rpc_endpoint=raw.get("rpc_endpoint", defaults.rpc_endpoint),
        explorer_tx_url=raw.get("explorer_tx_url", defaults.explorer_tx_url),
        log_lookback_blocks=int(
            raw.get("log_lookback_blocks", defaults.log_lookback_blocks)
        ),
        receipt_poll_attempts=int(
            raw.get("receipt_poll_attempts", defaults.receipt_poll_attempts)
        ),
        receipt_poll_interval_sec=float(
            raw.get("receipt_poll_interval_sec", defaults.receipt_poll_interval_sec)
        ),
    )


def resolve_config(path: Optional[str] = None) -> ProtocolConfig:
    """
    Load configuration from ``path``, then ``$PYUSD_INVOICE_CONFIG``, falling
    back to the built-in Sepolia deployment.
    """
    config_path = path or os.environ.get(CONFIG_ENV_VAR)
    if not config_path:
        return ProtocolConfig()
    return load_config(config_path)


DEFAULT_CONFIG = ProtocolConfig()
