"""
Core package for pyusd_invoice providing serverless PYUSD invoicing and settlement.
"""

from .config import ProtocolConfig, load_config, resolve_config  # noqa: F401
