"""
Config Loader module - market configuration from config.yaml and the environment
"""

import os
from typing import Any, Dict, Optional

import yaml
from web3 import Web3

from .constants import DEFAULT_BAD_DEBT_USD_THRESHOLD, WAD_PRECISION
from .fixed_point import DecimalValue
from .provider_registry import PriceProviderRegistry
from .sources.registry import Web3PriceSources

DEFAULT_RPC_TIMEOUT_SECONDS = 10
PACKAGE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


class Web3Singleton:
    """
    Singleton class to manage w3 object creation per RPC URL
    """

    _instances = {}

    @staticmethod
    def get_instance(rpc_url: Optional[str] = None, timeout: int = DEFAULT_RPC_TIMEOUT_SECONDS):
        """
        Set up a Web3 instance for the given RPC URL.
        Maintains separate instances per unique RPC URL.
        """

        if rpc_url not in Web3Singleton._instances:
            provider = Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout})
            Web3Singleton._instances[rpc_url] = Web3(provider)

        return Web3Singleton._instances[rpc_url]


def setup_w3(rpc_url: Optional[str] = None, timeout: int = DEFAULT_RPC_TIMEOUT_SECONDS) -> Web3:
    """
    Get the Web3 instance from the singleton class

    Args:
        rpc_url (Optional[str]): RPC URL of the market
        timeout (int): Seconds before an RPC request is abandoned

    Returns:
        Web3: Web3 instance.
    """
    return Web3Singleton.get_instance(rpc_url, timeout)


class MarketConfig:
    """
    Market Config object to access config variables
    """

    required_env_vars = [
        "RPC_URL",
        # "NOTIFICATION_URL",  # Optional
    ]

    def __init__(self, market: str, global_config: Dict[str, Any], market_config: Dict[str, Any]):
        self.MARKET = market
        self.MARKET_NAME = market_config["name"]
        self._global = global_config
        self._market = market_config

        # validate env
        self.validate()
        self.NOTIFICATION_URL = os.environ.get("NOTIFICATION_URL", "")

        # Market-specific RPC from env using RPC_NAME from config
        self.RPC_URL = os.environ.get(self._market["RPC_NAME"], "")
        if not self.RPC_URL:
            raise ValueError(f"Missing RPC URL for {self.MARKET_NAME}. Env var {self._market['RPC_NAME']} not found")

        self.w3 = setup_w3(self.RPC_URL, int(self._global.get("RPC_TIMEOUT_SECONDS", DEFAULT_RPC_TIMEOUT_SECONDS)))

        self.ABI_PATHS = {
            name: os.path.join(PACKAGE_DIR, path) for name, path in self._global["ABI_PATHS"].items()
        }
        self.BAD_DEBT_USD_THRESHOLD = DecimalValue.parse(
            str(self._global.get("BAD_DEBT_USD_THRESHOLD", DEFAULT_BAD_DEBT_USD_THRESHOLD)), WAD_PRECISION
        )

    def __getattr__(self, name: str) -> Any:
        """Look up config values in market-specific, then contracts, then global config."""
        if name.startswith("_"):
            raise AttributeError(name)
        if name in self._market:
            return self._market[name]
        if name in self._market.get("contracts", {}):
            return self._market["contracts"][name]
        if name in self._global:
            return self._global[name]
        raise AttributeError(f"Config has no attribute '{name}'")

    def validate(self) -> None:
        """
        Validates that all required environment variables are set.
        Raises an error if any are missing.
        """
        missing_keys = [key for key in self.required_env_vars if not os.getenv(key)]
        if missing_keys:
            raise EnvironmentError(f"Missing required environment variables: {', '.join(missing_keys)}")

    def build_provider_registry(self) -> PriceProviderRegistry:
        return PriceProviderRegistry.from_entries(self._market.get("price_providers", []))

    def build_price_sources(self) -> Web3PriceSources:
        return Web3PriceSources(self.w3, self.PRICE_AGGREGATOR, self.ABI_PATHS)


def load_engine_config(market: str) -> MarketConfig:
    config_path = os.path.join(PACKAGE_DIR, "config.yaml")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except FileNotFoundError as exc:
        raise FileNotFoundError(f"Config file not found at {config_path}") from exc
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML file: {e}") from e

    if market not in config["markets"]:
        raise ValueError(f"No configuration found for market {market}")

    return MarketConfig(market=market, global_config=config["global"], market_config=config["markets"][market])
