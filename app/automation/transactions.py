"""
Builds unsigned transaction descriptors for proposed rebalance actions.

Signing and submission belong to the external execution submitter; this
module only ABI-encodes the call each action needs.
"""

from decimal import ROUND_DOWN, Decimal
from typing import Any, Dict, List, Tuple

from eth_abi import encode
from web3 import Web3

from .config_loader import EngineConfig
from .exceptions import TransactionBuildError
from .logging_config import setup_logger
from .models import ActionType
from .snapshots import RebalanceAction

logger = setup_logger()

# yToken market entry points, keyed by action
MARKET_CALLS = {
    ActionType.DEPOSIT: "mint(uint256)",
    ActionType.WITHDRAW: "redeemUnderlying(uint256)",
    ActionType.BORROW: "borrow(uint256)",
    ActionType.REPAY: "repayBorrow(uint256)",
}
SWAP_CALL = "swap(address,address,uint256,address)"


def function_selector(signature: str) -> bytes:
    return bytes(Web3.keccak(text=signature)[:4])


def to_base_units(amount: Decimal, decimals: int) -> int:
    return int((Decimal(amount) * (Decimal(10) ** decimals)).to_integral_value(rounding=ROUND_DOWN))


class TransactionBuilder:
    """Turns RebalanceActions into `{to, data, value, operation}` descriptors."""

    def __init__(self, config: EngineConfig):
        self.config = config

    def build(self, action: RebalanceAction, owner: str) -> Dict[str, Any]:
        try:
            if action.type == ActionType.SWAP:
                return self._build_swap(action, owner)
            return self._build_market_call(action)
        except TransactionBuildError:
            raise
        except Exception as ex:
            raise TransactionBuildError(f"Failed to build {action.type.value} transaction: {ex}") from ex

    def build_all(self, actions: List[RebalanceAction], owner: str) -> List[Tuple[RebalanceAction, Dict[str, Any]]]:
        """Build each action on its own. Actions that cannot be built are logged and dropped."""
        built = []
        for action in actions:
            try:
                built.append((action, self.build(action, owner)))
            except TransactionBuildError as ex:
                logger.warning("TransactionBuilder: Dropping %s action for %s: %s", action.type.value, owner, ex)
                continue
            logger.debug("TransactionBuilder: Built %s of %s for %s", action.type.value, action.amount, owner)
        return built

    def _build_market_call(self, action: RebalanceAction) -> Dict[str, Any]:
        if action.market is None or not action.market.ytoken_address:
            raise TransactionBuildError(f"{action.type.value} action has no market contract address")

        amount = to_base_units(action.amount, action.market.decimals)
        data = function_selector(MARKET_CALLS[action.type]) + encode(["uint256"], [amount])
        return {
            "to": Web3.to_checksum_address(action.market.ytoken_address),
            "data": "0x" + data.hex(),
            "value": "0",
            "operation": 0,
            "action": action.type.value,
        }

    def _build_swap(self, action: RebalanceAction, owner: str) -> Dict[str, Any]:
        if not action.from_token or not action.to_token:
            raise TransactionBuildError("swap action needs both from_token and to_token")

        decimals = action.market.decimals if action.market else 18
        data = function_selector(SWAP_CALL) + encode(
            ["address", "address", "uint256", "address"],
            [
                Web3.to_checksum_address(action.from_token),
                Web3.to_checksum_address(action.to_token),
                to_base_units(action.amount, decimals),
                Web3.to_checksum_address(owner),
            ],
        )
        return {
            "to": Web3.to_checksum_address(self.config.SWAP_ROUTER),
            "data": "0x" + data.hex(),
            "value": "0",
            "operation": 0,
            "action": action.type.value,
        }
