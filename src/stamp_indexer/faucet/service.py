"""STX faucet - rate-limited token transfers to caller-supplied addresses."""

from __future__ import annotations

import logging
import re
import time
from typing import Any, Callable

from stamp_indexer.errors import BroadcastError, FaucetError
from stamp_indexer.interfaces.faucet import TransactionBroadcaster, TransferSigner
from stamp_indexer.models.config import FaucetConfig, StacksNetwork
from stamp_indexer.models.records import FaucetClaimResult
from stamp_indexer.stacks.address import is_valid_stacks_address

log = logging.getLogger(__name__)

MICROSTX_PER_STX = 1_000_000
FAUCET_MEMO = "Faucet"

_AMOUNT_RE = re.compile(r"^\d+(\.\d+)?$")


def stx_to_microstx(amount: str) -> int:
    """Convert a decimal STX string to microSTX, truncating past 6 decimals.

    Raises:
        ValueError: not a plain non-negative decimal.
    """
    trimmed = amount.strip()
    if not _AMOUNT_RE.match(trimmed):
        raise ValueError(f"Invalid STX amount: {amount!r}")
    whole, _, fraction = trimmed.partition(".")
    return int(whole) * MICROSTX_PER_STX + int((fraction + "000000")[:6])


def _now_ms() -> int:
    return int(time.time() * 1000)


class FaucetService:
    """Dispenses a fixed STX amount, guarded by per-address and per-IP cooldowns.

    Cooldown timestamps are memory-resident and overwritten only after a
    successful broadcast.
    A claim that is still signing or broadcasting blocks further claims for
    the same address or IP until it settles.
    """

    def __init__(
        self,
        config: FaucetConfig,
        network: StacksNetwork,
        broadcaster: TransactionBroadcaster,
        signer: TransferSigner | None = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._cfg = config
        self._network = network
        self._broadcaster = broadcaster
        self._signer = signer
        self._clock = clock
        self._last_by_address: dict[str, int] = {}
        self._last_by_ip: dict[str, int] = {}
        self._pending_addresses: set[str] = set()
        self._pending_ips: set[str] = set()

    @property
    def _cooldown_ms(self) -> int:
        return self._cfg.cooldown_minutes * 60_000

    @property
    def _ip_cooldown_ms(self) -> int:
        return self._cfg.effective_ip_cooldown_minutes * 60_000

    def status(self) -> dict[str, Any]:
        return {
            "enabled": self._cfg.enabled,
            "network": self._network.value,
            "address": self._cfg.address,
            "amountStx": self._cfg.amount_stx,
            "cooldownMinutes": self._cfg.cooldown_minutes,
        }

    async def claim(self, address: str, client_ip: str = "") -> FaucetClaimResult:
        """Send the configured amount to ``address``.

        Raises:
            FaucetError: the claim was refused or the transfer failed.
        """
        if not self._cfg.enabled:
            raise FaucetError(503, "Faucet is disabled")
        if self._network is StacksNetwork.MAINNET and not self._cfg.allow_mainnet:
            raise FaucetError(403, "Faucet is not enabled on mainnet")
        if self._signer is None:
            raise FaucetError(500, "Faucet is not configured")

        address = address.strip()
        if not address:
            raise FaucetError(400, "Address is required")
        if not is_valid_stacks_address(address):
            raise FaucetError(400, "Invalid Stacks address")

        now = self._clock()
        last = self._last_by_address.get(address)
        if last is not None and now - last < self._cooldown_ms:
            raise FaucetError(
                429, "Address cooldown active", nextEligibleAt=last + self._cooldown_ms,
            )

        if client_ip:
            last_ip = self._last_by_ip.get(client_ip)
            if last_ip is not None and now - last_ip < self._ip_cooldown_ms:
                raise FaucetError(
                    429, "IP cooldown active", nextEligibleAt=last_ip + self._ip_cooldown_ms,
                )

        if address in self._pending_addresses or (client_ip and client_ip in self._pending_ips):
            raise FaucetError(429, "Claim already in progress")

        try:
            amount = stx_to_microstx(self._cfg.amount_stx)
        except ValueError:
            raise FaucetError(500, "Invalid faucet amount configuration") from None
        if amount <= 0:
            raise FaucetError(500, "Invalid faucet amount configuration")

        self._pending_addresses.add(address)
        if client_ip:
            self._pending_ips.add(client_ip)
        try:
            raw_tx = await self._signer.sign_transfer(address, amount, FAUCET_MEMO)
            tx_id = await self._broadcaster.broadcast_transaction(raw_tx)
        except BroadcastError as exc:
            raise FaucetError(400, "Failed to broadcast transaction", details=exc.details) from exc
        except Exception as exc:
            log.error("Faucet transfer to %s failed: %s", address, exc, exc_info=True)
            raise FaucetError(500, "Failed to send faucet transaction", message=str(exc)) from exc
        else:
            self._last_by_address[address] = now
            if client_ip:
                self._last_by_ip[client_ip] = now
        finally:
            self._pending_addresses.discard(address)
            self._pending_ips.discard(client_ip)

        log.info("Faucet sent %s STX to %s (tx %s)", self._cfg.amount_stx, address, tx_id)
        return FaucetClaimResult(
            tx_id=tx_id,
            amount_stx=self._cfg.amount_stx,
            cooldown_minutes=self._cfg.cooldown_minutes,
            next_eligible_at=now + self._cooldown_ms,
        )
