"""Delivery address workflows."""

from __future__ import annotations

from .account import DeliveryAddress
from .contracts import CredentialStore, DeliveryAddressInput
from .errors import NotFoundError


class DeliveryAddressService:
    """Add, list and remove the shipping addresses of an account."""

    def __init__(self, repository: CredentialStore) -> None:
        self._repository = repository

    def add_address(self, account_id: int, payload: DeliveryAddressInput) -> DeliveryAddress:
        self._require_account(account_id)
        return self._repository.add_delivery_address(account_id, payload)

    def list_addresses(self, account_id: int) -> list[DeliveryAddress]:
        self._require_account(account_id)
        return self._repository.list_delivery_addresses(account_id)

    def delete_address(self, account_id: int, address_id: int) -> None:
        """Delete an address; addresses of other accounts count as missing."""
        if not self._repository.delete_delivery_address(account_id, address_id):
            raise NotFoundError(f"Delivery address not found with id: {address_id}")

    def _require_account(self, account_id: int) -> None:
        if self._repository.find_by_id(account_id) is None:
            raise NotFoundError(f"User not found with id: {account_id}")
