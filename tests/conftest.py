from __future__ import annotations

import pytest
import requests

from rewards.nexus_client import NexusClient

BASE_URL = "https://nexus.test/v1"

DELEGATOR = "oasis1qpnzqwj58m48sra4uuvazpqnw0zwlqfvnvjctldl"
VALIDATOR_A = "oasis1qq3xrq0urs8qcffhvmhfhz4p0mu7ewc8rscnlwxe"
VALIDATOR_B = "oasis1qqekv2ymgzmd8j2s2u7g0hhc7e77e654kvwqtjwm"


class FakeResponse:
    def __init__(self, payload, status_code: int = 200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


class FakeSession:
    """Routes GET requests by path to static payloads or handler callables."""

    def __init__(self, routes: dict | None = None):
        self.routes = dict(routes or {})
        self.calls: list[tuple[str, dict]] = []

    def get(self, url, params=None, timeout=None):
        path = url[len(BASE_URL):]
        params = dict(params or {})
        self.calls.append((path, params))

        handler = self.routes.get(path)
        if handler is None:
            return FakeResponse({"msg": "not found"}, 404)

        payload = handler(params) if callable(handler) else handler
        if isinstance(payload, Exception):
            raise payload
        if isinstance(payload, FakeResponse):
            return payload
        return FakeResponse(payload)

    def paths(self) -> list[str]:
        return [path for path, _ in self.calls]


def paged(items_key: str, items: list, clipped: bool = False):
    """Handler serving items with limit/offset like the Nexus list endpoints."""

    def handler(params):
        offset = int(params.get("offset", 0))
        limit = int(params.get("limit", 1000))
        return {
            items_key: items[offset:offset + limit],
            "total_count": min(len(items), 1000) if clipped else len(items),
            "is_total_count_clipped": clipped,
        }

    return handler


def snapshot_record(epoch: int, balance: int, shares: int) -> dict:
    return {"epoch": epoch, "active_balance": str(balance), "active_shares": str(shares)}


def event_record(kind: str, epoch: int, owner: str, validator: str, shares: int, amount: int = 0) -> dict:
    shares_field = "new_shares" if kind == "staking.escrow.add" else "debonding_shares"
    return {
        "type": kind,
        "body": {
            "epoch": epoch,
            "owner": owner,
            "escrow": validator,
            "amount": str(amount),
            shares_field: str(shares),
        },
    }


@pytest.fixture()
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture()
def client(session) -> NexusClient:
    return NexusClient(api_url=BASE_URL, session=session, page_size=1000, page_delay=0, max_retries=1)
