"""ChainVerifier against a mocked Solana RPC node."""

import asyncio
import json

import httpx
import pytest

from app.services.chain_verifier import ChainVerifier, Verdict

pytestmark = pytest.mark.asyncio

RPC_URL = "https://rpc.test"
PRESALE = "PresaLe1111111111111111111111111111111111111"
BUYER = "Buyer11111111111111111111111111111111111111"


def _tx(keys, err=None, loaded=None):
    meta = {"err": err}
    if loaded is not None:
        meta["loadedAddresses"] = loaded
    return {"transaction": {"message": {"accountKeys": keys}}, "meta": meta}


def _verifier(handler, timeout=5.0) -> ChainVerifier:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ChainVerifier(RPC_URL, PRESALE, timeout_seconds=timeout, client=client)


def _rpc_result(result):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": result})
    return handler


async def test_confirmed_when_signer_and_presale_match():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": _tx([BUYER, PRESALE, "Other"])})

    v = _verifier(handler)
    assert await v.verify("sig1", BUYER, 100) is Verdict.CONFIRMED
    assert seen["body"]["method"] == "getTransaction"
    assert seen["body"]["params"][0] == "sig1"
    assert seen["body"]["params"][1]["commitment"] == "confirmed"


async def test_parsed_account_keys_are_accepted():
    keys = [{"pubkey": BUYER, "signer": True}, {"pubkey": PRESALE, "signer": False}]
    v = _verifier(_rpc_result(_tx(keys)))
    assert await v.verify("sig1", BUYER, 1) is Verdict.CONFIRMED


async def test_presale_in_lookup_table_addresses():
    v = _verifier(_rpc_result(_tx([BUYER], loaded={"writable": [PRESALE], "readonly": []})))
    assert await v.verify("sig1", BUYER, 1) is Verdict.CONFIRMED


async def test_rejected_when_transaction_missing():
    v = _verifier(_rpc_result(None))
    assert await v.verify("sig1", BUYER, 1) is Verdict.REJECTED


async def test_rejected_when_signer_differs():
    v = _verifier(_rpc_result(_tx(["SomeoneElse", PRESALE])))
    assert await v.verify("sig1", BUYER, 1) is Verdict.REJECTED


async def test_rejected_when_presale_wallet_absent():
    v = _verifier(_rpc_result(_tx([BUYER, "Other"])))
    assert await v.verify("sig1", BUYER, 1) is Verdict.REJECTED


async def test_rejected_when_transaction_failed_on_chain():
    v = _verifier(_rpc_result(_tx([BUYER, PRESALE], err={"InstructionError": [0, "Custom"]})))
    assert await v.verify("sig1", BUYER, 1) is Verdict.REJECTED


@pytest.mark.parametrize("amount", [0, -5, None])
async def test_rejected_for_non_positive_amount_without_rpc_call(amount):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"result": _tx([BUYER, PRESALE])})

    v = _verifier(handler)
    assert await v.verify("sig1", BUYER, amount) is Verdict.REJECTED
    assert calls == []


async def test_indeterminate_on_network_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    assert await _verifier(handler).verify("sig1", BUYER, 1) is Verdict.INDETERMINATE


async def test_indeterminate_on_http_timeout():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    assert await _verifier(handler).verify("sig1", BUYER, 1) is Verdict.INDETERMINATE


async def test_indeterminate_when_node_is_slower_than_timeout():
    async def handler(request):
        await asyncio.sleep(1)
        return httpx.Response(200, json={"result": _tx([BUYER, PRESALE])})

    v = _verifier(handler, timeout=0.05)
    assert await v.verify("sig1", BUYER, 1) is Verdict.INDETERMINATE


async def test_indeterminate_on_server_error():
    v = _verifier(lambda request: httpx.Response(503, text="unavailable"))
    assert await v.verify("sig1", BUYER, 1) is Verdict.INDETERMINATE


async def test_indeterminate_on_rpc_error_object():
    body = {"jsonrpc": "2.0", "id": 1, "error": {"code": -32005, "message": "Node is behind"}}
    v = _verifier(lambda request: httpx.Response(200, json=body))
    assert await v.verify("sig1", BUYER, 1) is Verdict.INDETERMINATE


async def test_indeterminate_on_non_json_body():
    v = _verifier(lambda request: httpx.Response(200, text="<html>gateway</html>"))
    assert await v.verify("sig1", BUYER, 1) is Verdict.INDETERMINATE


async def test_indeterminate_on_malformed_result():
    v = _verifier(_rpc_result({"transaction": {}}))
    assert await v.verify("sig1", BUYER, 1) is Verdict.INDETERMINATE


async def test_finalized_commitment_is_sent():
    seen = {}

    def handler(request):
        seen["params"] = json.loads(request.content)["params"]
        return httpx.Response(200, json={"result": _tx([BUYER, PRESALE])})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    v = ChainVerifier(RPC_URL, PRESALE, commitment="finalized", client=client)
    await v.verify("sig1", BUYER, 1)
    assert seen["params"][1]["commitment"] == "finalized"


async def test_start_and_close_own_client():
    v = ChainVerifier(RPC_URL, PRESALE)
    await v.start()
    assert v._client is not None
    await v.aclose()
    assert v._client is None


@pytest.mark.parametrize("body", [{"jsonrpc": "2.0", "id": 1}, {"message": "rate limited"}])
async def test_indeterminate_when_reply_has_no_result(body):
    v = _verifier(lambda request: httpx.Response(200, json=body))
    assert await v.verify("sig1", BUYER, 1) is Verdict.INDETERMINATE
