"""Tests for the scan dispatcher: lookup, debounce and decoder release."""
import asyncio
import logging

import pytest

from errors import ScanNotFoundError, ScannerBusyError
from scanner import ScanDispatcher, ScanState

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")


def test_match_adds_to_cart_and_closes_scanner(dispatcher, decoder, cart):
    async def scenario():
        await dispatcher.start_scan()
        assert dispatcher.state is ScanState.SCANNING
        assert decoder.active
        return await dispatcher.dispatch("1234567890123")

    item = asyncio.run(scenario())

    assert item.name == "Cola"
    assert item.quantity == 1
    assert dispatcher.state is ScanState.IDLE
    assert not decoder.active
    assert [i.quantity for i in cart.items] == [1]


def test_two_sessions_merge_into_one_line(dispatcher, cart):
    async def scan(code):
        await dispatcher.start_scan()
        return await dispatcher.dispatch(code)

    asyncio.run(scan("1234567890123"))
    asyncio.run(scan("1234567890123"))

    assert len(cart) == 1
    assert cart.items[0].quantity == 2
    assert str(cart.total()) == "7.00"


def test_unknown_barcode_leaves_cart_and_returns_to_idle(dispatcher, decoder, cart, inventory):
    cart.add_item(inventory.find_by_barcode("1234567890123"))
    before = cart.items

    async def scenario():
        await dispatcher.start_scan()
        await dispatcher.dispatch("999")

    with pytest.raises(ScanNotFoundError) as exc_info:
        asyncio.run(scenario())

    assert exc_info.value.barcode == "999"
    assert cart.items == before
    assert dispatcher.state is ScanState.IDLE
    assert not decoder.active


def test_events_while_idle_are_ignored(dispatcher, cart):
    assert asyncio.run(dispatcher.dispatch("1234567890123")) is None
    assert cart.items == []


def test_burst_of_decodes_accepts_exactly_one(dispatcher, decoder, cart):
    decoder.script = ["1234567890123"] * 5

    item = asyncio.run(dispatcher.run())

    assert item.quantity == 1
    assert cart.items[0].quantity == 1
    assert decoder.opened == decoder.closed == 1
    assert dispatcher.state is ScanState.IDLE


def test_run_stops_on_first_miss(dispatcher, decoder, cart):
    decoder.script = ["999", "1234567890123"]

    with pytest.raises(ScanNotFoundError):
        asyncio.run(dispatcher.run())

    assert cart.items == []
    assert not decoder.active


def test_cancelled_session_releases_decoder(dispatcher, decoder):
    async def scenario():
        task = asyncio.create_task(dispatcher.run())
        await asyncio.sleep(0)
        assert decoder.active
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())

    assert not decoder.active
    assert dispatcher.state is ScanState.IDLE


def test_explicit_stop_ends_run(dispatcher, decoder):
    async def scenario():
        task = asyncio.create_task(dispatcher.run())
        await asyncio.sleep(0)
        await dispatcher.stop_scan()
        return await task

    assert asyncio.run(scenario()) is None
    assert decoder.opened == decoder.closed == 1


def test_stop_is_idempotent(dispatcher, decoder):
    async def scenario():
        await dispatcher.start_scan()
        await dispatcher.stop_scan()
        await dispatcher.stop_scan()

    asyncio.run(scenario())
    assert decoder.closed == 1


def test_keep_open_mode_accepts_every_match(inventory, cart, decoder):
    dispatcher = ScanDispatcher(inventory, cart, decoder, close_on_match=False)

    async def scenario():
        await dispatcher.start_scan()
        await dispatcher.dispatch("1234567890123")
        await dispatcher.dispatch("4006381333931")
        await dispatcher.dispatch("1234567890123")
        assert dispatcher.scanning
        await dispatcher.stop_scan()

    asyncio.run(scenario())

    assert [(i.name, i.quantity) for i in cart.items] == [("Cola", 2), ("Green Tea", 1)]
    assert not decoder.active


def test_late_push_from_closed_session_is_dropped(dispatcher, decoder, cart):
    async def scenario():
        await dispatcher.start_scan()
        stale_push = decoder.push
        await dispatcher.dispatch("1234567890123")
        stale_push("1234567890123")
        await dispatcher.start_scan()
        assert dispatcher.events.empty()
        await dispatcher.stop_scan()

    asyncio.run(scenario())
    assert cart.items[0].quantity == 1


def test_second_start_while_scanning_is_refused(dispatcher, decoder):
    async def scenario():
        await dispatcher.start_scan()
        try:
            with pytest.raises(ScannerBusyError):
                await dispatcher.start_scan()
            assert dispatcher.scanning
        finally:
            await dispatcher.stop_scan()

    asyncio.run(scenario())
    assert decoder.opened == decoder.closed == 1
