"""Tests for LifecycleStore: snapshot reads, guarded writes, streamed history."""

import uuid

import pytest
from sqlalchemy import select
from sqlalchemy.exc import InvalidRequestError

from parcelflow.exceptions import ConflictException, NotFoundException
from parcelflow.models.enums import ShipmentStatus
from parcelflow.models.shipment import Shipment
from parcelflow.modules.tracking.store import LifecycleStore


async def _history(session, shipment_id):
    return [record async for record in LifecycleStore(session).history(shipment_id)]


class TestLoadCurrent:
    @pytest.mark.asyncio
    async def test_returns_status_and_parties(self, db_session, make_shipment, parties):
        shipment_id = await make_shipment(ShipmentStatus.PICKED_UP)

        snapshot = await LifecycleStore(db_session).load_current(shipment_id)

        assert snapshot.shipment_id == shipment_id
        assert snapshot.status == ShipmentStatus.PICKED_UP
        assert snapshot.sender_id == parties.sender_id
        assert snapshot.carrier_id == parties.carrier_id

    @pytest.mark.asyncio
    async def test_missing_shipment_raises_not_found(self, db_session):
        with pytest.raises(NotFoundException):
            await LifecycleStore(db_session).load_current(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_unmatched_shipment_has_no_carrier(self, db_session, make_shipment):
        shipment_id = await make_shipment(with_carrier=False)

        snapshot = await LifecycleStore(db_session).load_current(shipment_id)

        assert snapshot.carrier_id is None


class TestAppendTransition:
    @pytest.mark.asyncio
    async def test_writes_status_and_history_together(
        self, session_factory, make_shipment, parties
    ):
        shipment_id = await make_shipment()

        async with session_factory() as session:
            async with session.begin():
                store = LifecycleStore(session)
                snapshot = await store.load_current(shipment_id)
                record = await store.append_transition(
                    snapshot,
                    ShipmentStatus.ACCEPTED,
                    parties.carrier_id,
                    note="On my way",
                    location="Depot 4",
                    evidence_ref="photos/abc.jpg",
                )

        assert record.sequence == 1
        assert record.from_status == ShipmentStatus.REQUESTED

        async with session_factory() as session:
            shipment = await session.get(Shipment, shipment_id)
            history = await _history(session, shipment_id)

        assert shipment.status == ShipmentStatus.ACCEPTED
        assert len(history) == 1
        assert history[0].status == ShipmentStatus.ACCEPTED
        assert history[0].actor_id == parties.carrier_id
        assert history[0].note == "On my way"
        assert history[0].location == "Depot 4"
        assert history[0].evidence_ref == "photos/abc.jpg"

    @pytest.mark.asyncio
    async def test_sequence_increments_per_shipment(self, session_factory, make_shipment, parties):
        first = await make_shipment()
        other = await make_shipment()

        for target in (ShipmentStatus.ACCEPTED, ShipmentStatus.PICKED_UP):
            async with session_factory() as session:
                async with session.begin():
                    store = LifecycleStore(session)
                    snapshot = await store.load_current(first)
                    await store.append_transition(snapshot, target, parties.carrier_id)

        async with session_factory() as session:
            async with session.begin():
                store = LifecycleStore(session)
                record = await store.append_transition(
                    await store.load_current(other), ShipmentStatus.ACCEPTED, parties.carrier_id
                )

        assert record.sequence == 1
        async with session_factory() as session:
            assert [r.sequence for r in await _history(session, first)] == [1, 2]

    @pytest.mark.asyncio
    async def test_stale_snapshot_raises_conflict_and_writes_nothing(
        self, session_factory, make_shipment, parties
    ):
        shipment_id = await make_shipment(ShipmentStatus.ACCEPTED)

        async with session_factory() as stale_session:
            stale_store = LifecycleStore(stale_session)
            stale = await stale_store.load_current(shipment_id)

            async with session_factory() as session:
                async with session.begin():
                    store = LifecycleStore(session)
                    await store.append_transition(
                        await store.load_current(shipment_id),
                        ShipmentStatus.PICKED_UP,
                        parties.carrier_id,
                    )

            with pytest.raises(ConflictException):
                await stale_store.append_transition(
                    stale, ShipmentStatus.DISPUTED, parties.sender_id
                )
            await stale_session.rollback()

        async with session_factory() as session:
            status = await session.scalar(
                select(Shipment.status).where(Shipment.id == shipment_id)
            )
            history = await _history(session, shipment_id)

        assert status == ShipmentStatus.PICKED_UP
        assert [r.status for r in history] == [ShipmentStatus.PICKED_UP]


class TestHistory:
    @pytest.mark.asyncio
    async def test_empty_history(self, db_session, make_shipment):
        shipment_id = await make_shipment()

        assert await _history(db_session, shipment_id) == []

    @pytest.mark.asyncio
    async def test_history_is_restartable(self, session_factory, make_shipment, parties):
        shipment_id = await make_shipment()
        async with session_factory() as session:
            async with session.begin():
                store = LifecycleStore(session)
                await store.append_transition(
                    await store.load_current(shipment_id),
                    ShipmentStatus.ACCEPTED,
                    parties.carrier_id,
                )

        async with session_factory() as session:
            store = LifecycleStore(session)
            stream = store.history(shipment_id)
            first_record = await stream.__anext__()
            await stream.aclose()

            full = [r async for r in store.history(shipment_id)]

        assert first_record.id == full[0].id
        assert len(full) == 1

    @pytest.mark.asyncio
    async def test_abandoned_history_closes_its_stream(
        self, session_factory, make_shipment, parties, monkeypatch
    ):
        shipment_id = await make_shipment()
        async with session_factory() as session:
            async with session.begin():
                store = LifecycleStore(session)
                snapshot = await store.load_current(shipment_id)
                await store.append_transition(snapshot, ShipmentStatus.ACCEPTED, parties.carrier_id)

        class RecordingStream:
            def __init__(self, result):
                self.result = result
                self.closed = False

            def __aiter__(self):
                return self.result.__aiter__()

            async def close(self):
                self.closed = True
                await self.result.close()

        opened = []

        async with session_factory() as session:
            real_stream_scalars = session.stream_scalars

            async def recording_stream_scalars(statement):
                stream = RecordingStream(await real_stream_scalars(statement))
                opened.append(stream)
                return stream

            monkeypatch.setattr(session, "stream_scalars", recording_stream_scalars)
            history = LifecycleStore(session).history(shipment_id)
            await history.__anext__()
            await history.aclose()

        assert len(opened) == 1
        assert opened[0].closed


class TestRelationships:
    @pytest.mark.asyncio
    async def test_unloaded_relationship_access_raises(self, session_factory, make_shipment):
        shipment_id = await make_shipment()

        async with session_factory() as session:
            shipment = await session.get(Shipment, shipment_id)

            with pytest.raises(InvalidRequestError):
                shipment.transitions
