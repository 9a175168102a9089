"""Tests for DeviceTokenService: push token registry."""

import uuid
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import select, update

from parcelflow.models.enums import DevicePlatform
from parcelflow.models.push_device_token import PushDeviceToken
from parcelflow.modules.notifications.device_service import DeviceTokenService


@pytest.fixture
def user_id():
    return uuid.uuid4()


async def _register(session_factory, user_id, token, platform=DevicePlatform.WEB):
    async with session_factory() as session:
        async with session.begin():
            return await DeviceTokenService(session).register_token(user_id, token, platform)


async def _active(session_factory, user_id):
    async with session_factory() as session:
        return await DeviceTokenService(session).active_tokens(user_id)


class TestRegister:
    @pytest.mark.asyncio
    async def test_register_new_token(self, session_factory, user_id):
        device = await _register(session_factory, user_id, "tok-a", DevicePlatform.ANDROID)

        assert device.is_active
        assert device.platform == DevicePlatform.ANDROID
        assert await _active(session_factory, user_id) == ["tok-a"]

    @pytest.mark.asyncio
    async def test_registering_twice_keeps_one_row(self, session_factory, user_id):
        await _register(session_factory, user_id, "tok-a")
        await _register(session_factory, user_id, "tok-a", DevicePlatform.IOS)

        async with session_factory() as session:
            rows = (await session.execute(select(PushDeviceToken))).scalars().all()
        assert len(rows) == 1
        assert rows[0].platform == DevicePlatform.IOS

    @pytest.mark.asyncio
    async def test_reregistering_reactivates(self, session_factory, user_id):
        await _register(session_factory, user_id, "tok-a")
        async with session_factory() as session:
            async with session.begin():
                await DeviceTokenService(session).unregister_token(user_id, "tok-a")
        assert await _active(session_factory, user_id) == []

        await _register(session_factory, user_id, "tok-a")

        assert await _active(session_factory, user_id) == ["tok-a"]

    @pytest.mark.asyncio
    async def test_tokens_are_per_user(self, session_factory, user_id):
        other = uuid.uuid4()
        await _register(session_factory, user_id, "tok-a")
        await _register(session_factory, other, "tok-b")

        assert await _active(session_factory, user_id) == ["tok-a"]
        assert await _active(session_factory, other) == ["tok-b"]


    @pytest.mark.asyncio
    async def test_list_devices_returns_active_rows(self, session_factory, user_id):
        await _register(session_factory, user_id, "tok-a", DevicePlatform.ANDROID)
        await _register(session_factory, user_id, "tok-b")
        async with session_factory() as session:
            async with session.begin():
                await DeviceTokenService(session).unregister_token(user_id, "tok-b")

        async with session_factory() as session:
            devices = await DeviceTokenService(session).list_devices(user_id)

        assert [(d.token, d.platform) for d in devices] == [("tok-a", DevicePlatform.ANDROID)]


class TestDeactivate:
    @pytest.mark.asyncio
    async def test_unregister_unknown_token(self, session_factory, user_id):
        async with session_factory() as session:
            assert await DeviceTokenService(session).unregister_token(user_id, "nope") is False

    @pytest.mark.asyncio
    async def test_deactivate_only_named_tokens(self, session_factory, user_id):
        for token in ("tok-a", "tok-b", "tok-c"):
            await _register(session_factory, user_id, token)

        async with session_factory() as session:
            async with session.begin():
                count = await DeviceTokenService(session).deactivate_tokens(
                    user_id, ["tok-a", "tok-c", "missing"]
                )

        assert count == 2
        assert await _active(session_factory, user_id) == ["tok-b"]

    @pytest.mark.asyncio
    async def test_deactivate_nothing(self, session_factory, user_id):
        async with session_factory() as session:
            assert await DeviceTokenService(session).deactivate_tokens(user_id, []) == 0


class TestCleanup:
    @pytest.mark.asyncio
    async def test_removes_only_old_inactive_tokens(self, session_factory, user_id):
        for token in ("old-inactive", "new-inactive", "old-active"):
            await _register(session_factory, user_id, token)

        long_ago = datetime.now(UTC) - timedelta(days=90)
        async with session_factory() as session:
            async with session.begin():
                await DeviceTokenService(session).deactivate_tokens(
                    user_id, ["old-inactive", "new-inactive"]
                )
                await session.execute(
                    update(PushDeviceToken)
                    .where(PushDeviceToken.token.in_(["old-inactive", "old-active"]))
                    .values(updated_at=long_ago)
                    .execution_options(synchronize_session=False)
                )

        async with session_factory() as session:
            async with session.begin():
                removed = await DeviceTokenService(session).cleanup_inactive(30)

        assert removed == 1
        async with session_factory() as session:
            remaining = (await session.execute(select(PushDeviceToken.token))).scalars().all()
        assert sorted(remaining) == ["new-inactive", "old-active"]
