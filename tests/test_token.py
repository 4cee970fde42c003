"""Tests for the bearer token lifecycle."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from conftest import FIXED_NOW, FakeTokenFetcher

from azure_metrics_exporter.domain.token import Credential, TokenProvider
from azure_metrics_exporter.errors import AuthError, TransportError


def _clock(now: datetime):
    return lambda: now


def test_needs_refresh_inside_skew_window() -> None:
    cred = Credential(token="t", expires_on=FIXED_NOW + timedelta(minutes=5))
    assert cred.needs_refresh(FIXED_NOW, timedelta(minutes=10)) is True


def test_no_refresh_outside_skew_window() -> None:
    cred = Credential(token="t", expires_on=FIXED_NOW + timedelta(minutes=30))
    assert cred.needs_refresh(FIXED_NOW, timedelta(minutes=10)) is False


def test_get_without_token_raises_auth_error() -> None:
    provider = TokenProvider(FakeTokenFetcher(), clock=_clock(FIXED_NOW))
    with pytest.raises(AuthError):
        provider.get()


@pytest.mark.asyncio
async def test_fetch_token_stores_token_and_expiry() -> None:
    expiry = FIXED_NOW + timedelta(hours=1)
    fetcher = FakeTokenFetcher(FakeTokenFetcher.token("abc", expiry))
    provider = TokenProvider(fetcher, clock=_clock(FIXED_NOW))

    cred = await provider.fetch_token()

    assert cred.token == "abc"
    assert cred.expires_on == expiry
    assert provider.get() == "abc"


@pytest.mark.asyncio
async def test_ensure_fresh_token_is_noop_when_far_from_expiry() -> None:
    fetcher = FakeTokenFetcher(
        FakeTokenFetcher.token("first", FIXED_NOW + timedelta(hours=1)),
        FakeTokenFetcher.token("second", FIXED_NOW + timedelta(hours=2)),
    )
    provider = TokenProvider(fetcher, clock=_clock(FIXED_NOW))
    await provider.fetch_token()

    await provider.ensure_fresh_token()

    assert fetcher.calls == 1
    assert provider.get() == "first"


@pytest.mark.asyncio
async def test_ensure_fresh_token_refreshes_near_expiry() -> None:
    fetcher = FakeTokenFetcher(
        FakeTokenFetcher.token("first", FIXED_NOW + timedelta(minutes=5)),
        FakeTokenFetcher.token("second", FIXED_NOW + timedelta(hours=1)),
    )
    provider = TokenProvider(fetcher, clock=_clock(FIXED_NOW))
    await provider.fetch_token()
    credential = provider.credential

    await provider.refresh_if_needed()

    assert fetcher.calls == 2
    assert provider.get() == "second"
    # Same object, mutated in place
    assert provider.credential is credential


@pytest.mark.asyncio
async def test_concurrent_refreshes_fetch_once() -> None:
    fetcher = FakeTokenFetcher(
        FakeTokenFetcher.token("fresh", FIXED_NOW + timedelta(hours=1))
    )
    provider = TokenProvider(fetcher, clock=_clock(FIXED_NOW))

    await asyncio.gather(*(provider.ensure_fresh_token() for _ in range(5)))

    assert fetcher.calls == 1


@pytest.mark.asyncio
async def test_fetch_failure_is_wrapped_as_auth_error() -> None:
    fetcher = FakeTokenFetcher(
        TransportError("unable to get token", status_code=401, body="denied")
    )
    provider = TokenProvider(fetcher, clock=_clock(FIXED_NOW))

    with pytest.raises(AuthError) as excinfo:
        await provider.ensure_fresh_token()

    assert excinfo.value.status_code == 401
    assert "error refreshing access token" in excinfo.value.message
    assert isinstance(excinfo.value.__cause__, TransportError)


def test_expired_token_is_never_returned() -> None:
    provider = TokenProvider(FakeTokenFetcher(), clock=_clock(FIXED_NOW))
    provider.credential.token = "stale"
    provider.credential.expires_on = FIXED_NOW - timedelta(seconds=1)
    with pytest.raises(AuthError):
        provider.get()


def test_credential_defaults_to_epoch() -> None:
    assert Credential().expires_on == datetime(1970, 1, 1, tzinfo=timezone.utc)
