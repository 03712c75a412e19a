import asyncio

from pytest import raises

from anylist_client import (
    AuthenticationError,
    ChannelState,
    CredentialStore,
    Session,
    TokenRefreshError,
    TransportError,
)


async def test_login(make_session, server, connector, credentials_file, user_id):
    session = make_session()
    assert not session.is_authenticated

    await session.login()

    assert session.is_authenticated
    assert session.user_id == user_id
    assert server.token_count == 1
    assert server.refresh_count == 0

    # client id generated as 32 hex digits
    assert session.client_id is not None
    assert len(session.client_id) == 32
    int(session.client_id, 16)

    # tokens persisted
    record = CredentialStore(credentials_file, server.password).load()
    assert record is not None
    assert record.client_id == session.client_id
    assert record.access_token == server.access_token
    assert record.refresh_token == server.refresh_token


async def test_login_saved(make_session, server, wait_until, connector):
    session1 = make_session()
    await session1.login()
    await session1.teardown()

    session2 = make_session()
    await session2.login()

    # tokens reused
    assert server.token_count == 1
    assert session2.client_id == session1.client_id

    # saved access token is accepted
    await session2.get_lists()
    assert server.refresh_count == 0


async def test_login_rejected(make_session):
    session = make_session(password="wrong")

    with raises(AuthenticationError):
        await session.login()

    assert not session.is_authenticated


async def test_login_offline(make_session, server):
    server.offline = True
    session = make_session()

    with raises(TransportError) as e:
        await session.login()

    assert e.value.status is None


async def test_login_no_persistence(make_session, server):
    session1 = make_session(credentials_file=None)
    await session1.login()

    session2 = make_session(credentials_file=None)
    await session2.login()

    assert server.token_count == 2
    assert session1.client_id != session2.client_id


async def test_context(make_session, connector, wait_until):
    async with make_session() as session:
        assert session.is_authenticated
        await wait_until(lambda: session.channel_state is ChannelState.OPEN)

    assert session.channel_state is ChannelState.DISCONNECTED


async def test_request_headers(session: Session, server):
    await session.request("data/user-data/get")

    request = server.requests[-1]
    assert request.headers["authorization"] == f"Bearer {server.access_token}"
    assert request.headers["X-AnyLeaf-Client-Identifier"] == session.client_id
    assert request.headers["X-AnyLeaf-API-Version"] == "3"


async def test_request_before_login(make_session, server):
    session = make_session()

    response = await session.request("data/user-data/get")

    assert response.ok
    assert server.token_count == 1
    assert session.client_id is not None


async def test_expired_access_token(session: Session, server):
    server.expire_access_token()

    response = await session.request("data/user-data/get")

    assert response.ok
    assert server.refresh_count == 1
    assert server.token_count == 1

    # original request and its retry
    user_data_requests = [
        r for r in server.requests if r.path == "data/user-data/get"
    ]
    assert len(user_data_requests) == 2
    assert user_data_requests[-1].headers["authorization"] == (
        f"Bearer {server.access_token}"
    )


async def test_expired_refresh_token(session: Session, server):
    server.expire_access_token()
    server.expire_refresh_token()

    response = await session.request("data/user-data/get")

    # refresh rejected, fell back to credentials
    assert response.ok
    assert server.refresh_count == 1
    assert server.token_count == 2


async def test_expired_credentials(session: Session, server):
    server.expire_access_token()
    server.expire_refresh_token()
    server.password = "changed"

    with raises(AuthenticationError):
        await session.request("data/user-data/get")


async def test_refresh_error(session: Session, server):
    server.expire_access_token()
    server.refresh_status = 500

    with raises(TokenRefreshError):
        await session.request("data/user-data/get")

    # no fallback to credentials
    assert server.token_count == 1


async def test_refresh_persisted(session: Session, server, credentials_file):
    await session.refresh_tokens()

    record = CredentialStore(credentials_file, server.password).load()
    assert record is not None
    assert record.access_token == server.access_token == "access-2"


async def test_single_flight(session: Session, server):
    """
    Concurrent requests rejected with the same token share one refresh.
    """
    server.expire_access_token()
    server.delay = 0.05

    responses = await asyncio.gather(
        *[session.request("data/user-data/get") for _ in range(5)]
    )

    assert all(response.ok for response in responses)
    assert server.refresh_count == 1

    # all requests completed using the same refreshed token
    token = f"Bearer {server.access_token}"
    assert all(
        response.request.headers["authorization"] == token
        for response in responses
    )
    retried = [
        request
        for request in server.requests
        if request.path == "data/user-data/get"
        and request.headers["authorization"] == token
    ]
    assert len(retried) == 5


async def test_single_flight_forced(session: Session, server):
    server.delay = 0.05

    await asyncio.gather(*[session.refresh_tokens() for _ in range(3)])

    assert server.refresh_count == 1


async def test_single_flight_cancel(session: Session, server):
    """
    Abandoning a caller doesn't abandon the shared refresh.
    """
    server.delay = 0.05

    task1 = asyncio.create_task(session.refresh_tokens())
    task2 = asyncio.create_task(session.refresh_tokens())
    await asyncio.sleep(0.01)

    task1.cancel()
    await task2

    assert task1.cancelled()
    assert server.refresh_count == 1
    assert session._access_token == server.access_token


async def test_stale_token_skips_refresh(session: Session, server):
    await session.refresh_tokens()
    assert server.refresh_count == 1

    # a caller which saw the previous token doesn't refresh again
    await session._refresh_shared("access-1")
    assert server.refresh_count == 1


async def test_teardown(make_session, connector, transport, wait_until):
    session = make_session()

    # safe before login
    await session.teardown()

    await session.login()
    await wait_until(lambda: session.channel_state is ChannelState.OPEN)

    await session.teardown()
    await session.teardown()

    assert session.channel_state is ChannelState.DISCONNECTED
    assert connector.socket.closed

    # injected transport isn't owned by session
    assert transport.close_count == 0


async def test_dirty_summary(loaded_session: Session):
    assert loaded_session.dirty_count == 0

    shopping_list = loaded_session.get_list_by_name("Groceries")
    assert shopping_list is not None
    item = shopping_list.get_item_by_name("Milk")
    assert item is not None

    item.name = "Oat milk"
    new_item = loaded_session.create_item(name="Butter")

    assert loaded_session.dirty_set == {item, new_item}
    assert loaded_session.dirty_count == 2

    summary = loaded_session.get_dirty_summary()
    assert "1/1 items" in summary
    assert "Oat milk" in summary
