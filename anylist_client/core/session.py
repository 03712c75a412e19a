"""
Implementation of session functionality.
"""

from __future__ import annotations

import asyncio
import logging
from logging import Logger
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pydantic

from .cache import Cache
from .channel import (
    KEEPALIVE_INTERVAL,
    MAX_RECONNECT_ATTEMPTS,
    RECONNECT_DELAY,
    AiohttpConnector,
    BaseConnector,
    ChannelConfig,
    ChannelState,
    LiveUpdateChannel,
)
from .codec import BaseCodec, JsonCodec
from .credentials import CredentialRecord, CredentialStore
from .events import Callback, Subscription, UpdateEvent
from .exceptions import (
    AuthenticationError,
    SyncError,
    TokenRefreshError,
    TransportError,
)
from .operation import OperationBatch
from .transport import (
    REQUEST_TIMEOUT,
    AiohttpTransport,
    BaseTransport,
    FormValue,
    HttpClient,
    Request,
    Response,
    Retry,
)
from .utils import new_id
from .wire import TokenResponse

if TYPE_CHECKING:
    from .calendar import CalendarEvent, CalendarLabel
    from .entity import BaseEntity
    from .recipe import Recipe, RecipeCollection
    from .shopping_list import Item, ShoppingList

__all__ = ["Session"]
__canonical_syms__ = __all__

DEFAULT_BASE_URL = "https://www.anylist.com"
DEFAULT_WEBSOCKET_URL = "wss://www.anylist.com/data/add-user-listener"
DEFAULT_CREDENTIALS_FILE = "~/.anylist_credentials"

TOKEN_PATH = "auth/token"
REFRESH_PATH = "auth/token/refresh"

API_VERSION = "3"
API_VERSION_HEADER = "X-AnyLeaf-API-Version"
CLIENT_ID_HEADER = "X-AnyLeaf-Client-Identifier"
AUTHORIZATION_HEADER = "authorization"

OPERATIONS_FIELD = "operations"
"""
Multipart form field carrying an encoded operation batch.
"""


class Session:
    """
    Interface to AnyList and context in which entities are loaded and
    changed.

    The session owns the account's tokens: it logs in with credentials only
    when no usable tokens were stored, transparently refreshes the access
    token when AnyList rejects it, and persists tokens so later sessions
    can reuse them. Once logged in, it keeps a live update channel open
    through which remote changes to shopping lists are received and
    published via {obj}`Session.lists_update`.

    Example usage:
    ```
    async with Session("me@example.com", "password") as session:
        shopping_list = await session.get_list_by_name("Groceries")
    ```
    """

    lists_update: UpdateEvent[list[ShoppingList]]
    """
    Fired with the refreshed shopping lists when AnyList reports that they
    were changed remotely.
    """

    _email: str
    _password: str

    _client_id: str | None = None
    """
    Persistent id of this client installation.
    """

    _access_token: str | None = None
    _refresh_token: str | None = None

    _user_id: str | None = None
    """
    Id of logged in user, as received from token response or user data.
    """

    _refresh_task: asyncio.Task | None = None
    """
    Token refresh in progress, shared by all callers needing a new token.
    """

    _websocket_url: str
    _store: CredentialStore
    _transport: BaseTransport
    _connector: BaseConnector
    _owns_transport: bool
    _owns_connector: bool
    _codec: BaseCodec
    _client: HttpClient
    _auth_client: HttpClient
    _cache: Cache
    _channel: LiveUpdateChannel
    _logger: Logger

    def __init__(
        self,
        email: str,
        password: str,
        *,
        credentials_file: Path | str | None = DEFAULT_CREDENTIALS_FILE,
        base_url: str = DEFAULT_BASE_URL,
        websocket_url: str = DEFAULT_WEBSOCKET_URL,
        transport: BaseTransport | None = None,
        connector: BaseConnector | None = None,
        codec: BaseCodec | None = None,
        keepalive_interval: float = KEEPALIVE_INTERVAL,
        max_reconnect_attempts: int = MAX_RECONNECT_ATTEMPTS,
        reconnect_delay: float = RECONNECT_DELAY,
        request_timeout: float = REQUEST_TIMEOUT,
        logger: Logger | None = None,
    ):
        """
        :param email: Account email
        :param password: Account password, also used to encrypt stored credentials
        :param credentials_file: Path of stored credentials, or `None` to not store them
        :param base_url: URL of AnyList
        :param websocket_url: URL of live update channel
        :param transport: Transport for HTTP requests, or `None` to use `aiohttp`
        :param connector: Connector for live update channel, or `None` to use `aiohttp`
        :param codec: Codec for payloads, or `None` to use JSON
        :param keepalive_interval: Seconds between keepalive messages
        :param max_reconnect_attempts: Consecutive failed reconnections of live update channel before giving up
        :param reconnect_delay: Seconds to wait before reconnecting live update channel
        :param request_timeout: Timeout of each HTTP request in seconds, if using default transport
        :param logger: Logger to use, or `None` to use package logger
        """
        self._logger = logger or logging.getLogger("anylist_client")

        self._email = email
        self._password = password
        self._websocket_url = websocket_url

        self._store = CredentialStore(
            Path(credentials_file).expanduser()
            if credentials_file is not None
            else None,
            password,
            logger=self._logger,
        )

        self._owns_transport = transport is None
        self._transport = transport or AiohttpTransport(
            base_url, timeout=request_timeout
        )

        self._owns_connector = connector is None
        self._connector = connector or AiohttpConnector()

        self._codec = codec or JsonCodec()

        self._client = HttpClient(
            self._transport,
            headers={API_VERSION_HEADER: API_VERSION},
            logger=self._logger,
        )
        self._auth_client = self._client.extend(
            before_request=[self._authorize],
            after_response=[self._retry_unauthorized],
        )

        self._cache = Cache(self)
        self.lists_update = UpdateEvent("lists_update", logger=self._logger)

        self._channel = LiveUpdateChannel(
            self._connector,
            self._channel_config,
            on_refresh=self._handle_lists_refresh,
            on_error=self.refresh_tokens,
            keepalive_interval=keepalive_interval,
            max_reconnect_attempts=max_reconnect_attempts,
            reconnect_delay=reconnect_delay,
            logger=self._logger,
        )

    def __str__(self):
        return f"Session(email={self._email}, client_id={self._client_id})"

    async def __aenter__(self):
        await self.login()
        return self

    async def __aexit__(self, exc_type, exc_val, traceback):
        await self.teardown()

    @property
    def client_id(self) -> str | None:
        """
        Persistent id of this client, generated upon first login.
        """
        return self._client_id

    @property
    def user_id(self) -> str | None:
        """
        Id of logged in user, once known.
        """
        return self._user_id

    @property
    def is_authenticated(self) -> bool:
        return self._access_token is not None

    @property
    def channel_state(self) -> ChannelState:
        return self._channel.state

    @property
    def codec(self) -> BaseCodec:
        return self._codec

    async def login(self):
        """
        Restore stored credentials and fetch new tokens using the account
        credentials if none were stored, then open the live update channel.

        :raises AuthenticationError: If AnyList rejected the account credentials
        """
        self._load_credentials()

        if self._access_token is None or self._refresh_token is None:
            self._logger.info(
                "No saved tokens found, fetching new tokens using credentials"
            )
            await self._refresh_shared(self._access_token)

        self._channel.start()

    async def teardown(self):
        """
        Stop the live update channel and release network resources. Safe to
        invoke more than once, or without having logged in.
        """
        await self._channel.close()

        if self._owns_connector:
            await self._connector.close()
        if self._owns_transport:
            await self._transport.close()

    async def request(
        self, path: str, *, form: dict[str, FormValue] | None = None
    ) -> Response:
        """
        Send an authenticated request. If the access token is rejected, it's
        refreshed and the request is retried once.

        :raises AuthenticationError: If no valid token could be obtained
        :raises TransportError: Upon network failure or unhandled status code
        """
        if self._client_id is None:
            self._load_credentials()

        if self._access_token is None:
            await self._refresh_shared(None)

        return await self._auth_client.post(path, form=form)

    async def refresh_tokens(self):
        """
        Refresh the access token. Joins a refresh already in progress
        rather than starting another.

        :raises AuthenticationError: If no valid token could be obtained
        """
        await self._refresh_shared(self._access_token)

    async def submit(self, batch: OperationBatch):
        """
        Encode batch and send it to the endpoint handling it.

        :raises SyncError: If AnyList rejected the batch
        """
        if len(batch) == 0:
            return

        self._logger.debug(f"Submitting {batch}")

        payload = self._codec.encode_operations(batch.operations)

        try:
            await self.request(
                batch.endpoint.value, form={OPERATIONS_FIELD: payload}
            )
        except TransportError as e:
            if e.status is None:
                raise
            raise SyncError(batch.handler_ids, e.status) from e

    def subscribe(
        self, callback: Callback[list[ShoppingList]]
    ) -> Subscription[list[ShoppingList]]:
        """
        Register callback to be invoked with the refreshed shopping lists
        when they're changed remotely.
        """
        return self.lists_update.subscribe(callback)

    async def get_lists(self, refresh: bool = False) -> list[ShoppingList]:
        """
        Get shopping lists, loading user data if not already loaded.

        :param refresh: Whether to reload user data
        """
        await self._cache.load(refresh=refresh)
        return list(self._cache.lists)

    def get_list_by_id(self, identifier: str) -> ShoppingList | None:
        return self._cache.get_list_by_id(identifier)

    def get_list_by_name(self, name: str) -> ShoppingList | None:
        return self._cache.get_list_by_name(name)

    def get_recent_items(self, list_id: str) -> list[Item]:
        """
        Get items recently added to the given list.
        """
        return list(self._cache.recent_items.get(list_id, []))

    def get_favorite_items(self, list_id: str) -> list[Item]:
        """
        Get favorite items of the given list.
        """
        return list(self._cache.favorite_items.get(list_id, []))

    async def get_recipes(self, refresh: bool = False) -> list[Recipe]:
        await self._cache.load(refresh=refresh)
        return list(self._cache.recipes)

    def get_recipe_by_id(self, identifier: str) -> Recipe | None:
        return self._cache.get_recipe_by_id(identifier)

    def get_recipe_by_name(self, name: str) -> Recipe | None:
        return self._cache.get_recipe_by_name(name)

    async def get_recipe_collections(
        self, refresh: bool = False
    ) -> list[RecipeCollection]:
        await self._cache.load(refresh=refresh)
        return list(self._cache.recipe_collections)

    def get_recipe_collection_by_id(
        self, identifier: str
    ) -> RecipeCollection | None:
        return self._cache.get_recipe_collection_by_id(identifier)

    def get_recipe_collection_by_name(
        self, name: str
    ) -> RecipeCollection | None:
        return self._cache.get_recipe_collection_by_name(name)

    async def get_meal_planning_calendar_events(
        self, refresh: bool = False
    ) -> list[CalendarEvent]:
        await self._cache.load(refresh=refresh)
        return list(self._cache.events)

    async def get_meal_planning_calendar_labels(
        self, refresh: bool = False
    ) -> list[CalendarLabel]:
        await self._cache.load(refresh=refresh)
        return list(self._cache.labels)

    def create_item(self, **values: Any) -> Item:
        """
        Create a new item, to be added to a list with
        {obj}`ShoppingList.add_item`.
        """
        from .shopping_list import Item

        item = Item(session=self, **values)
        self._cache.add_created(item)
        return item

    async def create_recipe(self, **values: Any) -> Recipe:
        """
        Create a new recipe, to be saved with {obj}`Recipe.save`. Loads user
        data first if needed, since recipes are saved to the user's recipe
        data.
        """
        from .recipe import Recipe

        await self._cache.get_recipe_data_id()

        recipe = Recipe(session=self, **values)
        self._cache.add_created(recipe)
        return recipe

    def create_recipe_collection(self, **values: Any) -> RecipeCollection:
        """
        Create a new recipe collection, to be saved with
        {obj}`RecipeCollection.save`.
        """
        from .recipe import RecipeCollection

        collection = RecipeCollection(session=self, **values)
        self._cache.add_created(collection)
        return collection

    async def create_meal_planning_calendar_event(
        self, **values: Any
    ) -> CalendarEvent:
        """
        Create a new meal planning calendar event in the user's calendar, to
        be saved with {obj}`CalendarEvent.save`.
        """
        from .calendar import CalendarEvent

        if values.get("calendar_id") is None:
            values["calendar_id"] = await self._cache.get_calendar_id()

        event = CalendarEvent(session=self, **values)
        self._cache.add_created(event)
        return event

    @property
    def dirty_count(self) -> int:
        """
        Number of dirty {obj}`BaseEntity` objects.
        """
        return len(self.dirty_set)

    @property
    def dirty_set(self) -> set[BaseEntity]:
        """
        Copy of all dirty {obj}`BaseEntity` objects.
        """
        return self._cache.dirty_set

    def get_dirty_summary(self) -> str:
        """
        Get a summary of entities with pending changes.
        """
        dirty_set = self.dirty_set

        lines = [f"Pending changes: {self._cache._get_summary(dirty_set)}"]
        lines += [
            _indent_str(entity.str_summary, " " * 4)
            for entity in sorted(dirty_set, key=lambda e: e.str_short)
        ]

        return "\n".join(lines)

    def _load_credentials(self):
        """
        Restore stored credentials, generating and storing a client id if
        none was stored.
        """
        record = self._store.load()

        if record is not None:
            self._client_id = record.client_id
            self._access_token = record.access_token
            self._refresh_token = record.refresh_token

        if self._client_id is None:
            self._client_id = new_id()
            self._persist()

    def _persist(self):
        self._store.store(
            CredentialRecord(
                client_id=self._client_id,
                access_token=self._access_token,
                refresh_token=self._refresh_token,
            )
        )

    def _set_tokens(self, tokens: TokenResponse):
        self._access_token = tokens.access_token
        self._refresh_token = tokens.refresh_token

        if tokens.user_id is not None:
            self._user_id = tokens.user_id

        self._persist()

    async def _refresh_shared(self, stale_token: str | None):
        """
        Obtain a new access token to replace stale_token, sharing a single
        refresh among concurrent callers.

        A caller whose stale token was already replaced returns immediately.
        Cancelling a caller doesn't cancel the shared refresh.
        """
        if self._refresh_task is None:
            if (
                self._access_token is not None
                and self._access_token != stale_token
            ):
                return

            self._refresh_task = asyncio.create_task(self._refresh_run())

        await asyncio.shield(self._refresh_task)

    async def _refresh_run(self):
        try:
            await self._refresh()
        finally:
            self._refresh_task = None

    async def _refresh(self):
        """
        Refresh the access token, falling back to the account credentials if
        the refresh token was rejected.
        """
        if self._refresh_token is None:
            await self._fetch_tokens()
            return

        self._logger.info("Refreshing access token")

        try:
            response = await self._client.post(
                REFRESH_PATH, form={"refresh_token": self._refresh_token}
            )
        except TransportError as e:
            if e.status == 401:
                self._logger.info(
                    "Failed to refresh access token, fetching new tokens using credentials"
                )
                await self._fetch_tokens()
                return

            if e.status is None:
                raise

            raise TokenRefreshError(
                f"Failed to refresh access token: status code {e.status}"
            ) from e

        self._set_tokens(_parse_tokens(response, TokenRefreshError))

    async def _fetch_tokens(self):
        """
        Fetch new tokens using the account credentials.
        """
        try:
            response = await self._client.post(
                TOKEN_PATH,
                form={"email": self._email, "password": self._password},
            )
        except TransportError as e:
            if e.status is None:
                raise

            raise AuthenticationError(
                f"Failed to fetch tokens using credentials: status code {e.status}"
            ) from e

        self._set_tokens(_parse_tokens(response, AuthenticationError))

    def _authorize(self, request: Request) -> Request:
        return request.merge_headers(
            {
                CLIENT_ID_HEADER: self._client_id or "",
                AUTHORIZATION_HEADER: f"Bearer {self._access_token}",
            }
        )

    async def _retry_unauthorized(
        self, response: Response, retry: Retry
    ) -> Response:
        if response.status != 401:
            return response

        self._logger.info(
            f"Access token rejected by {response.request.path}, refreshing"
        )

        await self._refresh_shared(_bearer_token(response.request))

        return await retry(
            {AUTHORIZATION_HEADER: f"Bearer {self._access_token}"}
        )

    def _channel_config(self) -> ChannelConfig:
        return ChannelConfig(
            url=self._websocket_url,
            access_token=self._access_token or "",
            client_id=self._client_id or "",
            api_version=API_VERSION,
        )

    async def _handle_lists_refresh(self):
        await self._cache.load(refresh=True)
        await self.lists_update.emit(list(self._cache.lists))


class SessionContainer:
    """
    Indicates that an object is associated with a Session.
    """

    _session: Session

    def __init__(self, session: Session):
        self._session = session


def _parse_tokens(
    response: Response, error_cls: type[AuthenticationError]
) -> TokenResponse:
    try:
        return TokenResponse.model_validate_json(response.body)
    except pydantic.ValidationError as e:
        raise error_cls(
            f"Invalid token response from {response.request.path}"
        ) from e


def _bearer_token(request: Request) -> str | None:
    """
    Get the access token a request was sent with.
    """
    value = request.headers.get(AUTHORIZATION_HEADER)
    if value is None or not value.startswith("Bearer "):
        return None
    return value.removeprefix("Bearer ")


def _indent_str(value: str, indent: str) -> str:
    return "\n".join(f"{indent}{line}" for line in value.split("\n"))
