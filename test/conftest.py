import asyncio
import datetime
import logging
from collections.abc import Callable
from pathlib import Path

from pytest import fixture

from anylist_client import (
    BaseConnector,
    BaseSocket,
    BaseTransport,
    Session,
    TransportError,
)
from anylist_client.core.transport import Request, Response
from anylist_client.core.wire import (
    CalendarEventModel,
    CalendarLabelModel,
    IngredientModel,
    ListItemModel,
    MealPlanningCalendarResponse,
    OperationListModel,
    OperationModel,
    RecipeCollectionModel,
    RecipeDataResponse,
    RecipeModel,
    ShoppingListModel,
    ShoppingListsResponse,
    StarterListModel,
    StarterListsResponse,
    UserDataModel,
)

logging.basicConfig(level=logging.WARNING)

EMAIL = "user@example.com"
PASSWORD = "hunter2"
USER_ID = "user-1"


def create_user_data() -> UserDataModel:
    """
    Snapshot of an account with one list, one recipe in one collection and
    a calendar with two events.
    """
    return UserDataModel(
        user_id=USER_ID,
        shopping_lists_response=ShoppingListsResponse(
            new_lists=[
                ShoppingListModel(
                    identifier="list-1",
                    name="Groceries",
                    items=[
                        ListItemModel(
                            identifier="item-1",
                            list_id="list-1",
                            name="Milk",
                            quantity="1",
                            category_match_id="dairy",
                            user_id=USER_ID,
                        ),
                        # list id omitted as some clients do
                        ListItemModel(
                            identifier="item-2",
                            name="Eggs",
                            checked=True,
                            user_id=USER_ID,
                        ),
                    ],
                )
            ]
        ),
        starter_lists_response=StarterListsResponse(
            recent_item_lists=[
                StarterListModel(
                    list_id="list-1",
                    items=[ListItemModel(identifier="recent-1", name="Bread")],
                )
            ],
            favorite_item_lists=[
                StarterListModel(
                    list_id="list-1",
                    items=[ListItemModel(identifier="fav-1", name="Coffee")],
                )
            ],
        ),
        recipe_data_response=RecipeDataResponse(
            recipe_data_id="recipe-data-1",
            recipes=[
                RecipeModel(
                    identifier="recipe-1",
                    timestamp=1700000000.0,
                    name="Pancakes",
                    ingredients=[
                        IngredientModel(name="Flour", quantity="2 cups"),
                        IngredientModel(name="Milk", quantity="1 cup"),
                    ],
                    preparation_steps=["Mix", "Fry"],
                    servings="4",
                )
            ],
            recipe_collections=[
                RecipeCollectionModel(
                    identifier="collection-1",
                    name="Breakfast",
                    recipe_ids=["recipe-1"],
                )
            ],
        ),
        meal_planning_calendar_response=MealPlanningCalendarResponse(
            calendar_id="calendar-1",
            labels=[
                CalendarLabelModel(
                    identifier="label-1",
                    calendar_id="calendar-1",
                    hex_color="#ff0000",
                    name="Breakfast",
                    sort_index=0,
                )
            ],
            events=[
                CalendarEventModel(
                    identifier="event-1",
                    calendar_id="calendar-1",
                    date=datetime.date(2024, 5, 1),
                    recipe_id="recipe-1",
                    label_id="label-1",
                ),
                CalendarEventModel(
                    identifier="event-2",
                    calendar_id="calendar-1",
                    date=datetime.date(2024, 5, 2),
                    title="Leftovers",
                ),
            ],
        ),
    )


class FakeServer:
    """
    In-memory AnyList: issues tokens, serves user data and records
    operation batches.
    """

    def __init__(self):
        self.email = EMAIL
        self.password = PASSWORD
        self.user_data = create_user_data()

        self.access_token: str | None = None
        self.refresh_token: str | None = None
        self._token_generation = 0

        # number of calls to each endpoint
        self.token_count = 0
        self.refresh_count = 0
        self.user_data_count = 0

        # overrides
        self.delay = 0.0
        self.offline = False
        self.refresh_status: int | None = None
        self.reject_operations = False

        self.requests: list[Request] = []
        self.batches: list[tuple[str, list[OperationModel]]] = []

    @property
    def operations(self) -> list[OperationModel]:
        return [op for _, batch in self.batches for op in batch]

    @property
    def handler_ids(self) -> list[str]:
        return [op.metadata.handler_id for op in self.operations]

    def expire_access_token(self):
        self.access_token = None

    def expire_refresh_token(self):
        self.refresh_token = None

    async def handle(self, request: Request) -> Response:
        if self.offline:
            raise TransportError(f"Failed to reach {request.path}")

        self.requests.append(request)

        assert request.headers["X-AnyLeaf-API-Version"] == "3"
        form = request.form or {}

        match request.path:
            case "auth/token":
                self.token_count += 1
                await asyncio.sleep(self.delay)

                if (form.get("email"), form.get("password")) != (
                    self.email,
                    self.password,
                ):
                    return self._response(request, 401)
                return self._issue_tokens(request)

            case "auth/token/refresh":
                self.refresh_count += 1
                await asyncio.sleep(self.delay)

                if self.refresh_status is not None:
                    return self._response(request, self.refresh_status)
                if (
                    self.refresh_token is None
                    or form.get("refresh_token") != self.refresh_token
                ):
                    return self._response(request, 401)
                return self._issue_tokens(request)

        if (
            self.access_token is None
            or request.headers.get("authorization")
            != f"Bearer {self.access_token}"
        ):
            return self._response(request, 401)

        assert request.headers["X-AnyLeaf-Client-Identifier"]

        match request.path:
            case "data/user-data/get":
                self.user_data_count += 1
                return self._response(
                    request,
                    200,
                    self.user_data.model_dump_json(by_alias=True).encode(),
                )
            case (
                "data/shopping-lists/update"
                | "data/user-recipe-data/update"
                | "data/meal-planning-calendar/update"
            ):
                operations = OperationListModel.model_validate_json(
                    form["operations"]
                )
                await asyncio.sleep(self.delay)
                self.batches.append((request.path, operations.operations))

                if self.reject_operations:
                    return self._response(request, 400)
                return self._response(request, 200)

        return self._response(request, 404)

    def _issue_tokens(self, request: Request) -> Response:
        self._token_generation += 1
        self.access_token = f"access-{self._token_generation}"
        self.refresh_token = f"refresh-{self._token_generation}"

        body = (
            f'{{"access_token": "{self.access_token}", '
            f'"refresh_token": "{self.refresh_token}", '
            f'"user_id": "{USER_ID}"}}'
        )
        return self._response(request, 200, body.encode())

    def _response(
        self, request: Request, status: int, body: bytes = b""
    ) -> Response:
        return Response(status=status, body=body, request=request)


class FakeTransport(BaseTransport):
    def __init__(self, server: FakeServer):
        self.server = server
        self.close_count = 0

    async def send(self, request: Request) -> Response:
        return await self.server.handle(request)

    async def close(self):
        self.close_count += 1


class FakeSocket(BaseSocket):
    """
    Socket whose incoming messages are pushed by the test. Pushing `None`
    simulates the server closing the connection.
    """

    def __init__(self):
        self.inbox: asyncio.Queue[str | None] = asyncio.Queue()
        self.sent: list[str] = []
        self.closed = False
        self.idle = asyncio.Event()

    def push(self, message: str | None):
        self.idle.clear()
        self.inbox.put_nowait(message)

    async def wait_idle(self):
        """
        Wait until all pushed messages were handled.
        """
        await asyncio.wait_for(self.idle.wait(), 2.0)

    async def send(self, message: str):
        if self.closed:
            raise TransportError("Socket closed")
        self.sent.append(message)

    async def receive(self) -> str | None:
        if self.inbox.empty():
            self.idle.set()
        message = await self.inbox.get()
        return message

    async def close(self):
        self.closed = True


class FakeConnector(BaseConnector):
    def __init__(self):
        self.sockets: list[FakeSocket] = []
        self.headers: list[dict[str, str]] = []
        self.urls: list[str] = []
        self.connect_count = 0
        self.fail = False

    @property
    def socket(self) -> FakeSocket:
        return self.sockets[-1]

    async def connect(self, url, headers) -> BaseSocket:
        self.connect_count += 1
        self.urls.append(url)
        self.headers.append(dict(headers))

        if self.fail:
            raise TransportError(f"Failed to connect to {url}")

        socket = FakeSocket()
        self.sockets.append(socket)
        return socket


@fixture
def server() -> FakeServer:
    return FakeServer()


@fixture
def transport(server: FakeServer) -> FakeTransport:
    return FakeTransport(server)


@fixture
def connector() -> FakeConnector:
    return FakeConnector()


@fixture
def credentials_file(tmp_path: Path) -> Path:
    return tmp_path / "credentials"


@fixture
async def make_session(
    transport: FakeTransport,
    connector: FakeConnector,
    credentials_file: Path,
):
    """
    Factory creating sessions connected to the fake server, torn down after
    the test.
    """
    sessions: list[Session] = []

    def make(**kwargs) -> Session:
        kwargs.setdefault("credentials_file", credentials_file)
        kwargs.setdefault("transport", transport)
        kwargs.setdefault("connector", connector)
        kwargs.setdefault("keepalive_interval", 60.0)
        kwargs.setdefault("reconnect_delay", 0.0)

        session = Session(
            kwargs.pop("email", EMAIL),
            kwargs.pop("password", PASSWORD),
            **kwargs,
        )
        sessions.append(session)
        return session

    yield make

    for session in sessions:
        await session.teardown()


@fixture
async def session(make_session) -> Session:
    """
    Logged in session.
    """
    session = make_session()
    await session.login()
    return session


@fixture
async def loaded_session(session: Session) -> Session:
    """
    Logged in session with user data loaded.
    """
    await session.get_lists()
    return session


@fixture
def wait_until() -> Callable:
    async def wait(predicate: Callable[[], bool], timeout: float = 2.0):
        async with asyncio.timeout(timeout):
            while not predicate():
                await asyncio.sleep(0.001)

    return wait


@fixture
def user_id() -> str:
    return USER_ID


@fixture
def password() -> str:
    return PASSWORD
