from __future__ import annotations

import threading
from datetime import timedelta
from urllib.parse import parse_qs, urlsplit

import pytest

from app.clients.shopify_oauth import AccessTokenResponse, OAuthTokenExchangeError
from app.clients.sqlite_store import SQLiteShopRepository
from app.core.errors import (
    InvalidShopDomain,
    InvalidState,
    MissingCallbackParameters,
    MissingSession,
    MissingShopDomain,
    SessionDomainMismatch,
    SessionExpired,
    ShopNotFoundError,
    ShopNotInstalled,
    SignatureMismatch,
    StoreError,
)
from app.models.shop import Shop
from app.services.install_flow import FlowState, InstallFlow, InstallFlowConfig
from app.services.request_signature import compute_signature
from app.services.session_codec import SessionCodec
from app.services.shop_domain import ShopDomainValidator
from app.services.state_store import InMemoryStateStore
from app.services.token_cipher import CredentialCipher

API_SECRET = "shared-secret"
SHOP = "acme.myshopify.test"

pytestmark = pytest.mark.anyio


class InMemoryShopRepository:
    def __init__(self) -> None:
        self.shops: dict[str, Shop] = {}
        self.fail_lookups = False

    def get_by_domain(self, shop: str) -> Shop:
        if self.fail_lookups:
            raise StoreError("Failed to load shop.")
        try:
            return self.shops[shop]
        except KeyError:
            raise ShopNotFoundError(shop) from None

    def exists(self, shop: str) -> bool:
        if self.fail_lookups:
            raise StoreError("Failed to load shop.")
        return shop in self.shops

    def upsert(self, shop: str, access_token: str, scopes: str) -> Shop:
        record = Shop(
            id=len(self.shops) + 1, shop_domain=shop, access_token=access_token, scopes=scopes
        )
        self.shops[shop] = record
        return record


class RecordingOAuthClient:
    def __init__(self) -> None:
        self.states: list[str] = []
        self.codes: list[str] = []
        self.fail = False

    def build_authorization_url(self, shop: str, state: str) -> str:
        self.states.append(state)
        return f"https://{shop}/admin/oauth/authorize?state={state}"

    async def exchange_code(self, shop: str, code: str) -> AccessTokenResponse:
        self.codes.append(code)
        if self.fail:
            raise OAuthTokenExchangeError("Token endpoint returned status 500.")
        return AccessTokenResponse(access_token="shpat_token", scope="read_products")


@pytest.fixture()
def parts(clock):
    states = InMemoryStateStore(clock=clock)
    shops = InMemoryShopRepository()
    oauth = RecordingOAuthClient()
    codec = SessionCodec("session-secret", clock=clock)
    flow = InstallFlow(
        InstallFlowConfig(
            api_key="api-key",
            api_secret=API_SECRET,
            scopes="read_products",
            callback_url="https://app.example.com/api/auth/callback",
        ),
        validator=ShopDomainValidator("myshopify.test"),
        state_store=states,
        shop_repository=shops,
        oauth_client=oauth,
        session_codec=codec,
    )
    return flow, states, shops, oauth, codec


def _sign(params: dict[str, str], secret: str = API_SECRET) -> dict[str, str]:
    return {**params, "hmac": compute_signature(params, secret)}


def _callback_params(state: str, shop: str = SHOP, code: str = "auth-code") -> dict:
    return _sign(
        {"shop": shop, "code": code, "state": state, "timestamp": "1700000000"}
    )


async def test_login_then_callback_succeeds_once(parts) -> None:
    flow, _, shops, oauth, codec = parts

    login = await flow.login({"shop": SHOP})
    assert login.state is FlowState.PENDING_INSTALL
    assert login.session_token is None
    nonce = oauth.states[-1]
    assert parse_qs(urlsplit(login.redirect_url).query)["state"] == [nonce]

    params = _callback_params(nonce)
    outcome = await flow.callback(params)
    assert outcome.state is FlowState.SESSION_ACTIVE
    assert outcome.redirect_url == "/api/dashboard?shop=acme.myshopify.test"
    assert codec.verify(outcome.session_token) == SHOP
    assert shops.shops[SHOP].access_token == "shpat_token"
    assert oauth.codes == ["auth-code"]

    with pytest.raises(InvalidState):
        await flow.callback(params)
    assert oauth.codes == ["auth-code"]


async def test_login_normalizes_domain(parts) -> None:
    flow, _, _, _, _ = parts

    outcome = await flow.login({"shop": "  ACME.myshopify.test "})

    assert outcome.shop == SHOP


async def test_login_rejects_missing_or_invalid_shop(parts) -> None:
    flow, states, _, _, _ = parts

    with pytest.raises(MissingShopDomain):
        await flow.login({})
    with pytest.raises(InvalidShopDomain):
        await flow.login({"shop": "acme.example.com"})
    assert len(states) == 0


async def test_login_rejects_bad_signature_when_present(parts) -> None:
    flow, states, _, _, _ = parts
    params = _sign({"shop": SHOP, "timestamp": "1700000000"}, secret="wrong")

    with pytest.raises(SignatureMismatch):
        await flow.login(params)
    assert len(states) == 0


async def test_signed_login_for_installed_shop_reissues_session(parts) -> None:
    flow, states, shops, oauth, codec = parts
    shops.upsert(SHOP, "shpat_token", "read_products")

    outcome = await flow.login(_sign({"shop": SHOP, "timestamp": "1700000000"}))

    assert outcome.state is FlowState.SESSION_ACTIVE
    assert codec.verify(outcome.session_token) == SHOP
    assert len(states) == 0
    assert oauth.states == []


async def test_unsigned_login_for_installed_shop_starts_install(parts) -> None:
    flow, states, shops, _, _ = parts
    shops.upsert(SHOP, "shpat_token", "read_products")

    outcome = await flow.login({"shop": SHOP})

    assert outcome.state is FlowState.PENDING_INSTALL
    assert outcome.session_token is None
    assert len(states) == 1


async def test_login_surfaces_repository_failures(parts) -> None:
    flow, states, shops, _, _ = parts
    shops.fail_lookups = True

    with pytest.raises(StoreError):
        await flow.login({"shop": SHOP})
    assert len(states) == 0


@pytest.mark.parametrize("missing", ["shop", "code", "hmac", "state"])
async def test_callback_requires_all_parameters(parts, missing: str) -> None:
    flow, _, _, oauth, _ = parts
    params = _callback_params("nonce")
    params.pop(missing)

    with pytest.raises(MissingCallbackParameters):
        await flow.callback(params)
    assert oauth.codes == []


async def test_callback_rejects_forged_signature_without_consuming(parts) -> None:
    flow, states, _, oauth, _ = parts
    await flow.login({"shop": SHOP})
    nonce = oauth.states[-1]
    params = _callback_params(nonce)
    params["code"] = "attacker-code"

    with pytest.raises(SignatureMismatch):
        await flow.callback(params)
    assert len(states) == 1

    outcome = await flow.callback(_callback_params(nonce))
    assert outcome.state is FlowState.SESSION_ACTIVE


async def test_callback_rejects_state_for_other_shop(parts) -> None:
    flow, _, _, oauth, _ = parts
    await flow.login({"shop": SHOP})
    nonce = oauth.states[-1]

    with pytest.raises(InvalidState):
        await flow.callback(_callback_params(nonce, shop="other.myshopify.test"))


async def test_callback_rejects_expired_state(parts, clock) -> None:
    flow, _, _, oauth, _ = parts
    await flow.login({"shop": SHOP})
    clock.advance(timedelta(minutes=10).total_seconds())

    with pytest.raises(InvalidState):
        await flow.callback(_callback_params(oauth.states[-1]))
    assert oauth.codes == []


async def test_callback_token_exchange_failure_issues_nothing(parts) -> None:
    flow, _, shops, oauth, _ = parts
    await flow.login({"shop": SHOP})
    oauth.fail = True

    with pytest.raises(OAuthTokenExchangeError):
        await flow.callback(_callback_params(oauth.states[-1]))
    assert shops.shops == {}


async def test_check_session(parts, clock) -> None:
    flow, _, _, _, codec = parts
    token = codec.sign(SHOP, timedelta(minutes=15))

    assert flow.check_session(token, SHOP) == SHOP
    assert flow.check_session(token, " Acme.myshopify.test") == SHOP

    with pytest.raises(MissingSession):
        flow.check_session(None, SHOP)
    with pytest.raises(MissingShopDomain):
        flow.check_session(token, None)
    with pytest.raises(SessionDomainMismatch):
        flow.check_session(token, "other.myshopify.test")

    clock.advance(15 * 60 + 1)
    with pytest.raises(SessionExpired):
        flow.check_session(token, SHOP)


async def test_dashboard_requires_installed_shop(parts) -> None:
    flow, _, shops, _, codec = parts
    token = codec.sign(SHOP, timedelta(minutes=15))

    with pytest.raises(ShopNotInstalled):
        flow.dashboard(token, SHOP)

    shops.upsert(SHOP, "shpat_token", "read_products")
    assert flow.dashboard(token, SHOP).scopes == "read_products"


async def test_health(parts) -> None:
    flow, _, _, _, _ = parts

    assert flow.health() == {"status": "ok"}
    assert flow.session_max_age == 900



async def test_rotated_encryption_key_allows_reinstall(tmp_path, clock) -> None:
    db_path = str(tmp_path / "shops.db")
    SQLiteShopRepository(db_path, cipher=CredentialCipher(secret="old")).upsert(
        SHOP, "shpat_old", "read_products"
    )
    oauth = RecordingOAuthClient()
    flow = InstallFlow(
        InstallFlowConfig(
            api_key="api-key",
            api_secret=API_SECRET,
            scopes="read_products",
            callback_url="https://app.example.com/api/auth/callback",
        ),
        validator=ShopDomainValidator("myshopify.test"),
        state_store=InMemoryStateStore(clock=clock),
        shop_repository=SQLiteShopRepository(
            db_path, cipher=CredentialCipher(secret="new")
        ),
        oauth_client=oauth,
        session_codec=SessionCodec("session-secret", clock=clock),
    )

    login = await flow.login({"shop": SHOP})
    assert login.state is FlowState.PENDING_INSTALL

    outcome = await flow.callback(_callback_params(oauth.states[-1]))
    assert flow.dashboard(outcome.session_token, SHOP).access_token == "shpat_token"


async def test_store_calls_run_off_the_event_loop_thread(parts) -> None:
    flow, states, shops, oauth, _ = parts
    loop_thread = threading.get_ident()
    seen: list[int] = []

    create, consume, exists = states.create, states.consume, shops.exists

    def record(func):
        def wrapper(*args):
            seen.append(threading.get_ident())
            return func(*args)

        return wrapper

    states.create = record(create)
    states.consume = record(consume)
    shops.exists = record(exists)

    await flow.login({"shop": SHOP})
    await flow.callback(_callback_params(oauth.states[-1]))

    assert len(seen) == 3
    assert loop_thread not in seen
