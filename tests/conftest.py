import pytest
from helpers import HLS_STREAM, SECRET, FakeEmbed, FakeSource, FakeVerifier

from streamgate.api.app import app
from streamgate.providers.manager import ProviderEngine, get_provider_engine
from streamgate.providers.models import SourceOutput
from streamgate.services.auth import AuthenticationBroker, get_auth_broker
from streamgate.utils.session_token import SessionTokenCodec


@pytest.fixture
def codec():
    return SessionTokenCodec(SECRET, 600)


@pytest.fixture
def verifier():
    return FakeVerifier()


@pytest.fixture
def broker(verifier, codec):
    return AuthenticationBroker(verifier=verifier, codec=codec, enabled=True)


@pytest.fixture
def engine():
    return ProviderEngine(
        fetcher=None,
        sources=[
            FakeSource("flixhq", 200, output=SourceOutput(stream=[HLS_STREAM])),
            FakeSource("zoechip", 100),
        ],
        embeds=[FakeEmbed("upcloud", 50, stream=[HLS_STREAM])],
    )


@pytest.fixture
def override(engine):
    """Point the app at test doubles; auth is disabled unless a broker is given."""

    def _override(broker: AuthenticationBroker = None, provider_engine=None):
        open_broker = AuthenticationBroker(
            verifier=FakeVerifier(), codec=SessionTokenCodec(SECRET, 600), enabled=False
        )
        app.dependency_overrides[get_provider_engine] = lambda: provider_engine or engine
        app.dependency_overrides[get_auth_broker] = lambda: broker or open_broker

    yield _override
    app.dependency_overrides.clear()
