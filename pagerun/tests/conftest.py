import pytest


@pytest.fixture
def anyio_backend():
    # The pipeline is built on asyncio; run anyio-marked tests on that backend only.
    return "asyncio"
