import pytest

from tests.contrib.fixtures import get_backend


@pytest.fixture(params=["sqlite", "mssql"])
def backend(request):
    fixture = get_backend(request.param)
    fixture.skip_if_unavailable()
    yield fixture
    fixture.close()
