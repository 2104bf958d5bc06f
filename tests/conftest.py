import os
import tempfile
from pathlib import Path

# backend.config 在导入时即加载配置文件，测试使用临时路径
os.environ.setdefault(
    'MINI_MODIFIER_CONFIG',
    str(Path(tempfile.mkdtemp(prefix='mini_modifier_test_')) / 'config.yaml')
)

import pytest

from mini_modifier.intercept import InterceptEngine
from tests.fakes import FakeTransport


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def engine(transport: FakeTransport) -> InterceptEngine:
    return InterceptEngine(transport)


@pytest.fixture
def registry(engine: InterceptEngine):
    return engine.registry
