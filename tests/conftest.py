import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '../src')))

from kubecharter.core.context import ProcessingContext
from kubecharter.values.classifier import ValueClassifier
from kubecharter.values.store import ExternalFileStore, MemoryWriter

PEM = (
    "-----BEGIN CERTIFICATE-----\n"
    "MIIBszCCAVmgAwIBAgIUFakeCertificateBodyForTests0wCgYIKoZIzj0EAwIw\n"
    "-----END CERTIFICATE-----\n"
)


@pytest.fixture
def writer():
    return MemoryWriter()


@pytest.fixture
def store(writer):
    return ExternalFileStore(writer=writer)


@pytest.fixture
def ctx(store):
    return ProcessingContext(chart_name="demo", classifier=ValueClassifier(), file_store=store)


@pytest.fixture
def pem():
    return PEM
