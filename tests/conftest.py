"""
Shared fixtures: an in-memory registry behind a fake requests session.
"""

import json
import threading
from typing import Dict, Optional, Tuple

import pytest
import requests

from hubcrawler.client import MANIFEST_V2, RegistryClient
from hubcrawler.config import AppConfig

HOST = 'registry.test'
BASE = f'https://{HOST}'

CONFIG_ENV_VARS = (
    'LISTEN', 'REGISTRY', 'REGISTRY_SCHEME', 'MAX_WORKERS',
    'REQUEST_DEADLINE', 'TAG_LIMIT', 'SURFACE_PROVENANCE_ERRORS',
)


def make_response(url: str, status: int = 200, body=None, raw: Optional[str] = None,
                  headers: Optional[Dict[str, str]] = None) -> requests.Response:
    """Build a real requests.Response without touching the network"""
    response = requests.Response()
    response.url = url
    response.status_code = status
    response.reason = 'OK' if status < 400 else 'Error'
    if raw is not None:
        response._content = raw.encode()
    else:
        response._content = json.dumps(body if body is not None else {}).encode()
    response.headers.update(headers or {})
    return response


def v1_compatibility(commit_date: str = '', sha: str = '', **labels) -> str:
    all_labels = {
        'io.openshift.s2i.build.commit.date': commit_date,
        'io.openshift.s2i.build.commit.id': sha,
    }
    all_labels.update(labels)
    return json.dumps({'config': {'Env': ['PATH=/usr/bin'], 'Labels': all_labels}})


class FakeRegistry:
    """
    Stand-in for requests.Session serving a registry from dictionaries

    Failures are injected per URL, optionally per Accept header, as either
    an exception to raise or an HTTP status to return.
    """

    def __init__(self):
        self.headers = {}
        self.repositories = []
        self.tags: Dict[str, list] = {}
        self.manifests: Dict[Tuple[str, str], dict] = {}
        self.digests: Dict[Tuple[str, str], str] = {}
        self.failures: Dict[Tuple[str, Optional[str]], object] = {}
        self.calls = []
        self.deleted = []
        self._lock = threading.Lock()

    def add_tag(self, repository: str, tag: str, commit_date: str = '',
                sha: str = 'abcdef0123456789', digest: Optional[str] = None,
                v1: Optional[str] = None):
        if repository not in self.repositories:
            self.repositories.append(repository)
        self.tags.setdefault(repository, []).append(tag)
        history_entry = v1 if v1 is not None else v1_compatibility(commit_date, sha)
        self.manifests[(repository, tag)] = {
            'schemaVersion': 1,
            'name': repository,
            'tag': tag,
            'history': [{'v1Compatibility': history_entry}],
        }
        self.digests[(repository, tag)] = digest or f'sha256:{repository}-{tag}'

    def fail(self, path: str, outcome, accept: Optional[str] = None):
        self.failures[(BASE + path, accept)] = outcome

    def _failure(self, url: str, accept: Optional[str]):
        outcome = self.failures.get((url, accept))
        if outcome is None:
            return None
        if isinstance(outcome, Exception):
            raise outcome
        return make_response(url, status=outcome)

    def get(self, url, headers=None, timeout=None):
        accept = (headers or {}).get('Accept')
        with self._lock:
            self.calls.append((url, accept, timeout))

        failed = self._failure(url, accept)
        if failed is not None:
            return failed

        path = url[len(BASE):]
        if path == '/v2/_catalog':
            return make_response(url, body={'repositories': self.repositories})

        if path.endswith('/tags/list'):
            repository = path[len('/v2/'):-len('/tags/list')]
            if repository not in self.tags:
                return make_response(url, status=404)
            return make_response(url, body={'name': repository, 'tags': self.tags[repository]})

        repository, _, tag = path[len('/v2/'):].rpartition('/manifests/')
        key = (repository, tag)
        if key not in self.manifests:
            return make_response(url, status=404)
        if accept == MANIFEST_V2:
            return make_response(url, body={'schemaVersion': 2},
                                 headers={'Docker-Content-Digest': self.digests[key]})
        return make_response(url, body=self.manifests[key])

    def delete(self, url, timeout=None):
        with self._lock:
            self.deleted.append(url)
        failed = self._failure(url, 'DELETE')
        if failed is not None:
            return failed
        return make_response(url, status=202)


class CountingRegistry(FakeRegistry):
    """
    FakeRegistry that holds every call briefly and records, per kind of
    call, how many were in flight at the same time
    """

    def __init__(self, pause: float = 0.02):
        super().__init__()
        self.pause = pause
        self.current = {'catalog': 0, 'tags': 0, 'manifests': 0}
        self.peak = dict(self.current)
        self._never = threading.Event()

    @staticmethod
    def kind(url: str) -> str:
        if url.endswith('/_catalog'):
            return 'catalog'
        if url.endswith('/tags/list'):
            return 'tags'
        return 'manifests'

    def get(self, url, headers=None, timeout=None):
        kind = self.kind(url)
        with self._lock:
            self.current[kind] += 1
            self.peak[kind] = max(self.peak[kind], self.current[kind])
        try:
            self._never.wait(self.pause)
            return super().get(url, headers=headers, timeout=timeout)
        finally:
            with self._lock:
                self.current[kind] -= 1


@pytest.fixture
def registry():
    return FakeRegistry()


@pytest.fixture
def client(registry):
    return RegistryClient(HOST, session=registry)


@pytest.fixture
def config():
    return AppConfig(registry=HOST, request_deadline=None)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the caller's environment out of AppConfig"""
    for var in CONFIG_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
        monkeypatch.delenv(var.lower(), raising=False)
