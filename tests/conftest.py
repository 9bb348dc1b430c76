import json
from datetime import datetime, timezone

import pytest

from licensechain import WebhookHandler, WebhookVerifier

SECRET = "whsec_test_secret"


@pytest.fixture
def verifier():
    return WebhookVerifier(SECRET)


@pytest.fixture
def webhooks():
    return WebhookHandler(SECRET)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def make_body(**fields) -> str:
    event = {"id": "evt_1", "type": "license.created", "createdAt": now_iso(), "data": {}}
    event.update(fields)
    return json.dumps(event)
