import json

import pytest
from pydantic import ValidationError

from shared.schemas.messages import (InitArticleJob, TranslateArticleJob,
                                     TranslateParams, TranslateTextRequest,
                                     parse_job, serialize_job)


def test_parse_init_without_params():
    job = parse_job('{"id": 5, "category": "article", "action": "init"}')

    assert isinstance(job, InitArticleJob)
    assert job.id == 5
    assert job.params == {}


def test_parse_translate():
    job = parse_job(
        json.dumps({"id": 5, "category": "article", "action": "translate", "params": {"language": "French"}})
    )

    assert isinstance(job, TranslateArticleJob)
    assert job.language == "French"


@pytest.mark.parametrize(
    "body",
    [
        '{"id": 5, "category": "article", "action": "delete"}',
        '{"id": 5, "category": "video", "action": "init"}',
        '{"id": 5, "category": "article", "action": "translate", "params": {"language": ""}}',
        '{"category": "article", "action": "init"}',
        "[]",
        "{not json",
    ],
)
def test_parse_rejects_unknown_or_malformed(body):
    with pytest.raises(ValidationError):
        parse_job(body)


def test_serialize_translate_job():
    job = TranslateArticleJob(id=9, params=TranslateParams(language="English"))

    assert json.loads(serialize_job(job)) == {
        "id": 9,
        "category": "article",
        "action": "translate",
        "params": {"language": "English"},
    }
    assert parse_job(serialize_job(job)) == job


def test_translate_text_request_uses_from_to_keys():
    request = TranslateTextRequest.model_validate({"text": "你好", "from": "Chinese", "to": "English"})

    assert request.from_language == "Chinese"
    assert request.to_language == "English"
