from __future__ import annotations

import hashlib

import pytest

from relay_sdk import ABSENT, RelayDecodeError, RelayIntegrityError, ResourceContext, UnresolvedContextError
from relay_sdk.decoding import decode, extract, find_text, name_value_pairs
from relay_sdk.executor import RequestExecutor, encode_params, flatten_indexed, verify_checksum


def _context(resource_path: str = "") -> ResourceContext:
    return ResourceContext(
        service="sqs",
        endpoint="https://sqs.relay.test/",
        api_version="2012-11-05",
        region="eu-west-1",
        account_id="000000000001",
        resource_path=resource_path,
    )


class _RecordingInvoker:
    def __init__(self, body: bytes) -> None:
        self.body = body
        self.calls: list[tuple[str, ResourceContext, dict[str, str]]] = []

    def invoke(self, action, context, parameters):
        self.calls.append((action, context, dict(parameters)))
        return self.body, 200


def test_resolving_returns_new_context() -> None:
    root = _context().with_extras(owner="ops")
    queue = root.with_resource("/000000000001/jobs")

    assert root.resource_path == ""
    assert not root.is_resolved
    assert queue.is_resolved
    assert queue.url == "https://sqs.relay.test/000000000001/jobs"
    assert queue.name == "jobs"
    assert queue.arn() == "arn:aws:sqs:eu-west-1:000000000001:jobs"
    assert queue.extras["owner"] == "ops"
    with pytest.raises(TypeError):
        queue.extras["owner"] = "other"


def test_resolved_context_cannot_be_resolved_again() -> None:
    queue = _context("/000000000001/jobs")

    with pytest.raises(ValueError, match="already resolved"):
        queue.with_resource("/000000000001/other")


def test_unresolved_context_rejects_resource_scoped_use() -> None:
    with pytest.raises(UnresolvedContextError):
        _context().require_resolved("SendMessage")
    with pytest.raises(UnresolvedContextError):
        _context().name


def test_flatten_indexed_is_one_based_and_ordered() -> None:
    flattened = flatten_indexed(
        "Entry",
        [{"Id": "a", "MessageBody": "m1"}, {"Id": "b", "MessageBody": "m2"}, {"Id": "c", "MessageBody": "m3"}],
    )

    assert flattened == {
        "Entry.1.Id": "a",
        "Entry.1.MessageBody": "m1",
        "Entry.2.Id": "b",
        "Entry.2.MessageBody": "m2",
        "Entry.3.Id": "c",
        "Entry.3.MessageBody": "m3",
    }


def test_encode_params_flattens_lists_and_stringifies_scalars() -> None:
    assert encode_params({"AttributeName": ["All"], "WaitTimeSeconds": 5, "Raw": True, "Skip": None}) == {
        "AttributeName.1": "All",
        "WaitTimeSeconds": "5",
        "Raw": "true",
    }


def test_call_adds_action_and_version() -> None:
    invoker = _RecordingInvoker(b"<PurgeQueueResponse/>")
    executor = RequestExecutor(invoker)
    queue = _context("/000000000001/jobs")

    executor.call("PurgeQueue", queue)

    action, context, parameters = invoker.calls[0]
    assert action == "PurgeQueue"
    assert context is queue
    assert parameters == {"Action": "PurgeQueue", "Version": "2012-11-05"}


def test_call_field_distinguishes_optional_and_required_fields() -> None:
    executor = RequestExecutor(_RecordingInvoker(b"<R><Result><Other>x</Other></Result></R>"))

    assert executor.call_field("Any", _context(), None, "QueueUrl", optional=True) is ABSENT
    with pytest.raises(RelayDecodeError, match="QueueUrl"):
        executor.call_field("Any", _context(), None, "QueueUrl")


def test_decode_rejects_malformed_xml() -> None:
    with pytest.raises(RelayDecodeError):
        decode(b"<unclosed>")


def test_tree_helpers() -> None:
    tree = decode(
        b"<R><Result><Attribute><Name>A</Name><Value>1</Value></Attribute>"
        b"<Attribute><Name>B</Name><Value/></Attribute></Result></R>"
    )

    assert extract(tree, "R", "Result", "Attribute", "Name") == "A"
    assert extract(tree, "R", "Missing") is None
    assert find_text(tree, "Value") == "1"
    assert name_value_pairs(tree, "Attribute") == {"A": "1", "B": ""}


def test_verify_checksum() -> None:
    expected = hashlib.md5(b"payload").hexdigest()

    assert verify_checksum("payload", expected.upper()) == expected
    with pytest.raises(RelayIntegrityError):
        verify_checksum("payl0ad", expected)
    with pytest.raises(RelayIntegrityError):
        verify_checksum("payload", None)


def test_tree_helpers_ignore_indentation() -> None:
    tree = decode(
        b"<R>\n  <Result>\n    <QueueUrl>https://sqs.relay.test/1/jobs</QueueUrl>\n"
        b"    <Attribute>\n      <Name>A</Name>\n      <Value>1</Value>\n    </Attribute>\n"
        b"  </Result>\n</R>\n"
    )

    assert find_text(tree, "QueueUrl") == "https://sqs.relay.test/1/jobs"
    assert find_text(tree, "Missing") is None
    assert name_value_pairs(tree, "Attribute") == {"A": "1"}
    assert extract(tree, "R", "Result", "Attribute", "Value") == "1"
