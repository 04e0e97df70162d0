import numbers
import textwrap

import pytest

from blackboard.core.errors import ConfigError
from blackboard.core.subscriber import CollectingSubscriber, Subscriber
from blackboard.wire_config import build_from_yaml, resolve_ref


class TextSink(Subscriber[str]):
    def __init__(self, prefix=""):
        self.prefix = prefix
        self.lines = []

    def receive(self, value):
        self.lines.append(self.prefix + value)


def write(tmp_path, text):
    p = tmp_path / "board.yaml"
    p.write_text(textwrap.dedent(text), encoding="utf-8")
    return str(p)


def test_build_from_yaml(tmp_path):
    path = write(tmp_path, f"""
        board:
          name: wired
          max_workers: 2
          overflow: reject
        subscribers:
          - module: {__name__}
            class: TextSink
            args: {{prefix: "> "}}
          - module: blackboard.core.subscriber
            class: CollectingSubscriber
            type: numbers:Number
    """)

    board, subs = build_from_yaml(path)
    try:
        assert board.name == "wired"
        assert board.config.max_workers == 2
        assert board.config.overflow == "reject"
        assert board.interest_types() == [str, numbers.Number]

        board.publish("hi")
        board.publish(2.5)

        text, nums = subs
        assert isinstance(text, TextSink) and text.lines == ["> hi"]
        assert isinstance(nums, CollectingSubscriber) and nums.items == [2.5]
    finally:
        board.close()


def test_empty_file_gives_default_board(tmp_path):
    board, subs = build_from_yaml(write(tmp_path, ""))
    assert subs == []
    assert board.interest_types() == []
    board.close()


def test_entry_without_class(tmp_path):
    path = write(tmp_path, """
        subscribers:
          - module: blackboard.core.subscriber
    """)
    with pytest.raises(ConfigError):
        build_from_yaml(path)


def test_resolve_ref():
    assert resolve_ref("numbers:Number") is numbers.Number
    assert resolve_ref("builtins.str") is str
    assert resolve_ref("blackboard.core.subscriber:CollectingSubscriber.receive") is CollectingSubscriber.receive
    with pytest.raises(ConfigError):
        resolve_ref("nodots")
    with pytest.raises(ConfigError):
        resolve_ref("numbers:Missing")


@pytest.mark.parametrize("text", [
    "- just\n- a list\n",
    "board: 3\n",
    "subscribers:\n  - not-a-mapping\n",
    "subscribers:\n  module: x\n",
])
def test_malformed_wiring_file(tmp_path, text):
    with pytest.raises(ConfigError):
        build_from_yaml(write(tmp_path, text))
