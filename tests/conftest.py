"""Shared fixtures for hnmd tests."""

import pytest

from hnmd.context import RuntimeContext
from hnmd.evaluator import JqEvaluator


@pytest.fixture
def evaluator():
    return JqEvaluator()


@pytest.fixture
def context():
    ctx = RuntimeContext(
        user={"name": "alice", "pubkey": "npub1alice"},
        queries={
            "feed": [
                {"id": "n1", "content": "gm", "pubkey": "npub1bob"},
                {"id": "n2", "content": "hello", "pubkey": "npub1carol"},
            ],
        },
        state={"title": "Home", "count": 3, "tags": ["a", "b"]},
    )
    ctx.set_form_field("message", "gm nostr")
    return ctx


# ---------------------------------------------------------------------------
# Sample documents
# ---------------------------------------------------------------------------

FEED_DOCUMENT = '''---
filters:
  feed:
    kinds: [1]
    limit: 20
pipes:
  contents:
    from: feed
    jq: map(.content)
actions:
  post:
    kind: 1
    content: "{form.message}"
    tags:
      - ["client", "hnmd"]
state:
  title: Feed
imports:
  NoteCard: ./components/note.hnmc
---

# {state.title}

Welcome back, **{user.name}**!

<each from={queries.feed} as="note">

<NoteCard note={note} />

</each>

<input name="message" placeholder="What's happening?" />

<button label="Post" on_click={actions.post} />
'''

NOTE_COMPONENT = '''---
imports:
  Avatar: ./avatar.hnmc
queries:
  profile:
    kinds: [0]
    authors: ["{props.note.pubkey}"]
props:
  note:
    type: object
    required: true
  size:
    type: string
    default: medium
  compact: boolean
---

<Avatar pubkey={props.note.pubkey} />

**{props.note.content}**
'''

AVATAR_COMPONENT = '''---
props:
  pubkey: string
---

![avatar](https://robohash.org/avatar.png)
'''


@pytest.fixture
def feed_source():
    return FEED_DOCUMENT


@pytest.fixture
def note_source():
    return NOTE_COMPONENT


@pytest.fixture
def avatar_source():
    return AVATAR_COMPONENT


@pytest.fixture
def feed_doc():
    from hnmd.document import parse_document
    return parse_document(FEED_DOCUMENT)
