import asyncio
from datetime import timedelta
from types import SimpleNamespace

from congressrp.bills import BillStore, Category, Chamber, Choice
from congressrp.constants import DEFAULT_CHANNELS, DEFAULT_ROLES
from congressrp.gateway import DiscordNotifier, create_bill_embed
from congressrp.workflow import Workflow

FULL = ["Yea", "Nay", "Abs", "Info", "End"]
PUBLIC = ["Yea", "Nay", "Abs", "Info"]


class FakeChannel:
    def __init__(self, key, posts):
        self.key = key
        self.posts = posts

    async def send(self, **kwargs):
        self.posts.append((self.key, kwargs))


class FakeBot:
    def __init__(self, channels):
        self.channels = channels
        self.views = []

    def get_channel(self, channel_id):
        return self.channels.get(channel_id)

    def add_view(self, view):
        self.views.append(view)


class FakeConfig:
    def __init__(self, channel_ids, role_ids):
        self._channels = channel_ids
        self._roles = role_ids

    async def channels(self):
        return self._channels

    async def roles(self):
        return self._roles


def _notifier(posts, channel_ids=None):
    channel_ids = channel_ids or {key: n for n, key in enumerate(DEFAULT_CHANNELS, start=1)}
    bot = FakeBot({cid: FakeChannel(key, posts) for key, cid in channel_ids.items() if cid})
    cog = SimpleNamespace(bot=bot, config=FakeConfig(channel_ids, dict(DEFAULT_ROLES)))
    return DiscordNotifier(cog)


def _layout(posts):
    out = []
    for key, kwargs in posts:
        view = kwargs.get("view")
        out.append((key, [item.label for item in view.children] if view else None))
    return out


def test_end_button_only_in_approver_threads():
    posts = []

    async def go():
        workflow = Workflow(BillStore(), _notifier(posts), vote_duration=timedelta(hours=24))
        bill = await workflow.submit_bill(Category.BILL, Chamber.HOUSE, 1, "Roads Act", "Build roads.")
        await workflow.open_voting(bill.ref)
        workflow.cast_ballot(bill.ref, 5, Choice.YEA)
        await workflow.end_vote_by_approver(bill.ref, {"speaker"})
        workflow.cast_ballot(bill.ref, 6, Choice.YEA)
        await workflow.end_vote_by_approver(bill.ref, {"majority_leader"})
        return bill

    bill = asyncio.run(go())
    assert bill.status_text == "Enacted"
    assert _layout(posts) == [
        ("speaker_thread", ["Open Vote"]),
        ("house_voting", PUBLIC),
        ("speaker_thread", FULL),
        ("house_voting", None),
        ("passed_house", None),
        ("majority_leader_thread", None),
        ("senate_voting", PUBLIC),
        ("majority_leader_thread", FULL),
        ("senate_voting", None),
        ("passed_senate", None),
        ("passed_laws", None),
    ]


def test_voting_prompt_pings_approver_and_shows_deadline():
    posts = []

    async def go():
        workflow = Workflow(BillStore(), _notifier(posts), vote_duration=timedelta(hours=24))
        bill = await workflow.submit_bill(Category.MOTION, Chamber.SENATE, 1, "Adjourn", "Now.")
        await workflow.open_voting(bill.ref)

    asyncio.run(go())
    key, kwargs = posts[1]
    assert key == "senate_voting"
    assert f"<@&{DEFAULT_ROLES['majority_leader']}>" in kwargs["content"]
    assert kwargs["embed"].footer.text.startswith("Closes in ")
    assert kwargs["allowed_mentions"].roles is True


def test_enactment_pings_president():
    posts = []

    async def go():
        workflow = Workflow(BillStore(), _notifier(posts))
        bill = await workflow.submit_bill(Category.AMENDMENT, Chamber.HOUSE, 1, "Term Limits", "Two terms.")
        await workflow.open_voting(bill.ref)
        workflow.cast_ballot(bill.ref, 5, Choice.YEA)
        await workflow.close_voting(bill.ref)
        workflow.cast_ballot(bill.ref, 6, Choice.YEA)
        await workflow.close_voting(bill.ref)

    asyncio.run(go())
    key, kwargs = posts[-1]
    assert key == "passed_laws"
    assert kwargs["content"].endswith(f"<@&{DEFAULT_ROLES['president']}>")


def test_unset_channel_is_skipped():
    posts = []
    channel_ids = dict.fromkeys(DEFAULT_CHANNELS, 0)
    channel_ids["speaker_thread"] = 11

    async def go():
        workflow = Workflow(BillStore(), _notifier(posts, channel_ids))
        bill = await workflow.submit_bill(Category.BILL, Chamber.HOUSE, 1, "Roads Act", "Build roads.")
        await workflow.open_voting(bill.ref)

    asyncio.run(go())
    assert _layout(posts) == [("speaker_thread", ["Open Vote"]), ("speaker_thread", FULL)]


def test_bill_embed_fields():
    store = BillStore()
    bill = store.submit(Category.BILL, Chamber.HOUSE, 1, "Roads Act", "x" * 2000, both_chambers=True)
    store.add_cosponsor(bill.ref, 2)
    embed = create_bill_embed(bill)
    fields = {f.name: f.value for f in embed.fields}
    assert fields["Reference"] == "H.R. 003"
    assert fields["Co-Sponsors"] == "<@2>"
    assert fields["Status"] == "Pending before Speaker"
    assert len(fields["Content"]) == 1024
    assert fields["Original Message"] == "N/A"
