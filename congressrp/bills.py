from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from .constants import (
    COLOR_ENACTED,
    COLOR_FAILED,
    COLOR_PASSED,
    COLOR_PENDING,
    FIRST_BILL_NUMBER,
)

UTC = timezone.utc

log = logging.getLogger("red.congressrp-cogs.CongressRP.bills")


class Chamber(str, Enum):
    HOUSE = "House"
    SENATE = "Senate"

    @property
    def other(self) -> Chamber:
        return Chamber.SENATE if self is Chamber.HOUSE else Chamber.HOUSE

    @property
    def approver_title(self) -> str:
        return "Speaker" if self is Chamber.HOUSE else "Majority Leader"


class Category(str, Enum):
    BILL = "Bill"
    RESOLUTION = "Resolution"
    AMENDMENT = "Amendment"
    MOTION = "Motion"
    IMPEACHMENT = "Impeachment"


class Choice(str, Enum):
    YEA = "Yea"
    NAY = "Nay"
    ABSTAIN = "Abstain"


class BillState(str, Enum):
    PENDING = "pending"
    VOTING_OPEN = "voting_open"
    CLOSED = "closed"
    ENACTED = "enacted"


class Outcome(str, Enum):
    PASSED = "Passed"
    FAILED = "Failed"


class CosponsorResult(Enum):
    SUCCESS = "success"
    ALREADY_COSPONSOR = "already-cosponsor"
    VOTING_ALREADY_OPEN = "voting-already-open"
    NOT_FOUND = "not-found"


def _now() -> datetime:
    return datetime.now(UTC)


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None


def _parse_iso(ts: str | None) -> datetime | None:
    if not ts:
        return None
    return datetime.fromisoformat(ts.replace("Z", "+00:00"))


def normalize_ref(ref: str) -> str:
    """'  h.r.   004 ' -> 'H.R. 004'"""
    return " ".join((ref or "").split()).upper()


@dataclass(frozen=True)
class Tally:
    yea: int
    nay: int
    abs: int
    required: int
    passed: bool

    @property
    def total(self) -> int:
        return self.yea + self.nay + self.abs

    def to_dict(self) -> dict:
        return {"yea": self.yea, "nay": self.nay, "abs": self.abs, "required": self.required, "passed": self.passed}

    @classmethod
    def from_dict(cls, d: dict) -> Tally:
        return cls(d["yea"], d["nay"], d["abs"], d["required"], d["passed"])


@dataclass
class VotingRound:
    chamber: Chamber
    opened_at: datetime = field(default_factory=_now)
    expires_at: datetime | None = None
    ballots: dict[int, Choice] = field(default_factory=dict)
    open: bool = True
    closed_at: datetime | None = None
    closed_reason: str | None = None
    result: Tally | None = None

    def expired(self, now: datetime) -> bool:
        return self.open and self.expires_at is not None and now >= self.expires_at

    def to_dict(self) -> dict:
        return {
            "chamber": self.chamber.value,
            "opened_at": _iso(self.opened_at),
            "expires_at": _iso(self.expires_at),
            # JSON object keys are always strings
            "ballots": {str(k): v.value for k, v in self.ballots.items()},
            "open": self.open,
            "closed_at": _iso(self.closed_at),
            "closed_reason": self.closed_reason,
            "result": self.result.to_dict() if self.result else None,
        }

    @classmethod
    def from_dict(cls, d: dict) -> VotingRound:
        return cls(
            chamber=Chamber(d["chamber"]),
            opened_at=_parse_iso(d.get("opened_at")) or _now(),
            expires_at=_parse_iso(d.get("expires_at")),
            ballots={int(k): Choice(v) for k, v in (d.get("ballots") or {}).items()},
            open=bool(d.get("open")),
            closed_at=_parse_iso(d.get("closed_at")),
            closed_reason=d.get("closed_reason"),
            result=Tally.from_dict(d["result"]) if d.get("result") else None,
        )


@dataclass
class Bill:
    ref: str
    title: str
    content: str
    proposer_id: int
    category: Category
    chamber: Chamber
    both_chambers: bool
    session: int = 1
    cosponsors: list[int] = field(default_factory=list)
    message_link: str = "N/A"
    next_chamber_pending: bool = False
    state: BillState = BillState.PENDING
    outcome: Outcome | None = None
    rounds: list[VotingRound] = field(default_factory=list)
    created_at: datetime = field(default_factory=_now)

    @property
    def current_round(self) -> VotingRound | None:
        return self.rounds[-1] if self.rounds else None

    @property
    def current_chamber(self) -> Chamber:
        r = self.current_round
        return r.chamber if r else self.chamber

    @property
    def voting_open(self) -> bool:
        r = self.current_round
        return bool(r and r.open)

    @property
    def ballots(self) -> dict[int, Choice]:
        r = self.current_round
        return r.ballots if r else {}

    @property
    def status_text(self) -> str:
        if self.state is BillState.PENDING:
            return f"Pending before {self.chamber.approver_title}"
        if self.state is BillState.VOTING_OPEN:
            return f"Voting in {self.current_chamber.value}"
        if self.state is BillState.ENACTED:
            return "Enacted"
        return f"{self.outcome.value} {self.current_chamber.value}"

    @property
    def color(self) -> int:
        if self.state is BillState.ENACTED:
            return COLOR_ENACTED
        if self.state is BillState.CLOSED:
            return COLOR_PASSED if self.outcome is Outcome.PASSED else COLOR_FAILED
        return COLOR_PENDING

    def snapshot(self) -> Bill:
        return copy.deepcopy(self)

    def to_dict(self) -> dict:
        return {
            "ref": self.ref,
            "title": self.title,
            "content": self.content,
            "proposer_id": self.proposer_id,
            "category": self.category.value,
            "chamber": self.chamber.value,
            "both_chambers": self.both_chambers,
            "session": self.session,
            "cosponsors": list(self.cosponsors),
            "message_link": self.message_link,
            "next_chamber_pending": self.next_chamber_pending,
            "state": self.state.value,
            "outcome": self.outcome.value if self.outcome else None,
            "rounds": [r.to_dict() for r in self.rounds],
            "created_at": _iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, d: dict) -> Bill:
        return cls(
            ref=d["ref"],
            title=d.get("title", "Untitled"),
            content=d.get("content", ""),
            proposer_id=int(d["proposer_id"]),
            category=Category(d["category"]),
            chamber=Chamber(d["chamber"]),
            both_chambers=bool(d.get("both_chambers")),
            session=int(d.get("session", 1)),
            cosponsors=[int(c) for c in d.get("cosponsors") or []],
            message_link=d.get("message_link") or "N/A",
            next_chamber_pending=bool(d.get("next_chamber_pending")),
            state=BillState(d.get("state", BillState.PENDING.value)),
            outcome=Outcome(d["outcome"]) if d.get("outcome") else None,
            rounds=[VotingRound.from_dict(r) for r in d.get("rounds") or []],
            created_at=_parse_iso(d.get("created_at")) or _now(),
        )


@dataclass
class Session:
    number: int
    started_at: datetime = field(default_factory=_now)


class BillStore:
    """
    Every bill, the shared reference counter and the session history.

    With a ``path`` each mutation is written through to JSON before the
    call returns. Without one the store lives in memory only.
    """

    def __init__(self, path: str | os.PathLike | None = None, *, first_number: int = FIRST_BILL_NUMBER):
        self.path = Path(path) if path else None
        self._bills: dict[str, Bill] = {}
        self._counter = first_number
        self.sessions: list[Session] = [Session(1)]

    # ---------- persistence ----------

    @classmethod
    def load(cls, path: str | os.PathLike, *, first_number: int = FIRST_BILL_NUMBER) -> BillStore:
        """
        Load with auto-recovery:
          1) try main file
          2) fall back to .bak
          3) if both are unusable, quarantine the bad file and start empty
        """
        store = cls(path, first_number=first_number)
        p = store.path
        bak = p.with_name(p.name + ".bak")
        if not p.exists() and not bak.exists():
            return store

        if p.exists():
            try:
                store._restore(json.loads(p.read_text(encoding="utf-8")))
                return store
            except (ValueError, KeyError, TypeError, AttributeError) as e:
                log.warning("bills file %s is unreadable (%s); trying backup", p, e)

        try:
            if bak.exists():
                store._restore(json.loads(bak.read_text(encoding="utf-8")))
                log.warning("restored bills from backup %s", bak)
                # the next save would otherwise rotate the bad file over the good backup
                if p.exists():
                    cls._quarantine(p)
                return store
        except (ValueError, KeyError, TypeError, AttributeError):
            log.exception("backup %s is unreadable too", bak)

        if p.exists():
            cls._quarantine(p)
            log.error("starting with an empty bill store")
        store._bills.clear()
        store.sessions = [Session(1)]
        store._counter = first_number
        return store

    @staticmethod
    def _quarantine(p: Path) -> Path:
        bad = p.with_name(f"{p.name}.corrupt-{int(time.time())}")
        os.replace(p, bad)
        log.error("quarantined corrupt bills file as %s", bad)
        return bad

    def _restore(self, data: dict) -> None:
        bills = {}
        for raw in (data.get("bills") or {}).values():
            b = Bill.from_dict(raw)
            bills[b.ref] = b
        sessions = [
            Session(int(s["number"]), _parse_iso(s.get("started_at")) or _now())
            for s in data.get("sessions") or []
        ]
        self._bills = bills
        self._counter = int(data.get("counter", self._counter))
        self.sessions = sessions or [Session(1)]

    def to_dict(self) -> dict:
        return {
            "counter": self._counter,
            "sessions": [{"number": s.number, "started_at": _iso(s.started_at)} for s in self.sessions],
            "bills": {ref: b.to_dict() for ref, b in self._bills.items()},
        }

    def save(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if self.path.exists():
            os.replace(self.path, self.path.with_name(self.path.name + ".bak"))

        # never write half a file
        fd, tmp = tempfile.mkstemp(prefix="bills_", suffix=".json", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self.to_dict(), fh, ensure_ascii=False, indent=2)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp, self.path)
        finally:
            if os.path.exists(tmp):
                os.remove(tmp)

    def commit(self, bill: Bill) -> None:
        """Persist a bill the workflow just mutated."""
        if self._bills.get(bill.ref) is not bill:
            raise ValueError(f"{bill.ref} is not tracked by this store")
        self.save()

    # ---------- sessions ----------

    @property
    def current_session(self) -> int:
        return self.sessions[-1].number

    def new_session(self) -> Session:
        s = Session(self.current_session + 1)
        self.sessions.append(s)
        self.save()
        return s

    # ---------- bills ----------

    def _next_ref(self, category: Category) -> str:
        prefix = "ART." if category is Category.IMPEACHMENT else "H.R."
        ref = f"{prefix} {self._counter:03d}"
        self._counter += 1
        return ref

    def submit(
        self,
        category: Category,
        chamber: Chamber,
        proposer_id: int,
        title: str,
        content: str,
        both_chambers: bool,
        message_link: str = "N/A",
    ) -> Bill:
        bill = Bill(
            ref=self._next_ref(category),
            title=title,
            content=content,
            proposer_id=proposer_id,
            category=category,
            chamber=chamber,
            both_chambers=both_chambers,
            session=self.current_session,
            message_link=message_link or "N/A",
        )
        self._bills[bill.ref] = bill
        self.save()
        return bill

    def find(self, ref: str) -> Bill | None:
        return self._bills.get(normalize_ref(ref))

    def add_cosponsor(self, ref: str, voter_id: int) -> CosponsorResult:
        bill = self.find(ref)
        if bill is None:
            return CosponsorResult.NOT_FOUND
        if bill.rounds:
            return CosponsorResult.VOTING_ALREADY_OPEN
        if voter_id in bill.cosponsors:
            return CosponsorResult.ALREADY_COSPONSOR
        bill.cosponsors.append(voter_id)
        self.save()
        return CosponsorResult.SUCCESS

    def set_message_link(self, ref: str, url: str) -> bool:
        bill = self.find(ref)
        if bill is None:
            return False
        bill.message_link = url
        self.save()
        return True

    def all(self) -> list[Bill]:
        return list(self._bills.values())

    def list_by_proposer(self, voter_id: int) -> list[Bill]:
        return [b for b in self._bills.values() if b.proposer_id == voter_id]

    def list_by_status_prefix(self, prefix: str) -> list[Bill]:
        return [b for b in self._bills.values() if b.status_text.startswith(prefix)]

    def list_by_outcome(self, outcome: Outcome) -> list[Bill]:
        """Bills whose most recent closed round ended with ``outcome``."""
        out = []
        for b in self._bills.values():
            closed = [r for r in b.rounds if r.result is not None]
            if not closed:
                continue
            passed = closed[-1].result.passed
            if passed == (outcome is Outcome.PASSED):
                out.append(b)
        return out

    def list_open(self) -> list[Bill]:
        return [b for b in self._bills.values() if b.voting_open]

    def __len__(self) -> int:
        return len(self._bills)

    def __contains__(self, ref: str) -> bool:
        return self.find(ref) is not None
