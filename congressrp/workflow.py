from __future__ import annotations

import logging
from collections.abc import Callable, Collection
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from .bills import (
    Bill,
    BillState,
    BillStore,
    Category,
    Chamber,
    Choice,
    CosponsorResult,
    Outcome,
    Tally,
    VotingRound,
)
from .tally import describe_tally, tally

UTC = timezone.utc

log = logging.getLogger("red.congressrp-cogs.CongressRP.workflow")

APPROVER_ROLE = {Chamber.HOUSE: "speaker", Chamber.SENATE: "majority_leader"}
MEMBER_ROLE = {Chamber.HOUSE: "representative", Chamber.SENATE: "senator"}

BOTH_CHAMBER_CATEGORIES = {Category.BILL, Category.AMENDMENT, Category.IMPEACHMENT}

BALLOT_CHOICES = {"yea": Choice.YEA, "nay": Choice.NAY, "abs": Choice.ABSTAIN}

REASON_TIME = "time"
REASON_APPROVER = "approver"

Eligibility = Callable[[Bill, int, Collection[str]], bool]


class CongressError(Exception):
    """Base for every error that is reported back to the user who caused it."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(CongressError):
    pass


class InvalidState(CongressError):
    pass


class Unauthorized(CongressError):
    pass


def chamber_members_only(bill: Bill, voter_id: int, voter_roles: Collection[str]) -> bool:
    """Ballot hook that only admits members of the chamber currently voting."""
    return MEMBER_ROLE[bill.current_chamber] in voter_roles


class Notifier:
    """
    Outbound side of the workflow. Every method receives a snapshot of the
    bill taken right after the change was committed, so later events can
    never leak into a message that is still being sent.
    """

    async def notify_submission(self, bill: Bill) -> None:
        pass

    async def notify_voting_opened(self, bill: Bill) -> None:
        pass

    async def notify_outcome(self, bill: Bill, result: Tally, reason: str) -> None:
        pass

    async def notify_chamber_passed(self, bill: Bill, chamber: Chamber) -> None:
        pass

    async def notify_handoff(self, bill: Bill, from_chamber: Chamber) -> None:
        pass

    async def notify_enactment(self, bill: Bill) -> None:
        pass


@dataclass(frozen=True)
class SessionInfo:
    number: int
    started_at: datetime
    total_bills: int
    session_bills: int
    pending: int
    voting: int
    passed: int
    failed: int


class Workflow:
    def __init__(
        self,
        store: BillStore,
        notifier: Notifier | None = None,
        *,
        vote_duration: timedelta | None = None,
        eligibility: Eligibility | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.notifier = notifier or Notifier()
        self.vote_duration = vote_duration
        self.eligibility = eligibility
        self.clock = clock or (lambda: datetime.now(UTC))

    # ---------- helpers ----------

    def _get(self, ref: str) -> Bill:
        bill = self.store.find(ref)
        if bill is None:
            raise NotFound(f"❌ Bill {ref} not found.")
        return bill

    def _require_role(self, roles: Collection[str], role: str, message: str) -> None:
        if role not in roles:
            raise Unauthorized(message)

    def _start_round(self, bill: Bill, chamber: Chamber) -> VotingRound:
        now = self.clock()
        rnd = VotingRound(
            chamber=chamber,
            opened_at=now,
            expires_at=(now + self.vote_duration) if self.vote_duration else None,
        )
        bill.rounds.append(rnd)
        bill.state = BillState.VOTING_OPEN
        return rnd

    async def _notify(self, method: str, bill: Bill, *args) -> None:
        # state is already committed; a failed delivery must not undo it
        try:
            await getattr(self.notifier, method)(bill, *args)
        except Exception:
            log.exception("%s failed for %s", method, bill.ref)

    # ---------- submission ----------

    async def submit_bill(
        self,
        category: Category,
        chamber: Chamber,
        proposer_id: int,
        title: str,
        content: str,
        message_link: str = "N/A",
    ) -> Bill:
        if category is Category.IMPEACHMENT:
            raise InvalidState("⚠ Use the impeachment command for Articles of Impeachment.")
        bill = self.store.submit(
            category,
            chamber,
            proposer_id,
            title or "Untitled",
            content or "No content",
            both_chambers=category in BOTH_CHAMBER_CATEGORIES,
            message_link=message_link,
        )
        log.info("%s submitted: %s %r by %s", bill.ref, category.value, bill.title, proposer_id)
        await self._notify("notify_submission", bill.snapshot())
        return bill

    async def submit_impeachment(
        self,
        proposer_id: int,
        proposer_roles: Collection[str],
        target: str,
        designation: str,
        content: str,
        message_link: str = "N/A",
    ) -> Bill:
        self._require_role(
            proposer_roles,
            MEMBER_ROLE[Chamber.HOUSE],
            "❌ Only Representatives can submit Articles of Impeachment.",
        )
        target = target or "Unknown"
        designation = designation or "Unknown"
        bill = self.store.submit(
            Category.IMPEACHMENT,
            Chamber.HOUSE,
            proposer_id,
            f"Impeachment of {target}",
            f"Target: {target} ({designation})\n\n{content or 'No content'}",
            both_chambers=True,
            message_link=message_link,
        )
        log.info("%s submitted: impeachment of %r by %s", bill.ref, target, proposer_id)
        await self._notify("notify_submission", bill.snapshot())
        return bill

    def add_cosponsor(self, ref: str, voter_id: int) -> Bill:
        result = self.store.add_cosponsor(ref, voter_id)
        if result is CosponsorResult.NOT_FOUND:
            raise NotFound(f"❌ Bill {ref} not found.")
        if result is CosponsorResult.VOTING_ALREADY_OPEN:
            raise InvalidState("⚠ Voting started, cannot cosponsor.")
        if result is CosponsorResult.ALREADY_COSPONSOR:
            raise InvalidState("⚠ Already a cosponsor.")
        return self.store.find(ref)

    # ---------- voting ----------

    async def open_voting(self, ref: str) -> Bill:
        bill = self._get(ref)
        if bill.state is not BillState.PENDING:
            raise InvalidState(f"⚠ {bill.ref} is not awaiting a vote ({bill.status_text}).")
        self._start_round(bill, bill.chamber)
        self.store.commit(bill)
        log.info("%s voting opened in %s", bill.ref, bill.chamber.value)
        await self._notify("notify_voting_opened", bill.snapshot())
        return bill

    async def open_vote_by_approver(self, ref: str, requester_roles: Collection[str]) -> Bill:
        bill = self._get(ref)
        self._require_role(
            requester_roles,
            APPROVER_ROLE[bill.chamber],
            f"❌ Only the {bill.chamber.approver_title} can open this vote.",
        )
        return await self.open_voting(ref)

    def _check_chamber(self, bill: Bill, chamber: Chamber | None) -> None:
        # buttons posted for the first chamber stay on screen after the hand-off
        if chamber is not None and chamber is not bill.current_chamber:
            raise InvalidState(f"⚠ The {chamber.value} vote on {bill.ref} has ended.")

    def cast_ballot(
        self,
        ref: str,
        voter_id: int,
        choice: Choice,
        voter_roles: Collection[str] = (),
        chamber: Chamber | None = None,
    ) -> Bill:
        bill = self._get(ref)
        if not bill.voting_open:
            raise InvalidState(f"⚠ Voting on {bill.ref} is not open.")
        self._check_chamber(bill, chamber)
        if self.eligibility is not None and not self.eligibility(bill, voter_id, voter_roles):
            raise Unauthorized(f"❌ You are not eligible to vote in the {bill.current_chamber.value}.")
        bill.current_round.ballots[voter_id] = choice
        self.store.commit(bill)
        return bill

    async def close_voting(self, ref: str, reason: str = REASON_APPROVER) -> Tally | None:
        """
        Close the open round and act on the result. Returns None when there
        was no open round, so a sweeper and an approver racing each other
        only close it once.
        """
        bill = self._get(ref)
        rnd = bill.current_round
        if rnd is None or not rnd.open:
            return None

        result = tally(rnd.ballots, bill.category)
        rnd.open = False
        rnd.closed_at = self.clock()
        rnd.closed_reason = reason
        rnd.result = result
        bill.state = BillState.CLOSED
        bill.outcome = Outcome.PASSED if result.passed else Outcome.FAILED
        closed_snap = bill.snapshot()

        handoff = enacted = False
        if result.passed and bill.both_chambers:
            if not bill.next_chamber_pending:
                bill.next_chamber_pending = True
                self._start_round(bill, rnd.chamber.other)
                handoff = True
            else:
                bill.state = BillState.ENACTED
                enacted = True
        self.store.commit(bill)
        log.info("%s voting closed in %s (%s): %s %d-%d-%d",
                 bill.ref, rnd.chamber.value, reason, bill.outcome.value, result.yea, result.nay, result.abs)

        after_snap = bill.snapshot()
        await self._notify("notify_outcome", closed_snap, result, reason)
        if result.passed:
            await self._notify("notify_chamber_passed", closed_snap, rnd.chamber)
        if handoff:
            await self._notify("notify_handoff", after_snap, rnd.chamber)
            await self._notify("notify_voting_opened", after_snap)
        if enacted:
            await self._notify("notify_enactment", after_snap)
        return result

    async def end_vote_by_approver(
        self, ref: str, requester_roles: Collection[str], chamber: Chamber | None = None
    ) -> Tally:
        bill = self._get(ref)
        self._check_chamber(bill, chamber)
        chamber = bill.current_chamber
        self._require_role(
            requester_roles,
            APPROVER_ROLE[chamber],
            f"❌ Only the {chamber.approver_title} can end this vote.",
        )
        if not bill.voting_open:
            raise InvalidState(f"⚠ Voting on {bill.ref} is already closed.")
        return await self.close_voting(ref, REASON_APPROVER)

    async def apply_control(
        self,
        action: str,
        ref: str,
        voter_id: int,
        voter_roles: Collection[str] = (),
        chamber: Chamber | None = None,
    ) -> str:
        """Run one button or command action and return the reply for the member who used it."""
        if action in BALLOT_CHOICES:
            self.cast_ballot(ref, voter_id, BALLOT_CHOICES[action], voter_roles, chamber)
            return "Vote recorded."
        if action == "info":
            return self.ballot_listing(ref)
        if action == "end":
            result = await self.end_vote_by_approver(ref, voter_roles, chamber)
            return f"Vote ended by approver. {describe_tally(result)}"
        if action == "open":
            bill = await self.open_vote_by_approver(ref, voter_roles)
            return f"🗳️ Voting opened on **{bill.ref}** in the {bill.chamber.value}."
        raise InvalidState(f"⚠ Unknown action {action!r}.")

    async def close_expired(self, now: datetime | None = None) -> list[str]:
        now = now or self.clock()
        closed = []
        for bill in self.store.list_open():
            if not bill.current_round.expired(now):
                continue
            try:
                if await self.close_voting(bill.ref, REASON_TIME) is not None:
                    closed.append(bill.ref)
            except Exception:
                # one broken bill should not stop the sweep
                log.exception("auto-close failed for %s", bill.ref)
        return closed

    # ---------- queries ----------

    def ballot_listing(self, ref: str) -> str:
        bill = self._get(ref)
        lines = [f"<@{voter}>: {choice.value}" for voter, choice in bill.ballots.items()]
        return "\n".join(lines) or "No votes yet"

    def bill_detail(self, ref: str) -> Bill:
        return self._get(ref)

    def bills_by_proposer(self, voter_id: int) -> list[Bill]:
        return self.store.list_by_proposer(voter_id)

    def passed_bills(self) -> list[Bill]:
        return self.store.list_by_outcome(Outcome.PASSED)

    def failed_bills(self) -> list[Bill]:
        return self.store.list_by_outcome(Outcome.FAILED)

    def session_info(self) -> SessionInfo:
        bills = self.store.all()
        current = self.store.sessions[-1]
        return SessionInfo(
            number=current.number,
            started_at=current.started_at,
            total_bills=len(bills),
            session_bills=sum(1 for b in bills if b.session == current.number),
            pending=sum(1 for b in bills if b.state is BillState.PENDING),
            voting=sum(1 for b in bills if b.voting_open),
            passed=len(self.passed_bills()),
            failed=len(self.failed_bills()),
        )

    def new_session(self) -> int:
        session = self.store.new_session()
        log.info("session %d started", session.number)
        return session.number
