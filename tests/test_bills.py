import json

from congressrp.bills import (
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
    normalize_ref,
)


def _submit(store, category=Category.BILL, proposer=1, title="Roads Act"):
    return store.submit(category, Chamber.HOUSE, proposer, title, "text", both_chambers=True)


def test_reference_numbers_share_one_counter():
    store = BillStore()
    refs = [
        _submit(store).ref,
        _submit(store, Category.IMPEACHMENT).ref,
        _submit(store, Category.RESOLUTION).ref,
    ]
    assert refs == ["H.R. 003", "ART. 004", "H.R. 005"]


def test_reference_numbers_strictly_increase_and_never_collide():
    store = BillStore(first_number=1)
    cats = [Category.BILL, Category.IMPEACHMENT, Category.MOTION, Category.AMENDMENT] * 5
    numbers = [int(_submit(store, c).ref.split()[-1]) for c in cats]
    assert numbers == sorted(numbers)
    assert len(set(numbers)) == len(numbers)


def test_new_bill_starts_pending_with_no_rounds():
    bill = _submit(BillStore())
    assert bill.state is BillState.PENDING
    assert bill.rounds == []
    assert not bill.voting_open
    assert bill.ballots == {}
    assert bill.status_text == "Pending before Speaker"


def test_find_normalizes_reference():
    store = BillStore()
    bill = _submit(store)
    assert store.find("  h.r.   003 ") is bill
    assert store.find("H.R. 999") is None
    assert normalize_ref("art.  7") == "ART. 7"


def test_cosponsor_rules():
    store = BillStore()
    bill = _submit(store, proposer=1)
    assert store.add_cosponsor(bill.ref, 2) is CosponsorResult.SUCCESS
    assert store.add_cosponsor(bill.ref, 3) is CosponsorResult.SUCCESS
    assert store.add_cosponsor(bill.ref, 2) is CosponsorResult.ALREADY_COSPONSOR
    assert store.add_cosponsor("H.R. 404", 2) is CosponsorResult.NOT_FOUND
    assert bill.cosponsors == [2, 3]


def test_cosponsor_rejected_once_any_round_opened():
    store = BillStore()
    bill = _submit(store)
    bill.rounds.append(VotingRound(Chamber.HOUSE, open=False))
    assert store.add_cosponsor(bill.ref, 9) is CosponsorResult.VOTING_ALREADY_OPEN
    assert bill.cosponsors == []


def test_status_text_and_color_follow_state():
    bill = _submit(BillStore())
    bill.rounds.append(VotingRound(Chamber.SENATE))
    bill.state = BillState.VOTING_OPEN
    assert bill.status_text == "Voting in Senate"
    bill.rounds[-1].open = False
    bill.state = BillState.CLOSED
    bill.outcome = Outcome.FAILED
    assert bill.status_text == "Failed Senate"
    assert bill.color == 0xFF0000
    bill.state = BillState.ENACTED
    assert bill.status_text == "Enacted"


def test_snapshot_is_detached():
    bill = _submit(BillStore())
    snap = bill.snapshot()
    bill.cosponsors.append(5)
    bill.title = "Changed"
    assert snap.cosponsors == []
    assert snap.title == "Roads Act"


def test_listings():
    store = BillStore()
    a = _submit(store, proposer=1)
    b = _submit(store, proposer=2)
    c = _submit(store, proposer=1)
    for bill, passed in ((a, True), (b, False)):
        bill.rounds.append(
            VotingRound(Chamber.HOUSE, open=False, result=Tally(1, 0, 0, 1, True) if passed else Tally(0, 1, 0, 1, False))
        )
        bill.state = BillState.CLOSED
        bill.outcome = Outcome.PASSED if passed else Outcome.FAILED

    assert store.list_by_proposer(1) == [a, c]
    assert store.list_by_status_prefix("Passed") == [a]
    assert store.list_by_status_prefix("Failed") == [b]
    assert store.list_by_outcome(Outcome.PASSED) == [a]
    assert store.list_by_outcome(Outcome.FAILED) == [b]
    assert len(store) == 3


def test_sessions():
    store = BillStore()
    assert store.current_session == 1
    _submit(store)
    store.new_session()
    later = _submit(store)
    assert store.current_session == 2
    assert later.session == 2


def test_persistence_round_trip(tmp_path):
    path = tmp_path / "bills.json"
    store = BillStore(path)
    bill = _submit(store, title="Parks Act")
    store.add_cosponsor(bill.ref, 7)
    bill.rounds.append(VotingRound(Chamber.HOUSE, ballots={7: Choice.YEA, 8: Choice.NAY}))
    bill.state = BillState.VOTING_OPEN
    store.commit(bill)
    store.new_session()

    loaded = BillStore.load(path)
    again = loaded.find(bill.ref)
    assert again.title == "Parks Act"
    assert again.cosponsors == [7]
    assert again.ballots == {7: Choice.YEA, 8: Choice.NAY}
    assert again.voting_open
    assert loaded.current_session == 2
    # counter survives, so numbers are never reused
    assert _submit(loaded).ref == "H.R. 004"


def test_load_missing_file_starts_empty(tmp_path):
    store = BillStore.load(tmp_path / "nothing.json")
    assert len(store) == 0
    assert store.current_session == 1


def test_load_falls_back_to_backup(tmp_path):
    path = tmp_path / "bills.json"
    store = BillStore(path)
    _submit(store)
    _submit(store)  # second save rotates the first into .bak
    path.write_text("{ not json", encoding="utf-8")

    loaded = BillStore.load(path)
    assert loaded.find("H.R. 003") is not None


def test_backup_survives_the_save_after_recovery(tmp_path):
    path = tmp_path / "bills.json"
    bak = tmp_path / "bills.json.bak"
    store = BillStore(path)
    _submit(store)
    _submit(store)
    path.write_text("{ not json", encoding="utf-8")

    loaded = BillStore.load(path)
    assert list(tmp_path.glob("bills.json.corrupt-*"))
    assert not path.exists()

    _submit(loaded)
    kept = json.loads(bak.read_text(encoding="utf-8"))
    assert "H.R. 003" in kept["bills"]
    assert BillStore.load(path).find("H.R. 004") is not None


def test_load_quarantines_corrupt_file(tmp_path):
    path = tmp_path / "bills.json"
    path.write_text("{ not json", encoding="utf-8")

    loaded = BillStore.load(path)
    assert len(loaded) == 0
    assert not path.exists()
    assert list(tmp_path.glob("bills.json.corrupt-*"))


def test_saved_file_is_plain_json(tmp_path):
    path = tmp_path / "bills.json"
    store = BillStore(path)
    _submit(store)
    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["counter"] == 4
    assert Bill.from_dict(data["bills"]["H.R. 003"]).category is Category.BILL
