REPRESENTATIVES = 1448608539156152423
SENATORS = 1448608654453510207
SPEAKER_OF_THE_HOUSE = 1448608890911723633
SENATE_MAJORITY_LEADER = 1448608785588289587
PRESIDENT = 1448609022394765354

BILL_SUBMISSION_CHANNEL = 1448606450573381742
HOUSE_VOTING_CHANNEL = 1448608056991551538
SENATE_VOTING_CHANNEL = 1448608082379935805
PASSED_HOUSE_CHANNEL = 1448608108728287385
PASSED_SENATE_CHANNEL = 1448608135446007871
SPEAKER_THREAD = 1448964188969107496
MAJORITY_LEADER_THREAD = 1448964018734628946
PASSED_LAWS_CHANNEL = 0  # unset until an admin runs `congressset channel passed_laws`

DEFAULT_ROLES = {
    "representative": REPRESENTATIVES,
    "senator": SENATORS,
    "speaker": SPEAKER_OF_THE_HOUSE,
    "majority_leader": SENATE_MAJORITY_LEADER,
    "president": PRESIDENT,
}

DEFAULT_CHANNELS = {
    "bill_submission": BILL_SUBMISSION_CHANNEL,
    "house_voting": HOUSE_VOTING_CHANNEL,
    "senate_voting": SENATE_VOTING_CHANNEL,
    "passed_house": PASSED_HOUSE_CHANNEL,
    "passed_senate": PASSED_SENATE_CHANNEL,
    "speaker_thread": SPEAKER_THREAD,
    "majority_leader_thread": MAJORITY_LEADER_THREAD,
    "passed_laws": PASSED_LAWS_CHANNEL,
}

DEFAULT_VOTE_HOURS = 24

# H.R. numbering starts at 003
FIRST_BILL_NUMBER = 3

COLOR_PENDING = 0xFFFF00
COLOR_PASSED = 0x00FF00
COLOR_FAILED = 0xFF0000
COLOR_ENACTED = 0xFFD700
COLOR_HELP = 0x00FFFF

HELP_TEXT = """
/congress bill [name/content] - Propose a bill (both chambers)
/congress res [name/content] - Resolution (one chamber)
/congress amm [name/content] - Amendment (both chambers, 2/3 to pass)
/congress motion [name/content] - Simple motion (one chamber)
/congress impeach - Articles of Impeachment (House, Reps only)
/congress cosponsor [bill number] - Add yourself as cosponsor
/congress openvote [bill number] - Approver opens the floor vote
/congress endvote [bill number] - Approver ends vote early
/congress sessioninfo - Show current session info
/congress mybills - Show bills you proposed
/congress billinfo [bill number] - Detailed bill info
/congress passed - View passed bills
/congress failed - View failed bills
"""
