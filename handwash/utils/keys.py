"""Key layout for the single-table store.

| entity      | pk                 | sk                          | gsi1pk             | gsi1sk                       |
|-------------|--------------------|-----------------------------|--------------------|------------------------------|
| FAMILY      | FAMILY#<familyId>  | META                        |                    |                              |
| INVITE      | INVITE#<hash>      | META                        |                    |                              |
| MEMBERSHIP  | USER#<sub>         | FAMILY#<familyId>           | FAMILY#<familyId>  | MEMBER#<sub>                 |
| EVENT       | FAMILY#<familyId>  | EVENT#<ms:13>#<eventId>     |                    |                              |
| PUSH_SUB    | USER#<sub>         | PUSH#<endpointHash>         | FAMILY#<familyId>  | USER#<sub>#PUSH#<hash>       |
| PROFILE     | USER#<sub>         | PROFILE                     |                    |                              |
"""

import time

ENTITY_FAMILY = "FAMILY"
ENTITY_INVITE = "INVITE"
ENTITY_MEMBERSHIP = "MEMBERSHIP"
ENTITY_EVENT = "HANDWASH_EVENT"
ENTITY_PUSH_SUB = "PUSH_SUB"
ENTITY_PROFILE = "USER_PROFILE"

META = "META"
PROFILE = "PROFILE"

FAMILY_PREFIX = "FAMILY#"
MEMBER_PREFIX = "MEMBER#"
EVENT_PREFIX = "EVENT#"
PUSH_PREFIX = "PUSH#"
USER_PREFIX = "USER#"

TIMESTAMP_WIDTH = 13  # epoch ms fits in 13 digits until the year 2286
MAX_SUFFIX = "\uffff"


def user_pk(sub: str) -> str:
    return f"{USER_PREFIX}{sub}"


def family_pk(family_id: str) -> str:
    return f"{FAMILY_PREFIX}{family_id}"


def invite_pk(invite_hash: str) -> str:
    return f"INVITE#{invite_hash}"


def membership_sk(family_id: str) -> str:
    return f"{FAMILY_PREFIX}{family_id}"


def member_gsi_sk(sub: str) -> str:
    return f"{MEMBER_PREFIX}{sub}"


def push_sk(endpoint_hash: str) -> str:
    return f"{PUSH_PREFIX}{endpoint_hash}"


def push_gsi_sk(sub: str, endpoint_hash: str) -> str:
    return f"{USER_PREFIX}{sub}#{PUSH_PREFIX}{endpoint_hash}"


def pad_ms(ms: int) -> str:
    """Left-pad epoch milliseconds so string order equals time order."""
    return str(max(0, int(ms))).zfill(TIMESTAMP_WIDTH)


def event_sk(at_ms: int, event_id: str) -> str:
    return f"{EVENT_PREFIX}{pad_ms(at_ms)}#{event_id}"


def event_range(from_ms: int, to_ms: int) -> tuple[str, str]:
    """Inclusive sort-key bounds covering every event in [from_ms, to_ms]."""
    return (
        f"{EVENT_PREFIX}{pad_ms(from_ms)}#",
        f"{EVENT_PREFIX}{pad_ms(to_ms)}#{MAX_SUFFIX}",
    )


def now_ms() -> int:
    return int(time.time() * 1000)
