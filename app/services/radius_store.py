"""Typed access to the FreeRADIUS tables.

These helpers only stage changes on the given session; committing is the
caller's job so several writes can share one transaction. Each replace helper
deletes the rows for its key and flushes the fresh rows straight away, so a
later delete in the same transaction never races a pending insert.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import or_
from sqlalchemy.orm import Query, Session

from app.models.radius import (
    Nas,
    RadAcct,
    RadCheck,
    RadGroupCheck,
    RadGroupReply,
    RadReply,
    RadUserGroup,
)
from app.services.bandwidth_policy import PolicyAttribute

OP_SET = ":="
OP_SET_ONCE = "="


# -- per-user check/reply attributes ---------------------------------------


def get_check_attribute(db: Session, username: str, attribute: str) -> RadCheck | None:
    return (
        db.query(RadCheck)
        .filter(RadCheck.username == username)
        .filter(RadCheck.attribute == attribute)
        .first()
    )


def get_reply_attribute(db: Session, username: str, attribute: str) -> RadReply | None:
    return (
        db.query(RadReply)
        .filter(RadReply.username == username)
        .filter(RadReply.attribute == attribute)
        .first()
    )


def list_check_attributes(db: Session, username: str) -> list[RadCheck]:
    return (
        db.query(RadCheck)
        .filter(RadCheck.username == username)
        .order_by(RadCheck.attribute)
        .all()
    )


def list_reply_attributes(db: Session, username: str) -> list[RadReply]:
    return (
        db.query(RadReply)
        .filter(RadReply.username == username)
        .order_by(RadReply.attribute)
        .all()
    )


def replace_check_attribute(
    db: Session, username: str, attribute: str, value: str | None, op: str = OP_SET
) -> None:
    """Delete ``attribute`` for ``username`` and write it back when ``value`` is set."""
    db.query(RadCheck).filter(RadCheck.username == username).filter(
        RadCheck.attribute == attribute
    ).delete(synchronize_session=False)
    if value:
        db.add(RadCheck(username=username, attribute=attribute, op=op, value=value))
        db.flush()


def replace_reply_attribute(
    db: Session, username: str, attribute: str, value: str | None, op: str = OP_SET
) -> None:
    db.query(RadReply).filter(RadReply.username == username).filter(
        RadReply.attribute == attribute
    ).delete(synchronize_session=False)
    if value:
        db.add(RadReply(username=username, attribute=attribute, op=op, value=value))
        db.flush()


def delete_check_attributes(db: Session, username: str) -> int:
    return (
        db.query(RadCheck)
        .filter(RadCheck.username == username)
        .delete(synchronize_session=False)
    )


def delete_reply_attributes(db: Session, username: str) -> int:
    return (
        db.query(RadReply)
        .filter(RadReply.username == username)
        .delete(synchronize_session=False)
    )


# -- group membership --------------------------------------------------------


def get_group_membership(db: Session, username: str) -> RadUserGroup | None:
    return db.query(RadUserGroup).filter(RadUserGroup.username == username).first()


def delete_group_membership(db: Session, username: str) -> int:
    return (
        db.query(RadUserGroup)
        .filter(RadUserGroup.username == username)
        .delete(synchronize_session=False)
    )


def replace_group_membership(
    db: Session, username: str, groupname: str | None, priority: int = 1
) -> None:
    delete_group_membership(db, username)
    if groupname:
        db.add(RadUserGroup(username=username, groupname=groupname, priority=priority))
        db.flush()


# -- group policy ------------------------------------------------------------


def list_group_reply(db: Session, groupname: str) -> list[RadGroupReply]:
    return (
        db.query(RadGroupReply)
        .filter(RadGroupReply.groupname == groupname)
        .order_by(RadGroupReply.priority, RadGroupReply.attribute)
        .all()
    )


def list_group_check(db: Session, groupname: str) -> list[RadGroupCheck]:
    return (
        db.query(RadGroupCheck)
        .filter(RadGroupCheck.groupname == groupname)
        .order_by(RadGroupCheck.attribute)
        .all()
    )


def delete_group_policy(db: Session, groupname: str) -> int:
    removed = (
        db.query(RadGroupReply)
        .filter(RadGroupReply.groupname == groupname)
        .delete(synchronize_session=False)
    )
    removed += (
        db.query(RadGroupCheck)
        .filter(RadGroupCheck.groupname == groupname)
        .delete(synchronize_session=False)
    )
    return removed


def replace_group_policy(
    db: Session, groupname: str, attributes: Iterable[PolicyAttribute]
) -> None:
    delete_group_policy(db, groupname)
    for item in attributes:
        if item.is_check:
            db.add(
                RadGroupCheck(
                    groupname=groupname,
                    attribute=item.attribute,
                    op=item.op,
                    value=item.value,
                )
            )
        else:
            db.add(
                RadGroupReply(
                    groupname=groupname,
                    attribute=item.attribute,
                    op=item.op,
                    value=item.value,
                    priority=item.priority,
                )
            )
    db.flush()


# -- NAS registry ------------------------------------------------------------


def get_nas(db: Session, nasname: str) -> Nas | None:
    return db.query(Nas).filter(Nas.nasname == nasname).first()


def upsert_nas(
    db: Session,
    nasname: str,
    shortname: str,
    nas_type: str,
    secret: str,
    description: str | None,
) -> Nas:
    nas = get_nas(db, nasname)
    if nas is None:
        nas = Nas(nasname=nasname)
        db.add(nas)
    nas.shortname = shortname
    nas.type = nas_type
    nas.secret = secret
    nas.description = description
    db.flush()
    return nas


def delete_nas(db: Session, nasname: str) -> int:
    return db.query(Nas).filter(Nas.nasname == nasname).delete(synchronize_session=False)


# -- accounting --------------------------------------------------------------


def open_sessions_query(db: Session) -> Query:
    return db.query(RadAcct).filter(RadAcct.acctstoptime.is_(None))


def stale_sessions_filter(threshold: datetime):
    return or_(
        RadAcct.acctupdatetime < threshold,
        (RadAcct.acctupdatetime.is_(None)) & (RadAcct.acctstarttime < threshold),
    )
