"""
Domain events published after a successful commit.

Services queue events while a transaction is in flight; they are sent only
once the session commits and are dropped if it rolls back. Delivery to any
notification channel is the subscriber's job.

    from commerce_ledger import events

    @events.low_stock.connect
    def on_low_stock(sender, **payload):
        ...
"""

from __future__ import annotations

from blinker import Namespace
from sqlalchemy import event
from sqlalchemy.orm import Session

_signals = Namespace()

low_stock = _signals.signal("low-stock")
variance_detected = _signals.signal("variance-detected")

_PENDING_KEY = "commerce_ledger.pending_events"


def queue_event(session: Session, signal, **payload) -> None:
    """Queue ``signal`` to be sent with ``payload`` after ``session`` commits."""
    session.info.setdefault(_PENDING_KEY, []).append((signal, payload))


@event.listens_for(Session, "after_commit")
def _send_pending(session: Session) -> None:
    pending = session.info.pop(_PENDING_KEY, None)
    for signal, payload in pending or ():
        signal.send("commerce_ledger", **payload)


@event.listens_for(Session, "after_soft_rollback")
def _discard_pending(session: Session, previous_transaction) -> None:
    if previous_transaction.nested:
        return
    session.info.pop(_PENDING_KEY, None)
