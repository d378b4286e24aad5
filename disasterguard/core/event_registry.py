"""
Disaster Event Registry
=======================

Records disaster reports and operator attestations, and runs the quorum
state machine:

    REPORTED --(attestation count reaches quorum)--> VALIDATED

VALIDATED is terminal. An event that never reaches quorum stays REPORTED.

Each attestation is checked against a message rebuilt from the *stored*
event, never from caller-supplied fields, so a signature can only ever
vouch for the data this registry actually holds under that id.
"""

import logging
import threading
from dataclasses import replace
from typing import Dict, List, Optional, Set

from .errors import AlreadyValidated, DuplicateAttestation, InvalidSignature, UnknownEvent
from .models import DisasterEvent, DisasterType
from .notifications import Notifier
from .signatures import SignatureVerifier, attestation_digest, attestation_message_hash

logger = logging.getLogger(__name__)

DEFAULT_QUORUM = 3


class DisasterEventRegistry:
    """
    Append-only store of disaster events and their attestations.

    Ids are assigned from 0 upwards under a registry lock. Attestation state
    of each event (count, attestor set, validated flag) is guarded by a
    per-event lock, so the quorum edge is crossed exactly once even when the
    last attestations race.
    """

    def __init__(self,
                 verifier: SignatureVerifier,
                 clock,
                 quorum_threshold: int = DEFAULT_QUORUM,
                 accept_late_attestations: bool = False,
                 notifier: Optional[Notifier] = None):
        if quorum_threshold < 1:
            raise ValueError("quorum_threshold must be at least 1")
        self.verifier = verifier
        self.clock = clock
        self.quorum_threshold = quorum_threshold
        self.accept_late_attestations = accept_late_attestations
        self.notifier = notifier or Notifier()

        self._events: List[DisasterEvent] = []
        self._attestors: List[Set[str]] = []
        self._event_locks: List[threading.Lock] = []
        self._lock = threading.Lock()

        logger.info(f"DisasterEventRegistry initialized with quorum {quorum_threshold}")

    # ---------------- Reporting ----------------
    def report(self,
               location: str,
               disaster_type,
               severity: int,
               reporter: Optional[str] = None) -> int:
        """
        Record a new disaster report.

        Args:
            location: Location name, matched exactly against policies
            disaster_type: DisasterType or its name/code
            severity: Type-specific scale (e.g. Richter x 10)
            reporter: Optional identity of the reporting party

        Returns:
            The new event id
        """
        disaster_type = DisasterType.parse(disaster_type)
        if severity < 0:
            raise ValueError("severity must be non-negative")

        with self._lock:
            event_id = len(self._events)
            event = DisasterEvent(
                event_id=event_id,
                location=location,
                disaster_type=disaster_type,
                severity=int(severity),
                report_block=self.clock.block_number(),
                timestamp=self.clock.timestamp(),
                reporter=reporter,
            )
            self._events.append(event)
            self._attestors.append(set())
            self._event_locks.append(threading.Lock())

        logger.info(
            f"Event {event_id} reported: {disaster_type.value} at {location!r}, "
            f"severity {severity}"
        )
        self.notifier.emit('reported', event.to_dict())
        return event_id

    # ---------------- Attestation ----------------
    def attest(self, event_id: int, operator: str, signature: bytes) -> bool:
        """
        Record one operator's attestation for an event.

        Raises UnknownEvent, AlreadyValidated, DuplicateAttestation or
        InvalidSignature (checked in that order) without changing state.
        With accept_late_attestations, attestations on a validated event are
        recorded and counted instead of raising AlreadyValidated; the event
        stays validated and no second notification is sent.

        Returns:
            True when this attestation moved the event to VALIDATED
        """
        event, attestors, event_lock = self._slot(event_id)

        with event_lock:
            if event.validated and not self.accept_late_attestations:
                logger.warning(f"Attestation by {operator} on validated event {event_id} rejected")
                raise AlreadyValidated(f"Event {event_id} is already validated")
            if operator in attestors:
                logger.warning(f"Duplicate attestation by {operator} on event {event_id}")
                raise DuplicateAttestation(f"Operator {operator} already attested event {event_id}")

            message_hash = attestation_message_hash(event)
            if not self.verifier.is_valid_signature(operator, message_hash, signature):
                logger.warning(f"Invalid signature from {operator} on event {event_id}")
                raise InvalidSignature(f"Signature from {operator} does not match event {event_id}")

            attestors.add(operator)
            event.attestation_count += 1
            count = event.attestation_count

            crossed = False
            if not event.validated and count >= self.quorum_threshold:
                event.validated = True
                crossed = True
            snapshot = event.to_dict()

        logger.info(f"Event {event_id} attested by {operator} ({count}/{self.quorum_threshold})")
        self.notifier.emit('attested', {'event_id': event_id, 'operator': operator,
                                        'attestation_count': count})
        if crossed:
            logger.info(f"Event {event_id} validated by quorum")
            self.notifier.emit('validated', snapshot)
        return crossed

    # ---------------- Reads ----------------
    def get_event(self, event_id: int) -> DisasterEvent:
        """Copy of the stored event."""
        event, _, event_lock = self._slot(event_id)
        with event_lock:
            return replace(event)

    def is_validated(self, event_id: int) -> bool:
        return self.get_event(event_id).validated

    def has_attested(self, event_id: int, operator: str) -> bool:
        _, attestors, event_lock = self._slot(event_id)
        with event_lock:
            return operator in attestors

    def attestation_count(self, event_id: int) -> int:
        return self.get_event(event_id).attestation_count

    def message_hash_for(self, event_id: int) -> bytes:
        """The hash operators must sign to attest this event."""
        return attestation_message_hash(self.get_event(event_id))

    def digest_for(self, event_id: int) -> bytes:
        """Unprefixed event digest, what an operator wallet is asked to sign."""
        return attestation_digest(self.get_event(event_id))

    def event_count(self) -> int:
        with self._lock:
            return len(self._events)

    def events(self, validated: Optional[bool] = None) -> List[DisasterEvent]:
        with self._lock:
            ids = range(len(self._events))
        out = [self.get_event(i) for i in ids]
        if validated is not None:
            out = [e for e in out if e.validated == validated]
        return out

    def _slot(self, event_id: int):
        with self._lock:
            if not isinstance(event_id, int) or not 0 <= event_id < len(self._events):
                raise UnknownEvent(f"Unknown event id: {event_id}")
            return self._events[event_id], self._attestors[event_id], self._event_locks[event_id]


def summarize_attestations(registry: DisasterEventRegistry) -> Dict[str, int]:
    """Counts of reported vs validated events."""
    events = registry.events()
    validated = sum(1 for e in events if e.validated)
    return {
        'total_events': len(events),
        'validated': validated,
        'pending': len(events) - validated,
    }
