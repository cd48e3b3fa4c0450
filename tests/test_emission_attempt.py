"""Unit tests for the emission attempt state machine."""

import pytest

from fiscal_service.core.enums import DocumentStatus, DocumentType
from fiscal_service.core.exceptions import InvalidTransitionError
from fiscal_service.services.emission_attempt import EmissionAttempt


def new_attempt():
    return EmissionAttempt(document_type=DocumentType.GOODS_INVOICE, series="1")


def test_attempt_starts_as_draft():
    attempt = new_attempt()

    assert attempt.status == DocumentStatus.DRAFT
    assert attempt.history == [DocumentStatus.DRAFT]
    assert not attempt.is_terminal


@pytest.mark.parametrize(
    "terminal",
    [DocumentStatus.AUTHORIZED, DocumentStatus.REJECTED, DocumentStatus.FAILED],
)
def test_submitting_reaches_each_terminal_state(terminal):
    attempt = new_attempt()

    attempt.transition(DocumentStatus.SUBMITTING)
    attempt.transition(terminal)

    assert attempt.status == terminal
    assert attempt.is_terminal
    assert attempt.history == [DocumentStatus.DRAFT, DocumentStatus.SUBMITTING, terminal]


def test_draft_cannot_skip_submitting():
    attempt = new_attempt()

    with pytest.raises(InvalidTransitionError):
        attempt.transition(DocumentStatus.AUTHORIZED)

    assert attempt.status == DocumentStatus.DRAFT


@pytest.mark.parametrize(
    "terminal",
    [DocumentStatus.AUTHORIZED, DocumentStatus.REJECTED, DocumentStatus.FAILED],
)
@pytest.mark.parametrize("target", list(DocumentStatus))
def test_terminal_states_have_no_exits(terminal, target):
    attempt = new_attempt()
    attempt.transition(DocumentStatus.SUBMITTING)
    attempt.transition(terminal)

    with pytest.raises(InvalidTransitionError):
        attempt.transition(target)


def test_attempt_ids_are_unique():
    assert new_attempt().attempt_id != new_attempt().attempt_id
