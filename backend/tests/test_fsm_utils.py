from repairdesk.utils.fsm import TransitionValidator
from werkzeug.exceptions import BadRequest
import pytest


def test_transition_validator_allows_valid():
    fsm = TransitionValidator({'A': {'B'}, 'B': set()})
    assert fsm.assert_can_transition('A', 'B') is True
    assert fsm.allowed_from('A') == ['B']


def test_transition_validator_blocks_invalid():
    fsm = TransitionValidator({'A': {'B'}, 'B': set()})
    with pytest.raises(BadRequest):
        fsm.assert_can_transition('A', 'C')
    assert fsm.allowed_from('unknown') == []


def test_job_graph_has_terminal_picked_up():
    from repairdesk.routes.jobs import JOBS_FSM
    assert JOBS_FSM.allowed_from('picked-up') == []
    assert JOBS_FSM.can_transition('repair-in-progress', 'stress-test')
    assert not JOBS_FSM.can_transition('received', 'picked-up')


def test_invoice_graph():
    from repairdesk.routes.invoices import INVOICE_FSM
    assert INVOICE_FSM.allowed_from('draft') == ['sent']
    assert INVOICE_FSM.allowed_from('sent') == ['overdue', 'paid']
    assert INVOICE_FSM.allowed_from('paid') == []


def test_transitions_published_in_openapi(client):
    body = client.get('/openapi.json').get_json()
    job_schema = body['components']['schemas']['Job']
    assert 'x-transitions' in job_schema
    assert 'repair-in-progress' in job_schema['x-transitions']
    assert body['components']['schemas']['Invoice']['x-transitions'] == ['draft', 'sent', 'overdue', 'paid']
